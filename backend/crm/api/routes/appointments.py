"""Appointments: list, book, cancel."""
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from crm.api.deps import get_db, require
from crm.core.audit import AuditLog
from crm.core.exceptions import NotFoundError
from crm.core.permissions import Action, Resource
from crm.core.security import SessionUser
from crm.models.appointment import Appointment
from crm.schemas.appointment import AppointmentCreate, AppointmentResponse

router = APIRouter()


@router.get("", response_model=List[AppointmentResponse])
def list_appointments(
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.APPOINTMENTS)),
):
    """Soonest first."""
    return db.query(Appointment).order_by(Appointment.date.asc(), Appointment.time.asc()).all()


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.APPOINTMENTS)),
):
    appointment = Appointment(**data.model_dump(exclude_none=True))
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    AuditLog.log_action("create", "appointment", appointment.id, current_user.username, current_user.role.value)
    return appointment


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.DELETE, Resource.APPOINTMENTS)),
):
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError("Appointment", appointment_id)
    db.delete(appointment)
    db.commit()
    AuditLog.log_action("delete", "appointment", appointment_id, current_user.username, current_user.role.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

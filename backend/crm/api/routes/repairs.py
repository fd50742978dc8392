"""Repairs CRUD.

Technicians see and edit only repairs assigned to them, and may set only
the fields AccessPolicy.can_edit_field allows (status, technicianNotes).
The field check runs here, on the server, whatever the client sends.
Customers see only repairs booked against their own customer record.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from crm.api.deps import get_access_policy, get_db, require
from crm.core.audit import AuditLog
from crm.core.exceptions import NotFoundError, PermissionDenied
from crm.core.permissions import AccessPolicy, Action, Resource, is_customer_scoped, is_technician_scoped
from crm.core.security import SessionUser
from crm.models.repair import Repair
from crm.schemas.repair import RepairCreate, RepairResponse, RepairUpdate

router = APIRouter()


def _get_repair(db: Session, repair_id: str, user: SessionUser) -> Repair:
    repair = db.get(Repair, repair_id)
    if repair is None:
        raise NotFoundError("Repair", repair_id)
    if is_technician_scoped(user.role) and repair.technician_id != user.username:
        raise NotFoundError("Repair", repair_id)
    if is_customer_scoped(user.role) and (user.customer_id is None or repair.customer_id != user.customer_id):
        raise NotFoundError("Repair", repair_id)
    return repair


def _ensure_fields_allowed(policy: AccessPolicy, user: SessionUser, field_names, repair_id: Optional[str] = None):
    rejected = policy.disallowed_fields(user.role, Resource.REPAIRS, field_names)
    if not rejected:
        return
    reason = f"{user.role.value} may not set: {', '.join(rejected)}"
    AuditLog.log_access_denied("write", Resource.REPAIRS.value, user.username, user.role.value, reason, repair_id)
    raise PermissionDenied(user.role.value, "write", Resource.REPAIRS.value, reason)


@router.get("", response_model=List[RepairResponse])
def list_repairs(
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.REPAIRS)),
):
    """Newest first; search matches device name or serial number."""
    q = db.query(Repair)
    if is_technician_scoped(current_user.role):
        q = q.filter(Repair.technician_id == current_user.username)
    elif is_customer_scoped(current_user.role):
        if current_user.customer_id is None:
            return []
        q = q.filter(Repair.customer_id == current_user.customer_id)
    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.filter(or_(Repair.device_name.ilike(term), Repair.serial_number.ilike(term)))
    if status_filter:
        q = q.filter(Repair.status == status_filter)
    return q.order_by(Repair.created_at.desc()).all()


@router.get("/{repair_id}", response_model=RepairResponse)
def get_repair(
    repair_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.REPAIRS)),
):
    return _get_repair(db, repair_id, current_user)


@router.post("", response_model=RepairResponse, status_code=status.HTTP_201_CREATED)
def create_repair(
    data: RepairCreate,
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.REPAIRS)),
):
    _ensure_fields_allowed(policy, current_user, data.model_dump(exclude_unset=True, by_alias=True).keys())
    repair = Repair(**data.model_dump(exclude_none=True))
    db.add(repair)
    db.commit()
    db.refresh(repair)
    AuditLog.log_action("create", "repair", repair.id, current_user.username, current_user.role.value)
    return repair


@router.put("/{repair_id}", response_model=RepairResponse)
def update_repair(
    repair_id: str,
    data: RepairUpdate,
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.REPAIRS)),
):
    repair = _get_repair(db, repair_id, current_user)
    _ensure_fields_allowed(policy, current_user, data.model_dump(exclude_unset=True, by_alias=True).keys(), repair_id)
    changes = data.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(repair, key, value)
    db.commit()
    db.refresh(repair)
    AuditLog.log_action("update", "repair", repair.id, current_user.username, current_user.role.value, changes)
    return repair


@router.delete("/{repair_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_repair(
    repair_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.DELETE, Resource.REPAIRS)),
):
    repair = _get_repair(db, repair_id, current_user)
    db.delete(repair)
    db.commit()
    AuditLog.log_action("delete", "repair", repair_id, current_user.username, current_user.role.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""Leads CRUD and lead-to-customer conversion.

Customers may submit a lead (an enquiry) but never read or edit the lead
book; those calls are refused with 403.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from crm.api.deps import ensure_allowed, get_access_policy, get_db, require
from crm.core.audit import AuditLog
from crm.core.exceptions import NotFoundError, PermissionDenied
from crm.core.permissions import AccessPolicy, Action, Resource, is_customer_scoped
from crm.core.security import SessionUser
from crm.models.lead import Lead
from crm.schemas.lead import LeadConversion, LeadCreate, LeadResponse, LeadUpdate
from crm.services.customer_service import convert_lead

router = APIRouter()


def _get_lead(db: Session, lead_id: str) -> Lead:
    lead = db.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead", lead_id)
    return lead


def _ensure_staff(user: SessionUser, action: Action, lead_id: Optional[str] = None):
    if not is_customer_scoped(user.role):
        return
    reason = "customers may submit leads but not view or edit them"
    AuditLog.log_access_denied(action.value, Resource.LEADS.value, user.username, user.role.value, reason, lead_id)
    raise PermissionDenied(user.role.value, action.value, Resource.LEADS.value, reason)


@router.get("", response_model=List[LeadResponse])
def list_leads(
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.LEADS)),
):
    _ensure_staff(current_user, Action.READ)
    q = db.query(Lead)
    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.filter(or_(Lead.name.ilike(term), Lead.email.ilike(term), Lead.phone.ilike(term)))
    if status_filter:
        q = q.filter(Lead.status == status_filter)
    return q.order_by(Lead.created_at.desc()).all()


@router.get("/{lead_id}", response_model=LeadResponse)
def get_lead(
    lead_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.LEADS)),
):
    _ensure_staff(current_user, Action.READ, lead_id)
    return _get_lead(db, lead_id)


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
def create_lead(
    data: LeadCreate,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.LEADS)),
):
    lead = Lead(**data.model_dump(exclude_none=True))
    db.add(lead)
    db.commit()
    db.refresh(lead)
    AuditLog.log_action("create", "lead", lead.id, current_user.username, current_user.role.value)
    return lead


@router.put("/{lead_id}", response_model=LeadResponse)
def update_lead(
    lead_id: str,
    data: LeadUpdate,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.LEADS)),
):
    _ensure_staff(current_user, Action.WRITE, lead_id)
    lead = _get_lead(db, lead_id)
    changes = data.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(lead, key, value)
    db.commit()
    db.refresh(lead)
    AuditLog.log_action("update", "lead", lead.id, current_user.username, current_user.role.value, changes)
    return lead


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(
    lead_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.DELETE, Resource.LEADS)),
):
    lead = _get_lead(db, lead_id)
    db.delete(lead)
    db.commit()
    AuditLog.log_action("delete", "lead", lead_id, current_user.username, current_user.role.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{lead_id}/convert", response_model=LeadConversion)
def convert(
    lead_id: str,
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.LEADS)),
):
    """Turn a lead into a New-segment customer; needs write on customers too."""
    ensure_allowed(policy, current_user, Action.WRITE, Resource.CUSTOMERS, lead_id)
    customer = convert_lead(db, lead_id)
    AuditLog.log_action(
        "convert", "lead", lead_id, current_user.username, current_user.role.value,
        changes={"customer_id": customer.id},
    )
    return LeadConversion(customer_id=customer.id)

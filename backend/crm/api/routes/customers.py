"""Customers CRUD."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from crm.api.deps import get_db, require
from crm.core.audit import AuditLog
from crm.core.exceptions import NotFoundError
from crm.core.permissions import Action, Resource
from crm.core.security import SessionUser
from crm.models.customer import Customer
from crm.schemas.customer import CustomerCreate, CustomerResponse, CustomerUpdate

router = APIRouter()


def _get_customer(db: Session, customer_id: str) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer", customer_id)
    return customer


@router.get("", response_model=List[CustomerResponse])
def list_customers(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.CUSTOMERS)),
):
    """Newest first; search matches name, email or phone."""
    q = db.query(Customer)
    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.filter(or_(Customer.name.ilike(term), Customer.email.ilike(term), Customer.phone.ilike(term)))
    return q.order_by(Customer.created_at.desc()).all()


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(
    customer_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.CUSTOMERS)),
):
    return _get_customer(db, customer_id)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def create_customer(
    data: CustomerCreate,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.CUSTOMERS)),
):
    customer = Customer(**data.model_dump(exclude_none=True))
    db.add(customer)
    db.commit()
    db.refresh(customer)
    AuditLog.log_action("create", "customer", customer.id, current_user.username, current_user.role.value)
    return customer


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: str,
    data: CustomerUpdate,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.CUSTOMERS)),
):
    customer = _get_customer(db, customer_id)
    changes = data.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(customer, key, value)
    db.commit()
    db.refresh(customer)
    AuditLog.log_action("update", "customer", customer.id, current_user.username, current_user.role.value, changes)
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(
    customer_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.DELETE, Resource.CUSTOMERS)),
):
    """Orders and repairs keep their (now dangling) customer reference."""
    customer = _get_customer(db, customer_id)
    db.delete(customer)
    db.commit()
    AuditLog.log_action("delete", "customer", customer_id, current_user.username, current_user.role.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

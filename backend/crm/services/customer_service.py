"""Customer lookups and lead conversion."""
import logging

from sqlalchemy.orm import Session

from crm.core.exceptions import NotFoundError, ValidationError
from crm.models.customer import Customer
from crm.models.lead import Lead

logger = logging.getLogger(__name__)


def customer_exists(db: Session, customer_id: str) -> bool:
    if not customer_id:
        return False
    return db.query(Customer.id).filter(Customer.id == customer_id).first() is not None


def convert_lead(db: Session, lead_id: str) -> Customer:
    """Create a New-segment customer from a lead and mark the lead Converted.

    Both writes commit together. A lead can only be converted once.

    Raises:
        NotFoundError: unknown lead id
        ValidationError: lead already converted
    """
    lead = db.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead", lead_id)
    if lead.status == "Converted":
        raise ValidationError("Lead already converted")

    try:
        customer = Customer(
            name=lead.name,
            email=lead.email,
            phone=lead.phone,
            notes=f"Converted from lead. Interest: {lead.interest or ''}",
            segment="New",
        )
        db.add(customer)
        lead.status = "Converted"
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(customer)
    logger.info(f"Lead {lead_id} converted to customer {customer.id}")
    return customer

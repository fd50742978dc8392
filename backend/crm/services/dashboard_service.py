"""Aggregates for the dashboard cards."""
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.models.customer import Customer
from crm.models.lead import Lead
from crm.models.order import Order
from crm.models.product import Product
from crm.models.repair import Repair


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def get_stats(db: Session, now: datetime = None) -> dict:
    """Counts and revenue totals (cents) across the whole store."""
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)

    total_customers = db.query(func.count(Customer.id)).scalar() or 0
    total_products = db.query(func.count(Product.id)).scalar() or 0

    low_stock_products = db.query(func.count(Product.id)).filter(
        Product.stock < settings.LOW_STOCK_THRESHOLD
    ).scalar() or 0

    active_repairs = db.query(func.count(Repair.id)).filter(
        Repair.status.in_(settings.ACTIVE_REPAIR_STATUSES)
    ).scalar() or 0

    new_leads = db.query(func.count(Lead.id)).filter(Lead.status == "New").scalar() or 0

    total_revenue = db.query(func.sum(Order.total)).scalar() or 0

    monthly_revenue = db.query(func.sum(Order.total)).filter(
        Order.created_at >= month_start(now)
    ).scalar() or 0

    return {
        "total_customers": total_customers,
        "total_products": total_products,
        "low_stock_products": low_stock_products,
        "active_repairs": active_repairs,
        "total_revenue": int(total_revenue),
        "monthly_revenue": int(monthly_revenue),
        "new_leads": new_leads,
    }

"""Create all tables and, on an empty database, load the demo data.

Run on app startup. Seeding is skipped once any customer exists, and
can be turned off with SEED_DEMO_DATA=false.
"""
import logging
from datetime import datetime, timedelta, timezone

from crm.core.config import settings
from crm.db.base import Base
from crm.db.session import SessionLocal, engine
from crm.models import Appointment, Customer, Product, Repair  # noqa: F401 - register models
from crm.services.order_service import OrderService

logger = logging.getLogger(__name__)


def init_db(bind=None, session_factory=None, seed=None):
    bind = bind or engine
    session_factory = session_factory or SessionLocal
    seed = settings.SEED_DEMO_DATA if seed is None else seed

    Base.metadata.create_all(bind=bind)
    if not seed:
        return

    db = session_factory()
    try:
        if db.query(Customer).count() == 0:
            seed_demo_data(db)
    finally:
        db.close()


def seed_demo_data(db):
    """Two customers, three products (one low on stock), a repair, an appointment and an order."""
    john = Customer(
        name="John Doe",
        email="john@example.com",
        phone="555-0101",
        notes="VIP Client",
        segment="VIP",
    )
    jane = Customer(
        name="Jane Smith",
        email="jane@example.com",
        phone="555-0102",
        notes="Regular",
        segment="Repeat",
    )
    case = Product(name="iPhone 15 Pro Case", category="Accessories", price=4999, stock=50)
    protector = Product(name="Screen Protector", category="Accessories", price=1999, stock=100)
    cable = Product(name="Charging Cable", category="Cables", price=2999, stock=4)
    db.add_all([john, jane, case, protector, cable])
    db.flush()

    db.add(Repair(
        device_name="MacBook Pro M1",
        serial_number="C02XXXXX",
        issue_description="Screen flickering",
        status="In Repair",
        technician_notes="Diagnostic running",
        technician_id="tech",
        amount=0,
        customer_id=john.id,
    ))
    tomorrow = datetime.now(timezone.utc) + timedelta(days=1)
    db.add(Appointment(
        customer_name="Alice Wonderland",
        date=tomorrow.replace(hour=0, minute=0, second=0, microsecond=0),
        time="14:00",
        purpose="Consultation",
    ))
    db.commit()

    OrderService(db).place_order(
        jane.id,
        [{"productId": case.id, "quantity": 1}, {"productId": protector.id, "quantity": 2}],
    )
    logger.info("Demo data seeded")

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.db.base import Base, new_id


class Order(Base):
    """
    A sale. Written once by OrderService and never updated.

    customer_id is a weak reference: no foreign key, no cascade, the
    customer may be deleted later and the order stays.
    total is write-once: Σ(unit_price × quantity) over the items, in cents.
    """
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=new_id)
    customer_id = Column(String(32), nullable=False, index=True)
    total = Column(Integer, nullable=False)  # cents
    payment_status = Column(String(32), nullable=False, default="Pending")  # Pending, Paid
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )


class OrderItem(Base):
    """A line of an order with the unit price and name captured at sale time."""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String(32), nullable=False)  # weak reference
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)  # cents

    order = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.sql import func
from crm.db.base import Base, new_id


class Product(Base):
    """
    Catalog item.

    price is in minor currency units (cents), never a float.
    stock can only be lowered through OrderService (a sale) or set by
    Admin/Manager; the CHECK constraint backs the no-negative-stock rule.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(128), nullable=True)
    price = Column(Integer, nullable=False)  # cents
    stock = Column(Integer, nullable=False, default=0)
    supplier = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

from sqlalchemy import Column, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from crm.db.base import Base, new_id


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    phone = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    notes = Column(Text, default="")
    segment = Column(String(32), default="New")  # New, Repeat, VIP
    warranty_info = Column(String(512), nullable=True)
    warranty_expiry = Column(DateTime(timezone=True), nullable=True)
    reminder_flag = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

from sqlalchemy import Column, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from crm.db.base import Base, new_id


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    interest = Column(String(255), nullable=True)  # Product or Service
    status = Column(String(32), default="New")  # New, Contacted, Converted, Lost
    callback_requested = Column(Boolean, default=False)
    notes = Column(Text, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

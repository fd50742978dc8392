from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from crm.db.base import Base, new_id


class Repair(Base):
    __tablename__ = "repairs"

    id = Column(String(32), primary_key=True, default=new_id)
    device_name = Column(String(255), nullable=False)
    serial_number = Column(String(128), nullable=True)
    imei = Column(String(64), nullable=True)
    issue_description = Column(Text, default="")
    status = Column(String(32), default="Received")  # Received, Diagnosing, In Repair, Completed, Delivered
    technician_notes = Column(Text, default="")
    technician_id = Column(String(64), nullable=True, index=True)  # username of assigned technician
    amount = Column(Integer, default=0)  # cents
    customer_id = Column(String(32), nullable=True)  # weak reference
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

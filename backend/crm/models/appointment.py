from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from crm.db.base import Base, new_id


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(32), primary_key=True, default=new_id)
    customer_name = Column(String(255), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    time = Column(String(16), nullable=False)  # "14:00"
    purpose = Column(String(512), default="")
    staff_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

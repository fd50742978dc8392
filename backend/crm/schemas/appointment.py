from datetime import datetime
from typing import Optional

from pydantic import Field

from crm.schemas.base import APIModel


class AppointmentCreate(APIModel):
    customer_name: str = Field(min_length=1)
    date: datetime
    time: str = Field(min_length=1)
    purpose: Optional[str] = None
    staff_id: Optional[str] = None


class AppointmentResponse(APIModel):
    id: str
    customer_name: str
    date: datetime
    time: str
    purpose: Optional[str] = None
    staff_id: Optional[str] = None
    created_at: Optional[datetime] = None

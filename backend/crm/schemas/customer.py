from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from crm.schemas.base import APIModel

Segment = Literal["New", "Repeat", "VIP"]


class CustomerCreate(APIModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    segment: Optional[Segment] = None
    warranty_info: Optional[str] = None
    warranty_expiry: Optional[datetime] = None
    reminder_flag: Optional[bool] = None


class CustomerUpdate(APIModel):
    # Omitted means unchanged; an explicit null is rejected for NOT NULL columns
    name: str = Field(default=None, min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    segment: Optional[Segment] = None
    warranty_info: Optional[str] = None
    warranty_expiry: Optional[datetime] = None
    reminder_flag: Optional[bool] = None


class CustomerResponse(APIModel):
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    segment: Optional[str] = None
    warranty_info: Optional[str] = None
    warranty_expiry: Optional[datetime] = None
    reminder_flag: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

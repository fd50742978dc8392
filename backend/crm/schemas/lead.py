from datetime import datetime
from typing import Optional

from pydantic import Field

from crm.schemas.base import APIModel


class LeadCreate(APIModel):
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    interest: Optional[str] = None
    status: Optional[str] = None
    callback_requested: Optional[bool] = None
    notes: Optional[str] = None


class LeadUpdate(LeadCreate):
    name: str = Field(default=None, min_length=1)


class LeadResponse(APIModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    interest: Optional[str] = None
    status: Optional[str] = None
    callback_requested: Optional[bool] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class LeadConversion(APIModel):
    customer_id: str

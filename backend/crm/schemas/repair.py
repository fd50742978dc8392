from datetime import datetime
from typing import Optional, Union

from pydantic import Field, field_validator

from crm.schemas.base import APIModel


class RepairCreate(APIModel):
    device_name: str = Field(min_length=1)
    serial_number: Optional[str] = None
    imei: Optional[str] = None
    issue_description: Optional[str] = None
    status: Optional[str] = None
    technician_notes: Optional[str] = None
    technician_id: Optional[str] = None
    amount: Optional[int] = None  # cents
    customer_id: Optional[Union[str, int]] = None

    @field_validator("customer_id")
    @classmethod
    def customer_id_as_str(cls, v):
        return None if v is None else str(v)


class RepairUpdate(RepairCreate):
    # Omitted means unchanged; null is rejected
    device_name: str = Field(default=None, min_length=1)


class RepairResponse(APIModel):
    id: str
    device_name: str
    serial_number: Optional[str] = None
    imei: Optional[str] = None
    issue_description: Optional[str] = None
    status: Optional[str] = None
    technician_notes: Optional[str] = None
    technician_id: Optional[str] = None
    amount: Optional[int] = None
    customer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

from datetime import datetime
from typing import Optional

from pydantic import Field

from crm.schemas.base import APIModel


class ProductCreate(APIModel):
    name: str = Field(min_length=1)
    category: Optional[str] = None
    price: int = Field(ge=0)  # cents
    stock: int = Field(ge=0)
    supplier: Optional[str] = None


class ProductUpdate(APIModel):
    # Omitted means unchanged; an explicit null is rejected for NOT NULL columns
    name: str = Field(default=None, min_length=1)
    category: Optional[str] = None
    price: int = Field(default=None, ge=0)
    stock: int = Field(default=None, ge=0)
    supplier: Optional[str] = None


class ProductResponse(APIModel):
    id: str
    name: str
    category: Optional[str] = None
    price: int
    stock: int
    supplier: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

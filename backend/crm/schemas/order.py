from datetime import datetime
from typing import List, Optional, Union

from pydantic import field_validator

from crm.schemas.base import APIModel
from crm.schemas.customer import CustomerResponse
from crm.schemas.product import ProductResponse


class OrderLineIn(APIModel):
    # Quantity bounds are checked by OrderService so every caller gets the same rule
    product_id: Union[str, int]
    quantity: int

    @field_validator("product_id")
    @classmethod
    def product_id_as_str(cls, v):
        return str(v)


class OrderCreate(APIModel):
    customer_id: Union[str, int]
    items: List[OrderLineIn]
    payment_status: Optional[str] = None

    @field_validator("customer_id")
    @classmethod
    def customer_id_as_str(cls, v):
        return str(v)


class OrderItemResponse(APIModel):
    product_id: str
    quantity: int
    unit_price: int  # cents, captured at sale time


class OrderResponse(APIModel):
    id: str
    customer_id: str
    total: int  # cents
    payment_status: str
    items: List[OrderItemResponse]
    created_at: Optional[datetime] = None


class InvoiceLineResponse(OrderItemResponse):
    product_name: str  # name at sale time
    line_total: int
    product: Optional[ProductResponse] = None  # catalog entry as it is now


class InvoiceResponse(APIModel):
    id: str
    customer_id: str
    total: int
    payment_status: str
    created_at: Optional[datetime] = None
    customer: Optional[CustomerResponse] = None
    items: List[InvoiceLineResponse]

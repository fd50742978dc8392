"""Orders: placement, listing and invoices.

Placement goes through OrderService, the only place stock is decremented
by a sale. Customers only see their own orders; someone else's order
answers 404, same as a missing one.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse

from crm.api.deps import get_order_service, require
from crm.core.audit import AuditLog
from crm.core.exceptions import NotFoundError
from crm.core.permissions import Action, Resource, is_customer_scoped
from crm.core.security import SessionUser
from crm.schemas.order import InvoiceResponse, OrderCreate, OrderResponse
from crm.services.order_service import OrderDetail, OrderService
from crm.services.pdf_service import render_invoice_pdf

logger = logging.getLogger(__name__)
router = APIRouter()


def _scoped_invoice(service: OrderService, order_id: str, user: SessionUser) -> OrderDetail:
    detail = service.get_invoice(order_id)
    if is_customer_scoped(user.role) and detail.customer_id != user.customer_id:
        raise NotFoundError("Order", order_id)
    return detail


@router.get("", response_model=List[OrderResponse])
def list_orders(
    service: OrderService = Depends(get_order_service),
    current_user: SessionUser = Depends(require(Action.READ, Resource.SALES)),
):
    """Newest first. Customers get their own orders only."""
    if is_customer_scoped(current_user.role):
        if current_user.customer_id is None:
            return []
        return service.list_orders(customer_id=current_user.customer_id)
    return service.list_orders()


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    data: OrderCreate,
    service: OrderService = Depends(get_order_service),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.SALES)),
):
    """Place an order: validate stock, price it, decrement inventory, atomically."""
    order = service.place_order(data.customer_id, data.items, data.payment_status)
    AuditLog.log_action(
        "place", "order", order.id, current_user.username, current_user.role.value,
        changes={
            "customer_id": order.customer_id,
            "total": order.total,
            "items": [{"product_id": i.product_id, "quantity": i.quantity} for i in order.items],
        },
    )
    return order


@router.get("/{order_id}/invoice", response_model=InvoiceResponse)
def get_invoice(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    current_user: SessionUser = Depends(require(Action.READ, Resource.SALES)),
):
    """Stored total and sale-time prices next to the current catalog entries."""
    return InvoiceResponse.model_validate(_scoped_invoice(service, order_id, current_user))


@router.get("/{order_id}/invoice.pdf")
def download_invoice_pdf(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    current_user: SessionUser = Depends(require(Action.READ, Resource.SALES)),
):
    detail = _scoped_invoice(service, order_id, current_user)
    buffer = render_invoice_pdf(detail)
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=invoice_{detail.id}.pdf"},
    )

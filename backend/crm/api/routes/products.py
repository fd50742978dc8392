"""Products (inventory) CRUD.

Stock only goes down through order placement; setting it directly is
reserved to the roles AccessPolicy.can_edit_inventory_stock allows.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from crm.api.deps import get_access_policy, get_db, require
from crm.core.audit import AuditLog
from crm.core.config import settings
from crm.core.exceptions import NotFoundError, PermissionDenied
from crm.core.permissions import AccessPolicy, Action, Resource
from crm.core.security import SessionUser
from crm.models.product import Product
from crm.schemas.product import ProductCreate, ProductResponse, ProductUpdate

router = APIRouter()


def _get_product(db: Session, product_id: str) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


def _ensure_stock_editor(policy: AccessPolicy, user: SessionUser, product_id: Optional[str] = None):
    if policy.can_edit_inventory_stock(user.role):
        return
    reason = f"{user.role.value} may not set product stock"
    AuditLog.log_access_denied("write", Resource.INVENTORY.value, user.username, user.role.value, reason, product_id)
    raise PermissionDenied(user.role.value, "write", Resource.INVENTORY.value, reason)


@router.get("", response_model=List[ProductResponse])
def list_products(
    search: Optional[str] = Query(None),
    low_stock: bool = Query(False, alias="lowStock"),
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.INVENTORY)),
):
    """By name; lowStock=true keeps products under the low-stock threshold."""
    q = db.query(Product)
    if search and search.strip():
        q = q.filter(Product.name.ilike(f"%{search.strip()}%"))
    if low_stock:
        q = q.filter(Product.stock < settings.LOW_STOCK_THRESHOLD)
    return q.order_by(Product.name).all()


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.INVENTORY)),
):
    return _get_product(db, product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.INVENTORY)),
):
    if data.stock:
        _ensure_stock_editor(policy, current_user)
    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    AuditLog.log_action(
        "create", "product", product.id, current_user.username, current_user.role.value,
        changes={"price": product.price, "stock": product.stock},
    )
    return product


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
    current_user: SessionUser = Depends(require(Action.WRITE, Resource.INVENTORY)),
):
    """Price changes never touch existing orders; they keep their sale-time prices."""
    product = _get_product(db, product_id)
    changes = data.model_dump(exclude_unset=True)
    if "stock" in changes:
        _ensure_stock_editor(policy, current_user, product_id)
    for key, value in changes.items():
        setattr(product, key, value)
    db.commit()
    db.refresh(product)
    AuditLog.log_action("update", "product", product.id, current_user.username, current_user.role.value, changes)
    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.DELETE, Resource.INVENTORY)),
):
    """Past order items keep their product name and price snapshot."""
    product = _get_product(db, product_id)
    db.delete(product)
    db.commit()
    AuditLog.log_action("delete", "product", product_id, current_user.username, current_user.role.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""
Order placement and invoice assembly.

OrderService is the only writer of Order/OrderItem rows and the only code
that lowers Product.stock as a side effect of a sale.

CONSISTENCY MODEL:
- An order and its stock decrements are written in ONE transaction:
  either both are visible or neither is
- Every failure (bad input, unknown id, short stock, lost race, crash)
  rolls the transaction back; nothing is partially applied
- Unit prices are captured at check time and stored on the order items;
  totals are never recomputed from the live catalog

CONCURRENCY STRATEGIES:
- "pessimistic": per-product locks (sorted, bounded wait) plus row locks
  where the database supports them, held until commit or rollback
- "optimistic": conditional decrement (stock >= qty); if any product lost a
  race the whole attempt rolls back and is retried a bounded number of times
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.core.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from crm.core.locks import ProductLockRegistry, product_locks
from crm.models.customer import Customer
from crm.models.order import Order, OrderItem
from crm.models.product import Product
from crm.services.catalog_service import Catalog
from crm.services.customer_service import customer_exists

logger = logging.getLogger(__name__)

PESSIMISTIC = "pessimistic"
OPTIMISTIC = "optimistic"
STRATEGIES = (PESSIMISTIC, OPTIMISTIC)

PAYMENT_STATUSES = ("Pending", "Paid")
DEFAULT_PAYMENT_STATUS = "Pending"


@dataclass(frozen=True)
class LineItem:
    """A (product, quantity) pair of an order request, before pricing."""
    product_id: str
    quantity: int


@dataclass
class InvoiceLine:
    """An order item next to the product as the catalog has it now."""
    item: OrderItem
    product: Optional[Product]

    @property
    def product_id(self) -> str:
        return self.item.product_id

    @property
    def product_name(self) -> str:
        return self.item.product_name

    @property
    def quantity(self) -> int:
        return self.item.quantity

    @property
    def unit_price(self) -> int:
        return self.item.unit_price

    @property
    def line_total(self) -> int:
        return self.item.line_total


@dataclass
class OrderDetail:
    """An order with its customer and items resolved for display."""
    order: Order
    customer: Optional[Customer]
    items: List[InvoiceLine]

    @property
    def id(self) -> str:
        return self.order.id

    @property
    def customer_id(self) -> str:
        return self.order.customer_id

    @property
    def total(self) -> int:
        return self.order.total

    @property
    def payment_status(self) -> str:
        return self.order.payment_status

    @property
    def created_at(self) -> Optional[datetime]:
        return self.order.created_at


class _StockRace(Exception):
    """A conditional decrement matched no row: stock changed after the check."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(product_id)


def _field(item: Any, *names: str) -> Any:
    if isinstance(item, Mapping):
        for name in names:
            if name in item:
                return item[name]
        return None
    for name in names:
        if hasattr(item, name):
            return getattr(item, name)
    return None


def normalize_line_items(line_items: Optional[Iterable[Any]]) -> List[LineItem]:
    """
    Coerce request lines (LineItem, schema objects or dicts with
    productId/product_id and quantity) into LineItems.

    Raises:
        ValidationError: no lines, a missing product id, or a quantity
            that is not an integer >= 1
    """
    if line_items is None:
        raise ValidationError("Order must contain at least one item")

    lines: List[LineItem] = []
    for index, raw in enumerate(line_items):
        product_id = _field(raw, "product_id", "productId")
        quantity = _field(raw, "quantity")
        if product_id is None or str(product_id).strip() == "":
            raise ValidationError(f"Item {index + 1}: productId is required")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError(f"Item {index + 1}: quantity must be an integer")
        if quantity < 1:
            raise ValidationError(f"Item {index + 1}: quantity must be at least 1")
        lines.append(LineItem(product_id=str(product_id), quantity=quantity))

    if not lines:
        raise ValidationError("Order must contain at least one item")
    return lines


def quantities_by_product(lines: Sequence[LineItem]) -> "OrderedDict[str, int]":
    """Total requested quantity per product, in first-seen order."""
    totals: "OrderedDict[str, int]" = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


class OrderService:
    """Places orders atomically and assembles invoices.

    Args:
        db: session owning the transaction of every call
        catalog: product lookups / stock decrement (default: Catalog(db))
        customer_check: customer existence predicate (default: customer_exists)
        strategy: "pessimistic" or "optimistic" (default from settings)
        locks: per-product lock registry for the pessimistic strategy
        lock_timeout: seconds to wait for product locks before giving up
        max_attempts: optimistic attempts before ConcurrencyConflictError
    """

    def __init__(
        self,
        db: Session,
        catalog: Optional[Catalog] = None,
        customer_check: Optional[Callable[[Session, str], bool]] = None,
        strategy: Optional[str] = None,
        locks: Optional[ProductLockRegistry] = None,
        lock_timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        strategy = strategy or settings.ORDER_CONCURRENCY_STRATEGY
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown order concurrency strategy: {strategy!r}")

        self.db = db
        self.catalog = catalog or Catalog(db)
        self.customer_check = customer_check or customer_exists
        self.strategy = strategy
        self.locks = product_locks if locks is None else locks
        self.lock_timeout = settings.ORDER_LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout
        self.max_attempts = max(1, max_attempts or settings.ORDER_MAX_ATTEMPTS)

    # ------------------------------------------------------------------
    # Order placement
    # ------------------------------------------------------------------

    def place_order(
        self,
        customer_id: str,
        line_items: Iterable[Any],
        payment_status: Optional[str] = None,
    ) -> Order:
        """Validate, price and persist an order, decrementing stock.

        Returns:
            The committed Order with id, total, items and created_at loaded.

        Raises:
            NotFoundError: unknown customer or product
            ValidationError: empty items, quantity < 1, unknown payment status
            InsufficientStockError: any product has less stock than requested
            ConcurrencyConflictError: lock timeout / optimistic retries exhausted
        """
        customer_id = "" if customer_id is None else str(customer_id)
        if not self.customer_check(self.db, customer_id):
            raise NotFoundError("Customer", customer_id)

        lines = normalize_line_items(line_items)
        status = payment_status or DEFAULT_PAYMENT_STATUS
        if status not in PAYMENT_STATUSES:
            raise ValidationError(
                f"paymentStatus must be one of {', '.join(PAYMENT_STATUSES)}"
            )

        if self.strategy == PESSIMISTIC:
            order = self._place_with_locks(customer_id, lines, status)
        else:
            order = self._place_with_retries(customer_id, lines, status)

        logger.info(
            f"Order {order.id} placed for customer {customer_id}: "
            f"{len(order.items)} item(s), total {order.total} ({self.strategy})"
        )
        return order

    def _place_with_locks(self, customer_id: str, lines: List[LineItem], status: str) -> Order:
        wanted = quantities_by_product(lines)
        with self.locks.acquire(wanted.keys(), timeout=self.lock_timeout):
            try:
                return self._place_once(customer_id, lines, status, lock_rows=True)
            except _StockRace as race:
                # Someone outside this process changed stock under our lock
                raise ConcurrencyConflictError(
                    f"Stock of product {race.product_id} changed during the order; please retry"
                ) from race

    def _place_with_retries(self, customer_id: str, lines: List[LineItem], status: str) -> Order:
        last_race: Optional[_StockRace] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._place_once(customer_id, lines, status, lock_rows=False)
            except _StockRace as race:
                last_race = race
                logger.info(
                    f"Stock of product {race.product_id} changed during order "
                    f"(attempt {attempt}/{self.max_attempts}); rolled back"
                )
        raise ConcurrencyConflictError(
            f"Could not place order after {self.max_attempts} attempts; please retry"
        ) from last_race

    def _place_once(self, customer_id: str, lines: List[LineItem], status: str, lock_rows: bool) -> Order:
        """One all-or-nothing attempt. Rolls back on any error."""
        wanted = quantities_by_product(lines)
        try:
            if lock_rows:
                products = self.catalog.lock_products(wanted.keys())
            else:
                products = self.catalog.get_products(wanted.keys())

            for product_id in wanted:
                if product_id not in products:
                    raise NotFoundError("Product", product_id)

            for product_id, quantity in wanted.items():
                product = products[product_id]
                if product.stock < quantity:
                    raise InsufficientStockError(product.id, product.name, quantity, product.stock)

            order = Order(
                customer_id=customer_id,
                total=sum(products[line.product_id].price * line.quantity for line in lines),
                payment_status=status,
            )
            order.items = [
                OrderItem(
                    position=position,
                    product_id=line.product_id,
                    product_name=products[line.product_id].name,
                    quantity=line.quantity,
                    unit_price=products[line.product_id].price,
                )
                for position, line in enumerate(lines)
            ]
            self.db.add(order)
            self.db.flush()

            for product_id, quantity in wanted.items():
                if not self.catalog.decrement_stock(product_id, quantity):
                    raise _StockRace(product_id)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        return order

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_orders(self, customer_id: Optional[str] = None) -> List[Order]:
        q = self.db.query(Order)
        if customer_id is not None:
            q = q.filter(Order.customer_id == customer_id)
        return q.order_by(Order.created_at.desc()).all()

    def get_invoice(self, order_id: str) -> OrderDetail:
        """Order plus its customer and, per item, the product as it is now.

        The stored total and the per-item unit prices are the ones captured
        at sale time; the attached products show current catalog data and
        may be None if the product was deleted since.
        """
        order = self.get_order(order_id)
        customer = self.db.get(Customer, order.customer_id)
        products = self.catalog.get_products(item.product_id for item in order.items)
        return OrderDetail(
            order=order,
            customer=customer,
            items=[InvoiceLine(item=item, product=products.get(item.product_id)) for item in order.items],
        )

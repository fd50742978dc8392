"""Catalog reads and the stock decrement primitive used by OrderService."""
from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from crm.models.product import Product


class Catalog:
    """Product lookups and stock mutation over one session/transaction."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: str) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def get_products(self, product_ids: Iterable[str], for_update: bool = False) -> Dict[str, Product]:
        """
        Load several products at once, keyed by id. Missing ids are absent.

        for_update=True takes row locks (SELECT ... FOR UPDATE) held until the
        surrounding transaction ends; SQLite ignores it.
        """
        ids = list(set(product_ids))
        if not ids:
            return {}
        # populate_existing: always check against freshly read stock
        stmt = select(Product).where(Product.id.in_(ids)).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        return {p.id: p for p in self.db.execute(stmt).scalars()}

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """
        Atomically lower stock by ``quantity`` if at least that much is left.

        A single conditional UPDATE, so no other writer can slip in between
        the check and the decrement. Returns False (and changes nothing) when
        the product is missing or has too little stock. Runs inside the
        caller's transaction; the caller commits or rolls back.
        """
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def lock_products(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        """get_products with row locks held until the transaction ends."""
        return self.get_products(product_ids, for_update=True)

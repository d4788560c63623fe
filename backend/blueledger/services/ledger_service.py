# Overview: Stock ledger protocol; every quantity mutation is one single-record transaction.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..errors import DocumentSchemaError, InsufficientStock, InvalidArgument, NotFound
from ..models import Product, ProductStatus
from ..time_utils import utcnow
from ..validation import (
    MAX_CATEGORY_LENGTH,
    MAX_NAME_LENGTH,
    ProductSnapshot,
    check_quantities,
    clamp_int,
    coerce_price,
    optional_text,
    require_text,
)
from .concurrency import TransactionRunner, lock_for_update
from .snapshot_feed import PRODUCTS, SnapshotFeed
from .tenant_service import TenantGuard
"""
Stock Ledger Invariants (authoritative)

Quantity model:
- qty_uploaded: cumulative total ever added (initial + restocks), never decreases.
- qty_current: quantity presently available, 0 <= qty_current <= qty_uploaded.
- qty_sold: cumulative total ever sold, always qty_uploaded - qty_current.
- status: 'sold' iff qty_current == 0, else 'available'.
- company_id: fixed at creation.

Transaction protocol (Restock, Sell):
- Read the product by id INSIDE the transaction, with FOR UPDATE where the
  database honors it. Never trust a copy the caller fetched earlier.
- Check tenant ownership against that fresh read, not against anything the
  client sent.
- Compute the next quantities from the fresh read, check invariants, write.
- The UPDATE is a compare-and-set on version_id; a concurrent commit makes it
  fail with StaleDataError and TransactionRunner repeats the whole unit.
- Domain failures (NotFound, PermissionDenied, InsufficientStock) roll back and
  are never retried.
- No code path assigns quantity fields outside these units.
"""

logger = logging.getLogger("blueledger.ledger")


@dataclass(frozen=True)
class RestockResult:
    product_id: str
    amount: int
    new_qty_current: int
    new_qty_uploaded: int
    status: str

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "amount": self.amount,
            "new_qty_current": self.new_qty_current,
            "new_qty_uploaded": self.new_qty_uploaded,
            "status": self.status,
        }


@dataclass(frozen=True)
class SaleResult:
    product_id: str
    units_sold: int
    new_qty_current: int
    status: str

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "units_sold": self.units_sold,
            "new_qty_current": self.new_qty_current,
            "status": self.status,
        }


class StockLedger:
    def __init__(
        self,
        db,
        runner: TransactionRunner,
        guard: TenantGuard,
        feed: SnapshotFeed | None = None,
        *,
        restock_max: int = 1_000_000,
    ):
        self.db = db
        self.runner = runner
        self.guard = guard
        self.feed = feed
        self.restock_max = restock_max

    # =========================================================================
    # QUANTITY MUTATIONS
    # =========================================================================

    def restock(self, product_id: str, amount: Any, *, company_id: str | None, actor_uid: str | None = None) -> RestockResult:
        """
        Add `amount` units to both qty_uploaded and qty_current.

        amount is clamped to [1, restock_max]. qty_sold is unchanged.
        """
        add = clamp_int(amount, 1, self.restock_max, "amount")
        self.guard.require_company(company_id)

        def unit(session) -> RestockResult:
            product = self._load_locked(session, product_id)
            self.guard.require_same_company(product.company_id, company_id)
            current = ProductSnapshot.from_model(product)

            next_uploaded = current.qty_uploaded + add
            next_current = current.qty_current + add
            next_status = ProductStatus.for_quantity(next_current)
            self._check(product_id, next_uploaded, next_current, current.qty_sold, next_status)

            product.qty_uploaded = next_uploaded
            product.qty_current = next_current
            product.qty_sold = current.qty_sold
            product.status = next_status
            product.updated_at = utcnow()

            return RestockResult(product_id, add, next_current, next_uploaded, next_status)

        with self.guard.reporting(actor_uid, company_id, action="RESTOCK", resource=f"product:{product_id}"):
            result = self.runner.run(unit, label=f"restock {product_id}")

        logger.info("restock %s +%d -> current=%d uploaded=%d", product_id, add, result.new_qty_current, result.new_qty_uploaded)
        self._publish(company_id)
        return result

    def sell(
        self,
        product_id: str,
        units: Any,
        *,
        uid: str,
        company_id: str | None,
        display_name: str,
    ) -> SaleResult:
        """
        Remove `units` from qty_current and add them to qty_sold.

        The upper bound is the qty_current read inside the transaction; any
        max shown in a client form is ergonomics only.
        """
        requested = clamp_int(units, 1, None, "units")
        self.guard.require_company(company_id)

        def unit(session) -> SaleResult:
            product = self._load_locked(session, product_id)
            self.guard.require_same_company(product.company_id, company_id)
            current = ProductSnapshot.from_model(product)

            if requested > current.qty_current:
                raise InsufficientStock(current.qty_current)

            next_current = current.qty_current - requested
            next_sold = current.qty_sold + requested
            next_status = ProductStatus.for_quantity(next_current)
            self._check(product_id, current.qty_uploaded, next_current, next_sold, next_status)

            now = utcnow()
            product.qty_current = next_current
            product.qty_sold = next_sold
            product.qty_uploaded = current.qty_uploaded
            product.status = next_status
            product.last_sold_at = now
            product.last_sold_by_uid = uid
            product.last_sold_by_name = display_name
            product.updated_at = now

            return SaleResult(product_id, requested, next_current, next_status)

        with self.guard.reporting(uid, company_id, action="SELL", resource=f"product:{product_id}"):
            result = self.runner.run(unit, label=f"sell {product_id}")

        logger.info("sell %s -%d by %s -> current=%d", product_id, requested, uid, result.new_qty_current)
        self._publish(company_id)
        return result

    # =========================================================================
    # PRODUCT LIFECYCLE (admin)
    # =========================================================================

    def create_product(
        self,
        *,
        company_id: str | None,
        actor_uid: str,
        name: Any,
        category: Any = "",
        price: Any = 0,
        qty: Any = 0,
    ) -> Product:
        """Create a product with qty_uploaded = qty_current = qty and qty_sold = 0."""
        company_id = self.guard.require_company(company_id)
        name = require_text(name, "name", max_length=MAX_NAME_LENGTH)
        category = optional_text(category, "category", max_length=MAX_CATEGORY_LENGTH)
        price = coerce_price(price)
        initial = clamp_int(0 if qty in (None, "") else qty, 0, None, "qty")

        now = utcnow()
        product = Product(
            company_id=company_id,
            name=name,
            category=category,
            price=price,
            qty_uploaded=initial,
            qty_current=initial,
            qty_sold=0,
            status=ProductStatus.for_quantity(initial),
            created_by=actor_uid,
            created_at=now,
            updated_at=now,
            last_sold_at=None,
            last_sold_by_uid=None,
            last_sold_by_name=None,
        )

        def unit(session) -> Product:
            session.add(product)
            session.flush()
            return product

        created = self.runner.run(unit, label="create product")
        logger.info("product %s created in company %s with qty=%d", created.id, company_id, initial)
        self._publish(company_id)
        return created

    def update_details(
        self,
        product_id: str,
        patch: dict,
        *,
        company_id: str | None,
        actor_uid: str | None = None,
    ) -> Product:
        """
        Edit descriptive fields (name, category, price).

        Quantity fields, id and company_id are not editable here; a patch
        naming them is rejected as a whole.
        """
        allowed = {"name", "category", "price"}
        unknown = set(patch) - allowed
        if unknown:
            raise InvalidArgument(f"Fields not editable: {', '.join(sorted(unknown))}")
        if not patch:
            raise InvalidArgument("Nothing to update")

        changes: dict[str, Any] = {}
        if "name" in patch:
            changes["name"] = require_text(patch["name"], "name", max_length=MAX_NAME_LENGTH)
        if "category" in patch:
            changes["category"] = optional_text(patch["category"], "category", max_length=MAX_CATEGORY_LENGTH)
        if "price" in patch:
            changes["price"] = coerce_price(patch["price"])
        self.guard.require_company(company_id)

        def unit(session) -> Product:
            product = self._load_locked(session, product_id)
            self.guard.require_same_company(product.company_id, company_id)
            for field, value in changes.items():
                setattr(product, field, value)
            product.updated_at = utcnow()
            return product

        with self.guard.reporting(actor_uid, company_id, action="UPDATE_PRODUCT", resource=f"product:{product_id}"):
            product = self.runner.run(unit, label=f"update product {product_id}")

        self._publish(company_id)
        return product

    def delete_product(self, product_id: str, *, company_id: str | None, actor_uid: str | None = None) -> None:
        """Hard delete after the same fresh-record tenant check as the quantity mutations."""
        self.guard.require_company(company_id)

        def unit(session) -> None:
            product = self._load_locked(session, product_id)
            self.guard.require_same_company(product.company_id, company_id)
            session.delete(product)

        with self.guard.reporting(actor_uid, company_id, action="DELETE_PRODUCT", resource=f"product:{product_id}"):
            self.runner.run(unit, label=f"delete product {product_id}")

        logger.info("product %s deleted from company %s", product_id, company_id)
        self._publish(company_id)

    # =========================================================================
    # READS
    # =========================================================================

    def get_product(self, product_id: str, *, company_id: str | None) -> ProductSnapshot:
        company_id = self.guard.require_company(company_id)
        product = (
            self.guard.scoped(self.db.session.query(Product), Product, company_id)
            .filter(Product.id == product_id)
            .populate_existing()
            .first()
        )
        if product is None:
            raise NotFound("Product not found.")
        return ProductSnapshot.from_model(product)

    def list_products(self, company_id: str | None) -> list[Product]:
        """Tenant-filtered product list, most recently updated first."""
        return (
            self.guard.scoped(self.db.session.query(Product), Product, company_id)
            .populate_existing()
            .order_by(Product.updated_at.desc(), Product.id)
            .all()
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @staticmethod
    def _load_locked(session, product_id: str) -> Product:
        if not product_id or not str(product_id).strip():
            raise InvalidArgument("productId is required")
        product = (
            lock_for_update(session.query(Product).filter(Product.id == str(product_id)))
            .populate_existing()
            .first()
        )
        if product is None:
            raise NotFound("Product not found.")
        return product

    @staticmethod
    def _check(product_id: str, qty_uploaded: int, qty_current: int, qty_sold: int, status: str) -> None:
        violation = check_quantities(qty_uploaded, qty_current, qty_sold, status)
        if violation:
            raise DocumentSchemaError(f"Refusing to commit product {product_id}: {violation}")

    def _publish(self, company_id: str | None) -> None:
        if self.feed is not None and company_id:
            self.feed.publish(str(company_id), PRODUCTS)

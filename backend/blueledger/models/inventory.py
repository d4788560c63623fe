from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tenancy import new_id


class ProductStatus:
    AVAILABLE = "available"
    SOLD = "sold"

    ALL = (AVAILABLE, SOLD)

    @classmethod
    def for_quantity(cls, qty_current: int) -> str:
        return cls.SOLD if qty_current == 0 else cls.AVAILABLE


class Product(db.Model):
    """
    Tenant-scoped inventory unit; the authoritative stock ledger record.

    Quantity fields are only ever mutated by ledger_service inside a
    single-row transaction. version_id makes every UPDATE a compare-and-set:
    a concurrent commit bumps the version and the losing writer gets
    StaleDataError instead of overwriting.

    Invariants (also enforced as CHECK constraints):
    - qty_current >= 0
    - qty_uploaded >= qty_current
    - qty_sold = qty_uploaded - qty_current
    - status = 'sold' iff qty_current = 0
    - company_id never changes after insert
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_company_updated", "company_id", "updated_at"),
        db.CheckConstraint("qty_current >= 0", name="ck_products_qty_current_nonneg"),
        db.CheckConstraint("qty_uploaded >= qty_current", name="ck_products_uploaded_gte_current"),
        db.CheckConstraint("qty_sold = qty_uploaded - qty_current", name="ck_products_sold_balance"),
        db.CheckConstraint("price >= 0", name="ck_products_price_nonneg"),
        db.CheckConstraint(
            "(status = 'sold' AND qty_current = 0) OR (status = 'available' AND qty_current > 0)",
            name="ck_products_status_matches_qty",
        ),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    company_id = db.Column(db.String(32), db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, default="")
    price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    qty_uploaded = db.Column(db.Integer, nullable=False, default=0)
    qty_current = db.Column(db.Integer, nullable=False, default=0)
    qty_sold = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=ProductStatus.SOLD)

    last_sold_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_sold_by_uid = db.Column(db.String(32), nullable=True)
    last_sold_by_name = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.String(32), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} company_id={self.company_id} qty_current={self.qty_current}>"

    def to_dict(self) -> dict:
        return product_dict(self)


def product_dict(product) -> dict:
    """JSON shape of a product. Accepts a Product row or a ProductSnapshot."""
    return {
        "id": product.id,
        "company_id": product.company_id,
        "name": product.name,
        "category": product.category,
        "price": float(product.price) if product.price is not None else 0.0,
        "qty_uploaded": product.qty_uploaded,
        "qty_current": product.qty_current,
        "qty_sold": product.qty_sold,
        "status": product.status,
        "last_sold_at": to_utc_z(product.last_sold_at),
        "last_sold_by_uid": product.last_sold_by_uid,
        "last_sold_by_name": product.last_sold_by_name,
        "created_by": product.created_by,
        "created_at": to_utc_z(product.created_at),
        "updated_at": to_utc_z(product.updated_at),
    }

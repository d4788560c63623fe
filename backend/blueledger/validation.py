from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import DocumentSchemaError, InvalidArgument
from .models import Product, ProductStatus, Profile, Role, product_dict

# Maximum price: 999,999,999,999.99
# This prevents database overflow issues and nonsensical prices
MAX_PRICE = Decimal("999999999999.99")

MAX_NAME_LENGTH = 255
MAX_CATEGORY_LENGTH = 120


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request input.

    Accepts ints and plain digit strings (optional leading minus). Rejects
    booleans, decimals and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise InvalidArgument(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidArgument(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise InvalidArgument(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise InvalidArgument(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidArgument(f"{field} must be an integer")
    raise InvalidArgument(f"{field} must be an integer")


def clamp_int(value: Any, low: int, high: int | None, field: str) -> int:
    """Coerce to int and clamp into [low, high]; high=None means unbounded."""
    n = coerce_int(value, field)
    if n < low:
        return low
    if high is not None and n > high:
        return high
    return n


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    text = str(value if value is not None else "").strip()
    if not text:
        raise InvalidArgument(f"{field} is required")
    if max_length is not None and len(text) > max_length:
        raise InvalidArgument(f"{field} must be at most {max_length} characters")
    return text


def optional_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    text = str(value if value is not None else "").strip()
    if max_length is not None and len(text) > max_length:
        raise InvalidArgument(f"{field} must be at most {max_length} characters")
    return text


def coerce_price(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise InvalidArgument("price must be a number")
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidArgument("price must be a number")
    if not price.is_finite():
        raise InvalidArgument("price must be a number")
    if price < 0:
        raise InvalidArgument("price must be non-negative")
    if price > MAX_PRICE:
        raise InvalidArgument(f"price must be at most {MAX_PRICE}")
    return price.quantize(Decimal("0.01"))


# =============================================================================
# STORE-BOUNDARY RECORDS
# =============================================================================

@dataclass(frozen=True)
class ProductSnapshot:
    """
    Typed, validated view of a Product row.

    Built only through from_model(), which rejects rows that break the
    ledger invariants instead of letting a bad row flow into arithmetic.
    """
    id: str
    company_id: str
    name: str
    category: str
    price: Decimal
    qty_uploaded: int
    qty_current: int
    qty_sold: int
    status: str
    last_sold_at: datetime | None
    last_sold_by_uid: str | None
    last_sold_by_name: str | None
    created_by: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_model(cls, product: Product) -> "ProductSnapshot":
        if not product.id or not product.company_id:
            raise DocumentSchemaError("Product record is missing id or company.")
        for field in ("qty_uploaded", "qty_current", "qty_sold"):
            value = getattr(product, field)
            if not isinstance(value, int) or isinstance(value, bool):
                raise DocumentSchemaError(f"Product {product.id} has non-integer {field}.")
        if product.status not in ProductStatus.ALL:
            raise DocumentSchemaError(f"Product {product.id} has unknown status {product.status!r}.")

        snapshot = cls(
            id=product.id,
            company_id=product.company_id,
            name=product.name or "",
            category=product.category or "",
            price=Decimal(str(product.price if product.price is not None else 0)),
            qty_uploaded=product.qty_uploaded,
            qty_current=product.qty_current,
            qty_sold=product.qty_sold,
            status=product.status,
            last_sold_at=product.last_sold_at,
            last_sold_by_uid=product.last_sold_by_uid,
            last_sold_by_name=product.last_sold_by_name,
            created_by=product.created_by,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )
        violation = snapshot.invariant_violation()
        if violation:
            raise DocumentSchemaError(f"Product {product.id} violates ledger invariant: {violation}")
        return snapshot

    def invariant_violation(self) -> str | None:
        return check_quantities(self.qty_uploaded, self.qty_current, self.qty_sold, self.status)

    def to_dict(self) -> dict:
        return product_dict(self)


def check_quantities(qty_uploaded: int, qty_current: int, qty_sold: int, status: str) -> str | None:
    """Return a description of the first broken invariant, or None."""
    if qty_current < 0:
        return "qty_current < 0"
    if qty_uploaded < qty_current:
        return "qty_uploaded < qty_current"
    if qty_sold != qty_uploaded - qty_current:
        return "qty_sold != qty_uploaded - qty_current"
    if status != ProductStatus.for_quantity(qty_current):
        return f"status {status!r} does not match qty_current={qty_current}"
    return None


@dataclass(frozen=True)
class ProfileSnapshot:
    uid: str
    name: str
    email: str
    role: str
    company_id: str | None
    company_name: str | None
    created_by: str | None
    is_active: bool

    @classmethod
    def from_model(cls, profile: Profile) -> "ProfileSnapshot":
        if not profile.uid:
            raise DocumentSchemaError("Profile record is missing uid.")
        if profile.role not in Role.ALL:
            raise DocumentSchemaError(f"Profile {profile.uid} has unknown role {profile.role!r}.")
        return cls(
            uid=profile.uid,
            name=profile.name or "",
            email=profile.email or "",
            role=profile.role,
            company_id=str(profile.company_id) if profile.company_id else None,
            company_name=profile.company_name,
            created_by=profile.created_by,
            is_active=bool(profile.is_active),
        )

# backend/blueledger/routes/products.py
"""
Product ledger routes.

MULTI-TENANT: Every route works on g.caller.company_id, which comes from
the caller's persisted profile. Product ids in the URL are re-checked against
the record read inside each transaction.

SECURITY: All routes require authentication.
- Reads and Sell: admins and workers of the company
- Create, edit details, Restock, Delete: admins only
"""
from flask import Blueprint, g

from ..decorators import json_object, require_auth, require_role
from ..models import Role
from ..services import get_services
from ..services.snapshot_feed import PRODUCTS
from .streaming import stream_collection

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """List the caller's company products, most recently updated first."""
    products = get_services().ledger.list_products(g.caller.company_id)
    items = [p.to_dict() for p in products]
    return {"products": items, "count": len(items)}


@products_bp.post("")
@require_auth
@require_role(Role.ADMIN)
def create_product_route():
    """
    Create a product.

    Request body:
    - name: str (required)
    - category: str (optional)
    - price: number >= 0 (optional, default 0)
    - qty: int >= 0 (optional, default 0)
    """
    payload = json_object()
    product = get_services().ledger.create_product(
        company_id=g.caller.company_id,
        actor_uid=g.caller.uid,
        name=payload.get("name"),
        category=payload.get("category", ""),
        price=payload.get("price", 0),
        qty=payload.get("qty", 0),
    )
    return {"product": product.to_dict()}, 201


@products_bp.get("/stream")
@require_auth
def stream_products():
    """
    Server-sent events: one `snapshot` event with the full product list now,
    then one per committed change for the caller's company.
    """
    return stream_collection(PRODUCTS)


@products_bp.get("/<product_id>")
@require_auth
def get_product(product_id: str):
    snapshot = get_services().ledger.get_product(product_id, company_id=g.caller.company_id)
    return {"product": snapshot.to_dict()}


@products_bp.patch("/<product_id>")
@require_auth
@require_role(Role.ADMIN)
def update_product_route(product_id: str):
    """
    Edit name, category or price. Any other field in the body is rejected.
    """
    payload = json_object()
    product = get_services().ledger.update_details(
        product_id,
        payload,
        company_id=g.caller.company_id,
        actor_uid=g.caller.uid,
    )
    return {"product": product.to_dict()}


@products_bp.delete("/<product_id>")
@require_auth
@require_role(Role.ADMIN)
def delete_product_route(product_id: str):
    get_services().ledger.delete_product(product_id, company_id=g.caller.company_id, actor_uid=g.caller.uid)
    return {"ok": True}


@products_bp.post("/<product_id>/restock")
@require_auth
@require_role(Role.ADMIN)
def restock_route(product_id: str):
    """
    Restock a product.

    Request body:
    - amount: int, clamped to [1, RESTOCK_MAX_AMOUNT] (default 1)
    """
    payload = json_object()
    result = get_services().ledger.restock(
        product_id,
        payload.get("amount", 1),
        company_id=g.caller.company_id,
        actor_uid=g.caller.uid,
    )
    return result.to_dict()


@products_bp.post("/<product_id>/sell")
@require_auth
@require_role(Role.ADMIN, Role.WORKER)
def sell_route(product_id: str):
    """
    Sell units of a product.

    Request body:
    - units: int >= 1 (default 1). Must not exceed the quantity on hand at
      commit time, otherwise 409 insufficient-stock with details.available.
    """
    payload = json_object()
    caller = g.caller
    result = get_services().ledger.sell(
        product_id,
        payload.get("units", 1),
        uid=caller.uid,
        company_id=caller.company_id,
        display_name=caller.name or caller.email,
    )
    return result.to_dict()


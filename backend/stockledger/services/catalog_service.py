# Overview: Catalog collaborator; product lookups used by the ledger services.

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..errors import InvalidInputError, NotFoundError
from ..models import Product
from .concurrency import atomic
from .tenant_service import Caller, require_access


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def get_products(product_ids: Iterable[int], merchant_id: int, *, active_only: bool = True) -> dict[int, Product]:
    """Load products owned by merchant_id, keyed by id. Missing ids are simply absent."""
    ids = set(product_ids)
    if not ids:
        return {}
    q = db.session.query(Product).filter(
        Product.id.in_(ids),
        Product.merchant_id == merchant_id,
    )
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    return {p.id: p for p in q.all()}


def require_product(caller: Caller, product_id: int) -> Product:
    product = get_product(product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    require_access(caller, product.merchant_id, what="product")
    return product


def update_stock_threshold(caller: Caller, product_id: int, threshold: int) -> Product:
    """Set the per-product low-stock threshold (must be >= 0)."""
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        raise InvalidInputError("Stock threshold must be non-negative")

    with atomic():
        product = require_product(caller, product_id)
        product.low_stock_threshold = threshold
    return product

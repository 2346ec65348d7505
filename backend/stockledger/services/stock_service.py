# Overview: Stock calculator and ledger read operations; derives on-hand stock from ledger rows.

"""
Stock Ledger Invariants (authoritative)

Inventory model:
- Stock is never stored. It is derived per (product, location) as:
      SUM(inventory_entries.quantity)
    + SUM(stock_movements.quantity WHERE type NOT IN (STOCK_IN, TRANSFER_IN))
- STOCK_IN / TRANSFER_IN movements mirror an InventoryEntry and are kept for
  history only; counting them too would double the intake.
- Omitting location_id aggregates across every location of the product.

Integrity:
- A negative result means the ledger is inconsistent. It is returned as-is
  (never clamped) and logged at WARNING so it cannot go unnoticed.

Purity:
- Functions here only read. They are safe to call inside another service's
  open transaction (and are, right after stock_guard()).
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import InventoryEntry, Location, StockMovement, MovementType, Product
from ..models.inventory import AUDIT_ONLY_MOVEMENT_TYPES, coerce_enum
from ..errors import InsufficientStockError, InvalidInputError, NegativeStockError
from ..time_utils import normalize_datetime
from .catalog_service import require_product
from .concurrency import atomic
from .location_service import get_default_location, resolve_location
from .tenant_service import Caller, tenant_id_for


@dataclass(frozen=True)
class StockBreakdown:
    """Contributing rows behind a derived stock figure (for triage)."""

    product_id: int
    location_id: int | None
    entry_count: int
    entry_total: int
    movement_count: int
    movement_total: int

    @property
    def stock(self) -> int:
        return self.entry_total + self.movement_total

    def to_dict(self) -> dict:
        data = asdict(self)
        data["stock"] = self.stock
        return data


def _entry_sum_query(location_id: int | None):
    q = db.session.query(func.coalesce(func.sum(InventoryEntry.quantity), 0))
    if location_id is not None:
        q = q.filter(InventoryEntry.location_id == location_id)
    return q


def _movement_sum_query(location_id: int | None):
    q = db.session.query(func.coalesce(func.sum(StockMovement.quantity), 0)).filter(
        StockMovement.type.notin_(AUDIT_ONLY_MOVEMENT_TYPES)
    )
    if location_id is not None:
        q = q.filter(StockMovement.location_id == location_id)
    return q


def _warn_negative(product_id: int, location_id: int | None, entry_total: int, movement_total: int) -> None:
    current_app.logger.warning(
        "Integrity warning: negative stock for product %s at location %s "
        "(entries total %s, movements total %s, stock %s)",
        product_id,
        location_id if location_id is not None else "all",
        entry_total,
        movement_total,
        entry_total + movement_total,
    )


def current_stock(product_id: int, location_id: int | None = None) -> int:
    """
    Derived on-hand quantity for a product (at one location, or all when None).
    """
    entry_total = int(
        _entry_sum_query(location_id).filter(InventoryEntry.product_id == product_id).scalar() or 0
    )
    movement_total = int(
        _movement_sum_query(location_id).filter(StockMovement.product_id == product_id).scalar() or 0
    )

    stock = entry_total + movement_total
    if stock < 0:
        _warn_negative(product_id, location_id, entry_total, movement_total)
    return stock


def current_stock_batch(product_ids: Iterable[int], location_id: int | None = None) -> dict[int, int]:
    """
    Derived stock for many products in two grouped queries.

    Every requested id is present in the result; products without rows map
    to 0. Values equal current_stock(product_id, location_id) for each id.
    """
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return {}

    entry_q = db.session.query(
        InventoryEntry.product_id, func.sum(InventoryEntry.quantity)
    ).filter(InventoryEntry.product_id.in_(ids))
    movement_q = db.session.query(
        StockMovement.product_id, func.sum(StockMovement.quantity)
    ).filter(
        StockMovement.product_id.in_(ids),
        StockMovement.type.notin_(AUDIT_ONLY_MOVEMENT_TYPES),
    )
    if location_id is not None:
        entry_q = entry_q.filter(InventoryEntry.location_id == location_id)
        movement_q = movement_q.filter(StockMovement.location_id == location_id)

    entry_totals = {pid: int(total or 0) for pid, total in entry_q.group_by(InventoryEntry.product_id).all()}
    movement_totals = {pid: int(total or 0) for pid, total in movement_q.group_by(StockMovement.product_id).all()}

    stock_map: dict[int, int] = {}
    for pid in ids:
        entry_total = entry_totals.get(pid, 0)
        movement_total = movement_totals.get(pid, 0)
        stock_map[pid] = entry_total + movement_total
        if stock_map[pid] < 0:
            _warn_negative(pid, location_id, entry_total, movement_total)
    return stock_map


def stock_breakdown(product_id: int, location_id: int | None = None) -> StockBreakdown:
    """Counts and sums of the rows that make up current_stock()."""
    entry_q = db.session.query(
        func.count(InventoryEntry.id),
        func.coalesce(func.sum(InventoryEntry.quantity), 0),
    ).filter(InventoryEntry.product_id == product_id)
    movement_q = db.session.query(
        func.count(StockMovement.id),
        func.coalesce(func.sum(StockMovement.quantity), 0),
    ).filter(
        StockMovement.product_id == product_id,
        StockMovement.type.notin_(AUDIT_ONLY_MOVEMENT_TYPES),
    )
    if location_id is not None:
        entry_q = entry_q.filter(InventoryEntry.location_id == location_id)
        movement_q = movement_q.filter(StockMovement.location_id == location_id)

    entry_count, entry_total = entry_q.one()
    movement_count, movement_total = movement_q.one()
    return StockBreakdown(
        product_id=product_id,
        location_id=location_id,
        entry_count=int(entry_count or 0),
        entry_total=int(entry_total or 0),
        movement_count=int(movement_count or 0),
        movement_total=int(movement_total or 0),
    )


def ensure_available(product: Product, location: Location, requested: int) -> int:
    """
    Check derived stock at a location against a requested outflow.

    Call only after stock_guard() for the same pair. Returns available stock.

    Raises:
        NegativeStockError: stock is already negative (integrity problem)
        InsufficientStockError: stock is below the requested quantity
    """
    available = current_stock(product.id, location.id)

    if available < 0:
        breakdown = stock_breakdown(product.id, location.id)
        current_app.logger.error(
            "Blocked outflow of %s units: product %s at location %s has negative stock %s (%s)",
            requested, product.id, location.id, available, breakdown.to_dict(),
        )
        raise NegativeStockError(
            f'Cannot remove stock of "{product.name}" from "{location.name}": '
            f"Stock is negative ({available}). "
            f"This location has {breakdown.entry_count} inventory entries (total: {breakdown.entry_total}) "
            f"and {breakdown.movement_count} stock-affecting movements (total: {breakdown.movement_total}). "
            f"Please add stock to this location first to correct the negative balance.",
            product_id=product.id,
            product_name=product.name,
            location_id=location.id,
            location_name=location.name,
            available=available,
            requested=requested,
            details={"breakdown": breakdown.to_dict()},
        )

    if available < requested:
        raise InsufficientStockError(
            f'Insufficient stock for "{product.name}" at "{location.name}". '
            f"Available: {available}, Requested: {requested}",
            product_id=product.id,
            product_name=product.name,
            location_id=location.id,
            location_name=location.name,
            available=available,
            requested=requested,
        )
    return available


# ---------------------------------------------------------------------------
# Tenant-scoped reads
# ---------------------------------------------------------------------------

def _paginate(query, page: int, per_page: int) -> dict:
    per_page = min(max(per_page or 20, 1), 100)  # Default 20, max 100
    page = max(page or 1, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    items = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": items,
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
        },
    }


def _parse_range(start_date, end_date):
    try:
        return (
            normalize_datetime(start_date, field="start_date"),
            normalize_datetime(end_date, field="end_date"),
        )
    except ValueError as exc:
        raise InvalidInputError(str(exc))


def list_inventory_entries(
    caller: Caller,
    *,
    product_id: int | None = None,
    location_id: int | None = None,
    batch_number: str | None = None,
    start_date=None,
    end_date=None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """Receipt entries of the caller's tenant, newest first, with pagination metadata."""
    merchant_id = tenant_id_for(caller)
    start_dt, end_dt = _parse_range(start_date, end_date)

    q = (
        db.session.query(InventoryEntry)
        .join(Product, InventoryEntry.product_id == Product.id)
        .filter(Product.merchant_id == merchant_id)
    )
    if product_id is not None:
        q = q.filter(InventoryEntry.product_id == product_id)
    if location_id is not None:
        q = q.filter(InventoryEntry.location_id == location_id)
    if batch_number:
        q = q.filter(InventoryEntry.batch_number.ilike(f"%{batch_number}%"))
    if start_dt is not None:
        q = q.filter(InventoryEntry.received_date >= start_dt)
    if end_dt is not None:
        q = q.filter(InventoryEntry.received_date <= end_dt)

    q = q.order_by(InventoryEntry.created_at.desc(), InventoryEntry.id.desc())
    return _paginate(q, page, per_page)


def list_movements(
    caller: Caller,
    *,
    product_id: int | None = None,
    movement_type=None,
    start_date=None,
    end_date=None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """Stock movements of the caller's tenant, newest first, with pagination metadata."""
    merchant_id = tenant_id_for(caller)
    start_dt, end_dt = _parse_range(start_date, end_date)

    q = db.session.query(StockMovement).filter(StockMovement.merchant_id == merchant_id)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        try:
            mtype = coerce_enum(MovementType, movement_type, "movement_type")
        except ValueError as exc:
            raise InvalidInputError(str(exc))
        q = q.filter(StockMovement.type == mtype)
    if start_dt is not None:
        q = q.filter(StockMovement.created_at >= start_dt)
    if end_dt is not None:
        q = q.filter(StockMovement.created_at <= end_dt)

    q = q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    return _paginate(q, page, per_page)


def stock_history(caller: Caller, product_id: int, location_id: int | None = None) -> dict:
    """Receipt entries and movements (including audit-only ones) for one product."""
    product = require_product(caller, product_id)
    if location_id is not None:
        resolve_location(product.merchant_id, location_id)

    entries_q = db.session.query(InventoryEntry).filter_by(product_id=product_id)
    movements_q = db.session.query(StockMovement).filter_by(product_id=product_id)
    if location_id is not None:
        entries_q = entries_q.filter_by(location_id=location_id)
        movements_q = movements_q.filter_by(location_id=location_id)

    return {
        "product_id": product_id,
        "location_id": location_id,
        "current_stock": current_stock(product_id, location_id),
        "inventory_entries": entries_q.order_by(
            InventoryEntry.created_at.desc(), InventoryEntry.id.desc()
        ).all(),
        "movements": movements_q.order_by(
            StockMovement.created_at.desc(), StockMovement.id.desc()
        ).all(),
    }


def inventory_summary(caller: Caller) -> dict:
    """
    Stock overview for active products at the tenant's default location.

    Stock value uses cost price (what was paid), falling back to list price.
    """
    merchant_id = tenant_id_for(caller)
    products = (
        db.session.query(Product)
        .filter_by(merchant_id=merchant_id, is_active=True)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    with atomic():
        location = get_default_location(merchant_id)
    stock_map = current_stock_batch([p.id for p in products], location.id)

    total_value_cents = 0
    total_quantity = 0
    low_stock = []
    out_of_stock = []

    for product in products:
        stock = stock_map.get(product.id, 0)
        total_quantity += stock
        unit_cost = product.cost_price_cents or product.price_cents or 0
        total_value_cents += unit_cost * stock

        if stock <= product.low_stock_threshold:
            low_stock.append({
                "id": product.id,
                "name": product.name,
                "stock_quantity": stock,
                "threshold": product.low_stock_threshold,
            })
        if stock == 0:
            out_of_stock.append({"id": product.id, "name": product.name})

    return {
        "location_id": location.id,
        "total_products": len(products),
        "total_stock_value_cents": total_value_cents,
        "total_stock_quantity": total_quantity,
        "low_stock_count": len(low_stock),
        "out_of_stock_count": len(out_of_stock),
        "low_stock_products": low_stock,
        "out_of_stock_products": out_of_stock,
    }

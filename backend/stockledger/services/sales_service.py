"""
Sale Fulfillment

WHY: A sale is the main outflow of stock. It must be all-or-nothing: either
every line is available and every line is recorded, or nothing is written.

ALGORITHM:
1. Validate items and load products (tenant-owned, active)
2. Resolve the location (default when omitted)
3. Lock the (product, location) pairs and check derived stock per product
   (repeated lines for one product are summed)
4. Compute revenue, COGS, net income, margin and platform fee
5. Write Sale + SaleItems + one negative SALE movement per line
6. After commit: audit record and low-stock alerts
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import (
    InvalidInputError,
    InvalidItemsError,
    NotFoundError,
)
from ..models import Sale, SaleItem, StockMovement, MovementType
from ..time_utils import normalize_datetime, utcnow
from . import audit_service, fee_service
from .catalog_service import get_products
from .concurrency import atomic, stock_guard
from .location_service import resolve_location
from .notification_service import notify_if_low_stock
from .stock_service import _paginate, _parse_range, ensure_available
from .tenant_service import Caller, require_access, tenant_id_for


REFERENCE_TYPE_SALE = "SALE"


@dataclass(frozen=True)
class SaleItemInput:
    product_id: int
    quantity: int
    unit_price_cents: int

    @classmethod
    def from_value(cls, value) -> "SaleItemInput":
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            try:
                return cls(
                    product_id=value["product_id"],
                    quantity=value["quantity"],
                    unit_price_cents=value["unit_price_cents"],
                )
            except KeyError as e:
                raise InvalidItemsError(f"Sale item missing required field: {e}")
        raise InvalidItemsError("Sale items must be mappings with product_id, quantity, unit_price_cents")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_items(items) -> list[SaleItemInput]:
    if not items:
        raise InvalidItemsError("Sale must have at least one item")

    parsed = [SaleItemInput.from_value(item) for item in items]
    for i, item in enumerate(parsed, start=1):
        if not _is_int(item.quantity) or item.quantity <= 0:
            raise InvalidItemsError(
                f"Item {i}: quantity must be a positive integer",
                details={"line": i, "product_id": item.product_id},
            )
        if not _is_int(item.unit_price_cents) or item.unit_price_cents <= 0:
            raise InvalidItemsError(
                f"Item {i}: unit price must be greater than 0",
                details={"line": i, "product_id": item.product_id},
            )
    return parsed


def profit_margin(total_amount_cents: int, net_income_cents: int) -> float:
    """Net income as a percentage of revenue (0 when there is no revenue)."""
    if total_amount_cents <= 0:
        return 0.0
    return round(net_income_cents / total_amount_cents * 100, 2)


def create_sale(
    caller: Caller,
    *,
    items,
    location_id: int | None = None,
    notes: str | None = None,
    sale_date=None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
) -> Sale:
    """
    Record a multi-line sale and its SALE movements atomically.

    Args:
        items: iterable of SaleItemInput or dicts with
               product_id, quantity (> 0), unit_price_cents (> 0)

    Returns:
        The committed Sale (items loaded)

    Raises:
        InvalidItemsError, LocationNotFoundError, InsufficientStockError,
        NegativeStockError, AccessDeniedError
    """
    merchant_id = tenant_id_for(caller)
    lines = _validate_items(items)
    try:
        sale_dt = normalize_datetime(sale_date, field="sale_date") or utcnow()
    except ValueError as exc:
        raise InvalidInputError(str(exc))

    requested: dict[int, int] = {}
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    with atomic():
        products = get_products(requested.keys(), merchant_id, active_only=True)
        missing = sorted(pid for pid in requested if pid not in products)
        if missing:
            raise InvalidItemsError(
                "One or more products not found or inactive",
                details={"product_ids": missing},
            )

        location = resolve_location(merchant_id, location_id)

        stock_guard([(pid, location.id) for pid in requested])

        for pid, qty in requested.items():
            ensure_available(products[pid], location, qty)

        total_amount = sum(line.quantity * line.unit_price_cents for line in lines)
        cogs = sum(line.quantity * products[line.product_id].cost_price_cents for line in lines)
        net_income = total_amount - cogs
        platform_fee = fee_service.transaction_fee(total_amount, merchant_id)

        sale = Sale(
            merchant_id=merchant_id,
            location_id=location.id,
            user_id=caller.user_id,
            total_amount_cents=total_amount,
            cost_of_goods_sold_cents=cogs,
            net_income_cents=net_income,
            profit_margin=profit_margin(total_amount, net_income),
            platform_fee_cents=platform_fee,
            sale_date=sale_dt,
            customer_name=customer_name or None,
            customer_phone=customer_phone or None,
            notes=notes,
        )
        for line in lines:
            product = products[line.product_id]
            sale.items.append(SaleItem(
                product_id=product.id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                default_price_cents=product.price_cents,
                unit_cost_cents=product.cost_price_cents,
                total_price_cents=line.quantity * line.unit_price_cents,
            ))

        db.session.add(sale)
        db.session.flush()  # ensures sale.id is assigned without committing

        for line in lines:
            db.session.add(StockMovement(
                merchant_id=merchant_id,
                product_id=line.product_id,
                location_id=location.id,
                user_id=caller.user_id,
                type=MovementType.SALE,
                quantity=-line.quantity,
                reference_id=str(sale.id),
                reference_type=REFERENCE_TYPE_SALE,
                reason=f"Sale #{sale.id}",
            ))

    current_app.logger.info(
        "Recorded sale %s at location %s: %s line(s), total %s cents",
        sale.id, location.id, len(lines), total_amount,
    )

    audit_service.record(
        action="CREATE",
        entity_type="Sale",
        entity_id=sale.id,
        merchant_id=merchant_id,
        user_id=caller.user_id,
        payload=sale.to_dict(),
    )

    for pid in requested:
        notify_if_low_stock(products[pid], location.id)

    return sale


def get_sale(caller: Caller, sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    require_access(caller, sale.merchant_id, what="sale")
    return sale


def list_sales(
    caller: Caller,
    *,
    start_date=None,
    end_date=None,
    location_id: int | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """Sales of the caller's tenant, newest sale_date first, with pagination metadata."""
    merchant_id = tenant_id_for(caller)
    start_dt, end_dt = _parse_range(start_date, end_date)

    q = db.session.query(Sale).filter(Sale.merchant_id == merchant_id)
    if location_id is not None:
        q = q.filter(Sale.location_id == location_id)
    if start_dt is not None:
        q = q.filter(Sale.sale_date >= start_dt)
    if end_dt is not None:
        q = q.filter(Sale.sale_date <= end_dt)

    q = q.order_by(Sale.sale_date.desc(), Sale.id.desc())
    return _paginate(q, page, per_page)

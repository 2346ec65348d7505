# Overview: Stock intake ("Add Stock"); writes a receipt entry plus its audit movement.

"""
Stock intake

- Every intake creates exactly one InventoryEntry (the physical receipt) and
  one STOCK_IN StockMovement (history only) in the same transaction.
- STOCK_IN is excluded from the stock formula, so an intake of N units moves
  derived stock by exactly N.
- Supplier payment metadata lives on the entry:
    - payment_status defaults to PAID
    - PAID: paid_at = now, paid_amount defaults to total_cost
    - CREDIT / PARTIAL: tracked by the debt service until settled
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import InvalidInputError, InvalidQuantityError
from ..models import InventoryEntry, StockMovement, MovementType, PaymentStatus
from ..models.inventory import coerce_enum
from ..time_utils import normalize_datetime, utcnow
from .catalog_service import require_product
from .concurrency import atomic, stock_guard
from .location_service import resolve_location
from .notification_service import notify_if_low_stock
from .tenant_service import Caller, tenant_id_for


REFERENCE_TYPE_STOCK_ADD = "STOCK_ADD"


def validate_quantity(quantity, *, label: str = "Quantity") -> int:
    """Strict positive-integer check (bools and floats rejected)."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(f"{label} must be an integer")
    if quantity <= 0:
        raise InvalidQuantityError(f"{label} must be greater than 0")
    return quantity


def _validate_cents(value, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{field} must be an integer amount in cents")
    if value < 0:
        raise InvalidInputError(f"{field} cannot be negative")
    return value


def _parse_date(value, field: str) -> datetime | None:
    try:
        return normalize_datetime(value, field=field)
    except ValueError as exc:
        raise InvalidInputError(str(exc))


def add_stock(
    caller: Caller,
    *,
    product_id: int,
    quantity: int,
    location_id: int | None = None,
    batch_number: str | None = None,
    expiration_date=None,
    received_date=None,
    notes: str | None = None,
    payment_status=PaymentStatus.PAID,
    supplier_name: str | None = None,
    supplier_contact: str | None = None,
    total_cost_cents: int | None = None,
    paid_amount_cents: int | None = None,
    payment_due_date=None,
) -> InventoryEntry:
    """
    Receive stock at a location (default location when location_id is None).

    Returns:
        The committed InventoryEntry

    Raises:
        InvalidQuantityError: quantity is not a positive integer
        InvalidInputError: bad payment status, amount or date
        NotFoundError: product missing
        AccessDeniedError: product belongs to another tenant
        LocationNotFoundError: location missing or foreign
    """
    merchant_id = tenant_id_for(caller)
    validate_quantity(quantity)

    try:
        status = coerce_enum(PaymentStatus, payment_status or PaymentStatus.PAID, "payment_status")
    except ValueError as exc:
        raise InvalidInputError(str(exc))
    total_cost_cents = _validate_cents(total_cost_cents, "total_cost_cents")
    paid_amount_cents = _validate_cents(paid_amount_cents, "paid_amount_cents")
    expiration_dt = _parse_date(expiration_date, "expiration_date")
    received_dt = _parse_date(received_date, "received_date") or utcnow()
    due_dt = _parse_date(payment_due_date, "payment_due_date")

    if paid_amount_cents is None and status == PaymentStatus.PAID:
        paid_amount_cents = total_cost_cents

    with atomic():
        product = require_product(caller, product_id)
        location = resolve_location(merchant_id, location_id)

        stock_guard([(product.id, location.id)])

        entry = InventoryEntry(
            product_id=product.id,
            location_id=location.id,
            quantity=quantity,
            batch_number=batch_number,
            expiration_date=expiration_dt,
            received_date=received_dt,
            notes=notes,
            added_by=caller.user_id,
            payment_status=status,
            supplier_name=supplier_name,
            supplier_contact=supplier_contact,
            total_cost_cents=total_cost_cents,
            paid_amount_cents=paid_amount_cents,
            payment_due_date=due_dt,
            paid_at=utcnow() if status == PaymentStatus.PAID else None,
        )
        db.session.add(entry)
        db.session.flush()  # ensures entry.id is assigned without committing

        db.session.add(StockMovement(
            merchant_id=merchant_id,
            product_id=product.id,
            location_id=location.id,
            user_id=caller.user_id,
            type=MovementType.STOCK_IN,
            quantity=quantity,
            reference_id=str(entry.id),
            reference_type=REFERENCE_TYPE_STOCK_ADD,
            reason=notes or f"Stock added: {quantity} units",
        ))

    current_app.logger.info(
        "Received %s units of product %s at location %s (entry %s, %s)",
        quantity, product.id, location.id, entry.id, status.value,
    )

    notify_if_low_stock(product, location.id)
    return entry

# Overview: Manual adjustments, restocks and customer returns; one signed movement each.

"""
Stock adjustments

Allowed movement types:
- ADJUSTMENT: either sign (count corrections, shrinkage, found stock)
- RESTOCK, RETURN: positive only

A negative quantity is an outflow and is checked against derived stock the
same way a sale is. correction=True skips that check so an operator can book
a known discrepancy; it is logged as an integrity warning.

No InventoryEntry is written: the movement itself carries the stock effect.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import InvalidInputError, InvalidQuantityError
from ..models import StockMovement, MovementType
from ..models.inventory import coerce_enum
from .catalog_service import require_product
from .concurrency import atomic, stock_guard
from .location_service import resolve_location
from .notification_service import notify_if_low_stock
from .stock_service import current_stock, ensure_available
from .tenant_service import Caller, tenant_id_for


ADJUSTABLE_MOVEMENT_TYPES = (
    MovementType.ADJUSTMENT,
    MovementType.RESTOCK,
    MovementType.RETURN,
)


def _validate_movement_type(movement_type) -> MovementType:
    try:
        mtype = coerce_enum(MovementType, movement_type, "movement_type")
    except ValueError as exc:
        raise InvalidInputError(str(exc))
    if mtype not in ADJUSTABLE_MOVEMENT_TYPES:
        allowed = ", ".join(t.value for t in ADJUSTABLE_MOVEMENT_TYPES)
        raise InvalidInputError(
            f"Movement type {mtype.value} cannot be recorded as an adjustment (allowed: {allowed})",
            details={"movement_type": mtype.value},
        )
    return mtype


def _validate_signed_quantity(quantity, mtype: MovementType) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError("Quantity must be an integer")
    if quantity == 0:
        raise InvalidQuantityError("Quantity cannot be 0")
    if mtype != MovementType.ADJUSTMENT and quantity < 0:
        raise InvalidQuantityError(f"{mtype.value} quantity must be positive")
    return quantity


def adjust_stock(
    caller: Caller,
    *,
    product_id: int,
    movement_type,
    quantity: int,
    location_id: int | None = None,
    reason: str | None = None,
    reference_id=None,
    reference_type: str | None = None,
    correction: bool = False,
) -> StockMovement:
    """
    Record an ADJUSTMENT, RESTOCK or RETURN movement.

    Returns:
        The committed StockMovement

    Raises:
        InvalidInputError: movement type not adjustable
        InvalidQuantityError: zero, non-integer, or negative RESTOCK/RETURN
        InsufficientStockError / NegativeStockError: outflow not covered
            (unless correction=True)
    """
    merchant_id = tenant_id_for(caller)
    mtype = _validate_movement_type(movement_type)
    _validate_signed_quantity(quantity, mtype)

    with atomic():
        product = require_product(caller, product_id)
        location = resolve_location(merchant_id, location_id)

        stock_guard([(product.id, location.id)])

        if quantity < 0:
            if correction:
                stock = current_stock(product.id, location.id)
                current_app.logger.warning(
                    "Integrity warning: correction of %s units for product %s at location %s "
                    "recorded without availability check (stock before: %s)",
                    quantity, product.id, location.id, stock,
                )
            else:
                ensure_available(product, location, -quantity)

        movement = StockMovement(
            merchant_id=merchant_id,
            product_id=product.id,
            location_id=location.id,
            user_id=caller.user_id,
            type=mtype,
            quantity=quantity,
            reason=reason or f"{mtype.value.title()}: {quantity:+d} units",
            reference_id=str(reference_id) if reference_id is not None else None,
            reference_type=reference_type,
        )
        db.session.add(movement)

    current_app.logger.info(
        "Recorded %s of %s units for product %s at location %s",
        mtype.value, quantity, product.id, location.id,
    )

    notify_if_low_stock(product, location.id)
    return movement

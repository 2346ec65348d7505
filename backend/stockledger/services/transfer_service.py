# Overview: Inter-location transfer; moves derived stock between two locations of one tenant.

"""
Location-to-location stock transfer.

WHY: Stock moves between locations of the same merchant without changing the
merchant's total. Both sides are written in one transaction.

LEDGER ROWS (per transfer of N units from A to B):
1. TRANSFER_OUT movement at A, quantity -N  (counted: A drops by N)
2. InventoryEntry at B, quantity N, PAID, no cost  (counted: B rises by N)
3. TRANSFER_IN movement at B, quantity +N, referencing the entry
   (history only, excluded from the stock formula)
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import InvalidTransferError
from ..models import InventoryEntry, StockMovement, MovementType, PaymentStatus
from ..time_utils import utcnow
from .catalog_service import require_product
from .concurrency import atomic, stock_guard
from .intake_service import validate_quantity
from .location_service import resolve_location
from .notification_service import notify_if_low_stock
from .stock_service import ensure_available
from .tenant_service import Caller, tenant_id_for


REFERENCE_TYPE_TRANSFER = "TRANSFER"
REFERENCE_TYPE_INVENTORY_ENTRY = "INVENTORY_ENTRY"


@dataclass(frozen=True)
class TransferResult:
    """Rows written by one transfer."""

    transfer_out: StockMovement
    transfer_in: StockMovement
    inventory_entry: InventoryEntry

    def to_dict(self) -> dict:
        return {
            "transfer_out": self.transfer_out.to_dict(),
            "transfer_in": self.transfer_in.to_dict(),
            "inventory_entry": self.inventory_entry.to_dict(),
        }


def transfer_stock(
    caller: Caller,
    *,
    product_id: int,
    from_location_id: int,
    to_location_id: int,
    quantity: int,
    notes: str | None = None,
) -> TransferResult:
    """
    Move quantity units of a product from one location to another.

    Raises:
        InvalidQuantityError: quantity is not a positive integer
        InvalidTransferError: source and destination are the same
        LocationNotFoundError: either location missing or foreign
        NegativeStockError: source stock is already negative
        InsufficientStockError: source stock is below quantity
    """
    merchant_id = tenant_id_for(caller)
    validate_quantity(quantity)

    if from_location_id == to_location_id:
        raise InvalidTransferError(
            "Source and destination locations cannot be the same",
            details={"location_id": from_location_id},
        )

    with atomic():
        product = require_product(caller, product_id)
        source = resolve_location(merchant_id, from_location_id, label="Source location")
        destination = resolve_location(merchant_id, to_location_id, label="Destination location")

        stock_guard([(product.id, source.id), (product.id, destination.id)])

        ensure_available(product, source, quantity)

        reason = notes or f"Transfer to {destination.name}"

        transfer_out = StockMovement(
            merchant_id=merchant_id,
            product_id=product.id,
            location_id=source.id,
            user_id=caller.user_id,
            type=MovementType.TRANSFER_OUT,
            quantity=-quantity,
            reason=reason,
            reference_id=str(destination.id),
            reference_type=REFERENCE_TYPE_TRANSFER,
        )
        db.session.add(transfer_out)

        entry = InventoryEntry(
            product_id=product.id,
            location_id=destination.id,
            quantity=quantity,
            received_date=utcnow(),
            notes=f"Transferred from {source.name}",
            added_by=caller.user_id,
            payment_status=PaymentStatus.PAID,
        )
        db.session.add(entry)
        db.session.flush()  # entry.id is referenced by the TRANSFER_IN row

        transfer_in = StockMovement(
            merchant_id=merchant_id,
            product_id=product.id,
            location_id=destination.id,
            user_id=caller.user_id,
            type=MovementType.TRANSFER_IN,
            quantity=quantity,
            reason=notes or f"Transfer from {source.name}",
            reference_id=str(entry.id),
            reference_type=REFERENCE_TYPE_INVENTORY_ENTRY,
        )
        db.session.add(transfer_in)

    current_app.logger.info(
        "Transferred %s units of product %s from location %s to %s",
        quantity, product.id, source.id, destination.id,
    )

    notify_if_low_stock(product, source.id)

    return TransferResult(
        transfer_out=transfer_out,
        transfer_in=transfer_in,
        inventory_entry=entry,
    )

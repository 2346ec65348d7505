# Overview: Supplier debt tracking over receipt entries bought on credit.

"""
Supplier Debt Tracker

WHY: Stock can be received before it is paid for. Receipt entries with
payment_status CREDIT (nothing paid) or PARTIAL (some paid) are the
merchant's open supplier debt.

STATUS RULES (mark_as_paid):
- paid amount omitted -> paid in full (paid = total cost)
- outstanding <= 0    -> PAID (paid_at set)
- paid > 0            -> PARTIAL
- paid == 0           -> CREDIT

Outstanding is total_cost - paid_amount and never reported below zero.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import InvalidInputError, NotFoundError
from ..models import InventoryEntry, Location, PaymentStatus, Product
from ..time_utils import to_utc_z, utcnow
from . import audit_service
from .concurrency import atomic, lock_for_update
from .tenant_service import Caller, require_access, tenant_id_for


UNKNOWN_SUPPLIER = "Unknown Supplier"


def _unpaid_item(entry: InventoryEntry, product: Product, location: Location) -> dict:
    return {
        "id": entry.id,
        "product_id": entry.product_id,
        "product_name": product.name,
        "quantity": entry.quantity,
        "location_id": entry.location_id,
        "location_name": location.name,
        "supplier_name": entry.supplier_name,
        "supplier_contact": entry.supplier_contact,
        "total_cost_cents": entry.total_cost_cents or 0,
        "paid_amount_cents": entry.paid_amount_cents or 0,
        "outstanding_cents": entry.outstanding_cents,
        "payment_status": entry.payment_status.value,
        "payment_due_date": to_utc_z(entry.payment_due_date),
        "received_date": to_utc_z(entry.received_date),
        "created_at": to_utc_z(entry.created_at),
    }


def debt_summary(caller: Caller) -> dict:
    """
    Open supplier debt for the caller's tenant.

    unpaid_items: due-dated items first (earliest due first), then undated
    items (most recently received first).
    supplier_breakdown: grouped by supplier name, largest debt first.
    """
    merchant_id = tenant_id_for(caller)

    rows = (
        db.session.query(InventoryEntry, Product, Location)
        .join(Product, InventoryEntry.product_id == Product.id)
        .join(Location, InventoryEntry.location_id == Location.id)
        .filter(
            Product.merchant_id == merchant_id,
            InventoryEntry.payment_status.in_([PaymentStatus.CREDIT, PaymentStatus.PARTIAL]),
        )
        .all()
    )

    total_debt = 0
    total_credit = 0
    total_partial = 0
    dated = []
    undated = []

    for entry, product, location in rows:
        outstanding = entry.outstanding_cents
        total_debt += outstanding
        if entry.payment_status == PaymentStatus.CREDIT:
            total_credit += outstanding
        else:
            total_partial += outstanding

        item = (entry, _unpaid_item(entry, product, location))
        if entry.payment_due_date is not None:
            dated.append(item)
        else:
            undated.append(item)

    dated.sort(key=lambda pair: (pair[0].payment_due_date, pair[0].id))
    undated.sort(key=lambda pair: (pair[0].received_date, pair[0].id), reverse=True)
    unpaid_items = [item for _, item in dated + undated]

    suppliers: dict[str, dict] = {}
    for item in unpaid_items:
        name = item["supplier_name"] or UNKNOWN_SUPPLIER
        group = suppliers.setdefault(name, {
            "name": name,
            "contact": item["supplier_contact"],
            "total_debt_cents": 0,
            "items": [],
        })
        group["total_debt_cents"] += item["outstanding_cents"]
        group["items"].append(item)

    return {
        "total_debt_cents": total_debt,
        "total_credit_cents": total_credit,
        "total_partial_cents": total_partial,
        "unpaid_count": len(unpaid_items),
        "unpaid_items": unpaid_items,
        "supplier_breakdown": sorted(
            suppliers.values(), key=lambda s: s["total_debt_cents"], reverse=True
        ),
    }


def _status_for(total_cost: int, paid: int) -> PaymentStatus:
    if total_cost - paid <= 0:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.CREDIT


def mark_as_paid(caller: Caller, entry_id: int, paid_amount_cents: int | None = None) -> InventoryEntry:
    """
    Record a supplier payment against a receipt entry.

    paid_amount_cents is the new cumulative amount paid, not an increment.
    paid_at records when the entry became fully paid; it is cleared if a
    later correction leaves an amount outstanding.
    """
    tenant_id_for(caller)
    if paid_amount_cents is not None:
        if isinstance(paid_amount_cents, bool) or not isinstance(paid_amount_cents, int):
            raise InvalidInputError("paid_amount_cents must be an integer amount in cents")
        if paid_amount_cents < 0:
            raise InvalidInputError("Paid amount cannot be negative")

    with atomic():
        entry = lock_for_update(
            db.session.query(InventoryEntry).filter(InventoryEntry.id == entry_id)
        ).first()
        if entry is None:
            raise NotFoundError("Inventory entry not found", details={"entry_id": entry_id})
        require_access(caller, entry.product.merchant_id, what="inventory entry")

        total_cost = entry.total_cost_cents or 0
        paid = total_cost if paid_amount_cents is None else paid_amount_cents
        status = _status_for(total_cost, paid)

        entry.paid_amount_cents = paid
        entry.payment_status = status
        if status == PaymentStatus.PAID:
            if entry.paid_at is None:
                entry.paid_at = utcnow()
        else:
            entry.paid_at = None

    audit_service.record(
        action="UPDATE",
        entity_type="InventoryEntry",
        entity_id=entry.id,
        merchant_id=entry.product.merchant_id,
        user_id=caller.user_id,
        payload={
            "payment_status": status.value,
            "paid_amount_cents": paid,
            "outstanding_cents": entry.outstanding_cents,
        },
    )
    return entry

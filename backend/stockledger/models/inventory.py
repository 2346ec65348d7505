from __future__ import annotations

import enum

from sqlalchemy.orm import validates

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class PaymentStatus(str, enum.Enum):
    PAID = "PAID"
    CREDIT = "CREDIT"
    PARTIAL = "PARTIAL"


class MovementType(str, enum.Enum):
    STOCK_IN = "STOCK_IN"
    SALE = "SALE"
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"
    ADJUSTMENT = "ADJUSTMENT"
    RESTOCK = "RESTOCK"
    RETURN = "RETURN"


# Audit-only movement types: their physical effect is already carried by an
# InventoryEntry row, so the stock formula must skip them.
AUDIT_ONLY_MOVEMENT_TYPES = (MovementType.STOCK_IN, MovementType.TRANSFER_IN)

POSITIVE_MOVEMENT_TYPES = {
    MovementType.STOCK_IN,
    MovementType.TRANSFER_IN,
    MovementType.RESTOCK,
    MovementType.RETURN,
}
NEGATIVE_MOVEMENT_TYPES = {MovementType.SALE, MovementType.TRANSFER_OUT}


def coerce_enum(enum_cls, value, field: str):
    """Accept an enum member or its string name; reject anything else."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"{field} must be one of: {allowed}")


def _check_sign(mtype, quantity) -> None:
    if mtype is None or quantity is None:
        return
    if mtype in POSITIVE_MOVEMENT_TYPES and quantity < 0:
        raise ValueError(f"{mtype.value} movement quantity must be positive")
    if mtype in NEGATIVE_MOVEMENT_TYPES and quantity > 0:
        raise ValueError(f"{mtype.value} movement quantity must be negative")


class InventoryEntry(db.Model):
    """
    Receipt entry: immutable record of stock physically received at a location.

    Created by stock intake or by the destination side of a transfer.

    IMMUTABLE: product_id, location_id and quantity never change once written.
    Only the payment fields are updated, and only by debt settlement.
    Entries are never deleted.
    """
    __tablename__ = "inventory_entries"
    __table_args__ = (
        db.Index("ix_inv_entries_product_location", "product_id", "location_id"),
        db.Index("ix_inv_entries_payment_status", "payment_status"),
        db.Index("ix_inv_entries_payment_due", "payment_due_date"),
        db.CheckConstraint("quantity > 0", name="ck_inv_entries_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    batch_number = db.Column(db.String(64), nullable=True)
    expiration_date = db.Column(db.DateTime(timezone=True), nullable=True)
    received_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    notes = db.Column(db.Text, nullable=True)

    added_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Supplier payment tracking (all amounts in cents)
    payment_status = db.Column(
        db.Enum(PaymentStatus, native_enum=False, length=16, validate_strings=True),
        nullable=False,
        default=PaymentStatus.PAID,
    )
    supplier_name = db.Column(db.String(255), nullable=True)
    supplier_contact = db.Column(db.String(255), nullable=True)
    total_cost_cents = db.Column(db.Integer, nullable=True)
    paid_amount_cents = db.Column(db.Integer, nullable=True)
    payment_due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    location = db.relationship("Location")
    added_by_user = db.relationship("User", foreign_keys=[added_by])

    __mapper_args__ = {"version_id_col": version_id}

    @validates("quantity")
    def _validate_quantity(self, key, value):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError("inventory entry quantity must be a positive integer")
        return value

    @validates("payment_status")
    def _validate_payment_status(self, key, value):
        return coerce_enum(PaymentStatus, value, "payment_status")

    @property
    def outstanding_cents(self) -> int:
        """Amount still owed to the supplier (never below zero)."""
        total = self.total_cost_cents or 0
        paid = self.paid_amount_cents or 0
        return max(total - paid, 0)

    def __repr__(self) -> str:
        return (
            f"<InventoryEntry id={self.id} product_id={self.product_id} "
            f"location_id={self.location_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "batch_number": self.batch_number,
            "expiration_date": to_utc_z(self.expiration_date),
            "received_date": to_utc_z(self.received_date),
            "notes": self.notes,
            "added_by": self.added_by,
            "payment_status": self.payment_status.value if self.payment_status else None,
            "supplier_name": self.supplier_name,
            "supplier_contact": self.supplier_contact,
            "total_cost_cents": self.total_cost_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "outstanding_cents": self.outstanding_cents,
            "payment_due_date": to_utc_z(self.payment_due_date),
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class StockMovement(db.Model):
    """
    Append-only, signed ledger row for every stock-affecting event.

    Sign rules (checked whenever type or quantity is set):
    - STOCK_IN, TRANSFER_IN, RESTOCK, RETURN: positive
    - SALE, TRANSFER_OUT: negative
    - ADJUSTMENT: either sign
    - never zero

    STOCK_IN and TRANSFER_IN are written for history only; see
    AUDIT_ONLY_MOVEMENT_TYPES.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_mov_product_location_type", "product_id", "location_id", "type"),
        db.Index("ix_stock_mov_merchant_created", "merchant_id", "created_at"),
        db.Index("ix_stock_mov_reference", "reference_type", "reference_id"),
        db.CheckConstraint("quantity <> 0", name="ck_stock_mov_quantity_nonzero"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(
        db.Enum(MovementType, native_enum=False, length=32, validate_strings=True),
        nullable=False,
    )

    quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    location = db.relationship("Location")
    user = db.relationship("User")

    @validates("type")
    def _validate_type(self, key, value):
        mtype = coerce_enum(MovementType, value, "type")
        _check_sign(mtype, self.quantity)
        return mtype

    @validates("quantity")
    def _validate_quantity(self, key, value):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("movement quantity must be an integer")
        if value == 0:
            raise ValueError("movement quantity cannot be 0")
        _check_sign(self.type, value)
        return value

    @property
    def affects_stock(self) -> bool:
        return self.type not in AUDIT_ONLY_MOVEMENT_TYPES

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} type={self.type.value if self.type else None} "
            f"product_id={self.product_id} location_id={self.location_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "user_id": self.user_id,
            "type": self.type.value if self.type else None,
            "quantity": self.quantity,
            "reason": self.reason,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Merchant(db.Model):
    """
    Multi-tenant root: every tenant is a Merchant.

    WHY: Shared-database multi-tenancy with isolation enforced by services.
    Locations, products, users, ledger rows and sales all belong to exactly
    one merchant. No data may cross merchant boundaries.

    Billing is owned elsewhere; only the per-merchant transaction fee rate
    is mirrored here so the fee collaborator can price a sale.
    """
    __tablename__ = "merchants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Basis points (e.g., 250 = 2.5%); NULL falls back to the platform default
    transaction_fee_bps = db.Column(db.Integer, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Merchant id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
            "transaction_fee_bps": self.transaction_fee_bps,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Location(db.Model):
    """
    Stock-holding location (shop floor, warehouse) within a merchant.

    MULTI-TENANT: Locations are scoped to merchants via merchant_id.
    At most one active location per merchant should be flagged is_default;
    the location collaborator resolves the default explicitly.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.UniqueConstraint("merchant_id", "name", name="uq_locations_merchant_name"),
        db.Index("ix_locations_merchant_default", "merchant_id", "is_default"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.Text, nullable=True)

    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    merchant = db.relationship("Merchant", backref=db.backref("locations", lazy=True))

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r} merchant_id={self.merchant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "name": self.name,
            "address": self.address,
            "is_default": self.is_default,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

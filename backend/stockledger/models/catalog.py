from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data (catalog-owned).

    MULTI-TENANT: Products are scoped to merchants via merchant_id.

    NOTE: There is deliberately no stock quantity column. On-hand stock is
    derived from the ledger (see services/stock_service.py).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("merchant_id", "sku", name="uq_products_merchant_sku"),
        db.Index("ix_products_merchant_active", "merchant_id", "is_active"),
        db.CheckConstraint("low_stock_threshold >= 0", name="ck_products_threshold_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    merchant = db.relationship("Merchant", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} merchant_id={self.merchant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "sku": self.sku,
            "name": self.name,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "low_stock_threshold": self.low_stock_threshold,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Completed sale aggregate.

    WHY: A sale is written once, atomically, together with one negative SALE
    StockMovement per line. Revenue, cost and margin are captured at the time
    of sale so later catalog price changes never rewrite history.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_merchant_sale_date", "merchant_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Totals (all amounts in cents)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    cost_of_goods_sold_cents = db.Column(db.Integer, nullable=False)
    net_income_cents = db.Column(db.Integer, nullable=False)
    profit_margin = db.Column(db.Float, nullable=False, default=0.0)  # percent of revenue
    platform_fee_cents = db.Column(db.Integer, nullable=False, default=0)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    location = db.relationship("Location")
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "location_id": self.location_id,
            "user_id": self.user_id,
            "total_amount_cents": self.total_amount_cents,
            "cost_of_goods_sold_cents": self.cost_of_goods_sold_cents,
            "net_income_cents": self.net_income_cents,
            "profit_margin": self.profit_margin,
            "platform_fee_cents": self.platform_fee_cents,
            "sale_date": to_utc_z(self.sale_date),
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Individual line on a sale."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    # Price actually charged
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # Catalog list price at time of sale (discount/markup reporting)
    default_price_cents = db.Column(db.Integer, nullable=False)
    # Catalog cost at time of sale (COGS snapshot)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    @property
    def discount_cents(self) -> int:
        """Per-unit difference between list price and charged price (negative = markup)."""
        return self.default_price_cents - self.unit_price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "default_price_cents": self.default_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "total_price_cents": self.total_price_cents,
            "discount_cents": self.discount_cents,
            "created_at": to_utc_z(self.created_at),
        }

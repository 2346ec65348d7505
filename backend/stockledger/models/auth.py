from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z


class UserRole(str, enum.Enum):
    PLATFORM_OWNER = "PLATFORM_OWNER"
    MERCHANT_ADMIN = "MERCHANT_ADMIN"
    MERCHANT_STAFF = "MERCHANT_STAFF"


class User(db.Model):
    """
    User accounts for attribution.

    MULTI-TENANT: Merchant users belong to exactly one merchant. Platform
    owners have no merchant and may act on behalf of any tenant.

    Authentication and role management live outside this package; this
    table exists so ledger rows can reference who performed each action.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.Index("ix_users_merchant_role", "merchant_id", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable for platform owners
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=True, index=True)

    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(120), nullable=True)
    last_name = db.Column(db.String(120), nullable=True)

    role = db.Column(
        db.Enum(UserRole, native_enum=False, length=32, validate_strings=True),
        nullable=False,
        default=UserRole.MERCHANT_STAFF,
    )

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    merchant = db.relationship("Merchant", backref=db.backref("users", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Notification(db.Model):
    """
    Outbound notification queued for an external mailer.

    Rows are written after the stock change they describe has committed;
    delivery (and moving status to SENT/FAILED) happens outside this package.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_merchant_status", "merchant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    type = db.Column(db.String(32), nullable=False, index=True)  # LOW_STOCK, ...
    email_to = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PENDING")  # PENDING, SENT, FAILED

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "user_id": self.user_id,
            "type": self.type,
            "email_to": self.email_to,
            "subject": self.subject,
            "content": self.content,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "sent_at": to_utc_z(self.sent_at),
        }


class AuditLog(db.Model):
    """
    Append-only audit trail of business actions.

    No updates/deletes. Payload is a small JSON document; do not denormalize
    domain state into it.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(16), nullable=False)  # CREATE, UPDATE, DELETE
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False)
    payload = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
        }

# Overview: Low-stock notifier hook; queues alerts after a stock change has committed.

"""
Low-stock alerts

- notify_if_low_stock() runs AFTER the ledger transaction commits.
- It recomputes derived stock and, when stock <= product.low_stock_threshold,
  queues one LOW_STOCK notification per active merchant admin.
- Delivery (e-mail) is owned by an external worker that picks up PENDING rows.
- Any failure is logged and swallowed. The stock change has already been
  committed and must never be rolled back or reported as failed because an
  alert could not be queued.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Notification, Product, User, UserRole
from .stock_service import current_stock


NOTIFICATION_TYPE_LOW_STOCK = "LOW_STOCK"


def low_stock_alert(product: Product, stock: int, threshold: int, merchant_id: int) -> list[Notification]:
    """Queue a LOW_STOCK notification for every active admin of the merchant."""
    admins = (
        db.session.query(User)
        .filter_by(merchant_id=merchant_id, role=UserRole.MERCHANT_ADMIN, is_active=True)
        .order_by(User.id.asc())
        .all()
    )

    queued = []
    for admin in admins:
        notification = Notification(
            merchant_id=merchant_id,
            user_id=admin.id,
            type=NOTIFICATION_TYPE_LOW_STOCK,
            email_to=admin.email,
            subject=f"Low Stock Alert: {product.name}",
            content=(
                f"Product {product.name} has {stock} units remaining "
                f"(threshold: {threshold})"
            ),
            status="PENDING",
        )
        db.session.add(notification)
        queued.append(notification)

    db.session.commit()
    current_app.logger.info(
        "Queued %s low stock alert(s) for product %s (stock %s, threshold %s)",
        len(queued), product.id, stock, threshold,
    )
    return queued


def notify_if_low_stock(product: Product, location_id: int | None) -> bool:
    """
    Post-commit hook: alert when derived stock is at or below the threshold.

    Returns True when an alert was queued. Never raises.
    """
    if not current_app.config.get("LOW_STOCK_ALERTS_ENABLED", True):
        return False

    try:
        stock = current_stock(product.id, location_id)
        threshold = product.low_stock_threshold
        if stock > threshold:
            return False
        low_stock_alert(product, stock, threshold, product.merchant_id)
        return True
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to send low stock alert for product %s at location %s",
            getattr(product, "id", None), location_id,
        )
        return False

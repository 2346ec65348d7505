# Overview: Pytest coverage for the post-commit low-stock hook.

"""
Low-Stock Alert Tests

Covers:
- Alert queued when stock <= threshold, one per active merchant admin
- No alert above threshold or when disabled by config
- Alert failures never undo or fail the committed stock change
"""

import logging

from stockledger.models import Notification, StockMovement, User, UserRole
from stockledger.services import notification_service
from stockledger.services.catalog_service import update_stock_threshold
from stockledger.services.intake_service import add_stock
from stockledger.services.sales_service import create_sale
from stockledger.services.stock_service import current_stock


class TestLowStockAlerts:
    def test_alert_at_threshold(self, db_session, caller_a, admin_a, product_a, location_a):
        add_stock(caller_a, product_id=product_a.id, quantity=8, location_id=location_a.id)
        assert db_session.query(Notification).count() == 0

        create_sale(caller_a, items=[
            {"product_id": product_a.id, "quantity": 3, "unit_price_cents": 1000},
        ], location_id=location_a.id)

        notification = db_session.query(Notification).one()
        assert notification.type == "LOW_STOCK"
        assert notification.status == "PENDING"
        assert notification.user_id == admin_a.id
        assert notification.email_to == admin_a.email
        assert "Product A" in notification.subject
        assert "5 units remaining" in notification.content

    def test_one_alert_per_active_admin(self, db_session, caller_a, merchant_a, admin_a, staff_a,
                                        product_a, location_a):
        db_session.add_all([
            User(merchant_id=merchant_a.id, email="second_admin@acme.com", role=UserRole.MERCHANT_ADMIN),
            User(merchant_id=merchant_a.id, email="former_admin@acme.com", role=UserRole.MERCHANT_ADMIN,
                 is_active=False),
        ])
        db_session.commit()

        add_stock(caller_a, product_id=product_a.id, quantity=2, location_id=location_a.id)

        recipients = sorted(n.email_to for n in db_session.query(Notification).all())
        assert recipients == ["admin_a@acme.com", "second_admin@acme.com"]

    def test_no_alert_above_threshold(self, db_session, caller_a, admin_a, product_a, location_a):
        add_stock(caller_a, product_id=product_a.id, quantity=6, location_id=location_a.id)
        assert db_session.query(Notification).count() == 0

    def test_disabled_by_config(self, app, db_session, caller_a, admin_a, product_a, location_a):
        app.config["LOW_STOCK_ALERTS_ENABLED"] = False
        try:
            add_stock(caller_a, product_id=product_a.id, quantity=1, location_id=location_a.id)
        finally:
            app.config["LOW_STOCK_ALERTS_ENABLED"] = True

        assert db_session.query(Notification).count() == 0

    def test_threshold_update_applies(self, db_session, caller_a, admin_a, product_a, location_a):
        update_stock_threshold(caller_a, product_a.id, 10)
        add_stock(caller_a, product_id=product_a.id, quantity=9, location_id=location_a.id)

        assert db_session.query(Notification).count() == 1


class TestAlertFailures:
    def test_failure_does_not_fail_sale(self, app, db_session, caller_a, admin_a, product_a, location_a,
                                        monkeypatch, caplog):
        add_stock(caller_a, product_id=product_a.id, quantity=8, location_id=location_a.id)

        def broken_alert(*args, **kwargs):
            raise RuntimeError("mailer queue unavailable")

        monkeypatch.setattr(notification_service, "low_stock_alert", broken_alert)

        with caplog.at_level(logging.ERROR, logger=app.logger.name):
            sale = create_sale(caller_a, items=[
                {"product_id": product_a.id, "quantity": 4, "unit_price_cents": 1000},
            ], location_id=location_a.id)

        assert sale.id is not None
        assert current_stock(product_a.id, location_a.id) == 4
        assert db_session.query(StockMovement).filter_by(reference_type="SALE", reference_id=str(sale.id)).count() == 1
        assert db_session.query(Notification).count() == 0
        assert "Failed to send low stock alert" in caplog.text

    def test_hook_returns_false_on_failure(self, db_session, product_a, location_a, monkeypatch):
        def broken_alert(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(notification_service, "low_stock_alert", broken_alert)

        assert notification_service.notify_if_low_stock(product_a, location_a.id) is False

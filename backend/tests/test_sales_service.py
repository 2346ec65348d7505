# Overview: Pytest coverage for sale fulfillment.

"""
Sales Tests

Covers:
- Totals, COGS, net income, margin and platform fee
- One negative SALE movement per line
- Atomicity: a failing line leaves no sale, no movement and unchanged stock
- Repeated lines for one product checked against their combined quantity
- Negative stock blocks further sales
"""

import json

import pytest

from stockledger.errors import (
    InsufficientStockError,
    InvalidInputError,
    InvalidItemsError,
    LocationNotFoundError,
    NegativeStockError,
    NotFoundError,
)
from stockledger.models import AuditLog, Sale, SaleItem, StockMovement, MovementType
from stockledger.services.intake_service import add_stock
from stockledger.services.sales_service import create_sale, get_sale, list_sales, profit_margin
from stockledger.services.stock_service import current_stock


@pytest.fixture
def stocked(db_session, caller_a, product_a, product_a2, location_a):
    """20 x Product A and 10 x Product A2 at the default location."""
    add_stock(caller_a, product_id=product_a.id, quantity=20, location_id=location_a.id)
    add_stock(caller_a, product_id=product_a2.id, quantity=10, location_id=location_a.id)


class TestCreateSale:
    def test_records_sale_items_and_movements(self, db_session, caller_a, product_a, product_a2, location_a, stocked):
        sale = create_sale(caller_a, items=[
            {"product_id": product_a.id, "quantity": 3, "unit_price_cents": 1000},
            {"product_id": product_a2.id, "quantity": 2, "unit_price_cents": 200},
        ], location_id=location_a.id, customer_name="Walk-in")

        assert sale.id is not None
        assert sale.location_id == location_a.id
        assert sale.total_amount_cents == 3 * 1000 + 2 * 200
        assert sale.cost_of_goods_sold_cents == 3 * 600 + 2 * 100
        assert sale.net_income_cents == 3400 - 2000
        assert sale.profit_margin == pytest.approx(41.18)
        assert sale.customer_name == "Walk-in"

        assert len(sale.items) == 2
        discounted = [i for i in sale.items if i.product_id == product_a2.id][0]
        assert discounted.default_price_cents == 250
        assert discounted.discount_cents == 50
        assert discounted.unit_cost_cents == 100

        movements = db_session.query(StockMovement).filter_by(type=MovementType.SALE).all()
        assert sorted(m.quantity for m in movements) == [-3, -2]
        assert all(m.reference_id == str(sale.id) for m in movements)
        assert all(m.reference_type == "SALE" for m in movements)
        assert all(m.reason == f"Sale #{sale.id}" for m in movements)

        assert current_stock(product_a.id, location_a.id) == 17
        assert current_stock(product_a2.id, location_a.id) == 8

    def test_defaults_to_default_location(self, db_session, caller_a, product_a, location_a, location_a2, stocked):
        sale = create_sale(caller_a, items=[
            {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1000},
        ])
        assert sale.location_id == location_a.id

    def test_platform_fee_uses_merchant_rate(self, db_session, caller_a, merchant_a, product_a, location_a, stocked):
        merchant_a.transaction_fee_bps = 250
        db_session.commit()

        sale = create_sale(caller_a, items=[
            {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1010},
        ], location_id=location_a.id)

        # 1010 * 2.5% = 25.25 -> 25
        assert sale.platform_fee_cents == 25

    def test_platform_fee_falls_back_to_config(self, app, db_session, caller_a, product_a, location_a, stocked):
        app.config["DEFAULT_TRANSACTION_FEE_BPS"] = 100
        try:
            sale = create_sale(caller_a, items=[
                {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1050},
            ], location_id=location_a.id)
        finally:
            app.config["DEFAULT_TRANSACTION_FEE_BPS"] = 0

        # 1050 * 1% = 10.5 -> 11 (half-up)
        assert sale.platform_fee_cents == 11

    def test_audit_record_written(self, db_session, caller_a, product_a, location_a, stocked):
        sale = create_sale(caller_a, items=[
            {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1000},
        ], location_id=location_a.id)

        log = db_session.query(AuditLog).filter_by(entity_type="Sale").one()
        assert log.entity_id == str(sale.id)
        assert log.action == "CREATE"
        assert json.loads(log.payload)["total_amount_cents"] == 1000

    def test_exact_stock_can_be_sold(self, db_session, caller_a, product_a2, location_a, stocked):
        create_sale(caller_a, items=[
            {"product_id": product_a2.id, "quantity": 10, "unit_price_cents": 250},
        ], location_id=location_a.id)
        assert current_stock(product_a2.id, location_a.id) == 0

    def test_get_sale(self, db_session, caller_a, caller_b, product_a, location_a, stocked):
        sale = create_sale(caller_a, items=[
            {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1000},
        ], location_id=location_a.id)

        assert get_sale(caller_a, sale.id).id == sale.id
        assert get_sale(caller_a, sale.id).to_dict()["items"][0]["quantity"] == 1

        with pytest.raises(NotFoundError):
            get_sale(caller_a, 99999)


class TestListSales:
    def _sell(self, caller, product, location, sale_date):
        return create_sale(caller, items=[
            {"product_id": product.id, "quantity": 1, "unit_price_cents": 1000},
        ], location_id=location.id, sale_date=sale_date)

    def test_newest_first_with_pagination(self, db_session, caller_a, product_a, location_a, stocked):
        jan = self._sell(caller_a, product_a, location_a, "2026-01-15")
        mar = self._sell(caller_a, product_a, location_a, "2026-03-15")
        feb = self._sell(caller_a, product_a, location_a, "2026-02-15")

        page = list_sales(caller_a, per_page=2)

        assert [s.id for s in page["items"]] == [mar.id, feb.id]
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["has_next"] is True
        assert [s.id for s in list_sales(caller_a, page=2, per_page=2)["items"]] == [jan.id]

    def test_filters(self, db_session, caller_a, product_a, location_a, location_a2, stocked):
        add_stock(caller_a, product_id=product_a.id, quantity=5, location_id=location_a2.id)
        self._sell(caller_a, product_a, location_a, "2026-01-15")
        feb = self._sell(caller_a, product_a, location_a, "2026-02-15")
        shop = self._sell(caller_a, product_a, location_a2, "2026-02-20")

        by_location = list_sales(caller_a, location_id=location_a2.id)["items"]
        assert [s.id for s in by_location] == [shop.id]

        ranged = list_sales(caller_a, start_date="2026-02-01", end_date="2026-02-28")["items"]
        assert [s.id for s in ranged] == [shop.id, feb.id]

    def test_scoped_to_tenant(self, db_session, caller_a, caller_b, product_a, location_a, stocked):
        self._sell(caller_a, product_a, location_a, "2026-01-15")

        assert list_sales(caller_b)["pagination"]["total"] == 0

    def test_bad_date(self, db_session, caller_a):
        with pytest.raises(InvalidInputError):
            list_sales(caller_a, start_date="last week")


class TestSaleAtomicity:
    def test_insufficient_line_rolls_back_everything(self, db_session, caller_a, product_a, product_a2, location_a, stocked):
        with pytest.raises(InsufficientStockError) as exc_info:
            create_sale(caller_a, items=[
                {"product_id": product_a.id, "quantity": 5, "unit_price_cents": 1000},
                {"product_id": product_a2.id, "quantity": 11, "unit_price_cents": 250},
            ], location_id=location_a.id)

        err = exc_info.value
        assert err.product_id == product_a2.id
        assert err.location_id == location_a.id
        assert err.available == 10
        assert err.requested == 11
        assert err.shortfall == 1
        assert "Product A2" in err.message
        assert "Main Warehouse" in err.message

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(StockMovement).filter_by(type=MovementType.SALE).count() == 0
        assert current_stock(product_a.id, location_a.id) == 20
        assert current_stock(product_a2.id, location_a.id) == 10

    def test_repeated_lines_are_summed(self, db_session, caller_a, product_a2, location_a, stocked):
        with pytest.raises(InsufficientStockError) as exc_info:
            create_sale(caller_a, items=[
                {"product_id": product_a2.id, "quantity": 6, "unit_price_cents": 250},
                {"product_id": product_a2.id, "quantity": 6, "unit_price_cents": 250},
            ], location_id=location_a.id)

        assert exc_info.value.requested == 12
        assert current_stock(product_a2.id, location_a.id) == 10

    def test_stock_at_other_location_does_not_count(self, db_session, caller_a, product_a, location_a, location_a2, stocked):
        with pytest.raises(InsufficientStockError):
            create_sale(caller_a, items=[
                {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1000},
            ], location_id=location_a2.id)

    def test_negative_stock_blocks_sale(self, db_session, caller_a, admin_a, product_a, location_a):
        add_stock(caller_a, product_id=product_a.id, quantity=1, location_id=location_a.id)
        db_session.add(StockMovement(
            merchant_id=product_a.merchant_id, product_id=product_a.id, location_id=location_a.id,
            user_id=admin_a.id, type=MovementType.SALE, quantity=-4,
        ))
        db_session.commit()

        with pytest.raises(NegativeStockError) as exc_info:
            create_sale(caller_a, items=[
                {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1000},
            ], location_id=location_a.id)

        err = exc_info.value
        assert err.available == -3
        assert err.details["breakdown"]["entry_total"] == 1
        assert err.details["breakdown"]["movement_total"] == -4
        assert "negative" in err.message


class TestSaleValidation:
    def test_empty_items(self, db_session, caller_a, location_a):
        with pytest.raises(InvalidItemsError):
            create_sale(caller_a, items=[], location_id=location_a.id)

    @pytest.mark.parametrize("line", [
        {"quantity": 0, "unit_price_cents": 100},
        {"quantity": -1, "unit_price_cents": 100},
        {"quantity": 1, "unit_price_cents": 0},
        {"quantity": 1.5, "unit_price_cents": 100},
    ])
    def test_invalid_line(self, db_session, caller_a, product_a, location_a, stocked, line):
        with pytest.raises(InvalidItemsError):
            create_sale(caller_a, items=[dict(line, product_id=product_a.id)], location_id=location_a.id)

    def test_missing_field(self, db_session, caller_a, product_a, location_a):
        with pytest.raises(InvalidItemsError):
            create_sale(caller_a, items=[{"product_id": product_a.id, "quantity": 1}], location_id=location_a.id)

    def test_unknown_product(self, db_session, caller_a, location_a):
        with pytest.raises(InvalidItemsError) as exc_info:
            create_sale(caller_a, items=[
                {"product_id": 99999, "quantity": 1, "unit_price_cents": 100},
            ], location_id=location_a.id)
        assert exc_info.value.details["product_ids"] == [99999]

    def test_inactive_product(self, db_session, caller_a, product_a, location_a, stocked):
        product_a.is_active = False
        db_session.commit()

        with pytest.raises(InvalidItemsError):
            create_sale(caller_a, items=[
                {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1000},
            ], location_id=location_a.id)

    def test_unknown_location(self, db_session, caller_a, product_a, stocked):
        with pytest.raises(LocationNotFoundError):
            create_sale(caller_a, items=[
                {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1000},
            ], location_id=99999)


class TestProfitMargin:
    def test_rounded_percentage(self):
        assert profit_margin(3000, 1000) == 33.33

    def test_zero_revenue(self):
        assert profit_margin(0, 0) == 0.0

    def test_negative_margin(self):
        assert profit_margin(1000, -200) == -20.0

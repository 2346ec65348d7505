# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for every ledger
operation.

These tests create two merchants with separate locations, users and
products, then verify that:
1. A caller of Merchant A cannot read/write Merchant B's products
2. Passing a foreign location_id is rejected like a missing one
3. Tenant-scoped listings never include the other tenant's rows
4. Platform owners can act for a merchant only when they name it
"""

import pytest

from stockledger.errors import AccessDeniedError, InvalidItemsError, LocationNotFoundError
from stockledger.models import InventoryEntry, StockMovement, UserRole
from stockledger.services.adjustment_service import adjust_stock
from stockledger.services.intake_service import add_stock
from stockledger.services.sales_service import create_sale, get_sale
from stockledger.services.stock_service import list_inventory_entries, list_movements, stock_history
from stockledger.services.tenant_service import Caller, has_access, tenant_id_for
from stockledger.services.transfer_service import transfer_stock


class TestTenantServiceHelpers:
    def test_tenant_id_for_merchant_user(self, caller_a, merchant_a):
        assert tenant_id_for(caller_a) == merchant_a.id

    def test_tenant_id_requires_user(self):
        with pytest.raises(AccessDeniedError):
            tenant_id_for(Caller(user_id=None, merchant_id=1))

    def test_tenant_id_requires_merchant(self):
        with pytest.raises(AccessDeniedError):
            tenant_id_for(Caller(user_id=1))

    def test_platform_owner_must_name_merchant(self, platform_owner):
        with pytest.raises(AccessDeniedError):
            tenant_id_for(Caller(user_id=platform_owner.id, role=UserRole.PLATFORM_OWNER))

    def test_platform_owner_acting_merchant(self, platform_owner, merchant_b):
        caller = Caller(user_id=platform_owner.id, role=UserRole.PLATFORM_OWNER,
                        acting_merchant_id=merchant_b.id)
        assert tenant_id_for(caller) == merchant_b.id

    def test_acting_merchant_ignored_for_merchant_users(self, caller_a, merchant_a, merchant_b):
        caller = Caller(user_id=caller_a.user_id, merchant_id=merchant_a.id,
                        acting_merchant_id=merchant_b.id)
        assert tenant_id_for(caller) == merchant_a.id

    def test_has_access(self, caller_a, merchant_a, merchant_b, platform_owner):
        owner = Caller(user_id=platform_owner.id, role=UserRole.PLATFORM_OWNER)
        assert has_access(caller_a, merchant_a.id)
        assert not has_access(caller_a, merchant_b.id)
        assert has_access(owner, merchant_b.id)
        assert not has_access(None, merchant_a.id)


class TestCrossTenantWrites:
    def test_add_stock_to_foreign_product(self, db_session, caller_a, product_b, location_a):
        with pytest.raises(AccessDeniedError):
            add_stock(caller_a, product_id=product_b.id, quantity=5, location_id=location_a.id)
        assert db_session.query(InventoryEntry).count() == 0

    def test_add_stock_to_foreign_location(self, db_session, caller_a, product_a, location_b):
        with pytest.raises(LocationNotFoundError):
            add_stock(caller_a, product_id=product_a.id, quantity=5, location_id=location_b.id)
        assert db_session.query(InventoryEntry).count() == 0

    def test_sell_foreign_product(self, db_session, caller_a, caller_b, product_b, location_a, location_b):
        add_stock(caller_b, product_id=product_b.id, quantity=5, location_id=location_b.id)

        with pytest.raises(InvalidItemsError):
            create_sale(caller_a, items=[
                {"product_id": product_b.id, "quantity": 1, "unit_price_cents": 2000},
            ], location_id=location_a.id)

    def test_transfer_foreign_product(self, db_session, caller_a, caller_b, product_b, location_a, location_a2, location_b):
        add_stock(caller_b, product_id=product_b.id, quantity=5, location_id=location_b.id)

        with pytest.raises(AccessDeniedError):
            transfer_stock(caller_a, product_id=product_b.id, from_location_id=location_a.id,
                           to_location_id=location_a2.id, quantity=1)

    def test_adjust_foreign_product(self, db_session, caller_a, product_b, location_a):
        with pytest.raises(AccessDeniedError):
            adjust_stock(caller_a, product_id=product_b.id, movement_type="RESTOCK", quantity=1,
                         location_id=location_a.id)
        assert db_session.query(StockMovement).count() == 0

    def test_platform_owner_acts_for_named_merchant(self, db_session, platform_owner, merchant_a,
                                                    product_a, location_a):
        owner = Caller(user_id=platform_owner.id, role=UserRole.PLATFORM_OWNER,
                       acting_merchant_id=merchant_a.id)

        entry = add_stock(owner, product_id=product_a.id, quantity=3, location_id=location_a.id)

        assert entry.added_by == platform_owner.id
        movement = db_session.query(StockMovement).one()
        assert movement.merchant_id == merchant_a.id


class TestCrossTenantReads:
    def test_get_foreign_sale(self, db_session, caller_a, caller_b, product_b, location_b):
        add_stock(caller_b, product_id=product_b.id, quantity=5, location_id=location_b.id)
        sale = create_sale(caller_b, items=[
            {"product_id": product_b.id, "quantity": 1, "unit_price_cents": 2000},
        ], location_id=location_b.id)

        with pytest.raises(AccessDeniedError):
            get_sale(caller_a, sale.id)

    def test_listings_are_scoped(self, db_session, caller_a, caller_b, product_a, product_b, location_a, location_b):
        add_stock(caller_a, product_id=product_a.id, quantity=5, location_id=location_a.id)
        add_stock(caller_b, product_id=product_b.id, quantity=7, location_id=location_b.id)

        entries_a = list_inventory_entries(caller_a)["items"]
        movements_a = list_movements(caller_a)["items"]

        assert [e.product_id for e in entries_a] == [product_a.id]
        assert [m.product_id for m in movements_a] == [product_a.id]

    def test_foreign_product_history(self, db_session, caller_a, product_b):
        with pytest.raises(AccessDeniedError):
            stock_history(caller_a, product_b.id)

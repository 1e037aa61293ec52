# Overview: Pytest coverage for inventory item service behavior.

import pytest

from repairdesk.models import Expense, InventoryItem
from repairdesk.services import expense_service, inventory_service
from repairdesk.services.inventory_service import DuplicateSkuError, InvalidQuantityError
from repairdesk.validation import NotFoundError, ValidationError


class TestCreateItem:

    def test_create_defaults_quantity_to_zero(self, db_session, store_a):
        item = inventory_service.create_item(store_a.id, {"name": "Battery"})
        assert item.id is not None
        assert item.current_quantity == 0
        assert item.min_quantity == 0
        assert item.is_low_stock is True

    def test_blank_sku_is_stored_as_null(self, db_session, store_a):
        first = inventory_service.create_item(store_a.id, {"name": "Cable", "sku": "  "})
        second = inventory_service.create_item(store_a.id, {"name": "Cable 2", "sku": ""})
        assert first.sku is None
        assert second.sku is None

    def test_duplicate_sku_in_same_store_rejected(self, db_session, store_a):
        inventory_service.create_item(store_a.id, {"name": "Screen", "sku": "SCR-1"})
        with pytest.raises(DuplicateSkuError):
            inventory_service.create_item(store_a.id, {"name": "Other screen", "sku": "SCR-1"})

    def test_same_sku_allowed_in_other_store(self, db_session, store_a, store_b):
        inventory_service.create_item(store_a.id, {"name": "Screen", "sku": "SCR-1"})
        item = inventory_service.create_item(store_b.id, {"name": "Screen", "sku": "SCR-1"})
        assert item.store_id == store_b.id

    def test_negative_initial_quantity_rejected(self, db_session, store_a):
        with pytest.raises(ValidationError):
            inventory_service.create_item(store_a.id, {"name": "Screen", "current_quantity": -1})
        assert db_session.query(InventoryItem).count() == 0

    def test_unknown_store_rejected(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.create_item(99999, {"name": "Screen"})


class TestAdjustQuantity:

    def test_adjust_up_and_down(self, db_session, store_a, make_item):
        item = make_item(store_a, quantity=5)
        inventory_service.adjust_quantity(store_a.id, item.id, 3)
        assert inventory_service.get_item(store_a.id, item.id).current_quantity == 8
        inventory_service.adjust_quantity(store_a.id, item.id, -8)
        assert inventory_service.get_item(store_a.id, item.id).current_quantity == 0

    def test_adjust_below_zero_rejected_and_unchanged(self, db_session, store_a, make_item):
        item = make_item(store_a, quantity=2)
        with pytest.raises(InvalidQuantityError):
            inventory_service.adjust_quantity(store_a.id, item.id, -3)
        assert inventory_service.get_item(store_a.id, item.id).current_quantity == 2

    def test_adjust_rejects_non_integer_delta(self, db_session, store_a, make_item):
        item = make_item(store_a, quantity=2)
        with pytest.raises(ValidationError):
            inventory_service.adjust_quantity(store_a.id, item.id, 1.5)

    def test_adjust_cross_store_is_not_found(self, db_session, store_a, store_b, make_item):
        item = make_item(store_a, quantity=2)
        with pytest.raises(NotFoundError):
            inventory_service.adjust_quantity(store_b.id, item.id, 1)
        assert inventory_service.get_item(store_a.id, item.id).current_quantity == 2

    def test_adjust_bumps_row_version(self, db_session, store_a, make_item):
        item = make_item(store_a, quantity=2)
        before = item.version_id
        inventory_service.adjust_quantity(store_a.id, item.id, 1)
        assert inventory_service.get_item(store_a.id, item.id).version_id == before + 1


class TestUpdateItem:

    def test_direct_quantity_edit_goes_through_adjustment(self, db_session, store_a, make_item):
        item = make_item(store_a, quantity=4)
        updated = inventory_service.update_item(store_a.id, item.id, {"current_quantity": 9, "location": "Shelf 2"})
        assert updated.current_quantity == 9
        assert updated.location == "Shelf 2"

    def test_direct_quantity_edit_below_zero_rejected(self, db_session, store_a, make_item):
        item = make_item(store_a, quantity=4)
        with pytest.raises((InvalidQuantityError, ValidationError)):
            inventory_service.update_item(store_a.id, item.id, {"current_quantity": -1, "name": "Renamed"})
        fresh = inventory_service.get_item(store_a.id, item.id)
        assert fresh.current_quantity == 4
        assert fresh.name == "Screen"

    def test_sku_change_to_taken_value_rejected(self, db_session, store_a, make_item):
        make_item(store_a, name="A", sku="SKU-A")
        item = make_item(store_a, name="B", sku="SKU-B")
        with pytest.raises(DuplicateSkuError):
            inventory_service.update_item(store_a.id, item.id, {"sku": "SKU-A"})

    def test_keeping_own_sku_is_allowed(self, db_session, store_a, make_item):
        item = make_item(store_a, name="B", sku="SKU-B")
        updated = inventory_service.update_item(store_a.id, item.id, {"sku": "SKU-B", "name": "B2"})
        assert updated.name == "B2"

    def test_update_in_other_store_is_not_found(self, db_session, store_a, store_b, make_item):
        item = make_item(store_a)
        with pytest.raises(NotFoundError):
            inventory_service.update_item(store_b.id, item.id, {"name": "Hijacked"})


class TestDeleteItem:

    def test_delete_missing_returns_false(self, db_session, store_a):
        assert inventory_service.delete_item(store_a.id, 12345) is False

    def test_delete_other_store_returns_false(self, db_session, store_a, store_b, make_item):
        item = make_item(store_a)
        assert inventory_service.delete_item(store_b.id, item.id) is False
        assert inventory_service.get_item(store_a.id, item.id) is not None

    def test_delete_clears_expense_link(self, db_session, store_a, make_item, make_ticket):
        item = make_item(store_a, quantity=5)
        ticket = make_ticket(store_a)
        expense = expense_service.create_expense(
            store_a.id, ticket.id, name="Screen", quantity=2, price_cents=4500, inventory_item_id=item.id
        )

        assert inventory_service.delete_item(store_a.id, item.id) is True

        kept = db_session.get(Expense, expense.id)
        assert kept is not None
        assert kept.inventory_item_id is None
        assert kept.quantity == 2


class TestListing:

    def test_filters_and_helpers(self, db_session, store_a, store_b, make_item):
        make_item(store_a, name="iPhone screen", quantity=1, min_quantity=2, category="Screens", location="A1")
        make_item(store_a, name="Galaxy battery", quantity=10, category="Batteries", location="B2")
        make_item(store_b, name="iPhone screen", quantity=0, category="Screens", location="Z9")

        result = inventory_service.list_items(store_a.id, search="iphone")
        assert result["count"] == 1
        assert result["items"][0]["name"] == "iPhone screen"

        assert inventory_service.list_items(store_a.id, category="Batteries")["count"] == 1
        assert inventory_service.list_items(store_a.id, low_stock=True)["count"] == 1
        assert [i.name for i in inventory_service.list_low_stock_items(store_a.id)] == ["iPhone screen"]
        assert inventory_service.list_categories(store_a.id) == ["Batteries", "Screens"]
        assert inventory_service.list_locations(store_a.id) == ["A1", "B2"]

    def test_pagination(self, db_session, store_a, make_item):
        for n in range(5):
            make_item(store_a, name=f"Part {n}")

        page = inventory_service.list_items(store_a.id, page=2, per_page=2)
        assert page["count"] == 2
        assert page["pagination"]["total"] == 5
        assert page["pagination"]["total_pages"] == 3
        assert page["pagination"]["has_next"] is True
        assert page["pagination"]["has_prev"] is True

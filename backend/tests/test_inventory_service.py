# Overview: Pytest coverage for consumable stock: receipts, removals and weighted-average cost.

from decimal import Decimal

import pytest

from printshop.errors import InsufficientStockError, ValidationError
from printshop.models import InventoryMovement
from printshop.services import inventory_service


@pytest.fixture
def paper(db_session):
    return inventory_service.create_item(
        patch={"name": "A4 paper 80g", "unit": "ream", "minimum_quantity": Decimal("2")},
        initial_quantity="5",
        unit_cost="4",
    )


class TestStock:
    def test_opening_stock_is_a_movement(self, db_session, paper):
        assert paper.current_quantity == Decimal("5.000")
        assert paper.unit_cost == Decimal("4.00")
        movement = db_session.query(InventoryMovement).one()
        assert movement.movement_type == "in"
        assert movement.total_cost == Decimal("20.00")

    def test_remove_more_than_on_hand_fails(self, db_session, paper):
        with pytest.raises(InsufficientStockError):
            inventory_service.remove_stock(item_id=paper.id, quantity="10")
        assert inventory_service.require_item(paper.id).current_quantity == Decimal("5.000")
        assert db_session.query(InventoryMovement).count() == 1

    def test_remove_keeps_unit_cost(self, db_session, paper):
        movement = inventory_service.remove_stock(item_id=paper.id, quantity="1.5")
        item = inventory_service.require_item(paper.id)
        assert item.current_quantity == Decimal("3.500")
        assert item.unit_cost == Decimal("4.00")
        assert movement.total_cost == Decimal("6.00")

    def test_weighted_average_on_receipt(self, db_session, paper):
        inventory_service.add_stock(item_id=paper.id, quantity="5", unit_cost="6")
        item = inventory_service.require_item(paper.id)
        assert item.current_quantity == Decimal("10.000")
        assert item.unit_cost == Decimal("5.00")

    def test_receipt_without_cost_keeps_cost(self, db_session, paper):
        inventory_service.add_stock(item_id=paper.id, quantity="5")
        assert inventory_service.require_item(paper.id).unit_cost == Decimal("4.00")

    def test_receipt_beyond_storable_stock_fails(self, db_session, paper):
        with pytest.raises(ValidationError) as exc:
            inventory_service.add_stock(item_id=paper.id, quantity="999999999.999")
        assert "quantity" in exc.value.fields
        assert inventory_service.require_item(paper.id).current_quantity == Decimal("5.000")
        assert db_session.query(InventoryMovement).count() == 1

    def test_receipt_cost_above_money_limit_fails(self, db_session, paper):
        with pytest.raises(ValidationError):
            inventory_service.add_stock(item_id=paper.id, quantity="1000000", unit_cost="9999999")
        assert inventory_service.require_item(paper.id).unit_cost == Decimal("4.00")

    def test_store_movement_dispatch(self, db_session, paper):
        inventory_service.store_movement(inventory_item_id=paper.id, movement_type="out", quantity="5")
        assert inventory_service.require_item(paper.id).current_quantity == Decimal("0.000")
        with pytest.raises(ValidationError):
            inventory_service.store_movement(inventory_item_id=paper.id, movement_type="sideways", quantity="1")

    def test_low_stock_listing(self, db_session, paper):
        inventory_service.remove_stock(item_id=paper.id, quantity="3")
        rows, total = inventory_service.list_items(low_stock=True)
        assert total == 1
        assert rows[0].is_low_stock is True

    @pytest.mark.parametrize("quantity", ["0", "-1", "x"])
    def test_quantity_must_be_positive(self, db_session, paper, quantity):
        with pytest.raises(ValidationError):
            inventory_service.add_stock(item_id=paper.id, quantity=quantity)

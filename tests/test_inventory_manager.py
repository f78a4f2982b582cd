"""Tests for inventory management."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from restock_engine.config import DefaultsConfig
from restock_engine.errors import NotFoundError, ValidationError
from restock_engine.inventory_manager import InventoryManager
from restock_engine.models import ItemStatus, ObservationKind


@pytest.fixture
def inventory_manager(data_store):
    """Create an InventoryManager with temporary storage."""
    return InventoryManager(data_store=data_store)


class TestAddItem:
    """Tests for adding inventory items."""

    def test_add_basic(self, inventory_manager, data_store):
        item = inventory_manager.add_item("Milk", quantity=2, category="Dairy", unit="gallon")

        assert item.name == "Milk"
        assert item.quantity == 2
        assert item.location == "Pantry"
        assert item.burn_rate is None
        assert item.revision == 1
        assert data_store.get_item(item.id) is not None

    def test_add_records_initial_observation(self, inventory_manager):
        item = inventory_manager.add_item("Eggs", quantity=12)

        (observation,) = inventory_manager.get_history(item.id)
        assert observation.kind == ObservationKind.INITIAL
        assert observation.quantity_after == 12
        assert observation.timestamp == item.created_at

    def test_configured_defaults(self, data_store):
        manager = InventoryManager(
            data_store, defaults=DefaultsConfig(location="Fridge", category="Dairy", unit="l")
        )
        item = manager.add_item("Milk")
        assert (item.location, item.category, item.unit) == ("Fridge", "Dairy", "l")

    def test_add_strips_name(self, inventory_manager):
        assert inventory_manager.add_item("  Rice ").name == "Rice"

    def test_blank_name_rejected(self, inventory_manager, data_store):
        with pytest.raises(ValidationError) as exc_info:
            inventory_manager.add_item("   ")
        assert exc_info.value.field == "name"
        assert data_store.load_inventory() == []

    def test_negative_quantity_rejected(self, inventory_manager):
        with pytest.raises(ValidationError):
            inventory_manager.add_item("Rice", quantity=-1)


class TestQueries:
    """Tests for reading inventory."""

    def test_get_item(self, inventory_manager):
        item = inventory_manager.add_item("Milk")
        assert inventory_manager.get_item(str(item.id)).id == item.id

    def test_get_missing_item(self, inventory_manager):
        with pytest.raises(NotFoundError) as exc_info:
            inventory_manager.get_item(uuid4())
        assert exc_info.value.kind == "Item"

    def test_get_invalid_id(self, inventory_manager):
        with pytest.raises(ValidationError):
            inventory_manager.get_item("abc")

    def test_get_inventory_sorted(self, inventory_manager):
        inventory_manager.add_item("rice")
        inventory_manager.add_item("Bread")
        inventory_manager.add_item("apples")

        names = [s.item.name for s in inventory_manager.get_inventory()]
        assert names == ["apples", "Bread", "rice"]

    def test_filter_by_location_and_category(self, inventory_manager):
        inventory_manager.add_item("Milk", category="Dairy", location="Fridge")
        inventory_manager.add_item("Cheese", category="Dairy", location="Fridge")
        inventory_manager.add_item("Rice", category="Grains")

        assert len(inventory_manager.get_inventory(location="fridge")) == 2
        assert [s.item.name for s in inventory_manager.get_inventory(category="grains")] == [
            "Rice"
        ]

    def test_filter_by_status(self, inventory_manager):
        item = inventory_manager.add_item("Milk", quantity=10)
        base = item.created_at
        inventory_manager.record_quantity_change(
            item.id, quantity=2, timestamp=base + timedelta(days=1)
        )
        inventory_manager.add_item("Rice", quantity=10)

        critical = inventory_manager.get_inventory(status=ItemStatus.CRITICAL)
        assert [s.item.name for s in critical] == ["Milk"]

    def test_running_out_soon(self, inventory_manager):
        milk = inventory_manager.add_item("Milk", quantity=10)
        inventory_manager.record_quantity_change(
            milk.id, quantity=6, timestamp=milk.created_at + timedelta(days=1)
        )
        rice = inventory_manager.add_item("Rice", quantity=10)
        inventory_manager.record_quantity_change(
            rice.id, quantity=9, timestamp=rice.created_at + timedelta(days=1)
        )
        inventory_manager.add_item("Salt", quantity=1)

        soon = inventory_manager.get_running_out_soon(days=7)
        assert [s.item.name for s in soon] == ["Milk"]
        assert soon[0].days_remaining == pytest.approx(1.5)


class TestUpdateItem:
    """Tests for editing item fields."""

    def test_update_fields(self, inventory_manager):
        item = inventory_manager.add_item("Milk")

        updated = inventory_manager.update_item(
            item.id, category="Dairy", location="Fridge", reorder_threshold=7
        )

        assert updated.category == "Dairy"
        assert updated.location == "Fridge"
        assert updated.reorder_threshold == 7
        assert updated.revision == item.revision + 1

    def test_quantity_not_editable(self, inventory_manager):
        item = inventory_manager.add_item("Milk")
        with pytest.raises(ValidationError) as exc_info:
            inventory_manager.update_item(item.id, quantity=5)
        assert exc_info.value.field == "quantity"

    def test_invalid_value(self, inventory_manager):
        item = inventory_manager.add_item("Milk")
        with pytest.raises(ValidationError):
            inventory_manager.update_item(item.id, reorder_threshold=-2)
        assert inventory_manager.get_item(item.id).reorder_threshold is None

    def test_update_missing(self, inventory_manager):
        with pytest.raises(NotFoundError):
            inventory_manager.update_item(uuid4(), name="Tea")


class TestRemoveItem:
    """Tests for removing items."""

    def test_remove(self, inventory_manager, data_store):
        item = inventory_manager.add_item("Milk", quantity=1)

        removed = inventory_manager.remove_item(item.id)

        assert removed.id == item.id
        assert data_store.get_item(item.id) is None
        assert data_store.load_observations(item.id) == []

    def test_remove_missing(self, inventory_manager):
        with pytest.raises(NotFoundError):
            inventory_manager.remove_item(uuid4())


class TestRecordQuantityChange:
    """Tests for manual quantity readings."""

    def test_absolute_quantity_estimates_rate(self, inventory_manager):
        item = inventory_manager.add_item("Milk", quantity=10)

        updated = inventory_manager.record_quantity_change(
            item.id, quantity=8, timestamp=item.created_at + timedelta(days=1)
        )

        assert updated.quantity == 8
        assert updated.burn_rate == pytest.approx(2.0)
        assert updated.revision == 2
        history = inventory_manager.get_history(item.id)
        assert [o.kind for o in history] == [ObservationKind.INITIAL, ObservationKind.MANUAL]

    def test_delta(self, inventory_manager):
        item = inventory_manager.add_item("Eggs", quantity=12)
        updated = inventory_manager.record_quantity_change(item.id, delta=-3)
        assert updated.quantity == 9

    def test_delta_floors_at_zero(self, inventory_manager):
        item = inventory_manager.add_item("Eggs", quantity=2)
        updated = inventory_manager.record_quantity_change(item.id, delta=-5)
        assert updated.quantity == 0

    def test_increase_keeps_rate(self, inventory_manager):
        """A restock between readings does not count as negative use."""
        item = inventory_manager.add_item("Rice", quantity=10)
        base = item.created_at
        inventory_manager.record_quantity_change(
            item.id, quantity=6, timestamp=base + timedelta(days=2)
        )
        updated = inventory_manager.record_quantity_change(
            item.id, quantity=20, timestamp=base + timedelta(days=3)
        )
        assert updated.burn_rate == pytest.approx(2.0)

    def test_exactly_one_of_quantity_or_delta(self, inventory_manager):
        item = inventory_manager.add_item("Rice", quantity=10)
        with pytest.raises(ValidationError):
            inventory_manager.record_quantity_change(item.id)
        with pytest.raises(ValidationError):
            inventory_manager.record_quantity_change(item.id, quantity=1, delta=1)

    def test_negative_quantity_rejected(self, inventory_manager):
        item = inventory_manager.add_item("Rice", quantity=10)
        with pytest.raises(ValidationError):
            inventory_manager.record_quantity_change(item.id, quantity=-1)
        assert len(inventory_manager.get_history(item.id)) == 1

    @pytest.mark.parametrize(
        "change",
        [
            {"quantity": float("nan")},
            {"quantity": float("inf")},
            {"delta": float("nan")},
            {"delta": float("-inf")},
        ],
    )
    def test_non_finite_rejected(self, inventory_manager, change):
        item = inventory_manager.add_item("Rice", quantity=10)
        with pytest.raises(ValidationError):
            inventory_manager.record_quantity_change(item.id, **change)
        assert inventory_manager.get_item(item.id).quantity == 10
        assert len(inventory_manager.get_history(item.id)) == 1

    def test_missing_item(self, inventory_manager):
        with pytest.raises(NotFoundError):
            inventory_manager.record_quantity_change(uuid4(), quantity=1)


class TestRefreshBurnRate:
    """Tests for re-estimating from stored history."""

    def test_unchanged_estimate_not_rewritten(self, inventory_manager):
        item = inventory_manager.add_item("Milk", quantity=10)
        assert inventory_manager.refresh_burn_rate(item.id).revision == item.revision

    def test_picks_up_new_history(self, inventory_manager, data_store):
        item = inventory_manager.add_item("Milk", quantity=10)
        data_store.append_observation(
            data_store.load_observations(item.id)[0].model_copy(
                update={
                    "id": uuid4(),
                    "quantity_after": 7,
                    "timestamp": item.created_at + timedelta(days=1),
                }
            )
        )

        refreshed = inventory_manager.refresh_burn_rate(item.id)
        assert refreshed.burn_rate == pytest.approx(3.0)
        assert refreshed.revision == item.revision + 1


class TestConsumptionStats:
    """Tests for consumption statistics."""

    def test_stats(self, inventory_manager):
        item = inventory_manager.add_item("Milk", quantity=10)
        base = item.created_at
        for days, quantity in [(1, 7), (2, 12), (3, 9)]:
            inventory_manager.record_quantity_change(
                item.id, quantity=quantity, timestamp=base + timedelta(days=days)
            )

        stats = inventory_manager.consumption_stats(
            item.id, days=30, now=base + timedelta(days=4)
        )

        assert stats.total_events == 4
        assert stats.total_consumed == 6
        assert stats.total_restocked == 5
        assert stats.avg_consumption_per_event == pytest.approx(3.0)
        assert stats.first_event == base
        assert stats.last_event == base + timedelta(days=3)

    def test_window_uses_prior_reading(self, inventory_manager):
        """The first change in the window is measured from the reading before it."""
        item = inventory_manager.add_item("Milk", quantity=10)
        base = item.created_at
        inventory_manager.record_quantity_change(
            item.id, quantity=4, timestamp=base + timedelta(days=40)
        )

        stats = inventory_manager.consumption_stats(
            item.id, days=30, now=base + timedelta(days=41)
        )

        assert stats.total_events == 1
        assert stats.total_consumed == 6

    def test_invalid_days(self, inventory_manager):
        item = inventory_manager.add_item("Milk", quantity=10)
        with pytest.raises(ValidationError):
            inventory_manager.consumption_stats(item.id, days=0)

    def test_no_events(self, inventory_manager):
        item = inventory_manager.add_item("Milk", quantity=10)
        stats = inventory_manager.consumption_stats(
            item.id, now=datetime.now() + timedelta(days=60)
        )
        assert stats.total_events == 0
        assert stats.avg_consumption_per_event == 0.0

"""Integration tests for the restock engine."""

import threading
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from restock_engine.config import default_config
from restock_engine.data_store import DataStore
from restock_engine.engine import RestockEngine
from restock_engine.errors import (
    ConcurrencyConflictError,
    NotFoundError,
    ReceiptAlreadyProcessedError,
    ValidationError,
)
from restock_engine.models import (
    ConsumptionObservation,
    ItemStatus,
    MatchStrategy,
    ObservationKind,
    Priority,
    Receipt,
    ReceiptItem,
    ReceiptSource,
    ShoppingChangeAction,
)
from restock_engine.sqlite_store import SQLiteStore


class InterferingStore(DataStore):
    """JSON store that lets another writer get in between a read and a write."""

    def __init__(self, data_dir, always=False):
        super().__init__(data_dir)
        self.interfere_on_read = False
        self.interfere_on_commit = False
        self.always = always
        self.interference_count = 0

    def _bump(self, item):
        self.interference_count += 1
        quantity = max(item.quantity - 10, 0)
        super().save_item(
            item.model_copy(update={"quantity": quantity}),
            ConsumptionObservation(item_id=item.id, quantity_after=quantity),
        )

    def get_item(self, item_id):
        item = super().get_item(item_id)
        if self.interfere_on_read and item is not None:
            self.interfere_on_read = self.always
            self._bump(item)
        return item

    def commit_reconciliation(self, receipt, items, observations):
        if self.interfere_on_commit:
            self.interfere_on_commit = self.always
            for item in items:
                if item.revision:
                    self._bump(super().get_item(item.id))
                    break
        return super().commit_reconciliation(receipt, items, observations)


class TestSubmitReceipt:
    """Tests for receipt submission and reconciliation."""

    def test_new_items_created(self, engine):
        result = engine.submit_receipt(
            "photo",
            [
                {"name": "Milk", "quantity": 2, "category": "Dairy", "unit": "gallon"},
                {"name": "Eggs", "quantity": 12},
            ],
            store_name="Corner Shop",
        )

        assert result.created_items == 2
        assert result.matched_items == 0
        items = {s.item.name: s for s in engine.list_items()}
        assert items["Milk"].item.quantity == 2
        assert items["Milk"].item.unit == "gallon"
        assert items["Eggs"].item.category == "Uncategorized"

    def test_single_observation_means_unknown_rate(self, engine):
        """An item seen once has no burn rate and is not flagged."""
        result = engine.submit_receipt("email", [{"name": "Coffee", "quantity": 1}])

        snapshot = engine.get_item(result.touched_item_ids[0])
        assert snapshot.item.burn_rate is None
        assert snapshot.status == ItemStatus.GOOD
        assert snapshot.to_dict()["days_remaining"] is None
        assert engine.planner.suggested_quantity(snapshot.item) == 1

    def test_matched_item_restocked(self, engine):
        milk = engine.add_item("Milk", 1, category="Dairy").item

        result = engine.submit_receipt("photo", [{"name": "milk", "quantity": 2}])

        assert result.matched_items == 1
        assert result.lines[0].strategy == MatchStrategy.EXACT_ANY_CATEGORY
        assert engine.get_item(milk.id).item.quantity == 3
        kinds = [o.kind for o in engine.get_history(milk.id)]
        assert kinds == [ObservationKind.INITIAL, ObservationKind.RESTOCK]

    def test_category_precedence(self, engine):
        """Milk in Dairy goes to the Dairy item, never the Non-Dairy one."""
        dairy = engine.add_item("Milk", 1, category="Dairy").item
        oat = engine.add_item("Milk", 1, category="Non-Dairy").item

        engine.submit_receipt("photo", [{"name": "Milk", "quantity": 2, "category": "Dairy"}])

        assert engine.get_item(dairy.id).item.quantity == 3
        assert engine.get_item(oat.id).item.quantity == 1

    def test_supplied_match_id_ignored(self, engine):
        """A line sent with a match id is still reconciled by name."""
        milk = engine.add_item("Milk", 1, category="Dairy").item

        result = engine.submit_receipt(
            "photo",
            [
                {
                    "name": "Milk",
                    "quantity": 3,
                    "category": "Dairy",
                    "matched_inventory_id": str(uuid4()),
                }
            ],
        )

        assert result.touched_item_ids == [milk.id]
        assert len(result.lines) == 1
        assert engine.get_item(milk.id).item.quantity == 4
        receipt = engine.get_receipt(result.receipt_id)
        assert receipt.processed is True
        assert receipt.items[0].matched_inventory_id == milk.id

    def test_receipt_stored_processed(self, engine):
        result = engine.submit_receipt("photo", [{"name": "Milk"}], total_amount=3.49)

        receipt = engine.get_receipt(result.receipt_id)
        assert receipt.processed is True
        assert receipt.processed_at is not None
        assert receipt.total_amount == 3.49
        assert receipt.items[0].matched_inventory_id == result.touched_item_ids[0]
        assert [r.id for r in engine.list_receipts()] == [receipt.id]

    def test_reconcile_twice_rejected(self, engine):
        """A second reconciliation changes nothing."""
        result = engine.submit_receipt("photo", [{"name": "Milk", "quantity": 2}])
        item_id = result.touched_item_ids[0]

        with pytest.raises(ReceiptAlreadyProcessedError):
            engine.reconcile_receipt(result.receipt_id)

        assert engine.get_item(item_id).item.quantity == 2
        assert len(engine.get_history(item_id)) == 1

    def test_reconcile_missing_receipt(self, engine):
        with pytest.raises(NotFoundError):
            engine.reconcile_receipt(uuid4())

    @pytest.mark.parametrize(
        "source, items",
        [
            ("photo", []),
            ("photo", [{"name": "Milk", "quantity": 0}]),
            ("photo", [{"name": "Milk", "quantity": -1}]),
            ("photo", [{"name": "  "}]),
            ("fax", [{"name": "Milk"}]),
        ],
    )
    def test_invalid_receipt_stores_nothing(self, engine, source, items):
        with pytest.raises(ValidationError):
            engine.submit_receipt(source, items)

        assert engine.list_receipts() == []
        assert engine.list_items() == []


class TestReplenishment:
    """Tests for the shopping list following inventory."""

    def test_restock_cancels_need(self, engine, seed_item):
        """A receipt that refills a critical item removes its entry."""
        milk = seed_item("Milk", [(3, 12), (1, 4)], category="Dairy")
        (created,) = engine.request_shopping_list_refresh()
        assert created.entry.priority == Priority.CRITICAL

        result = engine.submit_receipt(
            "photo", [{"name": "Milk", "quantity": 40, "category": "Dairy"}]
        )

        snapshot = engine.get_item(milk.id)
        assert snapshot.item.quantity == 44
        assert snapshot.item.burn_rate == pytest.approx(4.0)
        assert snapshot.status == ItemStatus.GOOD
        assert [c.action for c in result.shopping_list_changes] == [
            ShoppingChangeAction.REMOVED
        ]
        assert engine.get_shopping_list(purchased=False) == []

    def test_manual_change_flags_item(self, engine, seed_item):
        rice = seed_item("Rice", [(2, 20), (1, 18)])

        snapshot = engine.record_manual_quantity_change(rice.id, 3)

        assert snapshot.status == ItemStatus.CRITICAL
        (entry,) = engine.get_shopping_list()
        assert entry.inventory_item_id == rice.id
        assert entry.priority == Priority.CRITICAL

    def test_nan_reading_rejected(self, engine, seed_item):
        rice = seed_item("Rice", [(2, 20), (1, 18)])

        with pytest.raises(ValidationError):
            engine.record_manual_quantity_change(rice.id, float("nan"))

        assert engine.get_item(rice.id).item.quantity == 18

    def test_adjust_quantity(self, engine, seed_item):
        rice = seed_item("Rice", [(2, 20), (1, 18)])
        snapshot = engine.adjust_quantity(rice.id, -8)
        assert snapshot.item.quantity == 10

    def test_refresh_idempotent(self, engine, seed_item):
        seed_item("Milk", [(3, 12), (1, 4)])
        seed_item("Eggs", [(4, 24), (1, 12)])

        assert len(engine.request_shopping_list_refresh()) == 2
        before = engine.get_shopping_list()
        assert engine.request_shopping_list_refresh() == []
        assert engine.get_shopping_list() == before

    def test_update_threshold_flags_item(self, engine, seed_item):
        flour = seed_item("Flour", [(2, 10), (0, 8)])
        assert engine.get_item(flour.id).status == ItemStatus.GOOD

        snapshot = engine.update_item(flour.id, reorder_threshold=10)

        assert snapshot.status == ItemStatus.LOW
        assert len(engine.get_shopping_list()) == 1

    def test_remove_item_clears_entry(self, engine, seed_item):
        milk = seed_item("Milk", [(3, 12), (1, 4)])
        engine.request_shopping_list_refresh()

        engine.remove_item(milk.id)

        assert engine.get_shopping_list() == []
        with pytest.raises(NotFoundError):
            engine.get_item(milk.id)

    def test_purchase_flow(self, engine, seed_item):
        seed_item("Milk", [(3, 12), (1, 4)])
        (created,) = engine.request_shopping_list_refresh()

        engine.mark_purchased(created.entry.id)
        assert engine.get_shopping_list(purchased=True)[0].id == created.entry.id

        (replacement,) = engine.request_shopping_list_refresh()
        assert replacement.action == ShoppingChangeAction.CREATED
        assert engine.clear_purchased() == 1
        assert [e.id for e in engine.get_shopping_list()] == [replacement.entry.id]

        engine.remove_shopping_entry(replacement.entry.id)
        assert engine.get_shopping_list() == []


class TestQueries:
    """Tests for read operations."""

    def test_summary(self, engine, seed_item):
        seed_item("Milk", [(3, 12), (1, 4)])
        seed_item("Flour", [(2, 10), (0, 8)])
        engine.add_item("Salt", 1)

        summary = engine.request_summary()

        assert summary.total_items == 3
        assert summary.critical_items == 1
        assert summary.good_items == 2
        assert summary.unknown_rate_items == 1
        assert [h.name for h in summary.running_out_soon] == ["Milk"]

    def test_consumption_stats(self, engine, seed_item):
        milk = seed_item("Milk", [(3, 12), (1, 4)])
        stats = engine.consumption_stats(milk.id, days=7)
        assert stats.total_consumed == 8
        assert stats.total_events == 2

    def test_running_out_soon(self, engine, seed_item):
        seed_item("Milk", [(3, 12), (1, 4)])
        seed_item("Flour", [(2, 10), (0, 8)])
        assert [s.item.name for s in engine.running_out_soon()] == ["Milk"]

    def test_from_config(self, temp_data_dir):
        config = default_config(temp_data_dir)
        config.data.backend = "sqlite"

        engine = RestockEngine.from_config(config)

        assert isinstance(engine.data_store, SQLiteStore)
        assert engine.add_item("Milk", 2).item.revision == 1


class TestPurchaseHistory:
    """Tests for per-item purchase history."""

    def test_newest_first(self, engine):
        milk = engine.add_item("Milk", 1, category="Dairy").item
        engine.submit_receipt(
            "photo",
            [{"name": "Milk", "quantity": 2, "price": 3.49}],
            store_name="Corner Shop",
            purchased_at=datetime(2024, 3, 1, 9, 0),
        )
        engine.submit_receipt(
            "email",
            [{"name": "Milk", "quantity": 1, "price": 1.99}, {"name": "Eggs", "quantity": 12}],
            store_name="Grocer",
            purchased_at=datetime(2024, 3, 8, 9, 0),
        )

        history = engine.purchase_history(milk.id)

        assert [r.store_name for r in history] == ["Grocer", "Corner Shop"]
        assert [r.quantity for r in history] == [1, 2]
        assert [r.price for r in history] == [1.99, 3.49]
        assert history[1].purchased_at == datetime(2024, 3, 1, 9, 0)

    def test_limit(self, engine):
        milk = engine.add_item("Milk", 1).item
        for day in (1, 2, 3):
            engine.submit_receipt(
                "photo", [{"name": "Milk"}], purchased_at=datetime(2024, 3, day)
            )

        history = engine.purchase_history(milk.id, limit=2)

        assert [r.purchased_at.day for r in history] == [3, 2]
        with pytest.raises(ValidationError):
            engine.purchase_history(milk.id, limit=0)

    def test_mixed_timezones(self, engine):
        milk = engine.add_item("Milk", 1).item
        engine.submit_receipt("photo", [{"name": "Milk"}], purchased_at=datetime(2024, 3, 1))
        engine.submit_receipt(
            "photo",
            [{"name": "Milk"}],
            purchased_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        )

        history = engine.purchase_history(milk.id)

        assert [r.purchased_at.month for r in history] == [6, 3]

    def test_unprocessed_receipts_skipped(self, engine):
        milk = engine.add_item("Milk", 1).item
        engine.data_store.save_receipt(
            Receipt(
                source=ReceiptSource.PHOTO,
                items=[ReceiptItem(name="Milk", matched_inventory_id=milk.id)],
            )
        )

        assert engine.purchase_history(milk.id) == []

    def test_missing_item(self, engine):
        with pytest.raises(NotFoundError):
            engine.purchase_history(uuid4())


class TestConcurrency:
    """Tests for concurrent writers."""

    def test_parallel_deltas_not_lost(self, engine):
        item = engine.add_item("Rice", 100).item

        def consume():
            for _ in range(5):
                engine.adjust_quantity(item.id, -1)

        threads = [threading.Thread(target=consume) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert engine.get_item(item.id).item.quantity == 60
        assert len(engine.get_history(item.id)) == 41

    def test_interleaved_write_retried(self, temp_data_dir):
        """A write that loses a revision race is redone on fresh data."""
        store = InterferingStore(temp_data_dir)
        engine = RestockEngine(store, default_config(temp_data_dir))
        item = engine.add_item("Rice", 100).item

        store.interfere_on_read = True
        snapshot = engine.adjust_quantity(item.id, -5)

        assert store.interference_count == 1
        assert snapshot.item.quantity == 85
        assert engine.get_item(item.id).item.quantity == 85

    def test_interleaved_receipt_retried(self, temp_data_dir):
        store = InterferingStore(temp_data_dir)
        engine = RestockEngine(store, default_config(temp_data_dir))
        item = engine.add_item("Rice", 100).item

        store.interfere_on_commit = True
        result = engine.submit_receipt("photo", [{"name": "Rice", "quantity": 20}])

        assert store.interference_count == 1
        assert result.matched_items == 1
        assert engine.get_item(item.id).item.quantity == 110

    def test_conflict_surfaces_after_retries(self, temp_data_dir):
        store = InterferingStore(temp_data_dir, always=True)
        engine = RestockEngine(store, default_config(temp_data_dir))
        item = engine.add_item("Rice", 100).item

        store.interfere_on_read = True
        with pytest.raises(ConcurrencyConflictError):
            engine.adjust_quantity(item.id, -5)

        assert store.interference_count == engine.max_retries
        store.interfere_on_read = False
        assert engine.get_item(item.id).item.quantity == 100 - 10 * engine.max_retries

    def test_receipt_conflict_leaves_receipt_unprocessed(self, temp_data_dir):
        store = InterferingStore(temp_data_dir, always=True)
        engine = RestockEngine(store, default_config(temp_data_dir))
        engine.add_item("Rice", 100)

        store.interfere_on_commit = True
        with pytest.raises(ConcurrencyConflictError):
            engine.submit_receipt("photo", [{"name": "Rice", "quantity": 20}])

        (receipt,) = engine.list_receipts()
        assert receipt.processed is False

        store.interfere_on_commit = False
        result = engine.reconcile_receipt(receipt.id)
        assert result.matched_items == 1
        assert engine.get_receipt(receipt.id).processed is True


def test_history_timestamps_ordered(engine, seed_item):
    milk = seed_item("Milk", [(3, 12), (1, 4)])
    history = engine.get_history(milk.id)
    assert history[1].timestamp - history[0].timestamp == timedelta(days=2)

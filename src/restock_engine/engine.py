"""Inbound operations of the restock engine."""

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any
from uuid import UUID

import pydantic

from .config import Config, default_config
from .data_store import BackendType, DataStoreProtocol, create_data_store
from .errors import NotFoundError, ReceiptAlreadyProcessedError
from .estimator import ConsumptionEstimator
from .inventory_manager import InventoryManager, validation_error_from
from .locking import KeyedLocks, retry_on_conflict
from .log_config import get_logger
from .models import (
    ConsumptionObservation,
    ConsumptionStats,
    InventoryItem,
    InventorySummary,
    ItemSnapshot,
    ItemStatus,
    Priority,
    PurchaseRecord,
    Receipt,
    ReceiptItem,
    ReconciliationResult,
    ShoppingListChange,
    ShoppingListItem,
    coerce_uuid,
)
from .planner import ReplenishmentPlanner
from .projector import DepletionProjector
from .reconciler import ReceiptInput, ReceiptReconciler, ReconciliationOutcome
from .shopping_list import ShoppingListManager
from .summary import SummaryAggregator

logger = get_logger(__name__)


class RestockEngine:
    """Wires estimator, projector, reconciler, planner and summary over one store.

    Writes to an item are serialized by a per-item lock and checked against
    the item's revision; receipts are serialized by a per-receipt lock.
    """

    def __init__(self, data_store: DataStoreProtocol, config: Config | None = None):
        """Initialize the engine.

        Args:
            data_store: Store shared by every component
            config: Configuration; defaults apply when omitted
        """
        self.config = config or default_config()
        self.data_store = data_store

        self.estimator = ConsumptionEstimator(self.config.estimator)
        self.projector = DepletionProjector(self.config.thresholds)
        self.reconciler = ReceiptReconciler(self.config.matching, self.config.defaults)
        self.planner = ReplenishmentPlanner(
            data_store, self.projector, self.config.replenishment
        )
        self.summarizer = SummaryAggregator()

        self.item_locks = KeyedLocks()
        self.receipt_locks = KeyedLocks()
        self.max_retries = self.config.engine.max_retries

        self.inventory = InventoryManager(
            data_store,
            estimator=self.estimator,
            projector=self.projector,
            defaults=self.config.defaults,
            locks=self.item_locks,
            max_retries=self.max_retries,
        )
        self.shopping_list = ShoppingListManager(data_store, self.planner)

    @classmethod
    def from_config(cls, config: Config) -> "RestockEngine":
        """Build an engine with the store the configuration names."""
        store = create_data_store(
            BackendType(config.data.backend), data_dir=config.data.storage_dir
        )
        return cls(store, config)

    # --- Receipts ---

    def submit_receipt(
        self,
        source: str,
        parsed_items: Sequence[dict[str, Any] | ReceiptItem],
        store_name: str | None = None,
        purchased_at: datetime | None = None,
        total_amount: float | None = None,
    ) -> ReconciliationResult:
        """Store a parsed receipt and reconcile it with the inventory.

        Args:
            source: "email" or "photo"
            parsed_items: Lines as {name, quantity, unit?, price?, category?}
            store_name: Store the receipt came from
            purchased_at: Purchase time printed on the receipt
            total_amount: Receipt total

        Returns:
            ReconciliationResult

        Raises:
            ValidationError: If the receipt is malformed; nothing is stored
        """
        try:
            receipt_input = ReceiptInput(
                source=source,
                items=list(parsed_items),
                store_name=store_name,
                purchased_at=purchased_at,
                total_amount=total_amount,
            )
        except pydantic.ValidationError as e:
            raise validation_error_from(e) from e

        receipt = receipt_input.to_receipt()
        self.data_store.save_receipt(receipt)
        logger.info("Stored receipt %s with %d line(s)", receipt.id, len(receipt.items))
        return self.reconcile_receipt(receipt.id)

    def reconcile_receipt(self, receipt_id: UUID | str) -> ReconciliationResult:
        """Reconcile a stored, unprocessed receipt.

        Raises:
            NotFoundError: If the receipt does not exist
            ReceiptAlreadyProcessedError: If it was reconciled before
            ConcurrencyConflictError: If conflicts persist past the retry limit
        """
        receipt_id = coerce_uuid(receipt_id, "Receipt")

        def attempt() -> ReconciliationOutcome:
            receipt = self.get_receipt(receipt_id)
            if receipt.processed:
                raise ReceiptAlreadyProcessedError(receipt_id)

            outcome = self.reconciler.reconcile(
                receipt, self.data_store.load_inventory(), datetime.now()
            )
            with self.item_locks.hold_all(outcome.touched_ids):
                self.data_store.commit_reconciliation(
                    outcome.receipt, outcome.items, outcome.observations
                )
            return outcome

        with self.receipt_locks.hold(receipt_id):
            outcome = retry_on_conflict(attempt, self.max_retries)

        logger.info(
            "Reconciled receipt %s: %d matched, %d created",
            receipt_id,
            outcome.matched_count,
            outcome.created_count,
        )

        touched = [self.inventory.refresh_burn_rate(item_id) for item_id in outcome.touched_ids]
        changes = self.planner.regenerate(touched)

        return ReconciliationResult(
            receipt_id=receipt_id,
            matched_items=outcome.matched_count,
            created_items=outcome.created_count,
            lines=outcome.lines,
            touched_item_ids=outcome.touched_ids,
            shopping_list_changes=changes,
        )

    def get_receipt(self, receipt_id: UUID | str) -> Receipt:
        """Load a receipt.

        Raises:
            NotFoundError: If the receipt does not exist
        """
        receipt_id = coerce_uuid(receipt_id, "Receipt")
        receipt = self.data_store.load_receipt(receipt_id)
        if receipt is None:
            raise NotFoundError("Receipt", receipt_id)
        return receipt

    def list_receipts(self) -> list[Receipt]:
        return self.data_store.list_receipts()

    # --- Inventory ---

    def add_item(self, name: str, quantity: float = 0.0, **fields: Any) -> ItemSnapshot:
        """Add an item; see InventoryManager.add_item for fields."""
        item = self.inventory.add_item(name, quantity, **fields)
        self.planner.regenerate([item])
        return self.projector.snapshot(item)

    def update_item(self, item_id: UUID | str, **changes: Any) -> ItemSnapshot:
        """Update editable fields and refresh the item's shopping list entry."""
        item = self.inventory.update_item(item_id, **changes)
        self.planner.regenerate([item])
        return self.projector.snapshot(item)

    def remove_item(self, item_id: UUID | str) -> InventoryItem:
        """Remove an item with its history and shopping list entries."""
        with self.planner.lock:
            return self.inventory.remove_item(item_id)

    def get_item(self, item_id: UUID | str) -> ItemSnapshot:
        return self.inventory.get_snapshot(item_id)

    def list_items(
        self,
        location: str | None = None,
        category: str | None = None,
        status: ItemStatus | None = None,
    ) -> list[ItemSnapshot]:
        return self.inventory.get_inventory(location, category, status)

    def record_manual_quantity_change(
        self,
        item_id: UUID | str,
        new_quantity: float,
        timestamp: datetime | None = None,
    ) -> ItemSnapshot:
        """Record an absolute quantity reading.

        The burn rate is re-estimated and the item's shopping list entry is
        brought up to date.
        """
        item = self.inventory.record_quantity_change(
            item_id, quantity=new_quantity, timestamp=timestamp
        )
        self.planner.regenerate([item])
        return self.projector.snapshot(item)

    def adjust_quantity(
        self,
        item_id: UUID | str,
        delta: float,
        timestamp: datetime | None = None,
    ) -> ItemSnapshot:
        """Add to (or, with a negative delta, consume from) an item's quantity."""
        item = self.inventory.record_quantity_change(item_id, delta=delta, timestamp=timestamp)
        self.planner.regenerate([item])
        return self.projector.snapshot(item)

    def get_history(self, item_id: UUID | str) -> list[ConsumptionObservation]:
        return self.inventory.get_history(item_id)

    def consumption_stats(self, item_id: UUID | str, days: int = 30) -> ConsumptionStats:
        return self.inventory.consumption_stats(item_id, days)

    def running_out_soon(self, days: float = 7) -> list[ItemSnapshot]:
        return self.inventory.get_running_out_soon(days)

    def purchase_history(self, item_id: UUID | str, limit: int = 50) -> list[PurchaseRecord]:
        return self.inventory.purchase_history(item_id, limit)

    # --- Shopping list ---

    def request_shopping_list_refresh(self) -> list[ShoppingListChange]:
        """Regenerate the shopping list from the whole inventory."""
        return self.planner.generate_list()

    def get_shopping_list(self, purchased: bool | None = None) -> list[ShoppingListItem]:
        return self.shopping_list.get_list(purchased)

    def add_shopping_entry(
        self,
        item_id: UUID | str,
        suggested_quantity: float | None = None,
        priority: Priority | None = None,
        notes: str | None = None,
    ) -> ShoppingListItem:
        """Put an item on the shopping list by hand; see ShoppingListManager.add_entry."""
        return self.shopping_list.add_entry(item_id, suggested_quantity, priority, notes)

    def update_shopping_entry(
        self,
        entry_id: UUID | str,
        suggested_quantity: float | None = None,
        priority: Priority | None = None,
        notes: str | None = None,
    ) -> ShoppingListItem:
        return self.shopping_list.update_entry(entry_id, suggested_quantity, priority, notes)

    def mark_purchased(self, entry_id: UUID | str, purchased: bool = True) -> ShoppingListItem:
        return self.shopping_list.mark_purchased(entry_id, purchased)

    def remove_shopping_entry(self, entry_id: UUID | str) -> ShoppingListItem:
        return self.shopping_list.remove_entry(entry_id)

    def clear_purchased(self) -> int:
        return self.shopping_list.clear_purchased()

    # --- Summary ---

    def request_summary(self, today: date | None = None) -> InventorySummary:
        """Summarize the household inventory as of now."""
        snapshots = [self.projector.snapshot(item) for item in self.data_store.load_inventory()]
        return self.summarizer.summarize(snapshots, today)

"""Inventory management for the restock engine."""

import math
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import pydantic

from .config import DefaultsConfig
from .data_store import DataStoreProtocol
from .errors import NotFoundError, ValidationError
from .estimator import ConsumptionEstimator
from .locking import KeyedLocks, retry_on_conflict
from .log_config import get_logger
from .models import (
    ConsumptionObservation,
    ConsumptionStats,
    InventoryItem,
    ItemSnapshot,
    ItemStatus,
    ObservationKind,
    PurchaseRecord,
    coerce_uuid,
)
from .projector import DepletionProjector

logger = get_logger(__name__)

_EDITABLE_FIELDS = (
    "name",
    "category",
    "location",
    "unit",
    "reorder_threshold",
    "auto_reorder_enabled",
)


def validation_error_from(error: pydantic.ValidationError) -> ValidationError:
    """Convert a pydantic error into the engine's ValidationError."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    message = first.get("msg", str(error))
    if field:
        message = f"{field}: {message}"
    return ValidationError(message, field)


class InventoryManager:
    """Manages household inventory tracking.

    Every write to an item holds that item's lock and is a revision-checked
    store write, retried with a fresh read on conflict.
    """

    def __init__(
        self,
        data_store: DataStoreProtocol,
        estimator: ConsumptionEstimator | None = None,
        projector: DepletionProjector | None = None,
        defaults: DefaultsConfig | None = None,
        locks: KeyedLocks | None = None,
        max_retries: int = 3,
    ):
        self.data_store = data_store
        self.estimator = estimator or ConsumptionEstimator()
        self.projector = projector or DepletionProjector()
        self.defaults = defaults or DefaultsConfig()
        self.locks = locks or KeyedLocks()
        self.max_retries = max_retries

    def add_item(
        self,
        name: str,
        quantity: float = 0.0,
        category: str | None = None,
        location: str | None = None,
        unit: str | None = None,
        reorder_threshold: float | None = None,
        auto_reorder_enabled: bool = False,
    ) -> InventoryItem:
        """Add an item to inventory.

        Args:
            name: Name of the item
            quantity: Quantity in stock
            category: Product category
            location: Storage location
            unit: Unit of measurement
            reorder_threshold: Per-item low window in days
            auto_reorder_enabled: Whether the item may be reordered automatically

        Returns:
            The created InventoryItem

        Raises:
            ValidationError: If a field value is invalid
        """
        now = datetime.now()
        try:
            item = InventoryItem(
                name=name,
                quantity=quantity,
                category=category or self.defaults.category,
                location=location or self.defaults.location,
                unit=unit or self.defaults.unit,
                reorder_threshold=reorder_threshold,
                auto_reorder_enabled=auto_reorder_enabled,
                last_updated=now,
                created_at=now,
            )
        except pydantic.ValidationError as e:
            raise validation_error_from(e) from e

        observation = ConsumptionObservation(
            item_id=item.id,
            quantity_after=item.quantity,
            timestamp=now,
            kind=ObservationKind.INITIAL,
        )
        stored = self.data_store.save_item(item, observation)
        logger.info("Added item '%s' (%s)", stored.name, stored.id)
        return stored

    def get_item(self, item_id: UUID | str) -> InventoryItem:
        """Get an item by id.

        Raises:
            NotFoundError: If the item does not exist
        """
        item_id = coerce_uuid(item_id, "Item")
        item = self.data_store.get_item(item_id)
        if item is None:
            raise NotFoundError("Item", item_id)
        return item

    def get_snapshot(self, item_id: UUID | str) -> ItemSnapshot:
        """Get an item with its projection."""
        return self.projector.snapshot(self.get_item(item_id))

    def get_inventory(
        self,
        location: str | None = None,
        category: str | None = None,
        status: ItemStatus | None = None,
    ) -> list[ItemSnapshot]:
        """Get inventory items with optional filters.

        Args:
            location: Filter by storage location
            category: Filter by category
            status: Filter by projected status

        Returns:
            Snapshots of matching items, ordered by name
        """
        inventory = self.data_store.load_inventory()

        if location:
            inventory = [i for i in inventory if i.location.lower() == location.lower()]
        if category:
            inventory = [i for i in inventory if i.category.lower() == category.lower()]

        snapshots = [self.projector.snapshot(item) for item in inventory]
        if status:
            snapshots = [s for s in snapshots if s.status == status]

        return sorted(snapshots, key=lambda s: s.item.name.lower())

    def update_item(self, item_id: UUID | str, **changes: Any) -> InventoryItem:
        """Update editable item fields.

        Quantity is not editable here; use record_quantity_change so the
        change is observed.

        Args:
            item_id: UUID of item
            **changes: New values for name, category, location, unit,
                reorder_threshold or auto_reorder_enabled

        Returns:
            Updated item

        Raises:
            ValidationError: If a field is unknown or a value is invalid
            NotFoundError: If the item does not exist
        """
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationError(f"Field '{field}' cannot be updated", field)

        item_id = coerce_uuid(item_id, "Item")

        def attempt() -> InventoryItem:
            item = self.get_item(item_id)
            data = item.model_dump()
            data.update(changes)
            data["last_updated"] = datetime.now()
            try:
                updated = InventoryItem.model_validate(data)
            except pydantic.ValidationError as e:
                raise validation_error_from(e) from e
            return self.data_store.save_item(updated)

        with self.locks.hold(item_id):
            return retry_on_conflict(attempt, self.max_retries)

    def remove_item(self, item_id: UUID | str) -> InventoryItem:
        """Remove an item with its history and shopping list entries.

        Returns:
            The removed item

        Raises:
            NotFoundError: If the item does not exist
        """
        item_id = coerce_uuid(item_id, "Item")
        with self.locks.hold(item_id):
            item = self.get_item(item_id)
            if not self.data_store.delete_item(item_id):
                raise NotFoundError("Item", item_id)
        logger.info("Removed item '%s' (%s)", item.name, item.id)
        return item

    def record_quantity_change(
        self,
        item_id: UUID | str,
        quantity: float | None = None,
        delta: float | None = None,
        timestamp: datetime | None = None,
    ) -> InventoryItem:
        """Record a manual quantity reading and re-estimate the burn rate.

        Args:
            item_id: UUID of item
            quantity: New absolute quantity
            delta: Amount to add (negative to consume); the result floors at 0
            timestamp: When the reading was taken; defaults to now

        Returns:
            Updated item

        Raises:
            ValidationError: If neither or both of quantity and delta are
                given, either is not finite, or quantity is negative
            NotFoundError: If the item does not exist
        """
        if (quantity is None) == (delta is None):
            raise ValidationError("Provide exactly one of quantity or delta", "quantity")
        if not math.isfinite(quantity if quantity is not None else delta):
            raise ValidationError("Quantity must be a finite number", "quantity")
        if quantity is not None and quantity < 0:
            raise ValidationError("Quantity must not be negative", "quantity")

        item_id = coerce_uuid(item_id, "Item")
        timestamp = timestamp or datetime.now()

        def attempt() -> InventoryItem:
            item = self.get_item(item_id)
            if quantity is not None:
                new_quantity = quantity
            else:
                new_quantity = max(0.0, item.quantity + delta)

            observation = ConsumptionObservation(
                item_id=item.id,
                quantity_after=new_quantity,
                timestamp=timestamp,
                kind=ObservationKind.MANUAL,
            )
            history = self.data_store.load_observations(item.id) + [observation]
            updated = item.model_copy(
                update={
                    "quantity": new_quantity,
                    "burn_rate": self.estimator.estimate_burn_rate(history),
                    "last_updated": timestamp,
                }
            )
            return self.data_store.save_item(updated, observation)

        with self.locks.hold(item_id):
            stored = retry_on_conflict(attempt, self.max_retries)

        logger.debug(
            "Quantity of '%s' now %s (burn rate %s)", stored.name, stored.quantity, stored.burn_rate
        )
        return stored

    def refresh_burn_rate(self, item_id: UUID | str) -> InventoryItem:
        """Re-estimate an item's burn rate from its stored history.

        Returns:
            The item, rewritten only when the estimate changed
        """
        item_id = coerce_uuid(item_id, "Item")

        def attempt() -> InventoryItem:
            item = self.get_item(item_id)
            history = self.data_store.load_observations(item.id)
            burn_rate = self.estimator.estimate_burn_rate(history)
            if burn_rate == item.burn_rate:
                return item
            return self.data_store.save_item(item.model_copy(update={"burn_rate": burn_rate}))

        with self.locks.hold(item_id):
            return retry_on_conflict(attempt, self.max_retries)

    def get_history(self, item_id: UUID | str) -> list[ConsumptionObservation]:
        """Get an item's observations, oldest first."""
        item = self.get_item(item_id)
        return self.data_store.load_observations(item.id)

    def consumption_stats(
        self, item_id: UUID | str, days: int = 30, now: datetime | None = None
    ) -> ConsumptionStats:
        """Summarize consumption and restocking over a look-back window.

        Args:
            item_id: UUID of item
            days: Window length in days
            now: End of the window; defaults to now

        Returns:
            ConsumptionStats for the window
        """
        if days <= 0:
            raise ValidationError("Days must be positive", "days")

        history = self.get_history(item_id)
        now = now or datetime.now()
        since = now - timedelta(days=days)

        stats = ConsumptionStats(item_id=coerce_uuid(item_id, "Item"), days=days)
        consume_events = 0
        previous: ConsumptionObservation | None = None

        for observation in history:
            if observation.timestamp > since:
                stats.total_events += 1
                if stats.first_event is None:
                    stats.first_event = observation.timestamp
                stats.last_event = observation.timestamp

                if previous is not None:
                    change = observation.quantity_after - previous.quantity_after
                    if change < 0:
                        stats.total_consumed += -change
                        consume_events += 1
                    elif change > 0:
                        stats.total_restocked += change
            previous = observation

        if consume_events:
            stats.avg_consumption_per_event = stats.total_consumed / consume_events
        return stats

    def purchase_history(self, item_id: UUID | str, limit: int = 50) -> list[PurchaseRecord]:
        """Purchases of an item from reconciled receipts, newest first.

        Args:
            item_id: UUID of item
            limit: Most records to return

        Raises:
            NotFoundError: If the item does not exist
        """
        if limit <= 0:
            raise ValidationError("Limit must be positive", "limit")

        item = self.get_item(item_id)
        records = []
        for receipt in self.data_store.list_receipts():
            if not receipt.processed:
                continue
            purchased_at = receipt.purchased_at or receipt.processed_at or receipt.created_at
            for line in receipt.items:
                if line.matched_inventory_id == item.id:
                    records.append(
                        PurchaseRecord(
                            receipt_id=receipt.id,
                            purchased_at=purchased_at,
                            quantity=line.quantity,
                            unit=line.unit,
                            price=line.price,
                            store_name=receipt.store_name,
                        )
                    )

        records.sort(key=lambda r: r.purchased_at.timestamp(), reverse=True)
        return records[:limit]

    def get_running_out_soon(self, days: float = 7) -> list[ItemSnapshot]:
        """Items projected to run out within a number of days, soonest first."""
        snapshots = [
            self.projector.snapshot(item) for item in self.data_store.load_inventory()
        ]
        soon = [s for s in snapshots if s.projection.is_finite and s.days_remaining <= days]
        return sorted(soon, key=lambda s: s.days_remaining)

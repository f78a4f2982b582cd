"""Shopping list user operations."""

import math
from datetime import datetime
from uuid import UUID

from .data_store import DataStoreProtocol
from .errors import NotFoundError, ValidationError
from .log_config import get_logger
from .models import Priority, ShoppingListItem, coerce_uuid
from .planner import ReplenishmentPlanner

logger = get_logger(__name__)


class ShoppingListManager:
    """Reads the shopping list and applies user actions to it.

    Writes hold the planner's lock so a user action and a regeneration
    never overwrite each other.
    """

    def __init__(self, data_store: DataStoreProtocol, planner: ReplenishmentPlanner | None = None):
        """Initialize shopping list manager.

        Args:
            data_store: Store holding the list
            planner: Planner whose lock and quantities entries share
        """
        self.data_store = data_store
        self.planner = planner or ReplenishmentPlanner(data_store)
        self.lock = self.planner.lock

    def get_list(self, purchased: bool | None = None) -> list[ShoppingListItem]:
        """Get shopping list entries.

        Args:
            purchased: Only purchased (True) or only active (False) entries;
                       None returns everything

        Returns:
            Entries ordered by priority, then name
        """
        entries = self.data_store.load_shopping_list()
        if purchased is not None:
            entries = [e for e in entries if e.purchased == purchased]

        rank = {"critical": 0, "high": 1, "medium": 2}
        return sorted(entries, key=lambda e: (rank[e.priority.value], e.item_name.lower()))

    def get_entry(self, entry_id: UUID | str) -> ShoppingListItem:
        """Get one entry.

        Raises:
            NotFoundError: If no entry has this id
        """
        entry_id = coerce_uuid(entry_id, "Shopping list entry")
        for entry in self.data_store.load_shopping_list():
            if entry.id == entry_id:
                return entry
        raise NotFoundError("Shopping list entry", entry_id)

    def add_entry(
        self,
        item_id: UUID | str,
        suggested_quantity: float | None = None,
        priority: Priority | None = None,
        notes: str | None = None,
    ) -> ShoppingListItem:
        """Put an item on the list by hand.

        When the item already has an active entry, that entry is updated
        instead. Hand-made entries keep their quantity and priority through
        regeneration and stay on the list until purchased or removed.

        Args:
            item_id: Inventory item to buy
            suggested_quantity: How much to buy; defaults to the planner's
                                suggestion
            priority: Defaults to the item's current urgency, else medium
            notes: Free-text note

        Raises:
            NotFoundError: If the item does not exist
            ValidationError: If the quantity is not positive
        """
        item_id = coerce_uuid(item_id, "Item")
        _check_quantity(suggested_quantity)

        with self.lock:
            item = self.data_store.get_item(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)

            entries = self.data_store.load_shopping_list()
            for entry in entries:
                if entry.inventory_item_id == item.id and not entry.purchased:
                    _apply_changes(entry, suggested_quantity, priority, notes)
                    entry.manual = True
                    break
            else:
                if suggested_quantity is None:
                    suggested_quantity = self.planner.suggested_quantity(item)
                if priority is None:
                    projector = self.planner.projector
                    priority = projector.priority_for(projector.project_item(item))
                entry = ShoppingListItem(
                    inventory_item_id=item.id,
                    item_name=item.name,
                    category=item.category,
                    suggested_quantity=suggested_quantity,
                    unit=item.unit,
                    priority=priority or Priority.MEDIUM,
                    notes=_clean_notes(notes),
                    manual=True,
                )
                entries.append(entry)

            self.data_store.save_shopping_list(entries)

        logger.info("Added '%s' to the shopping list by hand", entry.item_name)
        return entry

    def update_entry(
        self,
        entry_id: UUID | str,
        suggested_quantity: float | None = None,
        priority: Priority | None = None,
        notes: str | None = None,
    ) -> ShoppingListItem:
        """Change an entry's quantity, priority or notes.

        Setting the quantity or priority pins the entry so regeneration no
        longer overrides it. An empty note clears the note.

        Raises:
            NotFoundError: If no entry has this id
            ValidationError: If nothing is changed or the quantity is not positive
        """
        entry_id = coerce_uuid(entry_id, "Shopping list entry")
        if suggested_quantity is None and priority is None and notes is None:
            raise ValidationError("No updates specified")
        _check_quantity(suggested_quantity)

        with self.lock:
            entries = self.data_store.load_shopping_list()
            for entry in entries:
                if entry.id == entry_id:
                    break
            else:
                raise NotFoundError("Shopping list entry", entry_id)

            _apply_changes(entry, suggested_quantity, priority, notes)
            if suggested_quantity is not None or priority is not None:
                entry.manual = True
            self.data_store.save_shopping_list(entries)
            return entry

    def mark_purchased(self, entry_id: UUID | str, purchased: bool = True) -> ShoppingListItem:
        """Mark an entry purchased, or back to active.

        Reactivating leaves the entry purchased when its item already has
        another active entry.

        Raises:
            NotFoundError: If no entry has this id
        """
        entry_id = coerce_uuid(entry_id, "Shopping list entry")

        with self.lock:
            entries = self.data_store.load_shopping_list()
            for entry in entries:
                if entry.id == entry_id:
                    break
            else:
                raise NotFoundError("Shopping list entry", entry_id)

            if not purchased and any(
                other.inventory_item_id == entry.inventory_item_id
                and not other.purchased
                and other.id != entry.id
                for other in entries
            ):
                logger.info("Entry %s already has an active replacement", entry.id)
                return entry

            now = datetime.now()
            entry.purchased = purchased
            entry.purchased_at = now if purchased else None
            entry.updated_at = now
            self.data_store.save_shopping_list(entries)
            return entry

    def remove_entry(self, entry_id: UUID | str) -> ShoppingListItem:
        """Remove an entry from the list.

        Raises:
            NotFoundError: If no entry has this id
        """
        entry_id = coerce_uuid(entry_id, "Shopping list entry")

        with self.lock:
            entries = self.data_store.load_shopping_list()
            for i, entry in enumerate(entries):
                if entry.id == entry_id:
                    removed = entries.pop(i)
                    self.data_store.save_shopping_list(entries)
                    return removed

        raise NotFoundError("Shopping list entry", entry_id)

    def clear_purchased(self) -> int:
        """Remove all purchased entries.

        Returns:
            Number of entries removed
        """
        with self.lock:
            entries = self.data_store.load_shopping_list()
            remaining = [e for e in entries if not e.purchased]
            count = len(entries) - len(remaining)
            if count:
                self.data_store.save_shopping_list(remaining)
        return count


def _check_quantity(quantity: float | None) -> None:
    if quantity is not None and not (math.isfinite(quantity) and quantity > 0):
        raise ValidationError("Suggested quantity must be positive", "suggested_quantity")


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    return notes.strip() or None


def _apply_changes(
    entry: ShoppingListItem,
    suggested_quantity: float | None,
    priority: Priority | None,
    notes: str | None,
) -> None:
    if suggested_quantity is not None:
        entry.suggested_quantity = suggested_quantity
    if priority is not None:
        entry.priority = priority
    if notes is not None:
        entry.notes = _clean_notes(notes)
    entry.updated_at = datetime.now()

"""Shopping list replenishment planning."""

import math
import threading
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from .config import ReplenishmentConfig
from .data_store import DataStoreProtocol
from .estimator import last_nonzero_quantity
from .log_config import get_logger
from .models import (
    InventoryItem,
    ShoppingChangeAction,
    ShoppingListChange,
    ShoppingListItem,
)
from .projector import DepletionProjector

logger = get_logger(__name__)


def round_up(quantity: float, granularity: float) -> float:
    """Round a quantity up to a multiple of the granularity, never below one step."""
    steps = math.ceil(round(quantity / granularity, 9))
    return max(steps, 1) * granularity


class ReplenishmentPlanner:
    """Keeps at most one active shopping list entry per low or critical item."""

    def __init__(
        self,
        data_store: DataStoreProtocol,
        projector: DepletionProjector | None = None,
        config: ReplenishmentConfig | None = None,
    ):
        """Initialize the planner.

        Args:
            data_store: Store holding inventory, observations and the list
            projector: Status source for items
            config: Look-ahead window and unit granularity
        """
        self.data_store = data_store
        self.projector = projector or DepletionProjector()
        self.config = config or ReplenishmentConfig()
        self.lock = threading.Lock()

    def suggested_quantity(self, item: InventoryItem) -> float:
        """How much to buy to cover the look-ahead window.

        With an unknown burn rate this falls back to the last known non-zero
        quantity of the item.
        """
        granularity = self.config.granularity_for(item.unit)

        if item.burn_rate is not None:
            needed = item.burn_rate * self.config.lookahead_days
        else:
            history = self.data_store.load_observations(item.id)
            needed = last_nonzero_quantity(history) or item.quantity

        return round_up(needed, granularity)

    def generate_list(self) -> list[ShoppingListChange]:
        """Regenerate the list from the whole inventory."""
        return self.regenerate(None)

    def regenerate(self, items: Sequence[InventoryItem] | None = None) -> list[ShoppingListChange]:
        """Bring shopping list entries in line with item statuses.

        Args:
            items: Items to reconsider, or None for a full scan (which also
                   drops entries whose item no longer exists)

        Returns:
            Changes applied; empty when the list was already current
        """
        full_scan = items is None

        with self.lock:
            if items is None:
                items = self.data_store.load_inventory()
            else:
                # Re-read so a slower caller never plans from a stale copy.
                current = []
                for item in items:
                    fresh = self.data_store.get_item(item.id)
                    if fresh is not None:
                        current.append(fresh)
                items = current

            entries = self.data_store.load_shopping_list()
            active: dict[UUID, ShoppingListItem] = {
                entry.inventory_item_id: entry for entry in entries if not entry.purchased
            }
            changes: list[ShoppingListChange] = []
            removed: set[UUID] = set()
            now = datetime.now()

            for item in items:
                projection = self.projector.project_item(item)
                priority = self.projector.priority_for(projection)
                entry = active.get(item.id)

                if priority is None and (entry is None or not entry.manual):
                    if entry is not None:
                        removed.add(entry.id)
                        changes.append(
                            ShoppingListChange(action=ShoppingChangeAction.REMOVED, entry=entry)
                        )
                    continue

                quantity = self.suggested_quantity(item)
                if entry is None:
                    entry = ShoppingListItem(
                        inventory_item_id=item.id,
                        item_name=item.name,
                        category=item.category,
                        suggested_quantity=quantity,
                        unit=item.unit,
                        priority=priority,
                        added_at=now,
                        updated_at=now,
                    )
                    entries.append(entry)
                    active[item.id] = entry
                    changes.append(
                        ShoppingListChange(action=ShoppingChangeAction.CREATED, entry=entry)
                    )
                else:
                    if entry.manual:
                        # hand-set quantity and priority stand
                        quantity, priority = entry.suggested_quantity, entry.priority
                    if (
                        entry.suggested_quantity == quantity
                        and entry.priority == priority
                        and entry.item_name == item.name
                        and entry.category == item.category
                        and entry.unit == item.unit
                    ):
                        continue
                    entry.suggested_quantity = quantity
                    entry.priority = priority
                    entry.item_name = item.name
                    entry.category = item.category
                    entry.unit = item.unit
                    entry.updated_at = now
                    changes.append(
                        ShoppingListChange(action=ShoppingChangeAction.UPDATED, entry=entry)
                    )

            if full_scan:
                known = {item.id for item in items}
                for item_id, entry in active.items():
                    if item_id not in known and entry.id not in removed:
                        removed.add(entry.id)
                        changes.append(
                            ShoppingListChange(action=ShoppingChangeAction.REMOVED, entry=entry)
                        )

            if changes:
                self.data_store.save_shopping_list(
                    [entry for entry in entries if entry.id not in removed]
                )
                logger.info("Shopping list regenerated: %d change(s)", len(changes))

            return changes

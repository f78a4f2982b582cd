"""Data persistence for the restock engine.

This module provides data persistence with support for JSON (default) or SQLite backends.
Use create_data_store() to get the appropriate backend based on configuration.
"""

import json
import os
import tempfile
import threading
from collections.abc import Sequence
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol
from uuid import UUID

from .errors import ConcurrencyConflictError
from .log_config import get_logger
from .models import ConsumptionObservation, InventoryItem, Receipt, ShoppingListItem

logger = get_logger(__name__)


class BackendType(str, Enum):
    """Data storage backend types."""

    JSON = "json"
    SQLITE = "sqlite"


class DataStoreProtocol(Protocol):
    """Protocol defining the data store interface.

    Item writes are compare-and-swap on ``revision``: the stored revision must
    equal the revision of the item passed in (0 for an item that must not yet
    exist). The stored copy gets ``revision + 1`` and is returned.
    """

    def load_inventory(self) -> list[InventoryItem]: ...
    def get_item(self, item_id: UUID) -> InventoryItem | None: ...
    def save_item(
        self, item: InventoryItem, observation: ConsumptionObservation | None = None
    ) -> InventoryItem: ...
    def delete_item(self, item_id: UUID) -> bool: ...
    def load_observations(self, item_id: UUID) -> list[ConsumptionObservation]: ...
    def append_observation(self, observation: ConsumptionObservation) -> None: ...
    def save_receipt(self, receipt: Receipt) -> UUID: ...
    def load_receipt(self, receipt_id: str | UUID) -> Receipt | None: ...
    def list_receipts(self) -> list[Receipt]: ...
    def load_shopping_list(self) -> list[ShoppingListItem]: ...
    def save_shopping_list(self, entries: list[ShoppingListItem]) -> None: ...
    def commit_reconciliation(
        self,
        receipt: Receipt,
        items: Sequence[InventoryItem],
        observations: Sequence[ConsumptionObservation],
    ) -> list[InventoryItem]: ...


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for our data types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)


def check_revision(item: InventoryItem, stored: InventoryItem | None) -> None:
    """Raise ConcurrencyConflictError unless the stored revision matches."""
    actual = stored.revision if stored is not None else None
    if item.revision == 0:
        if stored is not None:
            raise ConcurrencyConflictError(item.id, item.revision, actual)
    elif actual != item.revision:
        raise ConcurrencyConflictError(item.id, item.revision, actual)


class DataStore:
    """Manages JSON file persistence for inventory data.

    Every file is rewritten through a temporary file and ``os.replace`` so a
    reader never sees a partial file. A store-wide lock serializes
    read-modify-write sequences within the process.
    """

    def __init__(self, data_dir: Path | None = None):
        """Initialize data store.

        Args:
            data_dir: Directory for data files. Defaults to ./data
        """
        self.data_dir = data_dir or Path.cwd() / "data"
        self._lock = threading.RLock()
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "receipts").mkdir(exist_ok=True)

    def _inventory_path(self) -> Path:
        """Path to inventory file."""
        return self.data_dir / "inventory.json"

    def _observations_path(self) -> Path:
        """Path to observation log file."""
        return self.data_dir / "observations.json"

    def _shopping_list_path(self) -> Path:
        """Path to shopping list file."""
        return self.data_dir / "shopping_list.json"

    def _receipt_path(self, receipt_id: str | UUID) -> Path:
        """Path to a receipt file."""
        return self.data_dir / "receipts" / f"{receipt_id}.json"

    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        with open(path) as f:
            return json.load(f)

    def _write_json(self, path: Path, data: Any) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, cls=JSONEncoder, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # --- Inventory Operations ---

    def load_inventory(self) -> list[InventoryItem]:
        """Load inventory items.

        Returns:
            List of InventoryItem
        """
        with self._lock:
            data = self._read_json(self._inventory_path(), [])
        return [InventoryItem(**item) for item in data]

    def _save_inventory(self, items: list[InventoryItem]) -> None:
        self._write_json(self._inventory_path(), [i.model_dump() for i in items])

    def get_item(self, item_id: UUID) -> InventoryItem | None:
        """Get a specific item by ID.

        Args:
            item_id: UUID of the item

        Returns:
            InventoryItem if found, None otherwise
        """
        for item in self.load_inventory():
            if item.id == item_id:
                return item
        return None

    def save_item(
        self, item: InventoryItem, observation: ConsumptionObservation | None = None
    ) -> InventoryItem:
        """Write one item with a revision check.

        Args:
            item: Item as read (revision unchanged) with new field values
            observation: Optional observation appended with the write

        Returns:
            The stored item with its new revision

        Raises:
            ConcurrencyConflictError: If the stored revision differs
        """
        with self._lock:
            inventory = self.load_inventory()
            by_id = {existing.id: existing for existing in inventory}
            check_revision(item, by_id.get(item.id))

            # Observation first: an interrupted write leaves at most an extra reading
            if observation is not None:
                self.append_observation(observation)

            stored = item.model_copy(update={"revision": item.revision + 1})
            if item.id in by_id:
                inventory = [stored if i.id == item.id else i for i in inventory]
            else:
                inventory.append(stored)
            self._save_inventory(inventory)
            return stored

    def delete_item(self, item_id: UUID) -> bool:
        """Delete an item with its observations and shopping list entries.

        Returns:
            True if the item existed
        """
        with self._lock:
            inventory = self.load_inventory()
            remaining = [item for item in inventory if item.id != item_id]
            if len(remaining) == len(inventory):
                return False
            self._save_inventory(remaining)

            observations = self._load_all_observations()
            self._save_observations([o for o in observations if o.item_id != item_id])

            entries = self.load_shopping_list()
            self.save_shopping_list([e for e in entries if e.inventory_item_id != item_id])
            return True

    # --- Observation Operations ---

    def _load_all_observations(self) -> list[ConsumptionObservation]:
        data = self._read_json(self._observations_path(), [])
        return [ConsumptionObservation(**o) for o in data]

    def _save_observations(self, observations: list[ConsumptionObservation]) -> None:
        self._write_json(self._observations_path(), [o.model_dump() for o in observations])

    def load_observations(self, item_id: UUID) -> list[ConsumptionObservation]:
        """Load an item's observations, oldest first."""
        with self._lock:
            observations = self._load_all_observations()
        history = [o for o in observations if o.item_id == item_id]
        return sorted(history, key=lambda o: o.timestamp)

    def append_observation(self, observation: ConsumptionObservation) -> None:
        """Append an observation to the log."""
        with self._lock:
            observations = self._load_all_observations()
            observations.append(observation)
            self._save_observations(observations)

    # --- Receipt Operations ---

    def save_receipt(self, receipt: Receipt) -> UUID:
        """Save a receipt.

        Args:
            receipt: Receipt to save

        Returns:
            Receipt ID
        """
        with self._lock:
            self._write_json(self._receipt_path(receipt.id), receipt.model_dump())
        return receipt.id

    def load_receipt(self, receipt_id: str | UUID) -> Receipt | None:
        """Load a receipt by ID.

        Args:
            receipt_id: Receipt ID

        Returns:
            Receipt if found, None otherwise
        """
        path = self._receipt_path(receipt_id)
        with self._lock:
            data = self._read_json(path, None)
        if data is None:
            return None
        return Receipt(**data)

    def list_receipts(self) -> list[Receipt]:
        """List all receipts, newest first."""
        receipts = []
        with self._lock:
            for path in (self.data_dir / "receipts").glob("*.json"):
                with open(path) as f:
                    receipts.append(Receipt(**json.load(f)))

        return sorted(receipts, key=lambda r: r.created_at, reverse=True)

    # --- Shopping List Operations ---

    def load_shopping_list(self) -> list[ShoppingListItem]:
        """Load all shopping list entries."""
        with self._lock:
            data = self._read_json(self._shopping_list_path(), [])
        return [ShoppingListItem(**entry) for entry in data]

    def save_shopping_list(self, entries: list[ShoppingListItem]) -> None:
        """Replace the shopping list."""
        with self._lock:
            self._write_json(self._shopping_list_path(), [e.model_dump() for e in entries])

    # --- Reconciliation ---

    def commit_reconciliation(
        self,
        receipt: Receipt,
        items: Sequence[InventoryItem],
        observations: Sequence[ConsumptionObservation],
    ) -> list[InventoryItem]:
        """Write a reconciled receipt with its item updates and observations.

        All revisions are checked before anything is written. The receipt is
        written last, so a receipt marked processed always has its inventory
        changes on disk.

        Returns:
            Stored items with their new revisions

        Raises:
            ConcurrencyConflictError: If any item changed since it was read
        """
        with self._lock:
            inventory = self.load_inventory()
            by_id = {existing.id: existing for existing in inventory}
            for item in items:
                check_revision(item, by_id.get(item.id))

            stored = [item.model_copy(update={"revision": item.revision + 1}) for item in items]
            stored_by_id = {item.id: item for item in stored}
            merged = [stored_by_id.pop(i.id, i) for i in inventory]
            merged.extend(stored_by_id.values())
            self._save_inventory(merged)

            log = self._load_all_observations()
            log.extend(observations)
            self._save_observations(log)

            self.save_receipt(receipt)
            logger.debug("Committed receipt %s (%d items)", receipt.id, len(stored))
            return stored


def create_data_store(
    backend: BackendType = BackendType.JSON,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> DataStoreProtocol:
    """Create a data store with the specified backend.

    Args:
        backend: Which backend to use (json or sqlite)
        data_dir: Directory for data files (used by JSON backend, also used
                  as base path for SQLite if db_path not specified)
        db_path: Path to SQLite database file (only used by SQLite backend)

    Returns:
        A DataStore or SQLiteStore instance

    Example:
        # Use JSON backend (default)
        store = create_data_store()

        # Use SQLite with custom path
        store = create_data_store(
            BackendType.SQLITE,
            db_path=Path("./my_data/restock.db")
        )
    """
    if backend == BackendType.SQLITE:
        from .sqlite_store import SQLiteStore

        if db_path is None and data_dir is not None:
            db_path = data_dir / "restock.db"

        return SQLiteStore(db_path=db_path)
    else:
        return DataStore(data_dir=data_dir)

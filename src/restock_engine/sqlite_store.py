"""SQLite-based data persistence for the restock engine.

This module provides SQLite database storage as an alternative to JSON files.
It implements the same interface as DataStore for seamless switching.
"""

import sqlite3
from collections.abc import Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from uuid import UUID

from .errors import ConcurrencyConflictError
from .log_config import get_logger
from .models import (
    ConsumptionObservation,
    InventoryItem,
    ObservationKind,
    Priority,
    Receipt,
    ReceiptItem,
    ReceiptSource,
    ShoppingListItem,
)

logger = get_logger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _uuid(value: str | None) -> UUID | None:
    return UUID(value) if value else None


class SQLiteStore:
    """Manages SQLite database persistence for inventory data."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | None = None):
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file. Defaults to ./data/restock.db
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "restock.db"
        self.db_path = db_path
        self._ensure_directories()
        self._init_database()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_connection(self):
        """Get a database connection; commits on success, rolls back on error."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema if not exists."""
        with self._get_connection() as conn:
            conn.executescript("""
                -- Schema version tracking
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                );

                -- Inventory items
                CREATE TABLE IF NOT EXISTS inventory (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'Uncategorized',
                    location TEXT NOT NULL DEFAULT 'Pantry',
                    quantity REAL NOT NULL DEFAULT 0.0,
                    unit TEXT NOT NULL DEFAULT 'count',
                    burn_rate REAL,
                    reorder_threshold REAL,
                    auto_reorder_enabled INTEGER NOT NULL DEFAULT 0,
                    last_updated TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    revision INTEGER NOT NULL DEFAULT 1
                );

                -- Quantity observations
                CREATE TABLE IF NOT EXISTS observations (
                    id TEXT PRIMARY KEY,
                    item_id TEXT NOT NULL REFERENCES inventory(id) ON DELETE CASCADE,
                    quantity_after REAL NOT NULL,
                    timestamp TEXT NOT NULL,
                    kind TEXT NOT NULL DEFAULT 'manual',
                    receipt_id TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_observations_item
                    ON observations(item_id, timestamp);

                -- Receipts
                CREATE TABLE IF NOT EXISTS receipts (
                    id TEXT PRIMARY KEY,
                    source TEXT NOT NULL,
                    store_name TEXT,
                    purchased_at TEXT,
                    total_amount REAL,
                    processed INTEGER NOT NULL DEFAULT 0,
                    processed_at TEXT,
                    created_at TEXT NOT NULL
                );

                -- Receipt line items
                CREATE TABLE IF NOT EXISTS receipt_items (
                    receipt_id TEXT NOT NULL REFERENCES receipts(id) ON DELETE CASCADE,
                    line_index INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    quantity REAL NOT NULL DEFAULT 1.0,
                    unit TEXT,
                    price REAL,
                    category TEXT,
                    matched_inventory_id TEXT,
                    PRIMARY KEY (receipt_id, line_index)
                );

                -- Shopping list entries
                CREATE TABLE IF NOT EXISTS shopping_list (
                    id TEXT PRIMARY KEY,
                    inventory_item_id TEXT NOT NULL,
                    item_name TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'Uncategorized',
                    suggested_quantity REAL NOT NULL,
                    unit TEXT NOT NULL DEFAULT 'count',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    purchased INTEGER NOT NULL DEFAULT 0,
                    purchased_at TEXT,
                    notes TEXT,
                    manual INTEGER NOT NULL DEFAULT 0,
                    added_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                -- Record schema version
                INSERT OR IGNORE INTO schema_version (version) VALUES (1);
            """)

    # --- Inventory Operations ---

    def _row_to_item(self, row: sqlite3.Row) -> InventoryItem:
        return InventoryItem(
            id=UUID(row["id"]),
            name=row["name"],
            category=row["category"],
            location=row["location"],
            quantity=row["quantity"],
            unit=row["unit"],
            burn_rate=row["burn_rate"],
            reorder_threshold=row["reorder_threshold"],
            auto_reorder_enabled=bool(row["auto_reorder_enabled"]),
            last_updated=datetime.fromisoformat(row["last_updated"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            revision=row["revision"],
        )

    def load_inventory(self) -> list[InventoryItem]:
        """Load inventory items.

        Returns:
            List of InventoryItem ordered by name
        """
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM inventory ORDER BY name").fetchall()
            return [self._row_to_item(row) for row in rows]

    def get_item(self, item_id: UUID) -> InventoryItem | None:
        """Get a specific item by ID.

        Args:
            item_id: UUID of the item

        Returns:
            InventoryItem if found, None otherwise
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM inventory WHERE id = ?", (str(item_id),)
            ).fetchone()
            return self._row_to_item(row) if row else None

    def _write_item(self, conn: sqlite3.Connection, item: InventoryItem) -> InventoryItem:
        """Compare-and-swap one item inside an open transaction."""
        stored = item.model_copy(update={"revision": item.revision + 1})
        values = (
            stored.name,
            stored.category,
            stored.location,
            stored.quantity,
            stored.unit,
            stored.burn_rate,
            stored.reorder_threshold,
            int(stored.auto_reorder_enabled),
            stored.last_updated.isoformat(),
            stored.created_at.isoformat(),
            stored.revision,
        )

        if item.revision == 0:
            try:
                conn.execute(
                    """
                    INSERT INTO inventory
                    (name, category, location, quantity, unit, burn_rate, reorder_threshold,
                     auto_reorder_enabled, last_updated, created_at, revision, id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (*values, str(item.id)),
                )
            except sqlite3.IntegrityError as e:
                actual = self._current_revision(conn, item.id)
                raise ConcurrencyConflictError(item.id, item.revision, actual) from e
            return stored

        cursor = conn.execute(
            """
            UPDATE inventory SET
                name = ?, category = ?, location = ?, quantity = ?, unit = ?,
                burn_rate = ?, reorder_threshold = ?, auto_reorder_enabled = ?,
                last_updated = ?, created_at = ?, revision = ?
            WHERE id = ? AND revision = ?
            """,
            (*values, str(item.id), item.revision),
        )
        if cursor.rowcount == 0:
            actual = self._current_revision(conn, item.id)
            raise ConcurrencyConflictError(item.id, item.revision, actual)
        return stored

    def _current_revision(self, conn: sqlite3.Connection, item_id: UUID) -> int | None:
        row = conn.execute(
            "SELECT revision FROM inventory WHERE id = ?", (str(item_id),)
        ).fetchone()
        return row["revision"] if row else None

    def save_item(
        self, item: InventoryItem, observation: ConsumptionObservation | None = None
    ) -> InventoryItem:
        """Write one item with a revision check.

        Args:
            item: Item as read (revision unchanged) with new field values
            observation: Optional observation written in the same transaction

        Returns:
            The stored item with its new revision

        Raises:
            ConcurrencyConflictError: If the stored revision differs
        """
        with self._get_connection() as conn:
            stored = self._write_item(conn, item)
            if observation is not None:
                self._insert_observation(conn, observation)
            return stored

    def delete_item(self, item_id: UUID) -> bool:
        """Delete an item with its observations and shopping list entries.

        Returns:
            True if the item existed
        """
        with self._get_connection() as conn:
            conn.execute(
                "DELETE FROM shopping_list WHERE inventory_item_id = ?", (str(item_id),)
            )
            cursor = conn.execute("DELETE FROM inventory WHERE id = ?", (str(item_id),))
            return cursor.rowcount > 0

    # --- Observation Operations ---

    def _insert_observation(
        self, conn: sqlite3.Connection, observation: ConsumptionObservation
    ) -> None:
        conn.execute(
            """
            INSERT INTO observations
            (id, item_id, quantity_after, timestamp, kind, receipt_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                str(observation.id),
                str(observation.item_id),
                observation.quantity_after,
                observation.timestamp.isoformat(),
                observation.kind.value,
                str(observation.receipt_id) if observation.receipt_id else None,
            ),
        )

    def load_observations(self, item_id: UUID) -> list[ConsumptionObservation]:
        """Load an item's observations, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM observations WHERE item_id = ? ORDER BY timestamp",
                (str(item_id),),
            ).fetchall()

            return [
                ConsumptionObservation(
                    id=UUID(row["id"]),
                    item_id=UUID(row["item_id"]),
                    quantity_after=row["quantity_after"],
                    timestamp=datetime.fromisoformat(row["timestamp"]),
                    kind=ObservationKind(row["kind"]),
                    receipt_id=_uuid(row["receipt_id"]),
                )
                for row in rows
            ]

    def append_observation(self, observation: ConsumptionObservation) -> None:
        """Append an observation to the log."""
        with self._get_connection() as conn:
            self._insert_observation(conn, observation)

    # --- Receipt Operations ---

    def _write_receipt(self, conn: sqlite3.Connection, receipt: Receipt) -> None:
        conn.execute(
            """
            INSERT OR REPLACE INTO receipts
            (id, source, store_name, purchased_at, total_amount, processed,
             processed_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(receipt.id),
                receipt.source.value,
                receipt.store_name,
                _iso(receipt.purchased_at),
                receipt.total_amount,
                int(receipt.processed),
                _iso(receipt.processed_at),
                receipt.created_at.isoformat(),
            ),
        )

        conn.execute("DELETE FROM receipt_items WHERE receipt_id = ?", (str(receipt.id),))

        for index, item in enumerate(receipt.items):
            conn.execute(
                """
                INSERT INTO receipt_items
                (receipt_id, line_index, name, quantity, unit, price, category,
                 matched_inventory_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(receipt.id),
                    index,
                    item.name,
                    item.quantity,
                    item.unit,
                    item.price,
                    item.category,
                    str(item.matched_inventory_id) if item.matched_inventory_id else None,
                ),
            )

    def save_receipt(self, receipt: Receipt) -> UUID:
        """Save a receipt.

        Args:
            receipt: Receipt to save

        Returns:
            Receipt ID
        """
        with self._get_connection() as conn:
            self._write_receipt(conn, receipt)
        return receipt.id

    def load_receipt(self, receipt_id: str | UUID) -> Receipt | None:
        """Load a receipt by ID.

        Args:
            receipt_id: Receipt ID

        Returns:
            Receipt if found, None otherwise
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM receipts WHERE id = ?",
                (str(receipt_id),),
            ).fetchone()

            if not row:
                return None

            item_rows = conn.execute(
                "SELECT * FROM receipt_items WHERE receipt_id = ? ORDER BY line_index",
                (str(receipt_id),),
            ).fetchall()

            items = [
                ReceiptItem(
                    name=item_row["name"],
                    quantity=item_row["quantity"],
                    unit=item_row["unit"],
                    price=item_row["price"],
                    category=item_row["category"],
                    matched_inventory_id=_uuid(item_row["matched_inventory_id"]),
                )
                for item_row in item_rows
            ]

            return Receipt(
                id=UUID(row["id"]),
                source=ReceiptSource(row["source"]),
                items=items,
                store_name=row["store_name"],
                purchased_at=_parse_dt(row["purchased_at"]),
                total_amount=row["total_amount"],
                processed=bool(row["processed"]),
                processed_at=_parse_dt(row["processed_at"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )

    def list_receipts(self) -> list[Receipt]:
        """List all receipts.

        Returns:
            List of all receipts, most recent first
        """
        with self._get_connection() as conn:
            rows = conn.execute("SELECT id FROM receipts ORDER BY created_at DESC").fetchall()

        receipts = []
        for row in rows:
            receipt = self.load_receipt(row["id"])
            if receipt:
                receipts.append(receipt)
        return receipts

    # --- Shopping List Operations ---

    def load_shopping_list(self) -> list[ShoppingListItem]:
        """Load all shopping list entries."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM shopping_list ORDER BY added_at").fetchall()

            return [
                ShoppingListItem(
                    id=UUID(row["id"]),
                    inventory_item_id=UUID(row["inventory_item_id"]),
                    item_name=row["item_name"],
                    category=row["category"],
                    suggested_quantity=row["suggested_quantity"],
                    unit=row["unit"],
                    priority=Priority(row["priority"]),
                    purchased=bool(row["purchased"]),
                    purchased_at=_parse_dt(row["purchased_at"]),
                    notes=row["notes"],
                    manual=bool(row["manual"]),
                    added_at=datetime.fromisoformat(row["added_at"]),
                    updated_at=datetime.fromisoformat(row["updated_at"]),
                )
                for row in rows
            ]

    def save_shopping_list(self, entries: list[ShoppingListItem]) -> None:
        """Replace the shopping list.

        Args:
            entries: All entries to keep
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM shopping_list")

            for entry in entries:
                conn.execute(
                    """
                    INSERT INTO shopping_list
                    (id, inventory_item_id, item_name, category, suggested_quantity, unit,
                     priority, purchased, purchased_at, notes, manual, added_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(entry.id),
                        str(entry.inventory_item_id),
                        entry.item_name,
                        entry.category,
                        entry.suggested_quantity,
                        entry.unit,
                        entry.priority.value,
                        int(entry.purchased),
                        _iso(entry.purchased_at),
                        entry.notes,
                        int(entry.manual),
                        entry.added_at.isoformat(),
                        entry.updated_at.isoformat(),
                    ),
                )

    # --- Reconciliation ---

    def commit_reconciliation(
        self,
        receipt: Receipt,
        items: Sequence[InventoryItem],
        observations: Sequence[ConsumptionObservation],
    ) -> list[InventoryItem]:
        """Write a reconciled receipt with its item updates in one transaction.

        Returns:
            Stored items with their new revisions

        Raises:
            ConcurrencyConflictError: If any item changed since it was read;
                nothing is written in that case
        """
        with self._get_connection() as conn:
            stored = [self._write_item(conn, item) for item in items]
            for observation in observations:
                self._insert_observation(conn, observation)
            self._write_receipt(conn, receipt)
        logger.debug("Committed receipt %s (%d items)", receipt.id, len(stored))
        return stored

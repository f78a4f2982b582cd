"""Restock Engine - household inventory depletion tracking and replenishment."""

from .config import Config, ConfigManager, default_config
from .data_store import BackendType, DataStore, DataStoreProtocol, create_data_store
from .engine import RestockEngine
from .errors import (
    ConcurrencyConflictError,
    NotFoundError,
    ReceiptAlreadyProcessedError,
    RestockError,
    ValidationError,
)
from .estimator import ConsumptionEstimator, estimate_burn_rate
from .inventory_manager import InventoryManager
from .models import (
    ConsumptionObservation,
    InventoryItem,
    InventorySummary,
    ItemSnapshot,
    ItemStatus,
    MatchStrategy,
    Priority,
    Projection,
    PurchaseRecord,
    Receipt,
    ReceiptItem,
    ReceiptSource,
    ReconciliationResult,
    ShoppingListChange,
    ShoppingListItem,
)
from .planner import ReplenishmentPlanner
from .projector import DepletionProjector
from .reconciler import ReceiptInput, ReceiptReconciler
from .shopping_list import ShoppingListManager
from .sqlite_store import SQLiteStore
from .summary import SummaryAggregator

__version__ = "0.1.0"

__all__ = [
    "BackendType",
    "ConcurrencyConflictError",
    "Config",
    "ConfigManager",
    "ConsumptionEstimator",
    "ConsumptionObservation",
    "create_data_store",
    "DataStore",
    "DataStoreProtocol",
    "default_config",
    "DepletionProjector",
    "estimate_burn_rate",
    "InventoryItem",
    "InventoryManager",
    "InventorySummary",
    "ItemSnapshot",
    "ItemStatus",
    "MatchStrategy",
    "NotFoundError",
    "Priority",
    "Projection",
    "PurchaseRecord",
    "Receipt",
    "ReceiptAlreadyProcessedError",
    "ReceiptInput",
    "ReceiptItem",
    "ReceiptReconciler",
    "ReceiptSource",
    "ReconciliationResult",
    "ReplenishmentPlanner",
    "RestockEngine",
    "RestockError",
    "ShoppingListChange",
    "ShoppingListItem",
    "ShoppingListManager",
    "SQLiteStore",
    "SummaryAggregator",
    "ValidationError",
]

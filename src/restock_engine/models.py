"""Core data models for the restock engine."""

import math
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError


class ItemStatus(str, Enum):
    """Depletion urgency of an inventory item."""

    GOOD = "good"
    LOW = "low"
    CRITICAL = "critical"


class Priority(str, Enum):
    """Shopping list priority levels."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class ReceiptSource(str, Enum):
    """Where a receipt came from."""

    EMAIL = "email"
    PHOTO = "photo"


class ObservationKind(str, Enum):
    """What produced a consumption observation."""

    INITIAL = "initial"
    RESTOCK = "restock"
    MANUAL = "manual"


class MatchStrategy(str, Enum):
    """Receipt line matching strategies, in the order they are tried."""

    EXACT_SAME_CATEGORY = "exact_same_category"
    EXACT_ANY_CATEGORY = "exact_any_category"
    FUZZY_SAME_CATEGORY = "fuzzy_same_category"


def _clean_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Name must not be empty")
    return value


class InventoryItem(BaseModel):
    """A tracked household item.

    Status and days remaining are deliberately absent: they are derived by
    DepletionProjector from quantity, burn_rate and reorder_threshold.
    """

    id: UUID = Field(default_factory=uuid4)
    name: str
    category: str = "Uncategorized"
    location: str = "Pantry"
    quantity: float = Field(default=0.0, ge=0)
    unit: str = "count"
    burn_rate: float | None = Field(default=None, ge=0)
    reorder_threshold: float | None = Field(default=None, ge=0)
    auto_reorder_enabled: bool = False
    last_updated: datetime = Field(default_factory=datetime.now)
    created_at: datetime = Field(default_factory=datetime.now)
    revision: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)

    @property
    def has_known_rate(self) -> bool:
        """Whether a burn rate has been estimated."""
        return self.burn_rate is not None


class ConsumptionObservation(BaseModel):
    """An append-only quantity reading for one item."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    item_id: UUID
    quantity_after: float = Field(ge=0)
    timestamp: datetime = Field(default_factory=datetime.now)
    kind: ObservationKind = ObservationKind.MANUAL
    receipt_id: UUID | None = None


class ReceiptItem(BaseModel):
    """A parsed line item from a receipt."""

    name: str
    quantity: float = Field(default=1.0, gt=0)
    unit: str | None = None
    price: float | None = Field(default=None, ge=0)
    category: str | None = None
    matched_inventory_id: UUID | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class Receipt(BaseModel):
    """A submitted receipt and its reconciliation state."""

    id: UUID = Field(default_factory=uuid4)
    source: ReceiptSource
    items: list[ReceiptItem]
    store_name: str | None = None
    purchased_at: datetime | None = None
    total_amount: float | None = None
    processed: bool = False
    processed_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("items")
    @classmethod
    def validate_items(cls, v: list[ReceiptItem]) -> list[ReceiptItem]:
        if not v:
            raise ValueError("Receipt must have at least one item")
        return v


class Projection(BaseModel):
    """Projected depletion for one item."""

    model_config = ConfigDict(frozen=True)

    days_remaining: float
    status: ItemStatus

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.days_remaining)


class ItemSnapshot(BaseModel):
    """Read view of an item together with its projection."""

    model_config = ConfigDict(frozen=True)

    item: InventoryItem
    projection: Projection

    @property
    def days_remaining(self) -> float:
        return self.projection.days_remaining

    @property
    def status(self) -> ItemStatus:
        return self.projection.status

    def to_dict(self) -> dict[str, Any]:
        """Flatten to the response shape; infinite days remaining becomes None."""
        data = self.item.model_dump(mode="json")
        data["days_remaining"] = (
            round(self.days_remaining, 2) if self.projection.is_finite else None
        )
        data["status"] = self.status.value
        return data


class ShoppingListItem(BaseModel):
    """A replenishment entry derived from a low or critical item."""

    id: UUID = Field(default_factory=uuid4)
    inventory_item_id: UUID
    item_name: str
    category: str = "Uncategorized"
    suggested_quantity: float = Field(gt=0)
    unit: str = "count"
    priority: Priority = Priority.MEDIUM
    purchased: bool = False
    purchased_at: datetime | None = None
    notes: str | None = None
    manual: bool = False  # quantity and priority were set by hand
    added_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ShoppingChangeAction(str, Enum):
    """Kind of change the planner applied to the shopping list."""

    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


class ShoppingListChange(BaseModel):
    """One change applied by the planner."""

    action: ShoppingChangeAction
    entry: ShoppingListItem


class LineMatch(BaseModel):
    """How one receipt line was reconciled."""

    line_index: int
    name: str
    inventory_item_id: UUID
    strategy: MatchStrategy | None = None  # None when a new item was created
    quantity_added: float


class ReconciliationResult(BaseModel):
    """Result of reconciling a receipt with the inventory."""

    receipt_id: UUID
    matched_items: int
    created_items: int
    lines: list[LineMatch] = Field(default_factory=list)
    touched_item_ids: list[UUID] = Field(default_factory=list)
    shopping_list_changes: list[ShoppingListChange] = Field(default_factory=list)


class ConsumptionHighlight(BaseModel):
    """An item called out in the household summary."""

    item_id: UUID
    name: str
    category: str
    unit: str
    quantity: float
    burn_rate: float | None = None
    days_remaining: float | None = None  # None when not depleting
    status: ItemStatus


class SummaryInsights(BaseModel):
    """Free-text insights grouped by horizon."""

    daily: list[str] = Field(default_factory=list)
    weekly: list[str] = Field(default_factory=list)


class InventorySummary(BaseModel):
    """Household-wide rollup, recomputed on every request."""

    date: date
    total_items: int = 0
    critical_items: int = 0
    low_items: int = 0
    good_items: int = 0
    unknown_rate_items: int = 0
    insights: SummaryInsights = Field(default_factory=SummaryInsights)
    recommendations: list[str] = Field(default_factory=list)
    high_consumption: list[ConsumptionHighlight] = Field(default_factory=list)
    running_out_soon: list[ConsumptionHighlight] = Field(default_factory=list)


class PurchaseRecord(BaseModel):
    """One reconciled receipt line for an item."""

    receipt_id: UUID
    purchased_at: datetime
    quantity: float
    unit: str | None = None
    price: float | None = None
    store_name: str | None = None


class ConsumptionStats(BaseModel):
    """Consumption statistics for one item over a look-back window."""

    item_id: UUID
    days: int
    total_events: int = 0
    total_consumed: float = 0.0
    total_restocked: float = 0.0
    avg_consumption_per_event: float = 0.0
    first_event: datetime | None = None
    last_event: datetime | None = None


def coerce_uuid(value: UUID | str, kind: str = "Record") -> UUID:
    """Parse an id given as text.

    Raises:
        ValidationError: If the text is not a UUID
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid {kind.lower()} ID: '{value}'", "id") from e

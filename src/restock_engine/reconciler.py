"""Receipt reconciliation against the current inventory."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .config import DefaultsConfig, MatchingConfig
from .errors import ReceiptAlreadyProcessedError
from .item_normalizer import exact_key, name_similarity
from .log_config import get_logger
from .models import (
    ConsumptionObservation,
    InventoryItem,
    LineMatch,
    MatchStrategy,
    ObservationKind,
    Receipt,
    ReceiptItem,
    ReceiptSource,
    _clean_name,
)

logger = get_logger(__name__)


class ParsedReceiptLine(BaseModel):
    """One line as an extractor delivers it.

    Lines never arrive matched; any match id sent along is ignored.
    """

    name: str
    quantity: float = Field(default=1.0, gt=0)
    unit: str | None = None
    price: float | None = Field(default=None, ge=0)
    category: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class ReceiptInput(BaseModel):
    """Input model for a parsed receipt from an external extractor."""

    source: ReceiptSource
    items: list[ParsedReceiptLine]
    store_name: str | None = None
    purchased_at: datetime | None = None
    total_amount: float | None = None

    @field_validator("items", mode="before")
    @classmethod
    def dump_models(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [line.model_dump() if isinstance(line, BaseModel) else line for line in v]
        return v

    @field_validator("items")
    @classmethod
    def validate_items(cls, v: list[ParsedReceiptLine]) -> list[ParsedReceiptLine]:
        if not v:
            raise ValueError("Receipt must have at least one item")
        return v

    def to_receipt(self) -> Receipt:
        return Receipt(
            source=self.source,
            items=[ReceiptItem(**line.model_dump()) for line in self.items],
            store_name=self.store_name,
            purchased_at=self.purchased_at,
            total_amount=self.total_amount,
        )


def _same_category(item: InventoryItem, category: str | None) -> bool:
    return category is not None and item.category.strip().lower() == category.strip().lower()


def match_exact_same_category(
    line: ReceiptItem, inventory: Sequence[InventoryItem], threshold: float
) -> list[InventoryItem]:
    """Case-insensitive name match within the line's category."""
    if line.category is None:
        return []
    key = exact_key(line.name)
    return [
        item
        for item in inventory
        if exact_key(item.name) == key and _same_category(item, line.category)
    ]


def match_exact_any_category(
    line: ReceiptItem, inventory: Sequence[InventoryItem], threshold: float
) -> list[InventoryItem]:
    """Case-insensitive name match ignoring category."""
    key = exact_key(line.name)
    return [item for item in inventory if exact_key(item.name) == key]


def match_fuzzy_same_category(
    line: ReceiptItem, inventory: Sequence[InventoryItem], threshold: float
) -> list[InventoryItem]:
    """Similarity match, restricted to the line's category when it has one."""
    pool = inventory
    if line.category is not None:
        pool = [item for item in inventory if _same_category(item, line.category)]
    return [item for item in pool if name_similarity(line.name, item.name) >= threshold]


MatchFunction = Callable[[ReceiptItem, Sequence[InventoryItem], float], list[InventoryItem]]

MATCH_STRATEGIES: list[tuple[MatchStrategy, MatchFunction]] = [
    (MatchStrategy.EXACT_SAME_CATEGORY, match_exact_same_category),
    (MatchStrategy.EXACT_ANY_CATEGORY, match_exact_any_category),
    (MatchStrategy.FUZZY_SAME_CATEGORY, match_fuzzy_same_category),
]


def find_match(
    line: ReceiptItem,
    inventory: Sequence[InventoryItem],
    threshold: float = 0.8,
) -> tuple[InventoryItem, MatchStrategy] | None:
    """Try each strategy in order; the first with exactly one candidate wins."""
    for strategy, match in MATCH_STRATEGIES:
        candidates = match(line, inventory, threshold)
        if len(candidates) == 1:
            return candidates[0], strategy
        if len(candidates) > 1:
            logger.debug(
                "%s matched %d items for '%s', falling through",
                strategy.value,
                len(candidates),
                line.name,
            )
    return None


@dataclass
class ReconciliationOutcome:
    """Everything a reconciliation would write, computed in memory."""

    receipt: Receipt
    items: list[InventoryItem] = field(default_factory=list)
    observations: list[ConsumptionObservation] = field(default_factory=list)
    lines: list[LineMatch] = field(default_factory=list)
    created_ids: list[UUID] = field(default_factory=list)

    @property
    def touched_ids(self) -> list[UUID]:
        return [item.id for item in self.items]

    @property
    def matched_count(self) -> int:
        return sum(1 for line in self.lines if line.strategy is not None)

    @property
    def created_count(self) -> int:
        return len(self.created_ids)


class ReceiptReconciler:
    """Matches receipt lines to inventory items."""

    def __init__(
        self,
        matching: MatchingConfig | None = None,
        defaults: DefaultsConfig | None = None,
    ):
        self.matching = matching or MatchingConfig()
        self.defaults = defaults or DefaultsConfig()

    def reconcile(
        self,
        receipt: Receipt,
        inventory: Sequence[InventoryItem],
        now: datetime | None = None,
    ) -> ReconciliationOutcome:
        """Compute the inventory changes a receipt implies.

        Nothing is written. Items carry the revision they were read with so
        the store can detect concurrent writes at commit time.

        Args:
            receipt: Unprocessed receipt
            inventory: Current inventory items
            now: Timestamp for observations and item updates

        Returns:
            ReconciliationOutcome with updated and new items

        Raises:
            ReceiptAlreadyProcessedError: If the receipt was already reconciled
        """
        if receipt.processed:
            raise ReceiptAlreadyProcessedError(receipt.id)

        now = now or datetime.now()
        updated = receipt.model_copy(deep=True)

        working: dict[UUID, InventoryItem] = {
            item.id: item.model_copy(deep=True) for item in inventory
        }
        touched: dict[UUID, InventoryItem] = {}
        created: list[UUID] = []
        lines: list[LineMatch] = []

        for index, line in enumerate(updated.items):
            found = find_match(line, list(working.values()), self.matching.fuzzy_threshold)
            if found is not None:
                item, strategy = found
                item.quantity += line.quantity
                item.last_updated = now
                logger.debug("Matched '%s' to '%s' via %s", line.name, item.name, strategy.value)
            else:
                item = InventoryItem(
                    name=line.name,
                    category=line.category or self.defaults.category,
                    location=self.defaults.location,
                    quantity=line.quantity,
                    unit=line.unit or self.defaults.unit,
                    last_updated=now,
                    created_at=now,
                )
                strategy = None
                working[item.id] = item
                created.append(item.id)

            line.matched_inventory_id = item.id
            touched[item.id] = item
            lines.append(
                LineMatch(
                    line_index=index,
                    name=line.name,
                    inventory_item_id=item.id,
                    strategy=strategy,
                    quantity_added=line.quantity,
                )
            )

        observations = [
            ConsumptionObservation(
                item_id=item.id,
                quantity_after=item.quantity,
                timestamp=now,
                kind=ObservationKind.INITIAL if item.id in created else ObservationKind.RESTOCK,
                receipt_id=receipt.id,
            )
            for item in touched.values()
        ]

        updated.processed = True
        updated.processed_at = now

        return ReconciliationOutcome(
            receipt=updated,
            items=list(touched.values()),
            observations=observations,
            lines=lines,
            created_ids=created,
        )

"""Depletion projection and status classification."""

import math

from .config import ThresholdsConfig
from .models import InventoryItem, ItemSnapshot, ItemStatus, Priority, Projection


def project(
    quantity: float,
    burn_rate: float | None,
    reorder_threshold: float | None = None,
    thresholds: ThresholdsConfig | None = None,
) -> Projection:
    """Project days remaining and classify urgency.

    Args:
        quantity: Current quantity
        burn_rate: Units per day, or None when unknown
        reorder_threshold: Per-item low window in days; None uses the default
        thresholds: Day boundaries to classify against

    Returns:
        Projection with days_remaining (inf when not depleting) and status
    """
    thresholds = thresholds or ThresholdsConfig()

    if burn_rate is not None and burn_rate > 0:
        days_remaining = max(quantity, 0.0) / burn_rate
    else:
        days_remaining = math.inf

    if reorder_threshold is None:
        reorder_threshold = thresholds.reorder_threshold_days

    if days_remaining <= thresholds.critical_days:
        status = ItemStatus.CRITICAL
    elif days_remaining <= max(thresholds.low_days, reorder_threshold):
        status = ItemStatus.LOW
    else:
        status = ItemStatus.GOOD

    return Projection(days_remaining=days_remaining, status=status)


class DepletionProjector:
    """Single source of truth for item status."""

    def __init__(self, thresholds: ThresholdsConfig | None = None):
        self.thresholds = thresholds or ThresholdsConfig()

    def project(
        self,
        quantity: float,
        burn_rate: float | None,
        reorder_threshold: float | None = None,
    ) -> Projection:
        return project(quantity, burn_rate, reorder_threshold, self.thresholds)

    def project_item(self, item: InventoryItem) -> Projection:
        """Project an inventory item."""
        return self.project(item.quantity, item.burn_rate, item.reorder_threshold)

    def snapshot(self, item: InventoryItem) -> ItemSnapshot:
        """Build the read view for an item."""
        return ItemSnapshot(item=item, projection=self.project_item(item))

    def priority_for(self, projection: Projection) -> Priority | None:
        """Map a projection to a shopping priority, or None when no need exists."""
        if projection.status == ItemStatus.CRITICAL:
            return Priority.CRITICAL
        if projection.status == ItemStatus.LOW:
            if projection.days_remaining <= self.thresholds.high_priority_days:
                return Priority.HIGH
            return Priority.MEDIUM
        return None

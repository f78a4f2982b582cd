"""Household inventory summary."""

from collections.abc import Sequence
from datetime import date

from .models import (
    ConsumptionHighlight,
    InventorySummary,
    ItemSnapshot,
    ItemStatus,
    SummaryInsights,
)

WEEK_DAYS = 7
HIGH_CONSUMPTION_LIMIT = 3


def _count(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def _highlight(snapshot: ItemSnapshot) -> ConsumptionHighlight:
    item = snapshot.item
    return ConsumptionHighlight(
        item_id=item.id,
        name=item.name,
        category=item.category,
        unit=item.unit,
        quantity=item.quantity,
        burn_rate=item.burn_rate,
        days_remaining=round(snapshot.days_remaining, 2) if snapshot.projection.is_finite else None,
        status=snapshot.status,
    )


class SummaryAggregator:
    """Builds the household summary from item snapshots. Read-only."""

    def summarize(
        self, snapshots: Sequence[ItemSnapshot], today: date | None = None
    ) -> InventorySummary:
        """Roll item projections up into counts, insights and recommendations.

        Args:
            snapshots: Every inventory item with its projection
            today: Date stamped on the summary

        Returns:
            InventorySummary
        """
        critical = [s for s in snapshots if s.status == ItemStatus.CRITICAL]
        low = [s for s in snapshots if s.status == ItemStatus.LOW]
        good = [s for s in snapshots if s.status == ItemStatus.GOOD]
        unknown = [s for s in snapshots if s.item.burn_rate is None]

        running_out = sorted(
            (s for s in snapshots if s.projection.is_finite and s.days_remaining <= WEEK_DAYS),
            key=lambda s: s.days_remaining,
        )
        week_ahead = [s for s in running_out if s.status != ItemStatus.CRITICAL]

        high_consumption = sorted(
            (s for s in snapshots if s.item.burn_rate),
            key=lambda s: s.item.burn_rate / (s.item.quantity or 1),
            reverse=True,
        )[:HIGH_CONSUMPTION_LIMIT]

        return InventorySummary(
            date=today or date.today(),
            total_items=len(snapshots),
            critical_items=len(critical),
            low_items=len(low),
            good_items=len(good),
            unknown_rate_items=len(unknown),
            insights=SummaryInsights(
                daily=self._daily_insights(critical, low, good),
                weekly=self._weekly_insights(critical, low, week_ahead),
            ),
            recommendations=self._recommendations(critical, low, unknown),
            high_consumption=[_highlight(s) for s in high_consumption],
            running_out_soon=[_highlight(s) for s in running_out],
        )

    def _daily_insights(
        self,
        critical: list[ItemSnapshot],
        low: list[ItemSnapshot],
        good: list[ItemSnapshot],
    ) -> list[str]:
        insights = []

        if critical:
            names = " and ".join(s.item.name for s in critical[:2])
            more = f" and {len(critical) - 2} more" if len(critical) > 2 else ""
            insights.append(
                f"You have {_count(len(critical), 'critical item', 'critical items')} "
                f"requiring immediate attention. {names}{more} should be restocked today."
            )
            verb = "needs" if len(critical) == 1 else "need"
            insights.append(
                f"{_count(len(critical), 'item', 'items')} {verb} restocking within 24 hours"
            )
        else:
            insights.append(
                "All your inventory levels are stable today. No immediate action required."
            )

        if low:
            verb = "is" if len(low) == 1 else "are"
            insights.append(
                f"{_count(len(low), 'item', 'items')} {verb} running low "
                "and should be added to shopping list"
            )
        else:
            insights.append("Stock levels are healthy")

        verb = "is" if len(good) == 1 else "are"
        insights.append(f"{_count(len(good), 'item', 'items')} {verb} adequately stocked")
        return insights

    def _weekly_insights(
        self,
        critical: list[ItemSnapshot],
        low: list[ItemSnapshot],
        week_ahead: list[ItemSnapshot],
    ) -> list[str]:
        forecast = (
            "Based on current consumption patterns, you'll need to restock approximately "
            f"{_count(len(critical) + len(low), 'item', 'items')} this week."
        )
        if week_ahead:
            forecast += (
                f" Additionally, {_count(len(week_ahead), 'item', 'items')} "
                "will approach low stock by next week."
            )

        if week_ahead:
            attention = (
                f"{_count(len(week_ahead), 'item', 'items')} will need attention "
                f"within {WEEK_DAYS} days"
            )
        else:
            attention = "No items running out this week"

        return [forecast, attention]

    def _recommendations(
        self,
        critical: list[ItemSnapshot],
        low: list[ItemSnapshot],
        unknown: list[ItemSnapshot],
    ) -> list[str]:
        recommendations = []
        if critical:
            recommendations.append("Add critical items to shopping list immediately")
        if low:
            recommendations.append("Plan shopping trip for items running low")
        if not critical and not low:
            recommendations.append("Your inventory is well-maintained. No immediate action needed.")
        if unknown:
            recommendations.append(
                f"Log usage for {_count(len(unknown), 'item', 'items')} without a consumption "
                "estimate so depletion can be projected"
            )
        return recommendations

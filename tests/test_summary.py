"""Tests for the household summary."""

from datetime import date

import pytest

from restock_engine.models import InventoryItem, ItemStatus
from restock_engine.projector import DepletionProjector
from restock_engine.summary import SummaryAggregator


@pytest.fixture
def aggregator():
    return SummaryAggregator()


def snapshots(*items):
    projector = DepletionProjector()
    return [projector.snapshot(item) for item in items]


class TestCounts:
    """Tests for status counts."""

    def test_empty_inventory(self, aggregator):
        summary = aggregator.summarize([], date(2026, 3, 1))

        assert summary.date == date(2026, 3, 1)
        assert summary.total_items == 0
        assert summary.high_consumption == []
        assert summary.running_out_soon == []

    def test_counts(self, aggregator):
        summary = aggregator.summarize(
            snapshots(
                InventoryItem(name="Milk", quantity=4, burn_rate=4.0),
                InventoryItem(name="Rice", quantity=32, burn_rate=8.0),
                InventoryItem(name="Flour", quantity=8, burn_rate=0.67),
                InventoryItem(name="Salt", quantity=1),
            )
        )

        assert summary.total_items == 4
        assert summary.critical_items == 1
        assert summary.low_items == 1
        assert summary.good_items == 2
        assert summary.unknown_rate_items == 1

    def test_defaults_to_today(self, aggregator):
        assert aggregator.summarize([]).date == date.today()


class TestInsights:
    """Tests for insight and recommendation text."""

    def test_critical_items_named(self, aggregator):
        summary = aggregator.summarize(
            snapshots(
                InventoryItem(name="Milk", quantity=1, burn_rate=1.0),
                InventoryItem(name="Eggs", quantity=1, burn_rate=1.0),
                InventoryItem(name="Bread", quantity=1, burn_rate=1.0),
            )
        )

        daily = summary.insights.daily
        assert daily[0] == (
            "You have 3 critical items requiring immediate attention. "
            "Milk and Eggs and 1 more should be restocked today."
        )
        assert daily[1] == "3 items need restocking within 24 hours"
        assert "Add critical items to shopping list immediately" in summary.recommendations

    def test_single_critical_item(self, aggregator):
        summary = aggregator.summarize(
            snapshots(InventoryItem(name="Milk", quantity=1, burn_rate=1.0))
        )
        assert summary.insights.daily[1] == "1 item needs restocking within 24 hours"

    def test_stable_inventory(self, aggregator):
        summary = aggregator.summarize(
            snapshots(InventoryItem(name="Flour", quantity=8, burn_rate=0.5))
        )

        assert summary.insights.daily == [
            "All your inventory levels are stable today. No immediate action required.",
            "Stock levels are healthy",
            "1 item is adequately stocked",
        ]
        assert summary.recommendations == [
            "Your inventory is well-maintained. No immediate action needed."
        ]

    def test_low_items(self, aggregator):
        summary = aggregator.summarize(
            snapshots(
                InventoryItem(name="Rice", quantity=4, burn_rate=1.0),
                InventoryItem(name="Oats", quantity=5, burn_rate=1.0),
            )
        )

        assert (
            "2 items are running low and should be added to shopping list"
            in summary.insights.daily
        )
        assert summary.recommendations == ["Plan shopping trip for items running low"]

    def test_weekly_forecast(self, aggregator):
        summary = aggregator.summarize(
            snapshots(
                InventoryItem(name="Milk", quantity=1, burn_rate=1.0),
                InventoryItem(name="Rice", quantity=4, burn_rate=1.0),
                InventoryItem(name="Oats", quantity=6, burn_rate=1.0),
                InventoryItem(name="Flour", quantity=30, burn_rate=1.0),
            )
        )

        assert summary.insights.weekly == [
            "Based on current consumption patterns, you'll need to restock approximately "
            "2 items this week. Additionally, 2 items will approach low stock by next week.",
            "2 items will need attention within 7 days",
        ]

    def test_quiet_week(self, aggregator):
        summary = aggregator.summarize(
            snapshots(InventoryItem(name="Flour", quantity=30, burn_rate=1.0))
        )
        assert summary.insights.weekly == [
            "Based on current consumption patterns, you'll need to restock approximately "
            "0 items this week.",
            "No items running out this week",
        ]

    def test_unknown_rate_recommendation(self, aggregator):
        summary = aggregator.summarize(
            snapshots(InventoryItem(name="Salt", quantity=1), InventoryItem(name="Tea"))
        )
        assert (
            "Log usage for 2 items without a consumption estimate so depletion can be projected"
            in summary.recommendations
        )


class TestHighlights:
    """Tests for the item lists in the summary."""

    def test_high_consumption_ranked_by_relative_rate(self, aggregator):
        summary = aggregator.summarize(
            snapshots(
                InventoryItem(name="Water", quantity=100, burn_rate=10.0),
                InventoryItem(name="Milk", quantity=2, burn_rate=1.0),
                InventoryItem(name="Eggs", quantity=12, burn_rate=3.0),
                InventoryItem(name="Coffee", quantity=0, burn_rate=0.5),
                InventoryItem(name="Salt", quantity=1, burn_rate=0.0),
            )
        )

        names = [h.name for h in summary.high_consumption]
        assert names == ["Milk", "Coffee", "Eggs"]

    def test_running_out_soon(self, aggregator):
        summary = aggregator.summarize(
            snapshots(
                InventoryItem(name="Oats", quantity=6, burn_rate=1.0),
                InventoryItem(name="Milk", quantity=1, burn_rate=1.0),
                InventoryItem(name="Flour", quantity=30, burn_rate=1.0),
                InventoryItem(name="Salt", quantity=1),
            )
        )

        soon = summary.running_out_soon
        assert [h.name for h in soon] == ["Milk", "Oats"]
        assert soon[0].days_remaining == pytest.approx(1.0)
        assert soon[0].status == ItemStatus.CRITICAL

    def test_static_items_not_highlighted(self, aggregator):
        summary = aggregator.summarize(
            snapshots(InventoryItem(name="Salt", quantity=1, burn_rate=0.0))
        )
        data = summary.model_dump(mode="json")
        assert data["high_consumption"] == []
        assert data["running_out_soon"] == []

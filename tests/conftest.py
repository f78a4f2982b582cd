"""Shared test fixtures for Restock Engine."""

from datetime import datetime, timedelta

import pytest

from restock_engine.config import default_config
from restock_engine.data_store import DataStore
from restock_engine.engine import RestockEngine
from restock_engine.estimator import estimate_burn_rate
from restock_engine.models import ConsumptionObservation, InventoryItem, ObservationKind
from restock_engine.sqlite_store import SQLiteStore


def make_history(item_id, points, start=None):
    """Build observations from (days after start, quantity) pairs.

    Increases are recorded as restocks, like a receipt would.
    """
    start = start or datetime(2026, 1, 1, 8, 0)
    history = []
    previous = None
    for offset, quantity in points:
        if previous is None:
            kind = ObservationKind.INITIAL
        elif quantity > previous:
            kind = ObservationKind.RESTOCK
        else:
            kind = ObservationKind.MANUAL
        history.append(
            ConsumptionObservation(
                item_id=item_id,
                quantity_after=quantity,
                timestamp=start + timedelta(days=offset),
                kind=kind,
            )
        )
        previous = quantity
    return history


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def data_store(temp_data_dir):
    """Create a DataStore with temporary directory."""
    return DataStore(data_dir=temp_data_dir)


@pytest.fixture
def sqlite_store(tmp_path):
    """Create a SQLiteStore with a temporary database."""
    return SQLiteStore(db_path=tmp_path / "test.db")


@pytest.fixture(params=["json", "sqlite"])
def any_store(request, tmp_path):
    """Each storage backend in turn."""
    if request.param == "sqlite":
        return SQLiteStore(db_path=tmp_path / "test.db")
    return DataStore(data_dir=tmp_path / "json_data")


@pytest.fixture
def config(temp_data_dir):
    """Default configuration rooted at the temporary directory."""
    return default_config(temp_data_dir)


@pytest.fixture
def engine(data_store, config):
    """Create a RestockEngine over the JSON store."""
    return RestockEngine(data_store, config)


@pytest.fixture
def seed_item(data_store):
    """Store an item whose quantity and burn rate follow from a history.

    Points are (days ago, quantity) pairs, oldest first.
    """

    def _seed(name, points, store=None, **fields):
        store = store or data_store
        now = datetime.now()
        item = InventoryItem(name=name, **fields)
        history = make_history(
            item.id,
            [(-days_ago, quantity) for days_ago, quantity in points],
            start=now,
        )
        item.quantity = history[-1].quantity_after
        item.burn_rate = estimate_burn_rate(history)
        stored = store.save_item(item, history[0])
        for observation in history[1:]:
            store.append_observation(observation)
        return stored

    return _seed

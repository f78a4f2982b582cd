"""Burn-rate estimation from quantity observations."""

from collections.abc import Sequence

from .config import EstimatorConfig
from .models import ConsumptionObservation

SECONDS_PER_DAY = 86400.0


def consumption_intervals(history: Sequence[ConsumptionObservation]) -> list[float]:
    """Per-interval consumption rates (units/day), oldest first.

    Restocks (quantity increases) and zero-length intervals contribute no rate;
    they only move the baseline to the later observation.

    Args:
        history: Observations for one item, ordered by timestamp ascending

    Returns:
        List of non-negative rates
    """
    rates: list[float] = []
    if len(history) < 2:
        return rates

    anchor = history[0]
    for current in history[1:]:
        elapsed_days = (current.timestamp - anchor.timestamp).total_seconds() / SECONDS_PER_DAY
        if elapsed_days > 0 and current.quantity_after <= anchor.quantity_after:
            rates.append((anchor.quantity_after - current.quantity_after) / elapsed_days)
        anchor = current

    return rates


def estimate_burn_rate(
    history: Sequence[ConsumptionObservation],
    window: int = 5,
    decay: float = 0.5,
) -> float | None:
    """Estimate an item's burn rate with an exponentially weighted average.

    The most recent interval has weight 1, the one before it ``decay``, then
    ``decay**2`` and so on, over at most ``window`` intervals.

    Args:
        history: Observations for one item, ordered by timestamp ascending
        window: Number of most recent intervals to consider
        decay: Weight multiplier applied per step back in time

    Returns:
        Units per day, 0.0 for a static item, or None when the rate cannot
        be estimated (fewer than two observations or no usable interval)
    """
    rates = consumption_intervals(history)
    if not rates:
        return None

    recent = rates[-window:]
    weighted_sum = 0.0
    weight_total = 0.0
    for age, rate in enumerate(reversed(recent)):
        weight = decay**age
        weighted_sum += weight * rate
        weight_total += weight

    return weighted_sum / weight_total


def last_nonzero_quantity(history: Sequence[ConsumptionObservation]) -> float | None:
    """Most recent non-zero quantity reading, if any."""
    for observation in reversed(history):
        if observation.quantity_after > 0:
            return observation.quantity_after
    return None


class ConsumptionEstimator:
    """Estimates burn rates using configured smoothing constants."""

    def __init__(self, config: EstimatorConfig | None = None):
        self.config = config or EstimatorConfig()

    def estimate_burn_rate(self, history: Sequence[ConsumptionObservation]) -> float | None:
        """Estimate a burn rate; see :func:`estimate_burn_rate`."""
        ordered = sorted(history, key=lambda o: o.timestamp)
        return estimate_burn_rate(ordered, window=self.config.window, decay=self.config.decay)

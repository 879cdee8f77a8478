"""7-day burnout forecast by exponential smoothing."""

import math
from typing import List, Optional, Sequence

import numpy as np

from app.models import ForecastResult
from app.risk import RiskInputError, clamp

HISTORY_DAYS = 14
HORIZON_DAYS = 7
CONFIDENCE_MARGIN = 10.0


def _checked_series(name: str, values: Sequence[float], length: int, upper: Optional[float]) -> List[float]:
    series = list(values)
    if len(series) != length:
        raise RiskInputError(f"{name} must contain exactly {length} values, got {len(series)}")
    for idx, value in enumerate(series):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise RiskInputError(f"{name}[{idx}] must be a finite number, got {value!r}")
        if value < 0 or (upper is not None and value > upper):
            bound = f"from 0 to {upper:g}" if upper is not None else "non-negative"
            raise RiskInputError(f"{name}[{idx}] must be {bound}, got {value!r}")
    return [float(v) for v in series]


def forecast_drivers(last14: Sequence[float], deadlines_next7: Sequence[float]) -> List[str]:
    drivers = ['Stable baseline']
    if last14[-1] > last14[0]:
        drivers.append('Recent trend up')
    else:
        drivers.append('Recent trend down')
    if any(d > 0 for d in deadlines_next7):
        drivers.append('Deadlines impact')
    return drivers


def forecast_risk(
    last14: Sequence[float],
    deadlines_next7: Optional[Sequence[float]] = None,
    alpha: float = 0.5,
    deadline_weight: float = 2.0
) -> ForecastResult:
    """
    Project the next 7 days of burnout risk.

    The smoothed level is re-anchored to the latest known score on every step,
    and deadlines only raise the day they fall on; they never feed back into
    the smoothed level. The confidence band is the prediction plus 10, capped
    at 100.

    Args:
        last14: 14 daily scores (0-100), oldest first
        deadlines_next7: 7 deadline counts, nearest first; omitted means none
        alpha: Smoothing factor in (0, 1]
        deadline_weight: Points added per deadline

    Returns:
        ForecastResult

    Raises:
        RiskInputError: on wrong series lengths or out-of-range parameters
    """
    history = _checked_series('last14', last14, HISTORY_DAYS, 100.0)
    if deadlines_next7 is None:
        deadlines = [0.0] * HORIZON_DAYS
    else:
        deadlines = _checked_series('deadlines_next7', deadlines_next7, HORIZON_DAYS, None)

    if isinstance(alpha, bool) or not isinstance(alpha, (int, float)) or not 0 < alpha <= 1:
        raise RiskInputError(f"alpha must be in (0, 1], got {alpha!r}")
    if (isinstance(deadline_weight, bool) or not isinstance(deadline_weight, (int, float))
            or not math.isfinite(deadline_weight) or deadline_weight < 0):
        raise RiskInputError(f"deadline_weight must be non-negative, got {deadline_weight!r}")

    latest = history[-1]
    last_smooth = latest
    pred = []
    for i in range(HORIZON_DAYS):
        last_smooth = alpha * latest + (1 - alpha) * last_smooth
        day_forecast = last_smooth
        if deadlines[i] > 0:
            day_forecast += deadline_weight * deadlines[i]
        pred.append(clamp(day_forecast, 0.0, 100.0))

    conf = np.clip(np.array(pred) + CONFIDENCE_MARGIN, 0.0, 100.0).tolist()

    return ForecastResult(pred=pred, conf=conf, drivers=forecast_drivers(history, deadlines))

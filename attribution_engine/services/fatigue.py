"""
Creative Fatigue Detector.

Classifies each creative's engagement trend from its daily CTR series.

Per creative (>= 5 days of delivery):
    qualifying days = days with >= 100 impressions
    peak CTR        = max daily CTR over qualifying days
    recent CTR      = mean daily CTR over qualifying days >= last_date - 2
    decline         = 1 - recent / peak   (rounded to 4 dp)
    slope           = OLS slope of daily CTR vs days since first_date
                      (kept unrounded; the JSON payload shows 6 dp)

Classification (first match wins):
    FATIGUED   decline >= threshold     and slope < 0
    DECLINING  decline >= threshold / 2 and slope < 0
    IMPROVING  slope > 0
    STABLE     otherwise

States are recomputed from the full window on every run; nothing carries
over between runs.

Dependencies:
    - numpy.polyfit for the trend slope
    - pandas for per-creative daily slices
"""

import logging
from datetime import timedelta
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from attribution_engine.models.enums import ExclusionReason, FatigueState
from attribution_engine.models.schemas import CreativePerformance, FatigueResult


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MIN_DAYS_FOR_FATIGUE: int = 5
MIN_DAILY_IMPRESSIONS: int = 100

# Recent window is last_date - RECENT_WINDOW_DAYS .. last_date
RECENT_WINDOW_DAYS: int = 2


class FatigueAnalysis(NamedTuple):
    results: Dict[str, FatigueResult]
    excluded: Dict[str, int]


# =============================================================================
# Core computations
# =============================================================================


def trend_slope(days_elapsed: Sequence[float], ctrs: Sequence[float]) -> float:
    """
    OLS slope of CTR against elapsed days.

    Returns 0.0 with fewer than two points, when every point falls on the
    same day, or when CTR never moves.
    """
    if len(days_elapsed) < 2:
        return 0.0
    x = np.asarray(days_elapsed, dtype=np.float64)
    y = np.asarray(ctrs, dtype=np.float64)
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0
    slope, _intercept = np.polyfit(x, y, 1)
    return float(slope)


def classify_fatigue(decline: float, slope: float, threshold: float) -> FatigueState:
    if decline >= threshold and slope < 0:
        return FatigueState.FATIGUED
    if decline >= threshold / 2 and slope < 0:
        return FatigueState.DECLINING
    if slope > 0:
        return FatigueState.IMPROVING
    return FatigueState.STABLE


def evaluate_creative(
    perf: CreativePerformance,
    rows: pd.DataFrame,
    threshold: float,
) -> Optional[FatigueResult]:
    """
    Fatigue state for one creative, or None when no usable peak/recent CTR.

    Args:
        perf: The creative's aggregate row (first/last date).
        rows: That creative's daily delivery rows.
        threshold: Decline-from-peak ratio that counts as fatigued.
    """
    floored = rows[rows['impressions'] >= MIN_DAILY_IMPRESSIONS]
    if floored.empty:
        return None

    ctr = (floored['clicks'] / floored['impressions']).astype(float)
    peak = float(ctr.max())

    recent_start = perf.last_date - timedelta(days=RECENT_WINDOW_DAYS)
    recent = ctr[floored['date'] >= recent_start]
    if recent.empty or peak <= 0:
        return None
    recent_ctr = float(recent.mean())

    decline = round(1 - recent_ctr / peak, 4)
    elapsed = [(d - perf.first_date).days for d in floored['date']]
    slope = trend_slope(elapsed, ctr.tolist())

    return FatigueResult(
        creative_id=perf.creative_id,
        days_with_data=perf.days_with_data,
        peak_ctr=round(peak, 6),
        recent_ctr=round(recent_ctr, 6),
        decline_from_peak=decline,
        trend_slope=slope,
        state=classify_fatigue(decline, slope, threshold),
    )


# =============================================================================
# Main entry points
# =============================================================================


def detect_fatigue(
    performances: Sequence[CreativePerformance],
    daily: pd.DataFrame,
    fatigue_threshold: float = 0.20,
) -> FatigueAnalysis:
    """
    Evaluate every creative with enough daily history.

    Returns:
        FatigueAnalysis with results keyed by creative_id and a count of
        excluded creatives per ExclusionReason value.
    """
    results: Dict[str, FatigueResult] = {}
    excluded: Dict[str, int] = {}
    by_creative = {cid: rows for cid, rows in daily.groupby('creative_id')} if not daily.empty else {}

    for perf in performances:
        rows = by_creative.get(perf.creative_id)
        if rows is None or perf.days_with_data < MIN_DAYS_FOR_FATIGUE or perf.first_date is None:
            reason = ExclusionReason.INSUFFICIENT_HISTORY.value
            excluded[reason] = excluded.get(reason, 0) + 1
            continue

        result = evaluate_creative(perf, rows, fatigue_threshold)
        if result is None:
            reason = ExclusionReason.NO_QUALIFYING_DAYS.value
            excluded[reason] = excluded.get(reason, 0) + 1
            continue
        results[perf.creative_id] = result

    logger.info(f"Fatigue: {len(results)} creatives evaluated, excluded={excluded}")
    return FatigueAnalysis(results=results, excluded=excluded)


def fatigue_alerts(results: Dict[str, FatigueResult]) -> List[FatigueResult]:
    """DECLINING and FATIGUED creatives, largest decline first."""
    alerts = [
        r for r in results.values()
        if r.state in (FatigueState.DECLINING, FatigueState.FATIGUED)
    ]
    return sorted(alerts, key=lambda r: (-r.decline_from_peak, r.creative_id))

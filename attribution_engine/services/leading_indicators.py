"""
Leading-Indicator Engine.

Asks whether engagement in a creative's first days predicts its final return
on spend, so budget decisions can be made before revenue accrues.

For each qualifying creative with enough history:
    early window = delivery rows with date <= first_date + early_window_days
    early CTR    = sum(clicks) / sum(impressions)
    early CPM    = sum(spend) / sum(impressions) * 1000

Early metrics are only trusted when the early window reached
min_early_impressions. Pearson r between each early metric and final ROAS
comes from scipy.stats.pearsonr, whose two-sided p-value is exact under the
t distribution with n - 2 degrees of freedom.

Creatives are additionally bucketed by early CTR (>=3%, 2-3%, 1-2%, <1%)
with the average ROAS and profitable share of each bucket.
"""

import logging
import math
from datetime import timedelta
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.stats import pearsonr

from attribution_engine.models.enums import ExclusionReason, MetricsSource
from attribution_engine.models.schemas import (
    CorrelationResult,
    CreativePerformance,
    CtrBucket,
    LeadingIndicatorResult,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Days of delivery required beyond the early window itself
HISTORY_MARGIN_DAYS: int = 3

MIN_CORRELATION_SAMPLE: int = 5

STRONG_CORRELATION: float = 0.5
MODERATE_CORRELATION: float = 0.3

# (label, lower bound inclusive, upper bound exclusive)
CTR_BUCKETS: List[Tuple[str, float, float]] = [
    ('3%+', 0.03, math.inf),
    ('2-3%', 0.02, 0.03),
    ('1-2%', 0.01, 0.02),
    ('<1%', 0.0, 0.01),
]

PROFITABLE_ROAS: float = 1.0


# =============================================================================
# Statistics helpers
# =============================================================================


def pearson_correlation(
    x: Sequence[float],
    y: Sequence[float],
    significance_level: float = 0.05,
    metric: str = '',
) -> CorrelationResult:
    """
    Pearson r and its two-sided p-value.

    Returns a result with coefficient None when the sample is below
    MIN_CORRELATION_SAMPLE or either side has zero variance.
    """
    n = len(x)
    if n < MIN_CORRELATION_SAMPLE:
        return CorrelationResult(metric=metric, sample_size=n)

    xs = np.asarray(x, dtype=np.float64)
    ys = np.asarray(y, dtype=np.float64)
    if np.std(xs) == 0 or np.std(ys) == 0:
        return CorrelationResult(metric=metric, sample_size=n)

    r, p = pearsonr(xs, ys)
    r, p = float(r), float(p)

    return CorrelationResult(
        metric=metric,
        coefficient=round(r, 4),
        p_value=round(p, 6),
        is_significant=p < significance_level,
        sample_size=n,
    )


def describe_correlation(
    result: CorrelationResult,
    early_window_days: int,
    min_early_impressions: int,
) -> str:
    """Human-readable verdict for the early CTR correlation."""
    if result.sample_size < MIN_CORRELATION_SAMPLE:
        return (
            f"Insufficient data: only {result.sample_size} creatives have "
            f"{early_window_days + HISTORY_MARGIN_DAYS}+ days of delivery and "
            f"{min_early_impressions}+ early impressions "
            f"(at least {MIN_CORRELATION_SAMPLE} needed)."
        )
    if result.coefficient is None:
        return "Early CTR or final ROAS does not vary across creatives; correlation cannot be computed."

    r = result.coefficient
    direction = 'positive' if r > 0 else 'negative'
    strength = abs(r)

    if strength >= STRONG_CORRELATION and result.is_significant:
        return (
            f"Strong {direction} correlation (r={r:.2f}, p={result.p_value:.3f}) between "
            f"early CTR and final ROAS. Early CTR is a reliable leading indicator."
        )
    if strength >= MODERATE_CORRELATION and result.is_significant:
        return (
            f"Moderate {direction} correlation (r={r:.2f}, p={result.p_value:.3f}) between "
            f"early CTR and final ROAS. Use early CTR as one signal among several."
        )
    if strength >= MODERATE_CORRELATION:
        return (
            f"Early CTR shows a {direction} correlation (r={r:.2f}) with final ROAS, "
            f"but it is not statistically significant (p={result.p_value:.3f})."
        )
    return (
        f"Weak correlation (r={r:.2f}) between early CTR and final ROAS. "
        f"Early CTR alone does not predict performance."
    )


def bucket_by_ctr(samples: List[Tuple[float, float]]) -> List[CtrBucket]:
    """Group (early_ctr, final_roas) pairs into CTR bands; empty bands omitted."""
    buckets: List[CtrBucket] = []
    for label, low, high in CTR_BUCKETS:
        members = [roas for ctr, roas in samples if low <= ctr < high]
        if not members:
            continue
        buckets.append(CtrBucket(
            bucket=label,
            count=len(members),
            avg_roas=round(float(np.mean(members)), 4),
            profitable_rate=round(sum(1 for r in members if r >= PROFITABLE_ROAS) / len(members), 4),
        ))
    return buckets


# =============================================================================
# Main entry point
# =============================================================================


def analyze_leading_indicators(
    performances: Sequence[CreativePerformance],
    daily: pd.DataFrame,
    early_window_days: int = 3,
    min_early_impressions: int = 500,
    significance_level: float = 0.05,
) -> LeadingIndicatorResult:
    """
    Correlate early-window engagement with final ROAS.

    Args:
        performances: Qualifying creatives.
        daily: Daily delivery frame from the performance aggregator.
        early_window_days: Length of the early window after first delivery.
        min_early_impressions: Impression floor for early metrics.
        significance_level: Alpha for the correlation tests.
    """
    required_days = early_window_days + HISTORY_MARGIN_DAYS
    excluded: Dict[str, int] = {}
    early_ctr: List[float] = []
    early_cpm: List[float] = []
    final_roas: List[float] = []
    early_impressions: List[int] = []

    by_creative = {cid: rows for cid, rows in daily.groupby('creative_id')} if not daily.empty else {}

    for perf in performances:
        rows = by_creative.get(perf.creative_id)
        if (
            perf.metrics_source != MetricsSource.DAILY
            or rows is None
            or perf.days_with_data < required_days
        ):
            reason = ExclusionReason.INSUFFICIENT_HISTORY.value
            excluded[reason] = excluded.get(reason, 0) + 1
            continue

        cutoff = perf.first_date + timedelta(days=early_window_days)
        early = rows[rows['date'] <= cutoff]
        impressions = int(early['impressions'].sum())
        if impressions == 0 or impressions < min_early_impressions:
            reason = ExclusionReason.LOW_EARLY_IMPRESSIONS.value
            excluded[reason] = excluded.get(reason, 0) + 1
            continue

        early_ctr.append(float(early['clicks'].sum()) / impressions)
        early_cpm.append(float(early['spend'].sum()) / impressions * 1000)
        final_roas.append(perf.return_on_spend)
        early_impressions.append(impressions)

    ctr_corr = pearson_correlation(early_ctr, final_roas, significance_level, metric='early_ctr')
    cpm_corr = pearson_correlation(early_cpm, final_roas, significance_level, metric='early_cpm')

    logger.info(
        f"Leading indicators: {len(final_roas)} creatives sampled, "
        f"excluded={excluded}, ctr_r={ctr_corr.coefficient}"
    )

    return LeadingIndicatorResult(
        early_window_days=early_window_days,
        sample_size=len(final_roas),
        avg_early_impressions=round(float(np.mean(early_impressions)), 2) if early_impressions else 0.0,
        ctr_correlation=ctr_corr,
        cpm_correlation=cpm_corr,
        ctr_buckets=bucket_by_ctr(list(zip(early_ctr, final_roas))),
        excluded_creatives=excluded,
        insight=describe_correlation(ctr_corr, early_window_days, min_early_impressions),
    )

"""
Performance Aggregator Service.

Joins attributed donation revenue to daily ad delivery metrics and produces
one CreativePerformance per creative for the analysis window.

Join rules:
    - Delivery rows link to a creative through the creative's ad_id.
    - An attributed donation credits its matched_creative_id when that
      creative is known, otherwise every creative carrying its matched_ad_id
      (lowest creative_id first, a single creative is credited).
    - Unattributed donations and donations outside the window credit nobody.

Derived ratios (all guarded against zero denominators):
    CTR  = clicks / impressions
    CPM  = spend / impressions * 1000
    ROAS = revenue / spend

Snapshot fallback:
    A creative without any delivery row in the window uses the lifetime
    snapshot totals stored on its CreativeRecord. Revenue then comes from the
    attributed donations when there are any, otherwise snapshot_roas * spend.
    Such creatives report days_with_data = 1 and metrics_source = snapshot.

Dependencies:
    - pandas: windowing and per-creative group-by of the delivery rows
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, NamedTuple, Sequence, Tuple

import pandas as pd

from attribution_engine.models.enums import ConfidenceTier, MetricsSource
from attribution_engine.models.schemas import (
    AdDeliveryMetric,
    AttributionResult,
    CreativePerformance,
    CreativeRecord,
    DonationEvent,
)


logger = logging.getLogger(__name__)


DAILY_COLUMNS: List[str] = ['creative_id', 'ad_id', 'date', 'impressions', 'clicks', 'spend']


class PerformanceAggregation(NamedTuple):
    """Aggregator output: per-creative rows plus the daily series behind them."""
    performances: List[CreativePerformance]
    daily: pd.DataFrame
    has_daily_metrics: bool


# =============================================================================
# Ratio helpers
# =============================================================================


def click_through_rate(clicks: float, impressions: float) -> float:
    return clicks / impressions if impressions > 0 else 0.0


def cost_per_mille(spend: float, impressions: float) -> float:
    return spend / impressions * 1000 if impressions > 0 else 0.0


def return_on_spend(revenue: float, spend: float) -> float:
    return revenue / spend if spend > 0 else 0.0


# =============================================================================
# Daily series
# =============================================================================


def build_daily_frame(
    creatives: Sequence[CreativeRecord],
    delivery: Iterable[AdDeliveryMetric],
    start_date: date,
    end_date: date,
) -> pd.DataFrame:
    """
    Per-creative daily delivery rows inside [start_date, end_date].

    Returns a DataFrame with DAILY_COLUMNS, sorted by creative_id then date.
    Duplicate (ad_id, date) rows are summed.
    """
    rows = [
        {
            'ad_id': m.ad_id,
            'date': m.date,
            'impressions': m.impressions,
            'clicks': m.clicks,
            'spend': m.spend,
        }
        for m in delivery
        if start_date <= m.date <= end_date
    ]
    links = [{'creative_id': c.creative_id, 'ad_id': c.ad_id} for c in creatives if c.ad_id]

    if not rows or not links:
        return pd.DataFrame(columns=DAILY_COLUMNS)

    metrics = (
        pd.DataFrame(rows)
        .groupby(['ad_id', 'date'], as_index=False)[['impressions', 'clicks', 'spend']]
        .sum()
    )
    frame = pd.DataFrame(links).merge(metrics, on='ad_id', how='inner')
    return frame[DAILY_COLUMNS].sort_values(['creative_id', 'date']).reset_index(drop=True)


# =============================================================================
# Revenue join
# =============================================================================


def attribute_revenue(
    creatives: Sequence[CreativeRecord],
    attributions: Iterable[AttributionResult],
    events: Iterable[DonationEvent],
    start_date: date,
    end_date: date,
) -> Dict[str, Tuple[float, int]]:
    """
    Sum attributed revenue per creative.

    Returns:
        Dict of creative_id -> (revenue, donation_count).
    """
    known = {c.creative_id for c in creatives}
    by_ad: Dict[str, str] = {}
    for creative in sorted(creatives, key=lambda c: c.creative_id):
        if creative.ad_id and creative.ad_id not in by_ad:
            by_ad[creative.ad_id] = creative.creative_id

    in_window = {
        e.id: e.amount
        for e in events
        if start_date <= e.occurred_at.date() <= end_date
    }

    revenue: Dict[str, Tuple[float, int]] = {}
    for result in attributions:
        if result.confidence_tier == ConfidenceTier.NONE or result.event_id not in in_window:
            continue
        if result.matched_creative_id and result.matched_creative_id in known:
            creative_id = result.matched_creative_id
        elif result.matched_ad_id and result.matched_ad_id in by_ad:
            creative_id = by_ad[result.matched_ad_id]
        else:
            continue
        total, count = revenue.get(creative_id, (0.0, 0))
        revenue[creative_id] = (total + in_window[result.event_id], count + 1)
    return revenue


# =============================================================================
# Aggregation
# =============================================================================


def aggregate_performance(
    creatives: Sequence[CreativeRecord],
    delivery: Iterable[AdDeliveryMetric],
    attributions: Iterable[AttributionResult],
    events: Iterable[DonationEvent],
    start_date: date,
    end_date: date,
) -> PerformanceAggregation:
    """
    Build CreativePerformance for every creative (qualifying or not).

    Use filter_qualifying() to apply the impression floor.
    """
    events = list(events)
    daily = build_daily_frame(creatives, delivery, start_date, end_date)
    revenue = attribute_revenue(creatives, attributions, events, start_date, end_date)

    totals: Dict[str, dict] = {}
    if not daily.empty:
        grouped = daily.groupby('creative_id').agg(
            total_impressions=('impressions', 'sum'),
            total_clicks=('clicks', 'sum'),
            total_spend=('spend', 'sum'),
            days_with_data=('date', 'nunique'),
            first_date=('date', 'min'),
            last_date=('date', 'max'),
        )
        totals = grouped.to_dict(orient='index')

    performances: List[CreativePerformance] = []
    for creative in creatives:
        attributed, donation_count = revenue.get(creative.creative_id, (0.0, 0))
        row = totals.get(creative.creative_id)

        if row is not None:
            impressions = int(row['total_impressions'])
            clicks = int(row['total_clicks'])
            spend = float(row['total_spend'])
            total_revenue = attributed
            days = int(row['days_with_data'])
            first_date, last_date = row['first_date'], row['last_date']
            source = MetricsSource.DAILY
        else:
            impressions = creative.snapshot_impressions
            clicks = creative.snapshot_clicks
            spend = creative.snapshot_spend
            if donation_count > 0:
                total_revenue = attributed
            else:
                total_revenue = (creative.snapshot_roas or 0.0) * spend
            days = 1
            first_date = last_date = None
            source = MetricsSource.SNAPSHOT

        performances.append(CreativePerformance(
            creative_id=creative.creative_id,
            ad_id=creative.ad_id,
            total_impressions=impressions,
            total_clicks=clicks,
            total_spend=round(spend, 2),
            total_revenue=round(total_revenue, 2),
            donation_count=donation_count,
            click_through_rate=round(click_through_rate(clicks, impressions), 6),
            cost_per_mille=round(cost_per_mille(spend, impressions), 2),
            return_on_spend=round(return_on_spend(total_revenue, spend), 4),
            days_with_data=days,
            first_date=first_date,
            last_date=last_date,
            metrics_source=source,
        ))

    snapshot_count = sum(1 for p in performances if p.metrics_source == MetricsSource.SNAPSHOT)
    logger.info(
        f"Aggregated {len(performances)} creatives "
        f"({snapshot_count} from snapshot, {len(daily)} daily rows)"
    )
    if daily.empty:
        logger.warning("No daily delivery metrics in window; all creatives use snapshot totals")

    return PerformanceAggregation(
        performances=performances,
        daily=daily,
        has_daily_metrics=not daily.empty,
    )


def filter_qualifying(
    performances: Iterable[CreativePerformance],
    min_impressions: int,
) -> List[CreativePerformance]:
    """Creatives whose window impressions reach the floor (inclusive)."""
    return [p for p in performances if p.total_impressions >= min_impressions]

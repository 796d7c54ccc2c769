"""
Creative Intelligence Orchestrator.

Runs the full analytics pipeline for one organization and window and
assembles the single CreativeIntelligenceResult payload.

Stage order is strict:
    resolve -> aggregate -> {significance, leading indicators, fatigue}
            -> synthesize

Every stage is a pure function of its inputs. If any stage raises, the whole
invocation raises; no partial payload is ever returned.

Two entry points:
    run_creative_intelligence()      pure; takes already-loaded inputs
    generate_creative_intelligence() async; loads inputs through asyncpg and
                                     then calls the pure pipeline

Usage:
    params = build_parameters(get_settings(), start_date, end_date)
    result = await generate_creative_intelligence(conn, "org_1", params)
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from attribution_engine.core.config import Settings, get_settings
from attribution_engine.core.errors import InvalidAnalysisParameters
from attribution_engine.models.enums import DataConfidence, MetricsSource
from attribution_engine.models.schemas import (
    AdDeliveryMetric,
    AnalysisParameters,
    AttributionResult,
    CampaignSpend,
    CreativeIntelligenceResult,
    CreativePerformance,
    CreativeRecord,
    DataQuality,
    DateRange,
    DonationEvent,
    DonorSegment,
    DonorSegmentation,
    ExcludedGroup,
    SummaryStats,
    TopPerformer,
)
from attribution_engine.services.batch_attribution import resolve_batch
from attribution_engine.services.fatigue import detect_fatigue, fatigue_alerts
from attribution_engine.services.leading_indicators import analyze_leading_indicators
from attribution_engine.services.performance import aggregate_performance, filter_qualifying
from attribution_engine.services.recommendations import (
    summarize_recommendations,
    synthesize_recommendations,
)
from attribution_engine.services.rule_store import load_rule_store
from attribution_engine.services.significance import analyze_significance
from attribution_engine.sql.attribution_queries import get_campaign_spend_query
from attribution_engine.sql.creative_queries import (
    get_creatives_query,
    get_delivery_metrics_query,
    get_donations_query,
)


logger = logging.getLogger(__name__)


TOP_PERFORMER_LIMIT: int = 10

# Overall data confidence: HIGH needs this many creatives and issue coverage
HIGH_CONFIDENCE_MIN_CREATIVES: int = 10
HIGH_CONFIDENCE_ISSUE_SHARE: float = 0.7
MEDIUM_CONFIDENCE_MIN_CREATIVES: int = 5


# =============================================================================
# Parameters
# =============================================================================


def build_parameters(
    settings: Settings,
    start_date: date,
    end_date: date,
    **overrides: Any,
) -> AnalysisParameters:
    """
    AnalysisParameters from Settings defaults; None overrides are ignored.
    """
    values: Dict[str, Any] = {
        'start_date': start_date,
        'end_date': end_date,
        'min_impressions': settings.min_impressions,
        'early_window_days': settings.early_window_days,
        'fatigue_threshold': settings.fatigue_threshold,
        'significance_level': settings.significance_level,
        'min_group_size': settings.min_group_size,
        'min_early_impressions': settings.min_early_impressions,
        'large_donation_threshold': settings.large_donation_threshold,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return AnalysisParameters(**values)


def validate_parameters(params: AnalysisParameters) -> None:
    """
    Reject invalid caller input before any computation.

    Raises:
        InvalidAnalysisParameters: With every problem found, joined by "; ".
    """
    problems: List[str] = []

    if params.start_date > params.end_date:
        problems.append(f"start_date {params.start_date} is after end_date {params.end_date}")
    if params.min_impressions < 0:
        problems.append("min_impressions must be >= 0")
    if params.early_window_days < 0:
        problems.append("early_window_days must be >= 0")
    if params.min_early_impressions < 0:
        problems.append("min_early_impressions must be >= 0")
    if params.large_donation_threshold < 0:
        problems.append("large_donation_threshold must be >= 0")
    if not 0 < params.fatigue_threshold <= 1:
        problems.append("fatigue_threshold must be in (0, 1]")
    if not 0 < params.significance_level < 1:
        problems.append("significance_level must be in (0, 1)")
    if params.min_group_size < 2:
        problems.append("min_group_size must be >= 2")

    if problems:
        raise InvalidAnalysisParameters("; ".join(problems))


# =============================================================================
# Supplementary blocks
# =============================================================================


def segment_donors(events: Sequence[DonationEvent], threshold: float) -> DonorSegmentation:
    """Small (< threshold) vs large (>= threshold) donation split."""
    amounts = np.asarray([e.amount for e in events], dtype=np.float64)
    if amounts.size == 0:
        return DonorSegmentation(large_donation_threshold=threshold)

    total = float(amounts.sum())
    small = amounts[amounts < threshold]
    large = amounts[amounts >= threshold]

    def _segment(values: np.ndarray) -> DonorSegment:
        amount = float(values.sum())
        return DonorSegment(
            count=int(values.size),
            total_amount=round(amount, 2),
            percentage_of_total=round(amount / total * 100, 1) if total > 0 else 0.0,
        )

    return DonorSegmentation(
        large_donation_threshold=threshold,
        small_donors=_segment(small),
        large_donors=_segment(large),
        average_donation=round(float(amounts.mean()), 2),
        median_donation=round(float(np.median(amounts)), 2),
        total_donors=int(amounts.size),
        total_donations=round(total, 2),
    )


def select_top_performers(
    performances: Sequence[CreativePerformance],
    creatives: Dict[str, CreativeRecord],
    limit: int = TOP_PERFORMER_LIMIT,
) -> List[TopPerformer]:
    ranked = sorted(performances, key=lambda p: (-p.return_on_spend, p.creative_id))[:limit]
    top: List[TopPerformer] = []
    for perf in ranked:
        creative = creatives.get(perf.creative_id)
        top.append(TopPerformer(
            creative_id=perf.creative_id,
            ad_id=perf.ad_id,
            issue_primary=creative.issue_primary if creative else None,
            headline=creative.headline if creative else None,
            total_impressions=perf.total_impressions,
            return_on_spend=perf.return_on_spend,
            click_through_rate=perf.click_through_rate,
            days_with_data=perf.days_with_data,
        ))
    return top


def summarize_performance(
    performances: Sequence[CreativePerformance],
    creatives: Dict[str, CreativeRecord],
) -> SummaryStats:
    spend = sum(p.total_spend for p in performances)
    revenue = sum(p.total_revenue for p in performances)
    return SummaryStats(
        total_creatives=len(performances),
        total_impressions=sum(p.total_impressions for p in performances),
        total_spend=round(spend, 2),
        total_revenue=round(revenue, 2),
        overall_roas=round(revenue / spend, 4) if spend > 0 else 0.0,
        creatives_with_issues=sum(
            1 for p in performances
            if p.creative_id in creatives and creatives[p.creative_id].issue_primary
        ),
    )


def overall_confidence(qualifying: int, with_issue: int) -> DataConfidence:
    if (
        qualifying >= HIGH_CONFIDENCE_MIN_CREATIVES
        and with_issue / qualifying >= HIGH_CONFIDENCE_ISSUE_SHARE
    ):
        return DataConfidence.HIGH
    if qualifying >= MEDIUM_CONFIDENCE_MIN_CREATIVES:
        return DataConfidence.MEDIUM
    return DataConfidence.LOW


def assess_data_quality(
    all_performances: Sequence[CreativePerformance],
    qualifying: Sequence[CreativePerformance],
    creatives: Dict[str, CreativeRecord],
    has_daily_metrics: bool,
    excluded_groups: List[ExcludedGroup],
    fatigue_evaluated: int,
    fatigue_excluded: Dict[str, int],
    leading_sample_size: int,
) -> DataQuality:
    with_issue = sum(
        1 for p in qualifying
        if p.creative_id in creatives and creatives[p.creative_id].issue_primary
    )
    notes: List[str] = []
    if not has_daily_metrics:
        notes.append("No daily delivery metrics in window; lifetime snapshot totals were used.")
    below = len(all_performances) - len(qualifying)
    if below:
        notes.append(f"{below} creatives fell below the impression floor and were not analyzed.")
    if excluded_groups:
        notes.append(f"{len(excluded_groups)} tag groups were too small or had no variance to test.")

    return DataQuality(
        creatives_evaluated=len(all_performances),
        creatives_qualifying=len(qualifying),
        creatives_below_min_impressions=below,
        creatives_from_snapshot=sum(1 for p in qualifying if p.metrics_source == MetricsSource.SNAPSHOT),
        creatives_with_issue_data=with_issue,
        creatives_without_issue_data=len(qualifying) - with_issue,
        avg_impressions_per_creative=round(
            float(np.mean([p.total_impressions for p in qualifying])), 0
        ) if qualifying else 0.0,
        avg_days_active=round(
            float(np.mean([p.days_with_data for p in qualifying])), 1
        ) if qualifying else 0.0,
        has_daily_metrics=has_daily_metrics,
        excluded_groups=excluded_groups,
        fatigue_evaluated=fatigue_evaluated,
        fatigue_excluded=fatigue_excluded,
        leading_indicator_sample_size=leading_sample_size,
        overall_confidence=overall_confidence(len(qualifying), with_issue),
        notes=notes,
    )


# =============================================================================
# Pure pipeline
# =============================================================================


def run_creative_intelligence(
    organization_id: str,
    params: AnalysisParameters,
    creatives: Sequence[CreativeRecord],
    delivery: Sequence[AdDeliveryMetric],
    events: Sequence[DonationEvent],
    attributions: Sequence[AttributionResult],
    generated_at: Optional[datetime] = None,
) -> CreativeIntelligenceResult:
    """
    Run aggregation, the three analyses and synthesis over loaded inputs.

    Args:
        organization_id: Organization being analyzed.
        params: Validated (or to-be-validated) analysis parameters.
        creatives: Creative metadata with tags.
        delivery: Daily delivery rows for the creatives' ads.
        events: Donation events in the window.
        attributions: Resolver output for those events.
        generated_at: Timestamp for the payload (defaults to now, UTC).

    Raises:
        InvalidAnalysisParameters: Before any computation if params are bad.
    """
    validate_parameters(params)

    by_id = {c.creative_id: c for c in creatives}

    aggregation = aggregate_performance(
        creatives, delivery, attributions, events, params.start_date, params.end_date,
    )
    qualifying = filter_qualifying(aggregation.performances, params.min_impressions)
    logger.info(
        f"Creative intelligence for {organization_id}: "
        f"{len(qualifying)}/{len(aggregation.performances)} creatives qualify "
        f"(min_impressions={params.min_impressions})"
    )

    significance = analyze_significance(
        qualifying, by_id, params.min_group_size, params.significance_level,
    )
    leading = analyze_leading_indicators(
        qualifying, aggregation.daily, params.early_window_days,
        params.min_early_impressions, params.significance_level,
    )
    fatigue = detect_fatigue(qualifying, aggregation.daily, params.fatigue_threshold)

    recommendations = synthesize_recommendations(
        qualifying, fatigue.results, by_id, params.min_impressions,
    )

    return CreativeIntelligenceResult(
        generated_at=generated_at or datetime.now(timezone.utc),
        organization_id=organization_id,
        date_range=DateRange(start_date=params.start_date, end_date=params.end_date),
        parameters=params,
        summary=summarize_performance(qualifying, by_id),
        donor_segmentation=segment_donors(
            [e for e in events if params.start_date <= e.occurred_at.date() <= params.end_date],
            params.large_donation_threshold,
        ),
        group_performance=significance.groups,
        fdr_summary=significance.fdr_summary,
        leading_indicators=leading,
        fatigue_alerts=fatigue_alerts(fatigue.results),
        recommendations=recommendations,
        recommendation_summary=summarize_recommendations(recommendations),
        top_performers=select_top_performers(qualifying, by_id),
        data_quality=assess_data_quality(
            aggregation.performances,
            qualifying,
            by_id,
            aggregation.has_daily_metrics,
            significance.excluded_groups,
            len(fatigue.results),
            fatigue.excluded,
            leading.sample_size,
        ),
        has_daily_metrics=aggregation.has_daily_metrics,
    )


# =============================================================================
# Database-backed entry point
# =============================================================================


async def generate_creative_intelligence(
    conn: Any,
    organization_id: str,
    params: AnalysisParameters,
    settings: Optional[Settings] = None,
) -> CreativeIntelligenceResult:
    """
    Load every input for one organization and window, then run the pipeline.

    Args:
        conn: asyncpg connection.
        organization_id: Organization to analyze.
        params: Analysis parameters (validated before any query runs).
        settings: Attribution tuning (fuzzy thresholds, worker count).

    Raises:
        InvalidAnalysisParameters: Bad params; no query is issued.
        RuleStoreError: The organization's rules are inconsistent.
    """
    validate_parameters(params)
    settings = settings or get_settings()

    creative_rows = await conn.fetch(get_creatives_query(), organization_id)
    creatives = [CreativeRecord(**dict(row)) for row in creative_rows]

    ad_ids = sorted({c.ad_id for c in creatives if c.ad_id})
    delivery_rows = await conn.fetch(
        get_delivery_metrics_query(), ad_ids, params.start_date, params.end_date,
    ) if ad_ids else []
    delivery = [AdDeliveryMetric(**dict(row)) for row in delivery_rows]

    event_rows = await conn.fetch(
        get_donations_query(), organization_id, params.start_date, params.end_date,
    )
    events = [DonationEvent(**dict(row)) for row in event_rows]

    spend_rows = await conn.fetch(
        get_campaign_spend_query(), organization_id, params.start_date, params.end_date,
    )
    spend = [CampaignSpend(**dict(row)) for row in spend_rows]

    rule_store = await load_rule_store(conn, organization_id)

    logger.info(
        f"Loaded inputs for {organization_id}: {len(creatives)} creatives, "
        f"{len(delivery)} delivery rows, {len(events)} donations, {len(spend)} spend rows"
    )

    attributions = resolve_batch(
        events,
        rule_store,
        spend,
        max_workers=settings.attribution_max_workers,
        fuzzy_threshold=settings.fuzzy_similarity_threshold,
        fuzzy_cap=settings.fuzzy_confidence_cap,
    )

    return run_creative_intelligence(
        organization_id, params, creatives, delivery, events, attributions,
    )

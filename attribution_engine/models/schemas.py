"""
Pydantic models for the attribution engine.

This module provides type-safe validation and serialization for every value
the engine consumes or produces:

- Inputs read from collaborators: DonationEvent, AttributionRule,
  RefcodeMapping, CampaignSpend, AdDeliveryMetric, CreativeRecord
- Attribution outputs: AttributionResult, AttributionSummary
- Creative analytics outputs: CreativePerformance, GroupPerformance,
  LeadingIndicatorResult, FatigueResult, CreativeRecommendation
- The single invocation payload: CreativeIntelligenceResult
- API request/response wrappers

Derived models are value objects recomputed on every call; none of them is
persisted as a source of truth. Input models are frozen so the resolver and
aggregators cannot mutate shared inputs.

All models use Pydantic v2 syntax.
"""

from datetime import datetime, date as DateType
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from attribution_engine.models.enums import (
    AttributionMethod,
    ConfidenceTier,
    DataConfidence,
    ExclusionReason,
    FatigueState,
    MetricsSource,
    PatternKind,
    PowerInterpretation,
    Recommendation,
    TagDimension,
)


# =============================================================================
# Input Models (read-only collaborator data)
# =============================================================================


class DonationEvent(BaseModel):
    """
    A single recorded donation.

    Produced by the external ingestion collaborator and immutable once
    recorded. The tracking code and click identifiers are the attribution
    signals; everything else is context.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "id": "txn_001",
                "organization_id": "org_1",
                "occurred_at": "2026-01-15T14:30:00Z",
                "amount": 25.0,
                "tracking_code": "fb_summer24",
                "click_id": None,
                "secondary_click_id": None,
            }
        }
    )

    id: str = Field(..., min_length=1, description="Donation identifier")
    organization_id: str = Field(..., min_length=1, description="Owning organization")
    occurred_at: datetime = Field(..., description="Donation timestamp")
    amount: float = Field(..., ge=0.0, description="Donation amount")
    tracking_code: Optional[str] = Field(
        default=None,
        description="Refcode attached to the donation link"
    )
    click_id: Optional[str] = Field(
        default=None,
        description="Platform click identifier"
    )
    secondary_click_id: Optional[str] = Field(
        default=None,
        description="Secondary click identifier (e.g. fbclid)"
    )


class AttributionRule(BaseModel):
    """
    Pattern rule mapping tracking codes to a channel.

    A rule with organization_id=None is global and applies to every
    organization; otherwise it is an organization-scoped override.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "rule_fb",
                "organization_id": None,
                "name": "Facebook prefix",
                "pattern": "fb_",
                "pattern_kind": "prefix",
                "channel": "meta",
                "confidence": 0.90,
                "priority": 10,
                "is_active": True,
            }
        }
    )

    id: str = Field(..., description="Rule identifier")
    organization_id: Optional[str] = Field(
        default=None,
        description="Scope: organization id, or None for a global rule"
    )
    name: str = Field(..., description="Human-readable rule name")
    pattern: str = Field(..., min_length=1, description="Pattern text")
    pattern_kind: PatternKind = Field(..., description="How the pattern is matched")
    channel: str = Field(..., min_length=1, description="Channel assigned on match")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Declared confidence")
    priority: int = Field(default=100, description="Lower value = higher precedence")
    is_active: bool = Field(default=True, description="Inactive rules are ignored")

    @property
    def is_global(self) -> bool:
        return self.organization_id is None


class RefcodeMapping(BaseModel):
    """
    Organization-scoped exact mapping from a refcode to a channel.

    When ad_id is present the mapping is URL-proven and resolves at the
    deterministic tier; without it the mapping only reaches medium.
    """
    model_config = ConfigDict(frozen=True)

    organization_id: str
    refcode: str = Field(..., min_length=1)
    channel: str
    ad_id: Optional[str] = None
    campaign_id: Optional[str] = None
    creative_id: Optional[str] = None


class CampaignSpend(BaseModel):
    """
    One campaign's spend on one calendar date, used for temporal correlation.
    """
    model_config = ConfigDict(frozen=True)

    organization_id: str
    date: DateType
    campaign_id: str
    ad_id: Optional[str] = None
    campaign_name: Optional[str] = None
    channel: str = "meta"
    spend: float = Field(default=0.0, ge=0.0)


class AdDeliveryMetric(BaseModel):
    """
    Daily ad delivery metrics for a single ad.
    """
    model_config = ConfigDict(frozen=True)

    ad_id: str
    date: DateType
    impressions: int = Field(default=0, ge=0)
    clicks: int = Field(default=0, ge=0)
    spend: float = Field(default=0.0, ge=0.0)
    video_progress_buckets: Dict[str, int] = Field(
        default_factory=dict,
        description="Video completion counts keyed by bucket (p25, p50, p75, p100)"
    )


class CreativeRecord(BaseModel):
    """
    Creative metadata with qualitative tags from the external tagging step.

    The snapshot_* fields carry the lifetime totals stored alongside the
    creative; the aggregator falls back to them when no daily delivery rows
    exist for the requested window.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "creative_id": "cr_1",
                "ad_id": "ad_1",
                "issue_primary": "healthcare",
                "political_stances": ["pro_medicare_expansion"],
                "targets_attacked": ["insurers"],
                "donor_pain_points": ["drug_prices"],
                "analysis_confidence": 0.82,
            }
        }
    )

    creative_id: str
    ad_id: Optional[str] = None
    issue_primary: Optional[str] = None
    political_stances: List[str] = Field(default_factory=list)
    targets_attacked: List[str] = Field(default_factory=list)
    donor_pain_points: List[str] = Field(default_factory=list)
    values_appealed: List[str] = Field(default_factory=list)
    issue_tags: List[str] = Field(default_factory=list)
    policy_positions: List[str] = Field(default_factory=list)
    headline: Optional[str] = None
    creative_type: Optional[str] = None
    analysis_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    snapshot_impressions: int = Field(default=0, ge=0)
    snapshot_clicks: int = Field(default=0, ge=0)
    snapshot_spend: float = Field(default=0.0, ge=0.0)
    snapshot_roas: Optional[float] = Field(default=None, ge=0.0)
    created_at: Optional[datetime] = None

    def tag_values(self, dimension: TagDimension) -> List[str]:
        """
        Distinct tag values this creative carries for one dimension.

        Secondary issue tags exclude the primary issue so a creative is not
        counted twice for the same topic.
        """
        if dimension == TagDimension.ISSUE:
            return [self.issue_primary] if self.issue_primary else []
        values = getattr(self, dimension.value)
        if dimension == TagDimension.ISSUE_TAG:
            values = [v for v in values if v != self.issue_primary]
        return list(dict.fromkeys(v for v in values if v))


# =============================================================================
# Attribution Outputs
# =============================================================================


class AttributionResult(BaseModel):
    """
    Best channel/campaign/ad match for one donation.

    Derived and idempotent: recomputable from the event, the rule store and
    the campaign spend snapshot.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "event_id": "txn_001",
                "channel": "meta",
                "confidence_score": 0.90,
                "confidence_tier": "high",
                "method": "pattern_rule",
                "tier_rank": 2,
                "matched_ad_id": None,
                "matched_campaign_id": None,
                "matched_creative_id": None,
                "rule_name": "Facebook prefix",
                "is_global_rule": True,
            }
        }
    )

    event_id: str
    channel: str
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    confidence_tier: ConfidenceTier
    method: AttributionMethod
    tier_rank: int = Field(..., ge=0, le=4, description="1-4 waterfall tier, 0 = none")
    matched_ad_id: Optional[str] = None
    matched_campaign_id: Optional[str] = None
    matched_creative_id: Optional[str] = None
    rule_name: Optional[str] = None
    is_global_rule: bool = False


class TierBreakdown(BaseModel):
    """Count and revenue for one slice of a batch."""
    count: int = 0
    revenue: float = 0.0


class AttributionSummary(BaseModel):
    """
    Roll-up of a batch attribution run.
    """
    total_events: int = 0
    total_revenue: float = 0.0
    attributed_events: int = 0
    attributed_revenue: float = 0.0
    attributed_revenue_share: float = 0.0
    by_tier: Dict[str, TierBreakdown] = Field(default_factory=dict)
    by_channel: Dict[str, TierBreakdown] = Field(default_factory=dict)
    mean_confidence: float = 0.0


# =============================================================================
# Creative Analytics Outputs
# =============================================================================


class CreativePerformance(BaseModel):
    """
    Per-creative financial and engagement ratios over the analysis window.

    Computed per invocation; a cache of the ledgers, never authoritative.
    """
    creative_id: str
    ad_id: Optional[str] = None
    total_impressions: int = 0
    total_clicks: int = 0
    total_spend: float = 0.0
    total_revenue: float = 0.0
    donation_count: int = 0
    click_through_rate: float = 0.0
    cost_per_mille: float = 0.0
    return_on_spend: float = 0.0
    days_with_data: int = 0
    first_date: Optional[DateType] = None
    last_date: Optional[DateType] = None
    metrics_source: MetricsSource = MetricsSource.DAILY


class GroupPerformance(BaseModel):
    """
    Significance-tested return-on-spend statistics for one tag value.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "dimension": "issue_primary",
                "group_key": "healthcare",
                "n": 10,
                "mean_return": 2.1,
                "stddev_return": 0.3,
                "ci_lower": 1.9141,
                "ci_upper": 2.2859,
                "p_value": 0.0,
                "adjusted_p_value": 0.0,
                "is_significant": True,
                "effect_size": 1.1,
                "statistical_power": 1.0,
                "power_interpretation": "Adequately powered",
            }
        }
    )

    dimension: TagDimension
    group_key: str
    n: int
    mean_return: float
    stddev_return: float
    median_return: float
    min_return: float
    max_return: float
    total_impressions: int = 0
    total_spend: float = 0.0
    total_revenue: float = 0.0
    standard_error: float
    ci_lower: float
    ci_upper: float
    z_score: float
    p_value: float = Field(..., ge=0.0, le=1.0)
    adjusted_p_value: float = Field(..., ge=0.0, le=1.0)
    is_significant: bool
    effect_size: float
    statistical_power: float = Field(..., ge=0.0, le=1.0)
    power_interpretation: PowerInterpretation


class ExcludedGroup(BaseModel):
    """A tag group left out of significance testing, and why."""
    dimension: TagDimension
    group_key: str
    n: int
    reason: ExclusionReason


class FdrSummary(BaseModel):
    """Benjamini-Hochberg roll-up across every tested group."""
    correction_method: str = "benjamini-hochberg"
    total_tests: int = 0
    significant_tests: int = 0
    mean_raw_p_value: Optional[float] = None
    mean_adjusted_p_value: Optional[float] = None
    mean_statistical_power: Optional[float] = None
    adequately_powered_tests: int = 0


class SignificanceReport(BaseModel):
    """Output of the significance engine for one run."""
    global_mean_return: float = 0.0
    global_stddev_return: float = 0.0
    global_n: int = 0
    groups: Dict[str, List[GroupPerformance]] = Field(default_factory=dict)
    excluded_groups: List[ExcludedGroup] = Field(default_factory=list)
    fdr_summary: FdrSummary = Field(default_factory=FdrSummary)


class CorrelationResult(BaseModel):
    """Pearson correlation of an early metric with final ROAS."""
    metric: str
    coefficient: Optional[float] = None
    p_value: Optional[float] = None
    is_significant: bool = False
    sample_size: int = 0


class CtrBucket(BaseModel):
    """Final ROAS outcomes for creatives grouped by early CTR band."""
    bucket: str
    count: int
    avg_roas: float
    profitable_rate: float


class LeadingIndicatorResult(BaseModel):
    """Output of the leading-indicator engine."""
    early_window_days: int
    sample_size: int = 0
    avg_early_impressions: float = 0.0
    ctr_correlation: CorrelationResult
    cpm_correlation: CorrelationResult
    ctr_buckets: List[CtrBucket] = Field(default_factory=list)
    excluded_creatives: Dict[str, int] = Field(default_factory=dict)
    insight: str


class FatigueResult(BaseModel):
    """
    Engagement-trend classification for one creative.

    trend_slope holds the full-precision slope so sign checks downstream see
    tiny negative trends; it is rounded to 6 dp only when serialized.
    """
    creative_id: str
    days_with_data: int
    peak_ctr: float
    recent_ctr: float
    decline_from_peak: float
    trend_slope: float
    state: FatigueState

    @field_serializer('trend_slope')
    def serialize_trend_slope(self, value: float) -> float:
        return round(value, 6)


class CreativeRecommendation(BaseModel):
    """One budget action for one creative, with its reasoning."""
    creative_id: str
    ad_id: Optional[str] = None
    issue_primary: Optional[str] = None
    headline: Optional[str] = None
    total_impressions: int
    total_spend: float
    total_revenue: float
    return_on_spend: float
    click_through_rate: float
    days_with_data: int
    fatigue_state: Optional[FatigueState] = None
    trend_slope: Optional[float] = None
    recommendation: Recommendation
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    rationale: str

    @field_serializer('trend_slope')
    def serialize_trend_slope(self, value: Optional[float]) -> Optional[float]:
        return None if value is None else round(value, 6)


class RecommendationSummary(BaseModel):
    """Count of creatives per recommended action."""
    scale: int = 0
    maintain: int = 0
    watch: int = 0
    refresh: int = 0
    pause: int = 0
    gather_data: int = 0


class DonorSegment(BaseModel):
    count: int = 0
    total_amount: float = 0.0
    percentage_of_total: float = 0.0


class DonorSegmentation(BaseModel):
    """Small vs large donor split for the window's donations."""
    large_donation_threshold: float
    small_donors: DonorSegment = Field(default_factory=DonorSegment)
    large_donors: DonorSegment = Field(default_factory=DonorSegment)
    average_donation: float = 0.0
    median_donation: float = 0.0
    total_donors: int = 0
    total_donations: float = 0.0


class SummaryStats(BaseModel):
    """Headline totals across qualifying creatives."""
    total_creatives: int = 0
    total_impressions: int = 0
    total_spend: float = 0.0
    total_revenue: float = 0.0
    overall_roas: float = 0.0
    creatives_with_issues: int = 0


class DataQuality(BaseModel):
    """
    Sample adequacy of a run.

    Every creative or group excluded from a statistic is accounted for here
    so an empty table is never mistaken for "nothing interesting".
    """
    creatives_evaluated: int = 0
    creatives_qualifying: int = 0
    creatives_below_min_impressions: int = 0
    creatives_from_snapshot: int = 0
    creatives_with_issue_data: int = 0
    creatives_without_issue_data: int = 0
    avg_impressions_per_creative: float = 0.0
    avg_days_active: float = 0.0
    has_daily_metrics: bool = False
    excluded_groups: List[ExcludedGroup] = Field(default_factory=list)
    fatigue_evaluated: int = 0
    fatigue_excluded: Dict[str, int] = Field(default_factory=dict)
    leading_indicator_sample_size: int = 0
    overall_confidence: DataConfidence = DataConfidence.LOW
    notes: List[str] = Field(default_factory=list)


class DateRange(BaseModel):
    start_date: DateType
    end_date: DateType


class AnalysisParameters(BaseModel):
    """
    Caller-supplied knobs for one creative intelligence run.

    Validation happens in services.creative_intelligence.validate_parameters
    so that bad input surfaces as InvalidAnalysisParameters before any
    computation.
    """
    start_date: DateType
    end_date: DateType
    min_impressions: int = 1000
    early_window_days: int = 3
    fatigue_threshold: float = 0.20
    significance_level: float = 0.05
    min_group_size: int = 3
    min_early_impressions: int = 500
    large_donation_threshold: float = 200.0


class TopPerformer(BaseModel):
    creative_id: str
    ad_id: Optional[str] = None
    issue_primary: Optional[str] = None
    headline: Optional[str] = None
    total_impressions: int
    return_on_spend: float
    click_through_rate: float
    days_with_data: int


class CreativeIntelligenceResult(BaseModel):
    """
    The single structured payload returned by one engine invocation.
    """
    generated_at: datetime
    organization_id: str
    date_range: DateRange
    parameters: AnalysisParameters
    summary: SummaryStats
    donor_segmentation: DonorSegmentation
    group_performance: Dict[str, List[GroupPerformance]] = Field(default_factory=dict)
    fdr_summary: FdrSummary
    leading_indicators: LeadingIndicatorResult
    fatigue_alerts: List[FatigueResult] = Field(default_factory=list)
    recommendations: List[CreativeRecommendation] = Field(default_factory=list)
    recommendation_summary: RecommendationSummary
    top_performers: List[TopPerformer] = Field(default_factory=list)
    data_quality: DataQuality
    has_daily_metrics: bool = False


# =============================================================================
# API Request / Response Wrappers
# =============================================================================


class BatchAttributionRequest(BaseModel):
    """Body of POST /attribution/batch."""
    organization_id: str = Field(..., min_length=1)
    events: List[DonationEvent] = Field(..., min_length=1)


class BatchAttributionResponse(BaseModel):
    """Results in input order plus the batch roll-up."""
    results: List[AttributionResult]
    summary: AttributionSummary

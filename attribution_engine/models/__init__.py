"""
Package initialization file for engine models.

Re-exports every Pydantic schema and enumeration so other modules can import
data models from attribution_engine.models directly.

Usage:
    from attribution_engine.models import (
        DonationEvent,
        AttributionResult,
        ConfidenceTier,
        CreativeIntelligenceResult,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from attribution_engine.models.enums import (
    # Attribution
    ConfidenceTier,
    AttributionMethod,
    PatternKind,
    Channel,
    # Creative analytics
    FatigueState,
    Recommendation,
    TagDimension,
    PowerInterpretation,
    ExclusionReason,
    MetricsSource,
    DataConfidence,
)


# =============================================================================
# Schemas
# =============================================================================

from attribution_engine.models.schemas import (
    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------
    DonationEvent,
    AttributionRule,
    RefcodeMapping,
    CampaignSpend,
    AdDeliveryMetric,
    CreativeRecord,

    # -------------------------------------------------------------------------
    # Attribution outputs
    # -------------------------------------------------------------------------
    AttributionResult,
    TierBreakdown,
    AttributionSummary,

    # -------------------------------------------------------------------------
    # Creative analytics outputs
    # -------------------------------------------------------------------------
    CreativePerformance,
    GroupPerformance,
    ExcludedGroup,
    FdrSummary,
    SignificanceReport,
    CorrelationResult,
    CtrBucket,
    LeadingIndicatorResult,
    FatigueResult,
    CreativeRecommendation,
    RecommendationSummary,
    DonorSegment,
    DonorSegmentation,
    SummaryStats,
    DataQuality,
    DateRange,
    AnalysisParameters,
    TopPerformer,
    CreativeIntelligenceResult,

    # -------------------------------------------------------------------------
    # API wrappers
    # -------------------------------------------------------------------------
    BatchAttributionRequest,
    BatchAttributionResponse,
)


__all__ = [
    # Enums
    'ConfidenceTier',
    'AttributionMethod',
    'PatternKind',
    'Channel',
    'FatigueState',
    'Recommendation',
    'TagDimension',
    'PowerInterpretation',
    'ExclusionReason',
    'MetricsSource',
    'DataConfidence',
    # Inputs
    'DonationEvent',
    'AttributionRule',
    'RefcodeMapping',
    'CampaignSpend',
    'AdDeliveryMetric',
    'CreativeRecord',
    # Attribution outputs
    'AttributionResult',
    'TierBreakdown',
    'AttributionSummary',
    # Creative analytics outputs
    'CreativePerformance',
    'GroupPerformance',
    'ExcludedGroup',
    'FdrSummary',
    'SignificanceReport',
    'CorrelationResult',
    'CtrBucket',
    'LeadingIndicatorResult',
    'FatigueResult',
    'CreativeRecommendation',
    'RecommendationSummary',
    'DonorSegment',
    'DonorSegmentation',
    'SummaryStats',
    'DataQuality',
    'DateRange',
    'AnalysisParameters',
    'TopPerformer',
    'CreativeIntelligenceResult',
    # API wrappers
    'BatchAttributionRequest',
    'BatchAttributionResponse',
]

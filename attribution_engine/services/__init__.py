"""
Engine Services Module

Business logic for attribution and creative analytics. Every service is a
stateless function of its inputs; only the loaders touch the database.

Services:
- rule_store: scoped pattern rules and refcode mappings
- attribution: four-tier attribution waterfall for one donation
- batch_attribution: fan-out over many donations plus batch roll-up
- performance: per-creative financial and engagement aggregation
- significance: tag-group z-tests with Benjamini-Hochberg FDR control
- leading_indicators: early-window engagement vs final ROAS
- fatigue: engagement decay classification
- recommendations: per-creative budget actions
- creative_intelligence: end-to-end pipeline and result payload

All services are consumed by the API layer (attribution_engine/api/).
"""

# =============================================================================
# Attribution
# =============================================================================

from attribution_engine.services.rule_store import (
    RuleStore,
    default_global_rules,
    load_rule_store,
    normalize_code,
    pattern_matches,
)
from attribution_engine.services.attribution import (
    MATCHERS,
    SpendSnapshot,
    resolve,
    trigram_similarity,
    trigrams,
    unattributed,
)
from attribution_engine.services.batch_attribution import (
    resolve_batch,
    summarize_attributions,
)

# =============================================================================
# Creative analytics
# =============================================================================

from attribution_engine.services.performance import (
    PerformanceAggregation,
    aggregate_performance,
    build_daily_frame,
    filter_qualifying,
)
from attribution_engine.services.significance import (
    analyze_significance,
    benjamini_hochberg,
    statistical_power,
    two_tailed_p_value,
)
from attribution_engine.services.leading_indicators import (
    analyze_leading_indicators,
    pearson_correlation,
)
from attribution_engine.services.fatigue import (
    FatigueAnalysis,
    classify_fatigue,
    detect_fatigue,
    fatigue_alerts,
)
from attribution_engine.services.recommendations import (
    choose_action,
    recommendation_confidence,
    summarize_recommendations,
    synthesize_recommendations,
)
from attribution_engine.services.creative_intelligence import (
    build_parameters,
    generate_creative_intelligence,
    run_creative_intelligence,
    segment_donors,
    validate_parameters,
)

__all__ = [
    'RuleStore',
    'default_global_rules',
    'load_rule_store',
    'normalize_code',
    'pattern_matches',
    'MATCHERS',
    'SpendSnapshot',
    'resolve',
    'trigram_similarity',
    'trigrams',
    'unattributed',
    'resolve_batch',
    'summarize_attributions',
    'PerformanceAggregation',
    'aggregate_performance',
    'build_daily_frame',
    'filter_qualifying',
    'analyze_significance',
    'benjamini_hochberg',
    'statistical_power',
    'two_tailed_p_value',
    'analyze_leading_indicators',
    'pearson_correlation',
    'FatigueAnalysis',
    'classify_fatigue',
    'detect_fatigue',
    'fatigue_alerts',
    'choose_action',
    'recommendation_confidence',
    'summarize_recommendations',
    'synthesize_recommendations',
    'build_parameters',
    'generate_creative_intelligence',
    'run_creative_intelligence',
    'segment_donors',
    'validate_parameters',
]

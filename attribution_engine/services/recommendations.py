"""
Recommendation Synthesizer.

Combines a creative's performance, fatigue state and tag-analysis confidence
into one budget action with a rationale.

Precedence (first match wins):
    1. FATIGUED                                   -> REFRESH
    2. ROAS >= 1.5, slope >= 0, impressions >= 5000 -> SCALE
    3. ROAS >= 1.0, slope >= 0                    -> MAINTAIN
    4. ROAS < 0.5, impressions >= 3000            -> PAUSE
    5. impressions < 2 * min_impressions          -> GATHER_DATA
    6. otherwise                                  -> WATCH

A creative without a fatigue result is treated as slope 0.

Confidence:
    0.6 * min(1, impressions / 10000) + 0.4 * analysis_confidence
    (analysis_confidence defaults to 0.5), capped at 1.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from attribution_engine.models.enums import FatigueState, Recommendation
from attribution_engine.models.schemas import (
    CreativePerformance,
    CreativeRecommendation,
    CreativeRecord,
    FatigueResult,
    RecommendationSummary,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Thresholds
# =============================================================================

SCALE_ROAS: float = 1.5
SCALE_MIN_IMPRESSIONS: int = 5000
MAINTAIN_ROAS: float = 1.0
PAUSE_ROAS: float = 0.5
PAUSE_MIN_IMPRESSIONS: int = 3000

VOLUME_SATURATION_IMPRESSIONS: int = 10000
VOLUME_WEIGHT: float = 0.6
ANALYSIS_WEIGHT: float = 0.4
DEFAULT_ANALYSIS_CONFIDENCE: float = 0.5


def choose_action(
    roas: float,
    impressions: int,
    slope: float,
    fatigue_state: Optional[FatigueState],
    min_impressions: int,
) -> Recommendation:
    if fatigue_state == FatigueState.FATIGUED:
        return Recommendation.REFRESH
    if roas >= SCALE_ROAS and slope >= 0 and impressions >= SCALE_MIN_IMPRESSIONS:
        return Recommendation.SCALE
    if roas >= MAINTAIN_ROAS and slope >= 0:
        return Recommendation.MAINTAIN
    if roas < PAUSE_ROAS and impressions >= PAUSE_MIN_IMPRESSIONS:
        return Recommendation.PAUSE
    if impressions < 2 * min_impressions:
        return Recommendation.GATHER_DATA
    return Recommendation.WATCH


def recommendation_confidence(impressions: int, analysis_confidence: Optional[float]) -> float:
    volume = min(1.0, impressions / VOLUME_SATURATION_IMPRESSIONS)
    analysis = DEFAULT_ANALYSIS_CONFIDENCE if analysis_confidence is None else analysis_confidence
    return round(min(1.0, VOLUME_WEIGHT * volume + ANALYSIS_WEIGHT * analysis), 4)


def _trend_phrase(fatigue: Optional[FatigueResult]) -> str:
    if fatigue is None:
        return "no trend data"
    if fatigue.state == FatigueState.FATIGUED:
        return f"CTR down {fatigue.decline_from_peak:.0%} from peak"
    if fatigue.state == FatigueState.DECLINING:
        return f"CTR declining ({fatigue.decline_from_peak:.0%} below peak)"
    if fatigue.state == FatigueState.IMPROVING:
        return "CTR improving"
    return "stable CTR"


def build_rationale(
    action: Recommendation,
    perf: CreativePerformance,
    fatigue: Optional[FatigueResult],
) -> str:
    """One sentence naming ROAS, trend and impressions behind the action."""
    roas = f"{perf.return_on_spend:.2f}x ROAS"
    trend = _trend_phrase(fatigue)
    volume = f"{perf.total_impressions:,} impressions"

    if action == Recommendation.REFRESH:
        return f"Creative fatigue detected: {trend} at {roas} over {volume}. Refresh or replace the creative."
    if action == Recommendation.SCALE:
        return f"Strong performer: {roas} with {trend} over {volume}. Increase budget."
    if action == Recommendation.MAINTAIN:
        return f"Profitable at {roas} with {trend} over {volume}. Maintain current spend."
    if action == Recommendation.PAUSE:
        return f"Underperforming at {roas} after {volume} ({trend}). Pause spend."
    if action == Recommendation.GATHER_DATA:
        return f"Only {volume} so far ({roas}, {trend}). Gather more data before acting."
    return f"Mixed signals: {roas} with {trend} over {volume}. Monitor closely."


def synthesize_recommendations(
    performances: Sequence[CreativePerformance],
    fatigue: Mapping[str, FatigueResult],
    creatives: Mapping[str, CreativeRecord],
    min_impressions: int = 1000,
) -> List[CreativeRecommendation]:
    """
    One recommendation per performance row, sorted by ROAS descending.

    Args:
        performances: Qualifying creatives.
        fatigue: FatigueResult by creative_id (missing entries mean slope 0).
        creatives: CreativeRecord by creative_id for metadata and
            analysis_confidence.
        min_impressions: The run's impression floor (for GATHER_DATA).
    """
    recommendations: List[CreativeRecommendation] = []
    for perf in performances:
        fatigue_result = fatigue.get(perf.creative_id)
        creative = creatives.get(perf.creative_id)
        slope = fatigue_result.trend_slope if fatigue_result is not None else 0.0
        state = fatigue_result.state if fatigue_result is not None else None

        action = choose_action(
            perf.return_on_spend, perf.total_impressions, slope, state, min_impressions,
        )
        recommendations.append(CreativeRecommendation(
            creative_id=perf.creative_id,
            ad_id=perf.ad_id,
            issue_primary=creative.issue_primary if creative else None,
            headline=creative.headline if creative else None,
            total_impressions=perf.total_impressions,
            total_spend=perf.total_spend,
            total_revenue=perf.total_revenue,
            return_on_spend=perf.return_on_spend,
            click_through_rate=perf.click_through_rate,
            days_with_data=perf.days_with_data,
            fatigue_state=state,
            trend_slope=fatigue_result.trend_slope if fatigue_result is not None else None,
            recommendation=action,
            confidence_score=recommendation_confidence(
                perf.total_impressions,
                creative.analysis_confidence if creative else None,
            ),
            rationale=build_rationale(action, perf, fatigue_result),
        ))

    recommendations.sort(key=lambda r: (-r.return_on_spend, r.creative_id))
    return recommendations


def summarize_recommendations(recommendations: Sequence[CreativeRecommendation]) -> RecommendationSummary:
    counts: Dict[str, int] = {}
    for rec in recommendations:
        key = rec.recommendation.value.lower()
        counts[key] = counts.get(key, 0) + 1
    return RecommendationSummary(**counts)

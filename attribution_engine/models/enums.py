"""
Enumeration definitions for the attribution engine.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models, so values appear as plain strings in API
responses and in the creative intelligence payload.
"""

from enum import Enum


class ConfidenceTier(str, Enum):
    """
    Attribution confidence class assigned to a resolved donation.

    Ordered from strongest to weakest evidence:
    - deterministic: click identifier or exact refcode mapping naming an ad (1.00)
    - high: pattern rule match (0.85 - 0.95, from the rule)
    - medium: mapping without ad id (0.75) or fuzzy refcode match (0.60 - 0.80)
    - low: temporal correlation with the highest-spend active campaign (0.40)
    - none: no signal at all (0.00)
    """
    DETERMINISTIC = "deterministic"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"

    @property
    def rank(self) -> int:
        """Waterfall tier number (1 = deterministic, 0 = unattributed)."""
        return _TIER_RANKS[self]


_TIER_RANKS = {
    ConfidenceTier.DETERMINISTIC: 1,
    ConfidenceTier.HIGH: 2,
    ConfidenceTier.MEDIUM: 3,
    ConfidenceTier.LOW: 4,
    ConfidenceTier.NONE: 0,
}


class AttributionMethod(str, Enum):
    """
    Which matcher in the waterfall produced an attribution.

    Each confidence tier is reached through one or two methods; the method
    lets downstream consumers tell code-based attribution apart from the
    temporal-correlation heuristic.
    """
    CLICK_ID = "click_id"
    REFCODE_EXACT_WITH_AD = "refcode_exact_with_ad"
    PATTERN_RULE = "pattern_rule"
    REFCODE_MAPPING_NO_AD = "refcode_mapping_no_ad"
    FUZZY_MATCH = "fuzzy_match"
    TEMPORAL_CORRELATION = "temporal_correlation"
    NO_MATCH = "no_match"


class PatternKind(str, Enum):
    """
    How an attribution rule's pattern is compared with a tracking code.

    Matching is performed on lower-cased codes.
    """
    EXACT = "exact"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    CONTAINS = "contains"
    REGEX = "regex"


class Channel(str, Enum):
    """
    Well-known marketing channels.

    Rules may name any channel string; these are the values the engine
    itself emits (click identifiers resolve to META, no match resolves to
    UNATTRIBUTED).
    """
    META = "meta"
    SMS = "sms"
    EMAIL = "email"
    GOOGLE = "google"
    OTHER = "other"
    UNATTRIBUTED = "unattributed"


class FatigueState(str, Enum):
    """
    Creative engagement decay state.

    Recomputed from the full history window on every run:
    - STABLE: no meaningful trend either way
    - IMPROVING: positive CTR trend slope
    - DECLINING: decline >= half the fatigue threshold with negative slope
    - FATIGUED: decline >= fatigue threshold with negative slope
    """
    STABLE = "STABLE"
    IMPROVING = "IMPROVING"
    DECLINING = "DECLINING"
    FATIGUED = "FATIGUED"


class Recommendation(str, Enum):
    """
    Per-creative budget action.

    - SCALE: strong ROAS, non-negative trend, enough volume -> raise budget
    - MAINTAIN: profitable and stable -> keep spend
    - WATCH: mixed signals -> monitor
    - REFRESH: fatigued -> replace or rework the creative
    - PAUSE: poor ROAS with sufficient data -> stop spend
    - GATHER_DATA: too few impressions to judge
    """
    SCALE = "SCALE"
    MAINTAIN = "MAINTAIN"
    WATCH = "WATCH"
    REFRESH = "REFRESH"
    PAUSE = "PAUSE"
    GATHER_DATA = "GATHER_DATA"


class TagDimension(str, Enum):
    """
    Qualitative creative attributes tested by the significance engine.
    """
    ISSUE = "issue_primary"
    STANCE = "political_stances"
    TARGET = "targets_attacked"
    PAIN_POINT = "donor_pain_points"
    VALUE = "values_appealed"
    ISSUE_TAG = "issue_tags"
    POLICY = "policy_positions"


class PowerInterpretation(str, Enum):
    """Qualitative label for an estimated statistical power."""
    ADEQUATE = "Adequately powered"
    MODERATE = "Moderately powered"
    UNDERPOWERED = "Underpowered"
    INSUFFICIENT = "Insufficient data"


class ExclusionReason(str, Enum):
    """Why a group or creative was left out of a statistical output."""
    INSUFFICIENT_SAMPLE = "insufficient_sample"
    ZERO_VARIANCE = "zero_variance"
    INSUFFICIENT_HISTORY = "insufficient_history"
    NO_QUALIFYING_DAYS = "no_qualifying_days"
    LOW_EARLY_IMPRESSIONS = "low_early_impressions"


class MetricsSource(str, Enum):
    """Where a creative's delivery totals came from."""
    DAILY = "daily"
    SNAPSHOT = "snapshot"


class DataConfidence(str, Enum):
    """Overall sample adequacy of a creative intelligence run."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

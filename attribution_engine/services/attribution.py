"""
Attribution Resolver Service.

Resolves one donation event into its best channel/campaign/ad match with a
calibrated confidence, using a deterministic four-tier waterfall.

Waterfall (first match wins):
    Tier 1 - DETERMINISTIC (1.00)
        1a. click_id or secondary_click_id present -> meta
        1b. exact refcode mapping that names an ad
    Tier 2 - HIGH (rule confidence)
        Pattern rule match; organization rules before global rules
    Tier 3 - MEDIUM
        3a. exact refcode mapping without an ad (0.75)
        3b. trigram-similar known refcode, similarity > 0.60, capped at 0.80
    Tier 4 - LOW (0.40)
        Highest-spend campaign with spend on the donation's calendar date
    NONE (0.00)
        Unattributed

The waterfall is an ordered list of matcher functions. Each matcher returns
an AttributionResult or None; resolve() returns the first non-None result.

The resolver never raises for missing or ambiguous signal. Every input gap
degrades to the next tier.

Trigram similarity mirrors PostgreSQL pg_trgm: words are padded with two
leading blanks and one trailing blank, and similarity is the Jaccard ratio of
the two trigram sets.

Usage:
    from attribution_engine.services.attribution import resolve

    result = resolve(event, rule_store, spend_as_of)
"""

import logging
import re
from collections import defaultdict
from datetime import date
from typing import Callable, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple, Union

from attribution_engine.models.enums import AttributionMethod, Channel, ConfidenceTier
from attribution_engine.models.schemas import AttributionResult, CampaignSpend, DonationEvent
from attribution_engine.services.rule_store import RuleStore, normalize_code


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DETERMINISTIC_CONFIDENCE: float = 1.00
MAPPING_NO_AD_CONFIDENCE: float = 0.75
TEMPORAL_CONFIDENCE: float = 0.40
NO_MATCH_CONFIDENCE: float = 0.00

# Fuzzy candidates must score strictly above the threshold
FUZZY_SIMILARITY_THRESHOLD: float = 0.60
FUZZY_CONFIDENCE_CAP: float = 0.80

CLICK_ID_RULE_NAME = "Click ID Match"
EXACT_MAPPING_RULE_NAME = "Exact Refcode Mapping"
MAPPING_NO_AD_RULE_NAME = "Refcode Mapping (No Ad ID)"


# =============================================================================
# Trigram similarity
# =============================================================================

_NON_WORD = re.compile(r'[^0-9a-z]+')


def trigrams(text: str) -> FrozenSet[str]:
    """
    Extract the pg_trgm trigram set of a string.

    Non-alphanumeric characters split words; each word is padded with two
    leading blanks and one trailing blank before trigrams are taken.

    Example:
        >>> sorted(trigrams("cat"))
        ['  c', ' ca', 'at ', 'cat']
    """
    grams = set()
    for word in _NON_WORD.split(text.lower()):
        if not word:
            continue
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i:i + 3])
    return frozenset(grams)


def trigram_similarity(a: str, b: str) -> float:
    """
    Jaccard similarity of two strings' trigram sets (0.0 - 1.0).

    Two strings without any trigrams have similarity 0.
    """
    grams_a = trigrams(a)
    grams_b = trigrams(b)
    union = grams_a | grams_b
    if not union:
        return 0.0
    return len(grams_a & grams_b) / len(union)


# =============================================================================
# Campaign spend snapshot
# =============================================================================


class SpendSnapshot:
    """
    Daily campaign spend indexed by (organization_id, date).

    Built once per batch so tier 4 lookups do not rescan the spend rows for
    every donation.
    """

    def __init__(self, rows: Iterable[CampaignSpend] = ()) -> None:
        index: Dict[Tuple[str, date], List[CampaignSpend]] = defaultdict(list)
        for row in rows:
            index[(row.organization_id, row.date)].append(row)
        self._index = dict(index)

    def top_campaign(self, organization_id: str, day: date) -> Optional[CampaignSpend]:
        """Highest-spend campaign with spend > 0; ties by campaign_id ascending."""
        candidates = [r for r in self._index.get((organization_id, day), []) if r.spend > 0]
        if not candidates:
            return None
        return min(candidates, key=lambda r: (-r.spend, r.campaign_id))


SpendInput = Union[SpendSnapshot, Iterable[CampaignSpend], None]


def as_spend_snapshot(spend_as_of: SpendInput) -> SpendSnapshot:
    if isinstance(spend_as_of, SpendSnapshot):
        return spend_as_of
    return SpendSnapshot(spend_as_of or ())


# =============================================================================
# Matchers (the waterfall)
# =============================================================================


class _Context(NamedTuple):
    event: DonationEvent
    code: str
    rule_store: RuleStore
    spend: SpendSnapshot
    fuzzy_threshold: float
    fuzzy_cap: float


def _result(
    event: DonationEvent,
    channel: str,
    score: float,
    tier: ConfidenceTier,
    method: AttributionMethod,
    **extra,
) -> AttributionResult:
    return AttributionResult(
        event_id=event.id,
        channel=channel,
        confidence_score=round(score, 4),
        confidence_tier=tier,
        method=method,
        tier_rank=tier.rank,
        **extra,
    )


def _match_click_id(ctx: _Context) -> Optional[AttributionResult]:
    click = (ctx.event.click_id or '').strip() or (ctx.event.secondary_click_id or '').strip()
    if not click:
        return None
    return _result(
        ctx.event, Channel.META.value, DETERMINISTIC_CONFIDENCE,
        ConfidenceTier.DETERMINISTIC, AttributionMethod.CLICK_ID,
        rule_name=CLICK_ID_RULE_NAME,
    )


def _match_mapping_with_ad(ctx: _Context) -> Optional[AttributionResult]:
    mapping = ctx.rule_store.find_mapping(ctx.event.organization_id, ctx.code)
    if mapping is None or not mapping.ad_id:
        return None
    return _result(
        ctx.event, mapping.channel, DETERMINISTIC_CONFIDENCE,
        ConfidenceTier.DETERMINISTIC, AttributionMethod.REFCODE_EXACT_WITH_AD,
        matched_ad_id=mapping.ad_id,
        matched_campaign_id=mapping.campaign_id,
        matched_creative_id=mapping.creative_id,
        rule_name=EXACT_MAPPING_RULE_NAME,
    )


def _match_pattern_rule(ctx: _Context) -> Optional[AttributionResult]:
    rule = ctx.rule_store.match_rule(ctx.event.organization_id, ctx.code)
    if rule is None:
        return None
    return _result(
        ctx.event, rule.channel, rule.confidence,
        ConfidenceTier.HIGH, AttributionMethod.PATTERN_RULE,
        rule_name=rule.name,
        is_global_rule=rule.is_global,
    )


def _match_mapping_no_ad(ctx: _Context) -> Optional[AttributionResult]:
    mapping = ctx.rule_store.find_mapping(ctx.event.organization_id, ctx.code)
    if mapping is None or mapping.ad_id:
        return None
    return _result(
        ctx.event, mapping.channel, MAPPING_NO_AD_CONFIDENCE,
        ConfidenceTier.MEDIUM, AttributionMethod.REFCODE_MAPPING_NO_AD,
        matched_campaign_id=mapping.campaign_id,
        matched_creative_id=mapping.creative_id,
        rule_name=MAPPING_NO_AD_RULE_NAME,
    )


def _match_fuzzy(ctx: _Context) -> Optional[AttributionResult]:
    if not ctx.code:
        return None

    best_code: Optional[str] = None
    best_sim = 0.0
    # known_refcodes() is sorted, so strict > keeps the alphabetically first on ties
    for candidate in ctx.rule_store.known_refcodes(ctx.event.organization_id):
        sim = trigram_similarity(candidate, ctx.code)
        if sim > ctx.fuzzy_threshold and sim > best_sim:
            best_code, best_sim = candidate, sim

    if best_code is None:
        return None

    mapping = ctx.rule_store.find_mapping(ctx.event.organization_id, best_code)
    if mapping is None:
        return None
    return _result(
        ctx.event, mapping.channel, min(best_sim, ctx.fuzzy_cap),
        ConfidenceTier.MEDIUM, AttributionMethod.FUZZY_MATCH,
        matched_ad_id=mapping.ad_id,
        matched_campaign_id=mapping.campaign_id,
        matched_creative_id=mapping.creative_id,
        rule_name=f"Fuzzy Match: {mapping.refcode}",
    )


def _match_temporal(ctx: _Context) -> Optional[AttributionResult]:
    campaign = ctx.spend.top_campaign(ctx.event.organization_id, ctx.event.occurred_at.date())
    if campaign is None:
        return None
    return _result(
        ctx.event, campaign.channel, TEMPORAL_CONFIDENCE,
        ConfidenceTier.LOW, AttributionMethod.TEMPORAL_CORRELATION,
        matched_ad_id=campaign.ad_id,
        matched_campaign_id=campaign.campaign_id,
        rule_name=f"Active Campaign: {campaign.campaign_name or 'Unknown'}",
    )


Matcher = Callable[[_Context], Optional[AttributionResult]]

# Evaluation order is the confidence order; do not reorder.
MATCHERS: List[Matcher] = [
    _match_click_id,
    _match_mapping_with_ad,
    _match_pattern_rule,
    _match_mapping_no_ad,
    _match_fuzzy,
    _match_temporal,
]


# =============================================================================
# Public API
# =============================================================================


def unattributed(event: DonationEvent) -> AttributionResult:
    """The terminal result for a donation with no usable signal."""
    return _result(
        event, Channel.UNATTRIBUTED.value, NO_MATCH_CONFIDENCE,
        ConfidenceTier.NONE, AttributionMethod.NO_MATCH,
    )


def resolve(
    event: DonationEvent,
    rule_store: RuleStore,
    spend_as_of: SpendInput = None,
    fuzzy_threshold: float = FUZZY_SIMILARITY_THRESHOLD,
    fuzzy_cap: float = FUZZY_CONFIDENCE_CAP,
) -> AttributionResult:
    """
    Resolve one donation event through the attribution waterfall.

    Args:
        event: The donation to attribute.
        rule_store: Rules and refcode mappings visible to the event's
            organization.
        spend_as_of: Daily campaign spend snapshot for temporal correlation
            (a SpendSnapshot or any iterable of CampaignSpend). None disables
            tier 4.
        fuzzy_threshold: Similarity a fuzzy candidate must exceed.
        fuzzy_cap: Upper bound on fuzzy-match confidence.

    Returns:
        AttributionResult. Identical inputs always give identical results.
    """
    ctx = _Context(
        event=event,
        code=normalize_code(event.tracking_code),
        rule_store=rule_store,
        spend=as_spend_snapshot(spend_as_of),
        fuzzy_threshold=fuzzy_threshold,
        fuzzy_cap=fuzzy_cap,
    )

    for matcher in MATCHERS:
        result = matcher(ctx)
        if result is not None:
            return result

    logger.debug(f"Donation {event.id} unattributed (code={ctx.code!r})")
    return unattributed(event)

"""
Batch Attribution Runner.

Fans the attribution resolver out over a collection of donation events and
rolls the results up into an AttributionSummary.

Properties:
    - Results come back in input order.
    - No state is shared between events; the rule store and spend snapshot
      are read-only, so reordering the input never changes a single result.
    - With max_workers > 1 the events resolve on a thread pool; results are
      identical to the sequential path.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence

from attribution_engine.models.enums import ConfidenceTier
from attribution_engine.models.schemas import (
    AttributionResult,
    AttributionSummary,
    DonationEvent,
    TierBreakdown,
)
from attribution_engine.services.attribution import (
    FUZZY_CONFIDENCE_CAP,
    FUZZY_SIMILARITY_THRESHOLD,
    SpendInput,
    as_spend_snapshot,
    resolve,
)
from attribution_engine.services.rule_store import RuleStore


logger = logging.getLogger(__name__)

# Below this many events the thread pool costs more than it saves
MIN_PARALLEL_BATCH: int = 64


def resolve_batch(
    events: Sequence[DonationEvent],
    rule_store: RuleStore,
    spend_as_of: SpendInput = None,
    max_workers: Optional[int] = None,
    fuzzy_threshold: float = FUZZY_SIMILARITY_THRESHOLD,
    fuzzy_cap: float = FUZZY_CONFIDENCE_CAP,
) -> List[AttributionResult]:
    """
    Resolve every event; one AttributionResult per event, in input order.

    Args:
        events: Donation events to attribute.
        rule_store: Shared rule store.
        spend_as_of: Campaign spend snapshot for temporal correlation.
        max_workers: Thread pool size. None or 1 resolves sequentially.
        fuzzy_threshold: Similarity floor for fuzzy matching.
        fuzzy_cap: Confidence cap for fuzzy matching.
    """
    spend = as_spend_snapshot(spend_as_of)

    def _one(event: DonationEvent) -> AttributionResult:
        return resolve(event, rule_store, spend, fuzzy_threshold, fuzzy_cap)

    if max_workers and max_workers > 1 and len(events) >= MIN_PARALLEL_BATCH:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(_one, events))
    else:
        results = [_one(event) for event in events]

    logger.info(f"Resolved {len(results)} donation events")
    return results


def _add(bucket: Dict[str, TierBreakdown], key: str, amount: float) -> None:
    entry = bucket.setdefault(key, TierBreakdown())
    entry.count += 1
    entry.revenue += amount


def summarize_attributions(
    results: Iterable[AttributionResult],
    events: Iterable[DonationEvent],
) -> AttributionSummary:
    """
    Roll a batch up into counts and revenue per tier and per channel.

    Args:
        results: Attribution results (any order).
        events: The events that were resolved; amounts are joined by id.

    Returns:
        AttributionSummary with money rounded to 2 dp and ratios to 4 dp.
    """
    amounts = {event.id: event.amount for event in events}
    by_tier: Dict[str, TierBreakdown] = {}
    by_channel: Dict[str, TierBreakdown] = {}
    total_events = 0
    total_revenue = 0.0
    attributed_events = 0
    attributed_revenue = 0.0
    confidence_sum = 0.0

    for result in results:
        amount = amounts.get(result.event_id, 0.0)
        total_events += 1
        total_revenue += amount
        confidence_sum += result.confidence_score
        _add(by_tier, result.confidence_tier.value, amount)
        _add(by_channel, result.channel, amount)
        if result.confidence_tier != ConfidenceTier.NONE:
            attributed_events += 1
            attributed_revenue += amount

    for bucket in (by_tier, by_channel):
        for entry in bucket.values():
            entry.revenue = round(entry.revenue, 2)

    return AttributionSummary(
        total_events=total_events,
        total_revenue=round(total_revenue, 2),
        attributed_events=attributed_events,
        attributed_revenue=round(attributed_revenue, 2),
        attributed_revenue_share=round(attributed_revenue / total_revenue, 4) if total_revenue > 0 else 0.0,
        by_tier=by_tier,
        by_channel=by_channel,
        mean_confidence=round(confidence_sum / total_events, 4) if total_events else 0.0,
    )

"""
FastAPI router module for donation attribution endpoints.

Endpoints:
- POST /attribution/resolve: attribute a single donation event
- POST /attribution/batch: attribute many donations of one organization
  and return the batch roll-up

Both endpoints load the organization's rule store and the campaign spend
covering the events' dates, then run the pure resolver. Attribution results
are derived values and are not persisted here.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException

from attribution_engine.core.dependencies import DBSessionDep, SettingsDep
from attribution_engine.core.errors import RuleStoreError
from attribution_engine.models import (
    AttributionResult,
    BatchAttributionRequest,
    BatchAttributionResponse,
    CampaignSpend,
    DonationEvent,
)
from attribution_engine.services.attribution import SpendSnapshot, resolve
from attribution_engine.services.batch_attribution import resolve_batch, summarize_attributions
from attribution_engine.services.rule_store import RuleStore, load_rule_store
from attribution_engine.sql.attribution_queries import get_campaign_spend_query

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attribution", tags=["attribution"])


# =============================================================================
# Helper Functions
# =============================================================================


async def _load_rules(db, organization_id: str) -> RuleStore:
    try:
        return await load_rule_store(db, organization_id)
    except RuleStoreError as e:
        logger.error(f"Rule store for {organization_id} is invalid: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Attribution rules are inconsistent: {e}",
        )


async def _load_spend(db, organization_id: str, events: List[DonationEvent]) -> SpendSnapshot:
    days = [e.occurred_at.date() for e in events]
    rows = await db.fetch(get_campaign_spend_query(), organization_id, min(days), max(days))
    return SpendSnapshot(CampaignSpend(**dict(row)) for row in rows)


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/resolve", response_model=AttributionResult)
async def resolve_donation(
    event: DonationEvent,
    db: DBSessionDep,
    settings: SettingsDep,
) -> AttributionResult:
    """
    Attribute one donation through the four-tier waterfall.

    Args:
        event: The donation to attribute.

    Returns:
        AttributionResult with channel, tier, confidence and matched ids.

    Raises:
        HTTPException 500: If the rule store is inconsistent or the lookup
            fails.
    """
    rule_store = await _load_rules(db, event.organization_id)

    try:
        spend = await _load_spend(db, event.organization_id, [event])
        result = resolve(
            event,
            rule_store,
            spend,
            fuzzy_threshold=settings.fuzzy_similarity_threshold,
            fuzzy_cap=settings.fuzzy_confidence_cap,
        )
    except Exception as e:
        logger.error(f"Error resolving donation {event.id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Attribution failed")

    logger.info(
        f"Donation {event.id} -> {result.channel} "
        f"({result.confidence_tier.value}, {result.method.value})"
    )
    return result


@router.post("/batch", response_model=BatchAttributionResponse)
async def resolve_donation_batch(
    request: BatchAttributionRequest,
    db: DBSessionDep,
    settings: SettingsDep,
) -> BatchAttributionResponse:
    """
    Attribute a batch of donations for one organization.

    Results are returned in input order together with counts and revenue
    per confidence tier and per channel.

    Raises:
        HTTPException 400: If any event belongs to another organization.
        HTTPException 500: If the rule store is inconsistent or resolution
            fails.
    """
    foreign = [e.id for e in request.events if e.organization_id != request.organization_id]
    if foreign:
        logger.warning(f"POST /attribution/batch rejected: {len(foreign)} events from other organizations")
        raise HTTPException(
            status_code=400,
            detail=f"Events {foreign[:5]} do not belong to organization {request.organization_id}",
        )

    rule_store = await _load_rules(db, request.organization_id)

    try:
        spend = await _load_spend(db, request.organization_id, request.events)
        results = resolve_batch(
            request.events,
            rule_store,
            spend,
            max_workers=settings.attribution_max_workers,
            fuzzy_threshold=settings.fuzzy_similarity_threshold,
            fuzzy_cap=settings.fuzzy_confidence_cap,
        )
    except Exception as e:
        logger.error(f"Error resolving batch for {request.organization_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Batch attribution failed")

    return BatchAttributionResponse(
        results=results,
        summary=summarize_attributions(results, request.events),
    )

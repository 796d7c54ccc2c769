"""
FastAPI router module for the creative intelligence endpoint.

GET /creative-intelligence/{organization_id} runs the whole analytics
pipeline (attribution, aggregation, significance, leading indicators,
fatigue, recommendations) for one window and returns the single
CreativeIntelligenceResult payload.

Query parameters default to the values in Settings. Type errors in query
parameters are rejected by FastAPI with 422; semantically invalid values
(start after end, thresholds out of range) are rejected with 400 before any
query runs.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from attribution_engine.core.dependencies import DBSessionDep, SettingsDep
from attribution_engine.core.errors import InvalidAnalysisParameters, RuleStoreError
from attribution_engine.models import CreativeIntelligenceResult
from attribution_engine.services.creative_intelligence import (
    build_parameters,
    generate_creative_intelligence,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/creative-intelligence", tags=["creative-intelligence"])


@router.get("/{organization_id}", response_model=CreativeIntelligenceResult)
async def get_creative_intelligence(
    organization_id: str,
    db: DBSessionDep,
    settings: SettingsDep,
    start_date: date = Query(..., description="Window start (inclusive)"),
    end_date: date = Query(..., description="Window end (inclusive)"),
    min_impressions: Optional[int] = Query(None, description="Impression floor per creative"),
    early_window_days: Optional[int] = Query(None, description="Early window for leading indicators"),
    fatigue_threshold: Optional[float] = Query(None, description="Decline-from-peak marking FATIGUED"),
    significance_level: Optional[float] = Query(None, description="Alpha for adjusted p-values"),
    min_group_size: Optional[int] = Query(None, description="Minimum creatives per tag group"),
    min_early_impressions: Optional[int] = Query(None, description="Impression floor for early metrics"),
) -> CreativeIntelligenceResult:
    """
    Run creative intelligence for one organization and date window.

    Returns:
        CreativeIntelligenceResult with group significance tables, FDR
        summary, leading indicators, fatigue alerts, recommendations, top
        performers, donor segmentation and a data-quality block.

    Raises:
        HTTPException 400: If analysis parameters are invalid.
        HTTPException 500: If the rule store is inconsistent or analysis fails.
    """
    params = build_parameters(
        settings,
        start_date,
        end_date,
        min_impressions=min_impressions,
        early_window_days=early_window_days,
        fatigue_threshold=fatigue_threshold,
        significance_level=significance_level,
        min_group_size=min_group_size,
        min_early_impressions=min_early_impressions,
    )

    try:
        return await generate_creative_intelligence(db, organization_id, params, settings)
    except InvalidAnalysisParameters as e:
        logger.warning(f"GET /creative-intelligence/{organization_id} rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except RuleStoreError as e:
        logger.error(f"Rule store for {organization_id} is invalid: {e}")
        raise HTTPException(status_code=500, detail=f"Attribution rules are inconsistent: {e}")
    except Exception as e:
        logger.error(
            f"Error generating creative intelligence for {organization_id}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail="Creative intelligence analysis failed")

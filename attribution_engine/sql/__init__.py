"""
SQL Query Module.

Provides parameterized, read-only SQL for every input the engine consumes:

Submodules:
    attribution_queries: attribution rules, refcode mappings and daily
                         campaign spend for the attribution resolver.
    creative_queries: donation ledger, ad delivery metrics and creative
                      metadata for the creative intelligence pipeline.

Example usage:
    from attribution_engine.sql import get_attribution_rules_query

    rows = await conn.fetch(get_attribution_rules_query(), organization_id)
"""

from attribution_engine.sql.attribution_queries import (
    get_attribution_rules_query,
    get_refcode_mappings_query,
    get_campaign_spend_query,
)
from attribution_engine.sql.creative_queries import (
    get_donations_query,
    get_delivery_metrics_query,
    get_creatives_query,
)

__all__ = [
    'get_attribution_rules_query',
    'get_refcode_mappings_query',
    'get_campaign_spend_query',
    'get_donations_query',
    'get_delivery_metrics_query',
    'get_creatives_query',
]

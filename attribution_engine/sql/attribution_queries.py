"""
Attribution Queries Module.

Provides parameterized PostgreSQL queries for the inputs of the attribution
resolver:
- Active pattern rules (organization-scoped and global)
- Organization refcode mappings
- Daily campaign spend for temporal correlation

Each function returns a query string using asyncpg $n placeholders; the
caller passes values separately so nothing user-controlled is interpolated
into SQL text.
"""


# =============================================================================
# RULE STORE
# =============================================================================

def get_attribution_rules_query() -> str:
    """
    Select active rules visible to one organization.

    Parameters:
        $1: organization_id

    Returns both the organization's own rules and global rules
    (organization_id IS NULL). Ordering is applied by the RuleStore, not here.
    """
    return """
    SELECT
        id::text AS id,
        organization_id::text AS organization_id,
        name,
        pattern,
        pattern_kind,
        channel,
        confidence::float8 AS confidence,
        priority,
        is_active
    FROM attribution_rules
    WHERE is_active = TRUE
      AND (organization_id = $1::uuid OR organization_id IS NULL)
    """


def get_refcode_mappings_query() -> str:
    """
    Select refcode mappings for one organization.

    Parameters:
        $1: organization_id
    """
    return """
    SELECT
        organization_id::text AS organization_id,
        refcode,
        COALESCE(platform, 'meta') AS channel,
        ad_id,
        campaign_id,
        creative_id
    FROM refcode_mappings
    WHERE organization_id = $1::uuid
      AND refcode IS NOT NULL
      AND refcode <> ''
    """


# =============================================================================
# TEMPORAL CORRELATION
# =============================================================================

def get_campaign_spend_query() -> str:
    """
    Select per-campaign daily spend for one organization and date range.

    Parameters:
        $1: organization_id
        $2: start_date (inclusive)
        $3: end_date (inclusive)

    Spend is summed per campaign per day so ad-level rows collapse into one
    candidate per campaign.
    """
    return """
    SELECT
        organization_id::text AS organization_id,
        date,
        campaign_id,
        MIN(ad_id) AS ad_id,
        MAX(campaign_name) AS campaign_name,
        SUM(spend)::float8 AS spend
    FROM meta_ad_metrics_daily
    WHERE organization_id = $1::uuid
      AND date BETWEEN $2 AND $3
    GROUP BY organization_id, date, campaign_id
    """

"""
Creative Queries Module.

Provides parameterized PostgreSQL queries for the creative intelligence
pipeline:
- Donation ledger rows for an organization and window
- Daily ad delivery metrics for a set of ads
- Creative metadata with qualitative tags and snapshot totals

All queries are read-only and use asyncpg $n placeholders.
"""


# =============================================================================
# DONATION LEDGER
# =============================================================================

def get_donations_query() -> str:
    """
    Select donations for one organization inside a date window.

    Parameters:
        $1: organization_id
        $2: start_date (inclusive)
        $3: end_date (inclusive)

    Refunds and zero-amount rows are excluded at the source.
    """
    return """
    SELECT
        transaction_id::text AS id,
        organization_id::text AS organization_id,
        transaction_date AS occurred_at,
        amount::float8 AS amount,
        refcode AS tracking_code,
        click_id,
        fbclid AS secondary_click_id
    FROM actblue_transactions
    WHERE organization_id = $1::uuid
      AND transaction_date::date BETWEEN $2 AND $3
      AND amount > 0
    ORDER BY transaction_date ASC
    """


# =============================================================================
# AD DELIVERY
# =============================================================================

def get_delivery_metrics_query() -> str:
    """
    Select daily delivery rows for a list of ads.

    Parameters:
        $1: ad_ids (text[])
        $2: start_date (inclusive)
        $3: end_date (inclusive)
    """
    return """
    SELECT
        ad_id,
        date,
        COALESCE(SUM(impressions), 0)::bigint AS impressions,
        COALESCE(SUM(clicks), 0)::bigint AS clicks,
        COALESCE(SUM(spend), 0)::float8 AS spend
    FROM meta_ad_metrics_daily
    WHERE ad_id = ANY($1::text[])
      AND date BETWEEN $2 AND $3
    GROUP BY ad_id, date
    ORDER BY ad_id, date
    """


# =============================================================================
# CREATIVE METADATA
# =============================================================================

def get_creatives_query() -> str:
    """
    Select creative metadata, tags and lifetime snapshot totals.

    Parameters:
        $1: organization_id
    """
    return """
    SELECT
        id::text AS creative_id,
        ad_id,
        issue_primary,
        COALESCE(political_stances, ARRAY[]::text[]) AS political_stances,
        COALESCE(targets_attacked, ARRAY[]::text[]) AS targets_attacked,
        COALESCE(donor_pain_points, ARRAY[]::text[]) AS donor_pain_points,
        COALESCE(values_appealed, ARRAY[]::text[]) AS values_appealed,
        COALESCE(issue_tags, ARRAY[]::text[]) AS issue_tags,
        COALESCE(policy_positions, ARRAY[]::text[]) AS policy_positions,
        headline,
        creative_type,
        analysis_confidence::float8 AS analysis_confidence,
        COALESCE(impressions, 0)::bigint AS snapshot_impressions,
        COALESCE(clicks, 0)::bigint AS snapshot_clicks,
        COALESCE(spend, 0)::float8 AS snapshot_spend,
        roas::float8 AS snapshot_roas,
        created_at
    FROM meta_creative_insights
    WHERE organization_id = $1::uuid
    """

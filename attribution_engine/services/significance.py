"""
Statistical Significance Engine.

Tests whether creatives sharing a qualitative tag value (e.g. issue
"healthcare", target "insurers") earn a mean ROAS that differs from the mean
of all qualifying creatives, and controls the false discovery rate across
every test run in one invocation.

Algorithm Overview:
    1. Pool global mean and sample standard deviation (ddof=1) of ROAS over
       all qualifying creatives. A zero or undefined global stddev becomes 1
       for effect sizes.
    2. Group creatives by every value of every tag dimension. A creative with
       several values in one dimension joins each of those groups.
    3. Exclude groups with n < min_group_size or zero variance; exclusions
       are reported, never silently dropped.
    4. For each tested group:
           SE = sd / sqrt(n)
           CI = mean +/- 1.96 * SE
           z  = (mean - global_mean) / SE
           p  = 2 * (1 - Phi(|z|))                 (two-tailed)
           d  = (mean - global_mean) / global_sd    (Cohen's d)
           power = Phi(|d| * sqrt(n) - 1.96)
    5. Benjamini-Hochberg step-up correction over ALL tested groups of ALL
       dimensions together. A group is significant iff adjusted p < alpha.

Closed-form normal approximations are used throughout; there is no model
training and no resampling.

Dependencies:
    - numpy: vectorized means, deviations and percentiles
    - scipy.stats.norm: normal tail probabilities and power
"""

import logging
import math
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import norm

from attribution_engine.models.enums import ExclusionReason, PowerInterpretation, TagDimension
from attribution_engine.models.schemas import (
    CreativePerformance,
    CreativeRecord,
    ExcludedGroup,
    FdrSummary,
    GroupPerformance,
    SignificanceReport,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Two-sided 95% normal critical value, used for CIs and power
Z_CRITICAL: float = 1.96

ADEQUATE_POWER: float = 0.8
MODERATE_POWER: float = 0.5

# Below this many observations power is not interpreted at all
MIN_POWER_SAMPLE: int = 3

DIMENSIONS: List[TagDimension] = [
    TagDimension.ISSUE,
    TagDimension.STANCE,
    TagDimension.TARGET,
    TagDimension.PAIN_POINT,
    TagDimension.VALUE,
    TagDimension.ISSUE_TAG,
    TagDimension.POLICY,
]


# =============================================================================
# Distribution helpers
# =============================================================================


def two_tailed_p_value(z: float) -> float:
    """Two-tailed p-value of a standard normal z statistic."""
    if math.isnan(z):
        return 1.0
    return min(1.0, float(2.0 * norm.sf(abs(z))))


def statistical_power(effect_size: float, n: int) -> float:
    """
    Approximate power of a two-sided z-test at alpha = 0.05.

    Phi(|d| * sqrt(n) - 1.96). Monotone non-decreasing in n and |d|,
    bounded by [0, 1].
    """
    if n <= 0 or math.isnan(effect_size):
        return 0.0
    return min(1.0, max(0.0, float(norm.cdf(abs(effect_size) * math.sqrt(n) - Z_CRITICAL))))


def interpret_power(power: float, n: int) -> PowerInterpretation:
    if n < MIN_POWER_SAMPLE:
        return PowerInterpretation.INSUFFICIENT
    if power >= ADEQUATE_POWER:
        return PowerInterpretation.ADEQUATE
    if power >= MODERATE_POWER:
        return PowerInterpretation.MODERATE
    return PowerInterpretation.UNDERPOWERED


def benjamini_hochberg(p_values: Sequence[float]) -> List[float]:
    """
    Benjamini-Hochberg adjusted p-values, returned in input order.

    Step-up procedure: sort ascending, scale p_(i) by m / i, then take the
    running minimum from the largest rank down and cap at 1. The result
    satisfies adjusted >= raw and is monotone in the raw p-value.

    Example:
        raw [0.01, 0.04, 0.03] -> adjusted [0.03, 0.04, 0.04]
    """
    m = len(p_values)
    if m == 0:
        return []

    order = sorted(range(m), key=lambda i: p_values[i])
    adjusted = [0.0] * m
    running_min = 1.0
    for rank in range(m, 0, -1):
        idx = order[rank - 1]
        running_min = min(running_min, p_values[idx] * m / rank)
        adjusted[idx] = min(1.0, running_min)
    return adjusted


def global_statistics(values: Sequence[float]) -> Tuple[float, float, float]:
    """
    Pooled mean and sample stddev of ROAS.

    Returns:
        (mean, raw_sd, effect_sd): raw_sd is the reported value (0 when
        undefined); effect_sd is raw_sd with 0 replaced by 1.
    """
    if len(values) == 0:
        return (0.0, 0.0, 1.0)
    arr = np.asarray(values, dtype=np.float64)
    mean = float(np.mean(arr))
    sd = float(np.std(arr, ddof=1)) if len(arr) > 1 else 0.0
    if not math.isfinite(sd):
        sd = 0.0
    return (mean, sd, sd if sd > 0 else 1.0)


# =============================================================================
# Grouping
# =============================================================================


def group_by_dimension(
    performances: Iterable[CreativePerformance],
    creatives: Mapping[str, CreativeRecord],
) -> Dict[Tuple[TagDimension, str], List[CreativePerformance]]:
    """Map (dimension, tag value) -> member creatives' performance rows."""
    groups: Dict[Tuple[TagDimension, str], List[CreativePerformance]] = defaultdict(list)
    for perf in performances:
        creative = creatives.get(perf.creative_id)
        if creative is None:
            continue
        for dimension in DIMENSIONS:
            for value in creative.tag_values(dimension):
                groups[(dimension, value)].append(perf)
    return groups


class _GroupStats:
    """Unrounded statistics for one tested group."""

    __slots__ = (
        'dimension', 'key', 'n', 'mean', 'sd', 'median', 'min', 'max',
        'impressions', 'spend', 'revenue', 'se', 'z', 'p', 'd', 'power',
    )

    def __init__(self, dimension: TagDimension, key: str, members: List[CreativePerformance],
                 global_mean: float, effect_sd: float) -> None:
        roas = np.asarray([m.return_on_spend for m in members], dtype=np.float64)
        self.dimension = dimension
        self.key = key
        self.n = len(members)
        self.mean = float(np.mean(roas))
        self.sd = float(np.std(roas, ddof=1))
        self.median = float(np.median(roas))
        self.min = float(np.min(roas))
        self.max = float(np.max(roas))
        self.impressions = sum(m.total_impressions for m in members)
        self.spend = sum(m.total_spend for m in members)
        self.revenue = sum(m.total_revenue for m in members)
        self.se = self.sd / math.sqrt(self.n)
        self.z = (self.mean - global_mean) / self.se
        self.p = two_tailed_p_value(self.z)
        self.d = (self.mean - global_mean) / effect_sd
        self.power = statistical_power(self.d, self.n)


# =============================================================================
# Main entry point
# =============================================================================


def analyze_significance(
    performances: Sequence[CreativePerformance],
    creatives: Mapping[str, CreativeRecord],
    min_group_size: int = 3,
    significance_level: float = 0.05,
) -> SignificanceReport:
    """
    Run group significance tests with Benjamini-Hochberg FDR control.

    Args:
        performances: Qualifying creatives' performance rows.
        creatives: CreativeRecord by creative_id (tag source).
        min_group_size: Minimum creatives per tested group (>= 2).
        significance_level: Alpha compared against adjusted p-values.

    Returns:
        SignificanceReport with per-dimension tables (sorted by mean ROAS
        descending), excluded groups and an FDR summary.
    """
    global_mean, global_sd, effect_sd = global_statistics(
        [p.return_on_spend for p in performances]
    )

    tested: List[_GroupStats] = []
    excluded: List[ExcludedGroup] = []

    for (dimension, key), members in sorted(
        group_by_dimension(performances, creatives).items(),
        key=lambda item: (DIMENSIONS.index(item[0][0]), item[0][1]),
    ):
        n = len(members)
        if n < min_group_size:
            excluded.append(ExcludedGroup(
                dimension=dimension, group_key=key, n=n,
                reason=ExclusionReason.INSUFFICIENT_SAMPLE,
            ))
            continue

        sd = float(np.std([m.return_on_spend for m in members], ddof=1))
        if not sd > 0:
            excluded.append(ExcludedGroup(
                dimension=dimension, group_key=key, n=n,
                reason=ExclusionReason.ZERO_VARIANCE,
            ))
            continue

        tested.append(_GroupStats(dimension, key, members, global_mean, effect_sd))

    adjusted = benjamini_hochberg([g.p for g in tested])

    groups: Dict[str, List[GroupPerformance]] = {d.value: [] for d in DIMENSIONS}
    for stats, adj_p in zip(tested, adjusted):
        groups[stats.dimension.value].append(GroupPerformance(
            dimension=stats.dimension,
            group_key=stats.key,
            n=stats.n,
            mean_return=round(stats.mean, 4),
            stddev_return=round(stats.sd, 4),
            median_return=round(stats.median, 4),
            min_return=round(stats.min, 4),
            max_return=round(stats.max, 4),
            total_impressions=stats.impressions,
            total_spend=round(stats.spend, 2),
            total_revenue=round(stats.revenue, 2),
            standard_error=round(stats.se, 4),
            ci_lower=round(stats.mean - Z_CRITICAL * stats.se, 4),
            ci_upper=round(stats.mean + Z_CRITICAL * stats.se, 4),
            z_score=round(stats.z, 4),
            p_value=round(stats.p, 6),
            adjusted_p_value=round(adj_p, 6),
            is_significant=adj_p < significance_level,
            effect_size=round(stats.d, 4),
            statistical_power=round(stats.power, 4),
            power_interpretation=interpret_power(stats.power, stats.n),
        ))

    for rows in groups.values():
        rows.sort(key=lambda g: (-g.mean_return, g.group_key))

    significant = sum(1 for adj_p in adjusted if adj_p < significance_level)
    fdr = FdrSummary(
        total_tests=len(tested),
        significant_tests=significant,
        mean_raw_p_value=round(float(np.mean([g.p for g in tested])), 6) if tested else None,
        mean_adjusted_p_value=round(float(np.mean(adjusted)), 6) if tested else None,
        mean_statistical_power=round(float(np.mean([g.power for g in tested])), 4) if tested else None,
        adequately_powered_tests=sum(1 for g in tested if g.power >= ADEQUATE_POWER),
    )

    logger.info(
        f"Significance: {len(tested)} groups tested, {significant} significant, "
        f"{len(excluded)} excluded (global mean ROAS {global_mean:.4f})"
    )
    for group in excluded:
        logger.debug(f"Excluded group {group.dimension.value}={group.group_key!r}: {group.reason.value} (n={group.n})")

    return SignificanceReport(
        global_mean_return=round(global_mean, 4),
        global_stddev_return=round(global_sd, 4),
        global_n=len(performances),
        groups=groups,
        excluded_groups=excluded,
        fdr_summary=fdr,
    )

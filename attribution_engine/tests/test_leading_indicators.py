"""
Test suite for the Leading-Indicator Engine.

Verifies:
1. Early window selection and history requirement
2. Early impression floor
3. Pearson correlation with its exact t-distribution p-value
4. Insight wording keyed to strength and significance
5. CTR buckets
"""

import math

import numpy as np
import pytest
from scipy.stats import t as t_dist

from attribution_engine.models import CorrelationResult, ExclusionReason, MetricsSource
from attribution_engine.services.leading_indicators import (
    analyze_leading_indicators,
    bucket_by_ctr,
    describe_correlation,
    pearson_correlation,
)
from attribution_engine.tests.conftest import daily_frame, daily_rows, make_performance


def _portfolio(early_clicks, roas_values, days=8, impressions=1000):
    """
    Creatives whose early CTR is early_clicks[i] / impressions and whose
    final ROAS is roas_values[i].
    """
    rows = []
    performances = []
    for i, (clicks, roas) in enumerate(zip(early_clicks, roas_values)):
        cid = f"c{i}"
        rows += daily_rows(cid, [clicks] * days, impressions=impressions)
        performances.append(make_performance(cid, roas, impressions=impressions * days, days=days))
    return performances, daily_frame(rows)


class TestPearsonCorrelation:
    """Tests for pearson_correlation."""

    def test_requires_five_points(self):
        result = pearson_correlation([1, 2, 3, 4], [1, 2, 3, 4])
        assert result.coefficient is None
        assert result.sample_size == 4

    def test_zero_variance(self):
        result = pearson_correlation([1, 1, 1, 1, 1], [1, 2, 3, 4, 5])
        assert result.coefficient is None

    def test_p_value_uses_t_distribution(self):
        x = [1, 2, 3, 4, 5, 6, 7, 8]
        y = [2, 1, 4, 3, 6, 5, 8, 7]
        result = pearson_correlation(x, y)

        n = len(x)
        r = np.corrcoef(x, y)[0, 1]
        t = r * math.sqrt((n - 2) / (1 - r ** 2))
        assert result.coefficient == pytest.approx(r, abs=1e-4)
        assert result.p_value == pytest.approx(2 * t_dist.sf(abs(t), n - 2), abs=1e-6)
        assert result.is_significant is True

    def test_small_sample_p_value_is_not_normal_approximation(self):
        """With five points the exact p-value differs from the Fisher z approximation."""
        x = [1, 2, 3, 4, 5]
        y = [1, 3, 2, 5, 4]
        result = pearson_correlation(x, y)

        r = np.corrcoef(x, y)[0, 1]
        fisher_p = math.erfc(abs(math.atanh(r) * math.sqrt(2)) / math.sqrt(2))
        t = r * math.sqrt(3 / (1 - r ** 2))
        assert result.p_value == pytest.approx(2 * t_dist.sf(abs(t), 3), abs=1e-6)
        assert result.p_value != pytest.approx(fisher_p, abs=1e-3)

    def test_perfect_correlation(self):
        result = pearson_correlation([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        assert result.coefficient == pytest.approx(1.0)
        assert result.p_value == 0.0


class TestDescribeCorrelation:
    """Insight wording."""

    def _result(self, r, significant, n=10):
        return CorrelationResult(metric='early_ctr', coefficient=r, p_value=0.01 if significant else 0.2,
                                 is_significant=significant, sample_size=n)

    def test_strong_requires_significance(self):
        assert describe_correlation(self._result(0.7, True), 3, 500).startswith('Strong positive')
        text = describe_correlation(self._result(0.7, False), 3, 500)
        assert 'not statistically significant' in text
        assert not text.startswith('Strong')

    def test_moderate(self):
        assert describe_correlation(self._result(-0.4, True), 3, 500).startswith('Moderate negative')

    def test_weak(self):
        assert describe_correlation(self._result(0.1, False), 3, 500).startswith('Weak')

    def test_insufficient(self):
        text = describe_correlation(CorrelationResult(metric='early_ctr', sample_size=2), 3, 500)
        assert text.startswith('Insufficient data')


class TestAnalyzeLeadingIndicators:
    """End-to-end leading-indicator analysis."""

    def test_strong_positive_ctr_signal(self):
        performances, daily = _portfolio([10, 15, 20, 25, 30, 35], [0.5, 1.0, 1.5, 2.0, 2.5, 3.0])
        result = analyze_leading_indicators(performances, daily)

        assert result.sample_size == 6
        assert result.ctr_correlation.coefficient == pytest.approx(1.0)
        assert result.ctr_correlation.is_significant is True
        assert result.insight.startswith('Strong positive')
        assert result.avg_early_impressions == pytest.approx(4000.0)

    def test_early_window_bounds(self):
        """Early window covers first_date .. first_date + N inclusive."""
        rows = daily_rows('c0', [50, 50, 50, 50, 5, 5, 5, 5])
        performances = [make_performance('c0', 1.0, impressions=8000, days=8)]
        result = analyze_leading_indicators(performances, daily_frame(rows), early_window_days=3)

        assert result.sample_size == 1
        assert result.ctr_buckets[0].bucket == '3%+'
        assert result.avg_early_impressions == pytest.approx(4000.0)

    def test_history_requirement(self):
        performances, daily = _portfolio([10, 20, 30, 40, 50], [1, 2, 3, 4, 5], days=5)
        result = analyze_leading_indicators(performances, daily, early_window_days=3)

        assert result.sample_size == 0
        assert result.excluded_creatives == {ExclusionReason.INSUFFICIENT_HISTORY.value: 5}
        assert result.insight.startswith('Insufficient data')

    def test_low_early_impressions_excluded(self):
        performances, daily = _portfolio([1, 2, 3, 4, 5], [1, 2, 3, 4, 5], impressions=100)
        result = analyze_leading_indicators(performances, daily, min_early_impressions=500)

        assert result.sample_size == 0
        assert result.excluded_creatives == {ExclusionReason.LOW_EARLY_IMPRESSIONS.value: 5}

    def test_snapshot_creatives_excluded(self):
        performances = [make_performance('s1', 2.0, source=MetricsSource.SNAPSHOT, days=1, first_date=None)]
        result = analyze_leading_indicators(performances, daily_frame([]))
        assert result.excluded_creatives == {ExclusionReason.INSUFFICIENT_HISTORY.value: 1}


class TestCtrBuckets:
    """Tests for bucket_by_ctr."""

    def test_buckets(self):
        buckets = bucket_by_ctr([(0.035, 2.0), (0.031, 0.5), (0.025, 1.2), (0.005, 0.3)])
        by_label = {b.bucket: b for b in buckets}

        assert set(by_label) == {'3%+', '2-3%', '<1%'}
        assert by_label['3%+'].count == 2
        assert by_label['3%+'].avg_roas == pytest.approx(1.25)
        assert by_label['3%+'].profitable_rate == pytest.approx(0.5)
        assert by_label['<1%'].profitable_rate == 0.0

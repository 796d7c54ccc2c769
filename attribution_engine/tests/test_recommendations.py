"""
Test suite for the Recommendation Synthesizer.

Verifies:
1. Action precedence (REFRESH > SCALE > MAINTAIN > PAUSE > GATHER_DATA > WATCH)
2. Confidence formula and default analysis confidence
3. Rationale text and output ordering
4. Summary counts
"""

import pytest

from attribution_engine.models import FatigueResult, FatigueState, Recommendation
from attribution_engine.services.fatigue import detect_fatigue
from attribution_engine.services.recommendations import (
    choose_action,
    recommendation_confidence,
    summarize_recommendations,
    synthesize_recommendations,
)
from attribution_engine.tests.conftest import (
    daily_frame,
    daily_rows,
    make_creative,
    make_performance,
)


def _fatigue(creative_id, state, slope, decline=0.0):
    return FatigueResult(
        creative_id=creative_id,
        days_with_data=10,
        peak_ctr=0.03,
        recent_ctr=0.03 * (1 - decline),
        decline_from_peak=decline,
        trend_slope=slope,
        state=state,
    )


class TestChooseAction:
    """Precedence of the decision rules."""

    @pytest.mark.parametrize('roas,impressions,slope,state,expected', [
        (3.0, 50000, -0.001, FatigueState.FATIGUED, Recommendation.REFRESH),
        (1.5, 5000, 0.0, None, Recommendation.SCALE),
        (2.0, 4999, 0.0, None, Recommendation.MAINTAIN),
        (2.0, 8000, -0.0001, FatigueState.DECLINING, Recommendation.WATCH),
        (1.0, 1000, 0.0, FatigueState.STABLE, Recommendation.MAINTAIN),
        (0.49, 3000, 0.0, None, Recommendation.PAUSE),
        (0.49, 2999, 0.0, None, Recommendation.WATCH),
        (0.8, 1999, 0.0, None, Recommendation.GATHER_DATA),
        (0.8, 2000, 0.0, None, Recommendation.WATCH),
    ])
    def test_precedence(self, roas, impressions, slope, state, expected):
        assert choose_action(roas, impressions, slope, state, min_impressions=1000) == expected

    def test_pause_outranks_gather_data(self):
        """Volume floor for GATHER_DATA is 2 * min_impressions."""
        assert choose_action(0.2, 3000, 0.0, None, min_impressions=5000) == Recommendation.PAUSE


class TestConfidence:
    """Tests for recommendation_confidence."""

    def test_formula(self):
        assert recommendation_confidence(5000, 0.8) == pytest.approx(0.6 * 0.5 + 0.4 * 0.8)

    def test_volume_saturates(self):
        assert recommendation_confidence(50000, 1.0) == pytest.approx(1.0)

    def test_default_analysis_confidence(self):
        assert recommendation_confidence(10000, None) == pytest.approx(0.6 + 0.4 * 0.5)


class TestSynthesizeRecommendations:
    """End-to-end synthesis."""

    @pytest.mark.scenario
    def test_fatigued_creative_gets_refresh(self):
        perf = make_performance('d1', 2.4, impressions=10000)
        fatigue = {'d1': _fatigue('d1', FatigueState.FATIGUED, -0.0009, decline=0.2667)}

        [rec] = synthesize_recommendations([perf], fatigue, {'d1': make_creative('d1')})

        assert rec.recommendation == Recommendation.REFRESH
        assert rec.fatigue_state == FatigueState.FATIGUED
        assert rec.rationale.startswith('Creative fatigue detected')
        assert '27%' in rec.rationale

    @pytest.mark.scenario
    def test_slope_too_small_to_show_still_blocks_scale(self):
        """A single early spike then a flat CTR gives a slope that rounds to zero."""
        clicks = [20] + [18] * 199
        perf = make_performance('flat', 2.0, impressions=1000 * len(clicks),
                                clicks=sum(clicks), days=len(clicks))
        analysis = detect_fatigue([perf], daily_frame(daily_rows('flat', clicks)), 0.20)
        result = analysis.results['flat']

        assert result.state == FatigueState.DECLINING
        assert result.trend_slope < 0
        assert result.model_dump()['trend_slope'] == 0.0

        [rec] = synthesize_recommendations([perf], analysis.results, {})

        assert rec.recommendation == Recommendation.WATCH
        assert rec.trend_slope < 0

    def test_negative_slope_blocks_maintain(self):
        perf = make_performance('m1', 1.2, impressions=9000)
        fatigue = {'m1': _fatigue('m1', FatigueState.STABLE, -1e-9)}

        [rec] = synthesize_recommendations([perf], fatigue, {})

        assert rec.recommendation == Recommendation.WATCH

    def test_missing_fatigue_treated_as_flat(self):
        perf = make_performance('s1', 1.6, impressions=6000)
        [rec] = synthesize_recommendations([perf], {}, {})

        assert rec.recommendation == Recommendation.SCALE
        assert rec.fatigue_state is None
        assert rec.trend_slope is None
        assert rec.confidence_score == pytest.approx(0.6 * 0.6 + 0.4 * 0.5)

    def test_sorted_by_roas_and_metadata_copied(self):
        performances = [
            make_performance('low', 0.3, impressions=4000),
            make_performance('high', 2.5, impressions=9000),
            make_performance('mid', 1.1, impressions=3000),
        ]
        creatives = {
            'high': make_creative('high', issue='healthcare', headline='Lower drug prices now',
                                  analysis_confidence=0.9),
        }

        recs = synthesize_recommendations(performances, {}, creatives)

        assert [r.creative_id for r in recs] == ['high', 'mid', 'low']
        assert recs[0].issue_primary == 'healthcare'
        assert recs[0].headline == 'Lower drug prices now'
        assert [r.recommendation for r in recs] == [
            Recommendation.SCALE, Recommendation.MAINTAIN, Recommendation.PAUSE,
        ]

    def test_summary_counts(self):
        performances = [
            make_performance('a', 2.0, impressions=6000),
            make_performance('b', 2.0, impressions=7000),
            make_performance('c', 0.1, impressions=3500),
            make_performance('d', 0.9, impressions=1200),
        ]
        summary = summarize_recommendations(synthesize_recommendations(performances, {}, {}))

        assert summary.scale == 2
        assert summary.pause == 1
        assert summary.gather_data == 1
        assert summary.refresh == 0
        assert summary.watch == 0

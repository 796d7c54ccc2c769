'''
Attribution Engine Test Suite

Test Modules:
-------------
- test_rule_store.py: pattern matching, rule ordering, store invariants
- test_attribution.py: four-tier waterfall, trigram similarity, scenarios
- test_batch_attribution.py: input order, parallel fan-out, batch roll-up
- test_performance.py: delivery aggregation, revenue join, snapshot fallback
- test_significance.py: group z-tests, Benjamini-Hochberg, power
- test_leading_indicators.py: early CTR/CPM correlation with final ROAS
- test_fatigue.py: peak vs recent CTR, trend slope, classification
- test_recommendations.py: action precedence, confidence, rationale
- test_creative_intelligence.py: orchestration and data-quality block
- test_api.py: HTTP contract of the FastAPI routers
- test_database.py: asyncpg pool lifecycle and read helper

Running Tests:
--------------
    pip install -e ".[test]"
    pytest attribution_engine/tests/ -v

See conftest.py for shared fixtures and builders.
'''

__all__ = []

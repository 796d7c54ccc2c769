"""
HTTP contract tests for the FastAPI routers.

The database session and settings dependencies are replaced through
app.dependency_overrides with the mocked asyncpg connection and test
settings; the lifespan (pool creation) is not started.

Verifies:
1. Health and root endpoints
2. POST /attribution/resolve and /attribution/batch responses
3. 400 for cross-organization batches and invalid analysis parameters
4. 422 for malformed request bodies and query parameters
5. 500 when the stored rules are inconsistent
"""

import pytest
from fastapi.testclient import TestClient

from attribution_engine.core.dependencies import get_db_session, get_settings_dependency
from attribution_engine.main import app
from attribution_engine.tests.conftest import ORG_ID, OTHER_ORG_ID, route_fetch


pytestmark = pytest.mark.api


def _event_json(event_id='txn_1', tracking_code=None, organization_id=ORG_ID, amount=25.0, **extra):
    body = {
        'id': event_id,
        'organization_id': organization_id,
        'occurred_at': '2026-01-15T14:30:00Z',
        'amount': amount,
        'tracking_code': tracking_code,
    }
    body.update(extra)
    return body


def _rule_row(rule_id, pattern, channel='meta'):
    return {
        'id': rule_id,
        'organization_id': None,
        'name': f"rule {rule_id}",
        'pattern': pattern,
        'pattern_kind': 'prefix',
        'channel': channel,
        'confidence': 0.9,
        'priority': 10,
        'is_active': True,
    }


@pytest.fixture
def client(mock_db_conn, test_settings):
    async def _db_override():
        yield mock_db_conn

    app.dependency_overrides[get_db_session] = _db_override
    app.dependency_overrides[get_settings_dependency] = lambda: test_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestServiceEndpoints:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json() == {'status': 'healthy'}

    def test_root(self, client):
        body = client.get('/').json()
        assert body['name'] == 'Attribution Engine API'
        assert body['docs'] == '/docs'


class TestResolveEndpoint:
    """POST /attribution/resolve"""

    def test_pattern_match(self, client):
        response = client.post('/attribution/resolve', json=_event_json(tracking_code='fb_summer24'))

        assert response.status_code == 200
        body = response.json()
        assert body['event_id'] == 'txn_1'
        assert body['channel'] == 'meta'
        assert body['confidence_tier'] == 'high'
        assert body['method'] == 'pattern_rule'

    def test_click_id(self, client):
        response = client.post('/attribution/resolve', json=_event_json(click_id='IwAR123'))
        body = response.json()
        assert body['confidence_tier'] == 'deterministic'
        assert body['confidence_score'] == 1.0

    def test_temporal_fallback_uses_spend(self, client, mock_db_conn):
        mock_db_conn.fetch.side_effect = route_fetch({
            'spend': [{
                'organization_id': ORG_ID, 'date': '2026-01-15', 'campaign_id': 'cmp_b',
                'ad_id': 'ad_b', 'campaign_name': 'Healthcare Push', 'spend': 500.0,
            }],
        })

        body = client.post('/attribution/resolve', json=_event_json()).json()

        assert body['confidence_tier'] == 'low'
        assert body['matched_campaign_id'] == 'cmp_b'
        assert body['confidence_score'] == 0.4

    def test_malformed_body(self, client):
        response = client.post('/attribution/resolve', json={'id': 'x', 'amount': 'lots'})
        assert response.status_code == 422

    def test_inconsistent_rules(self, client, mock_db_conn):
        mock_db_conn.fetch.side_effect = route_fetch({
            'rules': [_rule_row('r1', 'abc_'), _rule_row('r2', 'abc_', 'sms')],
        })
        response = client.post('/attribution/resolve', json=_event_json(tracking_code='abc_1'))
        assert response.status_code == 500
        assert 'inconsistent' in response.json()['detail']


class TestBatchEndpoint:
    """POST /attribution/batch"""

    def test_batch_results_and_summary(self, client):
        events = [
            _event_json('a', tracking_code='fb_spring', amount=50.0),
            _event_json('b', tracking_code='txt_gotv', amount=30.0),
            _event_json('c', amount=20.0),
        ]
        response = client.post('/attribution/batch', json={'organization_id': ORG_ID, 'events': events})

        assert response.status_code == 200
        body = response.json()
        assert [r['event_id'] for r in body['results']] == ['a', 'b', 'c']
        assert [r['channel'] for r in body['results'][:2]] == ['meta', 'sms']

        summary = body['summary']
        assert summary['total_events'] == 3
        assert summary['attributed_events'] == 2
        assert summary['attributed_revenue'] == pytest.approx(80.0)

    def test_foreign_events_rejected(self, client, mock_db_conn):
        events = [_event_json('a'), _event_json('b', organization_id=OTHER_ORG_ID)]
        response = client.post('/attribution/batch', json={'organization_id': ORG_ID, 'events': events})

        assert response.status_code == 400
        assert OTHER_ORG_ID not in response.json()['detail']
        assert "'b'" in response.json()['detail']
        mock_db_conn.fetch.assert_not_called()

    def test_empty_batch_rejected(self, client):
        response = client.post('/attribution/batch', json={'organization_id': ORG_ID, 'events': []})
        assert response.status_code == 422


class TestCreativeIntelligenceEndpoint:
    """GET /creative-intelligence/{organization_id}"""

    def test_empty_organization(self, client):
        response = client.get(
            f"/creative-intelligence/{ORG_ID}",
            params={'start_date': '2026-01-01', 'end_date': '2026-01-31'},
        )

        assert response.status_code == 200
        body = response.json()
        assert body['organization_id'] == ORG_ID
        assert body['summary']['total_creatives'] == 0
        assert body['data_quality']['overall_confidence'] == 'LOW'
        assert body['parameters']['min_impressions'] == 1000

    def test_reversed_window_is_400(self, client, mock_db_conn):
        response = client.get(
            f"/creative-intelligence/{ORG_ID}",
            params={'start_date': '2026-02-01', 'end_date': '2026-01-01'},
        )
        assert response.status_code == 400
        mock_db_conn.fetch.assert_not_called()

    def test_threshold_out_of_range_is_400(self, client):
        response = client.get(
            f"/creative-intelligence/{ORG_ID}",
            params={'start_date': '2026-01-01', 'end_date': '2026-01-31', 'fatigue_threshold': 1.5},
        )
        assert response.status_code == 400
        assert 'fatigue_threshold' in response.json()['detail']

    def test_missing_dates_is_422(self, client):
        response = client.get(f"/creative-intelligence/{ORG_ID}")
        assert response.status_code == 422

    def test_bad_date_is_422(self, client):
        response = client.get(
            f"/creative-intelligence/{ORG_ID}",
            params={'start_date': 'yesterday', 'end_date': '2026-01-31'},
        )
        assert response.status_code == 422

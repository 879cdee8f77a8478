"""HTTP tests for the FastAPI application."""

import pytest
from fastapi.testclient import TestClient

from app.client import RemotePredictionClient
from app.config import Settings, get_settings
from app.history import SurveyHistoryStore
from app.main import app, get_history_store, get_prediction_client
from app.models import QuickRiskResult, SurveyHistoryItem, SurveyInput
from tests.fakes import FakeResponse, FakeSession


@pytest.fixture
def store():
    return SurveyHistoryStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_settings] = lambda: Settings()
    app.dependency_overrides[get_history_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


SURVEY = {'sleep_hours': 4, 'study_hours': 10, 'assignments_due': 5, 'exams_within_7d': 2}


def test_health(client):
    """Test both health paths."""
    for path in ('/health', '/auth/health'):
        response = client.get(path)
        assert response.status_code == 200
        assert response.json()['status'] == 'ok'


def test_model_status(client):
    """Test that the active constants are reported."""
    body = client.get('/predict/status').json()

    assert body['model_loaded'] is True
    assert body['label_scheme'] == 'quick'
    assert body['fused_blend'] == {'survey': 0.7, 'behavior': 0.3}
    assert body['driver_mode'] == 'ranked'


def test_predict(client):
    """Test the quick-risk endpoint."""
    response = client.post('/predict', json=SURVEY)

    assert response.status_code == 200
    # 10*3 + 5*5 + 2*7 - 4*2 = 61
    assert response.json() == {
        'burnout_score': 61.0,
        'risk_label': 'Moderate',
        'top_drivers': ['High Study Hours', 'Low Sleep Hours']
    }


def test_predict_display_thresholds(client):
    """Test that the label table follows settings."""
    app.dependency_overrides[get_settings] = lambda: Settings(risk_label_scheme='display')
    body = client.post('/predict', json={**SURVEY, 'sleep_hours': 1}).json()

    # 67 is Moderate on the quick table but High on the display table
    assert body['burnout_score'] == 67.0
    assert body['risk_label'] == 'High'


def test_predict_rejects_out_of_range(client):
    """Test request validation on survey ranges."""
    response = client.post('/predict', json={**SURVEY, 'sleep_hours': 25})
    assert response.status_code == 422

    response = client.post('/predict', json={**SURVEY, 'assignments_due': -1})
    assert response.status_code == 422


def test_predict_fused_without_behavior(client):
    """Test that behavior is null when not supplied."""
    body = client.post('/predict/fused', json={'s_answers': [0] * 7}).json()

    assert body['behavior'] is None
    assert body['final_score_0_100'] == 0.0
    assert body['survey']['survey_risk_0_100'] == 0.0


def test_predict_fused_with_behavior(client):
    """Test the blended fused score."""
    response = client.post('/predict/fused', json={
        's_answers': [3] * 7,
        'behavior': {'coding_hours': 8, 'gaming_hours': 2, 'social_media_hours': 3}
    })

    assert response.status_code == 200
    body = response.json()
    assert body['survey']['survey_risk_0_100'] == 73.5
    assert body['behavior']['behavior_risk_0_100'] == 65.0
    assert body['behavior']['features_used']['gaming_hours'] == 'provided'
    assert body['final_score_0_100'] == pytest.approx(0.7 * 73.5 + 0.3 * 65.0)


def test_predict_fused_rejects_bad_answers(client):
    """Test that wrong answer counts and values are rejected."""
    assert client.post('/predict/fused', json={'s_answers': [1] * 6}).status_code == 422
    assert client.post('/predict/fused', json={'s_answers': [1] * 8}).status_code == 422
    assert client.post('/predict/fused', json={'s_answers': [4] + [0] * 6}).status_code == 422
    assert client.post('/predict/fused', json={
        's_answers': [0] * 7,
        'behavior': {'gaming_hours': -2}
    }).status_code == 422


def test_forecast(client):
    """Test the forecast endpoint with a deadline on day one."""
    response = client.post('/forecast', json={
        'last14': [50] * 14,
        'deadlines_next7': [5, 0, 0, 0, 0, 0, 0],
        'alpha': 0.5,
        'deadline_weight': 2
    })

    assert response.status_code == 200
    body = response.json()
    assert body['pred'] == [60.0] + [50.0] * 6
    assert body['conf'] == [70.0] + [60.0] * 6
    assert body['drivers'] == ['Stable baseline', 'Recent trend down', 'Deadlines impact']


def test_forecast_rejects_wrong_lengths(client):
    """Test that series length errors are rejected, not padded."""
    assert client.post('/forecast', json={'last14': [50] * 13}).status_code == 422
    assert client.post('/forecast', json={
        'last14': [50] * 14,
        'deadlines_next7': [0] * 6
    }).status_code == 422
    assert client.post('/forecast', json={'last14': [50] * 14, 'alpha': 0}).status_code == 422


def test_survey_save_and_history(client):
    """Test that saved surveys are scored and listed per user."""
    headers = {'X-User-Id': 'student-1'}
    assert client.post('/survey/save', json=SURVEY, headers=headers).json()['status'] == 'ok'

    items = client.get('/survey/history', headers=headers).json()['items']
    assert len(items) == 1
    assert items[0]['input'] == {
        'sleep_hours': 4.0,
        'study_hours': 10.0,
        'assignments_due': 5,
        'exams_within_7d': 2
    }
    assert items[0]['result']['burnout_score'] == 61.0

    # Anonymous callers use their own history
    assert client.get('/survey/history').json()['items'] == []


def test_survey_save_full_keeps_given_result(client):
    """Test that save-full stores the caller's result and timestamp."""
    response = client.post('/survey/save-full', json={
        'input': SURVEY,
        'result': {'burnout_score': 42.0, 'risk_label': 'Moderate', 'top_drivers': []},
        'timestamp': '2026-10-01T08:00:00Z'
    })
    assert response.status_code == 200

    item = client.get('/survey/history').json()['items'][0]
    assert item['timestamp'] == '2026-10-01T08:00:00Z'
    assert item['result']['burnout_score'] == 42.0
    assert item['fused'] is None


def test_survey_history_clear(client):
    """Test clearing the caller's history."""
    client.post('/survey/save', json=SURVEY)
    client.post('/survey/save', json=SURVEY)

    response = client.delete('/survey/history')
    assert response.status_code == 200
    assert response.json()['message'] == 'Removed 2 saved assessments.'
    assert client.get('/survey/history').json()['items'] == []


def test_forecast_from_history(client):
    """Test that /forecast/mine forecasts from the latest saved score."""
    client.post('/survey/save', json={**SURVEY, 'sleep_hours': 8})  # 53
    client.post('/survey/save', json=SURVEY)  # 61

    body = client.post('/forecast/mine', json={}).json()

    assert body['pred'] == [61.0] * 7
    # 61 after a zero-padded start reads as an upward trend
    assert body['drivers'] == ['Stable baseline', 'Recent trend up']


def test_forecast_from_empty_history(client):
    """Test that an empty history forecasts zero."""
    body = client.post('/forecast/mine', json={'deadlines_next7': [1, 0, 0, 0, 0, 0, 0]}).json()

    assert body['pred'] == [2.0] + [0.0] * 6
    assert body['drivers'] == ['Stable baseline', 'Recent trend down', 'Deadlines impact']


def test_survey_save_full_rejects_out_of_range_score(client):
    """Test that save-full refuses scores outside 0-100."""
    response = client.post('/survey/save-full', json={
        'input': SURVEY,
        'result': {'burnout_score': 150.0, 'risk_label': 'High', 'top_drivers': []}
    })
    assert response.status_code == 422
    assert client.get('/survey/history').json()['items'] == []

    # Nothing was stored, so the history forecast still works
    assert client.post('/forecast/mine', json={}).status_code == 200


def test_forecast_from_history_rejects_bad_saved_score(client, store):
    """Test that an unusable saved score gives 422 rather than 500."""
    bad_result = QuickRiskResult.model_construct(burnout_score=150.0, risk_label='High', top_drivers=[])
    store.add('local', SurveyHistoryItem.model_construct(
        timestamp='2026-10-01T08:00:00Z',
        input=SurveyInput(**SURVEY),
        result=bad_result,
        fused=None,
    ))

    response = client.post('/forecast/mine', json={})

    assert response.status_code == 422
    assert 'Saved history cannot be forecast' in response.json()['detail']


def test_survey_save_full_rejects_mismatched_label(client):
    """Test that a label contradicting the score is refused and not stored."""
    response = client.post('/survey/save-full', json={
        'input': SURVEY,
        'result': {'burnout_score': 80.0, 'risk_label': 'Low', 'top_drivers': []}
    })

    assert response.status_code == 422
    assert 'does not match burnout_score' in response.json()['detail']
    assert client.get('/survey/history').json()['items'] == []


def test_survey_save_full_label_follows_active_table(client):
    """Test that the label check uses the configured thresholds."""
    saved = {'input': SURVEY, 'result': {'burnout_score': 35.0, 'risk_label': 'Moderate', 'top_drivers': []}}

    # 35 is Low on the quick table
    assert client.post('/survey/save-full', json=saved).status_code == 422

    app.dependency_overrides[get_settings] = lambda: Settings(risk_label_scheme='display')
    assert client.post('/survey/save-full', json=saved).status_code == 200
    assert len(client.get('/survey/history').json()['items']) == 1


def test_predict_fused_remote_median_marker_is_bad_gateway(client):
    """Test that a remote "median" feature marker is reported as 502."""
    session = FakeSession(FakeResponse(200, {
        'survey': {'predicted_stress_score': 14, 'survey_risk_0_100': 66.67, 'top_drivers': []},
        'behavior': {'predicted_raw': 2.0, 'behavior_risk_0_100': 10.0, 'features_used': {'sleep_hours': 'median'}},
        'final_score_0_100': 49.67
    }))
    app.dependency_overrides[get_prediction_client] = lambda: RemotePredictionClient(
        'http://backend:9000', session=session
    )

    response = client.post('/predict/fused', json={'s_answers': [2] * 7, 'behavior': {'sleep_hours': 2}})

    assert response.status_code == 502
    assert response.json()['upstream_status'] is None
    assert session.calls[0]['url'] == 'http://backend:9000/predict/fused'

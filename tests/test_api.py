import pytest
from datetime import datetime
from urllib.parse import quote
from unittest.mock import patch
from fastapi.testclient import TestClient

from app import crud
from app.api import deps
from app.core.config import settings
from app.services.optimization_engine import SchedulingOptimizationEngine
from app.services.repositories import SqlClusterSource, SqlPatternStore, SqlPreferenceSource
from conftest import (
    FakeGeoProvider, InMemoryClusterSource, InMemoryJobSource, InMemoryMatrixStore,
    InMemoryPatternStore, InMemoryPreferenceSource, InMemoryScheduleSource,
    TEST_DEPOT, make_clusters, make_job, make_pattern
)
from main import app

# Test data
MAIN = "100 Main Street, Vancouver, BC"
GRANVILLE = "200 Granville Street, Vancouver, BC"
RUN_URL = f"{settings.API_V1_STR}/optimization/run"
TEST_RUN = {"start_date": "2026-11-02", "end_date": "2026-11-30"}
TEST_JOB = {
    "invoice_id": "INV-100",
    "job_title": "Hood cleaning",
    "location": MAIN,
    "date_due": "2026-11-12T12:00:00Z",
    "price": 750,
}

# Fixtures
@pytest.fixture
def engine_preferences(preferences):
    return preferences

@pytest.fixture
def client(session_factory, engine_preferences):
    jobs = [make_job("a", MAIN), make_job("b", GRANVILLE)]

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_get_engine():
        return SchedulingOptimizationEngine(
            job_source=InMemoryJobSource(jobs),
            preference_source=InMemoryPreferenceSource(engine_preferences),
            cluster_source=InMemoryClusterSource(make_clusters()),
            schedule_source=InMemoryScheduleSource(),
            pattern_store=InMemoryPatternStore([make_pattern(job) for job in jobs]),
            matrix_store=InMemoryMatrixStore(),
            geo_provider=FakeGeoProvider(),
        )

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_engine] = override_get_engine
    app.dependency_overrides[deps.get_preference_source] = lambda: SqlPreferenceSource(session_factory)
    app.dependency_overrides[deps.get_cluster_source] = lambda: SqlClusterSource(session_factory)
    app.dependency_overrides[deps.get_pattern_store] = lambda: SqlPatternStore(session_factory)
    yield TestClient(app)
    app.dependency_overrides.clear()

def pattern_url(identifier):
    return f"{settings.API_V1_STR}/optimization/patterns/{quote(identifier)}"

# Tests
def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"] is True
    assert body["checks"]["redis"] is False

def test_create_and_delete_job(client):
    response = client.post(f"{settings.API_V1_STR}/jobs", json=TEST_JOB)

    assert response.status_code == 201
    body = response.json()
    assert body["invoice_id"] == "INV-100"
    assert body["is_scheduled"] is False

    response = client.delete(f"{settings.API_V1_STR}/jobs/{body['id']}")
    assert response.status_code == 200
    response = client.delete(f"{settings.API_V1_STR}/jobs/{body['id']}")
    assert response.status_code == 404

def test_create_job_validation_error(client):
    response = client.post(f"{settings.API_V1_STR}/jobs", json={**TEST_JOB, "price": -1})

    assert response.status_code == 422

def test_run_optimization(client):
    response = client.post(RUN_URL, json=TEST_RUN)

    assert response.status_code == 200
    body = response.json()
    assert body["strategy"] == "hybrid_historical_efficiency"
    assert body["total_jobs"] == 2
    assert len(body["scheduled_groups"]) == 1
    group = body["scheduled_groups"][0]
    assert group["cluster_name"] == "Vancouver Core"
    assert group["date"].startswith("2026-11-03")
    assert [job["order_in_route"] for job in group["jobs"]] == [1, 2]
    assert body["metrics"]["utilization_rate"] == 1.0

def test_run_optimization_without_body(client):
    response = client.post(RUN_URL)

    assert response.status_code == 200
    assert response.json()["total_jobs"] == 2

def test_run_optimization_rejects_unknown_strategy(client):
    response = client.post(RUN_URL, json={**TEST_RUN, "strategy": "fastest_route"})

    assert response.status_code == 422

def test_run_optimization_rejects_half_range(client):
    response = client.post(RUN_URL, json={"start_date": "2026-11-02"})

    assert response.status_code == 422

@pytest.mark.parametrize("engine_preferences", [None])
def test_run_optimization_without_preferences(client):
    response = client.post(RUN_URL, json=TEST_RUN)

    assert response.status_code == 503
    assert "preferences" in response.json()["detail"]

def test_run_optimization_without_routing_key(client):
    del app.dependency_overrides[deps.get_engine]

    with patch.object(settings, "OPENROUTE_API_KEY", ""):
        response = client.post(RUN_URL, json=TEST_RUN)

    assert response.status_code == 503
    assert response.json()["detail"] == "Routing provider is not configured"

def test_read_clusters(client):
    response = client.get(f"{settings.API_V1_STR}/optimization/clusters")

    assert response.status_code == 200
    names = [cluster["cluster_name"] for cluster in response.json()]
    assert names[0] == "Vancouver Core"
    assert len(names) == 8

def test_read_and_update_preferences(client):
    url = f"{settings.API_V1_STR}/optimization/preferences"

    response = client.get(url)
    assert response.status_code == 200
    assert response.json()["max_jobs_per_day"] == settings.DEFAULT_MAX_JOBS_PER_DAY

    update = {
        "max_jobs_per_day": 3,
        "starting_point_address": TEST_DEPOT,
        "excluded_dates": ["2026-11-11"],
        "start_date": "2026-11-02",
        "end_date": "2026-11-30",
    }
    response = client.put(url, json=update)
    assert response.status_code == 200
    assert client.get(url).json()["excluded_dates"] == ["2026-11-11"]

def test_update_preferences_validation_error(client):
    response = client.put(
        f"{settings.API_V1_STR}/optimization/preferences",
        json={"excluded_days": [0]},
    )

    assert response.status_code == 422

def test_read_and_delete_pattern(client, session_factory):
    pattern = make_pattern(make_job("a", MAIN))
    db = session_factory()
    crud.pattern.create(db, obj_in={**pattern.model_dump(), "last_analyzed": datetime(2026, 10, 1)})
    db.close()

    response = client.get(pattern_url(pattern.job_identifier))
    assert response.status_code == 200
    assert response.json()["preferred_day_of_week"] == 2

    assert client.delete(pattern_url(pattern.job_identifier)).status_code == 200
    assert client.get(pattern_url(pattern.job_identifier)).status_code == 404
    assert client.delete(pattern_url(pattern.job_identifier)).status_code == 404

# Run tests
if __name__ == "__main__":
    pytest.main(["-v", "tests/test_api.py"])

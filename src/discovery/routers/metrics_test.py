import pytest
from fastapi.testclient import TestClient

from ..main import app

API_KEY = "testkey"


@pytest.fixture
def client():
    return TestClient(app, headers={"X-API-Key": API_KEY})


def test_requires_api_key():
    assert TestClient(app).get("/metrics").status_code == 401
    assert TestClient(app).get("/metrics/snapshot").status_code == 401


def test_scrape_serves_prometheus_text(client, add_items):
    add_items("E1")
    client.get("/search")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'discovery_events_total{key="cache:miss"}' in response.text
    assert 'discovery_latency_seconds_count{key="search:query"}' in response.text


def test_reports_cache_counters(client, add_items):
    add_items("E1")
    client.get("/search")
    client.get("/search")

    counters = client.get("/metrics/snapshot").json()["counters"]
    assert counters["cache:miss"] >= 1
    assert counters["cache:hit"] >= 1


def test_flush_resets_counters(client, app_state):
    app_state.metrics.incr("cache:hit")

    snapshot = client.get("/metrics/snapshot", params={"flush": "true"}).json()
    assert snapshot["counters"] == {"cache:hit": 1}
    assert client.get("/metrics/snapshot").json()["counters"] == {}

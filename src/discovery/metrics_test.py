import threading

import pytest

from .metrics import MetricsCollector, timed


@pytest.fixture
def metrics():
    return MetricsCollector()


def test_incr_and_count(metrics):
    metrics.incr("recommend:social.ok")
    metrics.incr("recommend:social.ok", 2)
    assert metrics.count("recommend:social.ok") == 3
    assert metrics.count("recommend:missing") == 0


def test_collectors_do_not_share_samples(metrics):
    other = MetricsCollector()
    metrics.incr("cache:hit")
    assert other.count("cache:hit") == 0


def test_observe_summarises_latency(metrics):
    for latency in (10, 20, 30):
        metrics.observe("search:query", latency)

    stats = metrics.snapshot()["latency"]["search:query"]
    assert stats["count"] == 3
    assert stats["sum_ms"] == pytest.approx(60.0)
    assert stats["avg_ms"] == pytest.approx(20.0)


def test_timed_records_latency(metrics):
    with timed(metrics, "cache:get"):
        pass
    assert metrics.snapshot()["latency"]["cache:get"]["count"] == 1


def test_timed_records_on_error(metrics):
    with pytest.raises(RuntimeError):
        with timed(metrics, "recommend:social"):
            raise RuntimeError("boom")
    assert metrics.snapshot()["latency"]["recommend:social"]["count"] == 1


def test_flush_resets(metrics):
    metrics.incr("cache:hit")
    metrics.observe("search:query", 5)
    snap = metrics.flush()
    assert snap["counters"] == {"cache:hit": 1}
    assert metrics.snapshot()["counters"] == {}
    assert metrics.snapshot()["latency"] == {}


def test_flush_under_concurrent_increments_loses_nothing(metrics):
    per_thread = 2000
    workers = 4
    flushed = []

    def work():
        for _ in range(per_thread):
            metrics.incr("cache:hit")

    threads = [threading.Thread(target=work) for _ in range(workers)]
    for t in threads:
        t.start()
    while any(t.is_alive() for t in threads):
        flushed.append(metrics.flush()["counters"].get("cache:hit", 0))
    for t in threads:
        t.join()
    flushed.append(metrics.flush()["counters"].get("cache:hit", 0))

    assert sum(flushed) == per_thread * workers


def test_render_exposition_format(metrics):
    metrics.incr("cache:miss", 2)
    metrics.observe("search:query", 12)

    body = metrics.render().decode()

    assert 'discovery_events_total{key="cache:miss"} 2.0' in body
    assert 'discovery_latency_seconds_count{key="search:query"} 1.0' in body

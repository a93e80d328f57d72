from __future__ import annotations

from datetime import timedelta
import time

from todolist_service.stats import Statistics, StatisticsReporter


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_flush_reports_and_resets():
    clock = FakeClock()
    stats = Statistics(clock=clock)
    stats.record(200, 10)
    stats.record(200, 20)
    stats.record(404, 30)
    clock.now = 1020.0

    snapshot = stats.flush()
    assert snapshot == {
        "since": 1000,
        "until": 1020,
        "requests": 3,
        "statuses": {"200": 2, "404": 1},
        "avg_latency_ms": 20.0,
    }

    clock.now = 1040.0
    assert stats.flush() == {
        "since": 1020,
        "until": 1040,
        "requests": 0,
        "statuses": {},
        "avg_latency_ms": 0.0,
    }


def test_reporter_flushes_on_interval():
    stats = Statistics()
    snapshots = []
    flush = stats.flush

    def recording_flush():
        snapshot = flush()
        snapshots.append(snapshot)
        return snapshot

    stats.flush = recording_flush  # type: ignore[method-assign]
    stats.record(200, 5)
    reporter = StatisticsReporter(stats, timedelta(milliseconds=20))
    reporter.start()
    try:
        deadline = time.monotonic() + 5
        while len(snapshots) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        reporter.stop()
    assert snapshots[0]["requests"] == 1
    assert snapshots[0]["statuses"] == {"200": 1}
    assert sum(s["requests"] for s in snapshots) == 1
    assert reporter.last == snapshots[-1]


def test_report_keeps_last_snapshot():
    stats = Statistics()
    reporter = StatisticsReporter(stats, timedelta(seconds=60))
    assert reporter.last == {}
    stats.record(500, 1)
    snapshot = reporter.report()
    assert snapshot["requests"] == 1
    assert reporter.last == snapshot

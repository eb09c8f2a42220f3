"""Tests for the metrics collector module."""

import threading

import pytest

from event_logger.metrics import SEND_TIME_WINDOW, MetricsCollector


def test_record_and_snapshot():
    mc = MetricsCollector()

    mc.record_flush("size")
    mc.record_batch(event_count=10, bytes_sent=500, send_time_ms=12.0)
    mc.record_flush("timer")
    mc.record_batch(event_count=4, bytes_sent=200, send_time_ms=8.0)

    snap = mc.snapshot()
    assert snap["batches_sent"] == 2
    assert snap["events_sent"] == 14
    assert snap["total_bytes"] == 700
    assert snap["avg_send_time_ms"] == pytest.approx(10.0)
    assert snap["flush_triggers"] == {"size": 1, "timer": 1, "manual": 0, "unload": 0}


def test_failures_and_drops():
    mc = MetricsCollector()
    mc.record_failure(requeued=6)
    mc.record_failure(requeued=2)
    mc.record_dropped(3)

    snap = mc.snapshot()
    assert snap["failed_flushes"] == 2
    assert snap["events_requeued"] == 8
    assert snap["events_dropped"] == 3
    assert snap["batches_sent"] == 0


def test_empty_snapshot():
    snap = MetricsCollector().snapshot()
    assert snap["avg_send_time_ms"] == 0.0
    assert snap["p95_send_time_ms"] == 0.0
    assert snap["uptime_seconds"] >= 0


def test_percentile_interpolation():
    assert MetricsCollector._percentile([1, 2, 3, 4, 5], 50) == 3.0
    assert MetricsCollector._percentile([10], 95) == 10.0
    assert MetricsCollector._percentile([0, 10], 50) == pytest.approx(5.0)


def test_thread_safety():
    mc = MetricsCollector()

    def worker():
        for _ in range(500):
            mc.record_batch(event_count=1, bytes_sent=10, send_time_ms=1.0)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert mc.snapshot()["events_sent"] == 2000


def test_send_time_window_is_bounded():
    mc = MetricsCollector()
    for i in range(1500):
        mc.record_batch(event_count=1, bytes_sent=10, send_time_ms=float(i))

    snap = mc.snapshot()
    assert len(mc._send_times) == SEND_TIME_WINDOW
    assert snap["events_sent"] == 1500
    assert snap["avg_send_time_ms"] == pytest.approx(999.5)

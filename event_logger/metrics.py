"""Metrics collector — thread-safe counters for flush and delivery outcomes."""

import threading
import time
from collections import deque

FLUSH_TRIGGERS = ("size", "timer", "manual", "unload")
SEND_TIME_WINDOW = 1000


class MetricsCollector:
    """Collects and reports metrics about batched event delivery."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches_sent: int = 0
        self._events_sent: int = 0
        self._total_bytes: int = 0
        self._failed_flushes: int = 0
        self._events_requeued: int = 0
        self._events_dropped: int = 0
        self._send_times: deque = deque(maxlen=SEND_TIME_WINDOW)
        self._flush_triggers: dict = {trigger: 0 for trigger in FLUSH_TRIGGERS}
        self._start_time = time.monotonic()

    def record_flush(self, trigger: str) -> None:
        """Count a flush attempt by what caused it."""
        with self._lock:
            self._flush_triggers[trigger] = self._flush_triggers.get(trigger, 0) + 1

    def record_batch(self, event_count: int, bytes_sent: int, send_time_ms: float) -> None:
        """Record a delivered Session envelope.

        Args:
            event_count: Number of events in the envelope.
            bytes_sent: Encoded body size in bytes.
            send_time_ms: Time taken by the send, in milliseconds.
        """
        with self._lock:
            self._batches_sent += 1
            self._events_sent += event_count
            self._total_bytes += bytes_sent
            self._send_times.append(send_time_ms)

    def record_failure(self, requeued: int) -> None:
        with self._lock:
            self._failed_flushes += 1
            self._events_requeued += requeued

    def record_dropped(self, count: int) -> None:
        with self._lock:
            self._events_dropped += count

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all collected metrics."""
        with self._lock:
            send_times = list(self._send_times)
            avg_send = sum(send_times) / len(send_times) if send_times else 0.0

            return {
                "batches_sent": self._batches_sent,
                "events_sent": self._events_sent,
                "total_bytes": self._total_bytes,
                "failed_flushes": self._failed_flushes,
                "events_requeued": self._events_requeued,
                "events_dropped": self._events_dropped,
                "avg_send_time_ms": avg_send,
                "p95_send_time_ms": self._percentile(send_times, 95),
                "flush_triggers": dict(self._flush_triggers),
                "uptime_seconds": time.monotonic() - self._start_time,
            }

    @staticmethod
    def _percentile(data: list, pct: float) -> float:
        """Interpolated percentile of *data*, or 0.0 when empty."""
        if not data:
            return 0.0

        sorted_data = sorted(data)
        n = len(sorted_data)
        if n == 1:
            return float(sorted_data[0])

        idx = (pct / 100) * (n - 1)
        lower = int(idx)
        upper = lower + 1
        fraction = idx - lower

        if upper >= n:
            return float(sorted_data[-1])

        return float(sorted_data[lower] + fraction * (sorted_data[upper] - sorted_data[lower]))

"""Thread-safe bounded storage of received Session envelopes."""

import collections
import threading
from collections import Counter


class SessionStore:
    """In-memory session storage backed by a bounded deque."""

    def __init__(self, max_size=500):
        self._sessions = collections.deque(maxlen=max_size)
        self._lock = threading.Lock()
        self._total_sessions = 0
        self._total_events = 0

    def add(self, envelope):
        """Append a received envelope and update the running totals."""
        with self._lock:
            self._sessions.append(envelope)
            self._total_sessions += 1
            self._total_events += len(envelope.get("events", []))

    def get_recent(self, count=50):
        """Return the last `count` envelopes, most recent first."""
        with self._lock:
            return list(self._sessions)[-count:][::-1]

    def summary(self, top_n=10):
        """Aggregate the stored envelopes by event type, event name and device."""
        with self._lock:
            sessions = list(self._sessions)
            total_sessions = self._total_sessions
            total_events = self._total_events

        by_type = Counter()
        by_name = Counter()
        by_device = Counter()
        session_ids = set()
        for envelope in sessions:
            session_ids.add(envelope["sessionId"])
            by_device[envelope["metadata"]["deviceType"]] += 1
            for event in envelope["events"]:
                by_type[event["eventType"]] += 1
                by_name[event["eventName"]] += 1

        return {
            "total_envelopes": total_sessions,
            "total_events": total_events,
            "unique_sessions": len(session_ids),
            "events_by_type": dict(by_type),
            "envelopes_by_device": dict(by_device),
            "top_events": [
                {"eventName": name, "count": count}
                for name, count in by_name.most_common(top_n)
            ],
        }

    @property
    def total_events(self):
        return self._total_events

    @property
    def current_size(self):
        return len(self._sessions)

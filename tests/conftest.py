import json
import threading
import time

import pytest

from event_logger.batch_logger import EventBatchLogger
from event_logger.collector import create_app
from event_logger.config import CollectorConfig, LoggerConfig
from event_logger.environment import Environment
from event_logger.store import MemoryStore

CHROME_ON_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms=1_700_000_000_000):
        self._now = start_ms

    def now_ms(self):
        return self._now

    def advance(self, ms):
        self._now += ms


class RecordingSender:
    """Stands in for HttpSender/BeaconSender and records decoded bodies.

    *outcomes* is consumed one per send; once exhausted every send succeeds.
    *on_send* runs inside the send, before the outcome is returned.
    """

    def __init__(self, outcomes=None, url="http://collector.test/analytics/events"):
        self.url = url
        self.bodies = []
        self.on_send = None
        self.closed = False
        self._outcomes = list(outcomes or [])
        self._lock = threading.Lock()

    def send(self, body):
        with self._lock:
            self.bodies.append(json.loads(body))
        hook, self.on_send = self.on_send, None
        if hook is not None:
            hook()
        if self._outcomes:
            return self._outcomes.pop(0)
        return True

    def close(self):
        self.closed = True

    def event_names(self, index=-1):
        return [e["eventName"] for e in self.bodies[index]["events"]]


def wait_for(predicate, timeout=3.0, interval=0.02):
    """Poll *predicate* until it returns truthy or *timeout* elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def environment():
    return Environment(
        page="/events",
        user_agent=CHROME_ON_WINDOWS,
        locale="en",
        referrer="https://example.com/",
        viewport_width=1280,
    )


@pytest.fixture
def http_sender():
    return RecordingSender()


@pytest.fixture
def make_logger(clock, environment, http_sender):
    """Factory for loggers wired to fakes; destroys every logger it built."""
    created = []

    def _make(unload_sender=None, store=None, sender=None, **overrides):
        settings = {"batch_size": 100, "flush_interval": 60.0}
        settings.update(overrides)
        analytics = EventBatchLogger(
            LoggerConfig(**settings),
            http_sender=sender or http_sender,
            unload_sender=unload_sender,
            store=store if store is not None else MemoryStore(),
            environment=environment,
            clock=clock,
        )
        created.append(analytics)
        return analytics

    yield _make

    for analytics in created:
        analytics.destroy()


@pytest.fixture
def collector_app():
    application = create_app(CollectorConfig(max_sessions=50))
    application.config["TESTING"] = True
    return application


@pytest.fixture
def collector_client(collector_app):
    return collector_app.test_client()


@pytest.fixture
def sample_envelope():
    return {
        "sessionId": "sess_1700000000000_abc123xyz",
        "startTime": 1700000000000,
        "endTime": 1700000030000,
        "userId": None,
        "events": [
            {
                "eventType": "session",
                "eventName": "session_start",
                "timestamp": 1700000000000,
                "sessionId": "sess_1700000000000_abc123xyz",
                "userId": None,
                "data": {"referrer": "", "landingPage": "/"},
                "page": "/",
                "userAgent": CHROME_ON_WINDOWS,
                "locale": "en",
            },
            {
                "eventType": "interaction",
                "eventName": "category_click",
                "timestamp": 1700000005000,
                "sessionId": "sess_1700000000000_abc123xyz",
                "userId": None,
                "data": {"categoryId": "hotels", "categoryName": "Hotels"},
                "page": "/",
                "userAgent": CHROME_ON_WINDOWS,
                "locale": "en",
            },
        ],
        "metadata": {
            "locale": "en",
            "deviceType": "desktop",
            "browser": "Chrome",
            "os": "Windows",
        },
    }

"""HTTP transports — a regular POST sender and an unload-safe beacon sender."""

import logging
import random
import threading

import httpx

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


def backoff_delay(attempt: int, max_steps: int = 5) -> float:
    """Calculate the wait before the next automatic flush after *attempt* failures.

    Doubles per failure (2s, 4s, 8s, ...) with the exponent capped at
    *max_steps*, plus up to 0.5s of random jitter.
    """
    steps = max(0, min(attempt, max_steps))
    return (2 ** steps) + random.uniform(0, 0.5)


class HttpSender:
    """POSTs JSON bodies to the collector and reports success as a bool."""

    def __init__(self, url: str, timeout: float = 10.0, transport=None):
        self._url = url
        self._client = httpx.Client(timeout=timeout, transport=transport)

    @property
    def url(self) -> str:
        return self._url

    def send(self, body: bytes) -> bool:
        """Send *body*. Returns True on a 2xx response, False otherwise."""
        try:
            response = self._client.post(self._url, content=body, headers=JSON_HEADERS)
        except httpx.HTTPError as exc:
            logger.warning("Analytics: network error sending to %s: %s", self._url, exc)
            return False

        if response.is_success:
            return True

        logger.warning(
            "Analytics: collector at %s answered %d", self._url, response.status_code
        )
        return False

    def close(self):
        self._client.close()


class BeaconSender:
    """Fire-and-forget sender used while the host is shutting down.

    ``send`` only queues the body on a daemon thread and returns at once;
    the outcome is logged and never retried.
    """

    def __init__(self, url: str, timeout: float = 5.0, transport=None):
        self._url = url
        self._client = httpx.Client(timeout=timeout, transport=transport)
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False

    def send(self, body: bytes) -> bool:
        """Queue *body* for delivery. Returns False once the sender is closed."""
        thread = threading.Thread(target=self._deliver, args=(body,), daemon=True)
        with self._lock:
            if self._closed:
                logger.warning("Beacon to %s refused: sender is closed", self._url)
                return False
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
            thread.start()
        return True

    def _deliver(self, body: bytes):
        try:
            response = self._client.post(self._url, content=body, headers=JSON_HEADERS)
            logger.debug("Beacon delivered with status %d", response.status_code)
        except Exception as exc:
            logger.warning("Beacon to %s failed: %s", self._url, exc)

    def wait(self, timeout: float = 5.0):
        """Block until queued beacons finish or *timeout* elapses per beacon."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)

    def close(self):
        with self._lock:
            self._closed = True
        self.wait()
        self._client.close()

"""Event batch logger — buffers interaction events and ships them as Session envelopes."""

import atexit
import json
import logging
import threading
import time

from event_logger.config import LoggerConfig
from event_logger.environment import Environment, SystemClock, generate_session_id
from event_logger.metrics import MetricsCollector
from event_logger.models import Event, create_event, create_session, session_to_wire
from event_logger.sender import BeaconSender, HttpSender, backoff_delay
from event_logger.store import USER_ID_KEY, EventBacklog, JsonFileStore, MemoryStore

logger = logging.getLogger(__name__)

AUTH_ACTIONS = ("signin", "signup", "signout")


class EventBatchLogger:
    """Buffers tracked events and flushes them to the collector in batches.

    A flush happens when the pending buffer reaches ``batch_size`` events,
    every ``flush_interval`` seconds, on ``flush()`` and on unload. The buffer
    is swapped out under a lock before sending; if the send fails the
    snapshot goes back in front of anything tracked meanwhile, so order holds
    across retries. Sends are serialized so only one snapshot is in flight.

    Nothing raised by the store or the transports escapes ``track()``,
    ``flush()``, ``set_user_id()`` or ``destroy()``; failures are logged.

    The logger owns its transports and closes them in ``destroy()``.
    """

    def __init__(
        self,
        config: LoggerConfig,
        http_sender,
        unload_sender=None,
        store=None,
        environment: Environment | None = None,
        clock=None,
        metrics: MetricsCollector | None = None,
    ):
        self._config = config
        self._http_sender = http_sender
        self._unload_sender = unload_sender
        self._store = store if store is not None else MemoryStore()
        self._environment = environment if environment is not None else Environment()
        self._clock = clock if clock is not None else SystemClock()
        self._metrics = metrics if metrics is not None else MetricsCollector()
        self._backlog = EventBacklog(self._store, capacity=config.backlog_capacity)

        self._pending: list[Event] = []
        self._buffer_lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._failures = 0
        self._retry_at = 0.0

        self._shutdown = threading.Event()
        self._wakeup = threading.Event()
        self._worker: threading.Thread | None = None
        self._helper: threading.Thread | None = None
        self._started = False
        self._destroyed = False
        self._closed = False

        self._start_time = self._clock.now_ms()
        self._session_id = generate_session_id(self._start_time)
        self._user_id = self._read_stored_user_id()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Record the session start and begin the recurring flush timer."""
        if self._started or self._destroyed:
            return
        self._started = True

        context = self._environment.snapshot()
        self.track("session", "session_start", {
            "referrer": context.referrer,
            "landingPage": context.page,
        })

        if self._config.flush_interval > 0:
            self._worker = threading.Thread(
                target=self._flush_loop, name="event-logger-flush", daemon=True
            )
            self._worker.start()

        # Interpreter exit plays the role of page unload
        atexit.register(self._on_exit)

        logger.info(
            "Analytics session %s started: endpoint=%s, batch_size=%d, flush_interval=%.1fs",
            self._session_id,
            self._http_sender_url(),
            self._config.batch_size,
            self._config.flush_interval,
        )

    def handle_unload(self):
        """Record the session end and push everything out through the unload transport."""
        self.track("session", "session_end", {
            "duration": self._clock.now_ms() - self._start_time,
        })
        self.flush(synchronous=True)

    def destroy(self):
        """Stop the flush timer, do one last synchronous flush and close transports."""
        if self._destroyed:
            return
        self._destroyed = True
        atexit.unregister(self._on_exit)

        self._shutdown.set()
        self._wakeup.set()
        if self._worker is not None:
            self._worker.join(timeout=5)
            self._worker = None

        self.flush(synchronous=True)

        # Waits out any in-flight helper send before the transports go away.
        with self._send_lock:
            self._closed = True

        for sender in (self._unload_sender, self._http_sender):
            close = getattr(sender, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception:
                logger.exception("Failed to close analytics transport")

        logger.info("Analytics session %s stopped: %s", self._session_id, self._metrics.snapshot())

    def _on_exit(self):
        if not self._destroyed:
            self.handle_unload()
            self.destroy()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def track(self, event_type: str, event_name: str, payload: dict | None = None):
        """Buffer one event. Never raises and never waits on the network."""
        try:
            with self._buffer_lock:
                event = create_event(
                    event_type,
                    event_name,
                    timestamp=self._clock.now_ms(),
                    session_id=self._session_id,
                    context=self._environment.snapshot(),
                    user_id=self._user_id,
                    payload=payload,
                )
                self._pending.append(event)
                dropped = self._enforce_bound_locked()
                threshold_reached = len(self._pending) >= self._config.batch_size

            if dropped:
                self._record_dropped(dropped)

            self._backlog.append(event)
        except Exception:
            logger.exception("Analytics: failed to track %s/%s", event_type, event_name)
            return

        if threshold_reached:
            self._request_flush()

    def set_user_id(self, user_id: str):
        """Attach *user_id* to every event tracked from now on and persist it."""
        with self._buffer_lock:
            self._user_id = user_id
        try:
            self._store.set(USER_ID_KEY, user_id)
        except Exception as exc:
            logger.warning("Failed to persist analytics user id: %s", exc)
        self.track("user", "user_identified", {"userId": user_id})

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def flush(self, synchronous: bool = False) -> bool:
        """Send all pending events now.

        With *synchronous* set and an unload transport configured, the
        envelope is handed off fire-and-forget. Returns True when the events
        were delivered (or handed off), False on an empty buffer or failure.
        """
        trigger = "unload" if synchronous else "manual"
        return self._flush(trigger, synchronous=synchronous, blocking=True)

    def _request_flush(self):
        """Hand a threshold flush to a background thread; never send from the caller."""
        if self._closed:
            logger.debug("Analytics: logger destroyed, leaving %d events pending", self.pending_count)
            return

        worker = self._worker
        if worker is not None and worker.is_alive() and not self._shutdown.is_set():
            self._wakeup.set()
            return

        # No recurring timer yet (before start()); use a one-shot helper thread.
        with self._buffer_lock:
            helper = self._helper
            if helper is not None and helper.is_alive():
                return
            helper = threading.Thread(
                target=self._safe_auto_flush, args=("size",),
                name="event-logger-size-flush", daemon=True,
            )
            self._helper = helper
        helper.start()

    def _safe_auto_flush(self, trigger: str):
        try:
            self._auto_flush(trigger)
        except Exception:
            logger.exception("Analytics: %s flush failed", trigger)

    def _auto_flush(self, trigger: str) -> bool:
        if not self._environment.online:
            logger.debug("Analytics: host offline, deferring %s flush", trigger)
            return False
        with self._buffer_lock:
            retry_at = self._retry_at
        if time.monotonic() < retry_at:
            logger.debug("Analytics: backing off, skipping %s flush", trigger)
            return False
        return self._flush(trigger, synchronous=False, blocking=False)

    def _flush(self, trigger: str, synchronous: bool, blocking: bool) -> bool:
        if not self._send_lock.acquire(blocking=blocking):
            return False
        try:
            with self._buffer_lock:
                if not self._pending:
                    return False
                if self._closed:
                    logger.warning(
                        "Analytics: transports closed by destroy(), keeping %d events pending",
                        len(self._pending),
                    )
                    return False
                snapshot = self._pending
                self._pending = []
                user_id = self._user_id

            self._metrics.record_flush(trigger)
            return self._deliver(snapshot, user_id, synchronous)
        finally:
            self._send_lock.release()

    def _deliver(self, snapshot: list[Event], user_id: str | None, synchronous: bool) -> bool:
        try:
            session = create_session(
                self._session_id,
                self._start_time,
                self._clock.now_ms(),
                user_id,
                snapshot,
                self._environment.snapshot(),
            )
            body = json.dumps(session_to_wire(session), default=str).encode("utf-8")
        except Exception:
            logger.exception("Analytics: failed to encode %d events", len(snapshot))
            self._requeue(snapshot)
            return False

        if synchronous and self._unload_sender is not None:
            try:
                queued = self._unload_sender.send(body)
            except Exception:
                logger.exception("Analytics: unload send failed")
                queued = False
            if queued:
                logger.info("Analytics: handed off %d events on unload", len(snapshot))
                return True
            # Unload transport refused the body; fall through to a regular send.

        start = time.monotonic()
        try:
            delivered = self._http_sender.send(body)
        except Exception:
            logger.exception("Analytics: sender raised while sending %d events", len(snapshot))
            delivered = False
        elapsed_ms = (time.monotonic() - start) * 1000

        if delivered:
            with self._buffer_lock:
                self._failures = 0
                self._retry_at = 0.0
            self._metrics.record_batch(len(snapshot), len(body), elapsed_ms)
            logger.info("Analytics: sent %d events", len(snapshot))
            return True

        self._requeue(snapshot)
        return False

    def _requeue(self, snapshot: list[Event]):
        """Put a failed snapshot back ahead of events tracked since it was taken."""
        with self._buffer_lock:
            self._pending = snapshot + self._pending
            dropped = self._enforce_bound_locked()
            self._failures += 1
            delay = backoff_delay(self._failures, self._config.max_retry_steps)
            self._retry_at = time.monotonic() + delay
            failures = self._failures

        self._metrics.record_failure(len(snapshot))
        if dropped:
            self._record_dropped(dropped)
        logger.warning(
            "Analytics: failed to send %d events (failure #%d), will retry in %.1fs",
            len(snapshot),
            failures,
            delay,
        )

    def _enforce_bound_locked(self) -> int:
        """Trim the oldest pending events past ``max_pending``. Caller holds the buffer lock."""
        overflow = len(self._pending) - self._config.max_pending
        if overflow <= 0:
            return 0
        del self._pending[:overflow]
        return overflow

    def _record_dropped(self, count: int):
        self._metrics.record_dropped(count)
        logger.warning(
            "Analytics: pending buffer over %d events, dropped %d oldest",
            self._config.max_pending,
            count,
        )

    def _flush_loop(self):
        """Background thread: flushes every flush_interval and on threshold wakeups."""
        interval = self._config.flush_interval
        next_tick = time.monotonic() + interval

        while not self._shutdown.is_set():
            timeout = max(0.0, next_tick - time.monotonic())
            woken = self._wakeup.wait(timeout=timeout)
            if self._shutdown.is_set():
                break

            if woken:
                self._wakeup.clear()
                trigger = "size"
            else:
                next_tick = time.monotonic() + interval
                trigger = "timer"

            try:
                self._auto_flush(trigger)
            except Exception:
                logger.exception("Analytics: %s flush failed", trigger)

    # ------------------------------------------------------------------
    # Helpers and read-only state
    # ------------------------------------------------------------------

    def _read_stored_user_id(self) -> str | None:
        try:
            return self._store.get(USER_ID_KEY) or None
        except Exception as exc:
            logger.warning("Failed to read persisted analytics user id: %s", exc)
            return None

    def _http_sender_url(self) -> str:
        return getattr(self._http_sender, "url", self._config.events_url)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def start_time(self) -> int:
        return self._start_time

    @property
    def user_id(self) -> str | None:
        with self._buffer_lock:
            return self._user_id

    @property
    def pending_count(self) -> int:
        with self._buffer_lock:
            return len(self._pending)

    @property
    def pending_events(self) -> list[Event]:
        with self._buffer_lock:
            return list(self._pending)

    @property
    def backlog(self) -> EventBacklog:
        return self._backlog

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def backing_off(self) -> bool:
        with self._buffer_lock:
            return time.monotonic() < self._retry_at

    # ------------------------------------------------------------------
    # Convenience wrappers
    # ------------------------------------------------------------------

    def track_page_view(self, page: str):
        self.track("navigation", "page_view", {"page": page})

    def track_category_click(self, category_id: str, category_name: str):
        self.track("interaction", "category_click", {
            "categoryId": category_id,
            "categoryName": category_name,
        })

    def track_place_view(self, place_id: int, place_name: str):
        self.track("interaction", "place_view", {"placeId": place_id, "placeName": place_name})

    def track_search(self, query: str, filters=None):
        self.track("search", "search_performed", {"query": query, "filters": filters})

    def track_filter_change(self, filter_type: str, filter_value):
        self.track("interaction", "filter_change", {
            "filterType": filter_type,
            "filterValue": filter_value,
        })

    def track_city_change(self, city_id: str, city_name: str):
        self.track("interaction", "city_change", {"cityId": city_id, "cityName": city_name})

    def track_language_change(self, from_locale: str, to_locale: str):
        self.track("interaction", "language_change", {"from": from_locale, "to": to_locale})

    def track_auth(self, action: str, method: str | None = None):
        if action not in AUTH_ACTIONS:
            logger.warning("Analytics: unknown auth action %r", action)
        self.track("auth", f"auth_{action}", {"method": method})

    def track_error(self, error: str, context: str):
        self.track("error", "error_occurred", {"error": error, "context": context})


def create_logger(
    config: LoggerConfig,
    environment: Environment | None = None,
    transport=None,
) -> EventBatchLogger:
    """Wire an EventBatchLogger with the production transports and store.

    *transport* is passed through to httpx, which lets callers route the
    logger at an in-process collector (``httpx.WSGITransport``) or a mock.
    """
    store = JsonFileStore(config.store_path) if config.store_path else MemoryStore()
    return EventBatchLogger(
        config,
        http_sender=HttpSender(config.events_url, config.request_timeout, transport=transport),
        unload_sender=BeaconSender(config.events_url, transport=transport),
        store=store,
        environment=environment,
    )

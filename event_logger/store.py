"""Durable key-value stores and the bounded persisted event backlog.

A store is any object with ``get(key) -> str | None`` and ``set(key, value)``.
``MemoryStore`` keeps values for the life of the process; ``JsonFileStore``
keeps them in a single JSON file written atomically (tmp + os.replace), so
the user id and backlog survive a restart.
"""

import json
import logging
import os
import tempfile
import threading

from event_logger.models import Event, event_from_wire, event_to_wire

logger = logging.getLogger(__name__)

USER_ID_KEY = "iraqi_guide_user_id"
BACKLOG_KEY = "analytics_events"


class MemoryStore:
    def __init__(self):
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str):
        with self._lock:
            self._data[key] = value


class JsonFileStore:
    """String values kept in one JSON object on disk."""

    def __init__(self, path: str):
        self._path = path
        self._lock = threading.Lock()
        self._data: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self._path):
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable store file %s: %s", self._path, exc)
            return
        if isinstance(data, dict):
            self._data = {k: v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str):
        with self._lock:
            updated = dict(self._data)
            updated[key] = value
            self._save(updated)
            self._data = updated

    def _save(self, data: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self._path)
        except Exception:
            os.unlink(tmp)
            raise


class EventBacklog:
    """Bounded FIFO copy of tracked events kept in a durable store.

    Holds at most *capacity* entries; appending past capacity evicts the
    oldest. Write failures (quota, disk, serialization) are logged and
    swallowed so tracking carries on without the backlog write.
    """

    def __init__(self, store, capacity: int = 100, key: str = BACKLOG_KEY):
        self._store = store
        self._capacity = capacity
        self._key = key
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def _read(self) -> list[dict]:
        raw = self._store.get(self._key)
        if not raw:
            return []
        try:
            entries = json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt event backlog under %r", self._key)
            return []
        return entries if isinstance(entries, list) else []

    def append(self, event: Event) -> bool:
        """Persist *event*. Returns False if the write failed."""
        with self._lock:
            try:
                entries = self._read()
                entries.append(event_to_wire(event))
                if len(entries) > self._capacity:
                    del entries[: len(entries) - self._capacity]
                self._store.set(self._key, json.dumps(entries))
                return True
            except Exception as exc:
                logger.warning("Failed to persist analytics event: %s", exc)
                return False

    def entries(self) -> list[Event]:
        """Return the persisted events, oldest first."""
        with self._lock:
            try:
                return [event_from_wire(e) for e in self._read()]
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Malformed backlog entry: %s", exc)
                return []

    def __len__(self) -> int:
        with self._lock:
            return len(self._read())

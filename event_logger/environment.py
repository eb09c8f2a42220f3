"""Host environment inspection — clock, page context and device classification."""

import random
import string
import threading
import time
from dataclasses import dataclass

MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024

# Checked in order; the first substring found wins.
BROWSER_MARKERS = [
    ("Chrome", "Chrome"),
    ("Firefox", "Firefox"),
    ("Safari", "Safari"),
    ("Edge", "Edge"),
]
OS_MARKERS = [
    ("Windows", "Windows"),
    ("Mac", "macOS"),
    ("Linux", "Linux"),
    ("Android", "Android"),
    ("iOS", "iOS"),
]

_BASE36 = string.digits + string.ascii_lowercase


def classify_device(width: int) -> str:
    """Map a viewport width in pixels to mobile, tablet or desktop."""
    if width < MOBILE_MAX_WIDTH:
        return "mobile"
    if width < TABLET_MAX_WIDTH:
        return "tablet"
    return "desktop"


def _match(user_agent: str, markers: list[tuple[str, str]]) -> str:
    for marker, name in markers:
        if marker in user_agent:
            return name
    return "unknown"


def detect_browser(user_agent: str) -> str:
    return _match(user_agent, BROWSER_MARKERS)


def detect_os(user_agent: str) -> str:
    return _match(user_agent, OS_MARKERS)


def generate_session_id(now_ms: int) -> str:
    """Return ``sess_<ms>_<9 random base-36 chars>``.

    Unique with overwhelming probability, not meant to be unguessable.
    """
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"sess_{now_ms}_{suffix}"


class SystemClock:
    """Wall clock in milliseconds since the epoch."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


@dataclass(frozen=True)
class EnvironmentSnapshot:
    page: str = "/"
    user_agent: str = ""
    locale: str = "en"
    referrer: str = ""
    viewport_width: int = 1280

    @property
    def device_type(self) -> str:
        return classify_device(self.viewport_width)

    @property
    def browser(self) -> str:
        return detect_browser(self.user_agent)

    @property
    def os(self) -> str:
        return detect_os(self.user_agent)


class Environment:
    """Mutable host context shared between the application and the logger.

    The application updates the page, locale and viewport as the user
    navigates; the logger reads a snapshot at the moment an event is tracked.
    """

    def __init__(
        self,
        page: str = "/",
        user_agent: str = "",
        locale: str = "en",
        referrer: str = "",
        viewport_width: int = 1280,
        online: bool = True,
    ):
        self._lock = threading.Lock()
        self._page = page
        self._user_agent = user_agent
        self._locale = locale or "en"
        self._referrer = referrer
        self._viewport_width = viewport_width
        self._online = online

    def navigate(self, page: str):
        with self._lock:
            self._referrer = self._page
            self._page = page

    def set_locale(self, locale: str):
        with self._lock:
            self._locale = locale or "en"

    def set_viewport_width(self, width: int):
        with self._lock:
            self._viewport_width = width

    def set_online(self, online: bool):
        with self._lock:
            self._online = online

    @property
    def online(self) -> bool:
        with self._lock:
            return self._online

    def snapshot(self) -> EnvironmentSnapshot:
        with self._lock:
            return EnvironmentSnapshot(
                page=self._page,
                user_agent=self._user_agent,
                locale=self._locale,
                referrer=self._referrer,
                viewport_width=self._viewport_width,
            )

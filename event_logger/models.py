"""Event and Session models plus their JSON wire mapping."""

from dataclasses import dataclass, field
from typing import Any, Optional

from event_logger.environment import EnvironmentSnapshot


@dataclass(frozen=True)
class Event:
    event_type: str
    event_name: str
    timestamp: int
    session_id: str
    user_id: Optional[str] = None
    payload: dict = field(default_factory=dict)
    page: str = "/"
    user_agent: str = ""
    locale: str = "en"


@dataclass(frozen=True)
class SessionMetadata:
    locale: str
    device_type: str
    browser: str
    os: str


@dataclass(frozen=True)
class Session:
    session_id: str
    start_time: int
    end_time: int
    user_id: Optional[str]
    events: tuple
    metadata: SessionMetadata


def create_event(
    event_type: str,
    event_name: str,
    timestamp: int,
    session_id: str,
    context: EnvironmentSnapshot,
    user_id: Optional[str] = None,
    payload: Optional[dict] = None,
) -> Event:
    """Factory that stamps an Event with the ambient context of the call."""
    return Event(
        event_type=event_type,
        event_name=event_name,
        timestamp=timestamp,
        session_id=session_id,
        user_id=user_id,
        payload=dict(payload) if payload is not None else {},
        page=context.page,
        user_agent=context.user_agent,
        locale=context.locale,
    )


def create_session(
    session_id: str,
    start_time: int,
    end_time: int,
    user_id: Optional[str],
    events: list[Event],
    context: EnvironmentSnapshot,
) -> Session:
    """Wrap a snapshot of pending events in a Session envelope."""
    return Session(
        session_id=session_id,
        start_time=start_time,
        end_time=end_time,
        user_id=user_id,
        events=tuple(events),
        metadata=SessionMetadata(
            locale=context.locale,
            device_type=context.device_type,
            browser=context.browser,
            os=context.os,
        ),
    )


def event_to_wire(event: Event) -> dict[str, Any]:
    return {
        "eventType": event.event_type,
        "eventName": event.event_name,
        "timestamp": event.timestamp,
        "sessionId": event.session_id,
        "userId": event.user_id,
        "data": event.payload,
        "page": event.page,
        "userAgent": event.user_agent,
        "locale": event.locale,
    }


def event_from_wire(data: dict) -> Event:
    """Rebuild an Event from its wire dict (used when reading the backlog)."""
    return Event(
        event_type=data["eventType"],
        event_name=data["eventName"],
        timestamp=int(data["timestamp"]),
        session_id=data["sessionId"],
        user_id=data.get("userId"),
        payload=data.get("data") or {},
        page=data.get("page", "/"),
        user_agent=data.get("userAgent", ""),
        locale=data.get("locale", "en"),
    )


def session_to_wire(session: Session) -> dict[str, Any]:
    """Convert a Session to the JSON body POSTed to the collector."""
    return {
        "sessionId": session.session_id,
        "startTime": session.start_time,
        "endTime": session.end_time,
        "userId": session.user_id,
        "events": [event_to_wire(e) for e in session.events],
        "metadata": {
            "locale": session.metadata.locale,
            "deviceType": session.metadata.device_type,
            "browser": session.metadata.browser,
            "os": session.metadata.os,
        },
    }

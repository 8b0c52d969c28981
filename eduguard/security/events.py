"""
Structured security events.

A closed set of known event kinds plus UnknownEvent. Unknown events are
recorded but never change scoring, so newer clients can send kinds this
version does not understand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Union


@dataclass(frozen=True)
class LoginFailureEvent:
    kind: ClassVar[str] = "login-failure"
    reason: str = ""
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class LoginSuccessEvent:
    kind: ClassVar[str] = "login-success"
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class MfaEnrolledEvent:
    kind: ClassVar[str] = "mfa-enrolled"
    factor: str = ""
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class MfaDisabledEvent:
    kind: ClassVar[str] = "mfa-disabled"
    factor: str = ""
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class SuspiciousLocationEvent:
    kind: ClassVar[str] = "suspicious-location"
    location: str = ""
    ip_address: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class SessionActivityEvent:
    kind: ClassVar[str] = "session-activity"
    activity: str = ""
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class UnknownEvent:
    """An event kind this version does not understand."""
    kind: ClassVar[str] = "unknown"
    event_type: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None


SecurityEvent = Union[
    LoginFailureEvent,
    LoginSuccessEvent,
    MfaEnrolledEvent,
    MfaDisabledEvent,
    SuspiciousLocationEvent,
    SessionActivityEvent,
    UnknownEvent,
]

_KNOWN_EVENTS = {
    cls.kind: cls
    for cls in (
        LoginFailureEvent,
        LoginSuccessEvent,
        MfaEnrolledEvent,
        MfaDisabledEvent,
        SuspiciousLocationEvent,
        SessionActivityEvent,
    )
}


def _normalize_kind(value: Any) -> str:
    return str(value or "").strip().lower().replace("_", "-")


def parse_event(data: Mapping[str, Any]) -> SecurityEvent:
    """
    Build a typed event from a loose payload.

    The payload carries its kind under ``type`` and optional fields either at
    the top level or under ``data``. Anything unrecognized becomes an
    UnknownEvent.
    """
    raw_type = data.get("type", "")
    kind = _normalize_kind(raw_type)
    body: Dict[str, Any] = dict(data.get("data") or {})
    body.update({k: v for k, v in data.items() if k not in ("type", "data")})

    timestamp = body.pop("timestamp", None)
    if not isinstance(timestamp, datetime):
        timestamp = None

    if kind not in _KNOWN_EVENTS:
        return UnknownEvent(event_type=str(raw_type), payload=body, timestamp=timestamp)

    if kind == LoginFailureEvent.kind:
        return LoginFailureEvent(reason=str(body.get("reason", "")), timestamp=timestamp)
    if kind == LoginSuccessEvent.kind:
        return LoginSuccessEvent(timestamp=timestamp)
    if kind == MfaEnrolledEvent.kind:
        return MfaEnrolledEvent(factor=str(body.get("factor", "")), timestamp=timestamp)
    if kind == MfaDisabledEvent.kind:
        return MfaDisabledEvent(factor=str(body.get("factor", "")), timestamp=timestamp)
    if kind == SuspiciousLocationEvent.kind:
        return SuspiciousLocationEvent(
            location=str(body.get("location", "")),
            ip_address=body.get("ip_address"),
            timestamp=timestamp,
        )
    return SessionActivityEvent(activity=str(body.get("activity", "")), timestamp=timestamp)


def event_kind(event: SecurityEvent) -> str:
    """Wire name of an event."""
    if isinstance(event, UnknownEvent):
        return event.event_type or UnknownEvent.kind
    return event.kind


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return _json_safe(value.value)
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    return str(value)


def event_payload(event: SecurityEvent) -> Dict[str, Any]:
    """JSON-ready body of an event, without the timestamp."""
    if isinstance(event, UnknownEvent):
        body = {k: v for k, v in event.payload.items() if k != "timestamp"}
    else:
        body = {
            name: getattr(event, name)
            for name in event.__dataclass_fields__
            if name != "timestamp"
        }
    return _json_safe(body)

"""
EduGuard Alert Manager

Ordered queue of active security alerts with:
- Validation of raised alerts
- Deduplication by alert id
- Idempotent dismissal
- Priority-based surfacing (priority desc, then oldest first)
"""

from __future__ import annotations

import uuid
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Union

import structlog

from eduguard.security.errors import InvalidAlert
from eduguard.security.types import AlertPriority, AlertType, SecurityAlert, is_aware

logger = structlog.get_logger(__name__)

DEFAULT_TITLE = "Security alert"


class AlertManager:
    """
    Active alert queue.

    Raising an alert whose id is already open returns that id unchanged.
    Dismissing an unknown or already dismissed id returns False.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        max_history: int = 1000,
    ):
        self._clock = clock

        self._active: Dict[str, SecurityAlert] = {}
        self._sequence: Dict[str, int] = {}  # Tie-breaker for equal timestamps
        self._next_sequence = 0

        self._history: Deque[SecurityAlert] = deque(maxlen=max_history)

        self._stats = {
            "alerts_raised": 0,
            "alerts_dismissed": 0,
            "alerts_deduplicated": 0,
        }

    # =========================================================================
    # Raise / Dismiss
    # =========================================================================

    def raise_alert(self, alert: Union[SecurityAlert, Mapping[str, Any]]) -> str:
        """Validate and enqueue an alert. Returns its id."""
        alert = self._validate(alert)

        if alert.id and alert.id in self._active:
            self._stats["alerts_deduplicated"] += 1
            return alert.id

        alert = replace(
            alert,
            id=alert.id or str(uuid.uuid4()),
            created_at=alert.created_at or self._clock(),
        )

        self._active[alert.id] = alert
        self._sequence[alert.id] = self._next_sequence
        self._next_sequence += 1
        self._stats["alerts_raised"] += 1

        logger.info(
            "Security alert raised",
            alert_id=alert.id,
            priority=alert.priority.value,
            critical=alert.critical,
            title=alert.title,
        )

        return alert.id

    def dismiss(self, alert_id: str) -> bool:
        """Remove an alert. Returns False if it is not open."""
        alert = self._active.pop(alert_id, None)
        if alert is None:
            return False

        self._sequence.pop(alert_id, None)
        self._history.append(alert)
        self._stats["alerts_dismissed"] += 1

        logger.info("Security alert dismissed", alert_id=alert_id)
        return True

    def clear(self) -> None:
        """Drop all open alerts."""
        self._active.clear()
        self._sequence.clear()

    def _validate(self, alert: Union[SecurityAlert, Mapping[str, Any]]) -> SecurityAlert:
        if isinstance(alert, Mapping):
            alert = self._from_mapping(alert)
        elif not isinstance(alert, SecurityAlert):
            raise InvalidAlert(f"unsupported alert payload {type(alert).__name__}")

        try:
            alert_type = AlertType(alert.type)
            priority = AlertPriority(alert.priority)
        except ValueError as e:
            raise InvalidAlert(str(e)) from e

        if not isinstance(alert.message, str) or not alert.message.strip():
            raise InvalidAlert("message is required", field="message")
        if alert.title is not None and not isinstance(alert.title, str):
            raise InvalidAlert("title must be a string", field="title")
        if not isinstance(alert.id, str):
            raise InvalidAlert("id must be a string", field="id")
        if alert.created_at is not None:
            if not isinstance(alert.created_at, datetime):
                raise InvalidAlert("created_at must be a datetime", field="created_at")
            # Open alerts are ordered by created_at, so all must share one convention
            if is_aware(alert.created_at) != is_aware(self._clock()):
                raise InvalidAlert(
                    "created_at must match the clock's timezone awareness",
                    field="created_at",
                )

        return replace(
            alert,
            type=alert_type,
            priority=priority,
            title=(alert.title or "").strip() or DEFAULT_TITLE,
        )

    def _from_mapping(self, data: Mapping[str, Any]) -> SecurityAlert:
        known = {
            "id", "type", "title", "message", "priority",
            "created_at", "critical", "source", "action", "metadata",
        }
        unknown = set(data) - known
        if unknown:
            raise InvalidAlert(f"unknown fields: {', '.join(sorted(unknown))}")

        values = dict(data)

        return SecurityAlert(
            id=values.get("id") or "",
            type=values.get("type", AlertType.INFO),
            title=values.get("title") or "",
            message=values.get("message"),
            priority=values.get("priority", AlertPriority.LOW),
            created_at=values.get("created_at"),
            critical=bool(values.get("critical", False)),
            source=values.get("source") or "external",
            action=values.get("action"),
            metadata=dict(values.get("metadata") or {}),
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, alert_id: str) -> Optional[SecurityAlert]:
        return self._active.get(alert_id)

    def __contains__(self, alert_id: object) -> bool:
        return alert_id in self._active

    def __len__(self) -> int:
        return len(self._active)

    def list_alerts(
        self,
        priority: Optional[AlertPriority] = None,
        alert_type: Optional[AlertType] = None,
        source: Optional[str] = None,
        critical: Optional[bool] = None,
    ) -> List[SecurityAlert]:
        """Open alerts, highest priority first, oldest first within a priority."""
        alerts = list(self._active.values())

        if priority is not None:
            alerts = [a for a in alerts if a.priority == AlertPriority(priority)]
        if alert_type is not None:
            alerts = [a for a in alerts if a.type == AlertType(alert_type)]
        if source is not None:
            alerts = [a for a in alerts if a.source == source]
        if critical is not None:
            alerts = [a for a in alerts if a.critical == critical]

        return sorted(
            alerts,
            key=lambda a: (-a.priority.rank, a.created_at, self._sequence[a.id]),
        )

    def count_by_priority(self) -> Dict[AlertPriority, int]:
        counts = {p: 0 for p in AlertPriority}
        for alert in self._active.values():
            counts[alert.priority] += 1
        return counts

    def critical_count(self) -> int:
        return sum(1 for a in self._active.values() if a.critical)

    def get_history(self, limit: int = 100) -> List[SecurityAlert]:
        """Recently dismissed alerts, oldest first."""
        return list(self._history)[-limit:]

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "active_alerts": len(self._active),
            "critical_alerts": self.critical_count(),
        }

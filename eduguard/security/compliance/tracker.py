"""
EduGuard Compliance Tracker

Tracks per-user consent decisions against named data-protection frameworks
(FERPA, COPPA, GDPR, CCPA) and derives an aggregate compliance flag from the
frameworks applicable to the user's role.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

import structlog

from eduguard.core.config import ComplianceConfig
from eduguard.security.types import ComplianceStatus

logger = structlog.get_logger(__name__)


class ComplianceFramework(str, Enum):
    """Frameworks known to the platform."""

    FERPA = "ferpa"  # Family Educational Rights and Privacy Act
    COPPA = "coppa"  # Children's Online Privacy Protection Act
    GDPR = "gdpr"    # General Data Protection Regulation
    CCPA = "ccpa"    # California Consumer Privacy Act


@dataclass(frozen=True)
class ConsentRecord:
    """A single consent decision."""

    user_id: str
    framework: str
    granted: bool
    recorded_at: datetime


@dataclass(frozen=True)
class ComplianceChangedEvent:
    """Emitted after every consent change."""

    user_id: str
    framework: str
    granted: bool
    status: ComplianceStatus
    timestamp: datetime = field(default_factory=datetime.now)


def _framework_name(framework: str) -> str:
    if isinstance(framework, ComplianceFramework):
        return framework.value
    return str(framework).strip().lower()


class ComplianceTracker:
    """
    Per-user consent tracking.

    Consent values are sticky until explicitly changed. A role with no
    applicable frameworks is vacuously compliant.
    """

    def __init__(
        self,
        config: Optional[ComplianceConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or ComplianceConfig()
        self._clock = clock

        self._roles: Dict[str, str] = {}  # user_id -> role
        self._consents: Dict[str, Dict[str, bool]] = {}  # user_id -> {framework: granted}
        self._history: Dict[str, List[ConsentRecord]] = {}

        self._listeners: List[Callable[[ComplianceChangedEvent], None]] = []

    # =========================================================================
    # Users
    # =========================================================================

    def register_user(self, user_id: str, role: str) -> ComplianceStatus:
        """Set the role used to select applicable frameworks."""
        self._roles[user_id] = str(role).strip().lower()
        return self.get_status(user_id)

    def applicable_frameworks(self, user_id: str) -> tuple[str, ...]:
        role = self._roles.get(user_id, "")
        return tuple(self.config.role_frameworks.get(role, ()))

    # =========================================================================
    # Consent
    # =========================================================================

    def record_consent(
        self,
        user_id: str,
        framework: str,
        granted: bool,
    ) -> ComplianceStatus:
        """Record a consent decision and return the new status."""
        name = _framework_name(framework)
        granted = bool(granted)

        self._consents.setdefault(user_id, {})[name] = granted
        self._history.setdefault(user_id, []).append(ConsentRecord(
            user_id=user_id,
            framework=name,
            granted=granted,
            recorded_at=self._clock(),
        ))

        status = self.get_status(user_id)

        logger.info(
            "Consent recorded",
            user_id=user_id,
            framework=name,
            granted=granted,
            is_compliant=status.is_compliant,
        )

        self._emit(ComplianceChangedEvent(
            user_id=user_id,
            framework=name,
            granted=granted,
            status=status,
            timestamp=self._clock(),
        ))

        return status

    def get_status(self, user_id: str) -> ComplianceStatus:
        """Compliance status over recorded and applicable frameworks."""
        recorded = self._consents.get(user_id, {})
        applicable = self.applicable_frameworks(user_id)

        frameworks = dict(recorded)
        for name in applicable:
            frameworks.setdefault(name, False)

        return ComplianceStatus(
            is_compliant=all(frameworks[name] for name in applicable),
            frameworks=frameworks,
            applicable=applicable,
        )

    def get_consent_history(self, user_id: str) -> List[ConsentRecord]:
        """All consent decisions recorded for a user, oldest first."""
        return list(self._history.get(user_id, []))

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: Callable[[ComplianceChangedEvent], None]) -> None:
        """Subscribe to compliance-changed events."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[ComplianceChangedEvent], None]) -> bool:
        if listener in self._listeners:
            self._listeners.remove(listener)
            return True
        return False

    def _emit(self, event: ComplianceChangedEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Compliance listener error: {e}")

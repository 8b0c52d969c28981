"""
EduGuard Security Types

Type definitions shared across the security posture subsystem:
- Security status, clearance and threat levels
- Security alerts and priorities
- Session liveness records
- Compliance status
- Incidents and the inbound authenticated session
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


# =============================================================================
# Time Helpers
# =============================================================================


def is_aware(value: datetime) -> bool:
    """Whether a datetime carries a usable UTC offset."""
    return value.tzinfo is not None and value.utcoffset() is not None


# =============================================================================
# Status Types
# =============================================================================


class ClearanceLevel(str, Enum):
    """Coarse clearance band derived from the security score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CLEARANCE_RANK[self]


_CLEARANCE_RANK = {
    ClearanceLevel.LOW: 1,
    ClearanceLevel.MEDIUM: 2,
    ClearanceLevel.HIGH: 3,
}


class ThreatLevel(str, Enum):
    """Alert-driven severity indicator."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class SecurityStatus:
    """
    Security posture of the current session.

    Owned by the coordinator and recomputed on every mutation; callers only
    ever receive snapshots.
    """

    security_score: int
    mfa_enabled: bool
    clearance_level: ClearanceLevel
    risk_score: int
    threat_level: ThreatLevel
    computed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "security_score": self.security_score,
            "mfa_enabled": self.mfa_enabled,
            "clearance_level": self.clearance_level.value,
            "risk_score": self.risk_score,
            "threat_level": self.threat_level.value,
            "computed_at": self.computed_at.isoformat(),
        }


def unavailable_status(mfa_enabled: bool = False) -> SecurityStatus:
    """Status reported when no score can be computed."""
    return SecurityStatus(
        security_score=0,
        mfa_enabled=mfa_enabled,
        clearance_level=ClearanceLevel.LOW,
        risk_score=100,
        threat_level=ThreatLevel.LOW,
    )


# =============================================================================
# Alert Types
# =============================================================================


class AlertType(str, Enum):
    """Presentation type of an alert."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AlertPriority(str, Enum):
    """Alert priority used for ordering and scoring."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    AlertPriority.LOW: 1,
    AlertPriority.MEDIUM: 2,
    AlertPriority.HIGH: 3,
}


@dataclass(frozen=True)
class SecurityAlert:
    """An active security alert."""

    id: str = ""
    type: AlertType = AlertType.INFO
    title: str = ""
    message: str = ""
    priority: AlertPriority = AlertPriority.LOW
    created_at: Optional[datetime] = None

    # A critical alert forces the threat level to critical
    critical: bool = False

    source: str = "coordinator"
    action: Optional[str] = None  # Suggested UI action label
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "priority": self.priority.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "critical": self.critical,
            "source": self.source,
            "action": self.action,
        }


# =============================================================================
# Session Types
# =============================================================================


class SessionState(str, Enum):
    """Liveness states of a monitored session."""

    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionSecurity:
    """Liveness record of a single session."""

    is_active: bool
    started_at: datetime
    expires_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return max(0.0, (now - self.started_at).total_seconds())

    def remaining_seconds(self, now: datetime) -> float:
        return (self.expires_at - now).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_active": self.is_active,
            "started_at": self.started_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class AuthSession:
    """
    Verified identity handed over by the authentication layer.

    Tokens are trusted as-is; the coordinator never re-verifies them.
    """

    uid: str
    role: str
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    token_expires_at: Optional[datetime] = None
    mfa_enabled: bool = False
    email: Optional[str] = None
    id_token: Optional[str] = field(default=None, repr=False)
    browser_signals: Mapping[str, Any] = field(default_factory=dict, repr=False)


# =============================================================================
# Compliance Types
# =============================================================================


@dataclass(frozen=True)
class ComplianceStatus:
    """Consent state of a user against the frameworks tracked for them."""

    is_compliant: bool
    frameworks: Mapping[str, bool] = field(default_factory=dict)
    applicable: Tuple[str, ...] = ()

    @property
    def missing(self) -> Tuple[str, ...]:
        """Applicable frameworks without granted consent."""
        return tuple(f for f in self.applicable if not self.frameworks.get(f, False))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_compliant": self.is_compliant,
            "frameworks": dict(self.frameworks),
            "applicable": list(self.applicable),
        }


# =============================================================================
# Incident Types
# =============================================================================


class IncidentSeverity(str, Enum):
    """Severity of a reported incident."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Time allowed before an incident must be responded to
INCIDENT_RESPONSE_TIME = {
    IncidentSeverity.CRITICAL: timedelta(minutes=15),
    IncidentSeverity.HIGH: timedelta(hours=1),
    IncidentSeverity.MEDIUM: timedelta(hours=4),
    IncidentSeverity.LOW: timedelta(hours=24),
}


@dataclass
class Incident:
    """A security incident reported by a user or by the UI."""

    title: str
    description: str = ""
    severity: IncidentSeverity = IncidentSeverity.MEDIUM
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    reported_by: Optional[str] = None
    reported_at: Optional[datetime] = None
    respond_by: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "incident_id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "reported_by": self.reported_by,
            "reported_at": self.reported_at.isoformat() if self.reported_at else None,
            "respond_by": self.respond_by.isoformat() if self.respond_by else None,
            "metadata": self.metadata,
        }


# =============================================================================
# Snapshot
# =============================================================================


@dataclass(frozen=True)
class SecuritySnapshot:
    """Consistent post-mutation view published to subscribers."""

    status: SecurityStatus
    alerts: Tuple[SecurityAlert, ...]
    compliance: Optional[ComplianceStatus]
    session: Optional[SessionSecurity]
    session_state: Optional[SessionState]
    reason: str

    @property
    def has_active_alerts(self) -> bool:
        return len(self.alerts) > 0

    @property
    def needs_attention(self) -> bool:
        return any(a.priority == AlertPriority.HIGH for a in self.alerts)

    @property
    def is_high_risk(self) -> bool:
        return self.status.threat_level in (ThreatLevel.HIGH, ThreatLevel.CRITICAL)

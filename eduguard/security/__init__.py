"""
EduGuard Security Posture System

Client-side security posture for the education platform:
- Device fingerprinting and risk scoring
- Consent tracking against data-protection frameworks
- Session liveness monitoring
- Prioritized security alerts
- MFA enrollment (TOTP, SMS, Email)
- Best-effort backend persistence of events and incidents
"""

from eduguard.security.types import (
    # Status
    ClearanceLevel,
    ThreatLevel,
    SecurityStatus,
    unavailable_status,
    # Alerts
    AlertType,
    AlertPriority,
    SecurityAlert,
    # Session
    SessionState,
    SessionSecurity,
    AuthSession,
    # Compliance
    ComplianceStatus,
    # Incidents
    IncidentSeverity,
    Incident,
    # Snapshot
    SecuritySnapshot,
)
from eduguard.security.errors import (
    SecurityError,
    InvalidAlert,
    InvalidRenewal,
    MfaLockout,
    BackendUnavailable,
)
from eduguard.security.events import (
    LoginFailureEvent,
    LoginSuccessEvent,
    MfaEnrolledEvent,
    MfaDisabledEvent,
    SuspiciousLocationEvent,
    SessionActivityEvent,
    UnknownEvent,
    SecurityEvent,
    parse_event,
)
from eduguard.security.adaptive import (
    DeviceFingerprint,
    DeviceFingerprintGenerator,
    RiskScorer,
    RiskSignals,
    RiskResult,
)
from eduguard.security.alerting import AlertManager
from eduguard.security.compliance import ComplianceTracker, ComplianceFramework
from eduguard.security.authentication import (
    MfaEnrollmentManager,
    MfaFactorType,
    EnrollmentState,
    CodeSender,
    SessionSecurityMonitor,
)
from eduguard.security.backend import SecurityBackendClient, BackendDispatcher
from eduguard.security.coordinator import SecurityCoordinator

__all__ = [
    # Types
    "ClearanceLevel",
    "ThreatLevel",
    "SecurityStatus",
    "unavailable_status",
    "AlertType",
    "AlertPriority",
    "SecurityAlert",
    "SessionState",
    "SessionSecurity",
    "AuthSession",
    "ComplianceStatus",
    "IncidentSeverity",
    "Incident",
    "SecuritySnapshot",
    # Errors
    "SecurityError",
    "InvalidAlert",
    "InvalidRenewal",
    "MfaLockout",
    "BackendUnavailable",
    # Events
    "LoginFailureEvent",
    "LoginSuccessEvent",
    "MfaEnrolledEvent",
    "MfaDisabledEvent",
    "SuspiciousLocationEvent",
    "SessionActivityEvent",
    "UnknownEvent",
    "SecurityEvent",
    "parse_event",
    # Components
    "DeviceFingerprint",
    "DeviceFingerprintGenerator",
    "RiskScorer",
    "RiskSignals",
    "RiskResult",
    "AlertManager",
    "ComplianceTracker",
    "ComplianceFramework",
    "MfaEnrollmentManager",
    "MfaFactorType",
    "EnrollmentState",
    "CodeSender",
    "SessionSecurityMonitor",
    "SecurityBackendClient",
    "BackendDispatcher",
    # Coordinator
    "SecurityCoordinator",
]

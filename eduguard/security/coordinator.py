"""
EduGuard Security Coordinator

Owns the security posture of the current session and wires together
fingerprinting, scoring, compliance, session liveness, alerting and MFA.
Every mutation recomputes the status synchronously and publishes a
snapshot to subscribers before control returns to the caller.
"""

from __future__ import annotations

from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Set,
    Union,
)

import structlog

from eduguard.core.config import EduGuardConfig, get_config
from eduguard.security.adaptive import (
    DeviceFingerprint,
    DeviceFingerprintGenerator,
    RiskResult,
    RiskScorer,
    RiskSignals,
)
from eduguard.security.alerting import AlertManager
from eduguard.security.authentication import (
    CodeSender,
    EnrollmentState,
    LogCodeSender,
    MfaEnrollment,
    MfaEnrollmentManager,
    SessionSecurityMonitor,
    align_to_clock,
)
from eduguard.security.backend import (
    EVENT,
    INCIDENT,
    BackendDispatcher,
    SecurityBackendClient,
)
from eduguard.security.compliance import ComplianceChangedEvent, ComplianceTracker
from eduguard.security.errors import BackendUnavailable
from eduguard.security.events import (
    LoginFailureEvent,
    LoginSuccessEvent,
    MfaDisabledEvent,
    MfaEnrolledEvent,
    SecurityEvent,
    SessionActivityEvent,
    SuspiciousLocationEvent,
    UnknownEvent,
    event_kind,
    event_payload,
    parse_event,
)
from eduguard.security.types import (
    INCIDENT_RESPONSE_TIME,
    AlertPriority,
    AlertType,
    AuthSession,
    ClearanceLevel,
    ComplianceStatus,
    Incident,
    IncidentSeverity,
    SecurityAlert,
    SecuritySnapshot,
    SecurityStatus,
    SessionSecurity,
    SessionState,
    ThreatLevel,
    unavailable_status,
)

logger = structlog.get_logger(__name__)

_EVENT_TYPES = (
    LoginFailureEvent,
    LoginSuccessEvent,
    MfaEnrolledEvent,
    MfaDisabledEvent,
    SuspiciousLocationEvent,
    SessionActivityEvent,
    UnknownEvent,
)


# =============================================================================
# Well-known Alerts
# =============================================================================

# Posture advisories, kept in sync with their conditions on every recompute
ADVISORIES: Dict[str, SecurityAlert] = {
    "mfa-required": SecurityAlert(
        id="mfa-required",
        type=AlertType.WARNING,
        title="MFA Required",
        message="Multi-factor authentication is required for your role.",
        priority=AlertPriority.LOW,
        source="advisory",
        action="Enable MFA",
    ),
    "privacy-compliance": SecurityAlert(
        id="privacy-compliance",
        type=AlertType.INFO,
        title="Privacy Consent Required",
        message="Please review and accept the privacy policies that apply to you.",
        priority=AlertPriority.LOW,
        source="advisory",
        action="Review Privacy",
    ),
    "session-expiring": SecurityAlert(
        id="session-expiring",
        type=AlertType.WARNING,
        title="Session Expiring",
        message="Your session will expire soon.",
        priority=AlertPriority.LOW,
        source="advisory",
        action="Extend Session",
    ),
    "high-risk": SecurityAlert(
        id="high-risk",
        type=AlertType.ERROR,
        title="High Risk Activity Detected",
        message="Your account shows signs of suspicious activity.",
        priority=AlertPriority.LOW,
        source="advisory",
        action="Review Security Settings",
    ),
}

BACKEND_UNAVAILABLE_ALERT = SecurityAlert(
    id="backend-unavailable",
    type=AlertType.INFO,
    title="Security events may not be persisted",
    message="The security service could not be reached. Events are kept locally.",
    priority=AlertPriority.LOW,
    source="backend",
)

# Ranks accepted by has_security_clearance; critical is above any reachable clearance
_REQUIRED_CLEARANCE_RANK = {"low": 1, "medium": 2, "high": 3, "critical": 4}

LOGIN_FAILURES_ALERT_ID = "login-failures"
MFA_LOCKED_ALERT_ID = "mfa-locked"


class SecurityCoordinator:
    """
    Security posture coordinator for one client session at a time.

    Features:
    - Session lifecycle with an owned, cancelable tick task
    - Synchronous recomputation after every mutation
    - Snapshot publication to subscribers
    - Structured security events and incident reporting
    - Best-effort backend persistence that never fails local operations
    - Known-device tracking and posture advisories
    - Per-user MFA enrollment
    """

    def __init__(
        self,
        config: Optional[EduGuardConfig] = None,
        backend: Optional[SecurityBackendClient] = None,
        fingerprint_generator: Optional[DeviceFingerprintGenerator] = None,
        scorer: Optional[RiskScorer] = None,
        compliance: Optional[ComplianceTracker] = None,
        alerts: Optional[AlertManager] = None,
        code_sender: Optional[CodeSender] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or get_config()
        self._clock = clock
        self._logger = logger.bind(component="security_coordinator")

        # Components
        self.fingerprints = fingerprint_generator or DeviceFingerprintGenerator(
            self.config.fingerprint_key.get_secret_value().encode(),
            clock=clock,
        )
        self.scorer = scorer or RiskScorer(self.config.scoring)
        self.compliance = compliance or ComplianceTracker(self.config.compliance, clock=clock)
        self.alerts = alerts or AlertManager(clock=clock)
        self.code_sender = code_sender or LogCodeSender()

        if backend is None and self.config.backend.base_url:
            backend = SecurityBackendClient.from_config(self.config.backend)
        self._backend = backend
        self.dispatcher = BackendDispatcher(
            backend,
            max_pending=self.config.backend.max_pending,
            on_failure=self._on_backend_failure,
        )

        # Current session
        self._session: Optional[AuthSession] = None
        self._monitor: Optional[SessionSecurityMonitor] = None
        self._fingerprint: Optional[DeviceFingerprint] = None
        self._mfa_enabled = False
        self._status: SecurityStatus = unavailable_status()
        self._last_result: Optional[RiskResult] = None

        self._events: Deque[SecurityEvent] = deque(
            maxlen=self.config.events.max_event_history
        )
        self._failed_logins: Deque[datetime] = deque()
        self._suppressed_advisories: Set[str] = set()
        self._incidents: Dict[str, Incident] = {}

        # Kept across sessions
        self._known_devices: Dict[str, Set[str]] = {}
        self._mfa_managers: Dict[str, MfaEnrollmentManager] = {}

        self._subscribers: List[Callable[[SecuritySnapshot], None]] = []

        self.compliance.add_listener(self._on_compliance_changed)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self, session: AuthSession) -> SecurityStatus:
        """
        Start monitoring a session.

        A second call for the same session id returns the current status
        without reinitializing. A different session id replaces the current
        session.
        """
        if self._session is not None:
            if self._session.session_id == session.session_id:
                return self._status
            await self.teardown()

        now = self._clock()
        if session.token_expires_at is not None:
            expires_at = align_to_clock(session.token_expires_at, now)
        else:
            expires_at = now + timedelta(minutes=self.config.session.default_session_minutes)

        self._session = session
        try:
            if self._backend is not None:
                self._backend.set_token(session.id_token)

            self._fingerprint = self.fingerprints.generate(session.browser_signals)
            self._check_device(session.uid, self._fingerprint)

            self.compliance.register_user(session.uid, session.role)

            self._monitor = SessionSecurityMonitor(
                SessionSecurity(is_active=True, started_at=now, expires_at=expires_at),
                self.config.session,
                clock=self._clock,
            )
            self._monitor.tick(now)

            self._mfa_enabled = session.mfa_enabled or self.mfa.mfa_enabled

            self._recompute("initialize")

            await self._monitor.start(self._on_tick)
            self.dispatcher.flush()

            self._record_event(SessionActivityEvent(activity="session_started"))
        except Exception:
            # Roll back to the unavailable state
            await self.teardown()
            raise

        self._logger.info(
            "Security coordinator initialized",
            user_id=session.uid,
            role=session.role,
            session_id=session.session_id,
            security_score=self._status.security_score,
            clearance=self._status.clearance_level.value,
        )

        return self._status

    async def teardown(self) -> None:
        """Stop the session tick and reset session state."""
        if self._monitor is not None:
            await self._monitor.stop()

        await self.dispatcher.cancel()

        previous = self._session
        self._session = None
        self._monitor = None
        self._fingerprint = None
        self._mfa_enabled = False
        self._last_result = None
        self._status = unavailable_status()

        self.alerts.clear()
        self._events.clear()
        self._failed_logins.clear()
        self._suppressed_advisories.clear()
        self._incidents.clear()

        if previous is not None:
            self._logger.info(
                "Security coordinator torn down",
                user_id=previous.uid,
                session_id=previous.session_id,
            )
            self._publish("teardown", None)

    async def aclose(self) -> None:
        """Tear down and release the backend client."""
        await self.teardown()
        await self.dispatcher.close()

    @property
    def is_initialized(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    @property
    def session_state(self) -> Optional[SessionState]:
        return self._monitor.state if self._monitor else None

    @property
    def monitor(self) -> Optional[SessionSecurityMonitor]:
        return self._monitor

    @property
    def fingerprint(self) -> Optional[DeviceFingerprint]:
        return self._fingerprint

    @property
    def last_result(self) -> Optional[RiskResult]:
        """Factor breakdown behind the current status."""
        return self._last_result

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> SecurityStatus:
        """Current cached status."""
        return self._status

    def refresh_security_status(self) -> SecurityStatus:
        """Advance the session state and recompute."""
        if self._monitor is not None:
            self._monitor.tick()
        return self._recompute("refresh")

    def has_security_clearance(self, required: Union[ClearanceLevel, str]) -> bool:
        """
        Whether the current clearance is at least the required level.

        "critical" is accepted and never granted. Unrecognized levels are
        treated as "low".
        """
        name = getattr(required, "value", required)
        rank = _REQUIRED_CLEARANCE_RANK.get(name.lower()) if isinstance(name, str) else None
        if rank is None:
            self._logger.warning("Unknown clearance level requested", required=str(required))
            rank = _REQUIRED_CLEARANCE_RANK["low"]
        return self._status.clearance_level.rank >= rank

    def get_security_recommendations(self) -> Iterator[str]:
        """Recommendations for the current posture, most urgent first."""
        return iter(self._build_recommendations())

    def _build_recommendations(self) -> List[str]:
        if self._session is None:
            return []

        recommendations: List[str] = []

        if self._status.threat_level == ThreatLevel.CRITICAL:
            recommendations.append(
                "Contact your security administrator about the critical security incident"
            )

        high_alerts = self.alerts.count_by_priority()[AlertPriority.HIGH]
        if high_alerts:
            recommendations.append(
                f"Review {high_alerts} high-priority security alert(s)"
            )

        if not self._mfa_enabled:
            recommendations.append(
                "Enable multi-factor authentication to strengthen account security"
            )

        compliance = self.compliance.get_status(self._session.uid)
        for framework in compliance.missing:
            recommendations.append(f"Review and accept the {framework.upper()} privacy consent")

        state = self.session_state
        if state == SessionState.EXPIRING_SOON:
            recommendations.append("Renew your session before it expires")
        elif state == SessionState.EXPIRED:
            recommendations.append("Sign in again to start a new session")

        if self._fingerprint is not None and self._fingerprint.confidence < 50:
            recommendations.append(
                "Use a recognized browser with standard settings to improve device confidence"
            )

        return recommendations

    # =========================================================================
    # Alerts
    # =========================================================================

    def raise_alert(self, alert: Union[SecurityAlert, Mapping[str, Any]]) -> str:
        """Raise an alert and recompute."""
        alert_id = self.alerts.raise_alert(alert)
        self._recompute("alert_raised")
        return alert_id

    def dismiss_alert(self, alert_id: str) -> bool:
        """Dismiss an alert. Returns False if it was not open."""
        removed = self.alerts.dismiss(alert_id)
        if not removed:
            return False

        # Advisories stay dismissed until their condition clears
        if alert_id in ADVISORIES:
            self._suppressed_advisories.add(alert_id)

        self._recompute("alert_dismissed")
        return True

    def get_alerts(self) -> List[SecurityAlert]:
        return self.alerts.list_alerts()

    # =========================================================================
    # Events
    # =========================================================================

    def log_security_event(self, event: Union[SecurityEvent, Mapping[str, Any]]) -> None:
        """
        Record a security event.

        Known kinds may change MFA state or raise alerts. Unknown kinds are
        recorded and forwarded but never affect scoring.
        """
        if isinstance(event, Mapping):
            event = parse_event(event)
        elif not isinstance(event, _EVENT_TYPES):
            raise TypeError(f"Unsupported security event: {type(event).__name__}")

        if self._record_event(event):
            self._recompute(f"event:{event_kind(event)}")

    def _record_event(self, event: SecurityEvent) -> bool:
        now = self._clock()
        if event.timestamp is None:
            event = replace(event, timestamp=now)

        self._events.append(event)
        changed = self._apply_event(event)

        self.dispatcher.submit(EVENT, self._event_record(event))

        self._logger.info(
            "Security event logged",
            event_type=event_kind(event),
            changed=changed,
        )
        return changed

    def _apply_event(self, event: SecurityEvent) -> bool:
        """Apply an event to local state. Returns True if scoring inputs changed."""
        if isinstance(event, LoginFailureEvent):
            return self._track_login_failure(self._clock())

        if isinstance(event, LoginSuccessEvent):
            self._failed_logins.clear()
            return False

        if isinstance(event, MfaEnrolledEvent):
            if self._mfa_enabled:
                return False
            self._mfa_enabled = True
            return True

        if isinstance(event, MfaDisabledEvent):
            # Factors active in this client still count
            enabled = self._session is not None and self.mfa.mfa_enabled
            if enabled == self._mfa_enabled:
                return False
            self._mfa_enabled = enabled
            return True

        if isinstance(event, SuspiciousLocationEvent):
            where = event.location or event.ip_address or "an unknown location"
            self.alerts.raise_alert(SecurityAlert(
                type=AlertType.WARNING,
                title="Suspicious Location",
                message=f"Sign-in activity detected from {where}.",
                priority=AlertPriority.MEDIUM,
                source="event",
                action="Review Activity",
                metadata={"location": event.location, "ip_address": event.ip_address},
            ))
            return True

        return False

    def _track_login_failure(self, at: datetime) -> bool:
        # Windowed on arrival time; caller-supplied timestamps are not trusted
        window = timedelta(seconds=self.config.events.failed_login_window_seconds)
        self._failed_logins.append(at)
        while self._failed_logins and at - self._failed_logins[0] > window:
            self._failed_logins.popleft()

        if len(self._failed_logins) < self.config.events.failed_login_threshold:
            return False
        if LOGIN_FAILURES_ALERT_ID in self.alerts:
            return False

        self.alerts.raise_alert(SecurityAlert(
            id=LOGIN_FAILURES_ALERT_ID,
            type=AlertType.ERROR,
            title="Repeated Login Failures",
            message=f"{len(self._failed_logins)} failed sign-in attempts in a short period.",
            priority=AlertPriority.HIGH,
            source="event",
            action="Review Activity",
        ))
        return True

    def _event_record(self, event: SecurityEvent) -> Dict[str, Any]:
        return {
            "type": event_kind(event),
            "data": event_payload(event),
            "timestamp": event.timestamp.isoformat() if event.timestamp else None,
            "user_id": self._session.uid if self._session else None,
            "session_id": self._session.session_id if self._session else None,
        }

    def get_events(self, limit: int = 100) -> List[SecurityEvent]:
        """Recently recorded events, oldest first."""
        return list(self._events)[-limit:]

    # =========================================================================
    # Incidents
    # =========================================================================

    def report_incident(self, incident: Union[Incident, Mapping[str, Any]]) -> str:
        """
        Report a security incident.

        Always raises a high-priority alert; a critical incident also forces
        the threat level to critical. Persistence is best-effort.
        """
        if isinstance(incident, Mapping):
            incident = Incident(
                title=str(incident.get("title") or ""),
                description=str(incident.get("description") or ""),
                severity=IncidentSeverity(incident.get("severity", IncidentSeverity.MEDIUM)),
                metadata=dict(incident.get("metadata") or {}),
            )
        if not incident.title.strip():
            raise ValueError("Incident title is required")

        severity = IncidentSeverity(incident.severity)
        reported_at = incident.reported_at or self._clock()
        incident = replace(
            incident,
            severity=severity,
            reported_by=incident.reported_by or (self._session.uid if self._session else None),
            reported_at=reported_at,
            respond_by=incident.respond_by or reported_at + INCIDENT_RESPONSE_TIME[severity],
        )
        self._incidents[incident.id] = incident

        self.alerts.raise_alert(SecurityAlert(
            id=f"incident-{incident.id}",
            type=AlertType.ERROR,
            title="Security Incident Reported",
            message=incident.title,
            priority=AlertPriority.HIGH,
            critical=severity == IncidentSeverity.CRITICAL,
            source="incident",
            action="View Incident",
            metadata={"incident_id": incident.id, "severity": severity.value},
        ))

        self.dispatcher.submit(INCIDENT, incident.to_dict())

        self._logger.warning(
            "Security incident reported",
            incident_id=incident.id,
            severity=severity.value,
        )

        self._recompute("incident_reported")
        return incident.id

    def get_incident(self, incident_id: str) -> Optional[Incident]:
        return self._incidents.get(incident_id)

    # =========================================================================
    # Session
    # =========================================================================

    def renew_session(self, new_expiry: datetime) -> SessionSecurity:
        """Extend the session, starting a fresh one if it has expired."""
        if self._monitor is None:
            raise RuntimeError("No active session")

        session = self._monitor.renew(new_expiry, self._clock())
        self._recompute("session_renewed")
        return session

    def _on_tick(self, now: datetime, changed: bool) -> None:
        if self._session is None:
            return
        self.dispatcher.flush()
        self._recompute("session_transition" if changed else "tick")

    # =========================================================================
    # Compliance
    # =========================================================================

    def record_consent(self, framework: str, granted: bool) -> ComplianceStatus:
        """Record consent for the current user."""
        if self._session is None:
            raise RuntimeError("No active session")
        return self.compliance.record_consent(self._session.uid, framework, granted)

    def _on_compliance_changed(self, event: ComplianceChangedEvent) -> None:
        if self._session is not None and event.user_id == self._session.uid:
            self._recompute("compliance_changed")

    # =========================================================================
    # MFA
    # =========================================================================

    @property
    def mfa(self) -> MfaEnrollmentManager:
        """MFA enrollment for the current user."""
        if self._session is None:
            raise RuntimeError("No active session")

        uid = self._session.uid
        manager = self._mfa_managers.get(uid)
        if manager is None:
            manager = MfaEnrollmentManager(
                uid,
                config=self.config.mfa,
                code_sender=self.code_sender,
                account_name=self._session.email or uid,
                clock=self._clock,
            )
            manager.add_listener(
                lambda enrollment, uid=uid: self._on_mfa_changed(uid, enrollment)
            )
            self._mfa_managers[uid] = manager
        return manager

    def _on_mfa_changed(self, uid: str, enrollment: MfaEnrollment) -> None:
        if self._session is None or self._session.uid != uid:
            return

        if enrollment.state == EnrollmentState.LOCKED:
            self.alerts.raise_alert(SecurityAlert(
                id=MFA_LOCKED_ALERT_ID,
                type=AlertType.WARNING,
                title="MFA Enrollment Locked",
                message=(
                    f"Too many incorrect {enrollment.factor_type.value} codes. "
                    "Restart MFA setup to try again."
                ),
                priority=AlertPriority.MEDIUM,
                source="mfa",
                action="Restart MFA Setup",
            ))
            self._recompute("mfa_locked")
            return

        if enrollment.state == EnrollmentState.ACTIVE:
            self.alerts.dismiss(MFA_LOCKED_ALERT_ID)
            self._record_event(MfaEnrolledEvent(factor=enrollment.factor_type.value))
        else:
            self._record_event(MfaDisabledEvent(factor=enrollment.factor_type.value))

        self._recompute("mfa_changed")

    # =========================================================================
    # Backend
    # =========================================================================

    def _on_backend_failure(self, error: BackendUnavailable) -> None:
        self._logger.warning(
            "Security persistence unavailable",
            endpoint=error.endpoint,
        )
        if BACKEND_UNAVAILABLE_ALERT.id in self.alerts:
            return
        self.alerts.raise_alert(BACKEND_UNAVAILABLE_ALERT)
        self._recompute("backend_unavailable")

    # =========================================================================
    # Devices
    # =========================================================================

    def _check_device(self, uid: str, fingerprint: DeviceFingerprint) -> None:
        known = self._known_devices.setdefault(uid, set())
        if known and fingerprint.fingerprint not in known:
            self.alerts.raise_alert(SecurityAlert(
                id="new-device",
                type=AlertType.INFO,
                title="New Device Detected",
                message="You signed in from a device we have not seen before.",
                priority=AlertPriority.LOW,
                source="device",
            ))
        known.add(fingerprint.fingerprint)

        if fingerprint.is_suspicious:
            self.alerts.raise_alert(SecurityAlert(
                id="automation-detected",
                type=AlertType.WARNING,
                title="Automated Browser Detected",
                message="This session shows signs of browser automation.",
                priority=AlertPriority.MEDIUM,
                source="device",
                metadata={"indicators": list(fingerprint.risk_indicators)},
            ))

    # =========================================================================
    # Recompute / Publish
    # =========================================================================

    def _recompute(self, reason: str) -> SecurityStatus:
        if self._session is None:
            return self._status

        now = self._clock()
        compliance = self.compliance.get_status(self._session.uid)

        counts = self.alerts.count_by_priority()
        signals = RiskSignals(
            fingerprint_confidence=self._fingerprint.confidence if self._fingerprint else 0,
            mfa_enabled=self._mfa_enabled,
            session_age_seconds=self._monitor.session.age_seconds(now) if self._monitor else 0.0,
            is_compliant=compliance.is_compliant,
            open_alert_count=len(self.alerts),
            medium_priority_alert_count=counts[AlertPriority.MEDIUM],
            high_priority_alert_count=counts[AlertPriority.HIGH],
            critical_alert_count=self.alerts.critical_count(),
        )

        result = self.scorer.compute_score(signals)
        self._last_result = result
        self._status = SecurityStatus(
            security_score=result.security_score,
            mfa_enabled=self._mfa_enabled,
            clearance_level=result.clearance_level,
            risk_score=result.risk_score,
            threat_level=result.threat_level,
            computed_at=now,
        )

        # Advisories are low priority and carry no penalty
        self._sync_advisories(compliance, result)

        self._logger.debug(
            "Security status recomputed",
            reason=reason,
            security_score=result.security_score,
            threat_level=result.threat_level.value,
        )

        self._publish(reason, compliance)
        return self._status

    def _sync_advisories(self, compliance: ComplianceStatus, result: RiskResult) -> None:
        conditions = {
            "mfa-required": (
                self._session.role.lower() in self.config.mfa.required_roles
                and not self._mfa_enabled
            ),
            "privacy-compliance": not compliance.is_compliant,
            "session-expiring": self.session_state == SessionState.EXPIRING_SOON,
            "high-risk": result.risk_score > self.config.scoring.critical_risk_threshold,
        }

        for alert_id, active in conditions.items():
            if not active:
                self._suppressed_advisories.discard(alert_id)
                self.alerts.dismiss(alert_id)
            elif alert_id not in self._suppressed_advisories and alert_id not in self.alerts:
                self.alerts.raise_alert(ADVISORIES[alert_id])

    def subscribe(self, callback: Callable[[SecuritySnapshot], None]) -> Callable[[], None]:
        """Receive a snapshot after every recompute. Returns an unsubscribe callable."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, reason: str, compliance: Optional[ComplianceStatus]) -> None:
        snapshot = SecuritySnapshot(
            status=self._status,
            alerts=tuple(self.alerts.list_alerts()),
            compliance=compliance,
            session=self._monitor.session if self._monitor else None,
            session_state=self.session_state,
            reason=reason,
        )

        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                self._logger.error(f"Security subscriber error: {e}")

    # =========================================================================
    # Dashboard
    # =========================================================================

    def get_security_dashboard(self, event_limit: int = 20) -> Dict[str, Any]:
        """JSON-ready overview of the current posture."""
        session = None
        compliance = None
        mfa: Dict[str, Any] = {"enabled": self._mfa_enabled, "active_factors": []}

        if self._session is not None:
            session = {
                "session_id": self._session.session_id,
                "user_id": self._session.uid,
                "role": self._session.role,
                "state": self.session_state.value if self.session_state else None,
                **(self._monitor.session.to_dict() if self._monitor else {}),
            }
            compliance = self.compliance.get_status(self._session.uid).to_dict()
            mfa["active_factors"] = [f.value for f in self.mfa.active_factors]

        return {
            "status": self._status.to_dict(),
            "session": session,
            "compliance": compliance,
            "mfa": mfa,
            "device": self._fingerprint.to_dict() if self._fingerprint else None,
            "alerts": [a.to_dict() for a in self.alerts.list_alerts()],
            "recent_events": [
                {
                    "type": event_kind(e),
                    "timestamp": e.timestamp.isoformat() if e.timestamp else None,
                    "data": event_payload(e),
                }
                for e in self.get_events(event_limit)
            ],
            "incidents": [i.to_dict() for i in self._incidents.values()],
            "score_factors": [
                {"name": f.name, "category": f.category.value, "points": round(f.points, 2)}
                for f in (self._last_result.factors if self._last_result else ())
            ],
            "recommendations": self._build_recommendations(),
            "backend": self.dispatcher.get_stats(),
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            "initialized": self.is_initialized,
            "security_score": self._status.security_score,
            "events_recorded": len(self._events),
            "incidents_reported": len(self._incidents),
            "alerts": self.alerts.get_stats(),
            "backend": self.dispatcher.get_stats(),
        }

"""
EduGuard Security Component Tests

Tests for fingerprinting, scoring, alerting, session monitoring, MFA
enrollment, compliance tracking and event parsing.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

import pyotp

from eduguard.core.config import MfaConfig, ScoringConfig, SessionConfig
from eduguard.security import (
    AlertManager,
    AlertPriority,
    AlertType,
    ClearanceLevel,
    ComplianceTracker,
    DeviceFingerprintGenerator,
    EnrollmentState,
    InvalidAlert,
    InvalidRenewal,
    LoginFailureEvent,
    MfaEnrollmentManager,
    MfaFactorType,
    MfaLockout,
    RiskScorer,
    RiskSignals,
    SecurityAlert,
    SessionSecurity,
    SessionSecurityMonitor,
    SessionState,
    ThreatLevel,
    UnknownEvent,
    parse_event,
)
from eduguard.security.adaptive.fingerprint import FingerprintComponent
from eduguard.security.authentication.session import align_to_clock
from eduguard.security.events import event_payload

WRONG_CODE = "12345"  # Never matches a six digit code


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def generator(clock):
    """Create a fingerprint generator with a fixed key."""
    return DeviceFingerprintGenerator(b"test-fingerprint-key", clock=clock)


@pytest.fixture
def scorer():
    return RiskScorer(ScoringConfig())


@pytest.fixture
def alerts(clock):
    return AlertManager(clock=clock)


@pytest.fixture
def tracker(clock):
    return ComplianceTracker(clock=clock)


@pytest.fixture
def code_sender():
    """Capturing code sender."""
    return AsyncMock()


@pytest.fixture
def mfa(clock, code_sender):
    return MfaEnrollmentManager(
        "user_123",
        config=MfaConfig(),
        code_sender=code_sender,
        account_name="student@school.edu",
        clock=clock,
    )


# ============================================================================
# Device Fingerprint Tests
# ============================================================================


class TestDeviceFingerprint:
    """Tests for device fingerprint generation."""

    def test_deterministic_for_identical_signals(self, generator, basic_signals):
        """Test identical signal bags produce the same fingerprint."""
        first = generator.generate(basic_signals)
        second = generator.generate(dict(basic_signals))

        assert first.fingerprint == second.fingerprint
        assert first.confidence == second.confidence

    def test_different_key_changes_fingerprint(self, generator, basic_signals, clock):
        """Test fingerprints are keyed."""
        other = DeviceFingerprintGenerator(b"another-key", clock=clock)

        assert generator.generate(basic_signals).fingerprint != other.generate(basic_signals).fingerprint

    def test_basic_signals_confidence(self, generator, basic_signals):
        """Test eight low-entropy signals earn 40 points."""
        fingerprint = generator.generate(basic_signals)

        assert fingerprint.confidence == 40
        assert len(fingerprint.components) == 8

    def test_confidence_monotonic(self, generator):
        """Test adding signals never lowers confidence."""
        signals = {}
        previous = generator.generate(signals).confidence

        for component in FingerprintComponent:
            signals[component.value] = f"value-{component.value}"
            confidence = generator.generate(signals).confidence
            assert confidence >= previous
            previous = confidence

        assert previous == 100

    @pytest.mark.parametrize("signals", [None, "garbage", 42, ["a", "b"]])
    def test_malformed_signal_bag(self, generator, signals):
        """Test non-mapping input degrades to zero confidence."""
        fingerprint = generator.generate(signals)

        assert fingerprint.confidence == 0
        assert fingerprint.components == ()

    def test_empty_and_unknown_signals_ignored(self, generator):
        """Test empty values and unknown keys do not count."""
        fingerprint = generator.generate({
            "user_agent": "   ",
            "fonts": [],
            "plugins": None,
            "favourite_colour": "blue",
            "timezone": "Europe/London",
        })

        assert fingerprint.components == ("timezone",)
        assert fingerprint.confidence == 15

    def test_ip_address_anonymized(self, generator, basic_signals):
        """Test hosts in the same /24 share a fingerprint."""
        a = generator.generate({**basic_signals, "ip_address": "192.168.1.77"})
        b = generator.generate({**basic_signals, "ip_address": "192.168.1.99"})
        c = generator.generate({**basic_signals, "ip_address": "10.0.0.1"})

        assert a.fingerprint == b.fingerprint
        assert a.fingerprint != c.fingerprint

    def test_automation_indicators(self, generator):
        """Test headless and webdriver sessions are flagged."""
        fingerprint = generator.generate({
            "user_agent": "Mozilla/5.0 HeadlessChrome/126.0",
            "webdriver": True,
        })

        assert fingerprint.is_suspicious
        assert "headless_browser" in fingerprint.risk_indicators
        assert "webdriver_detected" in fingerprint.risk_indicators

    def test_regular_browser_not_suspicious(self, generator, basic_signals):
        assert not generator.generate(basic_signals).is_suspicious


# ============================================================================
# Risk Scorer Tests
# ============================================================================


class TestRiskScorer:
    """Tests for security score computation."""

    def test_reference_scores(self, scorer):
        """Test the documented reference values."""
        compliant = scorer.compute_score(RiskSignals(fingerprint_confidence=40, is_compliant=True))
        assert compliant.security_score == 66
        assert compliant.risk_score == 34
        assert compliant.clearance_level == ClearanceLevel.MEDIUM
        assert compliant.threat_level == ThreatLevel.MEDIUM

        non_compliant = scorer.compute_score(RiskSignals(fingerprint_confidence=40))
        assert non_compliant.security_score == 56

    def test_score_bounds(self, scorer):
        """Test scores stay within [0, 100] at the extremes."""
        best = scorer.compute_score(RiskSignals(
            fingerprint_confidence=500,
            mfa_enabled=True,
            is_compliant=True,
        ))
        worst = scorer.compute_score(RiskSignals(
            fingerprint_confidence=-20,
            session_age_seconds=10 ** 7,
            high_priority_alert_count=50,
        ))

        for result in (best, worst):
            assert 0 <= result.security_score <= 100
            assert result.risk_score == 100 - result.security_score

        assert best.security_score == 95
        assert worst.security_score == 0

    def test_mfa_never_lowers_score(self, scorer):
        """Test enabling MFA holding all else fixed."""
        for signals in (
            RiskSignals(),
            RiskSignals(fingerprint_confidence=100, is_compliant=True),
            RiskSignals(high_priority_alert_count=3, session_age_seconds=20000),
        ):
            without = scorer.compute_score(signals).security_score
            with_mfa = scorer.compute_score(
                RiskSignals(**{**signals.__dict__, "mfa_enabled": True})
            ).security_score
            assert with_mfa >= without

    def test_high_alert_never_raises_score(self, scorer):
        """Test adding a high-priority alert."""
        for count in range(0, 5):
            before = scorer.compute_score(RiskSignals(
                mfa_enabled=True, high_priority_alert_count=count
            )).security_score
            after = scorer.compute_score(RiskSignals(
                mfa_enabled=True, high_priority_alert_count=count + 1
            )).security_score
            assert after <= before

    def test_alert_penalty_capped(self, scorer):
        """Test alert penalties bottom out at 40 points."""
        result = scorer.compute_score(RiskSignals(
            high_priority_alert_count=5,
            medium_priority_alert_count=4,
        ))

        assert result.security_score == 10

    def test_medium_alert_penalty(self, scorer):
        result = scorer.compute_score(RiskSignals(medium_priority_alert_count=2))
        assert result.security_score == 40

    def test_stale_session_decay(self, scorer):
        """Test decay beyond the freshness window."""
        fresh = scorer.compute_score(RiskSignals(session_age_seconds=1800))
        one_hour_stale = scorer.compute_score(RiskSignals(session_age_seconds=1800 + 3600))
        very_stale = scorer.compute_score(RiskSignals(session_age_seconds=1800 + 36000))

        assert fresh.security_score == 50
        assert one_hour_stale.security_score == 40
        assert very_stale.security_score == 30

    def test_critical_alert_forces_threat(self, scorer):
        """Test a critical alert overrides a healthy score."""
        result = scorer.compute_score(RiskSignals(
            fingerprint_confidence=100,
            mfa_enabled=True,
            is_compliant=True,
            critical_alert_count=1,
        ))

        assert result.security_score == 95
        assert result.threat_level == ThreatLevel.CRITICAL

    def test_clearance_bands(self, scorer):
        assert scorer.clearance_for(80) == ClearanceLevel.HIGH
        assert scorer.clearance_for(79) == ClearanceLevel.MEDIUM
        assert scorer.clearance_for(50) == ClearanceLevel.MEDIUM
        assert scorer.clearance_for(49) == ClearanceLevel.LOW

    def test_threat_bands(self, scorer):
        assert scorer.threat_for(30) == ThreatLevel.LOW
        assert scorer.threat_for(31) == ThreatLevel.MEDIUM
        assert scorer.threat_for(51) == ThreatLevel.HIGH
        assert scorer.threat_for(70) == ThreatLevel.HIGH
        assert scorer.threat_for(71) == ThreatLevel.CRITICAL
        assert scorer.threat_for(0, critical_alert_count=1) == ThreatLevel.CRITICAL

    def test_factor_breakdown(self, scorer):
        """Test penalties are reported largest first."""
        result = scorer.compute_score(RiskSignals(
            mfa_enabled=True,
            high_priority_alert_count=1,
            session_age_seconds=1800 + 1800,
        ))

        names = [f.name for f in result.top_penalties]
        assert names == ["open_alerts", "session_stale"]


# ============================================================================
# Alert Manager Tests
# ============================================================================


class TestAlertManager:
    """Tests for the alert queue."""

    def test_priority_then_age_ordering(self, alerts, clock):
        """Test list order is priority desc then creation asc."""
        a = alerts.raise_alert(SecurityAlert(message="A", priority=AlertPriority.LOW))
        clock.advance(1)
        b = alerts.raise_alert(SecurityAlert(message="B", priority=AlertPriority.HIGH))
        clock.advance(1)
        c = alerts.raise_alert(SecurityAlert(message="C", priority=AlertPriority.HIGH))

        assert [alert.id for alert in alerts.list_alerts()] == [b, c, a]

    def test_same_timestamp_keeps_insertion_order(self, alerts):
        first = alerts.raise_alert({"message": "first", "priority": "medium"})
        second = alerts.raise_alert({"message": "second", "priority": "medium"})

        assert [alert.id for alert in alerts.list_alerts()] == [first, second]

    def test_dismiss_unknown_returns_false(self, alerts):
        """Test dismissing an unknown id."""
        assert alerts.dismiss("does-not-exist") is False

    def test_dismiss_is_idempotent(self, alerts):
        alert_id = alerts.raise_alert(SecurityAlert(message="Check this"))

        assert alerts.dismiss(alert_id) is True
        assert alerts.dismiss(alert_id) is False
        assert len(alerts) == 0
        assert alerts.get_history()[-1].id == alert_id

    def test_missing_message_rejected(self, alerts):
        """Test malformed alerts raise InvalidAlert."""
        with pytest.raises(InvalidAlert) as exc_info:
            alerts.raise_alert(SecurityAlert(title="No body"))

        assert exc_info.value.field == "message"

        with pytest.raises(InvalidAlert):
            alerts.raise_alert({"title": "No body", "message": "   "})

    def test_invalid_priority_rejected(self, alerts):
        with pytest.raises(InvalidAlert):
            alerts.raise_alert({"message": "x", "priority": "urgent"})

    def test_unknown_fields_rejected(self, alerts):
        with pytest.raises(InvalidAlert):
            alerts.raise_alert({"message": "x", "colour": "red"})

    def test_mapping_coerced(self, alerts, clock):
        """Test loose payloads are normalized."""
        alert_id = alerts.raise_alert({
            "type": "warning",
            "message": "Weak password",
            "priority": "medium",
        })

        alert = alerts.get(alert_id)
        assert alert.type == AlertType.WARNING
        assert alert.priority == AlertPriority.MEDIUM
        assert alert.title == "Security alert"
        assert alert.created_at == clock.now

    def test_created_at_must_match_clock_awareness(self, alerts, clock):
        """Test mixing aware and naive timestamps is rejected up front."""
        alerts.raise_alert(SecurityAlert(message="naive", priority=AlertPriority.HIGH))

        with pytest.raises(InvalidAlert) as exc_info:
            alerts.raise_alert({
                "message": "aware",
                "priority": "high",
                "created_at": datetime(2024, 9, 2, 9, 0, tzinfo=timezone.utc),
            })

        assert exc_info.value.field == "created_at"
        assert len(alerts) == 1
        assert [a.message for a in alerts.list_alerts()] == ["naive"]

    def test_created_at_type_checked(self, alerts):
        with pytest.raises(InvalidAlert):
            alerts.raise_alert({"message": "x", "created_at": "2024-09-02T09:00:00"})

    def test_aware_clock_accepts_aware_created_at(self):
        start = datetime(2024, 9, 2, 9, 0, tzinfo=timezone.utc)
        alerts = AlertManager(clock=lambda: start)

        alerts.raise_alert({"message": "a", "created_at": start - timedelta(minutes=5)})
        alerts.raise_alert({"message": "b"})

        assert [a.message for a in alerts.list_alerts()] == ["a", "b"]
        with pytest.raises(InvalidAlert):
            alerts.raise_alert({"message": "c", "created_at": datetime(2024, 9, 2, 8, 0)})

    def test_duplicate_id_deduplicated(self, alerts):
        first = alerts.raise_alert(SecurityAlert(id="fixed", message="one"))
        second = alerts.raise_alert(SecurityAlert(id="fixed", message="two"))

        assert first == second == "fixed"
        assert len(alerts) == 1
        assert alerts.get("fixed").message == "one"

    def test_counts(self, alerts):
        alerts.raise_alert(SecurityAlert(message="m", priority=AlertPriority.MEDIUM))
        alerts.raise_alert(SecurityAlert(message="h", priority=AlertPriority.HIGH, critical=True))

        counts = alerts.count_by_priority()
        assert counts[AlertPriority.MEDIUM] == 1
        assert counts[AlertPriority.HIGH] == 1
        assert counts[AlertPriority.LOW] == 0
        assert alerts.critical_count() == 1

    def test_filtering(self, alerts):
        alerts.raise_alert(SecurityAlert(message="m", priority=AlertPriority.MEDIUM, source="event"))
        alerts.raise_alert(SecurityAlert(message="h", priority=AlertPriority.HIGH))

        assert len(alerts.list_alerts(priority=AlertPriority.HIGH)) == 1
        assert len(alerts.list_alerts(source="event")) == 1
        assert len(alerts.list_alerts(critical=True)) == 0


# ============================================================================
# Session Monitor Tests
# ============================================================================


class TestSessionSecurityMonitor:
    """Tests for the session liveness state machine."""

    def _monitor(self, clock, expires_in: float, started_ago: float = 0.0, **config):
        session = SessionSecurity(
            is_active=True,
            started_at=clock.now - timedelta(seconds=started_ago),
            expires_at=clock.now + timedelta(seconds=expires_in),
        )
        return SessionSecurityMonitor(session, SessionConfig(**config), clock=clock)

    def test_expired_session_lifecycle(self, clock):
        """Test expiry, rejected renewal and renewal back to active."""
        monitor = self._monitor(clock, expires_in=-1, started_ago=1800)

        assert monitor.tick() is True
        assert monitor.state == SessionState.EXPIRED
        assert monitor.session.is_active is False

        with pytest.raises(InvalidRenewal):
            monitor.renew(clock.now - timedelta(seconds=1))
        assert monitor.state == SessionState.EXPIRED

        renewed = monitor.renew(clock.now + timedelta(seconds=3600))
        assert monitor.state == SessionState.ACTIVE
        assert renewed.is_active
        assert renewed.started_at == clock.now

    def test_renew_at_now_rejected(self, clock):
        monitor = self._monitor(clock, expires_in=3600)

        with pytest.raises(InvalidRenewal):
            monitor.renew(clock.now)

    def test_renew_with_aware_expiry(self, clock):
        """Test aware expiries are converted for a naive clock."""
        monitor = self._monitor(clock, expires_in=600)
        aware_expiry = (clock.now + timedelta(hours=2)).astimezone()

        renewed = monitor.renew(aware_expiry)

        assert renewed.expires_at == clock.now + timedelta(hours=2)
        assert renewed.expires_at.tzinfo is None
        assert monitor.state == SessionState.ACTIVE

    def test_align_to_clock(self, clock):
        aware_now = datetime(2024, 9, 2, 9, 0, tzinfo=timezone.utc)
        naive = datetime(2024, 9, 2, 10, 0)

        assert align_to_clock(naive, clock.now) is naive
        assert align_to_clock(aware_now, aware_now) is aware_now
        with pytest.raises(ValueError):
            align_to_clock(naive, aware_now)

    def test_warning_threshold(self, clock):
        """Test active -> expiring_soon below the warning threshold."""
        monitor = self._monitor(clock, expires_in=600)

        assert monitor.tick() is False
        assert monitor.state == SessionState.ACTIVE

        clock.advance(301)
        assert monitor.tick() is True
        assert monitor.state == SessionState.EXPIRING_SOON

        assert monitor.tick() is False

        clock.advance(299)
        assert monitor.tick() is True
        assert monitor.state == SessionState.EXPIRED

        # Expired is terminal for ticks
        clock.advance(3600)
        assert monitor.tick() is False

    def test_renew_from_expiring_soon(self, clock):
        monitor = self._monitor(clock, expires_in=120, started_ago=600)
        monitor.tick()
        assert monitor.state == SessionState.EXPIRING_SOON

        session = monitor.renew(clock.now + timedelta(hours=1))

        assert monitor.state == SessionState.ACTIVE
        assert session.started_at == clock.now - timedelta(seconds=600)
        assert monitor.transitions[-1].cause == "renewal"

    def test_transitions_recorded(self, clock):
        monitor = self._monitor(clock, expires_in=100)
        monitor.tick()
        clock.advance(100)
        monitor.tick()

        states = [(t.from_state, t.to_state) for t in monitor.transitions]
        assert states == [
            (SessionState.ACTIVE, SessionState.EXPIRING_SOON),
            (SessionState.EXPIRING_SOON, SessionState.EXPIRED),
        ]

    @pytest.mark.asyncio
    async def test_periodic_tick(self, clock):
        """Test start is idempotent and stop cancels the task."""
        monitor = self._monitor(clock, expires_in=3600, tick_interval_seconds=0.01)
        on_tick = MagicMock()

        await monitor.start(on_tick)
        task = monitor._tick_task
        await monitor.start(on_tick)
        assert monitor._tick_task is task

        await asyncio.sleep(0.05)
        assert on_tick.call_count >= 1

        await monitor.stop()
        assert not monitor.is_running

        calls = on_tick.call_count
        await asyncio.sleep(0.03)
        assert on_tick.call_count == calls


# ============================================================================
# MFA Enrollment Tests
# ============================================================================


class TestMfaEnrollment:
    """Tests for MFA enrollment state machines."""

    def test_totp_enrollment(self, mfa, clock):
        """Test TOTP pending -> active with backup codes."""
        enrollment = mfa.begin_totp()

        assert enrollment.state == EnrollmentState.PENDING_VERIFICATION
        assert enrollment.factor.provisioning_uri.startswith("otpauth://totp/")
        assert "issuer=EduGuard" in enrollment.factor.provisioning_uri

        code = pyotp.TOTP(enrollment.factor.secret).at(clock.now)
        assert mfa.verify(code) is True

        assert enrollment.state == EnrollmentState.ACTIVE
        assert mfa.mfa_enabled
        assert mfa.active_factors == [MfaFactorType.TOTP]
        assert len(enrollment.backup_codes) == 10
        assert mfa.current is None

    def test_totp_lockout(self, mfa):
        """Test five wrong codes lock the enrollment."""
        enrollment = mfa.begin_totp()

        for attempt in range(1, 5):
            assert mfa.verify(WRONG_CODE) is False
            assert enrollment.state == EnrollmentState.PENDING_VERIFICATION
            assert enrollment.attempts == attempt

        assert mfa.verify(WRONG_CODE) is False
        assert enrollment.state == EnrollmentState.LOCKED
        assert enrollment.attempts == 5
        assert enrollment.remaining_attempts == 0

        with pytest.raises(MfaLockout) as exc_info:
            mfa.verify(WRONG_CODE)

        assert exc_info.value.attempts == 5
        assert enrollment.attempts == 5
        assert not mfa.mfa_enabled

    def test_correct_code_after_failures(self, mfa, clock):
        enrollment = mfa.begin_totp()
        for _ in range(4):
            mfa.verify(WRONG_CODE)

        assert mfa.verify(pyotp.TOTP(enrollment.factor.secret).at(clock.now)) is True
        assert enrollment.state == EnrollmentState.ACTIVE

    def test_reset_after_lockout(self, mfa, clock):
        """Test a fresh cycle after lockout."""
        mfa.begin_totp()
        for _ in range(5):
            mfa.verify(WRONG_CODE)
        assert mfa.state_of(MfaFactorType.TOTP) == EnrollmentState.LOCKED

        mfa.reset()
        assert mfa.state_of(MfaFactorType.TOTP) == EnrollmentState.NOT_STARTED

        enrollment = mfa.begin_totp()
        assert mfa.verify(pyotp.TOTP(enrollment.factor.secret).at(clock.now)) is True

    def test_verify_without_enrollment(self, mfa):
        with pytest.raises(ValueError):
            mfa.verify("123456")

    @pytest.mark.asyncio
    async def test_sms_enrollment(self, mfa, code_sender):
        """Test SMS code delivery and confirmation."""
        enrollment = await mfa.begin_sms("+1 555-010-2030")

        code_sender.send.assert_awaited_once()
        factor, destination, code = code_sender.send.call_args.args
        assert factor == MfaFactorType.SMS
        assert destination == "+1 555-010-2030"
        assert len(code) == 6 and code.isdigit()

        assert mfa.verify(code) is True
        assert enrollment.state == EnrollmentState.ACTIVE

    @pytest.mark.asyncio
    async def test_invalid_phone_rejected(self, mfa, code_sender):
        with pytest.raises(ValueError):
            await mfa.begin_sms("call me")

        code_sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_email_code_expires(self, mfa, code_sender, clock):
        """Test email codes past their TTL are rejected."""
        await mfa.begin_email("student@school.edu")
        code = code_sender.send.call_args.args[2]

        clock.advance(601)

        assert mfa.verify(code) is False
        assert mfa.current.attempts == 1

    @pytest.mark.asyncio
    async def test_new_enrollment_cancels_pending(self, mfa, code_sender):
        mfa.begin_totp()
        await mfa.begin_email("student@school.edu")

        assert mfa.current.factor_type == MfaFactorType.EMAIL
        assert mfa.state_of(MfaFactorType.TOTP) == EnrollmentState.NOT_STARTED

    def test_backup_codes_single_use(self, mfa, clock):
        enrollment = mfa.begin_totp()
        mfa.verify(pyotp.TOTP(enrollment.factor.secret).at(clock.now))
        backup = enrollment.backup_codes[0]

        assert mfa.verify_backup_code(backup.lower()) is True
        assert mfa.verify_backup_code(backup) is False
        assert mfa.backup_codes_remaining == 9

    def test_listener_notified(self, mfa, clock):
        """Test activation, lockout and disable notifications."""
        seen = []
        mfa.add_listener(lambda enrollment: seen.append(enrollment.state))

        enrollment = mfa.begin_totp()
        mfa.verify(pyotp.TOTP(enrollment.factor.secret).at(clock.now))
        mfa.disable(MfaFactorType.TOTP)

        mfa.begin_totp()
        for _ in range(5):
            mfa.verify(WRONG_CODE)

        assert seen == [
            EnrollmentState.ACTIVE,
            EnrollmentState.NOT_STARTED,
            EnrollmentState.LOCKED,
        ]
        assert not mfa.mfa_enabled
        assert mfa.backup_codes_remaining == 0

    def test_failing_listener_does_not_break_verify(self, mfa, clock):
        mfa.add_listener(MagicMock(side_effect=RuntimeError("listener down")))

        enrollment = mfa.begin_totp()
        assert mfa.verify(pyotp.TOTP(enrollment.factor.secret).at(clock.now)) is True


# ============================================================================
# Compliance Tracker Tests
# ============================================================================


class TestComplianceTracker:
    """Tests for consent tracking."""

    def test_student_requires_ferpa_and_coppa(self, tracker):
        status = tracker.register_user("student_1", "student")

        assert status.applicable == ("ferpa", "coppa")
        assert not status.is_compliant
        assert status.missing == ("ferpa", "coppa")

        tracker.record_consent("student_1", "ferpa", True)
        status = tracker.record_consent("student_1", "COPPA", True)
        assert status.is_compliant

    def test_revoking_required_consent(self, tracker):
        """Test one revoked framework flips compliance."""
        tracker.register_user("admin_1", "admin")
        tracker.record_consent("admin_1", "ferpa", True)
        tracker.record_consent("admin_1", "gdpr", True)
        tracker.record_consent("admin_1", "ccpa", True)
        assert tracker.get_status("admin_1").is_compliant

        status = tracker.record_consent("admin_1", "gdpr", False)

        assert not status.is_compliant
        assert status.frameworks["ferpa"] is True
        assert status.missing == ("gdpr",)

    def test_role_without_frameworks_is_compliant(self, tracker):
        assert tracker.register_user("guest_1", "guest").is_compliant

    def test_non_applicable_consent_ignored(self, tracker):
        tracker.register_user("faculty_1", "faculty")
        tracker.record_consent("faculty_1", "ferpa", True)

        status = tracker.record_consent("faculty_1", "gdpr", False)

        assert status.is_compliant
        assert status.frameworks["gdpr"] is False

    def test_listener_receives_changes(self, tracker):
        events = []
        tracker.add_listener(MagicMock(side_effect=RuntimeError("broken")))
        tracker.add_listener(events.append)
        tracker.register_user("student_1", "student")

        tracker.record_consent("student_1", "ferpa", True)

        assert len(events) == 1
        assert events[0].user_id == "student_1"
        assert events[0].framework == "ferpa"
        assert not events[0].status.is_compliant

    def test_consent_history(self, tracker, clock):
        tracker.record_consent("parent_1", "ferpa", True)
        clock.advance(60)
        tracker.record_consent("parent_1", "ferpa", False)

        history = tracker.get_consent_history("parent_1")
        assert [r.granted for r in history] == [True, False]
        assert history[1].recorded_at - history[0].recorded_at == timedelta(seconds=60)


# ============================================================================
# Event Parsing Tests
# ============================================================================


class TestEventParsing:
    """Tests for structured security events."""

    def test_known_event(self):
        event = parse_event({"type": "LOGIN_FAILURE", "data": {"reason": "bad password"}})

        assert isinstance(event, LoginFailureEvent)
        assert event.reason == "bad password"

    def test_top_level_fields(self):
        event = parse_event({"type": "suspicious-location", "location": "Unknown, XX"})
        assert event.location == "Unknown, XX"

    def test_unknown_event(self):
        event = parse_event({"type": "quantum-breach", "data": {"qubits": 3}})

        assert isinstance(event, UnknownEvent)
        assert event.event_type == "quantum-breach"
        assert event.payload == {"qubits": 3}

    def test_unknown_event_payload_is_json_safe(self, clock):
        """Test timestamps are lifted out and nested datetimes serialized."""
        event = parse_event({
            "type": "new-kind",
            "timestamp": clock.now,
            "data": {"seen_at": clock.now, "tags": ("a", "b")},
        })

        assert event.timestamp == clock.now
        assert "timestamp" not in event.payload

        payload = event_payload(event)
        assert payload == {"seen_at": clock.now.isoformat(), "tags": ["a", "b"]}
        assert json.loads(json.dumps(payload)) == payload

    def test_known_event_payload(self):
        event = LoginFailureEvent(reason="bad password", timestamp=datetime(2024, 9, 2))

        assert event_payload(event) == {"reason": "bad password"}

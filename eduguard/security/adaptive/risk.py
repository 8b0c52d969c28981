"""
Risk Scoring Engine.

Combines device, MFA, compliance, session and alert signals into a 0-100
security score, its inverse risk score, a clearance band and a threat level.

Scoring is a pure function over the signals:
- baseline
- MFA bonus
- fingerprint confidence bonus (linear)
- compliance bonus
- alert penalties (bounded)
- session staleness decay (bounded)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import structlog

from eduguard.core.config import ScoringConfig
from eduguard.security.types import ClearanceLevel, ThreatLevel

logger = structlog.get_logger(__name__)


class RiskCategory(str, Enum):
    """Categories of score contributions."""
    BASELINE = "baseline"
    ACCOUNT = "account"
    DEVICE = "device"
    COMPLIANCE = "compliance"
    ALERTS = "alerts"
    SESSION = "session"


@dataclass(frozen=True)
class RiskSignals:
    """Inputs to the scorer. Out-of-range values are clamped."""
    fingerprint_confidence: float = 0.0
    mfa_enabled: bool = False
    session_age_seconds: float = 0.0
    is_compliant: bool = False
    open_alert_count: int = 0
    medium_priority_alert_count: int = 0
    high_priority_alert_count: int = 0
    critical_alert_count: int = 0


@dataclass(frozen=True)
class RiskFactor:
    """Individual contribution to the security score."""
    name: str
    category: RiskCategory
    points: float
    description: str
    evidence: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskResult:
    """Composite score with factor breakdown."""
    security_score: int
    risk_score: int
    clearance_level: ClearanceLevel
    threat_level: ThreatLevel
    factors: tuple[RiskFactor, ...] = ()

    @property
    def top_penalties(self) -> list[RiskFactor]:
        """Factors that lowered the score, largest first."""
        return sorted(
            (f for f in self.factors if f.points < 0),
            key=lambda f: f.points,
        )


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class RiskScorer:
    """
    Security score calculator.

    Enabling MFA never lowers the score and an extra high-priority alert
    never raises it. A single critical alert forces the threat level to
    critical whatever the numeric score.
    """

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self.config = config or ScoringConfig()
        self._logger = logger.bind(component="risk_scorer")

    def compute_score(self, signals: RiskSignals) -> RiskResult:
        """Compute the security score for the given signals."""
        cfg = self.config
        factors: list[RiskFactor] = [
            RiskFactor(
                name="baseline",
                category=RiskCategory.BASELINE,
                points=cfg.baseline,
                description="Baseline session trust",
            )
        ]

        if signals.mfa_enabled:
            factors.append(RiskFactor(
                name="mfa_enabled",
                category=RiskCategory.ACCOUNT,
                points=cfg.mfa_bonus,
                description="Multi-factor authentication is active",
            ))

        confidence = _clamp(float(signals.fingerprint_confidence), 0.0, 100.0)
        if confidence > 0:
            factors.append(RiskFactor(
                name="device_confidence",
                category=RiskCategory.DEVICE,
                points=cfg.fingerprint_max_bonus * confidence / 100.0,
                description="Device fingerprint confidence",
                evidence={"confidence": confidence},
            ))

        if signals.is_compliant:
            factors.append(RiskFactor(
                name="compliant",
                category=RiskCategory.COMPLIANCE,
                points=cfg.compliance_bonus,
                description="All applicable consents granted",
            ))

        alert_factor = self._alert_penalty(signals)
        if alert_factor:
            factors.append(alert_factor)

        session_factor = self._session_decay(signals)
        if session_factor:
            factors.append(session_factor)

        total = sum(f.points for f in factors)
        security_score = int(round(_clamp(total, 0.0, 100.0)))
        risk_score = 100 - security_score

        result = RiskResult(
            security_score=security_score,
            risk_score=risk_score,
            clearance_level=self.clearance_for(security_score),
            threat_level=self.threat_for(risk_score, max(0, signals.critical_alert_count)),
            factors=tuple(factors),
        )

        self._logger.debug(
            "Security score computed",
            score=result.security_score,
            clearance=result.clearance_level.value,
            threat=result.threat_level.value,
        )

        return result

    def _alert_penalty(self, signals: RiskSignals) -> Optional[RiskFactor]:
        cfg = self.config
        medium = max(0, signals.medium_priority_alert_count)
        high = max(0, signals.high_priority_alert_count)
        if medium == 0 and high == 0:
            return None

        raw = medium * cfg.medium_alert_penalty + high * cfg.high_alert_penalty
        return RiskFactor(
            name="open_alerts",
            category=RiskCategory.ALERTS,
            points=-min(raw, cfg.max_alert_penalty),
            description="Open medium and high priority alerts",
            evidence={
                "open": max(0, signals.open_alert_count),
                "medium": medium,
                "high": high,
            },
        )

    def _session_decay(self, signals: RiskSignals) -> Optional[RiskFactor]:
        cfg = self.config
        stale_seconds = max(0.0, signals.session_age_seconds) - cfg.freshness_window_seconds
        if stale_seconds <= 0:
            return None

        decay = min(stale_seconds / 3600.0 * cfg.stale_decay_per_hour, cfg.max_stale_penalty)
        return RiskFactor(
            name="session_stale",
            category=RiskCategory.SESSION,
            points=-decay,
            description="Session is older than the freshness window",
            evidence={"stale_seconds": stale_seconds},
        )

    def clearance_for(self, security_score: int) -> ClearanceLevel:
        if security_score >= self.config.high_clearance_threshold:
            return ClearanceLevel.HIGH
        if security_score >= self.config.medium_clearance_threshold:
            return ClearanceLevel.MEDIUM
        return ClearanceLevel.LOW

    def threat_for(self, risk_score: int, critical_alert_count: int = 0) -> ThreatLevel:
        if critical_alert_count > 0:
            return ThreatLevel.CRITICAL
        if risk_score > self.config.critical_risk_threshold:
            return ThreatLevel.CRITICAL
        if risk_score > self.config.high_risk_threshold:
            return ThreatLevel.HIGH
        if risk_score > self.config.medium_risk_threshold:
            return ThreatLevel.MEDIUM
        return ThreatLevel.LOW

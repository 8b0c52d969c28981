"""
Adaptive Security Module.

Provides context-aware security scoring through:
- Device fingerprinting
- Risk scoring
"""

from eduguard.security.adaptive.fingerprint import (
    DeviceFingerprint,
    DeviceFingerprintGenerator,
    FingerprintComponent,
)
from eduguard.security.adaptive.risk import (
    RiskCategory,
    RiskFactor,
    RiskResult,
    RiskScorer,
    RiskSignals,
)

__all__ = [
    "DeviceFingerprint",
    "DeviceFingerprintGenerator",
    "FingerprintComponent",
    "RiskCategory",
    "RiskFactor",
    "RiskResult",
    "RiskScorer",
    "RiskSignals",
]

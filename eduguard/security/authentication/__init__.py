"""
EduGuard Authentication Security

Session liveness monitoring and MFA enrollment.
"""

from eduguard.security.authentication.mfa import (
    CodeSender,
    EmailFactor,
    EnrollmentState,
    LogCodeSender,
    MfaEnrollment,
    MfaEnrollmentManager,
    MfaFactor,
    MfaFactorType,
    SmsFactor,
    TotpFactor,
)
from eduguard.security.authentication.session import (
    SessionSecurityMonitor,
    SessionTransition,
    align_to_clock,
)

__all__ = [
    "CodeSender",
    "EmailFactor",
    "EnrollmentState",
    "LogCodeSender",
    "MfaEnrollment",
    "MfaEnrollmentManager",
    "MfaFactor",
    "MfaFactorType",
    "SessionSecurityMonitor",
    "SessionTransition",
    "SmsFactor",
    "TotpFactor",
    "align_to_clock",
]

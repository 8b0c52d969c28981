"""
EduGuard Security Errors

Local input errors are raised to the immediate caller. Backend errors are
caught at the coordinator boundary and surfaced as alerts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional


class SecurityError(Exception):
    """Base class for security posture errors."""
    pass


class InvalidAlert(SecurityError):
    """Malformed alert payload."""

    def __init__(self, reason: str, field: Optional[str] = None):
        self.reason = reason
        self.field = field
        super().__init__(f"Invalid alert: {reason}")


class InvalidRenewal(SecurityError):
    """Session renewal with an expiry that is not in the future."""

    def __init__(self, new_expiry: datetime, now: datetime):
        self.new_expiry = new_expiry
        self.now = now
        super().__init__(
            f"Renewal expiry {new_expiry.isoformat()} is not after {now.isoformat()}"
        )


class MfaLockout(SecurityError):
    """Verification attempts exhausted for an MFA enrollment."""

    def __init__(self, factor: str, attempts: int):
        self.factor = factor
        self.attempts = attempts
        super().__init__(
            f"MFA enrollment for {factor} locked after {attempts} failed attempts"
        )


class BackendUnavailable(SecurityError):
    """Backend persistence call failed."""

    def __init__(self, endpoint: str, cause: Optional[BaseException] = None):
        self.endpoint = endpoint
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Backend unavailable for {endpoint}{detail}")

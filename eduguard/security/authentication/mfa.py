"""
EduGuard MFA Enrollment

Per-factor enrollment state machines:

    not_started -> pending_verification -> active
                         |
                         +-> locked (attempt limit reached)

TOTP factors become pending once a secret is generated; SMS and Email
factors become pending once a code has been sent. Only one factor may be
pending at a time.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

import pyotp
import structlog

from eduguard.core.config import MfaConfig
from eduguard.security.errors import MfaLockout

logger = structlog.get_logger(__name__)


class MfaFactorType(str, Enum):
    """Supported MFA factors."""

    TOTP = "totp"
    SMS = "sms"
    EMAIL = "email"


class EnrollmentState(str, Enum):
    """Enrollment lifecycle."""

    NOT_STARTED = "not_started"
    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    LOCKED = "locked"


# =============================================================================
# Factor Payloads
# =============================================================================


@dataclass(frozen=True)
class TotpFactor:
    secret: str = field(repr=False)
    provisioning_uri: str = field(repr=False)


@dataclass(frozen=True)
class SmsFactor:
    phone_number: str


@dataclass(frozen=True)
class EmailFactor:
    email: str


MfaFactor = Union[TotpFactor, SmsFactor, EmailFactor]

_PHONE_PATTERN = re.compile(r"^\+?[0-9][0-9\- ]{6,19}$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.strip().upper().encode()).hexdigest()


def _mask(destination: str) -> str:
    if "@" in destination:
        local, _, domain = destination.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{destination[-2:]}"


# =============================================================================
# Code Delivery
# =============================================================================


class CodeSender(ABC):
    """Delivers one-time verification codes over SMS or email."""

    @abstractmethod
    async def send(self, factor: MfaFactorType, destination: str, code: str) -> None:
        """Deliver a code. Raises on delivery failure."""
        pass


class LogCodeSender(CodeSender):
    """Records deliveries in the log without the code itself."""

    async def send(self, factor: MfaFactorType, destination: str, code: str) -> None:
        logger.info(
            "Verification code dispatched",
            factor=factor.value,
            destination=_mask(destination),
        )


# =============================================================================
# Enrollment
# =============================================================================


class MfaEnrollment:
    """A single enrollment attempt for one factor."""

    def __init__(
        self,
        factor_type: MfaFactorType,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.factor_type = factor_type
        self.max_attempts = max_attempts
        self._clock = clock

        self.state = EnrollmentState.NOT_STARTED
        self.factor: Optional[MfaFactor] = None
        self.attempts = 0
        self.created_at = clock()
        self.activated_at: Optional[datetime] = None

        # Plain backup codes, shown once after the first activation
        self.backup_codes: Tuple[str, ...] = ()

        self._code_hash: Optional[str] = None
        self._code_expires_at: Optional[datetime] = None

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def mark_pending(
        self,
        factor: MfaFactor,
        code: Optional[str] = None,
        code_ttl: Optional[timedelta] = None,
    ) -> None:
        self.factor = factor
        if code is not None:
            self._code_hash = _hash_code(code)
            self._code_expires_at = self._clock() + (code_ttl or timedelta(minutes=10))
        self.state = EnrollmentState.PENDING_VERIFICATION

    def verify(self, code: str) -> bool:
        """
        Check a verification code.

        A wrong code keeps the enrollment pending and consumes an attempt;
        the attempt that reaches the limit locks it. Verifying a locked
        enrollment raises MfaLockout without consuming anything.
        """
        if self.state == EnrollmentState.LOCKED:
            raise MfaLockout(self.factor_type.value, self.attempts)
        if self.state != EnrollmentState.PENDING_VERIFICATION:
            raise ValueError(f"Enrollment is {self.state.value}, not pending verification")

        now = self._clock()
        if self._check(str(code or ""), now):
            self.state = EnrollmentState.ACTIVE
            self.activated_at = now
            self._code_hash = None
            return True

        self.attempts += 1
        if self.attempts >= self.max_attempts:
            self.state = EnrollmentState.LOCKED
            logger.warning(
                "MFA enrollment locked",
                factor=self.factor_type.value,
                attempts=self.attempts,
            )
        return False

    def _check(self, code: str, now: datetime) -> bool:
        if isinstance(self.factor, TotpFactor):
            return pyotp.TOTP(self.factor.secret).verify(code, for_time=now, valid_window=1)

        if self._code_hash is None or self._code_expires_at is None:
            return False
        if now > self._code_expires_at:
            return False
        return hmac.compare_digest(self._code_hash, _hash_code(code))


class MfaEnrollmentManager:
    """
    MFA enrollment for a single user.

    Features:
    - TOTP secrets with otpauth provisioning URIs
    - SMS/Email one-time codes with expiry
    - Attempt limiting with lockout
    - One-time backup codes issued on first activation
    - Listener notifications on activation, lockout and disable
    """

    def __init__(
        self,
        user_id: str,
        config: Optional[MfaConfig] = None,
        code_sender: Optional[CodeSender] = None,
        account_name: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.user_id = user_id
        self.config = config or MfaConfig()
        self.code_sender = code_sender or LogCodeSender()
        self.account_name = account_name or user_id
        self._clock = clock

        self._current: Optional[MfaEnrollment] = None
        self._active: Dict[MfaFactorType, MfaEnrollment] = {}
        self._backup_code_hashes: List[str] = []

        self._listeners: List[Callable[[MfaEnrollment], None]] = []

    # =========================================================================
    # State
    # =========================================================================

    @property
    def current(self) -> Optional[MfaEnrollment]:
        """Enrollment in progress (pending or locked), if any."""
        return self._current

    @property
    def active_factors(self) -> List[MfaFactorType]:
        return list(self._active.keys())

    @property
    def mfa_enabled(self) -> bool:
        return len(self._active) > 0

    def state_of(self, factor_type: MfaFactorType) -> EnrollmentState:
        if factor_type in self._active:
            return EnrollmentState.ACTIVE
        if self._current and self._current.factor_type == factor_type:
            return self._current.state
        return EnrollmentState.NOT_STARTED

    # =========================================================================
    # Enrollment
    # =========================================================================

    def _new_enrollment(self, factor_type: MfaFactorType) -> MfaEnrollment:
        if self._current and self._current.state == EnrollmentState.PENDING_VERIFICATION:
            logger.info(
                "Cancelling pending MFA enrollment",
                user_id=self.user_id,
                factor=self._current.factor_type.value,
            )
        self._current = MfaEnrollment(
            factor_type,
            max_attempts=self.config.max_attempts,
            clock=self._clock,
        )
        return self._current

    def begin_totp(self) -> MfaEnrollment:
        """Generate a TOTP secret and await the first code."""
        enrollment = self._new_enrollment(MfaFactorType.TOTP)

        secret = pyotp.random_base32()
        uri = pyotp.TOTP(secret).provisioning_uri(
            name=self.account_name,
            issuer_name=self.config.issuer,
        )
        enrollment.mark_pending(TotpFactor(secret=secret, provisioning_uri=uri))

        logger.info("TOTP enrollment started", user_id=self.user_id)
        return enrollment

    async def begin_sms(self, phone_number: str) -> MfaEnrollment:
        """Send a code to a phone number and await confirmation."""
        phone_number = str(phone_number or "").strip()
        if not _PHONE_PATTERN.match(phone_number):
            raise ValueError("Invalid phone number for SMS MFA")
        return await self._begin_with_code(MfaFactorType.SMS, SmsFactor(phone_number), phone_number)

    async def begin_email(self, email: str) -> MfaEnrollment:
        """Send a code to an email address and await confirmation."""
        email = str(email or "").strip()
        if not _EMAIL_PATTERN.match(email):
            raise ValueError("Invalid email for email MFA")
        return await self._begin_with_code(MfaFactorType.EMAIL, EmailFactor(email), email)

    async def _begin_with_code(
        self,
        factor_type: MfaFactorType,
        factor: MfaFactor,
        destination: str,
    ) -> MfaEnrollment:
        enrollment = self._new_enrollment(factor_type)
        code = "".join(secrets.choice(string.digits) for _ in range(self.config.code_length))

        await self.code_sender.send(factor_type, destination, code)

        enrollment.mark_pending(
            factor,
            code=code,
            code_ttl=timedelta(seconds=self.config.code_ttl_seconds),
        )

        logger.info(
            "Code enrollment started",
            user_id=self.user_id,
            factor=factor_type.value,
            destination=_mask(destination),
        )
        return enrollment

    def verify(self, code: str) -> bool:
        """Verify the code for the enrollment in progress."""
        enrollment = self._current
        if enrollment is None:
            raise ValueError("No MFA enrollment in progress")

        verified = enrollment.verify(code)

        if verified:
            self._activate(enrollment)
        elif enrollment.state == EnrollmentState.LOCKED:
            self._notify(enrollment)

        return verified

    def reset(self) -> None:
        """Discard the enrollment in progress, allowing a fresh cycle."""
        self._current = None

    def _activate(self, enrollment: MfaEnrollment) -> None:
        first_factor = not self._active
        self._active[enrollment.factor_type] = enrollment
        self._current = None

        if first_factor:
            codes = tuple(
                secrets.token_hex(4).upper() for _ in range(self.config.backup_code_count)
            )
            self._backup_code_hashes = [_hash_code(c) for c in codes]
            enrollment.backup_codes = codes

        logger.info(
            "MFA factor activated",
            user_id=self.user_id,
            factor=enrollment.factor_type.value,
        )
        self._notify(enrollment)

    def disable(self, factor_type: MfaFactorType) -> bool:
        """Remove an active factor."""
        enrollment = self._active.pop(factor_type, None)
        if enrollment is None:
            return False

        if not self._active:
            self._backup_code_hashes = []

        enrollment.state = EnrollmentState.NOT_STARTED
        logger.info("MFA factor disabled", user_id=self.user_id, factor=factor_type.value)
        self._notify(enrollment)
        return True

    # =========================================================================
    # Backup Codes
    # =========================================================================

    def verify_backup_code(self, code: str) -> bool:
        """Verify and consume a backup code."""
        code_hash = _hash_code(str(code or ""))
        for stored in self._backup_code_hashes:
            if hmac.compare_digest(stored, code_hash):
                self._backup_code_hashes.remove(stored)
                return True
        return False

    @property
    def backup_codes_remaining(self) -> int:
        return len(self._backup_code_hashes)

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: Callable[[MfaEnrollment], None]) -> None:
        """Subscribe to activation, lockout and disable notifications."""
        self._listeners.append(listener)

    def _notify(self, enrollment: MfaEnrollment) -> None:
        for listener in list(self._listeners):
            try:
                listener(enrollment)
            except Exception as e:
                logger.error(f"MFA listener error: {e}")

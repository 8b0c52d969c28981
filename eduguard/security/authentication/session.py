"""
EduGuard Session Security Monitor

Tracks liveness of the current session through the states
active -> expiring_soon -> expired, and owns the periodic tick task that
advances the state machine.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from eduguard.core.config import SessionConfig
from eduguard.security.errors import InvalidRenewal
from eduguard.security.types import SessionSecurity, SessionState, is_aware

logger = structlog.get_logger(__name__)


def align_to_clock(value: datetime, now: datetime) -> datetime:
    """
    Express a datetime in the timezone convention of the clock reading.

    Aware values are converted to local naive time for a naive clock, which
    is what datetime.now returns. A naive value cannot be placed against an
    aware clock and raises ValueError.
    """
    if is_aware(value) == is_aware(now):
        return value
    if is_aware(value):
        return value.astimezone().replace(tzinfo=None)
    raise ValueError(
        f"Naive datetime {value.isoformat()} cannot be compared with an aware clock"
    )


@dataclass(frozen=True)
class SessionTransition:
    """A recorded state change."""

    from_state: SessionState
    to_state: SessionState
    at: datetime
    cause: str  # tick, renewal


class SessionSecurityMonitor:
    """
    Session liveness state machine.

    Expired is terminal for a session record. Renewing an expired session
    replaces it with a fresh record instead of reviving the old one.
    """

    def __init__(
        self,
        session: SessionSecurity,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or SessionConfig()
        self._clock = clock
        self._session = session

        # State is settled by the first tick
        self._state = SessionState.ACTIVE if session.is_active else SessionState.EXPIRED
        self._transitions: List[SessionTransition] = []

        # Tick task
        self._tick_task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()
        self._on_tick: Optional[Callable[[datetime, bool], None]] = None

    @property
    def session(self) -> SessionSecurity:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transitions(self) -> List[SessionTransition]:
        return list(self._transitions)

    @property
    def is_running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    # =========================================================================
    # State Machine
    # =========================================================================

    def _evaluate(self, session: SessionSecurity, now: datetime) -> SessionState:
        if now >= session.expires_at:
            return SessionState.EXPIRED
        if session.remaining_seconds(now) < self.config.warning_threshold_seconds:
            return SessionState.EXPIRING_SOON
        return SessionState.ACTIVE

    def tick(self, now: Optional[datetime] = None) -> bool:
        """
        Advance the state machine.

        Returns True if a transition occurred.
        """
        if self._state == SessionState.EXPIRED:
            return False

        now = now or self._clock()
        new_state = self._evaluate(self._session, now)

        # Only renewal moves a session back to active
        if new_state == SessionState.ACTIVE:
            return False
        if new_state == self._state:
            return False

        if new_state == SessionState.EXPIRED:
            self._session = replace(self._session, is_active=False)

        self._record(new_state, now, "tick")
        return True

    def renew(
        self,
        new_expiry: datetime,
        now: Optional[datetime] = None,
    ) -> SessionSecurity:
        """Extend the session, or start a fresh one if it has expired."""
        now = now or self._clock()
        new_expiry = align_to_clock(new_expiry, now)
        if new_expiry <= now:
            raise InvalidRenewal(new_expiry, now)

        if self._state == SessionState.EXPIRED:
            self._session = SessionSecurity(
                is_active=True,
                started_at=now,
                expires_at=new_expiry,
            )
        else:
            self._session = replace(self._session, is_active=True, expires_at=new_expiry)

        new_state = self._evaluate(self._session, now)
        if new_state != self._state:
            self._record(new_state, now, "renewal")

        logger.info(
            "Session renewed",
            expires_at=new_expiry.isoformat(),
            state=self._state.value,
        )

        return self._session

    def _record(self, new_state: SessionState, now: datetime, cause: str) -> None:
        self._transitions.append(SessionTransition(
            from_state=self._state,
            to_state=new_state,
            at=now,
            cause=cause,
        ))
        logger.info(
            "Session state changed",
            from_state=self._state.value,
            to_state=new_state.value,
            cause=cause,
        )
        self._state = new_state

    # =========================================================================
    # Periodic Tick
    # =========================================================================

    async def start(self, on_tick: Optional[Callable[[datetime, bool], None]] = None) -> None:
        """Start the periodic tick. No-op if already running."""
        if self.is_running:
            return

        self._on_tick = on_tick
        self._shutdown_event.clear()
        self._tick_task = asyncio.create_task(self._tick_loop())

        logger.debug(
            "Session tick started",
            interval=self.config.tick_interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the periodic tick."""
        self._shutdown_event.set()

        if self._tick_task:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None

    async def _tick_loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.sleep(self.config.tick_interval_seconds)
                now = self._clock()
                changed = self.tick(now)
                if self._on_tick:
                    self._on_tick(now, changed)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Session tick error: {e}")

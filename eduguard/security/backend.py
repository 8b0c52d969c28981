"""
EduGuard Backend Persistence

Best-effort delivery of security events and incidents to the platform
backend. Local security state never waits on these calls: submissions are
scheduled as background tasks and failures are reported through a callback.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional, Set, Tuple

import httpx
import structlog

from eduguard.core.config import BackendConfig
from eduguard.security.errors import BackendUnavailable

logger = structlog.get_logger(__name__)

EVENT = "event"
INCIDENT = "incident"


class SecurityBackendClient:
    """
    JSON client for the security endpoints.

    Sends the session ID token as a bearer token. Transport errors and
    error responses raise BackendUnavailable.
    """

    def __init__(
        self,
        base_url: str,
        events_path: str = "/security/events",
        incidents_path: str = "/security/incidents",
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.events_path = events_path
        self.incidents_path = incidents_path
        self.timeout = timeout
        self.headers = headers or {}

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._token: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: BackendConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SecurityBackendClient":
        if not config.base_url:
            raise ValueError("Backend base_url is not configured")
        return cls(
            base_url=config.base_url,
            events_path=config.events_path,
            incidents_path=config.incidents_path,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    def set_token(self, token: Optional[str]) -> None:
        """Set the bearer token used for subsequent calls."""
        self._token = token

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def post_event(self, event: Dict[str, Any]) -> None:
        await self._post(self.events_path, event)

    async def post_incident(self, incident: Dict[str, Any]) -> None:
        await self._post(self.incidents_path, incident)

    async def _post(self, path: str, payload: Dict[str, Any]) -> None:
        headers = {"Content-Type": "application/json", **self.headers}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = await self._get_client().post(path, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise BackendUnavailable(path, e) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class BackendDispatcher:
    """
    Fire-and-forget scheduler for backend submissions.

    Features:
    - Background asyncio tasks per submission
    - Bounded pending queue for submissions made outside a running loop
    - Failure callback instead of raised exceptions
    - Cancellation of in-flight submissions
    - No retries
    """

    def __init__(
        self,
        client: Optional[SecurityBackendClient],
        max_pending: int = 1000,
        on_failure: Optional[Callable[[BackendUnavailable], None]] = None,
    ):
        self.client = client
        self._on_failure = on_failure

        self._pending: Deque[Tuple[str, Dict[str, Any]]] = deque(maxlen=max_pending)
        self._tasks: Set[asyncio.Task] = set()

        self._stats = {
            "submitted": 0,
            "delivered": 0,
            "failed": 0,
            "dropped": 0,
            "rejected": 0,
        }

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, kind: str, payload: Dict[str, Any]) -> None:
        """Schedule a submission. Never raises on delivery problems."""
        if self.client is None:
            logger.debug("Backend persistence disabled", kind=kind)
            self._stats["dropped"] += 1
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if len(self._pending) == self._pending.maxlen:
                self._stats["dropped"] += 1
            self._pending.append((kind, payload))
            return

        self._schedule(loop, kind, payload)

    def flush(self) -> int:
        """Schedule queued submissions if a loop is running."""
        if self.client is None or not self._pending:
            return 0

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return 0

        count = 0
        while self._pending:
            kind, payload = self._pending.popleft()
            self._schedule(loop, kind, payload)
            count += 1

        logger.debug("Flushed pending backend submissions", count=count)
        return count

    def _schedule(
        self,
        loop: asyncio.AbstractEventLoop,
        kind: str,
        payload: Dict[str, Any],
    ) -> None:
        task = loop.create_task(self._deliver(kind, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._stats["submitted"] += 1

    async def _deliver(self, kind: str, payload: Dict[str, Any]) -> None:
        try:
            if kind == INCIDENT:
                await self.client.post_incident(payload)
            else:
                await self.client.post_event(payload)
            self._stats["delivered"] += 1
        except BackendUnavailable as e:
            self._fail(e)
        except (TypeError, ValueError) as e:
            # Payload could not be encoded; the backend was never reached
            self._stats["rejected"] += 1
            logger.error(f"Backend payload encoding error: {e}", kind=kind)
        except Exception as e:
            self._fail(BackendUnavailable(kind, e))

    def _fail(self, error: BackendUnavailable) -> None:
        self._stats["failed"] += 1
        logger.warning(
            "Backend submission failed",
            endpoint=error.endpoint,
            error=str(error),
        )

        if self._on_failure:
            try:
                self._on_failure(error)
            except Exception as e:
                logger.error(f"Backend failure callback error: {e}")

    async def wait_idle(self) -> None:
        """Wait for in-flight submissions to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel(self) -> None:
        """Cancel in-flight submissions."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def close(self) -> None:
        await self.cancel()
        if self.client is not None:
            await self.client.aclose()

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "pending": len(self._pending),
            "in_flight": len(self._tasks),
        }

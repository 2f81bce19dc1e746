"""OAuth Device Authorization Grant client.

    IDLE -> REQUESTED -> POLLING -> SUCCEEDED | DENIED | EXPIRED

The poller sleeps for the server-given interval *before* every token
request and widens the interval on ``slow_down``.  A background poll can be
cancelled; the pending sleep is cancelled with it, so no further request is
sent.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Any, Awaitable, Callable

import httpx

from search_assistant.config import ProviderSpec
from search_assistant.errors import AuthDeniedError, AuthExpiredError, AuthStartError
from search_assistant.types import DeviceAuthSession

_logger = logging.getLogger(__name__)

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
SLOW_DOWN_STEP = 5


class DeviceAuthState(enum.Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    DENIED = "denied"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class DeviceAuthClient:
    """Runs one device authorization at a time.

    Parameters
    ----------
    http:
        Client used for both endpoints.  Tests inject one backed by
        ``httpx.MockTransport``.
    provider:
        Endpoint URLs, client id and scope.
    slow_down_step:
        Seconds added to the interval on every ``slow_down`` answer.
    clock, sleep:
        Time source and sleeper; injectable for tests.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        provider: ProviderSpec,
        slow_down_step: int = SLOW_DOWN_STEP,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._http = http
        self._provider = provider
        self._slow_down_step = slow_down_step
        self._clock = clock
        self._sleep = sleep
        self._state = DeviceAuthState.IDLE
        self._session: DeviceAuthSession | None = None
        self._task: asyncio.Task[str] | None = None

    @property
    def state(self) -> DeviceAuthState:
        return self._state

    @property
    def session(self) -> DeviceAuthSession | None:
        return self._session

    # ------------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------------

    async def start(self) -> DeviceAuthSession:
        """Request a device code and user code."""
        if not self._provider.client_id:
            raise AuthStartError("Missing OAuth client id.")

        self._state = DeviceAuthState.REQUESTED
        payload = {"client_id": self._provider.client_id, "scope": self._provider.scope}
        try:
            resp = await self._http.post(
                self._provider.device_code_url,
                json=payload,
                headers=self._provider.base_headers(),
            )
        except httpx.HTTPError as e:
            self._state = DeviceAuthState.IDLE
            raise AuthStartError(f"Failed to start device code flow: {e}") from e

        if not resp.is_success:
            self._state = DeviceAuthState.IDLE
            _logger.warning("Device code request returned %d", resp.status_code)
            raise AuthStartError("Failed to start device code flow.")

        try:
            data = resp.json()
            session = DeviceAuthSession(
                device_code=data["device_code"],
                user_code=data["user_code"],
                verification_uri=data["verification_uri"],
                expires_in=int(data["expires_in"]),
                interval=int(data.get("interval") or SLOW_DOWN_STEP),
            )
        except (ValueError, KeyError, TypeError) as e:
            self._state = DeviceAuthState.IDLE
            raise AuthStartError("Device code response was incomplete.") from e

        self._session = session
        self._state = DeviceAuthState.POLLING
        _logger.info(
            "Device authorization started; code expires in %ds", session.expires_in,
        )
        return session

    async def poll(self, session: DeviceAuthSession) -> str:
        """Poll the token endpoint until the user approves, denies or times out.

        Returns the issued access token.
        """
        self._session = session
        self._state = DeviceAuthState.POLLING
        try:
            return await self._poll_loop(session)
        except asyncio.CancelledError:
            self._state = DeviceAuthState.CANCELLED
            raise

    async def _poll_loop(self, session: DeviceAuthSession) -> str:
        started = self._clock()
        interval = session.interval

        while self._clock() - started < session.expires_in:
            await self._sleep(interval)
            payload = await self._request_token(session)

            token = payload.get("access_token")
            if token:
                self._state = DeviceAuthState.SUCCEEDED
                _logger.info("Device authorization approved")
                return token

            error = payload.get("error")
            if error == "slow_down":
                interval += self._slow_down_step
                session.interval = interval
                _logger.warning("Token endpoint asked to slow down; interval now %ds", interval)
                continue
            if error == "authorization_pending" or not error:
                _logger.debug("Authorization pending")
                continue

            self._state = DeviceAuthState.DENIED
            raise AuthDeniedError(payload.get("error_description") or error)

        self._state = DeviceAuthState.EXPIRED
        raise AuthExpiredError("Device code expired. Please try again.")

    async def _request_token(self, session: DeviceAuthSession) -> dict[str, Any]:
        body = {
            "client_id": self._provider.client_id,
            "device_code": session.device_code,
            "grant_type": DEVICE_GRANT_TYPE,
        }
        try:
            resp = await self._http.post(
                self._provider.access_token_url,
                json=body,
                headers=self._provider.base_headers(),
            )
        except httpx.HTTPError as e:
            self._state = DeviceAuthState.DENIED
            raise AuthDeniedError(f"Failed to complete device code flow: {e}") from e

        if not resp.is_success:
            self._state = DeviceAuthState.DENIED
            _logger.warning("Token endpoint returned %d", resp.status_code)
            raise AuthDeniedError("Failed to complete device code flow.")

        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Background polling
    # ------------------------------------------------------------------

    def start_polling(self, session: DeviceAuthSession) -> asyncio.Task[str]:
        """Run :meth:`poll` as a cancellable background task."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self.poll(session))
        return self._task

    def cancel(self) -> bool:
        """Abort a background poll.  Returns True if one was running."""
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        self._state = DeviceAuthState.CANCELLED
        _logger.info("Device authorization polling cancelled")
        return True

    def reset(self) -> None:
        """Cancel any poll and forget the active session."""
        self.cancel()
        self._session = None
        self._state = DeviceAuthState.IDLE

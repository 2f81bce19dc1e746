"""Exchange a sign-in credential for a short-lived service bearer token.

    EMPTY -> VALID -> INVALIDATED -> VALID

Callers that see 401/403 from a downstream API call :meth:`invalidate`
once and then :meth:`ensure_token` once more; the broker itself never
retries.
"""

from __future__ import annotations

import asyncio
import enum
import hashlib
import logging
import time
from typing import Callable

import httpx

from search_assistant.config import ProviderSpec
from search_assistant.errors import TokenAcquisitionError
from search_assistant.types import CachedToken

_logger = logging.getLogger(__name__)

# Treat a token this close to its expiry as already expired (seconds)
_EXPIRY_SKEW = 60


class TokenState(enum.Enum):
    EMPTY = "empty"
    VALID = "valid"
    INVALIDATED = "invalidated"


def _fingerprint(credential: str) -> str:
    return hashlib.sha256(credential.encode()).hexdigest()


class TokenBroker:
    """Caches one service token per instance."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        provider: ProviderSpec,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._provider = provider
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = TokenState.EMPTY
        self._cached: CachedToken | None = None
        self._credential_fp: str | None = None

    @property
    def state(self) -> TokenState:
        return self._state

    @property
    def cached(self) -> CachedToken | None:
        return self._cached

    async def ensure_token(self, credential: str) -> str:
        """Return a usable service token, acquiring one if needed."""
        async with self._lock:
            cached = self._cached
            if cached is not None and self._usable(credential):
                return cached.value
            return await self._acquire(credential)

    def invalidate(self) -> bool:
        """Mark the cached token unusable.  Returns False if nothing was valid."""
        if self._state is not TokenState.VALID:
            return False
        _logger.info("Service token invalidated")
        self._state = TokenState.INVALIDATED
        self._cached = None
        return True

    def clear(self) -> None:
        self._state = TokenState.EMPTY
        self._cached = None
        self._credential_fp = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _usable(self, credential: str) -> bool:
        if self._state is not TokenState.VALID or self._cached is None:
            return False
        if self._credential_fp != _fingerprint(credential):
            return False
        expires_at = self._cached.expires_at
        if expires_at is not None and self._clock() >= expires_at - _EXPIRY_SKEW:
            _logger.debug("Cached service token expired")
            return False
        return True

    async def _acquire(self, credential: str) -> str:
        headers = self._provider.base_headers()
        headers["Authorization"] = f"token {credential}"
        try:
            resp = await self._http.get(self._provider.service_token_url, headers=headers)
        except httpx.HTTPError as e:
            raise TokenAcquisitionError(f"Failed to retrieve service token: {e}") from e

        if not resp.is_success:
            _logger.warning("Service token endpoint returned %d", resp.status_code)
            raise TokenAcquisitionError("Failed to retrieve service token.")

        try:
            payload = resp.json()
        except ValueError as e:
            raise TokenAcquisitionError("Service token response was not JSON.") from e

        value = payload.get("token") if isinstance(payload, dict) else None
        if not value:
            raise TokenAcquisitionError("Service token missing from response.")

        expires_at = payload.get("expires_at")
        self._cached = CachedToken(
            value=value,
            acquired_at=self._clock(),
            expires_at=float(expires_at) if isinstance(expires_at, (int, float)) else None,
        )
        self._credential_fp = _fingerprint(credential)
        self._state = TokenState.VALID
        _logger.info("Acquired service token")
        return value

"""GitHub Copilot chat provider.

Wires the device flow, the service-token broker and the SSE decoder behind
the ``ChatProvider`` contract.  A 401/403 from the chat or models endpoint
invalidates the service token and retries exactly once.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from search_assistant.auth.credentials import CredentialStore
from search_assistant.auth.device_flow import SLOW_DOWN_STEP, DeviceAuthClient
from search_assistant.auth.token_broker import TokenBroker
from search_assistant.config import ProviderSpec
from search_assistant.core.conversation import build_wire_messages
from search_assistant.errors import ChatRequestError
from search_assistant.llm.stream_decoder import StreamDecoder
from search_assistant.types import (
    AUTH_MODES,
    AuthMode,
    AuthResult,
    ChatSendRequest,
    DeviceAuthSession,
    StreamReply,
)

_logger = logging.getLogger(__name__)

_AUTH_FAILURES = (401, 403)
# One initial attempt plus one after refreshing the service token
_MAX_ATTEMPTS = 2

SIGN_IN_REQUIRED = (
    "Sign in with GitHub to enable live Copilot chat. The UI is ready, "
    "but the Copilot API requires an authenticated token."
)


class CopilotProvider:
    """Chat provider backed by the Copilot chat-completions API.

    Parameters
    ----------
    http:
        Transport for every request this provider makes.
    spec:
        Endpoints and client identity.
    credentials:
        Where the long-lived GitHub credential is kept.
    on_content:
        Optional callback receiving each streamed content delta.
    """

    id = "copilot"

    def __init__(
        self,
        http: httpx.AsyncClient,
        spec: ProviderSpec | None = None,
        credentials: CredentialStore | None = None,
        slow_down_step: int = SLOW_DOWN_STEP,
        device_auth: DeviceAuthClient | None = None,
        broker: TokenBroker | None = None,
        on_content: Callable[[str], None] | None = None,
    ) -> None:
        self._http = http
        self._spec = spec or ProviderSpec()
        self._credentials = credentials or CredentialStore()
        self._device_auth = device_auth or DeviceAuthClient(
            http, self._spec, slow_down_step=slow_down_step,
        )
        self._broker = broker or TokenBroker(http, self._spec)
        self.on_content = on_content
        self.name = self._spec.name

    @property
    def device_auth(self) -> DeviceAuthClient:
        return self._device_auth

    @property
    def broker(self) -> TokenBroker:
        return self._broker

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    @property
    def is_signed_in(self) -> bool:
        return self._credentials.get_token() is not None

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------

    async def connect(self, mode: AuthMode) -> AuthResult:
        """Begin sign-in.

        ``token`` needs no network call: the caller pastes a personal token
        and hands it to :meth:`store_token`.  The other modes start a device
        authorization whose code the UI shows to the user.
        """
        if mode not in AUTH_MODES:
            raise ValueError(f"Unknown auth mode: {mode}")
        if mode == "token":
            return AuthResult(status_message="Paste a GitHub token to store it locally.")

        session = await self._device_auth.start()
        return AuthResult.from_session(
            session, "Complete GitHub device verification to finish sign-in.",
        )

    async def complete_sign_in(
        self,
        session: DeviceAuthSession,
        mode: AuthMode = "device_code",
    ) -> str:
        """Poll the device flow to completion and store the credential."""
        token = await self._device_auth.poll(session)
        self._credentials.set_token(token, mode)
        self._broker.clear()
        return token

    def store_token(self, token: str) -> None:
        self._credentials.set_token(token, "token")
        self._broker.clear()

    def sign_out(self) -> None:
        self._device_auth.reset()
        self._broker.clear()
        self._credentials.clear()
        _logger.info("Signed out of %s", self.name)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def build_body(self, request: ChatSendRequest) -> dict[str, Any]:
        settings = request.settings
        body: dict[str, Any] = {
            "intent": False,
            "model": settings.model,
            "temperature": settings.temperature,
            "top_p": 1,
            "n": 1,
            "stream": True,
            "messages": build_wire_messages(
                request.messages, settings.system_prompt, request.tool_summary,
            ),
        }
        if request.functions:
            body["functions"] = request.functions
            body["function_call"] = "auto"
        return body

    async def send_message(self, request: ChatSendRequest) -> StreamReply:
        credential = self._credentials.get_token()
        if not credential:
            return StreamReply(content=SIGN_IN_REQUIRED)

        body = self.build_body(request)
        for attempt in range(_MAX_ATTEMPTS):
            token = await self._broker.ensure_token(credential)
            async with self._http.stream(
                "POST", self._spec.chat_url, json=body, headers=self._headers(token),
            ) as resp:
                if resp.status_code in _AUTH_FAILURES and attempt + 1 < _MAX_ATTEMPTS:
                    _logger.warning(
                        "Chat request returned %d; refreshing service token",
                        resp.status_code,
                    )
                    self._broker.invalidate()
                    continue
                if not resp.is_success:
                    detail = (await resp.aread()).decode(errors="replace")
                    _logger.error(
                        "Chat request failed with %d: %.500s", resp.status_code, detail,
                    )
                    raise ChatRequestError("Copilot chat request failed.", resp.status_code)

                decoder = StreamDecoder(on_content=self.on_content)
                return await decoder.decode(resp.aiter_bytes())

        raise ChatRequestError("Copilot chat request failed.")

    async def list_models(self) -> list[dict[str, Any]]:
        """Models the signed-in account may use."""
        credential = self._credentials.get_token()
        if not credential:
            return []

        for attempt in range(_MAX_ATTEMPTS):
            token = await self._broker.ensure_token(credential)
            resp = await self._http.get(self._spec.models_url, headers=self._headers(token))
            if resp.status_code in _AUTH_FAILURES and attempt + 1 < _MAX_ATTEMPTS:
                _logger.warning(
                    "Models request returned %d; refreshing service token",
                    resp.status_code,
                )
                self._broker.invalidate()
                continue
            if not resp.is_success:
                raise ChatRequestError("Copilot models request failed.", resp.status_code)
            try:
                payload = resp.json()
            except ValueError as e:
                raise ChatRequestError("Copilot models response was not JSON.") from e
            models = payload.get("data", []) if isinstance(payload, dict) else []
            return [m for m in models if isinstance(m, dict)]

        raise ChatRequestError("Copilot models request failed.")

    async def aclose(self) -> None:
        self._device_auth.cancel()

    def _headers(self, token: str) -> dict[str, str]:
        headers = self._spec.base_headers()
        headers["Authorization"] = f"Bearer {token}"
        return headers

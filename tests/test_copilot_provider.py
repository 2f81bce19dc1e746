"""Tests for CopilotProvider against a mocked Copilot API."""

from __future__ import annotations

import json

import httpx
import pytest

from search_assistant.auth.credentials import CredentialStore
from search_assistant.auth.device_flow import DeviceAuthClient, DeviceAuthState
from search_assistant.auth.token_broker import TokenState
from search_assistant.config import ProviderSpec
from search_assistant.errors import ChatRequestError, TokenAcquisitionError, UnknownProviderError
from search_assistant.providers.base import ChatProvider, ProviderRegistry
from search_assistant.providers.copilot import SIGN_IN_REQUIRED, CopilotProvider
from search_assistant.types import (
    ChatMessage,
    ChatSendRequest,
    ChatSettings,
    DeviceAuthSession,
    FunctionCall,
)

SPEC = ProviderSpec()


def _sse(*events: dict) -> bytes:
    body = "".join(f"data: {json.dumps(e)}\n\n" for e in events) + "data: [DONE]\n\n"
    return body.encode()


_TEXT_STREAM = _sse(
    {"choices": [{"delta": {"content": "Two "}}]},
    {"choices": [{"delta": {"content": "indexes."}}]},
)


class CopilotService:
    """Mock of the token, chat and models endpoints."""

    def __init__(
        self,
        chat_statuses: list[int] | None = None,
        stream: bytes = _TEXT_STREAM,
        models_statuses: list[int] | None = None,
        token_status: int = 200,
    ) -> None:
        self.chat_statuses = chat_statuses or [200]
        self.models_statuses = models_statuses or [200]
        self.stream = stream
        self.token_status = token_status
        self.token_calls = 0
        self.chat_requests: list[httpx.Request] = []
        self.models_requests: list[httpx.Request] = []
        self.device_requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == SPEC.service_token_url:
            self.token_calls += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"message": "nope"})
            return httpx.Response(200, json={"token": f"svc-{self.token_calls}"})
        if url == SPEC.chat_url:
            self.chat_requests.append(request)
            status = self._status(self.chat_statuses, len(self.chat_requests))
            if status != 200:
                return httpx.Response(status, text="unauthorized")
            return httpx.Response(
                200, content=self.stream, headers={"content-type": "text/event-stream"},
            )
        if url == SPEC.models_url:
            self.models_requests.append(request)
            status = self._status(self.models_statuses, len(self.models_requests))
            if status != 200:
                return httpx.Response(status, json={})
            return httpx.Response(200, json={"data": [
                {"id": "gpt-5-mini", "name": "GPT-5 mini", "vendor": "OpenAI"},
                "junk",
            ]})
        if url == SPEC.device_code_url:
            self.device_requests.append(request)
            return httpx.Response(200, json={
                "device_code": "dev-1",
                "user_code": "WXYZ-0000",
                "verification_uri": "https://github.com/login/device",
                "expires_in": 900,
                "interval": 5,
            })
        if url == SPEC.access_token_url:
            return httpx.Response(200, json={"access_token": "gho_device"})
        return httpx.Response(404)

    @staticmethod
    def _status(statuses: list[int], count: int) -> int:
        return statuses[min(count - 1, len(statuses) - 1)]


@pytest.fixture
def service() -> CopilotService:
    return CopilotService()


def _provider(service: CopilotService, signed_in: bool = True) -> CopilotProvider:
    http = httpx.AsyncClient(transport=httpx.MockTransport(service))
    provider = CopilotProvider(http, SPEC, credentials=CredentialStore())
    if signed_in:
        provider.store_token("gho_cred")
    return provider


def _request(*messages: ChatMessage, functions=None, summary: str = "") -> ChatSendRequest:
    return ChatSendRequest(
        messages=list(messages) or [ChatMessage.create("user", "How many indexes?")],
        settings=ChatSettings(model="gpt-5-mini", temperature=0.2, system_prompt="Rules."),
        functions=functions or [],
        tool_summary=summary,
    )


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class TestSendMessage:
    async def test_not_signed_in(self, service: CopilotService):
        provider = _provider(service, signed_in=False)

        reply = await provider.send_message(_request())

        assert reply.content == SIGN_IN_REQUIRED
        assert service.token_calls == 0
        assert service.chat_requests == []

    async def test_streams_reply(self, service: CopilotService):
        provider = _provider(service)

        reply = await provider.send_message(_request())

        assert reply.content == "Two indexes."
        assert service.token_calls == 1
        request = service.chat_requests[0]
        assert request.headers["Authorization"] == "Bearer svc-1"
        assert request.headers["Editor-Plugin-Version"] == SPEC.plugin_version

    async def test_request_body(self, service: CopilotService):
        provider = _provider(service)
        schemas = [{"name": "resource_read", "parameters": {"type": "object"}}]

        await provider.send_message(_request(functions=schemas, summary="Available tools: x"))

        body = json.loads(service.chat_requests[0].content)
        assert body["model"] == "gpt-5-mini"
        assert body["stream"] is True
        assert body["intent"] is False
        assert body["n"] == 1
        assert body["top_p"] == 1
        assert body["functions"] == schemas
        assert body["function_call"] == "auto"
        assert body["messages"] == [
            {"role": "system", "content": "Rules."},
            {"role": "system", "content": "Available tools: x"},
            {"role": "user", "content": "How many indexes?"},
        ]

    async def test_body_without_tools(self, service: CopilotService):
        provider = _provider(service)
        body = provider.build_body(_request())
        assert "functions" not in body
        assert "function_call" not in body

    async def test_tool_turn_sent_as_system_message(self, service: CopilotService):
        provider = _provider(service)
        tool_turn = ChatMessage.create("tool", "Tool response: resource_read", data={"name": "hotels"})

        body = provider.build_body(_request(ChatMessage.create("user", "q"), tool_turn))

        last = body["messages"][-1]
        assert last["role"] == "system"
        assert last["content"].startswith("Tool response:\n")
        assert json.loads(last["content"].split("\n", 1)[1]) == {"name": "hotels"}

    async def test_function_call_decoded(self):
        service = CopilotService(stream=_sse(
            {"choices": [{"delta": {"function_call": {"name": "service_details", "arguments": "{}"}}}]},
        ))
        reply = await _provider(service).send_message(_request())
        assert reply.function_call == FunctionCall("service_details", "{}")

    async def test_on_content_callback(self, service: CopilotService):
        provider = _provider(service)
        seen: list[str] = []
        provider.on_content = seen.append

        await provider.send_message(_request())

        assert seen == ["Two ", "indexes."]

    async def test_unauthorized_refreshes_token_once(self):
        service = CopilotService(chat_statuses=[401, 200])
        provider = _provider(service)

        reply = await provider.send_message(_request())

        assert reply.content == "Two indexes."
        assert service.token_calls == 2
        assert len(service.chat_requests) == 2
        assert service.chat_requests[1].headers["Authorization"] == "Bearer svc-2"

    @pytest.mark.parametrize("statuses", [[401, 401], [403, 401], [401, 403]])
    async def test_second_auth_failure_raises(self, statuses):
        service = CopilotService(chat_statuses=statuses)
        provider = _provider(service)

        with pytest.raises(ChatRequestError) as exc:
            await provider.send_message(_request())

        assert exc.value.status_code == statuses[1]
        assert len(service.chat_requests) == 2
        assert service.token_calls == 2

    async def test_server_error_not_retried(self):
        service = CopilotService(chat_statuses=[500])
        provider = _provider(service)

        with pytest.raises(ChatRequestError, match="Copilot chat request failed") as exc:
            await provider.send_message(_request())

        assert exc.value.status_code == 500
        assert len(service.chat_requests) == 1
        assert provider.broker.state is TokenState.VALID

    async def test_token_failure_propagates(self):
        service = CopilotService(token_status=401)
        with pytest.raises(TokenAcquisitionError):
            await _provider(service).send_message(_request())
        assert service.chat_requests == []


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class TestListModels:
    async def test_returns_model_entries(self, service: CopilotService):
        models = await _provider(service).list_models()
        assert models == [{"id": "gpt-5-mini", "name": "GPT-5 mini", "vendor": "OpenAI"}]

    async def test_not_signed_in(self, service: CopilotService):
        assert await _provider(service, signed_in=False).list_models() == []
        assert service.models_requests == []

    async def test_forbidden_retried_once(self):
        service = CopilotService(models_statuses=[403, 200])
        models = await _provider(service).list_models()
        assert len(models) == 1
        assert service.token_calls == 2

    async def test_failure(self):
        service = CopilotService(models_statuses=[500])
        with pytest.raises(ChatRequestError):
            await _provider(service).list_models()


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------

class TestSignIn:
    def test_satisfies_provider_protocol(self, service: CopilotService):
        assert isinstance(_provider(service), ChatProvider)

    async def test_token_mode_makes_no_request(self, service: CopilotService):
        result = await _provider(service, signed_in=False).connect("token")
        assert result.user_code is None
        assert "token" in result.status_message
        assert service.device_requests == []

    @pytest.mark.parametrize("mode", ["device_code", "browser"])
    async def test_device_modes(self, service: CopilotService, mode):
        provider = _provider(service, signed_in=False)

        result = await provider.connect(mode)

        assert result.user_code == "WXYZ-0000"
        assert result.verification_uri == "https://github.com/login/device"
        assert result.open_url == result.verification_uri
        assert result.expires_in == 900
        assert result.to_session().device_code == "dev-1"

    async def test_unknown_mode(self, service: CopilotService):
        with pytest.raises(ValueError):
            await _provider(service).connect("password")  # type: ignore[arg-type]

    async def test_complete_sign_in_stores_credential(self, service: CopilotService):
        async def no_sleep(seconds: float) -> None:
            return None

        http = httpx.AsyncClient(transport=httpx.MockTransport(service))
        credentials = CredentialStore()
        provider = CopilotProvider(
            http, SPEC, credentials=credentials,
            device_auth=DeviceAuthClient(http, SPEC, sleep=no_sleep),
        )
        session = DeviceAuthSession("dev-1", "WXYZ-0000", "https://github.com/login/device", 900)

        token = await provider.complete_sign_in(session, "browser")

        assert token == "gho_device"
        assert credentials.get_token() == "gho_device"
        assert credentials.get_mode() == "browser"
        assert provider.is_signed_in

    async def test_sign_out(self, service: CopilotService):
        provider = _provider(service)
        await provider.send_message(_request())

        provider.sign_out()

        assert not provider.is_signed_in
        assert provider.broker.state is TokenState.EMPTY
        assert provider.device_auth.state is DeviceAuthState.IDLE

    async def test_store_token_resets_broker(self, service: CopilotService):
        provider = _provider(service)
        await provider.send_message(_request())

        provider.store_token("gho_other")
        await provider.send_message(_request())

        assert service.token_calls == 2


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestProviderRegistry:
    async def test_routes_by_provider_id(self, service: CopilotService):
        registry = ProviderRegistry()
        registry.register(_provider(service))

        reply = await registry.send_message(_request())

        assert reply.content == "Two indexes."
        assert registry.ids == ["copilot"]

    async def test_unknown_provider(self):
        registry = ProviderRegistry()
        request = _request()
        request.provider_id = "openai"
        with pytest.raises(UnknownProviderError):
            await registry.send_message(request)

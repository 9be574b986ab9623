"""Tests for the Generation Service backends — HTTP and SDK layers stubbed."""

import json
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest
from anthropic.types import TextBlock

from brandreply.config import AppConfig
from brandreply.errors import EmptyResultError, GenerationError, ServiceError
from brandreply.generation.service import (
    AnthropicGenerationService,
    GeminiGenerationService,
    GenerationService,
    create_generation_service,
)

ENDPOINT = "https://generation.test/v1beta/models/test-model:generateContent"


def gemini(handler: object, api_key: str = "test-key") -> GeminiGenerationService:
    return GeminiGenerationService(
        ENDPOINT, api_key, transport=httpx.MockTransport(handler)  # type: ignore[arg-type]
    )


def json_response(body: object, status: int = 200) -> object:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)

    return handler


# ── Gemini ─────────────────────────────────────────────────────────────────────


class TestGeminiGenerationService:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(GeminiGenerationService(ENDPOINT, "k"), GenerationService)

    async def test_returns_reply_text(self) -> None:
        service = gemini(json_response({"candidates": [{"content": {"parts": [{"text": "Hello"}]}}]}))
        assert await service.generate("prompt") == "Hello"

    async def test_sends_expected_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})

        await gemini(handler, api_key="secret").generate("the prompt")

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert request.url.params["key"] == "secret"
        assert str(request.url).startswith(ENDPOINT)
        assert json.loads(request.content) == {
            "contents": [{"role": "user", "parts": [{"text": "the prompt"}]}]
        }

    async def test_http_500_raises_service_error(self) -> None:
        service = gemini(json_response({"error": "boom"}, status=500))
        with pytest.raises(ServiceError) as info:
            await service.generate("prompt")
        assert info.value.status_code == 500
        assert "500" in info.value.user_message

    async def test_http_403_raises_service_error(self) -> None:
        service = gemini(json_response({}, status=403))
        with pytest.raises(ServiceError) as info:
            await service.generate("prompt")
        assert info.value.status_code == 403

    async def test_empty_candidates_raises_empty_result(self) -> None:
        service = gemini(json_response({"candidates": []}))
        with pytest.raises(EmptyResultError):
            await service.generate("prompt")

    async def test_non_json_body_raises_empty_result(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(EmptyResultError):
            await gemini(handler).generate("prompt")

    async def test_transport_error_raises_service_error_without_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ServiceError) as info:
            await gemini(handler).generate("prompt")
        assert info.value.status_code is None

    async def test_issues_exactly_one_request_on_failure(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(503)

        with pytest.raises(ServiceError):
            await gemini(handler).generate("prompt")
        assert len(calls) == 1


# ── Anthropic ──────────────────────────────────────────────────────────────────


class TestAnthropicGenerationService:
    @pytest.fixture
    def service(self) -> AnthropicGenerationService:
        return AnthropicGenerationService(api_key="test-key")

    def _mock_response(self, *blocks: object) -> MagicMock:
        r = MagicMock()
        r.content = list(blocks)
        r.stop_reason = "end_turn"
        return r

    async def test_returns_first_text_block(self, service: AnthropicGenerationService) -> None:
        service._client.messages.create = AsyncMock(  # type: ignore[method-assign]
            return_value=self._mock_response(TextBlock(type="text", text="Dear Dana, ..."))
        )
        assert await service.generate("prompt") == "Dear Dana, ..."

    async def test_sends_prompt_as_single_user_message(self, service: AnthropicGenerationService) -> None:
        create = AsyncMock(return_value=self._mock_response(TextBlock(type="text", text="x")))
        service._client.messages.create = create  # type: ignore[method-assign]

        await service.generate("the prompt")

        assert create.call_args.kwargs["messages"] == [{"role": "user", "content": "the prompt"}]

    async def test_no_text_raises_empty_result(self, service: AnthropicGenerationService) -> None:
        service._client.messages.create = AsyncMock(  # type: ignore[method-assign]
            return_value=self._mock_response()
        )
        with pytest.raises(EmptyResultError):
            await service.generate("prompt")

    async def test_status_error_raises_service_error(self, service: AnthropicGenerationService) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(529, request=request)
        error = anthropic.APIStatusError("overloaded", response=response, body=None)
        service._client.messages.create = AsyncMock(side_effect=error)  # type: ignore[method-assign]

        with pytest.raises(ServiceError) as info:
            await service.generate("prompt")
        assert info.value.status_code == 529


# ── Factory ────────────────────────────────────────────────────────────────────


class TestCreateGenerationService:
    def test_gemini_by_default(self) -> None:
        assert isinstance(create_generation_service(AppConfig(app_id="a")), GeminiGenerationService)

    def test_anthropic_backend(self) -> None:
        config = AppConfig(app_id="a", generation_backend="anthropic", anthropic_api_key="k")
        assert isinstance(create_generation_service(config), AnthropicGenerationService)

    def test_unknown_backend(self) -> None:
        with pytest.raises(GenerationError):
            create_generation_service(AppConfig(app_id="a", generation_backend="carrier-pigeon"))

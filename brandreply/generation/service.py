"""Generation Service backends: a black box from prompt to reply text."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import anthropic
import httpx
from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from brandreply.config import AppConfig
from brandreply.errors import EmptyResultError, GenerationError, ServiceError
from brandreply.generation.prompts import build_payload, extract_text

logger = logging.getLogger(__name__)

# Safety margin only; a reply normally arrives well within this.
_TIMEOUT_SECONDS = 60.0

_ANTHROPIC_MODEL = "claude-sonnet-4-6"
_ANTHROPIC_MAX_TOKENS = 1024


@runtime_checkable
class GenerationService(Protocol):
    """Turns a prompt into reply text.

    Raises:
        ServiceError: on a non-2xx response or a transport failure.
        EmptyResultError: when a successful response holds no usable text.
    """

    async def generate(self, prompt: str) -> str:
        ...


class GeminiGenerationService:
    """POSTs a single-turn generateContent request over HTTP.

    Exactly one request per call; no retries.  Pass ``transport`` to stub the
    HTTP layer in tests.

    Usage::

        service = GeminiGenerationService(endpoint, api_key)
        text = await service.generate(prompt)
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._api_key = api_key
        self._transport = transport

    async def generate(self, prompt: str) -> str:
        params = {"key": self._api_key} if self._api_key else None
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS, transport=self._transport) as client:
            try:
                response = await client.post(
                    self._endpoint,
                    params=params,
                    headers={"Content-Type": "application/json"},
                    json=build_payload(prompt),
                )
            except httpx.HTTPError as exc:
                raise ServiceError(None, f"Generation request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Generation service returned %d: %s",
                response.status_code,
                response.text[:200],
            )
            raise ServiceError(response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise EmptyResultError("Generation service returned a non-JSON body") from exc

        text = extract_text(body)
        if text is None:
            raise EmptyResultError("Generation response had no candidate with content parts")
        return text


class AnthropicGenerationService:
    """Same contract over the Anthropic Messages API."""

    def __init__(self, api_key: str, model: str = _ANTHROPIC_MODEL) -> None:
        self._client = AsyncAnthropic(api_key=api_key)
        self._model = model

    async def generate(self, prompt: str) -> str:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=_ANTHROPIC_MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as exc:
            raise ServiceError(exc.status_code, str(exc)) from exc
        except anthropic.APIConnectionError as exc:
            raise ServiceError(None, str(exc)) from exc

        for block in response.content:
            if isinstance(block, TextBlock) and block.text:
                return block.text

        raise EmptyResultError(
            f"Anthropic response held no text (stop_reason={response.stop_reason!r})"
        )


def create_generation_service(config: AppConfig) -> GenerationService:
    """Return the backend named by ``config.generation_backend``."""
    if config.generation_backend == "anthropic":
        return AnthropicGenerationService(api_key=config.anthropic_api_key)
    if config.generation_backend == "gemini":
        return GeminiGenerationService(config.generation_endpoint, config.api_key)
    raise GenerationError(f"Unknown generation backend {config.generation_backend!r}")

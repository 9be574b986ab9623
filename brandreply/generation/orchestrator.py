"""Reply orchestrator: turns settings and an inbound email into a generated reply."""

from __future__ import annotations

import dataclasses
import logging

from brandreply.errors import GenerationError, ValidationError
from brandreply.generation.prompts import build_prompt
from brandreply.generation.service import GenerationService
from brandreply.generation.types import OutcomeStatus, RequestOutcome
from brandreply.profile.types import Settings

logger = logging.getLogger(__name__)

_UNEXPECTED_ERROR_MESSAGE = (
    "An error occurred while generating the reply. Please check your API key and try again."
)


class ReplyOrchestrator:
    """Validates input, builds the prompt, and calls the Generation Service once.

    Only the most recent request is current.  Starting a new ``generate()``
    resets ``current`` to Pending (clearing the previous reply); a result that
    arrives for an older request is handed back flagged ``superseded`` and
    does not overwrite the newer state.

    Usage::

        orchestrator = ReplyOrchestrator(GeminiGenerationService(endpoint, key))
        outcome = await orchestrator.generate(email_text, session.settings)
        if outcome.ok:
            print(outcome.text)
    """

    def __init__(self, service: GenerationService) -> None:
        self._service = service
        self._latest_request = 0
        self.current: RequestOutcome | None = None

    @property
    def reply(self) -> str:
        """Text of the current reply, or "" while pending or after a failure."""
        if self.current is not None and self.current.status == OutcomeStatus.SUCCESS:
            return self.current.text or ""
        return ""

    async def generate(self, inbound_email: str, settings: Settings) -> RequestOutcome:
        """Generate a reply. Never raises for generation or validation failures."""
        self._latest_request += 1
        request_id = self._latest_request

        if not inbound_email or not inbound_email.strip():
            outcome = RequestOutcome.failure(
                request_id, ValidationError("Inbound email is empty")
            )
            self.current = outcome
            return outcome

        self.current = RequestOutcome.pending(request_id)
        prompt = build_prompt(settings, inbound_email)

        try:
            text = await self._service.generate(prompt)
        except GenerationError as exc:
            logger.error("Error generating reply (request %d): %s", request_id, exc)
            outcome = RequestOutcome.failure(request_id, exc)
        except Exception as exc:  # noqa: BLE001
            logger.error("Unexpected error generating reply (request %d): %s", request_id, exc, exc_info=True)
            outcome = RequestOutcome.failure(
                request_id,
                GenerationError(str(exc), user_message=_UNEXPECTED_ERROR_MESSAGE),
            )
        else:
            outcome = RequestOutcome.success(request_id, text)

        if request_id != self._latest_request:
            logger.info(
                "Discarding result of request %d: superseded by request %d",
                request_id,
                self._latest_request,
            )
            return dataclasses.replace(outcome, superseded=True)

        self.current = outcome
        return outcome

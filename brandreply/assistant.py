"""Reply assistant: wires the session and orchestrator, and owns the error boundary.

Every user-facing operation here catches the errors of its own layer and turns
them into a Notice, so nothing raised by the store, provider, or generation
service ever escapes to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from brandreply.config import AppConfig
from brandreply.errors import (
    BrandReplyError,
    IdentityError,
    NotReadyError,
    ProfileWriteError,
)
from brandreply.generation.orchestrator import ReplyOrchestrator
from brandreply.generation.service import GenerationService, create_generation_service
from brandreply.generation.types import RequestOutcome
from brandreply.identity.provider import IdentityProvider, create_identity_provider
from brandreply.profile.db import SqliteProfileStore
from brandreply.profile.store import InMemoryProfileStore, ProfileStore
from brandreply.profile.types import Settings
from brandreply.session.controller import SessionController, SyncState

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """A user-visible message produced by an operation."""

    level: NoticeLevel
    message: str


class ReplyAssistant:
    """Session + orchestrator behind a never-raising interface.

    Usage::

        async with build_assistant(EnvConfigSource().load()) as assistant:
            if await assistant.start():
                outcome = await assistant.generate_reply(email_text)
    """

    def __init__(
        self,
        session: SessionController,
        orchestrator: ReplyOrchestrator,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.session = session
        self.orchestrator = orchestrator
        self.notices: list[Notice] = []
        self._on_close = on_close
        self._seen_sync_failure = False
        session.add_listener(self._on_session_change)

    async def __aenter__(self) -> ReplyAssistant:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def settings(self) -> Settings:
        return self.session.settings

    @property
    def reply(self) -> str:
        return self.orchestrator.reply

    # ── Operations ─────────────────────────────────────────────────────────────

    async def start(self) -> bool:
        """Sign in and begin syncing settings. Returns False if sign-in failed."""
        try:
            identity = await self.session.initialize()
        except IdentityError as exc:
            self._notice(NoticeLevel.ERROR, exc.user_message)
            return False
        if identity.via_fallback:
            self._notice(
                NoticeLevel.WARNING,
                "Your sign-in token was rejected; continuing with a new anonymous session. "
                "Settings saved under your usual account are not available here.",
            )
        return True

    async def save_settings(self, settings: Settings) -> bool:
        """Persist settings. Returns True on success."""
        try:
            await self.session.save_settings(settings)
        except (NotReadyError, ProfileWriteError) as exc:
            self._notice(NoticeLevel.ERROR, exc.user_message)
            return False
        self._notice(NoticeLevel.SUCCESS, "Company details saved successfully!")
        return True

    async def generate_reply(self, inbound_email: str) -> RequestOutcome:
        """Draft a reply to inbound_email using the current settings.

        Fails with NotReadyError, without calling the generation service, when
        the session has no identity.
        """
        if not self.session.is_ready:
            outcome = RequestOutcome.failure(
                0, NotReadyError("Cannot generate a reply before the session has an identity")
            )
        else:
            outcome = await self.orchestrator.generate(inbound_email, self.session.settings)

        if outcome.error is not None and not outcome.superseded:
            self._notice(NoticeLevel.ERROR, outcome.error.user_message)
        return outcome

    async def close(self) -> None:
        await self.session.close()
        if self._on_close is not None:
            self._on_close()

    # ── Internal ───────────────────────────────────────────────────────────────

    def _on_session_change(self, session: SessionController) -> None:
        if session.sync_state == SyncState.SUBSCRIPTION_FAILED:
            if not self._seen_sync_failure and isinstance(session.last_error, BrandReplyError):
                self._seen_sync_failure = True
                self._notice(NoticeLevel.WARNING, session.last_error.user_message)
        else:
            self._seen_sync_failure = False

    def _notice(self, level: NoticeLevel, message: str) -> None:
        log = logger.info if level == NoticeLevel.SUCCESS else logger.warning
        log("notice[%s]: %s", level.value, message)
        self.notices.append(Notice(level=level, message=message))


def build_store(config: AppConfig) -> ProfileStore:
    """Return the profile store backend named by ``config.store.backend``."""
    if config.store.backend == "memory":
        return InMemoryProfileStore()
    return SqliteProfileStore(db_path=config.store.db_path)


def build_assistant(
    config: AppConfig,
    identity_provider: IdentityProvider | None = None,
    store: ProfileStore | None = None,
    service: GenerationService | None = None,
) -> ReplyAssistant:
    """Construct a ReplyAssistant from config; any collaborator may be overridden."""
    provider = identity_provider or create_identity_provider(config.identity_provider)
    profile_store = store or build_store(config)
    generation = service or create_generation_service(config)

    session = SessionController(provider, profile_store, app_id=config.app_id)
    close_store = getattr(profile_store, "close", None) if store is None else None
    return ReplyAssistant(session, ReplyOrchestrator(generation), on_close=close_store)

"""Session controller: identity acquisition and live settings synchronisation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from brandreply.errors import (
    BrandReplyError,
    IdentityError,
    NotReadyError,
    ProfileFetchError,
    ProfileWriteError,
)
from brandreply.identity.provider import Identity, IdentityProvider
from brandreply.profile.store import ProfileStore, Subscription
from brandreply.profile.types import DEFAULT_SETTINGS, DocumentSnapshot, Settings, settings_path

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    AUTH_FAILED = "auth_failed"


class SyncState(str, Enum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    SYNCED = "synced"
    SUBSCRIPTION_FAILED = "subscription_failed"


#: Called with the controller after every state change.
SessionListener = Callable[["SessionController"], None]


class SessionController:
    """Owns the session identity and keeps Settings in sync with the store.

    Settings are only ever replaced by the subscription consumer: a snapshot
    with a document replaces them verbatim, an absent document yields
    DEFAULT_SETTINGS (without writing them back).  Saves go to the store and
    come back through the subscription like any other write.

    Usage::

        async with SessionController(provider, store, app_id="my-app") as session:
            await session.initialize()
            await session.wait_for_settings()
            await session.save_settings(Settings(...))
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        store: ProfileStore,
        app_id: str,
    ) -> None:
        self._provider = identity_provider
        self._store = store
        self._app_id = app_id

        self.state = SessionState.UNINITIALIZED
        self.sync_state = SyncState.IDLE
        self.identity: Identity | None = None
        self.settings: Settings = DEFAULT_SETTINGS
        self.last_error: BrandReplyError | None = None

        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._settled = asyncio.Event()
        self._listeners: list[SessionListener] = []

    async def __aenter__(self) -> SessionController:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY and self.identity is not None

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    # ── Identity ───────────────────────────────────────────────────────────────

    async def initialize(self) -> Identity:
        """Sign in and start the settings subscription.

        Raises:
            IdentityError: if the provider is unreachable or misconfigured.  The
                session is left in AUTH_FAILED with no identity.
        """
        self._set_state(SessionState.AUTHENTICATING)
        try:
            identity = await self._provider.sign_in()
        except IdentityError as exc:
            logger.error("Identity acquisition failed: %s", exc)
            self.identity = None
            self.last_error = exc
            self._set_state(SessionState.AUTH_FAILED)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("Identity provider raised unexpectedly: %s", exc, exc_info=True)
            error = IdentityError(str(exc))
            self.identity = None
            self.last_error = error
            self._set_state(SessionState.AUTH_FAILED)
            raise error from exc

        if identity.via_fallback:
            logger.warning("Session %s is anonymous: custom token sign-in was rejected", identity.uid)
        self.identity = identity
        self._set_state(SessionState.READY)
        self.subscribe_settings(identity)
        return identity

    # ── Settings ───────────────────────────────────────────────────────────────

    def subscribe_settings(self, identity: Identity) -> None:
        """Open the live settings subscription for identity.

        Any previous subscription is cancelled first, so a stale identity can
        never keep writing into Settings.
        """
        self._cancel_subscription()
        if self.identity is None or self.identity.uid != identity.uid:
            self.identity = identity

        path = settings_path(self._app_id, identity.uid)
        self._settled = asyncio.Event()
        self.sync_state = SyncState.SUBSCRIBING
        self._notify()
        try:
            subscription = self._store.subscribe(path)
        except Exception as exc:  # noqa: BLE001
            self._on_subscription_error(ProfileFetchError(f"Could not subscribe to {path}: {exc}"))
            return
        self._subscription = subscription
        self._consumer = asyncio.create_task(self._consume(subscription))
        logger.debug("Subscribed to %s", path)

    async def save_settings(self, settings: Settings) -> None:
        """Overwrite the identity's settings document with settings.

        The target is always the session's own ``identity``; callers cannot
        write another identity's document.  In-memory Settings are not touched here; they update when the write
        arrives through the subscription.

        Raises:
            NotReadyError: if there is no identity yet.
            ProfileWriteError: if the store rejected the write.
        """
        if not self.is_ready:
            raise NotReadyError("Cannot save settings before the session has an identity")
        assert self.identity is not None
        path = settings_path(self._app_id, self.identity.uid)
        try:
            self._store.set(path, settings.to_document())
        except Exception as exc:  # noqa: BLE001
            logger.error("Error saving company details to %s: %s", path, exc)
            raise ProfileWriteError(str(exc)) from exc
        logger.info("Saved company details for %s", self.identity.uid)

    async def wait_for_settings(self, timeout: float | None = None) -> Settings:
        """Wait until the subscription has delivered (or failed) at least once."""
        await asyncio.wait_for(self._settled.wait(), timeout=timeout)
        return self.settings

    async def close(self) -> None:
        """Cancel the subscription and its consumer task."""
        consumer = self._consumer
        self._cancel_subscription()
        if consumer is not None:
            try:
                await consumer
            except asyncio.CancelledError:
                pass

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _consume(self, subscription: Subscription) -> None:
        """Fold snapshots into Settings, one at a time, in delivery order."""
        try:
            async for snapshot in subscription:
                self._apply(snapshot)
        except ProfileFetchError as exc:
            if subscription is self._subscription:
                self._on_subscription_error(exc)

    def _apply(self, snapshot: DocumentSnapshot) -> None:
        if snapshot.exists:
            assert snapshot.data is not None
            self.settings = Settings.from_document(snapshot.data)
        else:
            self.settings = DEFAULT_SETTINGS
        self.sync_state = SyncState.SYNCED
        self._settled.set()
        self._notify()

    def _on_subscription_error(self, exc: ProfileFetchError) -> None:
        logger.error("Failed to fetch company data: %s", exc)
        self.last_error = exc
        self.sync_state = SyncState.SUBSCRIPTION_FAILED
        self._settled.set()
        self._notify()

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._consumer is not None and not self._consumer.done():
            self._consumer.cancel()
        self._consumer = None

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:  # noqa: BLE001
                logger.error("Session listener failed: %s", exc, exc_info=True)

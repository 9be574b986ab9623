"""Profile store interface, live subscriptions, and the in-memory backend."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from brandreply.errors import ProfileFetchError
from brandreply.profile.types import DocumentSnapshot

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """A live stream of DocumentSnapshot events for one document path.

    Events are queued in commit order and consumed with ``async for``.  An
    error ends the stream: the iterator raises ProfileFetchError once and then
    stops.  ``close()`` is the unsubscribe handle and is safe to call twice;
    events still queued when it is called are dropped.

    Usage::

        sub = store.subscribe(path)
        async for snapshot in sub:
            ...
        sub.close()
    """

    def __init__(self, path: str, on_close: Callable[[Subscription], None] | None = None) -> None:
        self.path = path
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, snapshot: DocumentSnapshot) -> None:
        """Queue a snapshot for the consumer. Ignored once closed."""
        if not self._closed:
            self._queue.put_nowait(snapshot)

    def fail(self, exc: BaseException) -> None:
        """Queue an error; the consumer sees it after any pending snapshots."""
        if not self._closed:
            self._queue.put_nowait(exc)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> DocumentSnapshot:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self.close()
            if isinstance(item, ProfileFetchError):
                raise item
            raise ProfileFetchError(f"Subscription on {self.path!r} failed: {item}") from item
        return item  # type: ignore[return-value]


@runtime_checkable
class ProfileStore(Protocol):
    """Document-oriented key/value store holding one settings document per identity."""

    def get(self, path: str) -> dict[str, Any] | None:
        """Return the document at path, or None if it does not exist."""
        ...

    def set(self, path: str, data: dict[str, Any]) -> None:
        """Overwrite the whole document at path (no field-level merge)."""
        ...

    def subscribe(self, path: str) -> Subscription:
        """Open a live subscription; the current document is pushed first."""
        ...


class FanOutStore:
    """Base class that delivers committed writes to every open subscription.

    Subclasses implement ``_read`` and ``_write``; this class handles the
    subscriber bookkeeping so every backend has the same ordering guarantee:
    a subscriber sees the current document first, then every later write to
    its path in commit order.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscription]] = {}

    # ── Backend hooks ───────────────────────────────────────────────────────────

    def _read(self, path: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def _write(self, path: str, data: dict[str, Any]) -> None:
        raise NotImplementedError

    # ── ProfileStore API ────────────────────────────────────────────────────────

    def get(self, path: str) -> dict[str, Any] | None:
        return self._read(path)

    def set(self, path: str, data: dict[str, Any]) -> None:
        self._write(path, dict(data))
        logger.debug("Committed document %s", path)
        self._notify(path)

    def subscribe(self, path: str) -> Subscription:
        sub = Subscription(path, on_close=self._detach)
        self._subscribers.setdefault(path, []).append(sub)
        self._deliver(sub)
        return sub

    def subscriber_count(self, path: str) -> int:
        """Number of open subscriptions on path."""
        return len(self._subscribers.get(path, []))

    # ── Private ─────────────────────────────────────────────────────────────────

    def _notify(self, path: str) -> None:
        for sub in list(self._subscribers.get(path, [])):
            self._deliver(sub)

    def _deliver(self, sub: Subscription) -> None:
        try:
            data = self._read(sub.path)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to read %s for subscriber: %s", sub.path, exc)
            sub.fail(exc)
            return
        sub.push(DocumentSnapshot(path=sub.path, data=data))

    def _detach(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.path, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            self._subscribers.pop(sub.path, None)


class InMemoryProfileStore(FanOutStore):
    """Process-local store; documents live in a dict for the process lifetime."""

    def __init__(self) -> None:
        super().__init__()
        self._documents: dict[str, dict[str, Any]] = {}

    def _read(self, path: str) -> dict[str, Any] | None:
        doc = self._documents.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    def _write(self, path: str, data: dict[str, Any]) -> None:
        self._documents[path] = copy.deepcopy(data)

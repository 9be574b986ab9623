"""Types for the reply generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from brandreply.errors import BrandReplyError


class OutcomeStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class RequestOutcome:
    """State of one generation request.

    ``request_id`` increases with every ``generate()`` call.  ``superseded``
    is set on an outcome that finished after a newer request had started; such
    outcomes are returned to their caller but never become current.
    """

    request_id: int
    status: OutcomeStatus
    text: str | None = None
    error: BrandReplyError | None = None
    superseded: bool = False

    @classmethod
    def pending(cls, request_id: int) -> RequestOutcome:
        return cls(request_id=request_id, status=OutcomeStatus.PENDING)

    @classmethod
    def success(cls, request_id: int, text: str) -> RequestOutcome:
        return cls(request_id=request_id, status=OutcomeStatus.SUCCESS, text=text)

    @classmethod
    def failure(cls, request_id: int, error: BrandReplyError) -> RequestOutcome:
        return cls(request_id=request_id, status=OutcomeStatus.FAILURE, error=error)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

"""Shared pytest fixtures."""

import asyncio

import pytest

from brandreply.errors import IdentityError
from brandreply.identity.provider import Identity
from brandreply.profile.store import InMemoryProfileStore
from brandreply.profile.types import Settings


class FakeIdentityProvider:
    """Identity provider stub: returns a fixed identity, or raises."""

    def __init__(self, identity: Identity | None = None, error: Exception | None = None) -> None:
        self.identity = identity or Identity(uid="user_123")
        self.error = error
        self.calls = 0

    async def sign_in(self) -> Identity:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.identity


class StubGenerationService:
    """Generation service stub: records prompts, returns or raises in order."""

    def __init__(self, *results: object) -> None:
        self.results = list(results) or ["Hello"]
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return str(result)


async def settle() -> None:
    """Let queued subscription events reach their consumer task."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def failing_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider(error=IdentityError("provider unreachable"))


@pytest.fixture
def acme_settings() -> Settings:
    return Settings(
        mission="Acme builds rockets for roadrunner enthusiasts.",
        sender_name="Wile E. Coyote",
        sender_email="wile@acme.example",
    )


@pytest.fixture
def sample_inbound_email() -> str:
    """A minimal inbound email body for use in tests."""
    return (
        "Hi there,\n\nWe're a mid-size apparel brand looking into digital product "
        "passports ahead of the EU regulation. Could you tell us more?\n\nThanks,\nDana"
    )

"""Application configuration and the sources it can be loaded from.

Configuration is always passed explicitly: components receive an AppConfig
(or one of its parts) at construction and never read the environment
themselves.  The only code that touches ``os.environ`` is EnvConfigSource.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from dotenv import load_dotenv

DEFAULT_GENERATION_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "gemini-2.5-flash-preview-05-20:generateContent"
)

#: Value shipped in config templates; treated as "not configured".
PLACEHOLDER_API_KEY = "YOUR_API_KEY"


@dataclass(frozen=True)
class IdentityProviderConfig:
    """How the session obtains its identity."""

    provider: str = "firebase"  # "firebase" | "local"
    api_key: str = ""
    project_id: str = ""
    auth_token: str | None = None  # pre-issued custom token, if any
    allow_anonymous_fallback: bool = True
    identity_file: Path = field(default_factory=lambda: Path("data/identity.json"))


@dataclass(frozen=True)
class StoreConfig:
    """Where settings documents are persisted."""

    backend: str = "sqlite"  # "sqlite" | "memory"
    db_path: Path = field(default_factory=lambda: Path("data/brandreply.db"))


@dataclass(frozen=True)
class AppConfig:
    """Everything the assistant needs, injected at construction."""

    app_id: str
    identity_provider: IdentityProviderConfig = field(default_factory=IdentityProviderConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    generation_endpoint: str = DEFAULT_GENERATION_ENDPOINT
    api_key: str = ""
    generation_backend: str = "gemini"  # "gemini" | "anthropic"
    anthropic_api_key: str = ""


@runtime_checkable
class ConfigSource(Protocol):
    """Anything that can produce an AppConfig."""

    def load(self) -> AppConfig:
        ...


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _build(values: Mapping[str, str | None]) -> AppConfig:
    """Build an AppConfig from flat, environment-style keys."""
    project_id = values.get("FIREBASE_PROJECT_ID") or ""
    identity = IdentityProviderConfig(
        provider=(values.get("BRANDREPLY_IDENTITY_PROVIDER") or "firebase").lower(),
        api_key=values.get("FIREBASE_API_KEY") or "",
        project_id=project_id,
        auth_token=values.get("FIREBASE_AUTH_TOKEN") or None,
        allow_anonymous_fallback=_as_bool(values.get("BRANDREPLY_ALLOW_ANONYMOUS_FALLBACK"), True),
        identity_file=Path(values.get("BRANDREPLY_IDENTITY_FILE") or "data/identity.json"),
    )
    store = StoreConfig(
        backend=(values.get("BRANDREPLY_STORE") or "sqlite").lower(),
        db_path=Path(values.get("BRANDREPLY_DB_PATH") or "data/brandreply.db"),
    )
    return AppConfig(
        app_id=values.get("BRANDREPLY_APP_ID") or project_id or "default-app-id",
        identity_provider=identity,
        store=store,
        generation_endpoint=values.get("GEMINI_ENDPOINT") or DEFAULT_GENERATION_ENDPOINT,
        api_key=values.get("GEMINI_API_KEY") or "",
        generation_backend=(values.get("BRANDREPLY_GENERATION_BACKEND") or "gemini").lower(),
        anthropic_api_key=values.get("ANTHROPIC_API_KEY") or "",
    )


class StaticConfigSource:
    """Configuration from a literal mapping, e.g. values baked into a deployment."""

    def __init__(self, values: Mapping[str, str | None]) -> None:
        self._values = dict(values)

    def load(self) -> AppConfig:
        return _build(self._values)


class EnvConfigSource:
    """Configuration from environment variables, after loading a ``.env`` file."""

    def __init__(self, dotenv_path: str | Path | None = None) -> None:
        self._dotenv_path = dotenv_path

    def load(self) -> AppConfig:
        load_dotenv(self._dotenv_path)
        return _build(os.environ)

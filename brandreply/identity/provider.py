"""Identity providers that turn configuration into a stable, opaque user id."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx

from brandreply.config import PLACEHOLDER_API_KEY, IdentityProviderConfig
from brandreply.errors import IdentityError

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1"
_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class Identity:
    """The signed-in user for this session.

    ``via_fallback`` is True when a configured custom token was rejected and
    the provider signed in anonymously instead.
    """

    uid: str
    id_token: str | None = None
    anonymous: bool = True
    via_fallback: bool = False


@runtime_checkable
class IdentityProvider(Protocol):
    """Acquires an identity. Raises IdentityError when that is impossible."""

    async def sign_in(self) -> Identity:
        ...


# ── Firebase ───────────────────────────────────────────────────────────────────


class FirebaseIdentityProvider:
    """Signs in against the Firebase Identity Toolkit REST API.

    With a pre-issued custom token the provider signs in with that token;
    otherwise it signs in anonymously.  If the token is rejected and
    ``allow_anonymous_fallback`` is set, it falls back to anonymous sign-in and
    flags the result so the caller can warn the user.

    The anonymous session (uid and refresh token) is kept in
    ``identity_file`` and resumed through the Secure Token API on the next
    sign-in, so the same anonymous user, and with it the same settings
    document, survives across process restarts.

    Usage::

        provider = FirebaseIdentityProvider(config.identity_provider)
        identity = await provider.sign_in()
    """

    def __init__(
        self,
        config: IdentityProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        base_url: str = IDENTITY_TOOLKIT_URL,
        secure_token_url: str = SECURE_TOKEN_URL,
    ) -> None:
        self._config = config
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._secure_token_url = secure_token_url.rstrip("/")
        self._session_file = Path(config.identity_file)

    async def sign_in(self) -> Identity:
        api_key = self._config.api_key
        if not api_key or api_key == PLACEHOLDER_API_KEY:
            raise IdentityError(
                "Firebase API key is missing or still the placeholder value",
                user_message="Failed to initialize the application. Please update your Firebase configuration.",
            )

        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS, transport=self._transport) as client:
            token = self._config.auth_token
            if token:
                try:
                    return await self._sign_in_with_token(client, token)
                except IdentityError as exc:
                    if not self._config.allow_anonymous_fallback:
                        raise
                    logger.warning(
                        "Custom token sign-in failed (%s); falling back to anonymous sign-in",
                        exc,
                    )
                    identity = await self._anonymous(client)
                    return Identity(
                        uid=identity.uid,
                        id_token=identity.id_token,
                        anonymous=True,
                        via_fallback=True,
                    )
            return await self._anonymous(client)

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _anonymous(self, client: httpx.AsyncClient) -> Identity:
        """Resume the stored anonymous session, or sign up a new one."""
        stored = self._load_session()
        if stored is not None:
            uid, refresh_token = stored
            try:
                return await self._resume(client, uid, refresh_token)
            except IdentityError as exc:
                logger.warning("Stored session for %s could not be resumed (%s); signing up again", uid, exc)
        return await self._sign_in_anonymously(client)

    async def _sign_in_anonymously(self, client: httpx.AsyncClient) -> Identity:
        data = await self._request(
            client, "accounts:signUp", f"{self._base_url}/accounts:signUp",
            json={"returnSecureToken": True},
        )
        uid = data.get("localId")
        if not uid:
            raise IdentityError("Anonymous sign-up response did not include a localId")
        logger.info("Signed in anonymously as %s", uid)
        self._save_session(str(uid), data.get("refreshToken"))
        return Identity(uid=str(uid), id_token=data.get("idToken"), anonymous=True)

    async def _resume(self, client: httpx.AsyncClient, uid: str, refresh_token: str) -> Identity:
        data = await self._request(
            client, "token", f"{self._secure_token_url}/token",
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
        )
        resumed_uid = str(data.get("user_id") or uid)
        if resumed_uid != uid:
            raise IdentityError(f"Refreshed session belongs to {resumed_uid}, expected {uid}")
        logger.info("Resumed anonymous session for %s", uid)
        self._save_session(uid, data.get("refresh_token") or refresh_token)
        return Identity(uid=uid, id_token=data.get("id_token"), anonymous=True)

    async def _sign_in_with_token(self, client: httpx.AsyncClient, token: str) -> Identity:
        data = await self._request(
            client, "accounts:signInWithCustomToken",
            f"{self._base_url}/accounts:signInWithCustomToken",
            json={"token": token, "returnSecureToken": True},
        )
        id_token = data.get("idToken")
        if not id_token:
            raise IdentityError("Custom token sign-in response did not include an idToken")

        # signInWithCustomToken does not return the uid; look it up.
        lookup = await self._request(
            client, "accounts:lookup", f"{self._base_url}/accounts:lookup",
            json={"idToken": id_token},
        )
        users = lookup.get("users") or []
        if not users or not users[0].get("localId"):
            raise IdentityError("Account lookup returned no user for the custom token")
        uid = str(users[0]["localId"])
        logger.info("Signed in with custom token as %s", uid)
        return Identity(uid=uid, id_token=id_token, anonymous=False)

    async def _request(
        self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any
    ) -> dict[str, Any]:
        try:
            response = await client.post(url, params={"key": self._config.api_key}, **kwargs)
        except httpx.HTTPError as exc:
            raise IdentityError(f"Identity provider unreachable: {exc}") from exc

        if response.is_error:
            raise IdentityError(
                f"{method} failed with status {response.status_code}: {_error_message(response)}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise IdentityError(f"{method} returned a non-JSON body") from exc

    def _load_session(self) -> tuple[str, str] | None:
        if not self._session_file.exists():
            return None
        try:
            data = json.loads(self._session_file.read_text())
            uid, refresh_token = data.get("uid"), data.get("refreshToken")
        except (OSError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self._session_file, exc)
            return None
        if not uid or not refresh_token:
            return None
        return str(uid), str(refresh_token)

    def _save_session(self, uid: str, refresh_token: str | None) -> None:
        if not refresh_token:
            return
        try:
            self._session_file.parent.mkdir(parents=True, exist_ok=True)
            self._session_file.write_text(json.dumps({"uid": uid, "refreshToken": refresh_token}))
        except OSError as exc:
            # Sign-in still succeeded; only the next run loses the session.
            logger.warning("Could not save session to %s: %s", self._session_file, exc)


def _error_message(response: httpx.Response) -> str:
    """Pull Firebase's ``error.message`` out of an error body, if there is one."""
    try:
        return str(response.json()["error"]["message"])
    except (ValueError, KeyError, TypeError):
        return response.text[:200]


# ── Local ──────────────────────────────────────────────────────────────────────


class LocalIdentityProvider:
    """Offline anonymous identity, persisted to a JSON file.

    The first sign-in mints a random uid and writes it to ``identity_file``;
    later sign-ins reuse it so stored settings survive across CLI runs.
    """

    def __init__(self, identity_file: str | Path) -> None:
        self._path = Path(identity_file)

    async def sign_in(self) -> Identity:
        try:
            if self._path.exists():
                data = json.loads(self._path.read_text())
                uid = str(data["uid"])
            else:
                uid = uuid.uuid4().hex
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._path.write_text(json.dumps({"uid": uid}))
                logger.info("Created local identity %s at %s", uid, self._path)
        except (OSError, ValueError, KeyError) as exc:
            raise IdentityError(f"Could not load local identity from {self._path}: {exc}") from exc
        return Identity(uid=uid, anonymous=True)


def create_identity_provider(config: IdentityProviderConfig) -> IdentityProvider:
    """Return the provider named by ``config.provider``."""
    if config.provider == "local":
        return LocalIdentityProvider(config.identity_file)
    if config.provider == "firebase":
        return FirebaseIdentityProvider(config)
    raise IdentityError(f"Unknown identity provider {config.provider!r}")

"""Company settings document and the snapshots the profile store emits."""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MISSION = (
    "Our company, Seamless Source, is a leader in the fashion industry, offering a "
    "revolutionary DPP (Digital Product Passport) product that helps brands track "
    "their supply chain, ensure ethical sourcing, and build trust with their customers."
)
DEFAULT_SENDER_NAME = "The Seamless Source Team"
DEFAULT_SENDER_EMAIL = "team@seamlesssource.com"

# Settings attribute -> stored document key.
_DOCUMENT_FIELDS = {
    "mission": "mission",
    "sender_name": "senderName",
    "sender_email": "senderEmail",
}

_DEFAULTS = {
    "mission": DEFAULT_MISSION,
    "sender_name": DEFAULT_SENDER_NAME,
    "sender_email": DEFAULT_SENDER_EMAIL,
}


@dataclass(frozen=True)
class Settings:
    """Per-identity company profile used to steer reply generation.

    Stored as ``{mission, senderName, senderEmail}``; the camelCase field
    names are the wire format shared with the web client.
    """

    mission: str
    sender_name: str
    sender_email: str

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "Settings":
        """Build Settings from a stored document.

        Present fields are copied verbatim.  A field missing from the document
        takes its default so in-memory Settings are always fully populated.
        """
        values = {}
        for attr, key in _DOCUMENT_FIELDS.items():
            if key in data and data[key] is not None:
                values[attr] = str(data[key])
            else:
                logger.warning("Stored settings document has no %r; using the default", key)
                values[attr] = _DEFAULTS[attr]
        return cls(**values)

    def to_document(self) -> dict[str, str]:
        return {
            "mission": self.mission,
            "senderName": self.sender_name,
            "senderEmail": self.sender_email,
        }

    @property
    def sender_line(self) -> str:
        """Sender attribution, e.g. ``The Seamless Source Team <team@seamlesssource.com>``."""
        return f"{self.sender_name} <{self.sender_email}>"


#: Synthesized client-side when no document exists for an identity.
DEFAULT_SETTINGS = Settings(
    mission=DEFAULT_MISSION,
    sender_name=DEFAULT_SENDER_NAME,
    sender_email=DEFAULT_SENDER_EMAIL,
)


def settings_path(app_id: str, uid: str) -> str:
    """Return the document path holding the settings for one identity."""
    return f"artifacts/{app_id}/users/{uid}/companyData/details"


@dataclass(frozen=True)
class DocumentSnapshot:
    """One subscription event: the document at ``path``, or None if absent."""

    path: str
    data: dict[str, Any] | None = None

    @property
    def exists(self) -> bool:
        return self.data is not None

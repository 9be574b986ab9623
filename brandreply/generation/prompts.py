"""Prompt template and request/response shapes for reply generation."""

from typing import Any

from brandreply.profile.types import Settings

# ── Prompt template ────────────────────────────────────────────────────────────

PREAMBLE = (
    'You are a member of the marketing team for "Seamless Source."\n'
    'Your product is a "DPP (Digital Product Passport)" for the fashion industry.\n'
    "Your goal is to reply to an incoming email from a potential client."
)

#: Order: tone, perspective, value-highlighting, call-to-action.
DIRECTIVES: tuple[str, ...] = (
    "Polite, professional, and caring.",
    'Written from the perspective of a team member at "Seamless Source."',
    "Focused on addressing the client's inquiry while subtly but clearly "
    "highlighting the value and importance of our DPP product.",
    "Designed to push the client towards a next step, such as a product demo or a call.",
)

EMAIL_DELIMITER = "---"
NO_HEADERS_INSTRUCTION = 'Do not include "Subject:" or any email headers. Just the body of the email.'


def build_prompt(settings: Settings, inbound_email: str) -> str:
    """Assemble the generation prompt.

    Order: persona preamble, company mission, numbered directives, the inbound
    email verbatim between delimiter lines, the sender attribution, and the
    instruction to leave out headers.  Deterministic for a given input.
    """
    directives = "\n".join(f"{i}.  {text}" for i, text in enumerate(DIRECTIVES, start=1))
    lines = [
        PREAMBLE,
        f'Your company mission is: "{settings.mission}"',
        "",
        "Your reply must be:",
        directives,
        "",
        "Incoming Email from client:",
        EMAIL_DELIMITER,
        inbound_email,
        EMAIL_DELIMITER,
        "",
        f"Reply as if you are the sender: {settings.sender_line}",
        NO_HEADERS_INSTRUCTION,
    ]
    return "\n".join(lines)


# ── Gemini wire format ─────────────────────────────────────────────────────────


def build_payload(prompt: str) -> dict[str, Any]:
    """Request body for a generateContent call with a single user turn."""
    return {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}


def extract_text(body: Any) -> str | None:
    """Return ``candidates[0].content.parts[0].text``, or None if it is missing.

    Every level is checked: the body may lack candidates entirely (e.g. when
    the prompt was blocked), or carry a candidate with no content parts.
    """
    if not isinstance(body, dict):
        return None
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    if not isinstance(text, str) or not text:
        return None
    return text

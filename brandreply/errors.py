"""Error taxonomy shared by the session, store, and generation layers.

Every error carries a ``user_message``: the text the assistant surfaces as a
notice when the error is caught at an operation boundary.
"""


class BrandReplyError(Exception):
    """Base class for every failure the assistant converts into a notice."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = "", user_message: str | None = None) -> None:
        super().__init__(detail or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class IdentityError(BrandReplyError):
    """Raised when the identity provider is unreachable or misconfigured."""

    user_message = "Failed to initialize the application. Check your identity provider configuration."


class NotReadyError(BrandReplyError):
    """Raised when an operation needs an identity that is not available yet."""

    user_message = "Database not ready. Please wait a moment."


class ProfileFetchError(BrandReplyError):
    """Raised when the settings subscription reports an error."""

    user_message = "Failed to fetch company details from the database."


class ProfileWriteError(BrandReplyError):
    """Raised when a settings document could not be written."""

    user_message = "Failed to save company details. Please try again."


class ValidationError(BrandReplyError):
    """Raised when the inbound email is empty."""

    user_message = "Please enter the incoming email text to generate a reply."


class GenerationError(BrandReplyError):
    """Base class for Generation Service failures."""


class ServiceError(GenerationError):
    """Raised on a non-2xx response (or a transport failure, status None)."""

    def __init__(self, status_code: int | None, detail: str = "") -> None:
        self.status_code = status_code
        if status_code is None:
            message = "Could not reach the generation service. Please check your connection and try again."
        else:
            message = f"API call failed with status: {status_code}"
        super().__init__(detail or message, user_message=message)


class EmptyResultError(GenerationError):
    """Raised when a successful response carries no usable reply text."""

    user_message = "Failed to generate a reply. Please try again."

"""
Completion transport error handling.

Maps transport failures to stable categories so a failed turn is reported
consistently and the session stays usable for the next utterance.
"""
from typing import Optional


class TransportError(Exception):
    """A completion request failed (non-200 response, network error, stream error)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransportErrorCategory:
    """Stable error categories for turn failures."""

    AUTH_FAILED = "transport.auth_failed"
    BAD_REQUEST = "transport.bad_request"
    RATE_LIMITED = "transport.rate_limited"
    OVERLOADED = "transport.overloaded"
    SERVER_ERROR = "transport.server_error"
    NETWORK_ERROR = "transport.network_error"
    UNKNOWN_ERROR = "transport.unknown_error"


_STATUS_CATEGORIES = {
    400: TransportErrorCategory.BAD_REQUEST,
    401: TransportErrorCategory.AUTH_FAILED,
    403: TransportErrorCategory.AUTH_FAILED,
    413: TransportErrorCategory.BAD_REQUEST,
    429: TransportErrorCategory.RATE_LIMITED,
    529: TransportErrorCategory.OVERLOADED,
}


def classify_transport_error(error: BaseException) -> str:
    """
    Classify a turn failure into a stable category.

    The HTTP status wins when there is one; otherwise the message is
    matched against known keywords.
    """
    status = getattr(error, "status", None)
    if isinstance(status, int):
        if status in _STATUS_CATEGORIES:
            return _STATUS_CATEGORIES[status]
        if status >= 500:
            return TransportErrorCategory.SERVER_ERROR
        if 400 <= status < 500:
            return TransportErrorCategory.BAD_REQUEST

    error_str = str(error).lower()

    if "auth" in error_str or "api key" in error_str or "unauthorized" in error_str:
        return TransportErrorCategory.AUTH_FAILED

    if "rate limit" in error_str or "rate_limit" in error_str:
        return TransportErrorCategory.RATE_LIMITED

    if "overloaded" in error_str:
        return TransportErrorCategory.OVERLOADED

    if (
        "timeout" in error_str
        or "connection" in error_str
        or "network" in error_str
        or isinstance(error, (TimeoutError, ConnectionError))
    ):
        return TransportErrorCategory.NETWORK_ERROR

    return TransportErrorCategory.UNKNOWN_ERROR


def user_message(category: str) -> str:
    """Short user-facing message for a failure category."""
    messages = {
        TransportErrorCategory.AUTH_FAILED: "The API key was rejected. Check it in Settings.",
        TransportErrorCategory.RATE_LIMITED: "The assistant is rate limited. Try again in a moment.",
        TransportErrorCategory.OVERLOADED: "The assistant is busy right now. Try again in a moment.",
        TransportErrorCategory.NETWORK_ERROR: "Could not reach the assistant. Check your connection.",
    }
    return messages.get(category, "Something went wrong. Please try again.")

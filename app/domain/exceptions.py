"""Error taxonomy shared by every request handler.

Each exception carries the HTTP status it maps to and a short message that is
shown to the caller verbatim as ``{"error": message}``.  Services raise these;
``app.main`` installs the single handler that renders them.
"""

from typing import Optional


class BookSwapError(Exception):
    """Base class for all handled BookSwap failures."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message}


class BadRequest(BookSwapError):
    """Malformed, missing or out-of-range request fields."""

    status_code = 400
    default_message = "Bad request"


class Unauthorized(BookSwapError):
    """No credential, or one that does not resolve to a principal."""

    status_code = 401
    default_message = "Unauthorized"


class InsufficientFunds(BookSwapError):
    status_code = 402
    default_message = "Insufficient tokens"


class Forbidden(BookSwapError):
    """Valid credential, but the caller lacks the required role."""

    status_code = 403
    default_message = "Forbidden: Admin access required"


class NotFound(BookSwapError):
    status_code = 404
    default_message = "Not found"


class RateLimited(BookSwapError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class InternalError(BookSwapError):
    """Storage or upstream failure while performing the request's own work."""

    status_code = 500
    default_message = "Internal server error"

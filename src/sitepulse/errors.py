"""
Error taxonomy for SitePulse.

Every error a handler can raise on purpose is an AnalyticsError. Its
``message`` is safe to return to the caller; anything else is treated as an
internal error and only ever logged.
"""


class AnalyticsError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = 500
    message = "An error occurred processing your request"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Response body for this error."""
        return {"error": self.message}


class InvalidJSON(AnalyticsError):
    status_code = 400
    message = "Invalid JSON"


class InvalidRequest(AnalyticsError):
    status_code = 400
    message = "Invalid request body"


class PayloadValidationError(AnalyticsError):
    """A tracking payload broke one or more validation rules."""

    status_code = 400

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(", ".join(self.errors))

    def to_dict(self) -> dict:
        return {"error": self.message, "errors": self.errors}


class RateLimitExceeded(AnalyticsError):
    status_code = 429
    message = "Rate limit exceeded. Please try again later."


class AuthenticationRequired(AnalyticsError):
    status_code = 401
    message = "Authentication required"


class TokenRequired(AnalyticsError):
    status_code = 401
    message = "API token required. Pass as ?token= or x-api-key header"


class AccessDenied(AnalyticsError):
    """Unknown share token or sharing disabled.

    Both cases share one message so a caller cannot probe for valid tokens.
    """

    status_code = 403
    message = "Invalid token or analytics sharing is not enabled"


class SiteNotFound(AnalyticsError):
    status_code = 404
    message = "Website not found"


class DeliveryFailed(AnalyticsError):
    """The webhook target did not accept the relayed snapshot."""

    status_code = 502
    message = "Webhook delivery failed"

    def __init__(self, status: int | None):
        self.status = status
        super().__init__()

    def to_dict(self) -> dict:
        return {"error": self.message, "status": self.status}


class StoreError(Exception):
    """The event store could not complete a read or write."""
    pass


class MailDeliveryError(Exception):
    """The mail provider rejected or failed to send a message."""
    pass

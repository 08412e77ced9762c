"""Tagged error hierarchy.

Every failure the service surfaces carries a machine-readable ``code``
from ErrorCode, a human-readable message and an HTTP status. The app-level
handler in create_app() turns these into JSON bodies:

    {"error": "<code>", "message": "<text>", "details": {...}}

The OAuth callback is the exception: it maps failures to redirect
messages instead (see blueprints/oauth.py).
"""

from enum import Enum


class ErrorCode(str, Enum):
    EXCHANGE_FAILED = "exchange_failed"
    REFRESH_FAILED = "refresh_failed"
    REVOKE_FAILED = "revoke_failed"
    STORE_WRITE_FAILED = "store_write_failed"
    VALIDATION_FAILED = "validation_failed"
    NOT_CONNECTED = "not_connected"
    NOT_FOUND = "not_found"
    UPSTREAM_FAILED = "upstream_failed"


class QuickScopeError(Exception):
    """Base class for errors that map to a user-visible category."""

    code = None
    status_code = 500
    default_message = "Something went wrong."

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        body = {"error": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ExchangeFailed(QuickScopeError):
    """Provider rejected the authorization code, or the exchange call failed."""

    code = ErrorCode.EXCHANGE_FAILED
    status_code = 502
    default_message = "Could not connect your QuickBooks account. Please try again."

    def __init__(self, message=None, provider_status=None, provider_body=None):
        super().__init__(
            message,
            details={"provider_status": provider_status, "provider_body": provider_body},
        )
        self.provider_status = provider_status
        self.provider_body = provider_body


class RefreshFailed(QuickScopeError):
    """Refresh token rejected/expired or network error. Caller must reconnect."""

    code = ErrorCode.REFRESH_FAILED
    status_code = 401
    default_message = "QuickBooks connection expired. Please reconnect your account."

    def __init__(self, message=None, company_id=None, provider_status=None):
        super().__init__(
            message,
            details={"company_id": company_id, "provider_status": provider_status},
        )
        self.company_id = company_id
        self.provider_status = provider_status


class RevokeFailed(QuickScopeError):
    """One revoke sub-call failed. Logged only, never surfaced."""

    code = ErrorCode.REVOKE_FAILED
    status_code = 502
    default_message = "Token revocation failed."


class StoreWriteFailed(QuickScopeError):
    code = ErrorCode.STORE_WRITE_FAILED
    status_code = 500
    default_message = "Failed to save changes."


class ValidationFailed(QuickScopeError):
    """Missing or malformed input. ``details`` maps field name -> message."""

    code = ErrorCode.VALIDATION_FAILED
    status_code = 400
    default_message = "Invalid request."


class NotConnected(QuickScopeError):
    code = ErrorCode.NOT_CONNECTED
    status_code = 404
    default_message = "No QuickBooks connection found for this company."


class NotFound(QuickScopeError):
    code = ErrorCode.NOT_FOUND
    status_code = 404
    default_message = "Not found."


class UpstreamFailed(QuickScopeError):
    """A third-party data, LLM or payment call failed."""

    code = ErrorCode.UPSTREAM_FAILED
    status_code = 502
    default_message = "An upstream service failed. Please try again."

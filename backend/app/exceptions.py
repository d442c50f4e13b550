"""
JBin Backend — Custom Exception Hierarchy
===========================================

What:  Application-specific exceptions for every failure the API reports.
How:   Each exception carries a user-safe message and an optional context dict.
       Global exception handlers (registered in main.py) turn them into
       `{"error", "code", "request_id"}` JSON responses.
Who:   Raised by services, the store and routes; caught by global handlers.

Exception Hierarchy:
    JBinError (base)
    ├── ValidationError           → 400 Bad Request (client can fix)
    ├── VerificationFailedError   → 403 Forbidden (bot check failed)
    ├── NotFoundError             → 404 Not Found
    ├── PayloadTooLargeError      → 413 Payload Too Large
    ├── RateLimitExceededError    → 429 Too Many Requests
    └── DatabaseError             → 500 Internal Server Error
        └── DuplicateKeyError     → retried by BlobService; 500 if it escapes
"""

from typing import Any, Dict, Optional


class JBinError(Exception):
    """
    Base exception for all JBin application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    code = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(JBinError):
    """
    Raised when client input fails validation.

    When:    Missing document, unserializable document, malformed blob ID,
             unparseable request body, missing verification token.
    HTTP:    400 Bad Request
    """

    code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class VerificationFailedError(JBinError):
    """
    Raised when the bot-verification oracle does not vouch for the client.

    Covers a negative verdict, a score below the configured minimum, and every
    way the oracle call itself can go wrong (timeout, network, bad reply).
    HTTP:    403 Forbidden
    """

    code = "verification_failed"

    def __init__(
        self,
        message: str = "reCAPTCHA verification failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(JBinError):
    """
    Raised when a requested resource does not exist.

    The store returns None for missing rows; the service layer converts that
    into this exception so the handler can answer 404.
    """

    code = "not_found"

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class PayloadTooLargeError(JBinError):
    """
    Raised when a request body exceeds the configured size cap.

    Detected from Content-Length or while streaming, before any JSON parsing.
    HTTP:    413 Payload Too Large
    """

    code = "payload_too_large"

    def __init__(self, limit: int, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["limit"] = limit
        super().__init__(
            message=f"Request body exceeds the {limit} byte limit",
            context=ctx,
        )
        self.limit = limit


class RateLimitExceededError(JBinError):
    """
    Raised when a client exceeds a per-address request quota.

    Response includes a Retry-After header with the seconds until the oldest
    counted request leaves the window.
    """

    code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        message: str = "Too many requests, please try again later",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(JBinError):
    """
    Raised when a store operation fails unexpectedly.

    Security Note:
        The message returned to the client is always generic. Engine details
        (SQL, file paths) stay in the server log.
    """

    code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DuplicateKeyError(DatabaseError):
    """Raised by the store when an insert reuses an existing blob ID."""

    def __init__(self, blob_id: str):
        super().__init__(
            message="A blob with this ID already exists",
            context={"blob_id": blob_id},
        )
        self.blob_id = blob_id

"""Error hierarchy for flowsync.

Every public error class inherits from :class:`FlowSyncError`.  Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Error codes are defined as a :class:`str` enum so that they serialise
naturally to JSON and can be matched with simple ``==`` comparisons.

Mapping ambiguity (unknown field types, unmatched options, unresolved
relation targets) is never raised: it is reported as
:class:`~flowsync.models.SyncWarning` instead.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error flowsync can raise."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CREDENTIAL_NOT_FOUND = "CREDENTIAL_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_STATE = "INVALID_STATE"
    WEBHOOK_PAYLOAD_ERROR = "WEBHOOK_PAYLOAD_ERROR"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class FlowSyncError(Exception):
    """Base exception for all flowsync errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for structured results and logs."""
        return {
            "code": str(getattr(self.code, "value", self.code)),
            "message": self.message,
            "context": dict(self.context),
        }


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class FlowSyncConfigurationError(FlowSyncError):
    """A required setting is missing or malformed.

    Fatal for the operation that hit it and never retried.

    Context keys: ``setting``, ``value``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        code: str = ErrorCode.CONFIGURATION_ERROR,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )


class FlowSyncCredentialError(FlowSyncConfigurationError):
    """No API token is stored for a user.

    Context keys: ``user_id``, ``service``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.CREDENTIAL_NOT_FOUND,
        )


# ---------------------------------------------------------------------------
# API / transport errors
# ---------------------------------------------------------------------------

class FlowSyncValidationError(FlowSyncError):
    """An upstream API returned 400 (or another non-retryable 4xx).

    Context keys: ``service``, ``status_code``, ``api_code``, ``body``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class FlowSyncAuthError(FlowSyncError):
    """An upstream API returned 401: the token is invalid or revoked.

    Context keys: ``service``, ``status_code``, ``api_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.AUTH_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class FlowSyncPermissionError(FlowSyncError):
    """An upstream API returned 403: the token lacks access to the resource.

    Context keys: ``service``, ``status_code``, ``operation``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PERMISSION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class FlowSyncNotFoundError(FlowSyncError):
    """An upstream API returned 404.

    Context keys: ``service``, ``status_code``, ``path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message,
            context=context,
            cause=cause,
        )


class FlowSyncConflictError(FlowSyncError):
    """An upstream API returned 409 (concurrent creation collision).

    Creation calls retry this exactly once; see
    :func:`flowsync.api.retries.create_with_conflict_retry`.

    Context keys: ``service``, ``status_code``, ``api_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONFLICT,
            message=message,
            context=context,
            cause=cause,
        )


class FlowSyncRetryExhaustedError(FlowSyncError):
    """All retry attempts have been exhausted for a retryable request.

    Context keys: ``service``, ``attempts``, ``last_status_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RETRY_EXHAUSTED,
            message=message,
            context=context,
            cause=cause,
        )


class FlowSyncNetworkError(FlowSyncError):
    """A transport-level failure occurred (timeout, DNS, connection reset).

    Context keys: ``service``, ``url``, ``attempt``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NETWORK_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Pipeline errors
# ---------------------------------------------------------------------------

class FlowSyncStateError(FlowSyncError):
    """A collection's schema lifecycle was advanced out of order.

    Context keys: ``collection_id``, ``current_state``, ``requested_state``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INVALID_STATE,
            message=message,
            context=context,
            cause=cause,
        )


class FlowSyncWebhookPayloadError(FlowSyncError):
    """A webhook event is missing the fields needed to process it.

    Context keys: ``event_type``, ``missing``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.WEBHOOK_PAYLOAD_ERROR,
            message=message,
            context=context,
            cause=cause,
        )

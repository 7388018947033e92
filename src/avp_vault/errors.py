"""AVP Protocol Error Types"""

from typing import Any, Dict, Optional, Type


class AVPError(Exception):
    """Base exception for all AVP errors."""

    code: str = "AVP_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary format."""
        return {
            "ok": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "detail": self.detail,
            }
        }


# Error code to exception class mapping
ERROR_MAP: Dict[str, Type[AVPError]] = {}


def register_error(error_class: Type[AVPError]) -> Type[AVPError]:
    """Add an error class to ``ERROR_MAP`` under its ``code``."""
    ERROR_MAP[error_class.code] = error_class
    return error_class


@register_error
class AuthenticationError(AVPError):
    """Authentication failed."""
    code = "AUTHENTICATION_FAILED"


@register_error
class SessionError(AVPError):
    """Session-related error."""
    code = "SESSION_ERROR"


@register_error
class SessionExpiredError(SessionError):
    """Session has expired."""
    code = "SESSION_EXPIRED"


@register_error
class SessionTerminatedError(SessionError):
    """Session was terminated."""
    code = "SESSION_TERMINATED"


@register_error
class SessionNotFoundError(SessionError):
    """Session does not exist."""
    code = "SESSION_NOT_FOUND"


@register_error
class SecretNotFoundError(AVPError):
    """Secret does not exist."""
    code = "SECRET_NOT_FOUND"


@register_error
class InvalidNameError(AVPError):
    """Invalid secret or workspace name."""
    code = "INVALID_NAME"


@register_error
class InvalidWorkspaceError(AVPError):
    """Invalid workspace identifier."""
    code = "INVALID_WORKSPACE"


@register_error
class CapacityExceededError(AVPError):
    """Backend storage capacity exceeded."""
    code = "CAPACITY_EXCEEDED"


@register_error
class BackendError(AVPError):
    """Backend operation failed."""
    code = "BACKEND_ERROR"


@register_error
class BackendUnavailableError(BackendError):
    """Backend is not available."""
    code = "BACKEND_UNAVAILABLE"


@register_error
class RateLimitError(AVPError):
    """Rate limit exceeded."""
    code = "RATE_LIMIT_EXCEEDED"


@register_error
class ValueTooLargeError(AVPError):
    """Secret value exceeds maximum size."""
    code = "VALUE_TOO_LARGE"


@register_error
class EncryptionError(AVPError):
    """Encryption or decryption failed."""
    code = "ENCRYPTION_ERROR"


@register_error
class IntegrityError(AVPError):
    """Data integrity check failed."""
    code = "INTEGRITY_ERROR"


def from_error_response(response: Dict[str, Any]) -> AVPError:
    """Create an exception from an error response dict."""
    error_data = response.get("error") or {}
    code = error_data.get("code", AVPError.code)
    message = error_data.get("message", "Unknown error")
    detail = error_data.get("detail", {})

    error_class = ERROR_MAP.get(code, AVPError)
    return error_class(message=message, code=code, detail=detail)

"""
Custom exceptions and error taxonomy for the LinguaSpark lesson service
"""
from enum import Enum
from typing import Optional, Dict, Any, List


class ErrorType(str, Enum):
    """Closed set of error codes surfaced to callers"""
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INVALID_CONTENT = "INVALID_CONTENT"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    UNKNOWN = "UNKNOWN"


class LinguaSparkException(Exception):
    """Base exception for the lesson service"""

    error_type: ErrorType = ErrorType.UNKNOWN
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.error_type.value,
            "details": self.details,
        }


class AuthenticationRequiredError(LinguaSparkException):
    """No caller identity for an operation that needs one"""
    error_type = ErrorType.AUTHENTICATION_REQUIRED
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class PermissionDeniedError(LinguaSparkException):
    """Caller is known but not allowed to do this"""
    error_type = ErrorType.PERMISSION_DENIED
    status_code = 403

    def __init__(self, message: str = "Admin privileges required"):
        super().__init__(message)


class ContentValidationError(LinguaSparkException):
    """Request input failed validation before generation started"""
    error_type = ErrorType.VALIDATION_ERROR
    status_code = 400

    def __init__(
        self,
        reason: str,
        suggestions: Optional[List[str]] = None,
        word_count: Optional[int] = None
    ):
        super().__init__(reason, {"suggestions": suggestions or [], "word_count": word_count})
        self.reason = reason
        self.suggestions = suggestions or []
        self.word_count = word_count


class NotFoundError(LinguaSparkException):
    """Requested row does not exist or is not visible to the caller"""
    error_type = ErrorType.VALIDATION_ERROR
    status_code = 404


class AIProviderError(LinguaSparkException):
    """Error raised by the text-generation provider"""
    error_type = ErrorType.UNKNOWN
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message, {"status": status, "code": code})
        self.status = status
        self.code = code


class QuotaExceededError(AIProviderError):
    """Provider quota or rate limit exceeded"""
    error_type = ErrorType.QUOTA_EXCEEDED
    status_code = 429

    def __init__(
        self,
        message: str,
        status: Optional[int] = 429,
        code: Optional[str] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, status=status, code=code)
        self.retry_after = retry_after
        self.details["retry_after"] = retry_after


class InvalidContentError(AIProviderError):
    """Provider rejected the prompt or returned unusable content"""
    error_type = ErrorType.INVALID_CONTENT
    status_code = 422


class NetworkTimeoutError(AIProviderError):
    """Provider could not be reached in time"""
    error_type = ErrorType.NETWORK_TIMEOUT
    status_code = 503


class UnknownAIError(AIProviderError):
    """Provider failure that fits no other variant"""


class ConfigurationError(LinguaSparkException):
    """Configuration error"""


class SectionGraphError(ConfigurationError):
    """Section dependency graph is malformed"""


class SectionDependencyError(ConfigurationError):
    """A section ran before one of its declared dependencies produced output"""

    def __init__(self, section: str, missing: List[str]):
        super().__init__(
            f"Section '{section}' is missing dependencies: {', '.join(sorted(missing))}",
            {"section": section, "missing": sorted(missing)}
        )
        self.section = section
        self.missing = sorted(missing)


class PersistenceError(LinguaSparkException):
    """Database operation error"""

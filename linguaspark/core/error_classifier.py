"""
Classification of upstream AI failures into the service error taxonomy
"""
import asyncio
import time
import traceback
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from linguaspark.config import settings
from linguaspark.core.exceptions import (
    AIProviderError,
    ErrorType,
    InvalidContentError,
    NetworkTimeoutError,
    QuotaExceededError,
    UnknownAIError,
)
from linguaspark.core.logging import metrics_logger

QUOTA_INDICATORS = (
    "quota",
    "rate limit",
    "too many requests",
    "limit exceeded",
    "429",
    "resource_exhausted",
)

NETWORK_INDICATORS = (
    "network",
    "connection",
    "timeout",
    "timed out",
    "fetch",
    "econnrefused",
    "enotfound",
    "etimedout",
)

CONTENT_INDICATORS = (
    "invalid input",
    "content too short",
    "unsupported format",
    "parsing error",
    "invalid content",
    "content validation",
    "invalid_argument",
)

NETWORK_STATUSES = {0, 502, 503, 504}

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_error_id() -> str:
    """ERR_<base36 ms timestamp>_<8 hex>, upper-cased."""
    stamp = _to_base36(int(time.time() * 1000))
    return f"ERR_{stamp}_{uuid.uuid4().hex[:8]}".upper()


def _matches(indicators, *texts: str) -> bool:
    return any(ind in text for text in texts for ind in indicators)


def detect_error_type(status: Optional[int], code: Optional[str], message: str) -> ErrorType:
    """Map raw status/code/message onto an error type. Quota wins over network over content."""
    text = (message or "").lower()
    code_text = (code or "").lower()

    if status == 429 or _matches(QUOTA_INDICATORS, text, code_text):
        return ErrorType.QUOTA_EXCEEDED
    if status in NETWORK_STATUSES or _matches(NETWORK_INDICATORS, text, code_text):
        return ErrorType.NETWORK_TIMEOUT
    if status == 400 or _matches(CONTENT_INDICATORS, text, code_text):
        return ErrorType.INVALID_CONTENT
    return ErrorType.UNKNOWN


def _extract_status_and_code(error: BaseException):
    status = getattr(error, "status", None)
    if status is None:
        status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)

    code = getattr(error, "code", None)
    # google api_core exceptions carry the HTTP status in .code
    if isinstance(code, int) and not isinstance(code, bool):
        if status is None:
            status = code
        code = None
    elif code is not None:
        code = str(getattr(code, "name", code))

    if not isinstance(status, int):
        status = None
    return status, code


_VARIANTS = {
    ErrorType.QUOTA_EXCEEDED: QuotaExceededError,
    ErrorType.NETWORK_TIMEOUT: NetworkTimeoutError,
    ErrorType.INVALID_CONTENT: InvalidContentError,
    ErrorType.UNKNOWN: UnknownAIError,
}


def to_provider_error(error: BaseException) -> AIProviderError:
    """Translate a raw client exception into the matching AIProviderError variant."""
    if isinstance(error, AIProviderError):
        return error

    status, code = _extract_status_and_code(error)
    message = str(error) or type(error).__name__

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError, httpx.TransportError)):
        error_type = ErrorType.NETWORK_TIMEOUT
    else:
        error_type = detect_error_type(status, code, message)

    variant = _VARIANTS[error_type]
    if variant is QuotaExceededError:
        return QuotaExceededError(message, status=status or 429, code=code)
    return variant(message, status=status, code=code)


@dataclass
class ClassifiedError:
    type: ErrorType
    error_id: str
    original_error: BaseException
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


USER_MESSAGES: Dict[ErrorType, Dict[str, Any]] = {
    ErrorType.QUOTA_EXCEEDED: {
        "title": "API Quota Exceeded",
        "message": "API quota exceeded, please try again later",
        "actionable_steps": [
            "Wait a few minutes before trying again",
            "Try generating a shorter lesson",
            "Contact support if the issue persists",
        ],
        "include_support": True,
    },
    ErrorType.INVALID_CONTENT: {
        "title": "Content Processing Error",
        "message": "Unable to process this content, please try different text",
        "actionable_steps": [
            "Ensure the content has at least 50 words",
            "Try selecting different text from the webpage",
            "Check that the content is in a supported language",
            "Remove any special characters or formatting",
        ],
        "include_support": False,
    },
    ErrorType.NETWORK_TIMEOUT: {
        "title": "Connection Error",
        "message": "Connection error, please check your internet and try again",
        "actionable_steps": [
            "Check your internet connection",
            "Try refreshing the page",
            "Wait a moment and try again",
            "Contact support if the problem continues",
        ],
        "include_support": False,
    },
    ErrorType.UNKNOWN: {
        "title": "Service Temporarily Unavailable",
        "message": "AI service temporarily unavailable, please try again later",
        "actionable_steps": [
            "Wait a few minutes and try again",
            "Try refreshing the page",
            "Contact support with the error ID below",
        ],
        "include_support": True,
    },
}


class ErrorClassifier:
    """Classifies AI failures and renders user and support messages"""

    def classify_error(self, raw_error: BaseException, context: Optional[Dict[str, Any]] = None) -> ClassifiedError:
        if isinstance(raw_error, AIProviderError) and not isinstance(raw_error, UnknownAIError):
            error_type = raw_error.error_type
        elif isinstance(raw_error, AIProviderError):
            error_type = detect_error_type(raw_error.status, raw_error.code, raw_error.message)
        else:
            error_type = to_provider_error(raw_error).error_type

        classified = ClassifiedError(
            type=error_type,
            error_id=generate_error_id(),
            original_error=raw_error,
            context=dict(context or {}),
        )
        metrics_logger.log_classified_error(error_type.value, classified.error_id, str(raw_error))
        return classified

    def generate_user_message(self, error: ClassifiedError) -> Dict[str, Any]:
        template = USER_MESSAGES.get(error.type, USER_MESSAGES[ErrorType.UNKNOWN])
        message = {
            "title": template["title"],
            "message": template["message"],
            "actionable_steps": list(template["actionable_steps"]),
            "error_id": error.error_id,
        }
        if template["include_support"]:
            message["support_contact"] = settings.support_contact
        return message

    def generate_support_message(self, error: ClassifiedError) -> Dict[str, Any]:
        original = error.original_error
        return {
            "error_id": error.error_id,
            "type": error.type.value,
            "technical_details": self._technical_details(original),
            "context": error.context,
            "stack_trace": "".join(traceback.format_exception(type(original), original, original.__traceback__)),
            "timestamp": error.timestamp.isoformat(),
        }

    @staticmethod
    def _technical_details(error: BaseException) -> str:
        details: List[str] = []
        if str(error):
            details.append(f"Message: {error}")
        status, code = _extract_status_and_code(error)
        if code:
            details.append(f"Code: {code}")
        if status:
            details.append(f"Status: {status}")
        details.append(f"Exception: {type(error).__name__}")
        return "\n".join(details)


error_classifier = ErrorClassifier()

"""Error taxonomy and the classifier for language-model failures."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

import openai

logger = logging.getLogger(__name__)


class PocketMemError(Exception):
    """Base class for every error raised by the memory assistant."""


class ValidationError(PocketMemError):
    """A memory's ``what`` or ``value`` is empty."""


class MemoryImportError(PocketMemError):
    """An import payload is not a JSON array of memory objects."""


class ExtractionParseError(PocketMemError):
    """The extraction response could not be parsed as a fact."""


class ExtractionUnclear(PocketMemError):
    """The model declined to extract a fact."""


class StorageError(PocketMemError):
    """Reading or writing the persistent store failed."""


class ErrorCategory(str, Enum):
    NO_CONNECTION = "no_connection"
    INVALID_API_KEY = "invalid_api_key"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN = "unknown"


_MESSAGES = {
    ErrorCategory.NO_CONNECTION: "No connection. Check your network and try again.",
    ErrorCategory.INVALID_API_KEY: "Invalid API key. Check your API key configuration.",
    ErrorCategory.RATE_LIMITED: "Rate limit reached. Please wait a moment and try again.",
    ErrorCategory.TIMEOUT: "The request timed out. Please try again.",
    ErrorCategory.SERVICE_UNAVAILABLE: "The AI service is temporarily unavailable. Please try again later.",
}

_TIMEOUT_CODES = {"ETIMEDOUT", "ECONNABORTED", "ESOCKETTIMEDOUT"}
_CONNECTION_MARKERS = ("network request failed", "failed to fetch", "network error")


class ApiError(PocketMemError):
    """A language-model call failed; ``category`` says how."""

    def __init__(
        self,
        category: ErrorCategory,
        raw_message: str,
        *,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(raw_message)
        self.category = category
        self.raw_message = raw_message
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        if self.category is ErrorCategory.UNKNOWN:
            return f"Error: {self.raw_message}"
        return _MESSAGES[self.category]


def _status_code(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _is_timeout(exc: BaseException, lowered: str) -> bool:
    if isinstance(exc, (openai.APITimeoutError, TimeoutError)):
        return True
    if str(getattr(exc, "code", "") or "").upper() in _TIMEOUT_CODES:
        return True
    return "timeout" in lowered or "timed out" in lowered


def _is_connection_failure(exc: BaseException, lowered: str) -> bool:
    # The SDK's timeout error subclasses its connection error.
    if isinstance(exc, openai.APITimeoutError):
        return False
    if isinstance(exc, (openai.APIConnectionError, ConnectionError)):
        return True
    return any(marker in lowered for marker in _CONNECTION_MARKERS)


def classify_error(exc: BaseException) -> ApiError:
    """Map a failure from the language-model client to an :class:`ApiError`.

    Categories are checked in order and the first match wins.
    """

    if isinstance(exc, ApiError):
        return exc

    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()
    status = _status_code(exc)

    if _is_connection_failure(exc, lowered):
        category = ErrorCategory.NO_CONNECTION
    elif status == 401 or "api key" in lowered or "api_key" in lowered:
        category = ErrorCategory.INVALID_API_KEY
    elif status == 429:
        category = ErrorCategory.RATE_LIMITED
    elif _is_timeout(exc, lowered):
        category = ErrorCategory.TIMEOUT
    elif status is not None and status >= 500:
        category = ErrorCategory.SERVICE_UNAVAILABLE
    else:
        category = ErrorCategory.UNKNOWN

    logger.debug("Classified %s (status=%s) as %s", type(exc).__name__, status, category.value)
    return ApiError(category, message, status_code=status)


__all__ = [
    "ApiError",
    "ErrorCategory",
    "ExtractionParseError",
    "ExtractionUnclear",
    "MemoryImportError",
    "PocketMemError",
    "StorageError",
    "ValidationError",
    "classify_error",
]

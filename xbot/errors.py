"""Error taxonomy shared by the Twitter adapter, answer engines and the bot loop."""

from enum import Enum
from typing import Optional

import requests


class ErrorType(str, Enum):
    """Classification of every error surfaced by a remote call."""

    TWITTER_RATE_LIMIT = "twitter:rate-limit"
    TWITTER_AUTH = "twitter:auth"
    TWITTER_FORBIDDEN = "twitter:forbidden"
    TWITTER_NOT_FOUND = "twitter:not-found"
    NETWORK = "network"
    ANSWER_ENGINE = "answer-engine"
    INVALID_MENTION = "mention:invalid"
    STORAGE = "storage"
    UNKNOWN = "twitter:unknown"


# Error classes that will never succeed on retry
FINAL_ERROR_TYPES = frozenset(
    {
        ErrorType.TWITTER_FORBIDDEN,
        ErrorType.TWITTER_NOT_FOUND,
        ErrorType.INVALID_MENTION,
        ErrorType.UNKNOWN,
    }
)


class BotError(Exception):
    """Base exception for classified bot errors."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.UNKNOWN,
        status: Optional[int] = None,
        is_final: Optional[bool] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.status = status
        self.is_final = error_type in FINAL_ERROR_TYPES if is_final is None else is_final


class TwitterAPIError(BotError):
    """Raised by the Twitter adapter for any failed request."""

    pass


class StorageError(BotError):
    """Raised when the bot store can't answer a read it must not guess at."""

    def __init__(self, message: str):
        super().__init__(message, error_type=ErrorType.STORAGE, is_final=False)


def classify_status(status: Optional[int]) -> ErrorType:
    """Map an HTTP status code to an error type."""
    if status == 429:
        return ErrorType.TWITTER_RATE_LIMIT
    if status == 401:
        return ErrorType.TWITTER_AUTH
    if status == 403:
        return ErrorType.TWITTER_FORBIDDEN
    if status == 404:
        return ErrorType.TWITTER_NOT_FOUND
    if status is not None and status >= 500:
        return ErrorType.NETWORK
    return ErrorType.UNKNOWN


def classify_request_error(err: Exception, label: str = "twitter request") -> TwitterAPIError:
    """Convert a requests exception into a classified TwitterAPIError.

    Args:
        err: Exception raised by requests
        label: Short description of the failed operation, used in the message

    Returns:
        TwitterAPIError carrying the error type and HTTP status (if any)
    """
    if isinstance(err, TwitterAPIError):
        return err

    if isinstance(err, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return TwitterAPIError(f"Network error {label}: {err}", error_type=ErrorType.NETWORK)

    status = None
    response = getattr(err, "response", None)
    if response is not None:
        status = getattr(response, "status_code", None)

    error_type = classify_status(status)
    return TwitterAPIError(f"Error {label}: {err}", error_type=error_type, status=status)

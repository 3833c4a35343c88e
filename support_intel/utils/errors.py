"""
Application error taxonomy

Every public entry point either returns a typed result or raises one of
these. Each error carries an HTTP status code so the routes can map it
without inspecting the type.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for classified pipeline errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "context": self.context,
        }


class RequestError(AppError):
    """Freshdesk request failed after exhausting the retry budget"""

    status_code = 502

    def __init__(
        self,
        message: str,
        endpoint: str,
        upstream_status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        context = dict(context or {})
        context.setdefault("endpoint", endpoint)
        if upstream_status is not None:
            context.setdefault("upstream_status", upstream_status)
        super().__init__(message, context=context)
        self.endpoint = endpoint
        self.upstream_status = upstream_status


class RateLimitExceededError(RequestError):
    """Freshdesk kept answering 429 beyond the configured number of waits"""


class StorageError(AppError):
    """Durable store read or write failed"""


class ValidationError(AppError):
    status_code = 400


class ConfigurationError(AppError):
    """Required configuration is missing or invalid"""


class SyncInProgressError(AppError):
    """Another sync run holds the sync lock"""

    status_code = 409


class JobExecutionError(AppError):
    """Scheduled job failed"""


def to_error_message(error: Any) -> str:
    """Best-effort human readable message for any raised value"""
    if isinstance(error, AppError):
        return error.message
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    return "Unknown error"

"""
Utility functions
"""
from support_intel.utils.logger import get_logger
from support_intel.utils.errors import AppError, RequestError, to_error_message

__all__ = [
    "get_logger",
    "AppError",
    "RequestError",
    "to_error_message",
]

"""CrowdGuard error handling.

Exception hierarchy shared by the anti-abuse engine and its configuration
layer.
"""

from .exceptions import (
    ConfigurationError,
    CrowdGuardError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    ValidationError,
)

__all__ = [
    "CrowdGuardError",
    "ValidationError",
    "ConfigurationError",
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
]

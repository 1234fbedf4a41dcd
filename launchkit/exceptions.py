"""
launchkit exception hierarchy.

- LaunchKitError: base class for every known failure
- ConfigError: runtime configuration could not be used
- StepDataValidationError: step payload rejected before it reached the cache
- PersistenceError: the document store refused or failed a write
- ProgressTrackingError: a ProgressTracker operation failed
"""
from typing import Any, Dict, Optional


class LaunchKitError(Exception):
    """Base class for launchkit errors.

    Catching this handles every expected failure raised by the package.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: what went wrong
            hint: what the caller can do about it
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """Return the message with the hint appended, if any."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class ConfigError(LaunchKitError):
    """Configuration file is missing, malformed or holds illegal values."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check the config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path


class StepDataValidationError(LaunchKitError):
    """Step data failed validation."""

    def __init__(self, field: str, message: str, code: str = "VALIDATION_FAILED"):
        super().__init__(f"Validation error in {field}: {message}")
        self.field = field
        self.code = code
        self.reason = message


class PersistenceError(LaunchKitError):
    """A write to the document store failed after all retries."""

    def __init__(self, key: str, attempts: int, cause: BaseException):
        super().__init__(
            f"Persisting {key} failed after {attempts} attempt(s): {cause}",
            hint="The in-memory copy is still current; retry the write later",
        )
        self.key = key
        self.attempts = attempts
        self.cause = cause


class ProgressTrackingError(LaunchKitError):
    """A ProgressTracker operation failed.

    Carries the operation name, the (user, project) key and the underlying
    cause so callers can decide whether to retry.
    """

    def __init__(
        self,
        operation: str,
        user_id: Optional[str],
        project_id: Optional[str],
        cause: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"Progress tracking failed during {operation}: {cause}")
        self.operation = operation
        self.user_id = user_id
        self.project_id = project_id
        self.cause = cause
        self.context = context or {}

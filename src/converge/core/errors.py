"""
Unified error handling for Converge.

This module provides the exception hierarchy used by the reconciliation
engine and standardized exit codes for CLI commands.

Exit Codes:
- 0: Success
- 1: Warning (operation finished, some steps failed, e.g. best-effort teardown)
- 10: Configuration error (registry, scope or commit contract misuse)
- 11: Provider error (external service or transport failure)
- 12: Validation error (desired props do not match the resource shape)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class ConvergeError(Exception):
    """Base exception for Converge errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ConvergeError):
    """Raised for configuration-related errors. Never retried."""

    exit_code = ExitCode.CONFIG_ERROR


class DuplicateResourceTypeError(ConfigurationError):
    """Raised when a resource type name is registered twice."""


class UnknownResourceTypeError(ConfigurationError):
    """Raised when a resource type name has no registered definition."""


class NoActiveScopeError(ConfigurationError):
    """Raised when a resource is invoked outside of any active scope."""


class ScopeInactiveError(ConfigurationError):
    """Raised when a destroyed (or destroying) scope receives a registration."""


class ResourceTypeMismatchError(ConfigurationError):
    """Raised when a logical id is reused by a different resource type in one scope."""


class CommitContractError(ConfigurationError):
    """Raised when a handler breaks the commit-exactly-once contract."""


class ProviderError(ConvergeError):
    """Raised when an external provider/service fails."""

    exit_code = ExitCode.PROVIDER_ERROR


class TransportError(ProviderError):
    """Raised when an HTTP request could not be completed (network level)."""


class ReconciliationError(ProviderError):
    """Raised when a handler fails to create or update a resource."""


class InvalidPropsError(ConvergeError):
    """Raised when desired props fail validation against the resource shape."""

    exit_code = ExitCode.VALIDATION_ERROR


class WarningResult(ConvergeError):
    """Raised to indicate the operation finished with non-fatal failures."""

    exit_code = ExitCode.WARNING


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - ConvergeError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ConvergeError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                _report(e)
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                _report_unexpected(e)
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: ConvergeError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg


def _report(error: ConvergeError) -> None:
    """Show a handled error to the user on the CLI console."""
    from converge.cli.ux import error as print_error
    from converge.cli.ux import warning as print_warning

    if isinstance(error, WarningResult):
        print_warning(format_error_message(error))
    else:
        print_error(format_error_message(error))


def _report_unexpected(error: Exception) -> None:
    from converge.cli.ux import error as print_error

    print_error(f"Unexpected error: {type(error).__name__}: {error}")

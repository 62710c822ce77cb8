"""Core modules for Converge - centralized definitions and utilities."""

from converge.core.errors import (
    CommitContractError,
    ConfigurationError,
    ConvergeError,
    DuplicateResourceTypeError,
    ExitCode,
    InvalidPropsError,
    NoActiveScopeError,
    ProviderError,
    ReconciliationError,
    ResourceTypeMismatchError,
    ScopeInactiveError,
    TransportError,
    UnknownResourceTypeError,
    WarningResult,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "ConvergeError",
    "ConfigurationError",
    "DuplicateResourceTypeError",
    "UnknownResourceTypeError",
    "NoActiveScopeError",
    "ScopeInactiveError",
    "ResourceTypeMismatchError",
    "CommitContractError",
    "InvalidPropsError",
    "ProviderError",
    "TransportError",
    "ReconciliationError",
    "WarningResult",
    "main_with_error_handling",
    "format_error_message",
]

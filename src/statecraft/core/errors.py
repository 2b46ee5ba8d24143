"""
Unified error handling for statecraft runs.

Every error raised by the engine derives from ``StatecraftError`` and carries
an exit code so the process driving a run can report failures consistently.

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: Provider error (a resource's lifecycle call failed)
- 12: Validation error (bad declarations, cycles, unsupported values)
- 13: State error (store unavailable, I/O failure, decryption failure)
- 14: Unauthorized (remote state store rejected the request)
- 127: Unknown/internal error
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ExitCode(IntEnum):
    """Standardized exit codes for statecraft runs."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    STATE_ERROR = 13
    UNAUTHORIZED = 14
    UNKNOWN_ERROR = 127


class StatecraftError(Exception):
    """Base exception for statecraft errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(StatecraftError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(StatecraftError):
    """Raised for invalid declarations."""

    exit_code = ExitCode.VALIDATION_ERROR


class CycleDetected(ValidationError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, node: str):
        super().__init__(f"Circular dependency detected involving {node}", {"node": node})
        self.node = node


class SerializationError(ValidationError):
    """Raised when a value cannot be encoded into a persistable form."""


class DecryptionError(StatecraftError):
    """Raised when a secret cannot be decrypted (wrong key or corrupt data)."""

    exit_code = ExitCode.STATE_ERROR


class StoreError(StatecraftError):
    """Base class for state store failures."""

    exit_code = ExitCode.STATE_ERROR


class StoreUnavailable(StoreError):
    """Raised when the state store cannot be reached. Retryable by the caller."""


class StoreIOError(StoreError):
    """Raised when the state store fails to read or write a record."""


class Unauthorized(StoreError):
    """Raised when a remote state store rejects the request's credentials."""

    exit_code = ExitCode.UNAUTHORIZED


class ProviderError(StatecraftError):
    """Raised when a provider lifecycle function fails."""

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        *,
        fqn: str | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ):
        merged = dict(details or {})
        if fqn is not None:
            merged["fqn"] = fqn
        if cause is not None:
            merged["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, merged)
        self.fqn = fqn
        self.cause = cause


class DependencyFailed(ProviderError):
    """Raised for a resource whose dependency did not complete successfully."""

    def __init__(self, fqn: str, dependency: str):
        super().__init__(
            f"Dependency {dependency} of {fqn} failed",
            fqn=fqn,
            details={"dependency": dependency},
        )
        self.dependency = dependency


class ResourceExists(ProviderError):
    """Raised by providers when the live object already exists with another origin."""


class ResourceNotFound(StatecraftError):
    """Raised in the read phase for resources without usable state."""

    exit_code = ExitCode.STATE_ERROR


class RunFailed(StatecraftError):
    """Raised when a run finished with failed resources.

    ``details`` maps each failed FQN to its error message; ``result`` is the
    full run result, since partial state is already persisted and resumable.
    """

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(self, errors: dict[str, str], result: Any = None):
        names = ", ".join(errors)
        super().__init__(f"{len(errors)} resource(s) failed: {names}", dict(errors))
        self.errors = errors
        self.result = result


def format_error_message(error: StatecraftError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg

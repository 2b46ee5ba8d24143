"""Core modules for statecraft - centralized definitions and utilities."""

from statecraft.core.errors import (
    ConfigurationError,
    CycleDetected,
    DecryptionError,
    DependencyFailed,
    ExitCode,
    ProviderError,
    ResourceExists,
    ResourceNotFound,
    RunFailed,
    SerializationError,
    StatecraftError,
    StoreError,
    StoreIOError,
    StoreUnavailable,
    Unauthorized,
    ValidationError,
    format_error_message,
)

__all__ = [
    "ExitCode",
    "StatecraftError",
    "ConfigurationError",
    "ValidationError",
    "CycleDetected",
    "SerializationError",
    "DecryptionError",
    "StoreError",
    "StoreUnavailable",
    "StoreIOError",
    "Unauthorized",
    "ProviderError",
    "DependencyFailed",
    "ResourceExists",
    "ResourceNotFound",
    "RunFailed",
    "format_error_message",
]

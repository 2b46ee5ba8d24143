"""Declarative resource orchestration with persisted, resumable state."""

from statecraft.app import open_scope
from statecraft.core.errors import (
    CycleDetected,
    DecryptionError,
    DependencyFailed,
    ProviderError,
    ResourceExists,
    ResourceNotFound,
    RunFailed,
    StatecraftError,
    ValidationError,
)
from statecraft.engine import (
    DestroyStrategy,
    FunctionProvider,
    OutputRef,
    Provider,
    ProviderRegistry,
    Resource,
    ResourceContext,
    RunResult,
)
from statecraft.scope import Phase, Scope
from statecraft.serde import Secret, Symbol

__version__ = "0.1.0"

__all__ = [
    "CycleDetected",
    "DecryptionError",
    "DependencyFailed",
    "DestroyStrategy",
    "FunctionProvider",
    "OutputRef",
    "Phase",
    "Provider",
    "ProviderError",
    "ProviderRegistry",
    "Resource",
    "ResourceContext",
    "ResourceExists",
    "ResourceNotFound",
    "RunFailed",
    "RunResult",
    "Scope",
    "Secret",
    "Symbol",
    "StatecraftError",
    "ValidationError",
    "open_scope",
]

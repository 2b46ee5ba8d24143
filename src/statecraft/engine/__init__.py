"""Resource lifecycle engine, provider contract and run results."""

from statecraft.engine.context import DestroyStrategy, RunContext
from statecraft.engine.lifecycle import LifecycleEngine
from statecraft.engine.provider import (
    FunctionProvider,
    Provider,
    ProviderRegistry,
    ResourceContext,
    supports_read,
)
from statecraft.engine.reconciler import OrphanReconciler
from statecraft.engine.resource import OutputRef, Resource, iter_refs, resolve_refs
from statecraft.engine.results import (
    Action,
    ReconcileReport,
    ResourceOutcome,
    ResultCollector,
    RunResult,
)

__all__ = [
    "Action",
    "DestroyStrategy",
    "FunctionProvider",
    "LifecycleEngine",
    "OrphanReconciler",
    "OutputRef",
    "Provider",
    "ProviderRegistry",
    "ReconcileReport",
    "Resource",
    "ResourceContext",
    "ResourceOutcome",
    "ResultCollector",
    "RunContext",
    "RunResult",
    "iter_refs",
    "resolve_refs",
    "supports_read",
]

"""
Orderly Dependency Injection System

Lazily constructed singleton components with ordered lifecycle hooks.

Key Features:
- Singleton and transient scopes, compute-once under concurrent access
- Construction ledger recording components in completion order
- Start hooks in construction order, stop hooks in exact reverse order
- Fail-fast startup, best-effort shutdown with aggregated failures
- Decorator, explicit and convention based hook discovery
"""

from .core import (
    Provider,
    ProviderMeta,
    Container,
    ResolveCtx,
    token_to_key,
)

from .providers import (
    ClassProvider,
    FactoryProvider,
    ValueProvider,
)

from .scopes import (
    Scope,
    ServiceScope,
    SingletonScopeGuard,
)

from .decorators import (
    service,
    inject,
    Inject,
    on_start,
    on_stop,
)

from .hooks import (
    HookRegistry,
    ResolvedHooks,
)

from .ledger import (
    Ledger,
    LedgerEntry,
    ConstructionTracker,
)

from .lifecycle import (
    LifecycleService,
    LifecycleState,
    LifecycleContext,
)

from .diagnostics import (
    DIDiagnostics,
    DIEvent,
    DIEventType,
    LoggingDiagnosticListener,
)

from .errors import (
    DIError,
    ProviderNotFoundError,
    DependencyCycleError,
    DuplicateConstructionError,
    InvalidStateTransitionError,
    LateConstructionError,
    LifecycleHookError,
    StartHookFailure,
    StopHookFailure,
    StopHooksFailedError,
)

__all__ = [
    # Core types
    "Provider",
    "ProviderMeta",
    "Container",
    "ResolveCtx",
    "token_to_key",

    # Providers
    "ClassProvider",
    "FactoryProvider",
    "ValueProvider",

    # Scopes
    "Scope",
    "ServiceScope",
    "SingletonScopeGuard",

    # Decorators
    "service",
    "inject",
    "Inject",
    "on_start",
    "on_stop",

    # Hooks
    "HookRegistry",
    "ResolvedHooks",

    # Ledger
    "Ledger",
    "LedgerEntry",
    "ConstructionTracker",

    # Lifecycle
    "LifecycleService",
    "LifecycleState",
    "LifecycleContext",

    # Diagnostics
    "DIDiagnostics",
    "DIEvent",
    "DIEventType",
    "LoggingDiagnosticListener",

    # Errors
    "DIError",
    "ProviderNotFoundError",
    "DependencyCycleError",
    "DuplicateConstructionError",
    "InvalidStateTransitionError",
    "LateConstructionError",
    "LifecycleHookError",
    "StartHookFailure",
    "StopHookFailure",
    "StopHooksFailedError",
]

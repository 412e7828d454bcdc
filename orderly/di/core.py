"""
Core DI types and protocols.

Defines the provider contract and the container that routes singleton
construction through the scope guard into the lifecycle ledger.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    Type,
    TypeVar,
    runtime_checkable,
)
from dataclasses import dataclass, field
import logging

from ..config import LifecycleConfig
from .diagnostics import DIDiagnostics, DIEventType, LoggingDiagnosticListener
from .errors import DependencyCycleError, ProviderNotFoundError
from .hooks import HookRegistry
from .ledger import ConstructionTracker, Ledger
from .lifecycle import LifecycleService
from .scopes import ServiceScope, SingletonScopeGuard, get_scope


logger = logging.getLogger("orderly.di.core")

# Module-level cache: type → "module.qualname" string
_type_key_cache: Dict[type, str] = {}


T = TypeVar("T")


def token_to_key(token: Any) -> str:
    """Convert a type or string token to its registry key."""
    if isinstance(token, str):
        return token

    if isinstance(token, type):
        key = _type_key_cache.get(token)
        if key is None:
            key = f"{token.__module__}.{token.__qualname__}"
            _type_key_cache[token] = key
        return key

    # Typing generics and other objects
    return str(token)


@dataclass(frozen=True, slots=True)
class ProviderMeta:
    """
    Compact provider metadata.

    ``constructs`` is False for providers handing out objects the container
    did not build (pre-bound values); those never enter the ledger.
    """
    name: str
    token: str  # Type name or string key
    scope: str  # "singleton" or "transient"
    tags: tuple[str, ...] = field(default_factory=tuple)
    module: str = ""
    qualname: str = ""
    line: Optional[int] = None
    constructs: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "token": self.token,
            "scope": self.scope,
            "tags": list(self.tags),
            "module": self.module,
            "qualname": self.qualname,
            "line": self.line,
            "constructs": self.constructs,
        }


class ResolveCtx:
    """
    Context for one resolution call chain.

    Tracks the resolution stack for cycle detection and diagnostics.
    """
    __slots__ = ("container", "stack")

    def __init__(self, container: "Container"):
        self.container = container
        self.stack: List[str] = []

    def push(self, key: str) -> None:
        if self.in_cycle(key):
            raise DependencyCycleError(self.stack[self.stack.index(key):] + [key])
        self.stack.append(key)

    def pop(self) -> None:
        self.stack.pop()

    def in_cycle(self, key: str) -> bool:
        return key in self.stack

    def get_trace(self) -> List[str]:
        return self.stack.copy()

    def resolve(
        self,
        token: Any,
        *,
        tag: Optional[str] = None,
        optional: bool = False,
    ) -> Any:
        """Resolve a dependency within this call chain."""
        return self.container._resolve(token, tag, optional, self)


@runtime_checkable
class Provider(Protocol):
    """
    Provider protocol - how to instantiate a dependency.
    """

    @property
    def meta(self) -> ProviderMeta:
        """Provider metadata."""
        ...

    def instantiate(self, ctx: ResolveCtx) -> Any:
        """
        Instantiate the provider.

        Args:
            ctx: Resolution context; dependencies are resolved through it

        Returns:
            The instantiated object
        """
        ...


class Container:
    """
    DI Container - resolves components and feeds the lifecycle ledger.

    Singleton components are constructed at most once through the scope
    guard. Each construction is recorded before the instance is returned to
    anyone, so ledger order follows the dependency graph.

    Example:
        container = Container()
        container.register(ClassProvider(Database))
        container.register(ClassProvider(UserService))

        users = container.resolve(UserService)
        container.start()
        ...
        container.stop()
    """

    __slots__ = (
        "_providers",
        "_config",
        "_diagnostics",
        "_ledger",
        "_hooks",
        "_tracker",
        "_lifecycle",
        "_guard",
    )

    def __init__(
        self,
        config: Optional[LifecycleConfig] = None,
        diagnostics: Optional[DIDiagnostics] = None,
        hook_registry: Optional[HookRegistry] = None,
    ):
        self._config = config or LifecycleConfig()
        self._providers: Dict[str, Provider] = {}  # {cache_key: provider}
        self._diagnostics = diagnostics or DIDiagnostics()
        if self._config.diagnostics:
            self._diagnostics.add_listener(
                LoggingDiagnosticListener(self._config.log_level_value)
            )

        self._ledger = Ledger()
        self._hooks = hook_registry or HookRegistry(
            conventions=self._config.hook_conventions
        )
        self._tracker = ConstructionTracker(self._ledger, self._hooks)
        self._lifecycle = LifecycleService(
            self._ledger,
            self._tracker,
            config=self._config,
            diagnostics=self._diagnostics,
        )
        self._guard = SingletonScopeGuard(on_construct=self._on_construct)

        from .providers import ValueProvider
        self.register(ValueProvider(self._lifecycle, LifecycleService, name="lifecycle"))

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def lifecycle(self) -> LifecycleService:
        return self._lifecycle

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    @property
    def config(self) -> LifecycleConfig:
        return self._config

    @property
    def diagnostics(self) -> DIDiagnostics:
        return self._diagnostics

    def register(self, provider: Provider, tag: Optional[str] = None) -> None:
        """
        Register a provider.

        Args:
            provider: Provider instance
            tag: Optional tag for disambiguation

        Raises:
            ValueError: If a different provider is already registered for
                the token and tag
        """
        meta = provider.meta
        get_scope(meta.scope)
        key = self._make_cache_key(meta.token, tag)

        existing = self._providers.get(key)
        if existing is not None:
            if existing is provider:
                return
            raise ValueError(
                f"Provider for {meta.token} (tag={tag}) already registered: {existing.meta.name}"
            )

        self._providers[key] = provider
        self._diagnostics.emit(
            DIEventType.REGISTRATION,
            token=meta.token,
            tag=tag,
            provider_name=meta.name,
        )

    def register_class(self, cls: Type) -> None:
        """Register a class decorated with ``@service``."""
        from .providers import ClassProvider
        provider = ClassProvider(
            cls,
            scope=getattr(cls, "__di_scope__", "singleton"),
            name=getattr(cls, "__di_name__", None),
        )
        self.register(provider, tag=getattr(cls, "__di_tag__", None))

    def bind(
        self,
        interface: Type,
        implementation: Type,
        scope: str = "singleton",
        tag: Optional[str] = None,
    ) -> None:
        """
        Bind an interface to an implementation class.

        Example:
            container.bind(UserRepository, SqlUserRepository)
        """
        from .providers import ClassProvider
        self.register(ClassProvider(implementation, scope=scope, token=interface), tag=tag)

    def register_instance(
        self,
        token: Any,
        instance: Any,
        tag: Optional[str] = None,
    ) -> None:
        """
        Register a pre-built object.

        The container did not construct it, so it is never recorded and its
        hooks never run.
        """
        from .providers import ValueProvider
        name = getattr(token, "__name__", str(token))
        self.register(ValueProvider(instance, token, name=f"{name}_instance"), tag=tag)

    def is_registered(self, token: Any, tag: Optional[str] = None) -> bool:
        return self._make_cache_key(token_to_key(token), tag) in self._providers

    def resolve(
        self,
        token: Type[T] | str,
        *,
        tag: Optional[str] = None,
        optional: bool = False,
    ) -> T:
        """
        Resolve a component.

        Args:
            token: Type or string key
            tag: Optional tag for disambiguation
            optional: If True, return None if not found instead of raising

        Raises:
            ProviderNotFoundError: If provider not found and not optional
            DependencyCycleError: If the dependency graph has a cycle
        """
        return self._resolve(token, tag, optional, ResolveCtx(self))

    def _resolve(
        self,
        token: Any,
        tag: Optional[str],
        optional: bool,
        ctx: ResolveCtx,
    ) -> Any:
        key = self._make_cache_key(token_to_key(token), tag)

        # Fast path: published singleton
        if self._guard.contains(key):
            return self._guard.get(key)

        provider = self._providers.get(key)
        if provider is None:
            if optional:
                return None
            self._raise_not_found(key, tag, ctx)

        ctx.push(key)
        try:
            if provider.meta.scope == ServiceScope.SINGLETON and provider.meta.constructs:
                return self._guard.get_or_create(key, lambda: provider.instantiate(ctx))
            return provider.instantiate(ctx)
        except (ProviderNotFoundError, DependencyCycleError):
            raise
        except Exception as e:
            self._diagnostics.emit(
                DIEventType.RESOLUTION_FAILURE,
                token=key,
                tag=tag,
                provider_name=provider.meta.name,
                error=e,
            )
            raise
        finally:
            ctx.pop()

    def _on_construct(self, instance: Any, key: str) -> None:
        provider = self._providers.get(key)
        name = provider.meta.name if provider is not None else key
        self._lifecycle.on_construction(instance, key=key, name=name)

    def start(self) -> None:
        """Start all constructed components in construction order."""
        self._lifecycle.start()

    def stop(self) -> None:
        """Stop all constructed components in reverse construction order."""
        self._lifecycle.stop()

    def _make_cache_key(self, token: str, tag: Optional[str]) -> str:
        if tag:
            return f"{token}#{tag}"
        return token

    def _raise_not_found(self, key: str, tag: Optional[str], ctx: ResolveCtx) -> None:
        """Raise ProviderNotFoundError with helpful diagnostics."""
        token = key.split("#", 1)[0]
        short = token.rsplit(".", 1)[-1]
        candidates = [k for k in self._providers if k != key and (token in k or k.endswith(short))]

        trace = ctx.get_trace()
        raise ProviderNotFoundError(
            token=token,
            tag=tag,
            candidates=candidates,
            requested_by=trace[-1] if trace else None,
        )

"""
Scope definitions and the singleton scope guard.
"""

from enum import Enum
from typing import Any, Callable, Dict, Hashable, Optional
from dataclasses import dataclass
import threading


class ServiceScope(str, Enum):
    """Service lifetime scopes."""

    SINGLETON = "singleton"  # One instance per container, recorded in the ledger
    TRANSIENT = "transient"  # New instance every resolve, never recorded


@dataclass(frozen=True)
class Scope:
    """Scope metadata and rules."""

    name: str
    cacheable: bool


# Predefined scopes
SCOPES = {
    "singleton": Scope(name="singleton", cacheable=True),
    "transient": Scope(name="transient", cacheable=False),
}


def get_scope(name: str) -> Scope:
    """
    Look up a scope by name.

    Raises:
        ValueError: If the scope is unknown
    """
    try:
        return SCOPES[name]
    except KeyError:
        raise ValueError(
            f"Unknown scope '{name}'. Expected one of: {', '.join(SCOPES)}"
        ) from None


_MISSING = object()


class SingletonScopeGuard:
    """
    Compute-once memoization per component key.

    Concurrent first requests for the same key block on a per-key lock until
    the winning construction completes; all callers then observe the same
    instance. ``on_construct`` runs synchronously after the factory returns
    and before the instance is published, so the ledger append of a
    dependency always precedes any use of it.

    A failing factory (or ``on_construct``) caches nothing; the next request
    retries.
    """

    __slots__ = ("_instances", "_locks", "_locks_guard", "_on_construct")

    def __init__(
        self,
        on_construct: Optional[Callable[[Any, Hashable], Any]] = None,
    ):
        self._instances: Dict[Hashable, Any] = {}
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._on_construct = on_construct

    def get_or_create(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        """
        Return the instance for ``key``, constructing it at most once.

        Args:
            key: Component key
            factory: Zero-argument callable building the instance

        Returns:
            The single instance for ``key``
        """
        # Fast path: published instances need no locking
        instance = self._instances.get(key, _MISSING)
        if instance is not _MISSING:
            return instance

        with self._lock_for(key):
            instance = self._instances.get(key, _MISSING)
            if instance is not _MISSING:
                return instance

            instance = factory()
            if self._on_construct is not None:
                self._on_construct(instance, key)

            self._instances[key] = instance
            return instance

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def contains(self, key: Hashable) -> bool:
        return key in self._instances

    def get(self, key: Hashable, default: Any = None) -> Any:
        return self._instances.get(key, default)

    def __len__(self) -> int:
        return len(self._instances)

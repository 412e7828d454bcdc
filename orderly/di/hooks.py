"""
Hook registry - resolves a component's start/stop callbacks.

Resolution happens once per instance, at construction time. The result is a
fixed list of callables; nothing is looked up again when the lifecycle
starts or stops.
"""

from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple, Type
from dataclasses import dataclass
import inspect
import logging
import threading

from .decorators import HOOK_MARKER


logger = logging.getLogger("orderly.di.hooks")


# Method names treated as hooks without a decorator
CONVENTION_HOOKS: Dict[str, str] = {
    "on_startup": "start",
    "on_shutdown": "stop",
}


@dataclass(frozen=True)
class ResolvedHooks:
    """Start and stop callbacks of one component, in invocation order."""

    start: Tuple[Callable[[], Any], ...] = ()
    stop: Tuple[Callable[[], Any], ...] = ()

    def __bool__(self) -> bool:
        return bool(self.start or self.stop)


NO_HOOKS = ResolvedHooks()


class HookRegistry:
    """
    Determines which methods of an instance are lifecycle hooks.

    Sources, merged per method name:
    - methods marked with ``@on_start`` / ``@on_stop`` anywhere in the MRO
    - explicit registrations via ``register()`` for undecoratable classes
    - convention names (``on_startup`` / ``on_shutdown``) when enabled

    There is one slot per method name. The callable bound into the slot is
    whatever attribute lookup on the instance returns, so an override is the
    only definition that runs. A subclass that overrides a hook without
    re-marking it keeps the inherited slot; one that re-marks it replaces
    the inherited phases.
    """

    def __init__(self, conventions: bool = True):
        self._conventions = conventions
        self._explicit: Dict[type, Dict[str, FrozenSet[str]]] = {}
        self._plans: Dict[type, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {}
        self._lock = threading.Lock()

    @property
    def conventions(self) -> bool:
        return self._conventions

    def register(
        self,
        cls: Type,
        *,
        start: Sequence[str] = (),
        stop: Sequence[str] = (),
    ) -> None:
        """
        Declare hooks for a class by method name.

        Applies to subclasses as well. Useful for third-party classes.

        Example:
            registry.register(redis.Redis, stop=("close",))
        """
        for name in (*start, *stop):
            if inspect.iscoroutinefunction(getattr(cls, name, None)):
                raise TypeError(
                    f"Cannot register coroutine function '{cls.__qualname__}.{name}' "
                    f"as a lifecycle hook; lifecycle hooks run synchronously"
                )

        names: Dict[str, FrozenSet[str]] = {}
        for name in start:
            names[name] = names.get(name, frozenset()) | {"start"}
        for name in stop:
            names[name] = names.get(name, frozenset()) | {"stop"}

        with self._lock:
            current = dict(self._explicit.get(cls, {}))
            current.update(names)
            self._explicit[cls] = current
            # Explicit registrations may change any cached subclass plan
            self._plans.clear()

    def resolve_hooks(self, instance: Any) -> ResolvedHooks:
        """
        Resolve the start and stop callbacks of ``instance``.

        Returns:
            ResolvedHooks, empty when the instance declares no hooks
        """
        start_names, stop_names = self._plan_for(type(instance))
        if not start_names and not stop_names:
            return NO_HOOKS

        return ResolvedHooks(
            start=tuple(getattr(instance, name) for name in start_names),
            stop=tuple(getattr(instance, name) for name in stop_names),
        )

    def _plan_for(self, cls: type) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        plan = self._plans.get(cls)
        if plan is None:
            plan = self._build_plan(cls)
            with self._lock:
                self._plans[cls] = plan
        return plan

    def _build_plan(self, cls: type) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Compute hook method names per phase for ``cls``."""
        slots: Dict[str, FrozenSet[str]] = {}
        order: List[str] = []
        # Slots whose current definition is only matched by name
        conventional: Set[str] = set()

        # Base first so derived declarations override
        for klass in reversed(cls.__mro__):
            if klass is object:
                continue
            members = dict(vars(klass))
            # Explicit names may refer to methods inherited from elsewhere
            for name in self._explicit.get(klass, ()):
                if name not in members:
                    members[name] = getattr(klass, name, None)

            for name, value in members.items():
                found = self._phases_of(klass, name, value)
                if found is None:
                    continue
                phases, by_convention = found
                if name not in slots:
                    order.append(name)
                slots[name] = phases
                if by_convention:
                    conventional.add(name)
                else:
                    conventional.discard(name)

        hooks: List[str] = []
        for name in order:
            attr = getattr(cls, name, None)
            if not callable(attr):
                continue
            if inspect.iscoroutinefunction(attr):
                if name in conventional:
                    logger.warning(
                        f"Ignoring coroutine '{cls.__qualname__}.{name}': "
                        f"lifecycle hooks run synchronously"
                    )
                    continue
                raise TypeError(
                    f"Lifecycle hook '{cls.__qualname__}.{name}' is a coroutine "
                    f"function; lifecycle hooks run synchronously"
                )
            hooks.append(name)

        start = tuple(n for n in hooks if "start" in slots[n])
        stop = tuple(n for n in hooks if "stop" in slots[n])
        return start, stop

    def _phases_of(
        self, klass: type, name: str, value: Any
    ) -> Optional[Tuple[FrozenSet[str], bool]]:
        """Phases declared for ``name`` on ``klass`` and whether only its name matched."""
        func = value
        if isinstance(value, (staticmethod, classmethod)):
            func = value.__func__

        marked = getattr(func, HOOK_MARKER, None)
        if marked:
            return frozenset(marked), False

        explicit = self._explicit.get(klass)
        if explicit and name in explicit:
            return explicit[name], False

        if self._conventions and name in CONVENTION_HOOKS and callable(func):
            return frozenset((CONVENTION_HOOKS[name],)), True

        return None

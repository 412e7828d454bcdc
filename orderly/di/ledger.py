"""
Construction ledger.

Records every component instance in the order its construction completed.
The ledger is the only shared mutable structure of the lifecycle core; it is
mutated through a single append operation guarded by one lock, and read by
the lifecycle walks.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
import threading
import weakref

from .errors import DuplicateConstructionError


Hook = Callable[[], Any]


def _weak_hook(hook: Hook) -> Callable[[], Optional[Hook]]:
    """Return a dereferencer for ``hook`` that does not own its instance."""
    if getattr(hook, "__self__", None) is not None and hasattr(hook, "__func__"):
        try:
            return weakref.WeakMethod(hook)
        except TypeError:
            pass
    return lambda: hook


def _weak_instance(instance: Any) -> Callable[[], Any]:
    try:
        return weakref.ref(instance)
    except TypeError:
        # Objects without __weakref__ are held strongly.
        return lambda: instance


class LedgerEntry:
    """
    One recorded construction.

    Holds a non-owning reference to the instance; the container owns it.
    Hooks are stored as weak method references so the ledger never extends
    a component's lifetime.
    """

    __slots__ = ("sequence", "name", "_instance_ref", "_start_refs", "_stop_refs")

    def __init__(
        self,
        sequence: int,
        instance: Any,
        start_hooks: Sequence[Hook] = (),
        stop_hooks: Sequence[Hook] = (),
        name: Optional[str] = None,
    ):
        self.sequence = sequence
        self.name = name or type(instance).__qualname__
        self._instance_ref = _weak_instance(instance)
        self._start_refs = tuple(_weak_hook(h) for h in start_hooks)
        self._stop_refs = tuple(_weak_hook(h) for h in stop_hooks)

    @property
    def instance(self) -> Any:
        """The recorded instance, or None if it has been collected."""
        return self._instance_ref()

    @property
    def alive(self) -> bool:
        return self._instance_ref() is not None

    @property
    def start_hooks(self) -> Tuple[Hook, ...]:
        return tuple(h for h in (ref() for ref in self._start_refs) if h is not None)

    @property
    def stop_hooks(self) -> Tuple[Hook, ...]:
        return tuple(h for h in (ref() for ref in self._stop_refs) if h is not None)

    @property
    def has_hooks(self) -> bool:
        return bool(self._start_refs or self._stop_refs)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry #{self.sequence} {self.name} "
            f"start={len(self._start_refs)} stop={len(self._stop_refs)}>"
        )


class Ledger:
    """
    Append-only, sequence-ordered record of constructed components.

    ``append`` is the only mutation. Sequence numbers are assigned inside
    the same critical section as the append, so ledger order matches the
    real completion order of constructions across threads.
    """

    __slots__ = ("_entries", "_by_id", "_lock", "__weakref__")

    def __init__(self):
        self._entries: List[LedgerEntry] = []
        self._by_id: Dict[int, LedgerEntry] = {}
        # Re-entrant: collection callbacks may fire while the lock is held.
        self._lock = threading.RLock()

    def append(
        self,
        instance: Any,
        start_hooks: Sequence[Hook] = (),
        stop_hooks: Sequence[Hook] = (),
        name: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Record a freshly constructed instance.

        Raises:
            DuplicateConstructionError: If the instance is already recorded
        """
        key = id(instance)
        with self._lock:
            existing = self._by_id.get(key)
            if existing is not None and existing.instance is instance:
                raise DuplicateConstructionError(existing.name, existing.sequence)

            entry = LedgerEntry(
                sequence=len(self._entries),
                instance=instance,
                start_hooks=start_hooks,
                stop_hooks=stop_hooks,
                name=name,
            )
            self._entries.append(entry)
            self._by_id[key] = entry
            self._forget_on_collect(instance, key, entry)
            return entry

    def _forget_on_collect(self, instance: Any, key: int, entry: LedgerEntry) -> None:
        """Drop identity bookkeeping once a weakly held instance dies."""
        ledger_ref = weakref.ref(self)

        def _release(_ref, key=key, entry=entry):
            ledger = ledger_ref()
            if ledger is None:
                return
            with ledger._lock:
                if ledger._by_id.get(key) is entry:
                    del ledger._by_id[key]

        try:
            weakref.finalize(instance, _release, None)
        except TypeError:
            pass

    def contains(self, instance: Any) -> bool:
        with self._lock:
            entry = self._by_id.get(id(instance))
            return entry is not None and entry.instance is instance

    def entry_for(self, instance: Any) -> Optional[LedgerEntry]:
        with self._lock:
            entry = self._by_id.get(id(instance))
            if entry is not None and entry.instance is instance:
                return entry
            return None

    def snapshot(self) -> List[LedgerEntry]:
        """Entries in ascending sequence order."""
        with self._lock:
            return list(self._entries)

    def reversed_snapshot(self) -> List[LedgerEntry]:
        """Entries in descending sequence order."""
        with self._lock:
            return self._entries[::-1]

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> LedgerEntry:
        return self._entries[index]

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(self.snapshot())

    def names(self) -> List[str]:
        return [entry.name for entry in self.snapshot()]


class ConstructionTracker:
    """
    Observes constructions and appends them to the ledger.

    The hook registry is consulted in the same notification so each
    instance is looked up once, at construction time.
    """

    __slots__ = ("_ledger", "_hooks")

    def __init__(self, ledger: Ledger, hook_registry: Any):
        self._ledger = ledger
        self._hooks = hook_registry

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    def record_construction(
        self,
        instance: Any,
        hooks: Optional[Any] = None,
        name: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Record ``instance`` with its resolved hooks.

        Args:
            instance: The freshly constructed component
            hooks: Pre-resolved ``ResolvedHooks``; resolved here when omitted
            name: Diagnostic name for the component

        Returns:
            The new ledger entry
        """
        if hooks is None:
            hooks = self._hooks.resolve_hooks(instance)
        return self._ledger.append(
            instance,
            start_hooks=hooks.start,
            stop_hooks=hooks.stop,
            name=name,
        )

"""
Lifecycle service - ordered start/stop of constructed components.

Start hooks run in ledger order, stop hooks in exact reverse ledger order.
Ledger order is construction completion order, which follows the dependency
graph: a dependency always finishes construction before its dependents.
"""

from typing import Any, Callable, Hashable, List, Optional
from enum import Enum
import logging
import threading

from ..config import LifecycleConfig
from .diagnostics import DIDiagnostics, DIEventType
from .errors import (
    InvalidStateTransitionError,
    LateConstructionError,
    StartHookFailure,
    StopHookFailure,
    StopHooksFailedError,
)
from .ledger import ConstructionTracker, Ledger, LedgerEntry


logger = logging.getLogger("orderly.di.lifecycle")


class LifecycleState(str, Enum):
    """Forward-only lifecycle states."""

    NOT_STARTED = "not_started"
    STARTED = "started"
    STOPPED = "stopped"


class LifecycleService:
    """
    Runs start and stop hooks over the construction ledger.

    ``start()`` and ``stop()`` each succeed once per process. The walks are
    sequential on the calling thread; no two hooks ever run concurrently.
    """

    def __init__(
        self,
        ledger: Ledger,
        tracker: ConstructionTracker,
        config: Optional[LifecycleConfig] = None,
        diagnostics: Optional[DIDiagnostics] = None,
    ):
        self._ledger = ledger
        self._tracker = tracker
        self._config = config or LifecycleConfig()
        self._diagnostics = diagnostics or DIDiagnostics()
        self._state = LifecycleState.NOT_STARTED
        self._start_walk_done = False
        self._start_failed = False
        self._started: List[str] = []
        self._lock = threading.RLock()

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def config(self) -> LifecycleConfig:
        return self._config

    def started_components(self) -> List[str]:
        """Names of components whose start hooks all completed."""
        with self._lock:
            return list(self._started)

    # ------------------------------------------------------------------
    # Construction notifications
    # ------------------------------------------------------------------

    def on_construction(
        self,
        instance: Any,
        key: Optional[Hashable] = None,
        name: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Record a freshly constructed component.

        Wired into the singleton scope guard; runs before the instance is
        published to any caller. Applies the late construction policy when
        the start walk has already finished.

        Raises:
            LateConstructionError: If the policy forbids the construction
            StartHookFailure: If an immediately run start hook fails
        """
        name = name or (str(key) if key is not None else None)
        policy = self._config.late_construction

        with self._lock:
            state = self._state
            late = self._start_walk_done or state is LifecycleState.STOPPED
            if late and (
                policy == "reject"
                or (policy == "start" and (state is LifecycleState.STOPPED or self._start_failed))
            ):
                component = name or type(instance).__qualname__
                logger.error(
                    f"Rejected construction of '{component}' in state {state.value}"
                )
                raise LateConstructionError(
                    component, state, policy, start_failed=self._start_failed
                )

            entry = self._tracker.record_construction(instance, name=name)
            run_now = late and policy == "start" and state is LifecycleState.STARTED

        self._diagnostics.emit(
            DIEventType.CONSTRUCTION,
            token=key,
            provider_name=entry.name,
            sequence=entry.sequence,
            metadata={"late": late},
        )

        if run_now:
            logger.info(f"Starting late component '{entry.name}'")
            self._run_start_hooks(entry)

        return entry

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Run every start hook in ledger order.

        Components constructed by a start hook are appended to the ledger
        and started later in the same walk.

        Raises:
            InvalidStateTransitionError: If not in NOT_STARTED
            StartHookFailure: On the first failing start hook; later
                components stay un-started and the state stays STARTED.
                Under the "start" policy, later constructions are then
                rejected instead of started
        """
        with self._lock:
            if self._state is not LifecycleState.NOT_STARTED:
                raise InvalidStateTransitionError(
                    "start", self._state, LifecycleState.NOT_STARTED
                )
            self._state = LifecycleState.STARTED

        self._diagnostics.emit(
            DIEventType.LIFECYCLE_START,
            metadata={"components": len(self._ledger)},
        )
        logger.info(f"Starting lifecycle ({len(self._ledger)} components recorded)")

        index = 0
        try:
            while True:
                entry = self._next_for_start(index)
                if entry is None:
                    break
                self._run_start_hooks(entry)
                index += 1
        except StartHookFailure:
            # Entries after the failing one stay un-started
            with self._lock:
                self._start_failed = True
            raise
        finally:
            with self._lock:
                self._start_walk_done = True

        logger.info(f"Lifecycle started ({index} components)")

    def _next_for_start(self, index: int) -> Optional[LedgerEntry]:
        with self._lock:
            if index < len(self._ledger):
                return self._ledger[index]
            # Nothing left; later constructions fall under the late policy
            self._start_walk_done = True
            return None

    def _run_start_hooks(self, entry: LedgerEntry) -> None:
        if not entry.alive:
            logger.debug(f"  skip #{entry.sequence} {entry.name}: collected")
            return

        for hook in entry.start_hooks:
            try:
                hook()
            except Exception as e:
                logger.error(f"  start hook of '{entry.name}' failed: {e}")
                self._diagnostics.emit(
                    DIEventType.HOOK_FAILURE,
                    provider_name=entry.name,
                    sequence=entry.sequence,
                    error=e,
                    metadata={"phase": "start"},
                )
                raise StartHookFailure(entry.name, e) from e

        if entry.has_hooks:
            logger.debug(f"  started #{entry.sequence} {entry.name}")
        with self._lock:
            self._started.append(entry.name)

    def stop(self) -> None:
        """
        Run every stop hook in reverse ledger order.

        A failing stop hook does not halt the walk; every failure is
        collected and raised together once all components were visited.

        Raises:
            InvalidStateTransitionError: If not in STARTED
            StopHooksFailedError: If one or more stop hooks failed
        """
        with self._lock:
            if self._state is not LifecycleState.STARTED:
                raise InvalidStateTransitionError(
                    "stop", self._state, LifecycleState.STARTED
                )
            self._state = LifecycleState.STOPPED
            entries = self._ledger.reversed_snapshot()

        self._diagnostics.emit(
            DIEventType.LIFECYCLE_STOP,
            metadata={"components": len(entries)},
        )
        logger.info(f"Stopping lifecycle ({len(entries)} components)")

        failures: List[StopHookFailure] = []
        for entry in entries:
            failures.extend(self._run_stop_hooks(entry))

        if failures:
            logger.error(f"Lifecycle stopped with {len(failures)} failed stop hook(s)")
            raise StopHooksFailedError(failures)

        logger.info("Lifecycle stopped")

    def _run_stop_hooks(self, entry: LedgerEntry) -> List[StopHookFailure]:
        failures: List[StopHookFailure] = []
        if not entry.alive:
            logger.debug(f"  skip #{entry.sequence} {entry.name}: collected")
            return failures

        for hook in entry.stop_hooks:
            try:
                hook()
            except Exception as e:
                logger.error(f"  stop hook of '{entry.name}' failed: {e}")
                self._diagnostics.emit(
                    DIEventType.HOOK_FAILURE,
                    provider_name=entry.name,
                    sequence=entry.sequence,
                    error=e,
                    metadata={"phase": "stop"},
                )
                failure = StopHookFailure(entry.name, e)
                failure.__cause__ = e
                failures.append(failure)

        if entry.has_hooks:
            logger.debug(f"  stopped #{entry.sequence} {entry.name}")
        return failures


class LifecycleContext:
    """
    Context manager for automatic lifecycle management.

    Usage:
        with LifecycleContext(container.lifecycle):
            serve_forever()
    """

    def __init__(self, lifecycle: LifecycleService):
        self.lifecycle = lifecycle

    def __enter__(self) -> LifecycleService:
        self.lifecycle.start()
        return self.lifecycle

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.lifecycle.state is LifecycleState.STARTED:
            self.lifecycle.stop()
        return False

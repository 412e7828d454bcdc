"""
DI-specific error types with rich diagnostics.
"""

from typing import Any, List, Optional


class DIError(Exception):
    """Base exception for DI errors."""
    pass


class ProviderNotFoundError(DIError):
    """Provider not found for requested token."""

    def __init__(
        self,
        token: str,
        tag: Optional[str] = None,
        candidates: Optional[List[str]] = None,
        requested_by: Optional[str] = None,
    ):
        self.token = token
        self.tag = tag
        self.candidates = candidates or []
        self.requested_by = requested_by

        msg = f"No provider found for token={token}"
        if tag:
            msg += f" (tag={tag})"

        if requested_by:
            msg += f"\nRequested by: {requested_by}"

        if self.candidates:
            msg += "\n\nCandidates found:"
            for candidate in self.candidates:
                msg += f"\n  - {candidate}"
            msg += "\n\nSuggested fixes:"
            msg += f"\n  - Register a provider for {token}"
            msg += "\n  - Add Inject(tag='...') to disambiguate"

        super().__init__(msg)


class DependencyCycleError(DIError):
    """Circular dependency detected while resolving."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle

        msg = "Detected dependency cycle:"
        for i, token in enumerate(cycle):
            arrow = " -> " if i < len(cycle) - 1 else ""
            msg += f"\n  {token}{arrow}"

        msg += "\n\nSuggested fixes:"
        msg += "\n  - Extract interface to decouple directionally"
        msg += "\n  - Restructure dependencies to remove cycle"

        super().__init__(msg)


class DuplicateConstructionError(DIError):
    """
    The same instance was recorded twice.

    Signals a scope guard defect: a second ledger entry would run
    the component's hooks twice.
    """

    def __init__(self, component: str, sequence: int):
        self.component = component
        self.sequence = sequence

        super().__init__(
            f"Instance of '{component}' is already recorded in the ledger "
            f"(sequence={sequence}). A component instance may only be "
            f"recorded once."
        )


class InvalidStateTransitionError(DIError):
    """start()/stop() called out of sequence."""

    def __init__(self, operation: str, current: Any, expected: Any):
        self.operation = operation
        self.current = current
        self.expected = expected

        current_name = getattr(current, "value", current)
        expected_name = getattr(expected, "value", expected)
        msg = (
            f"Cannot {operation}() from state '{current_name}'; "
            f"requires '{expected_name}'."
        )
        if operation == "start" and current_name != "not_started":
            msg += "\n\nRestarting is not supported. Restart the process instead."
        super().__init__(msg)


class LateConstructionError(DIError):
    """Component constructed after startup when the policy forbids it."""

    def __init__(
        self,
        component: str,
        state: Any,
        policy: str,
        start_failed: bool = False,
    ):
        self.component = component
        self.state = state
        self.policy = policy
        self.start_failed = start_failed

        state_name = getattr(state, "value", state)
        msg = (
            f"Component '{component}' was constructed in state '{state_name}' "
            f"(late_construction={policy!r})."
            f"\n\nSuggested fixes:"
            f"\n  - Resolve '{component}' before calling start()"
        )
        if start_failed:
            msg += "\n  - Fix the start hook that failed; components after it were never started"
        if policy == "reject":
            msg += "\n  - Set late_construction to 'start' to start it on demand"
        super().__init__(msg)


class LifecycleHookError(DIError):
    """Base for failures raised by a component's lifecycle hook."""

    phase = "lifecycle"

    def __init__(self, component: str, cause: BaseException):
        self.component = component
        self.cause = cause
        super().__init__(
            f"{self.phase.capitalize()} hook of '{component}' failed: "
            f"{type(cause).__name__}: {cause}"
        )


class StartHookFailure(LifecycleHookError):
    """A start hook raised; the forward walk was halted."""

    phase = "start"


class StopHookFailure(LifecycleHookError):
    """A stop hook raised; recorded while the reverse walk continued."""

    phase = "stop"


class StopHooksFailedError(DIError):
    """Aggregate of every stop hook failure from one stop() walk."""

    def __init__(self, failures: List[StopHookFailure]):
        self.failures = list(failures)

        msg = f"{len(self.failures)} stop hook(s) failed:"
        for failure in self.failures:
            msg += (
                f"\n  - {failure.component}: "
                f"{type(failure.cause).__name__}: {failure.cause}"
            )
        super().__init__(msg)

    @property
    def components(self) -> List[str]:
        return [failure.component for failure in self.failures]

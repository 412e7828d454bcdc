"""
Decorators and injection helpers for ergonomic DI usage.
"""

from typing import Any, Callable, Optional, Type, TypeVar
from dataclasses import dataclass
import inspect


T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

# Attribute carrying the lifecycle phases a method is marked for
HOOK_MARKER = "__di_lifecycle__"


@dataclass
class Inject:
    """
    Injection metadata marker.

    Usage:
        def __init__(self, repo: Annotated[UserRepo, Inject(tag="repo")]):
            ...
    """

    token: Optional[Type | str] = None
    tag: Optional[str] = None
    optional: bool = False


def inject(
    token: Optional[Type | str] = None,
    *,
    tag: Optional[str] = None,
    optional: bool = False,
) -> Inject:
    """
    Create injection metadata.

    Example:
        def __init__(
            self,
            db: Annotated[Database, inject(tag="readonly")],
            cache: Annotated[Cache, inject(optional=True)] = None,
        ):
            ...
    """
    return Inject(token=token, tag=tag, optional=optional)


def service(
    *,
    scope: str = "singleton",
    tag: Optional[str] = None,
    name: Optional[str] = None,
) -> Callable[[Type[T]], Type[T]]:
    """
    Decorator to mark a class as a DI service.

    Args:
        scope: Service scope (singleton or transient)
        tag: Optional tag for disambiguation
        name: Optional explicit service name

    Example:
        @service(scope="singleton")
        class UserService:
            def __init__(self, repo: UserRepo):
                self.repo = repo
    """
    def decorator(cls: Type[T]) -> Type[T]:
        cls.__di_scope__ = scope  # type: ignore
        cls.__di_tag__ = tag  # type: ignore
        cls.__di_name__ = name or cls.__name__  # type: ignore
        return cls

    return decorator


def _mark(func: F, phase: str, decorator: str) -> F:
    if inspect.iscoroutinefunction(func):
        raise TypeError(
            f"@{decorator} cannot be applied to coroutine function "
            f"'{func.__qualname__}'; lifecycle hooks run synchronously"
        )

    required = [
        p for p in list(inspect.signature(func).parameters.values())[1:]
        if p.default is inspect.Parameter.empty
        and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    if required:
        raise TypeError(
            f"@{decorator} hook '{func.__qualname__}' must take no arguments "
            f"besides self (got {', '.join(p.name for p in required)})"
        )

    phases = frozenset(getattr(func, HOOK_MARKER, ())) | {phase}
    setattr(func, HOOK_MARKER, phases)
    return func


def on_start(func: F) -> F:
    """
    Mark a method as a start hook.

    Start hooks run once, in construction order, when the lifecycle starts.

    Example:
        @service()
        class Pool:
            @on_start
            def open(self):
                ...
    """
    return _mark(func, "start", "on_start")


def on_stop(func: F) -> F:
    """
    Mark a method as a stop hook.

    Stop hooks run once, in reverse construction order, when the lifecycle
    stops.
    """
    return _mark(func, "stop", "on_stop")

"""
Provider implementations for different instantiation strategies.
"""

from typing import Any, Callable, Dict, Optional, Type, TypeVar, get_args, get_origin
from typing import Annotated, Union
import inspect
import types

from .core import ProviderMeta, ResolveCtx, token_to_key
from .errors import DIError


T = TypeVar("T")


def _source_line(obj: Any) -> Optional[int]:
    try:
        _, line = inspect.getsourcelines(obj)
    except (TypeError, OSError):
        return None
    return line


def _parse_annotation(annotation: Any) -> Dict[str, Any]:
    """Parse a type annotation into dependency info, honouring Inject metadata."""
    if get_origin(annotation) is Annotated:
        args = get_args(annotation)
        result: Dict[str, Any] = {"token": args[0]}
        for meta in args[1:]:
            if getattr(meta, "token", None) is not None:
                result["token"] = meta.token
            if getattr(meta, "tag", None) is not None:
                result["tag"] = meta.tag
            if getattr(meta, "optional", False):
                result["optional"] = True
        return result

    # Optional[X] resolves X and tolerates a missing provider
    if get_origin(annotation) in (Union, types.UnionType):
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1 and len(get_args(annotation)) == 2:
            info = _parse_annotation(args[0])
            info["optional"] = True
            return info

    return {"token": annotation}


def _extract_dependencies(func: Callable, owner: str, skip_first: bool) -> Dict[str, Dict[str, Any]]:
    """
    Extract dependencies from a callable's signature.

    Returns:
        Dict mapping parameter names to dependency info
    """
    deps: Dict[str, Dict[str, Any]] = {}

    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return deps

    try:
        type_hints = inspect.get_annotations(func, eval_str=True)
    except Exception:
        type_hints = {}

    params = list(sig.parameters.items())
    if skip_first:
        params = params[1:]

    for param_name, param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = type_hints.get(param_name, param.annotation)
        has_default = param.default is not inspect.Parameter.empty

        if annotation is inspect.Parameter.empty:
            if has_default:
                continue
            raise DIError(
                f"Missing type annotation for parameter '{param_name}' "
                f"in {owner}"
            )

        dep_info = _parse_annotation(annotation)
        dep_info["optional"] = dep_info.get("optional", False) or has_default
        dep_info["has_default"] = has_default
        deps[param_name] = dep_info

    return deps


def _resolve_dependencies(deps: Dict[str, Dict[str, Any]], ctx: ResolveCtx) -> Dict[str, Any]:
    resolved = {}
    for dep_name, dep_info in deps.items():
        value = ctx.resolve(
            dep_info["token"],
            tag=dep_info.get("tag"),
            optional=dep_info.get("optional", False),
        )
        # Missing optional dependency: let the parameter default apply
        if value is None and dep_info.get("has_default"):
            continue
        resolved[dep_name] = value
    return resolved


class ClassProvider:
    """
    Provider that instantiates a class by resolving constructor dependencies.
    """

    __slots__ = ("_meta", "_cls", "_dependencies")

    def __init__(
        self,
        cls: Type[T],
        scope: str = "singleton",
        tags: tuple[str, ...] = (),
        name: Optional[str] = None,
        token: Optional[Type | str] = None,
    ):
        self._cls = cls
        if cls.__init__ is object.__init__:
            self._dependencies = {}
        else:
            self._dependencies = _extract_dependencies(
                cls.__init__, f"{cls.__qualname__}.__init__", skip_first=True
            )

        self._meta = ProviderMeta(
            name=name or cls.__name__,
            token=token_to_key(token if token is not None else cls),
            scope=scope,
            tags=tags,
            module=cls.__module__,
            qualname=cls.__qualname__,
            line=_source_line(cls),
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    @property
    def cls(self) -> Type:
        return self._cls

    @property
    def dependencies(self) -> Dict[str, Dict[str, Any]]:
        return self._dependencies

    def instantiate(self, ctx: ResolveCtx) -> Any:
        """Instantiate class by resolving dependencies."""
        return self._cls(**_resolve_dependencies(self._dependencies, ctx))

    def __repr__(self) -> str:
        return f"<ClassProvider {self._meta.qualname} scope={self._meta.scope}>"


class FactoryProvider:
    """
    Provider that calls a factory function to produce instances.

    The token defaults to the factory's return annotation, then to an
    explicit ``name``, then to the factory's qualified name.
    """

    __slots__ = ("_meta", "_factory", "_dependencies")

    def __init__(
        self,
        factory: Callable[..., Any],
        scope: str = "singleton",
        tags: tuple[str, ...] = (),
        name: Optional[str] = None,
        token: Optional[Type | str] = None,
    ):
        if inspect.iscoroutinefunction(factory):
            raise DIError(
                f"Factory '{factory.__qualname__}' is a coroutine function; "
                f"factories must be synchronous"
            )

        self._factory = factory
        self._dependencies = _extract_dependencies(
            factory, factory.__qualname__, skip_first=False
        )

        if token is None:
            try:
                returns = inspect.get_annotations(factory, eval_str=True).get("return")
            except Exception:
                returns = None
            if isinstance(returns, type):
                token = returns
        if token is None:
            token = name or f"{factory.__module__}.{factory.__qualname__}"

        self._meta = ProviderMeta(
            name=name or factory.__name__,
            token=token_to_key(token),
            scope=scope,
            tags=tags,
            module=factory.__module__,
            qualname=factory.__qualname__,
            line=_source_line(factory),
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    def instantiate(self, ctx: ResolveCtx) -> Any:
        """Call factory with resolved dependencies."""
        return self._factory(**_resolve_dependencies(self._dependencies, ctx))

    def __repr__(self) -> str:
        return f"<FactoryProvider {self._meta.qualname} scope={self._meta.scope}>"


class ValueProvider:
    """Provider that returns a pre-bound constant value."""

    __slots__ = ("_meta", "_value")

    def __init__(
        self,
        value: Any,
        token: Type | str,
        name: Optional[str] = None,
        tags: tuple[str, ...] = (),
    ):
        self._value = value
        self._meta = ProviderMeta(
            name=name or "value",
            token=token_to_key(token),
            scope="singleton",
            tags=tags,
            constructs=False,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    def instantiate(self, ctx: ResolveCtx) -> Any:
        """Return pre-bound value."""
        return self._value

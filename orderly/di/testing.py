"""
Testing utilities for DI system.
"""

from typing import Any, Iterator, List, Optional, Type
from contextlib import contextmanager

from ..config import LifecycleConfig
from .core import Container, ResolveCtx
from .providers import ValueProvider


class MockProvider(ValueProvider):
    """
    Mock provider for testing.

    Tracks access for assertions.
    """

    def __init__(
        self,
        value: Any,
        token: Type | str,
        name: str = "mock",
        tags: tuple[str, ...] = (),
    ):
        super().__init__(value, token, name, tags)
        self.access_count = 0
        self.instantiate_calls: List[List[str]] = []

    def instantiate(self, ctx: ResolveCtx) -> Any:
        """Track instantiation calls."""
        self.access_count += 1
        self.instantiate_calls.append(ctx.get_trace())
        return super().instantiate(ctx)

    def reset(self) -> None:
        """Reset tracking."""
        self.access_count = 0
        self.instantiate_calls.clear()


class EventLog:
    """
    Shared, append-only record of what components did, in order.

    Components write ``"<kind>:<name>"`` strings; the helpers split them
    back out per kind.

    Example:
        log.add("start:db")
        assert log.starts == ["db"]
    """

    def __init__(self):
        self.events: List[str] = []

    def add(self, event: str) -> None:
        self.events.append(event)

    def of(self, kind: str) -> List[str]:
        return [e.split(":", 1)[1] for e in self.events if e.startswith(kind + ":")]

    def index(self, event: str) -> int:
        return self.events.index(event)

    @property
    def starts(self) -> List[str]:
        return self.of("start")

    @property
    def stops(self) -> List[str]:
        return self.of("stop")

    @property
    def constructions(self) -> List[str]:
        return self.of("new")


@contextmanager
def running(container: Container) -> Iterator[Container]:
    """
    Start ``container`` and stop it on exit.

    Example:
        with running(container):
            assert service.is_open
    """
    container.start()
    try:
        yield container
    finally:
        container.stop()


# Pytest fixtures (if pytest is available)
try:
    import pytest

    @pytest.fixture
    def di_container():
        """Provide a clean DI container for tests."""
        return Container()

    @pytest.fixture
    def container_factory():
        """Factory fixture for containers with custom lifecycle config."""
        def _create(config: Optional[LifecycleConfig] = None, **options: Any) -> Container:
            if config is None:
                config = LifecycleConfig(**options)
            return Container(config=config)
        return _create

    @pytest.fixture
    def mock_provider():
        """Factory fixture for creating mock providers."""
        def _create_mock(value: Any, token: Type | str, **kwargs):
            return MockProvider(value, token, **kwargs)
        return _create_mock

except ImportError:
    # pytest not available - skip fixtures
    pass

"""
Hook registry: discovery, override semantics and ordering.
"""

import logging

import pytest

from orderly.di import ClassProvider, Container
from orderly.di.decorators import on_start, on_stop
from orderly.di.hooks import HookRegistry, ResolvedHooks


class Base:
    def __init__(self):
        self.calls = []

    @on_start
    def open(self):
        self.calls.append("Base.open")

    @on_stop
    def close(self):
        self.calls.append("Base.close")


class Child(Base):
    # Overrides without re-marking: still the start hook
    def open(self):
        self.calls.append("Child.open")


class Remarked(Base):
    # Re-marked as a stop hook only
    @on_stop
    def open(self):
        self.calls.append("Remarked.open")


class Multi:
    def __init__(self):
        self.calls = []

    @on_start
    def first(self):
        self.calls.append("first")

    @on_start
    def second(self):
        self.calls.append("second")

    @on_start
    @on_stop
    def both(self):
        self.calls.append("both")


class Conventional:
    def __init__(self):
        self.calls = []

    def on_startup(self):
        self.calls.append("on_startup")

    def on_shutdown(self):
        self.calls.append("on_shutdown")


class ThirdParty:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def run(hooks):
    for hook in hooks:
        hook()


# ============================================================================
# Discovery
# ============================================================================

class TestHookDiscovery:

    def test_no_hooks(self):
        resolved = HookRegistry().resolve_hooks(object())
        assert resolved == ResolvedHooks()
        assert not resolved

    def test_decorated_hooks(self):
        obj = Base()
        resolved = HookRegistry().resolve_hooks(obj)

        assert len(resolved.start) == 1
        assert len(resolved.stop) == 1
        run(resolved.start)
        run(resolved.stop)
        assert obj.calls == ["Base.open", "Base.close"]

    def test_hooks_are_bound_to_the_instance(self):
        obj = Base()
        resolved = HookRegistry().resolve_hooks(obj)
        assert resolved.start[0].__self__ is obj

    def test_multiple_hooks_in_declaration_order(self):
        obj = Multi()
        resolved = HookRegistry().resolve_hooks(obj)

        run(resolved.start)
        run(resolved.stop)
        assert obj.calls == ["first", "second", "both", "both"]

    def test_convention_names(self):
        obj = Conventional()
        resolved = HookRegistry().resolve_hooks(obj)

        run(resolved.start)
        run(resolved.stop)
        assert obj.calls == ["on_startup", "on_shutdown"]

    def test_conventions_can_be_disabled(self):
        resolved = HookRegistry(conventions=False).resolve_hooks(Conventional())
        assert not resolved

    def test_explicit_registration(self):
        registry = HookRegistry()
        registry.register(ThirdParty, stop=("close",))

        obj = ThirdParty()
        resolved = registry.resolve_hooks(obj)
        assert resolved.start == ()
        run(resolved.stop)
        assert obj.closed is True

    def test_explicit_registration_applies_to_subclasses(self):
        class Wrapped(ThirdParty):
            pass

        registry = HookRegistry()
        # Resolve once before registering to populate the plan cache
        assert not registry.resolve_hooks(Wrapped())

        registry.register(ThirdParty, stop=("close",))
        assert len(registry.resolve_hooks(Wrapped()).stop) == 1

    def test_explicit_registration_for_inherited_method(self):
        class Wrapped(ThirdParty):
            pass

        registry = HookRegistry()
        registry.register(Wrapped, stop=("close",))

        obj = Wrapped()
        run(registry.resolve_hooks(obj).stop)
        assert obj.closed is True
        assert not registry.resolve_hooks(ThirdParty())


# ============================================================================
# Overrides
# ============================================================================

class TestHookOverrides:

    def test_unmarked_override_keeps_slot(self):
        obj = Child()
        resolved = HookRegistry().resolve_hooks(obj)

        assert len(resolved.start) == 1
        run(resolved.start)
        assert obj.calls == ["Child.open"]

    def test_remarked_override_replaces_phases(self):
        obj = Remarked()
        resolved = HookRegistry().resolve_hooks(obj)

        assert resolved.start == ()
        run(resolved.stop)
        assert obj.calls == ["Remarked.open", "Base.close"]

    def test_base_hooks_come_first(self):
        class Extended(Base):
            @on_start
            def warm(self):
                self.calls.append("Extended.warm")

        obj = Extended()
        run(HookRegistry().resolve_hooks(obj).start)
        assert obj.calls == ["Base.open", "Extended.warm"]


# ============================================================================
# Decorator validation
# ============================================================================

class TestHookDecorators:

    def test_coroutine_rejected(self):
        with pytest.raises(TypeError, match="coroutine"):
            @on_start
            async def start(self):
                pass

    def test_required_arguments_rejected(self):
        with pytest.raises(TypeError, match="no arguments"):
            @on_stop
            def stop(self, timeout):
                pass

    def test_optional_arguments_allowed(self):
        @on_stop
        def stop(self, timeout=5):
            pass

        assert stop.__di_lifecycle__ == frozenset({"stop"})


# ============================================================================
# Coroutine hooks
# ============================================================================

class AsyncConventional:
    def __init__(self):
        self.calls = []

    async def on_startup(self):
        self.calls.append("on_startup")

    def on_shutdown(self):
        self.calls.append("on_shutdown")


class TestCoroutineHooks:

    def test_async_convention_method_is_ignored(self, caplog):
        obj = AsyncConventional()

        with caplog.at_level(logging.WARNING, logger="orderly.di.hooks"):
            resolved = HookRegistry().resolve_hooks(obj)

        assert resolved.start == ()
        assert len(resolved.stop) == 1
        assert "AsyncConventional.on_startup" in caplog.text

    def test_async_override_of_marked_hook_rejected(self):
        class AsyncChild(Base):
            async def open(self):
                self.calls.append("AsyncChild.open")

        with pytest.raises(TypeError, match="coroutine"):
            HookRegistry().resolve_hooks(AsyncChild())

    def test_async_explicit_registration_rejected(self):
        class AsyncClient:
            async def close(self):
                pass

        with pytest.raises(TypeError, match="coroutine"):
            HookRegistry().register(AsyncClient, stop=("close",))

    def test_container_skips_async_convention_hook(self):
        container = Container()
        container.register(ClassProvider(AsyncConventional))
        obj = container.resolve(AsyncConventional)

        container.start()
        container.stop()

        assert obj.calls == ["on_shutdown"]

"""
Orderly - ordered lifecycle management for dependency-injected components

Start hooks fire in dependency order, stop hooks in exact reverse order,
each exactly once, no matter in which order components are first requested.
"""

__version__ = "0.1.0"

from .config import ConfigLoader, ConfigError, LifecycleConfig
from .di import (
    Container,
    ClassProvider,
    FactoryProvider,
    ValueProvider,
    LifecycleService,
    LifecycleState,
    LifecycleContext,
    service,
    inject,
    Inject,
    on_start,
    on_stop,
)

__all__ = [
    "ConfigLoader",
    "ConfigError",
    "LifecycleConfig",
    "Container",
    "ClassProvider",
    "FactoryProvider",
    "ValueProvider",
    "LifecycleService",
    "LifecycleState",
    "LifecycleContext",
    "service",
    "inject",
    "Inject",
    "on_start",
    "on_stop",
]

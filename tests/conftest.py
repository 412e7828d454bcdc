"""
Shared test fixtures for the Orderly test suite.
"""

import pytest

from orderly.di.core import Container
from orderly.di.testing import EventLog

# Import fixtures so pytest can discover them
from orderly.di.testing import (  # noqa: F401
    di_container,
    container_factory,
    mock_provider,
)


@pytest.fixture
def log() -> EventLog:
    return EventLog()


@pytest.fixture
def logged_container(log) -> Container:
    """Container with the shared EventLog registered as an instance."""
    container = Container()
    container.register_instance(EventLog, log)
    return container

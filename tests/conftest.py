"""Pytest configuration for the tonepad test suite."""

from __future__ import annotations

import pytest

from tests.helpers import FakeCompletionClient
from tonepad.config import Settings
from tonepad.runtime import LoopRuntime
from tonepad.session import Session


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def runtime() -> LoopRuntime:
    return LoopRuntime()


@pytest.fixture
def session(settings: Settings, runtime: LoopRuntime) -> Session:
    """A session without a completion client (chat disabled)."""
    return Session(settings, runtime=runtime)


@pytest.fixture
def make_chat_session(settings: Settings, runtime: LoopRuntime):
    """Build a session whose assistant replies with the given segments."""

    def factory(*segments, error: Exception | None = None, interpreter=None):
        client = FakeCompletionClient(list(segments), error=error)
        chat_session = Session(
            settings, runtime=runtime, interpreter=interpreter, completion_client=client
        )
        return chat_session, client

    return factory

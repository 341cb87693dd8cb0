"""Fakes shared by the test modules."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

from tonepad.agent.completion import CompletionRequest, Segment, TextSegment, ToolCallSegment


class FakeCompletionClient:
    """Completion collaborator returning canned segments and recording requests."""

    model = "fake-model"

    def __init__(self, segments: list[Segment] | None = None, error: Exception | None = None):
        self.segments = list(segments or [])
        self.error = error
        self.requests: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> list[Segment]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return list(self.segments)


class FailingInterpreter:
    """Interpreter whose every run raises the configured message."""

    def __init__(self, message: str = "x is undefined"):
        self.message = message
        self.calls = 0

    def run(self, source: str, runtime: Any, context: MutableMapping[str, Any]) -> Mapping[str, Any]:
        self.calls += 1
        raise RuntimeError(self.message)


def text(value: str) -> TextSegment:
    return TextSegment(text=value)


def tool(name: str, **params: Any) -> ToolCallSegment:
    return ToolCallSegment(name=name, input=params)

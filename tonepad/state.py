from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict

from tonepad.history import append_execution, append_message
from tonepad.sandbox.engine import SandboxExecutionEngine


logger = logging.getLogger("tonepad.state")


SEED_MESSAGE = (
    "Hello! I'm here to help you with your playground script. I can write new "
    "code, modify what's in the editor, run it and stop it. What would you like "
    "to create?"
)

DEFAULT_SCRIPT = '''# Welcome to the playground!
# Objects stored in `context` are disposed before the next run.

synth = runtime.node("synth", oscillator="triangle")
context["synth"] = synth

# Schedule a simple arpeggio
for step, note in enumerate(["C4", "E4", "G4", "B4"]):
    runtime.schedule(step * 0.25, synth.trigger, note)

# Start the transport
runtime.start()
'''

RUN_SUCCESS_MESSAGE = (
    "Great! Your script has been executed successfully. The audio should be playing now!"
)
STOP_MESSAGE = "Audio stopped and all runtime objects disposed."


Role = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    role: Role
    content: str
    timestamp: str


class ExecutionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    script_snapshot: str
    timestamp: str
    success: bool
    error_detail: str | None = None


class AppState(BaseModel):
    """Single authoritative session state. Replaced wholesale by every transition."""

    model_config = ConfigDict(frozen=True)

    script: str
    is_running: bool = False
    is_executing: bool = False
    is_awaiting_assistant: bool = False
    messages: tuple[ChatMessage, ...]
    execution_history: tuple[ExecutionRecord, ...] = ()
    next_message_id: int = 2


@dataclass(frozen=True)
class HistoryLimits:
    messages: int = 20
    executions: int = 10


# Transitions


@dataclass(frozen=True)
class SetScript:
    text: str


@dataclass(frozen=True)
class SetRunning:
    value: bool


@dataclass(frozen=True)
class SetExecuting:
    value: bool


@dataclass(frozen=True)
class SetAwaitingAssistant:
    value: bool


@dataclass(frozen=True)
class AddMessage:
    role: Role
    content: str
    timestamp: str


@dataclass(frozen=True)
class ClearMessages:
    pass


@dataclass(frozen=True)
class RecordExecution:
    record: ExecutionRecord


Transition = Union[
    SetScript,
    SetRunning,
    SetExecuting,
    SetAwaitingAssistant,
    AddMessage,
    ClearMessages,
    RecordExecution,
]


def reduce(state: AppState, transition: Transition, limits: HistoryLimits) -> AppState:
    """Apply one transition. Pure: the same inputs always give the same state."""
    if isinstance(transition, SetScript):
        return state.model_copy(update={"script": transition.text})
    if isinstance(transition, SetRunning):
        return state.model_copy(update={"is_running": transition.value})
    if isinstance(transition, SetExecuting):
        return state.model_copy(update={"is_executing": transition.value})
    if isinstance(transition, SetAwaitingAssistant):
        return state.model_copy(update={"is_awaiting_assistant": transition.value})
    if isinstance(transition, AddMessage):
        message = ChatMessage(
            id=state.next_message_id,
            role=transition.role,
            content=transition.content,
            timestamp=transition.timestamp,
        )
        return state.model_copy(
            update={
                "messages": append_message(state.messages, message, limits.messages),
                "next_message_id": state.next_message_id + 1,
            }
        )
    if isinstance(transition, ClearMessages):
        return state.model_copy(update={"messages": (state.messages[0],)})
    if isinstance(transition, RecordExecution):
        return state.model_copy(
            update={
                "execution_history": append_execution(
                    state.execution_history, transition.record, limits.executions
                )
            }
        )
    raise TypeError(f"Unknown transition: {type(transition).__name__}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def initial_state(
    script: str = DEFAULT_SCRIPT,
    seed: str = SEED_MESSAGE,
    now: datetime | None = None,
) -> AppState:
    stamp = (now or _utcnow()).astimezone().strftime("%H:%M:%S")
    return AppState(
        script=script,
        messages=(ChatMessage(id=1, role="assistant", content=seed, timestamp=stamp),),
    )


class AppStateStore:
    """Owns the AppState and the compound run/stop operations.

    Raw transitions go through :meth:`dispatch`; ``run_script`` and ``stop`` are
    serialized by one lock so a dispose/replace cycle always finishes before
    the next one starts.
    """

    def __init__(
        self,
        engine: SandboxExecutionEngine,
        limits: HistoryLimits | None = None,
        state: AppState | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._engine = engine
        self._limits = limits or HistoryLimits()
        self._clock = clock
        self._state = state or initial_state(now=clock())
        self._lock = asyncio.Lock()

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def limits(self) -> HistoryLimits:
        return self._limits

    def dispatch(self, transition: Transition) -> AppState:
        self._state = reduce(self._state, transition, self._limits)
        return self._state

    # Raw transitions

    def set_script(self, text: str) -> None:
        self.dispatch(SetScript(text))

    def set_running(self, value: bool) -> None:
        self.dispatch(SetRunning(value))

    def set_executing(self, value: bool) -> None:
        self.dispatch(SetExecuting(value))

    def set_awaiting_assistant(self, value: bool) -> None:
        self.dispatch(SetAwaitingAssistant(value))

    def add_message(self, role: Role, content: str) -> ChatMessage | None:
        """Append a message; returns it, or None when the cap dropped it."""
        stamp = self._clock().astimezone().strftime("%H:%M:%S")
        assigned = self._state.next_message_id
        self.dispatch(AddMessage(role=role, content=content, timestamp=stamp))
        last = self._state.messages[-1]
        return last if last.id == assigned else None

    def clear_messages(self) -> None:
        self.dispatch(ClearMessages())

    def record_execution(
        self, script: str, success: bool, error_detail: str | None = None
    ) -> ExecutionRecord:
        record = ExecutionRecord(
            id=uuid.uuid4().hex,
            script_snapshot=script,
            timestamp=self._clock().isoformat(),
            success=success,
            error_detail=error_detail,
        )
        self.dispatch(RecordExecution(record))
        return record

    def snapshot(self, recent: int = 3) -> dict[str, Any]:
        state = self._state
        history = state.execution_history[-recent:] if recent > 0 else ()
        return {
            "script": state.script,
            "is_running": state.is_running,
            "is_executing": state.is_executing,
            "execution_history": [r.model_dump() for r in history],
        }

    # Compound operations

    async def run_script(self) -> ExecutionRecord:
        async with self._lock:
            self.set_executing(True)
            script = self._state.script
            try:
                result = await self._engine.execute(script)
                record = self.record_execution(script, result.success, result.error)
                if result.success:
                    self.set_running(True)
                    self.add_message("assistant", RUN_SUCCESS_MESSAGE)
                else:
                    self.set_running(False)
                    self.add_message(
                        "assistant",
                        f"Error executing code: {result.error}. "
                        "Please check your syntax and try again.",
                    )
                return record
            except Exception as e:
                logger.exception("run_script failed unexpectedly")
                self.set_running(False)
                record = self.record_execution(script, False, str(e))
                self.add_message("assistant", f"Unexpected error: {e}")
                return record
            finally:
                self.set_executing(False)

    async def stop(self) -> None:
        async with self._lock:
            self._engine.stop()
            self.set_running(False)
            self.add_message("assistant", STOP_MESSAGE)

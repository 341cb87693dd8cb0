import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from tonepad.agent.actions import (
    SCRIPT_MUTATING_ACTIONS,
    ActionDispatchBridge,
    ActionResult,
)
from tonepad.agent.completion import (
    CompletionClient,
    CompletionRequest,
    TextSegment,
    ToolCallSegment,
)
from tonepad.errors import TransportError
from tonepad.state import AppStateStore, ChatMessage


logger = logging.getLogger("tonepad.agent.orchestrator")

API_KEY_NOT_CONFIGURED = "API key not configured"


instructions = """
You are a classically trained electronic music composer and live-coding assistant. You help users build musical scripts in the playground.

IMPORTANT: You have tools that directly modify the user's script. Use them when the user asks for code changes, improvements, or new musical ideas.

Current script in editor:
```python
{script}
```

Current state:
- Audio playing: {playing}
- Recent executions: {executions}

Previous conversation context:
{history}

Available tools:
{tools}

Scripting surface
- `{runtime}` is the runtime handle: {runtime}.node(kind, **params) creates a node, {runtime}.schedule(at, callback, *args) schedules work, {runtime}.start() starts the transport.
- Put every node you create into the `context` dict so it is disposed before the next run.

Guidelines
- Use update_code for complete rewrites.
- Use modify_code_section for targeted changes; targetSection must be exact text from the current script.
- Use add_code_block to add new functionality.
- Call execute_code after making changes if the user wants to hear the result.
- Explain briefly what you changed. Do not paste whole scripts in chat; the editor shows them.
- Help debug failures from recent executions.

Remember: you can modify the script through the tools. Don't just describe code in text form!
"""


class ExecutedAction(BaseModel):
    action: str
    result: ActionResult


class ChatResponse(BaseModel):
    success: bool
    message: str | None = None
    error: str | None = None
    model: str | None = None
    actions_executed: list[ExecutedAction] = Field(default_factory=list)
    code_updated: bool = False


def format_history(messages: Sequence[ChatMessage]) -> str:
    lines = [f"{m.role}: {m.content}" for m in messages]
    return "\n".join(lines) or "No previous context"


class ChatOrchestrator:
    """Runs one chat turn: prompt the assistant, then dispatch its tool calls in order."""

    def __init__(
        self,
        bridge: ActionDispatchBridge,
        store: AppStateStore,
        client: CompletionClient | None = None,
        runtime_name: str = "runtime",
    ) -> None:
        self._bridge = bridge
        self._store = store
        self._client = client
        self._runtime_name = runtime_name

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def build_system_prompt(self, history: Sequence[ChatMessage]) -> str:
        state = self._store.state
        tools = "\n".join(f"- {a.name}: {a.description}" for a in self._bridge.describe())
        return instructions.format(
            script=state.script or "No code yet",
            playing="Yes" if state.is_running else "No",
            executions=len(state.execution_history),
            history=format_history(history[-3:]),
            tools=tools,
            runtime=self._runtime_name,
        )

    async def respond(
        self,
        user_message: str,
        history: Sequence[ChatMessage] | None = None,
        events: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> ChatResponse:
        if self._client is None:
            return ChatResponse(success=False, error=API_KEY_NOT_CONFIGURED)

        selected_model = model or self._client.model
        prior = list(self._store.state.messages if history is None else history)
        request = CompletionRequest(
            system_prompt=self.build_system_prompt(prior),
            user_message=user_message,
            tools=self._bridge.tool_schemas(),
            model=model,
        )
        try:
            segments = await self._client.complete(request)
        except TransportError as e:
            return ChatResponse(success=False, error=str(e), model=selected_model)
        except Exception as e:
            logger.exception("completion client failed")
            return ChatResponse(success=False, error=str(e) or type(e).__name__)

        reply = ""
        executed: list[ExecutedAction] = []
        code_updated = False
        for segment in segments:
            if isinstance(segment, TextSegment):
                reply += segment.text
                continue
            if not isinstance(segment, ToolCallSegment):
                continue

            tool_id = segment.id or f"tc_{len(executed) + 1}"
            if events is not None:
                events.append(
                    {
                        "phase": "started",
                        "tool_id": tool_id,
                        "name": segment.name,
                        "arguments": segment.input,
                    }
                )
            result = await self._bridge.execute_action(segment.name, segment.input)
            executed.append(ExecutedAction(action=segment.name, result=result))
            if events is not None:
                events.append(
                    {
                        "phase": "completed",
                        "tool_id": tool_id,
                        "name": segment.name,
                        "output_data": result.model_dump(exclude_none=True),
                    }
                )

            if result.success and segment.name in SCRIPT_MUTATING_ACTIONS:
                code_updated = True
            if not result.success:
                reply += f'\n\nAction "{segment.name}" failed: {result.error}'

        if executed and reply.strip() == "":
            reply = "\n".join(a.result.message for a in executed if a.result.success)

        logger.info(
            "chat turn done actions=%d code_updated=%s", len(executed), code_updated
        )
        return ChatResponse(
            success=True,
            message=reply or "Action completed successfully",
            model=selected_model,
            actions_executed=executed,
            code_updated=code_updated,
        )

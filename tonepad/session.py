import logging
from typing import Any

from tonepad.agent.actions import ActionDispatchBridge, ActionHandlers
from tonepad.agent.completion import CompletionClient, OpenAICompletionClient
from tonepad.agent.orchestrator import (
    API_KEY_NOT_CONFIGURED,
    ChatOrchestrator,
    ChatResponse,
)
from tonepad.config import Settings, mask_key
from tonepad.runtime import LoopRuntime, ScriptRuntime
from tonepad.sandbox import PythonInterpreter, SandboxExecutionEngine, ScriptInterpreter
from tonepad.state import AppStateStore, HistoryLimits


logger = logging.getLogger("tonepad.session")


class Session:
    """Composition root: one runtime, engine, store, bridge and orchestrator.

    Every collaborator is built here and handed to the components that need it;
    nothing is shared through module globals.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        runtime: ScriptRuntime | None = None,
        interpreter: ScriptInterpreter | None = None,
        completion_client: CompletionClient | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.runtime = runtime or LoopRuntime()
        self.engine = SandboxExecutionEngine(
            self.runtime,
            interpreter or PythonInterpreter(runtime_name=self.settings.runtime_name),
        )
        self.store = AppStateStore(
            self.engine,
            limits=HistoryLimits(
                messages=self.settings.max_chat_messages,
                executions=self.settings.max_execution_history,
            ),
        )
        self.bridge = ActionDispatchBridge(
            ActionHandlers(
                update_script=self.store.set_script,
                run_script=self.store.run_script,
                stop=self.store.stop,
                read_script=lambda: self.store.state.script,
                read_state=self.store.snapshot,
            )
        )
        if completion_client is None and self.settings.has_api_key:
            completion_client = OpenAICompletionClient(
                api_key=self.settings.api_key or "",
                model=self.settings.model,
                base_url=self.settings.base_url,
            )
            logger.info(
                "completion client ready model=%s key=%s",
                self.settings.model,
                mask_key(self.settings.api_key),
            )
        self.orchestrator = ChatOrchestrator(
            self.bridge,
            self.store,
            completion_client,
            runtime_name=self.settings.runtime_name,
        )

    async def chat(
        self,
        text: str,
        events: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> ChatResponse:
        """Run one user turn and record both sides of it in the chat log.

        ``model`` overrides the configured model for this turn only and must be
        one of ``settings.allowed_models``.
        """
        if not self.orchestrator.is_configured:
            return ChatResponse(success=False, error=API_KEY_NOT_CONFIGURED)
        if model and model not in self.settings.allowed_models:
            logger.info("rejected chat turn for model=%s", model)
            return ChatResponse(success=False, error=f"Model not allowed: {model}")

        prior = list(self.store.state.messages)
        self.store.add_message("user", text)
        self.store.set_awaiting_assistant(True)
        try:
            response = await self.orchestrator.respond(
                text, history=prior, events=events, model=model
            )
            if response.success:
                self.store.add_message("assistant", response.message or "")
            else:
                self.store.add_message("assistant", f"Error: {response.error}")
            return response
        finally:
            self.store.set_awaiting_assistant(False)

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

from tonepad.errors import ActionValidationError, ConfigurationError


logger = logging.getLogger("tonepad.agent.actions")


class ActionParameter(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    description: str
    required: bool = False


class ActionDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, ActionParameter]


class ActionResult(BaseModel):
    success: bool
    message: str
    updated_script: str | None = None
    error: str | None = None
    snapshot: dict[str, Any] | None = None


AVAILABLE_ACTIONS: tuple[ActionDescriptor, ...] = (
    ActionDescriptor(
        name="update_code",
        description="Replace the current script in the editor with new code",
        parameters={
            "code": ActionParameter(
                type="string",
                description="The complete script to put in the editor",
                required=True,
            ),
            "explanation": ActionParameter(
                type="string", description="Brief explanation of what the code does"
            ),
        },
    ),
    ActionDescriptor(
        name="modify_code_section",
        description="Modify a specific section of the existing code",
        parameters={
            "targetSection": ActionParameter(
                type="string",
                description="The existing code section to find and replace (exact text)",
                required=True,
            ),
            "newSection": ActionParameter(
                type="string",
                description="The new code to replace the target section with",
                required=True,
            ),
            "explanation": ActionParameter(
                type="string", description="Brief explanation of the modification"
            ),
        },
    ),
    ActionDescriptor(
        name="add_code_block",
        description="Add a new code block to the existing code",
        parameters={
            "codeBlock": ActionParameter(
                type="string", description="The new code block to add", required=True
            ),
            "position": ActionParameter(
                type="string",
                description='Where to add the code: "before", "after", or "replace"',
            ),
            "explanation": ActionParameter(
                type="string", description="Brief explanation of what the new code does"
            ),
        },
    ),
    ActionDescriptor(
        name="execute_code",
        description="Execute the current code in the editor",
        parameters={},
    ),
    ActionDescriptor(
        name="stop_audio",
        description="Stop all currently playing audio and dispose runtime objects",
        parameters={},
    ),
    ActionDescriptor(
        name="get_current_state",
        description="Get information about the current application state",
        parameters={},
    ),
)

SCRIPT_MUTATING_ACTIONS = frozenset({"update_code", "modify_code_section", "add_code_block"})

_POSITIONS = ("before", "after", "replace")


@dataclass(frozen=True)
class ActionHandlers:
    """Operations the bridge calls into. Any of them may be left unset."""

    update_script: Callable[[str], None] | None = None
    run_script: Callable[[], Awaitable[Any]] | None = None
    stop: Callable[[], Awaitable[None]] | None = None
    read_script: Callable[[], str] | None = None
    read_state: Callable[[], Mapping[str, Any]] | None = None


def tool_schemas(actions: tuple[ActionDescriptor, ...] = AVAILABLE_ACTIONS) -> list[dict[str, Any]]:
    """Render descriptors as OpenAI function tools."""
    tools: list[dict[str, Any]] = []
    for action in actions:
        tools.append(
            {
                "type": "function",
                "function": {
                    "name": action.name,
                    "description": action.description,
                    "parameters": {
                        "type": "object",
                        "properties": {
                            key: {"type": param.type, "description": param.description}
                            for key, param in action.parameters.items()
                        },
                        "required": [
                            key for key, param in action.parameters.items() if param.required
                        ],
                    },
                },
            }
        )
    return tools


def _require(handler: Any, label: str) -> Any:
    if handler is None:
        raise ConfigurationError(f"{label} callback not set")
    return handler


class ActionDispatchBridge:
    """Turns named tool calls into validated script/state operations.

    The bridge can be created unbound and bound later with :meth:`bind`; until
    then every action reports a "callback not set" failure. ``execute_action``
    never raises.
    """

    def __init__(
        self,
        handlers: ActionHandlers | None = None,
        actions: tuple[ActionDescriptor, ...] = AVAILABLE_ACTIONS,
    ) -> None:
        self._handlers = handlers
        self._actions = {action.name: action for action in actions}
        self._dispatch: dict[str, Callable[[dict[str, Any]], Awaitable[ActionResult]]] = {
            "update_code": self._update_code,
            "modify_code_section": self._modify_code_section,
            "add_code_block": self._add_code_block,
            "execute_code": self._execute_code,
            "stop_audio": self._stop_audio,
            "get_current_state": self._get_current_state,
        }

    @property
    def is_bound(self) -> bool:
        return self._handlers is not None

    def bind(self, handlers: ActionHandlers) -> None:
        self._handlers = handlers

    def describe(self) -> list[ActionDescriptor]:
        return list(self._actions.values())

    def tool_schemas(self) -> list[dict[str, Any]]:
        return tool_schemas(tuple(self._actions.values()))

    async def execute_action(
        self, name: str, parameters: Mapping[str, Any] | None = None
    ) -> ActionResult:
        handler = self._dispatch.get(name) if name in self._actions else None
        if handler is None:
            logger.info("unknown action requested: %s", name)
            return ActionResult(
                success=False, message=f"Unknown action: {name}", error="Action not found"
            )

        params = dict(parameters or {})
        try:
            if self._handlers is None:
                raise ConfigurationError(f"{name} callback not set")
            self._validate(self._actions[name], params)
            result = await handler(params)
        except ConfigurationError as e:
            logger.warning("action %s not configured: %s", name, e)
            return ActionResult(success=False, message=str(e), error="Missing callback")
        except ActionValidationError as e:
            return ActionResult(success=False, message=str(e), error=str(e))
        except Exception as e:
            logger.exception("action %s failed", name)
            return ActionResult(
                success=False, message="Error executing action", error=str(e) or type(e).__name__
            )
        logger.info("action %s success=%s", name, result.success)
        return result

    def _validate(self, action: ActionDescriptor, params: dict[str, Any]) -> None:
        missing: list[str] = []
        for key, param in action.parameters.items():
            value = params.get(key)
            if value is None:
                if param.required:
                    missing.append(key)
                continue
            if param.type == "string" and not isinstance(value, str):
                raise ActionValidationError(f"{key} must be a string")
            if param.required and value == "":
                missing.append(key)
        if missing:
            joined = " and ".join(missing)
            noun = "parameter is" if len(missing) == 1 else "parameters are"
            raise ActionValidationError(f"{joined} {noun} required")

    @property
    def _h(self) -> ActionHandlers:
        return self._handlers or ActionHandlers()

    async def _update_code(self, params: dict[str, Any]) -> ActionResult:
        update = _require(self._h.update_script, "Update code")
        code: str = params["code"]
        update(code)
        explanation = params.get("explanation")
        return ActionResult(
            success=True,
            message=f"Code updated: {explanation}" if explanation else "Code updated successfully",
            updated_script=code,
        )

    async def _modify_code_section(self, params: dict[str, Any]) -> ActionResult:
        update = _require(self._h.update_script, "Update code")
        read = _require(self._h.read_script, "Read code")
        target: str = params["targetSection"]
        current = read()
        if target not in current:
            raise ActionValidationError("Target section not found in current code")
        updated = current.replace(target, params["newSection"], 1)
        update(updated)
        explanation = params.get("explanation")
        return ActionResult(
            success=True,
            message=(
                f"Code modified: {explanation}"
                if explanation
                else "Code section modified successfully"
            ),
            updated_script=updated,
        )

    async def _add_code_block(self, params: dict[str, Any]) -> ActionResult:
        update = _require(self._h.update_script, "Update code")
        read = _require(self._h.read_script, "Read code")
        block: str = params["codeBlock"]
        position = params.get("position") or "after"
        if position not in _POSITIONS:
            logger.debug("unknown position %r, appending", position)
            position = "after"

        current = read()
        if position == "before":
            updated = f"{block}\n\n{current}"
        elif position == "replace":
            updated = block
        else:
            updated = f"{current}\n\n{block}"
        update(updated)
        explanation = params.get("explanation")
        return ActionResult(
            success=True,
            message=(
                f"Code block added: {explanation}"
                if explanation
                else "Code block added successfully"
            ),
            updated_script=updated,
        )

    async def _execute_code(self, params: dict[str, Any]) -> ActionResult:
        run = _require(self._h.run_script, "Execute code")
        record = await run()
        success = getattr(record, "success", True)
        if not success:
            detail = getattr(record, "error_detail", None) or "Unknown error"
            return ActionResult(success=False, message="Error executing code", error=detail)
        return ActionResult(success=True, message="Code executed successfully")

    async def _stop_audio(self, params: dict[str, Any]) -> ActionResult:
        stop = _require(self._h.stop, "Stop audio")
        await stop()
        return ActionResult(success=True, message="Audio stopped successfully")

    async def _get_current_state(self, params: dict[str, Any]) -> ActionResult:
        read = _require(self._h.read_script, "Read code")
        read_state = _require(self._h.read_state, "Read state")
        script = read()
        state = dict(read_state())
        history = list(state.get("execution_history") or [])[-3:]
        snapshot = {
            "script": script,
            "is_running": bool(state.get("is_running")),
            "execution_history": history,
        }
        return ActionResult(
            success=True,
            message="Current state retrieved",
            updated_script=script,
            snapshot=snapshot,
        )

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from tonepad.runtime import ScriptRuntime
from tonepad.sandbox.interpreter import PythonInterpreter, ScriptInterpreter


logger = logging.getLogger("tonepad.sandbox")


class ExecutionResult(BaseModel):
    success: bool
    error: str | None = None


class SandboxExecutionEngine:
    """Run scripts against one disposable context at a time.

    Every execution disposes the previous generation before the new script is
    compiled, so two generations are never live together. A failed attempt
    leaves the context empty.
    """

    def __init__(
        self,
        runtime: ScriptRuntime,
        interpreter: ScriptInterpreter | None = None,
    ) -> None:
        self._runtime = runtime
        self._interpreter = interpreter or PythonInterpreter()
        self._context: dict[str, Any] = {}
        self._generation = 0

    @property
    def runtime(self) -> ScriptRuntime:
        return self._runtime

    @property
    def generation(self) -> int:
        """Number of successful executions so far."""
        return self._generation

    @property
    def live_objects(self) -> Mapping[str, Any]:
        return MappingProxyType(self._context)

    async def execute(self, script: str) -> ExecutionResult:
        attempt: dict[str, Any] = {}
        try:
            if not self._runtime.is_active:
                await self._runtime.activate()
            self._runtime.halt_scheduled()
            self._dispose_all()

            returned = self._interpreter.run(script, self._runtime, attempt)
            self._context = dict(returned)
            self._generation += 1
            logger.info(
                "sandbox generation %d started objects=%d",
                self._generation,
                len(self._context),
            )
            return ExecutionResult(success=True)
        except Exception as e:
            logger.warning("script execution failed: %s", e)
            self._teardown(extra=attempt)
            return ExecutionResult(success=False, error=str(e) or type(e).__name__)

    def stop(self) -> None:
        self._teardown()
        logger.info("sandbox stopped")

    def _teardown(self, extra: Mapping[str, Any] | None = None) -> None:
        try:
            self._runtime.halt_scheduled()
        except Exception as e:
            logger.warning("halting scheduled work failed: %s", e)
        if extra:
            self._dispose_objects(extra)
        self._dispose_all()

    def _dispose_all(self) -> None:
        current = self._context
        self._context = {}
        self._dispose_objects(current)

    def _dispose_objects(self, objects: Mapping[str, Any]) -> None:
        for key, item in objects.items():
            dispose = getattr(item, "dispose", None)
            if not callable(dispose):
                continue
            try:
                dispose()
            except Exception as e:
                logger.warning("dispose of %r failed: %s", key, e)

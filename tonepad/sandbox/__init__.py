from tonepad.sandbox.engine import ExecutionResult, SandboxExecutionEngine
from tonepad.sandbox.interpreter import PythonInterpreter, ScriptInterpreter

__all__ = [
    "ExecutionResult",
    "PythonInterpreter",
    "SandboxExecutionEngine",
    "ScriptInterpreter",
]

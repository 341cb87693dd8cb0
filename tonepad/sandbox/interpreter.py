from __future__ import annotations

import builtins
from collections.abc import Mapping, MutableMapping
from typing import Any, Protocol

from tonepad.errors import ScriptExecutionError


class ScriptInterpreter(Protocol):
    def run(
        self, source: str, runtime: Any, context: MutableMapping[str, Any]
    ) -> Mapping[str, Any]: ...


# Names a script may use. Anything that reaches the host (imports, files,
# introspection, nested compilation) is left out.
SAFE_BUILTINS: tuple[str, ...] = (
    "abs", "all", "any", "bool", "dict", "divmod", "enumerate", "filter",
    "float", "format", "frozenset", "int", "isinstance", "len", "list", "map",
    "max", "min", "pow", "print", "range", "repr", "reversed", "round", "set",
    "sorted", "str", "sum", "tuple", "zip",
    "__build_class__", "object", "super", "property", "staticmethod", "classmethod",
    "ArithmeticError", "Exception", "IndexError", "KeyError", "NameError",
    "RuntimeError", "TypeError", "ValueError", "ZeroDivisionError",
)


class PythonInterpreter:
    """Compile script text and run it with the runtime handle and a context dict.

    The script sees ``<runtime_name>`` and ``context``; whatever mapping is bound
    to ``context`` when the script finishes is returned. Restricting builtins
    keeps casual scripts away from the host but is not an isolation boundary.
    """

    def __init__(self, runtime_name: str = "runtime", filename: str = "<script>") -> None:
        self.runtime_name = runtime_name
        self.filename = filename
        self._builtins = {name: getattr(builtins, name) for name in SAFE_BUILTINS}

    def run(
        self, source: str, runtime: Any, context: MutableMapping[str, Any]
    ) -> Mapping[str, Any]:
        code = compile(source, self.filename, "exec")
        namespace: dict[str, Any] = {
            "__builtins__": dict(self._builtins),
            "__name__": "__script__",
            self.runtime_name: runtime,
            "context": context,
        }
        exec(code, namespace)
        result = namespace.get("context", context)
        if not isinstance(result, Mapping):
            raise ScriptExecutionError(
                f"context must be a mapping, got {type(result).__name__}"
            )
        return result

"""Script runtime collaborator.

The sandbox only needs ``is_active``, ``activate()`` and ``halt_scheduled()``
from a runtime. ``LoopRuntime`` is an in-memory reference implementation with a
transport-style scheduler and disposable nodes, used by the server and tests.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger("tonepad.runtime")


@runtime_checkable
class ScriptRuntime(Protocol):
    @property
    def is_active(self) -> bool: ...

    async def activate(self) -> None: ...

    def halt_scheduled(self) -> None: ...


class Node:
    """A runtime object (synth, effect, ...) that must be disposed after use."""

    def __init__(self, runtime: "LoopRuntime", kind: str, params: dict[str, Any]) -> None:
        self.kind = kind
        self.params = params
        self.triggered: list[Any] = []
        self.disposed = False
        self._runtime = runtime

    def trigger(self, *args: Any) -> None:
        if self.disposed:
            raise RuntimeError(f"{self.kind} node used after dispose")
        self.triggered.append(args[0] if len(args) == 1 else args)

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        self._runtime._release(self)

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else "live"
        return f"<Node {self.kind} {state}>"


class LoopRuntime:
    """In-memory runtime: a clock, a scheduled-event queue and a node registry."""

    def __init__(self, activation_delay: float = 0.0) -> None:
        self.activation_delay = activation_delay
        self.position = 0.0
        self.transport_running = False
        self._active = False
        self._queue: list[tuple[float, int, Callable[..., Any], tuple[Any, ...]]] = []
        self._seq = itertools.count()
        self._nodes: list[Node] = []

    @property
    def is_active(self) -> bool:
        return self._active

    async def activate(self) -> None:
        if self._active:
            return
        if self.activation_delay:
            await asyncio.sleep(self.activation_delay)
        self._active = True
        logger.debug("runtime activated")

    def node(self, kind: str, **params: Any) -> Node:
        created = Node(self, kind, params)
        self._nodes.append(created)
        return created

    def schedule(self, at: float, callback: Callable[..., Any], *args: Any) -> None:
        heapq.heappush(self._queue, (float(at), next(self._seq), callback, args))

    def start(self) -> None:
        self.transport_running = True

    def advance(self, seconds: float) -> int:
        """Move the clock forward and fire every due event. Returns the count fired."""
        if not self.transport_running:
            return 0
        target = self.position + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            at, _, callback, args = heapq.heappop(self._queue)
            self.position = at
            callback(*args)
            fired += 1
        self.position = target
        return fired

    def halt_scheduled(self) -> None:
        self.transport_running = False
        self.position = 0.0
        self._queue.clear()

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def live_nodes(self) -> list[Node]:
        return list(self._nodes)

    def _release(self, node: Node) -> None:
        try:
            self._nodes.remove(node)
        except ValueError:
            pass

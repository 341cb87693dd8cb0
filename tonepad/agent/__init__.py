from tonepad.agent.actions import (
    AVAILABLE_ACTIONS,
    ActionDescriptor,
    ActionDispatchBridge,
    ActionHandlers,
    ActionResult,
)
from tonepad.agent.orchestrator import ChatOrchestrator, ChatResponse

__all__ = [
    "AVAILABLE_ACTIONS",
    "ActionDescriptor",
    "ActionDispatchBridge",
    "ActionHandlers",
    "ActionResult",
    "ChatOrchestrator",
    "ChatResponse",
]

from typing import Any

from fastapi import APIRouter, Body, Depends

from tonepad.agent.actions import ActionDescriptor, ActionResult
from tonepad.api.deps import get_session
from tonepad.session import Session


router = APIRouter(prefix="/api/actions", tags=["actions"])


@router.get("")
async def list_actions(session: Session = Depends(get_session)) -> list[ActionDescriptor]:
    return session.bridge.describe()


@router.post("/{name}")
async def run_action(
    name: str,
    parameters: dict[str, Any] | None = Body(default=None),
    session: Session = Depends(get_session),
) -> ActionResult:
    """Dispatch one action directly, the way the assistant would."""
    return await session.bridge.execute_action(name, parameters or {})

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tonepad.api.deps import get_session
from tonepad.session import Session
from tonepad.state import AppState, ExecutionRecord


logger = logging.getLogger("tonepad.api.session")

router = APIRouter(prefix="/api/session", tags=["session"])


class ScriptUpdate(BaseModel):
    """Payload replacing the editor script (a direct user edit)."""

    script: str


@router.get("")
async def read_state(session: Session = Depends(get_session)) -> AppState:
    return session.store.state


@router.put("/script")
async def update_script(
    update: ScriptUpdate, session: Session = Depends(get_session)
) -> AppState:
    session.store.set_script(update.script)
    return session.store.state


@router.post("/run")
async def run_script(session: Session = Depends(get_session)) -> dict[str, Any]:
    record = await session.store.run_script()
    logger.info("run[%s] success=%s", record.id, record.success)
    return {"record": record, "state": session.store.state}


@router.post("/stop")
async def stop(session: Session = Depends(get_session)) -> AppState:
    await session.store.stop()
    return session.store.state


@router.delete("/messages")
async def clear_messages(session: Session = Depends(get_session)) -> AppState:
    session.store.clear_messages()
    return session.store.state


@router.get("/history")
async def execution_history(
    session: Session = Depends(get_session),
) -> list[ExecutionRecord]:
    return list(session.store.state.execution_history)

import asyncio
import logging
import time
import traceback
import uuid
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from tonepad.api.deps import get_session
from tonepad.session import Session
from tonepad.sse import SSE_HEADERS, emit_event, sse_format, tool_event_sse


logger = logging.getLogger("tonepad.api.chat")

router = APIRouter(prefix="/api/chat", tags=["chat"])

SLEEP_INTERVAL_SECONDS = 0.05


class ChatRequest(BaseModel):
    """One user utterance for the assistant."""

    message: str = Field(..., min_length=1)
    model: str | None = None


def make_task_id() -> str:
    return f"task_{int(time.time()*1000)}_{uuid.uuid4().hex[:8]}"


@router.post("")
async def chat(request: ChatRequest, session: Session = Depends(get_session)) -> dict[str, Any]:
    response = await session.chat(request.message, model=request.model)
    return {"response": response, "state": session.store.state}


async def run_chat_flow(
    session: Session, message: str, task_id: str, model: str | None = None
) -> AsyncGenerator[str, None]:
    """Run one chat turn and stream tool progress as SSE chunks."""
    logger.info("chat[%s] start model=%s query_len=%d", task_id, model, len(message))
    events: list[dict[str, Any]] = []
    chat_task = asyncio.create_task(session.chat(message, events=events, model=model))
    yield sse_format(emit_event(task_id, "chat_started", data="Chat turn scheduled"))

    last_idx = 0
    try:
        while not chat_task.done():
            while last_idx < len(events):
                chunk = tool_event_sse(task_id, events[last_idx])
                last_idx += 1
                if chunk:
                    yield chunk
            await asyncio.sleep(SLEEP_INTERVAL_SECONDS)
        response = await chat_task
    except Exception as e:
        logger.error("chat[%s] error: %s", task_id, str(e))
        tb = traceback.format_exc(limit=10)
        yield sse_format(emit_event(task_id, "run_log", data=f"Exception: {str(e)}\n{tb}"))
        yield sse_format(emit_event(task_id, "run_failed", error=str(e)))
        return

    # Flush any remaining events after completion
    while last_idx < len(events):
        chunk = tool_event_sse(task_id, events[last_idx])
        last_idx += 1
        if chunk:
            yield chunk

    if response.success:
        yield sse_format(
            emit_event(
                task_id,
                "agent_output",
                data={
                    "message": response.message,
                    "code_updated": response.code_updated,
                    "script": session.store.state.script,
                },
            )
        )
    else:
        yield sse_format(emit_event(task_id, "run_failed", error=response.error))


@router.post("/stream")
async def chat_stream(request: ChatRequest, session: Session = Depends(get_session)):
    task_id = make_task_id()
    return StreamingResponse(
        run_chat_flow(session, request.message, task_id, model=request.model),
        headers=SSE_HEADERS,
    )

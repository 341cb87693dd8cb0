import json
import time
from typing import Any


SSE_HEADERS: dict[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_format(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


def emit_event(
    task_id: str, event_type: str, data: Any = None, error: Any = None
) -> dict[str, Any]:
    return {
        "event_type": event_type,
        "task_id": task_id,
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S+00:00", time.gmtime()),
        "data": data,
        "error": error,
    }


def tool_started_sse(task_id: str, ev: dict[str, Any]) -> str:
    return sse_format(
        emit_event(
            task_id,
            "progress_update_tool_action_started",
            data={
                "args": [
                    {
                        "id": ev["tool_id"],
                        "function": {
                            "name": ev["name"],
                            "arguments": ev.get("arguments"),
                        },
                    }
                ]
            },
        )
    )


def tool_completed_sse(task_id: str, ev: dict[str, Any]) -> str:
    return sse_format(
        emit_event(
            task_id,
            "progress_update_tool_action_completed",
            data={
                "result": {
                    "tool_call": {
                        "id": ev["tool_id"],
                        "function": {"name": ev["name"]},
                    },
                    "output_data": ev.get("output_data"),
                }
            },
        )
    )


def tool_event_sse(task_id: str, ev: dict[str, Any]) -> str | None:
    if ev.get("phase") == "started":
        return tool_started_sse(task_id, ev)
    if ev.get("phase") == "completed":
        return tool_completed_sse(task_id, ev)
    return None

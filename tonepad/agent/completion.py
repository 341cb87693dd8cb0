import json
import logging
from typing import Annotated, Any, Literal, Protocol, Union

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field

from tonepad.errors import TransportError


logger = logging.getLogger("tonepad.agent.completion")


class TextSegment(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolCallSegment(BaseModel):
    type: Literal["tool_call"] = "tool_call"
    id: str | None = None
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


Segment = Annotated[Union[TextSegment, ToolCallSegment], Field(discriminator="type")]


class CompletionRequest(BaseModel):
    system_prompt: str
    user_message: str
    tools: list[dict[str, Any]] = Field(default_factory=list)
    model: str | None = None


class CompletionClient(Protocol):
    model: str

    async def complete(self, request: CompletionRequest) -> list[Segment]: ...


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError:
        logger.warning("tool call arguments are not valid JSON: %.200s", raw)
        return {}
    return args if isinstance(args, dict) else {}


class OpenAICompletionClient:
    """Chat-completion collaborator backed by an OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def complete(self, request: CompletionRequest) -> list[Segment]:
        messages = [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.user_message},
        ]
        kwargs: dict[str, Any] = {"model": request.model or self.model, "messages": messages}
        if request.tools:
            kwargs["tools"] = request.tools
        try:
            completion = await self._client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            logger.error("completion request failed: %s", e)
            raise TransportError(str(e) or "Failed to get response from the assistant") from e

        if not getattr(completion, "choices", None):
            raise TransportError("Unexpected response format from the assistant")
        msg = getattr(completion.choices[0], "message", None)
        if msg is None:
            raise TransportError("Unexpected response format from the assistant")

        segments: list[Segment] = []
        if msg.content:
            segments.append(TextSegment(text=msg.content))
        for call in getattr(msg, "tool_calls", None) or []:
            segments.append(
                ToolCallSegment(
                    id=getattr(call, "id", None),
                    name=call.function.name,
                    input=_parse_arguments(getattr(call.function, "arguments", None)),
                )
            )
        return segments

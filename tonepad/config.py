import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError

from tonepad.errors import ConfigurationError


logger = logging.getLogger("tonepad.config")


DEFAULT_BASE_URL = "https://ai-gateway.vercel.sh/v1"
DEFAULT_MODEL = "openai/gpt-4.1-mini"

ALLOWED_MODELS: list[str] = [
    "openai/gpt-4.1",
    "openai/gpt-4.1-mini",
    "openai/gpt-5",
    "openai/gpt-5-mini",
]


class Settings(BaseModel):
    """Runtime configuration, read from the environment.

    Attributes:
        api_key: Credential for the chat-completion endpoint. None means "not configured".
        base_url: OpenAI-compatible endpoint (AI Gateway by default).
        model: Model used for chat turns.
        allowed_models: Models the server advertises.
        max_chat_messages: Cap on the chat log, seed message included.
        max_execution_history: Cap on the execution log.
        runtime_name: Name under which scripts see the runtime handle.
        log_level: Level applied when the server configures logging itself.
    """

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    allowed_models: list[str] = Field(default_factory=lambda: list(ALLOWED_MODELS))
    max_chat_messages: int = Field(default=20, ge=1)
    max_execution_history: int = Field(default=10, ge=1)
    runtime_name: str = Field(default="runtime", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    log_level: str = "INFO"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


def mask_key(key: str | None) -> str:
    if not key:
        return "<unset>"
    return f"{key[:6]}..." if len(key) > 10 else "***"


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Gateway credentials win over a plain OpenAI key, mirroring how the server
    resolves its completion endpoint.
    """
    source = os.environ if env is None else env

    api_key = (
        source.get("AI_GATEWAY_API_KEY")
        or source.get("VERCEL_OIDC_TOKEN")
        or source.get("OPENAI_API_KEY")
    )
    raw: dict[str, object] = {
        "api_key": api_key.strip() if api_key and api_key.strip() else None,
        "base_url": (
            source.get("AI_GATEWAY_BASE_URL")
            or source.get("OPENAI_BASE_URL")
            or DEFAULT_BASE_URL
        ),
        "model": source.get("DEFAULT_MODEL") or DEFAULT_MODEL,
        "log_level": (source.get("LOG_LEVEL") or "INFO").upper(),
    }
    if source.get("TONEPAD_MAX_CHAT_MESSAGES"):
        raw["max_chat_messages"] = source["TONEPAD_MAX_CHAT_MESSAGES"]
    if source.get("TONEPAD_MAX_EXECUTION_HISTORY"):
        raw["max_execution_history"] = source["TONEPAD_MAX_EXECUTION_HISTORY"]
    if source.get("TONEPAD_RUNTIME_NAME"):
        raw["runtime_name"] = source["TONEPAD_RUNTIME_NAME"]

    try:
        settings = Settings(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e

    logger.debug(
        "settings loaded model=%s base_url=%s key=%s",
        settings.model,
        settings.base_url,
        mask_key(settings.api_key),
    )
    return settings

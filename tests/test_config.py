import pytest

from tonepad.config import ALLOWED_MODELS, DEFAULT_BASE_URL, DEFAULT_MODEL, load_settings, mask_key
from tonepad.errors import ConfigurationError
from tonepad.session import Session


def test_defaults_from_empty_environment():
    settings = load_settings({})
    assert settings.api_key is None
    assert settings.has_api_key is False
    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.model == DEFAULT_MODEL
    assert settings.allowed_models == ALLOWED_MODELS
    assert settings.max_chat_messages == 20
    assert settings.max_execution_history == 10
    assert settings.runtime_name == "runtime"


def test_gateway_key_wins_over_openai_key():
    settings = load_settings({"OPENAI_API_KEY": "sk-openai", "AI_GATEWAY_API_KEY": "gw-key"})
    assert settings.api_key == "gw-key"


def test_blank_key_is_not_configured():
    settings = load_settings({"OPENAI_API_KEY": "   "})
    assert settings.api_key is None
    assert Session(settings).orchestrator.is_configured is False


def test_overrides():
    settings = load_settings(
        {
            "OPENAI_BASE_URL": "https://api.openai.com/v1",
            "DEFAULT_MODEL": "openai/gpt-5",
            "TONEPAD_MAX_CHAT_MESSAGES": "5",
            "TONEPAD_MAX_EXECUTION_HISTORY": "3",
            "TONEPAD_RUNTIME_NAME": "rt",
            "LOG_LEVEL": "debug",
        }
    )
    assert settings.base_url == "https://api.openai.com/v1"
    assert settings.model == "openai/gpt-5"
    assert settings.max_chat_messages == 5
    assert settings.max_execution_history == 3
    assert settings.runtime_name == "rt"
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"TONEPAD_MAX_CHAT_MESSAGES": "0"},
        {"TONEPAD_MAX_EXECUTION_HISTORY": "many"},
        {"TONEPAD_RUNTIME_NAME": "not a name"},
    ],
)
def test_invalid_values_raise_configuration_error(env):
    with pytest.raises(ConfigurationError):
        load_settings(env)


def test_session_uses_configured_caps():
    session = Session(load_settings({"TONEPAD_MAX_CHAT_MESSAGES": "3"}))
    for i in range(6):
        session.store.add_message("user", str(i))
    assert len(session.store.state.messages) == 3


def test_mask_key():
    assert mask_key(None) == "<unset>"
    assert mask_key("short") == "***"
    assert mask_key("sk-1234567890abcdef") == "sk-123..."

from tonepad.api import actions, chat, models, session

__all__ = ["actions", "chat", "models", "session"]

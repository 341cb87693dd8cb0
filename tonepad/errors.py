class TonepadError(Exception):
    """Base class for errors raised inside the playground core."""


class ConfigurationError(TonepadError):
    """A required handler, credential or setting is missing or invalid."""


class ActionValidationError(TonepadError):
    """Action parameters are missing or malformed, or do not match the script."""


class ScriptExecutionError(TonepadError):
    """The script could not be compiled or run against the sandbox."""


class TransportError(TonepadError):
    """The chat-completion round trip failed."""

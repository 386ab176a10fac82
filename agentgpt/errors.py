"""Exceptions raised by the agent core."""


class AgentError(Exception):
    """Base class for all agent errors"""


class ServiceError(AgentError):
    """The completion service failed or reported an error payload."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(AgentError):
    """A task or credential is missing at submission time."""


class SessionStateError(AgentError):
    """The requested operation is not allowed in the current session state."""

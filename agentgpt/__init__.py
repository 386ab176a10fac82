"""
AgentGPT CLI
Plans a free-text task into steps, executes them through a chat completion
service and pauses for user input when the model asks for it.
"""

from .client import CompletionClient
from .controller import OrchestrationController, Session, SessionState
from .errors import AgentError, ConfigurationError, ServiceError, SessionStateError
from .executor import Completed, NeedsInput, StepExecutor
from .messages import Message, MessageLog, MessageRole
from .planner import Planner, Step, parse_plan

__version__ = "0.1.0"

__all__ = [
    "CompletionClient",
    "OrchestrationController",
    "Session",
    "SessionState",
    "AgentError",
    "ConfigurationError",
    "ServiceError",
    "SessionStateError",
    "Completed",
    "NeedsInput",
    "StepExecutor",
    "Message",
    "MessageLog",
    "MessageRole",
    "Planner",
    "Step",
    "parse_plan",
]

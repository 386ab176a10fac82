"""Ordered, append-only transcript of everything the agent and the user said."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple


class MessageRole(str, Enum):
    AGENT = "agent"
    USER = "user"
    ERROR = "error"


@dataclass(frozen=True)
class Message:
    role: MessageRole
    content: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


MessageListener = Callable[[Message], None]


class MessageLog:
    """
    Append-only message sequence.

    Messages are never reordered or removed; a new session gets a new log.
    An optional listener is called with each message as it is appended, which
    is how the CLI renders the transcript live.
    """

    def __init__(self, listener: Optional[MessageListener] = None):
        self._messages: List[Message] = []
        self._listener = listener

    def append(self, role: MessageRole, content: str) -> Message:
        message = Message(role=MessageRole(role), content=content)
        self._messages.append(message)
        if self._listener:
            self._listener(message)
        return message

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def transcript(self) -> str:
        """All message contents joined by newlines, oldest first."""
        return "\n".join(m.content for m in self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

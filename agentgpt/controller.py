"""
Orchestration state machine.

Drives the Planner and StepExecutor through the lifecycle of one task:
idle -> planning -> executing -> completed | waiting_input | error.
While waiting for input, a user line triggers a continuation request; unless
the model asks another question, the original task is then planned again from
scratch in a fresh session.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .client import CompletionClient
from .errors import ConfigurationError, ServiceError, SessionStateError
from .executor import NeedsInput, StepExecutor, extract_question
from .messages import MessageListener, MessageLog, MessageRole
from .planner import Planner, Step

logger = logging.getLogger(__name__)

CONTINUATION_SYSTEM_PROMPT = (
    "You are an autonomous AI agent. Continue the task execution with the provided user input."
)


class SessionState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    EXECUTING = "executing"
    WAITING_INPUT = "waiting_input"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class Session:
    """Everything the controller knows about the live task."""
    task: str = ""
    credential: Optional[str] = None
    state: SessionState = SessionState.IDLE
    messages: MessageLog = field(default_factory=MessageLog)
    context: str = ""
    plan: List[Step] = field(default_factory=list)
    completed_steps: int = 0
    pending_question: Optional[str] = None
    error: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self.state in (SessionState.PLANNING, SessionState.EXECUTING)

    @property
    def finished(self) -> bool:
        return self.state in (SessionState.COMPLETED, SessionState.ERROR)


StateListener = Callable[[SessionState], None]


class OrchestrationController:
    """Owns the session and runs tasks one step at a time"""

    def __init__(self, client: CompletionClient,
                 on_message: Optional[MessageListener] = None,
                 on_state_change: Optional[StateListener] = None):
        self.client = client
        self.planner = Planner(client)
        self.executor = StepExecutor(client)
        self.on_message = on_message
        self.on_state_change = on_state_change
        self.session = Session(messages=MessageLog(on_message))

    @property
    def state(self) -> SessionState:
        return self.session.state

    async def submit(self, task: str, credential: str) -> Session:
        """
        Start a new session for a task.

        Raises:
            SessionStateError: a task is currently planning or executing
            ConfigurationError: the task or the credential is empty
        """
        if self.session.busy:
            raise SessionStateError("A task is already running")
        if not task or not task.strip():
            raise ConfigurationError("A task description is required")
        if not credential or not credential.strip():
            raise ConfigurationError("An API key is required")
        return await self._start(task, credential)

    async def submit_input(self, text: str) -> Session:
        """
        Answer the pending question.

        Whitespace-only input is ignored. Raises SessionStateError when no
        question is pending.
        """
        if not text or not text.strip():
            return self.session
        session = self.session
        if session.state != SessionState.WAITING_INPUT:
            raise SessionStateError("No question is waiting for an answer")

        transcript = session.messages.transcript()
        session.messages.append(MessageRole.USER, text)
        session.pending_question = None
        self._transition(SessionState.PLANNING)

        try:
            continuation = await self.client.complete(
                CONTINUATION_SYSTEM_PROMPT,
                f"Previous context: {transcript}\nUser input: {text}\nContinue the task execution.",
                session.credential,
            )
            session.messages.append(MessageRole.AGENT, continuation)

            question = extract_question(continuation)
            if question is not None:
                session.pending_question = question
                self._transition(SessionState.WAITING_INPUT)
                return session
        except ServiceError as e:
            self._fail(e.message)
            return session
        except (Exception, asyncio.CancelledError) as e:
            # Leave the busy states before propagating
            self._fail(str(e) or type(e).__name__)
            raise

        # Restart from the original task rather than the abandoned step.
        logger.info("Input accepted, planning the task again")
        return await self._start(session.task, session.credential)

    async def _start(self, task: str, credential: str) -> Session:
        self.session = Session(task=task, credential=credential, messages=MessageLog(self.on_message))
        await self._run()
        return self.session

    async def _run(self) -> None:
        session = self.session
        self._transition(SessionState.PLANNING)
        try:
            session.plan = await self.planner.plan(session.task, session.credential, session.messages)
            self._transition(SessionState.EXECUTING)

            total = len(session.plan)
            for step in session.plan:
                session.messages.append(MessageRole.AGENT, f"🔄 Starting step {step.index}/{total}")
                outcome = await self.executor.execute(step, session.context, session.credential, session.messages)
                if isinstance(outcome, NeedsInput):
                    # Remaining steps are abandoned.
                    session.pending_question = outcome.question
                    self._transition(SessionState.WAITING_INPUT)
                    return
                session.context += f"\nStep {step.index} result: {outcome.result}"
                session.completed_steps = step.index

            session.messages.append(MessageRole.AGENT, "🎉 Task completed successfully!")
            self._transition(SessionState.COMPLETED)
        except ServiceError as e:
            self._fail(e.message)
        except (Exception, asyncio.CancelledError) as e:
            # Leave the busy states before propagating
            self._fail(str(e) or type(e).__name__)
            raise

    def _fail(self, message: str) -> None:
        session = self.session
        if session.finished:
            return
        if session.state == SessionState.EXECUTING:
            text = f"❌ Error executing step: {message}"
        else:
            text = f"❌ Error: {message}"
        session.error = message
        try:
            self._transition(SessionState.ERROR)
        finally:
            session.messages.append(MessageRole.ERROR, text)

    def _transition(self, state: SessionState) -> None:
        logger.debug("Session %s -> %s", self.session.state.value, state.value)
        self.session.state = state
        if self.session.finished:
            self.session.credential = None
        if self.on_state_change:
            self.on_state_change(state)

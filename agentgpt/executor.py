"""Executes a single plan step and classifies the model's answer."""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from .client import CompletionClient
from .messages import MessageLog, MessageRole
from .planner import Step

logger = logging.getLogger(__name__)

NEED_INPUT_MARKER = "NEED_INPUT:"

STEP_SYSTEM_PROMPT = (
    "You are an autonomous AI agent. Execute the given step and provide detailed results. "
    f"If you need any user input or clarification, explicitly state '{NEED_INPUT_MARKER} your question'. "
    "Always think step by step and explain your thought process."
)


@dataclass(frozen=True)
class Completed:
    result: str


@dataclass(frozen=True)
class NeedsInput:
    question: str


Outcome = Union[Completed, NeedsInput]


def extract_question(text: str) -> Optional[str]:
    """
    Return the clarification question in a response, or None if there is none.

    The marker is matched case-sensitively anywhere in the text. The question is
    the text after the first marker, up to a second marker if one follows.
    """
    if NEED_INPUT_MARKER not in text:
        return None
    return text.split(NEED_INPUT_MARKER)[1].strip()


def classify_response(text: str) -> Outcome:
    question = extract_question(text)
    if question is not None:
        return NeedsInput(question=question)
    return Completed(result=text)


class StepExecutor:
    """Runs one step against the accumulated context"""

    def __init__(self, client: CompletionClient):
        self.client = client

    def build_prompt(self, step: Step, context: str) -> str:
        return (
            f"Current step to execute: {step.description}\n"
            f"Context: {context}\n"
            "Think through this step carefully and explain your process."
        )

    async def execute(self, step: Step, context: str, api_key: str, log: MessageLog) -> Outcome:
        """
        Execute a step.

        Args:
            step: The step to carry out
            context: Snapshot of the results of all earlier steps
            api_key: Bearer credential for this request
            log: Session log; receives a thinking message and the outcome message

        Returns:
            Completed or NeedsInput. ServiceError propagates unchanged.
        """
        log.append(MessageRole.AGENT, f"🤔 Thinking about how to execute: {step.description}")
        execution = await self.client.complete(STEP_SYSTEM_PROMPT, self.build_prompt(step, context), api_key)

        outcome = classify_response(execution)
        if isinstance(outcome, NeedsInput):
            logger.debug("Step %d asked for input", step.index)
            log.append(MessageRole.AGENT, "❓ I need some information from you:")
            log.append(MessageRole.AGENT, outcome.question)
        else:
            log.append(MessageRole.AGENT, f"✓ {outcome.result}")
        return outcome

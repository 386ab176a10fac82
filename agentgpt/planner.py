"""Turns a task description into an ordered list of steps."""

import logging
import re
from dataclasses import dataclass
from typing import List

from .client import CompletionClient
from .messages import MessageLog, MessageRole

logger = logging.getLogger(__name__)

PLANNING_SYSTEM_PROMPT = (
    "You are an autonomous task planning AI. Analyze the given task and break it down "
    "into clear, specific steps. Think carefully about dependencies and potential challenges."
)

# Only lines starting with "<digits>." become steps; leading whitespace disqualifies a line.
_STEP_LINE_RE = re.compile(r"^\d+\.", re.ASCII)
_STEP_PREFIX_RE = re.compile(r"^\d+\.\s*", re.ASCII)


@dataclass(frozen=True)
class Step:
    index: int  # 1-based
    description: str


def parse_plan(text: str) -> List[Step]:
    """
    Extract numbered steps from free-form planning text.

    >>> [s.description for s in parse_plan("1. Do A\\nsome note\\n2. Do B")]
    ['Do A', 'Do B']
    """
    descriptions = [
        _STEP_PREFIX_RE.sub("", line, count=1).strip()
        for line in text.split("\n")
        if _STEP_LINE_RE.match(line)
    ]
    return [Step(index=i, description=d) for i, d in enumerate(descriptions, 1)]


class Planner:
    """Asks the completion service for a numbered plan and parses it"""

    def __init__(self, client: CompletionClient):
        self.client = client

    def build_prompt(self, task: str) -> str:
        return (
            f"Task: {task}\n"
            "Create a detailed plan with numbered steps. Consider edge cases and potential challenges."
        )

    async def plan(self, task: str, api_key: str, log: MessageLog) -> List[Step]:
        """
        Plan a task.

        The raw planning text is written to the log before parsing so the user
        sees the model's reasoning even when most of it is not a step.
        ServiceError from the client propagates unchanged.
        """
        log.append(MessageRole.AGENT, "🔍 Analyzing the task and creating a plan...")
        analysis = await self.client.complete(PLANNING_SYSTEM_PROMPT, self.build_prompt(task), api_key)

        log.append(MessageRole.AGENT, "📋 Here's my plan:")
        log.append(MessageRole.AGENT, analysis)

        steps = parse_plan(analysis)
        logger.info("Parsed %d step(s) from plan", len(steps))
        return steps

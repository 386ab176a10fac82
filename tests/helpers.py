"""Shared test doubles."""

from typing import List, Tuple, Union

from agentgpt.client import CompletionClient


class FakeClient(CompletionClient):
    """Returns scripted responses in order; an exception entry is raised instead."""

    def __init__(self, responses: List[Union[str, BaseException]]):
        # Minimal placeholders; the core only calls complete()
        self.model = "fake"
        self.responses = list(responses)
        self.calls: List[Tuple[str, str, str]] = []

    async def complete(self, system_prompt, user_prompt, api_key):
        self.calls.append((system_prompt, user_prompt, api_key))
        if not self.responses:
            raise AssertionError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

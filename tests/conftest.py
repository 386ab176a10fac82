import pytest

from agentgpt.messages import MessageLog


@pytest.fixture
def log():
    return MessageLog()

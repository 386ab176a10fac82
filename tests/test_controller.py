import asyncio
from unittest.mock import patch

import httpx
import pytest

from agentgpt.client import CompletionClient
from agentgpt.controller import OrchestrationController, SessionState
from agentgpt.errors import ConfigurationError, ServiceError, SessionStateError
from agentgpt.messages import MessageRole
from helpers import FakeClient

API_KEY = "sk-test"


def make_controller(responses):
    client = FakeClient(responses)
    states = []
    controller = OrchestrationController(client, on_state_change=states.append)
    return controller, client, states


@pytest.mark.asyncio
async def test_runs_all_steps_and_accumulates_context():
    controller, client, states = make_controller(["1. Gather data\n2. Summarize", "42 rows", "It grew"])

    session = await controller.submit("Analyze sales", API_KEY)

    assert session.state == SessionState.COMPLETED
    assert states == [SessionState.PLANNING, SessionState.EXECUTING, SessionState.COMPLETED]
    assert session.context == "\nStep 1 result: 42 rows\nStep 2 result: It grew"
    assert session.completed_steps == 2
    # Step 2 sees exactly step 1's result
    assert "Context: \nStep 1 result: 42 rows\n" in client.calls[2][1]
    assert "Context: \nStep 1 result: 42 rows\n" not in client.calls[1][1]
    assert [m.content for m in session.messages][-1] == "🎉 Task completed successfully!"
    assert "🔄 Starting step 2/2" in [m.content for m in session.messages]
    assert session.credential is None


@pytest.mark.asyncio
async def test_empty_plan_completes_without_executing():
    controller, client, states = make_controller(["I would just do it in one go."])

    session = await controller.submit("Say hi", API_KEY)

    assert session.state == SessionState.COMPLETED
    assert len(client.calls) == 1
    assert session.plan == []
    assert session.context == ""
    assert not any(m.content.startswith("🤔") for m in session.messages)


@pytest.mark.asyncio
async def test_needs_input_abandons_remaining_steps():
    controller, client, _ = make_controller(["1. A\n2. B\n3. C", "did A", "Hmm. NEED_INPUT: Which color?"])

    session = await controller.submit("Paint", API_KEY)

    assert session.state == SessionState.WAITING_INPUT
    assert session.pending_question == "Which color?"
    assert session.context == "\nStep 1 result: did A"
    assert session.completed_steps == 1
    assert len(client.calls) == 3
    assert session.credential == API_KEY


@pytest.mark.asyncio
async def test_resume_without_sentinel_replans_original_task():
    seen = []
    client = FakeClient([
        "1. A\n2. B", "NEED_INPUT: Which color?",
        "Blue it is, carrying on.",
        "1. Paint it blue", "Painted.",
    ])
    controller = OrchestrationController(client, on_message=seen.append)
    first = await controller.submit("Paint the fence", API_KEY)

    session = await controller.submit_input("blue")

    assert session is not first
    assert session.state == SessionState.COMPLETED
    # Continuation request carries the transcript and the new line
    _, continuation_prompt, _ = client.calls[2]
    assert continuation_prompt.startswith("Previous context: ")
    assert "Which color?" in continuation_prompt
    assert continuation_prompt.endswith("\nUser input: blue\nContinue the task execution.")
    # Planner invoked again with the original task
    assert client.calls[3][1].startswith("Task: Paint the fence\n")
    # The new session starts with a fresh log and context
    assert session.messages.messages[0].content == "🔍 Analyzing the task and creating a plan..."
    assert all(m.role != MessageRole.USER for m in session.messages)
    assert session.context == "\nStep 1 result: Painted."
    # The old log kept the user line and the continuation
    assert [m.content for m in first.messages][-2:] == ["blue", "Blue it is, carrying on."]
    assert first.messages.messages[-2].role == MessageRole.USER
    # The observer saw both sessions
    assert "blue" in [m.content for m in seen]
    assert seen[-1].content == "🎉 Task completed successfully!"


@pytest.mark.asyncio
async def test_resume_with_sentinel_keeps_waiting():
    controller, client, states = make_controller([
        "1. A", "NEED_INPUT: Which color?",
        "Still unsure. NEED_INPUT: Light or dark blue?",
    ])
    await controller.submit("Paint", API_KEY)

    session = await controller.submit_input("blue")

    assert session.state == SessionState.WAITING_INPUT
    assert session.pending_question == "Light or dark blue?"
    assert len(client.calls) == 3
    assert states[-2:] == [SessionState.PLANNING, SessionState.WAITING_INPUT]
    assert session.messages.messages[-1].content == "Still unsure. NEED_INPUT: Light or dark blue?"


@pytest.mark.asyncio
async def test_blank_input_is_ignored():
    controller, client, _ = make_controller(["1. A", "NEED_INPUT: Which?"])
    await controller.submit("Task", API_KEY)
    count = len(controller.session.messages)

    session = await controller.submit_input("   ")

    assert session.state == SessionState.WAITING_INPUT
    assert len(session.messages) == count
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_input_without_pending_question_is_rejected():
    controller, _, _ = make_controller([])

    with pytest.raises(SessionStateError):
        await controller.submit_input("hello")
    assert controller.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_step_failure_stops_the_loop():
    controller, client, _ = make_controller(["1. A\n2. B\n3. C", "did A", ServiceError("rate limited")])

    session = await controller.submit("Three steps", API_KEY)

    assert session.state == SessionState.ERROR
    assert session.error == "rate limited"
    assert session.context == "\nStep 1 result: did A"
    assert len(client.calls) == 3
    errors = [m for m in session.messages if m.role == MessageRole.ERROR]
    assert [m.content for m in errors] == ["❌ Error executing step: rate limited"]
    assert "🔄 Starting step 3/3" not in [m.content for m in session.messages]
    assert session.credential is None


@pytest.mark.asyncio
async def test_planning_failure_is_logged_once():
    controller, _, states = make_controller([ServiceError("Incorrect API key provided")])

    session = await controller.submit("Anything", API_KEY)

    assert session.state == SessionState.ERROR
    assert states == [SessionState.PLANNING, SessionState.ERROR]
    errors = [m.content for m in session.messages if m.role == MessageRole.ERROR]
    assert errors == ["❌ Error: Incorrect API key provided"]


@pytest.mark.asyncio
async def test_resume_failure_moves_to_error():
    controller, _, _ = make_controller(["1. A", "NEED_INPUT: Which?", ServiceError("timeout")])
    await controller.submit("Task", API_KEY)

    session = await controller.submit_input("this one")

    assert session.state == SessionState.ERROR
    assert session.messages.messages[-1].content == "❌ Error: timeout"
    assert session.messages.messages[-1].role == MessageRole.ERROR


@pytest.mark.asyncio
@pytest.mark.parametrize("task,credential", [("", API_KEY), ("   ", API_KEY), ("Task", ""), ("Task", None)])
async def test_submission_requires_task_and_credential(task, credential):
    controller, client, states = make_controller(["1. A"])

    with pytest.raises(ConfigurationError):
        await controller.submit(task, credential)
    assert controller.state == SessionState.IDLE
    assert len(controller.session.messages) == 0
    assert states == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_submission_while_running_is_rejected():
    rejected = []

    class ReentrantClient(FakeClient):
        async def complete(self, system_prompt, user_prompt, api_key):
            try:
                await controller.submit("Another task", API_KEY)
            except SessionStateError as e:
                rejected.append(e)
            return await super().complete(system_prompt, user_prompt, api_key)

    client = ReentrantClient(["1. A", "did A"])
    controller = OrchestrationController(client)

    session = await controller.submit("First task", API_KEY)

    assert session.state == SessionState.COMPLETED
    assert session.task == "First task"
    assert len(rejected) == 2


@pytest.mark.asyncio
async def test_new_submission_starts_a_fresh_session():
    controller, _, _ = make_controller(["1. A", "did A", "1. B", "did B"])
    first = await controller.submit("First", API_KEY)

    second = await controller.submit("Second", API_KEY)

    assert second is not first
    assert second.context == "\nStep 1 result: did B"
    assert "did A" not in second.messages.transcript()
    assert len(first.messages) > 0


@pytest.mark.asyncio
async def test_non_ascii_credential_ends_in_error_state():
    controller = OrchestrationController(CompletionClient())

    with patch.object(httpx.AsyncClient, "send", side_effect=AssertionError("request was sent")):
        session = await controller.submit("Do a thing", "sk-tést")

    assert session.state == SessionState.ERROR
    errors = [m.content for m in session.messages if m.role == MessageRole.ERROR]
    assert len(errors) == 1
    assert errors[0].startswith("❌ Error: Request failed")


@pytest.mark.asyncio
async def test_unexpected_client_error_leaves_busy_state():
    controller, _, states = make_controller([RuntimeError("decoder exploded"), "1. A", "did A"])

    with pytest.raises(RuntimeError):
        await controller.submit("First", API_KEY)

    assert controller.state == SessionState.ERROR
    assert states[-1] == SessionState.ERROR
    errors = [m.content for m in controller.session.messages if m.role == MessageRole.ERROR]
    assert errors == ["❌ Error: decoder exploded"]
    # The controller accepts the next task
    session = await controller.submit("Second", API_KEY)
    assert session.state == SessionState.COMPLETED


@pytest.mark.asyncio
async def test_failing_listener_leaves_busy_state():
    def on_message(message):
        if message.content.startswith("🔄"):
            raise ValueError("render failed")

    controller = OrchestrationController(FakeClient(["1. A"]), on_message=on_message)

    with pytest.raises(ValueError):
        await controller.submit("Task", API_KEY)

    assert controller.state == SessionState.ERROR
    assert controller.session.error == "render failed"
    assert [m.role for m in controller.session.messages].count(MessageRole.ERROR) == 1


@pytest.mark.asyncio
async def test_cancelled_step_leaves_busy_state():
    controller, _, _ = make_controller(["1. A", asyncio.CancelledError()])

    with pytest.raises(asyncio.CancelledError):
        await controller.submit("Task", API_KEY)

    assert controller.state == SessionState.ERROR
    errors = [m.content for m in controller.session.messages if m.role == MessageRole.ERROR]
    assert errors == ["❌ Error executing step: CancelledError"]


@pytest.mark.asyncio
async def test_unexpected_error_during_resume_leaves_busy_state():
    controller, _, _ = make_controller(["1. A", "NEED_INPUT: Which?", KeyError("choices")])
    await controller.submit("Task", API_KEY)

    with pytest.raises(KeyError):
        await controller.submit_input("this one")

    assert controller.state == SessionState.ERROR
    assert controller.session.messages.messages[-1].role == MessageRole.ERROR

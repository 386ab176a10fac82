#!/usr/bin/env python3
"""
AgentGPT CLI
Submit a task, watch the agent plan and execute it step by step,
and answer its questions when it needs more information.
"""

import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt
from rich.table import Table

from .client import CompletionClient
from .config import get_config, validate_config
from .controller import OrchestrationController, SessionState
from .errors import ConfigurationError, SessionStateError
from .logging_config import setup_logging
from .messages import Message, MessageRole

logger = logging.getLogger(__name__)

ACCENT = "#C8A882"

# Console setup
console = Console()

STATE_LABELS = {
    SessionState.PLANNING: "Planning...",
    SessionState.EXECUTING: "Executing...",
    SessionState.WAITING_INPUT: "Waiting for input",
    SessionState.COMPLETED: "Done",
    SessionState.ERROR: "Failed",
}


def render_message(message: Message) -> None:
    """Print one transcript message as soon as it is appended"""
    if message.role == MessageRole.ERROR:
        console.print(message.content, markup=False, style="red")
    elif message.role == MessageRole.USER:
        console.print(message.content, markup=False, style="blue")
    elif "\n" in message.content.strip():
        console.print(Panel(Markdown(message.content), border_style=ACCENT))
    else:
        console.print(message.content, markup=False, style=ACCENT)


def ask_api_key() -> Optional[str]:
    api_key = Prompt.ask(f"[{ACCENT}]OpenAI API Key[/{ACCENT}]", password=True, console=console)
    return api_key.strip() or None


def print_status(controller: OrchestrationController) -> None:
    session = controller.session
    table = Table(title="Session", border_style=ACCENT)
    table.add_column("Field", style=ACCENT)
    table.add_column("Value", style="green")
    table.add_row("State", session.state.value)
    table.add_row("Task", session.task or "-")
    table.add_row("Progress", f"{session.completed_steps}/{len(session.plan)}")
    table.add_row("Messages", str(len(session.messages)))
    if session.pending_question:
        table.add_row("Question", session.pending_question)
    if session.error:
        table.add_row("Error", session.error)
    console.print(table)


async def run_with_spinner(controller: OrchestrationController, coro) -> None:
    """Await a controller call while a spinner shows the current state"""
    with Progress(
        SpinnerColumn(spinner_name="dots", style=ACCENT),
        TextColumn(f"[{ACCENT}]{{task.description}}[/{ACCENT}]"),
        console=console,
        transient=True,
    ) as progress:
        spinner = progress.add_task(description="Thinking...", total=None)
        controller.on_state_change = lambda state: progress.update(
            spinner, description=STATE_LABELS.get(state, state.value)
        )
        try:
            await coro
        finally:
            controller.on_state_change = None


async def submit_line(controller: OrchestrationController, line: str, api_key: Optional[str], waiting: bool) -> None:
    """Send a task or an answer to the controller and report rejected input"""
    try:
        if waiting:
            await run_with_spinner(controller, controller.submit_input(line))
        else:
            await run_with_spinner(controller, controller.submit(line, api_key))
    except (ConfigurationError, SessionStateError) as e:
        console.print(f"[yellow]{e}[/yellow]")
    except Exception as e:
        logger.debug("Unexpected failure", exc_info=True)
        console.print(f"Unexpected error: {e}", markup=False, style="red")


async def main():
    """Main CLI entry point"""
    config = get_config()
    setup_logging(config["log_level"], console=console)

    console.print()
    console.print(Panel.fit(
        f"[bold {ACCENT}]AgentGPT[/bold {ACCENT}]\n\n"
        "[dim]Describe a task and the agent plans and executes it step by step.[/dim]\n"
        "[dim]Commands: status | \\ (enter API key) | quit (not while answering a question)[/dim]",
        border_style=ACCENT,
        title=f"[bold {ACCENT}]Welcome[/bold {ACCENT}]"
    ))

    api_key = config.get("api_key")
    if not validate_config(config):
        console.print("[yellow]No API key configured (AI_API_KEY). Enter one to continue.[/yellow]")
        api_key = ask_api_key()

    client = CompletionClient.from_config(config)
    controller = OrchestrationController(client, on_message=render_message)
    console.print(f"[dim]Model: {client.model}[/dim]")

    # Main interaction loop
    while True:
        console.print()
        waiting = controller.state == SessionState.WAITING_INPUT
        label = "Your response (Ctrl-C to exit)" if waiting else "Task"
        user_input = Prompt.ask(f"[bold {ACCENT}]{label}[/bold {ACCENT}]", console=console)

        if not user_input.strip():
            continue

        if waiting:
            # Every non-blank line answers the pending question
            await submit_line(controller, user_input, api_key, waiting)
            continue

        if user_input.lower() in ['quit', 'exit', 'q']:
            console.print(f"[{ACCENT}]Goodbye![/{ACCENT}]")
            break

        if user_input.strip() == '\\':
            api_key = ask_api_key()
            if api_key:
                console.print("[green]✓ API key updated[/green]")
            continue

        if user_input.lower() == 'status':
            print_status(controller)
            continue

        await submit_line(controller, user_input, api_key, waiting)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user. Goodbye![/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    run()

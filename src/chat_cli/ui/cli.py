"""CLI interface for chat-cli.

This module provides a Typer-based command-line interface over the tool
registry and the orchestrator. The model collaborator here is the scripted
client; provider clients plug in through the same ``ModelClient`` protocol.
"""

import asyncio
import signal
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.prompt import Confirm
from rich.table import Table

from chat_cli.config import AppConfig, get_settings
from chat_cli.llm_client import ScriptedLLMClient, ScriptError
from chat_cli.orchestrator import (
    ConfirmationGate,
    ConfirmationRequest,
    Orchestrator,
    RegistryContext,
    approve_all,
    build_registry_context,
)
from chat_cli.telemetry import configure_logging, get_logger
from chat_cli.tools import DuplicateNameError, ToolDefinition

log = get_logger(__name__)

app = typer.Typer(help="chat-cli - conversational tool-calling agent")
console = Console()

HELP_TEXT = """\
Commands:
  /tools   list the tools currently offered to the model
  /help    show this help
  /quit    leave the chat
Press Ctrl-C during a turn to abort it."""


def _load_settings() -> AppConfig:
    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        raise typer.Exit(2) from e
    configure_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_dir=settings.log_dir,
        log_to_file=settings.log_to_file,
    )
    return settings


async def _open_context(settings: AppConfig) -> RegistryContext:
    try:
        return await build_registry_context(settings)
    except DuplicateNameError as e:
        console.print(f"[red]Startup failed:[/red] {e}")
        raise typer.Exit(2) from e


async def prompt_confirmation(request: ConfirmationRequest) -> bool:
    """Ask on the terminal; runs in a thread so the event loop keeps going."""
    question = (
        f"[yellow]{request.risk_class.value}[/yellow] "
        f"[bold]{request.tool_name}[/bold]: {request.description}\nAllow?"
    )
    return await asyncio.to_thread(Confirm.ask, question, console=console, default=False)


def _make_gate(yes: bool) -> ConfirmationGate:
    return ConfirmationGate(approve_all if yes else prompt_confirmation)


def render_tools_table(definitions: list[ToolDefinition]) -> Table:
    """Table of tool definitions for ``tools`` and ``/tools``."""
    table = Table(title=f"Available tools ({len(definitions)})")
    table.add_column("Name", style="green")
    table.add_column("Source", style="blue")
    table.add_column("Risk", style="yellow")
    table.add_column("Confirm", style="magenta")
    table.add_column("Description", style="white", overflow="fold")
    for definition in definitions:
        summary = definition.description.strip().splitlines()[0] if definition.description else ""
        table.add_row(
            definition.name,
            definition.source,
            definition.risk_class.value,
            "yes" if ConfirmationGate.needs_confirmation(definition) else "no",
            summary[:120],
        )
    return table


@app.command(name="tools")
def tools_command() -> None:
    """List the tools offered to the model (built-ins, then remote servers)."""
    settings = _load_settings()

    async def _run() -> list[ToolDefinition]:
        context = await _open_context(settings)
        try:
            return context.registry.list()
        finally:
            await context.aclose()

    console.print(render_tools_table(asyncio.run(_run())))


@app.command(name="call")
def call_command(
    tool: str = typer.Argument(..., help="Tool name, e.g. glob or server:tool"),
    args: str = typer.Option("{}", "--args", "-a", help="Arguments as a JSON object"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Approve the call without asking"),
    raw: bool = typer.Option(False, "--raw", help="Print the text fed to the model"),
) -> None:
    """Run a single tool call through validation, confirmation and execution.

    Examples:
        chat-cli call glob --args '{"pattern": "**/*.py"}'
        chat-cli call write_file --args '{"file_path": "/tmp/x", "content": "hi"}'
    """
    settings = _load_settings()

    async def _run() -> Any:
        context = await _open_context(settings)
        try:
            orchestrator = Orchestrator(context, ScriptedLLMClient(), _make_gate(yes))
            return await orchestrator.call_tool(tool, args)
        finally:
            await context.aclose()

    result = asyncio.run(_run())
    style = "red" if result.is_error else "green"
    console.print(f"[{style}]{result.tool_name}[/{style}] ({result.latency_ms:.0f} ms)")
    console.print(result.llm_content if raw else result.display_content, markup=False)
    if result.is_error:
        raise typer.Exit(1)


@app.command(name="chat")
def chat_command(
    script: Optional[Path] = typer.Option(
        None, "--script", "-s", help="JSON script of model replies to replay"
    ),
    message: Optional[str] = typer.Option(
        None, "--message", "-m", help="Send one message and exit"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Approve every tool call"),
) -> None:
    """Chat against a scripted model, executing the tools it requests.

    Examples:
        chat-cli chat --script demo.json
        chat-cli chat --script demo.json -m "list the python files" --yes
    """
    settings = _load_settings()
    try:
        model = ScriptedLLMClient.from_json(script) if script else ScriptedLLMClient()
    except ScriptError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2) from e

    asyncio.run(_chat(settings, model, _make_gate(yes), message))


async def _chat(
    settings: AppConfig,
    model: ScriptedLLMClient,
    gate: ConfirmationGate,
    message: str | None,
) -> None:
    context = await _open_context(settings)
    orchestrator = Orchestrator(context, model, gate)
    loop = asyncio.get_running_loop()
    log.info("chat_session_started", tools_count=len(context.registry), scripted=model.remaining)
    try:
        if message is not None:
            await _run_turn(orchestrator, loop, message)
            return

        console.print("[dim]Type /help for commands.[/dim]")
        while True:
            try:
                line = await asyncio.to_thread(console.input, "[bold cyan]You:[/bold cyan] ")
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line in ("/quit", "/exit"):
                break
            if line == "/help":
                console.print(HELP_TEXT)
                continue
            if line == "/tools":
                console.print(render_tools_table(context.registry.list()))
                continue
            await _run_turn(orchestrator, loop, line)
    finally:
        await context.aclose()


async def _run_turn(
    orchestrator: Orchestrator, loop: asyncio.AbstractEventLoop, message: str
) -> None:
    loop.add_signal_handler(signal.SIGINT, orchestrator.abort)
    try:
        result = await orchestrator.execute_turn_safe(message)
    finally:
        loop.remove_signal_handler(signal.SIGINT)

    for step in result.get("steps", []):
        if step["type"] == "tool_call":
            metadata = step["metadata"]
            marker = "[red]x[/red]" if metadata.get("is_error") else "[green]>[/green]"
            console.print(f"  {marker} [dim]{step['description']}[/dim]")

    console.print("\n[bold blue]Agent:[/bold blue]")
    console.print(Markdown(result["reply"]))
    if result.get("trace_id"):
        console.print(f"[dim]Trace ID: {result['trace_id']}[/dim]\n")


if __name__ == "__main__":
    app()

"""Click CLI — loads config, picks participants, runs chat turns and renders the events."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.progress import TaskID

from config.config_loader import AppConfig, load_config
from groupchat.healthcheck import run_health_checks
from groupchat.history import load_history
from groupchat.models import DoneEvent, Turn
from groupchat.orchestrator import orchestrate
from groupchat.output import EventRenderer, console, make_progress
from groupchat.providers.base import InferenceClient
from groupchat.providers.router import ProviderRouter
from groupchat.wire import stream_frames

logger = logging.getLogger(__name__)

_QUIT_COMMANDS = {"/quit", "/exit"}
_DEBATE_TOGGLE = "/debate"


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _determine_participants(config: AppConfig, models_arg: str | None) -> list[str]:
    """--models overrides the configured default panel."""
    if models_arg:
        return [m.strip() for m in models_arg.split(",") if m.strip()]
    return list(config.defaults.participants)


def _check_and_filter_participants(client: InferenceClient, participants: list[str]) -> list[str]:
    """Ping every participant and ask what to do on failures.

    Returns the participants that answered. Exits if the user declines to
    continue or nobody answers.
    """
    console.print("\n[bold]Checking models...[/bold]")
    results = asyncio.run(run_health_checks(client, participants))

    failed: list[str] = []
    for pid in participants:
        ok, err = results[pid]
        if ok:
            console.print(f"  [green]OK  [/green] {pid}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {pid}: {short_err}")
            failed.append(pid)

    if not failed:
        console.print()
        return participants

    working = [pid for pid in participants if pid not in failed]
    if not working:
        console.print("\n[bold red]Error:[/bold red] No models passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed)} model(s) failed:[/yellow] {', '.join(failed)}")
    if not click.confirm("Continue with working models only?", default=True):
        sys.exit(0)

    console.print()
    return working


async def _run_turn(
    message: str,
    history: list[Turn],
    participants: list[str],
    debate_mode: bool,
    config: AppConfig,
    client: InferenceClient,
    wire: bool = False,
    show_decisions: bool = True,
) -> list[Turn]:
    """Run one orchestration and return the completed replies as assistant turns."""
    events = orchestrate(
        message,
        history,
        participants,
        debate_mode,
        client=client,
        prompts=config.prompts,
        policy=config.policy,
        evaluation_max_tokens=config.defaults.evaluation_max_tokens,
    )
    replies: list[Turn] = []

    if wire:
        async def tap():
            async for event in events:
                if isinstance(event, DoneEvent):
                    replies.append(Turn("assistant", event.full_content, author=event.participant_id))
                yield event

        async for frame in stream_frames(tap()):
            click.echo(frame, nl=False)
        return replies

    with make_progress() as progress:
        deciding: TaskID | None = progress.add_task("Deciding who replies...", total=None)
        renderer = EventRenderer(progress, show_decisions=show_decisions)
        async for event in events:
            if deciding is not None:
                progress.remove_task(deciding)
                deciding = None
            renderer.handle(event)
            if isinstance(event, DoneEvent):
                replies.append(Turn("assistant", event.full_content, author=event.participant_id))
    return replies


async def _run_interactive(
    history: list[Turn],
    participants: list[str],
    debate_mode: bool,
    config: AppConfig,
    client: InferenceClient,
    wire: bool,
    show_decisions: bool,
) -> None:
    """Read messages until /quit; replies are appended to the in-memory history."""
    console.print(f"[bold cyan]Group chat[/bold cyan] with {', '.join(participants)}")
    console.print(f"[dim]{_DEBATE_TOGGLE} toggles debate mode, /quit leaves. @everyone addresses all.[/dim]\n")

    while True:
        try:
            message = await asyncio.to_thread(click.prompt, "you", prompt_suffix="> ")
        except (click.Abort, EOFError):
            break
        message = message.strip()
        if not message:
            continue
        if message in _QUIT_COMMANDS:
            break
        if message == _DEBATE_TOGGLE:
            debate_mode = not debate_mode
            console.print(f"[dim]Debate mode {'on' if debate_mode else 'off'}[/dim]")
            continue

        replies = await _run_turn(
            message, history, participants, debate_mode, config, client, wire=wire, show_decisions=show_decisions
        )
        history.append(Turn("user", message))
        history.extend(replies)


@click.command()
@click.argument("message", required=False)
@click.option("--models", default=None, help="Comma-separated participant ids, e.g. openai/gpt-4o,anthropic/claude-3.5-sonnet")
@click.option("--debate/--no-debate", "debate_flag", default=None, help="Debate mode: lower threshold, discussion tone (default: from config)")
@click.option("--history", "history_file", type=click.Path(exists=True), help="JSON file with the conversation so far")
@click.option("--interactive", "-i", is_flag=True, help="Keep chatting; replies become history for the next message")
@click.option("--wire", is_flag=True, help="Print raw event-stream frames instead of rendering")
@click.option("--hide-decisions", is_flag=True, help="Do not print the per-model decision table")
@click.option("--check", "run_check", is_flag=True, help="Ping every model before chatting")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    message: str | None,
    models: str | None,
    debate_flag: bool | None,
    history_file: str | None,
    interactive: bool,
    wire: bool,
    hide_decisions: bool,
    run_check: bool,
    verbose: bool,
) -> None:
    """Group chat with several AI models at once.

    \b
    Examples:
      python -m groupchat.cli "What's the best sorting algorithm?"
      python -m groupchat.cli "@everyone thoughts on tabs vs spaces?" --models openai/gpt-4o,x-ai/grok-2
      python -m groupchat.cli "Is P = NP?" --debate --history chat.json
      python -m groupchat.cli -i --debate
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    participants = _determine_participants(config, models)
    if not participants:
        console.print("[bold red]Error:[/bold red] No models selected. Use --models or set defaults.participants.")
        sys.exit(1)

    debate_mode = config.defaults.debate_mode if debate_flag is None else debate_flag

    history: list[Turn] = []
    if history_file:
        try:
            history = load_history(Path(history_file))
        except ValueError as exc:
            console.print(f"[bold red]History error:[/bold red] {exc}")
            sys.exit(1)

    client = ProviderRouter(config)

    if run_check:
        participants = _check_and_filter_participants(client, participants)
        # SDK clients are bound to the event loop that created them
        client = ProviderRouter(config)

    if interactive:
        asyncio.run(
            _run_interactive(history, participants, debate_mode, config, client, wire, not hide_decisions)
        )
        return

    if not message or not message.strip():
        console.print("[bold red]Error:[/bold red] Provide a MESSAGE argument or use --interactive.")
        sys.exit(1)

    asyncio.run(
        _run_turn(message, history, participants, debate_mode, config, client, wire=wire, show_decisions=not hide_decisions)
    )


if __name__ == "__main__":
    main()

"""Rich console rendering of orchestration events."""

import logging

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table

from groupchat.context import short_name
from groupchat.models import (
    ChunkEvent,
    DebugEvent,
    Decision,
    DoneEvent,
    ErrorEvent,
    ParticipationEvent,
    StartEvent,
    StreamEvent,
)

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def decisions_table(decisions: list[Decision]) -> Table:
    """One row per candidate: pressure, threshold, outcome and reasoning."""
    responding = sum(1 for d in decisions if d.outcome == "RESPOND")
    table = Table(
        title=f"DEBUG: {responding} RESPOND, {len(decisions) - responding} SILENT",
        title_style="bold magenta",
        border_style="dim",
    )
    table.add_column("Model", style="bold")
    table.add_column("Pressure", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Decision")
    table.add_column("Reasoning", style="dim")
    for d in decisions:
        outcome = "[green]RESPOND[/green]" if d.outcome == "RESPOND" else "[yellow]SILENT[/yellow]"
        table.add_row(d.display_name, f"{d.response_pressure:.2f}", f"{d.threshold:.2f}", outcome, d.reasoning or "")
    return table


class EventRenderer:
    """Projects the event stream onto the console.

    A spinner per responder shows progress while chunks arrive; each finished
    reply or error is printed as a panel above the spinners.
    """

    def __init__(self, progress: Progress, show_decisions: bool = True) -> None:
        self._progress = progress
        self._show_decisions = show_decisions
        self._tasks: dict[str, TaskID] = {}
        self._chars: dict[str, int] = {}

    def handle(self, event: StreamEvent) -> None:
        if isinstance(event, DebugEvent):
            if self._show_decisions:
                self._progress.print(decisions_table(event.decisions))
        elif isinstance(event, ParticipationEvent):
            self._progress.print(
                f"[dim]{event.responding_count} of {event.total_count} models responding "
                f"(threshold {event.threshold:.2f})[/dim]"
            )
        elif isinstance(event, StartEvent):
            self._chars[event.participant_id] = 0
            self._tasks[event.participant_id] = self._progress.add_task(
                f"{short_name(event.participant_id)} is typing...", total=None
            )
        elif isinstance(event, ChunkEvent):
            self._chars[event.participant_id] += len(event.content)
            self._progress.update(
                self._tasks[event.participant_id],
                description=f"{short_name(event.participant_id)} is typing... ({self._chars[event.participant_id]} chars)",
            )
        elif isinstance(event, DoneEvent):
            self._finish(event.participant_id)
            self._progress.print(
                Panel(Markdown(event.full_content), title=f"[bold]{short_name(event.participant_id)}[/bold]")
            )
        elif isinstance(event, ErrorEvent):
            self._finish(event.participant_id)
            self._progress.print(
                Panel(event.error, title=f"[bold]{short_name(event.participant_id)}[/bold]", border_style="red")
            )

    def _finish(self, participant_id: str) -> None:
        task_id = self._tasks.pop(participant_id, None)
        if task_id is not None:
            self._progress.remove_task(task_id)


def make_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )

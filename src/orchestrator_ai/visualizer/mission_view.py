"""Rich views for a running or saved mission."""

from typing import Iterable, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from ..models import (
	LogKind,
	MissionState,
	MissionStatus,
	RateLimitConfig,
	SavedSession,
	TaskStatus,
)
from ..prompts import AGENT_ICONS
from ..rate_limiter import THRESHOLD, remaining_ms
from .utils import describe_budget, format_clock, format_duration, format_epoch_ms, token_bar, truncate

STATUS_ICONS = {
	TaskStatus.PENDING: "[dim][ ][/dim]",
	TaskStatus.IN_PROGRESS: "[yellow][~][/yellow]",
	TaskStatus.COMPLETED: "[green][x][/green]",
	TaskStatus.FAILED: "[red][!][/red]",
}

MISSION_STYLES = {
	MissionStatus.IDLE: "dim",
	MissionStatus.PLANNING: "cyan",
	MissionStatus.WORKING: "blue",
	MissionStatus.COOLDOWN: "yellow",
	MissionStatus.AUTO_PAUSED: "yellow",
	MissionStatus.PAUSED: "magenta",
	MissionStatus.COMPLETED: "green",
	MissionStatus.ERROR: "red",
}

LOG_STYLES = {
	LogKind.PLAN: "cyan",
	LogKind.ACTION: "blue",
	LogKind.RESULT: "green",
	LogKind.ERROR: "bold red",
	LogKind.INFO: "dim",
}


def render_status(
	state: MissionState,
	config: RateLimitConfig,
	query: str,
	now_ms: int,
	console: Optional[Console] = None,
) -> None:
	"""Render the mission status panel with the token budget bar."""
	console = console or Console()
	style = MISSION_STYLES.get(state.status, "white")
	progress = state.get_progress()

	lines = [
		f"[bold]Objective:[/bold] {query or '-'}",
		f"[bold]Status:[/bold] [{style}]{state.status.value}[/{style}]",
		f"[bold]Progress:[/bold] {progress['completed']}/{progress['total']} tasks ({progress['percentage']:.0f}%)",
		"",
		f"[bold]Tokens:[/bold] {token_bar(state.token_usage, config.max_tokens, threshold=THRESHOLD)} "
		f"{state.token_usage:,}/{config.max_tokens:,}",
		f"[bold]Budget:[/bold] {describe_budget(config)} (throttles at {THRESHOLD:.0%})",
	]
	if state.status in (MissionStatus.COOLDOWN, MissionStatus.AUTO_PAUSED):
		wait = format_duration(remaining_ms(state, now_ms) / 1000)
		label = "Cooldown" if state.status == MissionStatus.COOLDOWN else "Auto-resume in"
		lines.append(f"[bold]{label}:[/bold] [yellow]{wait}[/yellow]")

	console.print(Panel("\n".join(lines), title="Mission", border_style=style))


def render_tasks(state: MissionState, console: Optional[Console] = None) -> None:
	"""Render the task plan as a table."""
	console = console or Console()
	if not state.tasks:
		console.print("[dim]No tasks planned yet.[/dim]")
		return

	table = Table(title="Tasks")
	table.add_column("#", justify="right")
	table.add_column("", no_wrap=True)
	table.add_column("Agent")
	table.add_column("Title", style="bold")
	table.add_column("Tokens", justify="right")
	table.add_column("Result")

	for i, task in enumerate(state.tasks, start=1):
		table.add_row(
			str(i),
			STATUS_ICONS.get(task.status, "[ ]"),
			f"{AGENT_ICONS.get(task.assigned_agent, '')} {task.assigned_agent.value}",
			task.title,
			str(task.tokens_used) if task.tokens_used is not None else "",
			truncate(task.result or "", 50),
		)
	console.print(table)


def render_logs(
	state: MissionState,
	limit: int = 20,
	include_system: bool = False,
	console: Optional[Console] = None,
) -> None:
	"""Render the most recent log entries, oldest first."""
	console = console or Console()
	entries = [
		e for e in state.logs
		if include_system or not e.message.startswith("[SYSTEM]")
	]
	for entry in entries[-limit:]:
		style = LOG_STYLES.get(entry.kind, "white")
		icon = AGENT_ICONS.get(entry.agent, "")
		console.print(
			f"[dim]{format_clock(entry.timestamp)}[/dim] {icon} [bold]{entry.agent.value}[/bold] "
			f"[{style}]{entry.message}[/{style}]",
			highlight=False,
		)
		sources = (entry.metadata or {}).get("sources") or []
		for url in sources:
			console.print(f"    [dim]source:[/dim] {url}", highlight=False)


def render_final_output(state: MissionState, console: Optional[Console] = None) -> None:
	console = console or Console()
	if state.final_output is None:
		return
	console.print(Panel(Markdown(state.final_output), title="Final Report", border_style="green"))


def render_mission(
	state: MissionState,
	config: RateLimitConfig,
	query: str,
	now_ms: int,
	console: Optional[Console] = None,
) -> None:
	"""Render status, tasks, recent log and, once complete, the final report."""
	console = console or Console()
	render_status(state, config, query, now_ms, console=console)
	render_tasks(state, console=console)
	render_logs(state, console=console)
	render_final_output(state, console=console)


def render_history(
	sessions: Iterable[SavedSession],
	now_ms: int,
	console: Optional[Console] = None,
) -> None:
	"""Render saved sessions, most recent first."""
	console = console or Console()
	sessions = list(sessions)
	if not sessions:
		console.print("[dim]No saved sessions yet.[/dim]")
		return

	table = Table(title="Saved Sessions")
	table.add_column("Session ID", style="cyan")
	table.add_column("Saved")
	table.add_column("Status")
	table.add_column("Progress", justify="right")
	table.add_column("Tokens", justify="right")
	table.add_column("Objective")

	for session in sessions:
		state = session.state
		progress = state.get_progress()
		style = MISSION_STYLES.get(state.status, "white")
		table.add_row(
			session.id,
			format_epoch_ms(session.timestamp, now_ms),
			f"[{style}]{state.status.value}[/{style}]",
			f"{progress['completed']}/{progress['total']}",
			f"{state.token_usage:,}",
			truncate(session.query, 50),
		)
	console.print(table)

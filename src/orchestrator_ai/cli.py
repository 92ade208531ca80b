"""CLI for orchestrator-ai: run, resume, history, delete, prompts and serve commands."""

import argparse
import asyncio
import signal
import sys
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.prompt import Confirm

from .config import Config, load_config
from .errors import ConfigurationError
from .logging_config import setup_logging
from .mission import now_ms
from .models import AgentRole, MissionState, MissionStatus, PeriodUnit, RateLimitConfig
from .persistence import AUTOSAVE_KEY, SessionStore
from .prompts import AGENT_DESCRIPTIONS, AGENT_ICONS
from .service import MissionService
from .visualizer import render_history, render_mission
from .visualizer.mission_view import LOG_STYLES
from .visualizer.utils import format_clock


def _rate_limit_from_args(args: argparse.Namespace, base: RateLimitConfig) -> RateLimitConfig:
	"""Overlay --max-tokens/--period-*/--auto-resume flags on a base budget."""
	return RateLimitConfig(
		max_tokens=args.max_tokens if args.max_tokens is not None else base.max_tokens,
		period_value=args.period_value if args.period_value is not None else base.period_value,
		period_unit=PeriodUnit(args.period_unit) if args.period_unit else base.period_unit,
		auto_resume_minutes=(
			args.auto_resume_minutes if args.auto_resume_minutes is not None else base.auto_resume_minutes
		),
	)


def _follow(service: MissionService, console: Console, show_system: bool = False):
	"""Print log entries as they are appended. Returns an unsubscribe function."""
	seen = len(service.state.logs)

	def on_change(state: MissionState) -> None:
		nonlocal seen
		for entry in state.logs[seen:]:
			if entry.message.startswith("[SYSTEM]") and not show_system:
				continue
			style = LOG_STYLES.get(entry.kind, "white")
			console.print(
				f"[dim]{format_clock(entry.timestamp)}[/dim] {AGENT_ICONS.get(entry.agent, '')} "
				f"[bold]{entry.agent.value}[/bold] [{style}]{entry.message}[/{style}]",
				highlight=False,
			)
		seen = len(state.logs)

	return service.engine.subscribe(on_change)


def _install_interrupt(service: MissionService, console: Console) -> None:
	"""Ctrl-C pauses the mission instead of killing it mid-call."""
	loop = asyncio.get_running_loop()

	def on_interrupt() -> None:
		status = service.state.status
		if status in (MissionStatus.PLANNING, MissionStatus.WORKING, MissionStatus.COOLDOWN):
			service.pause()
		if service.state.status == MissionStatus.AUTO_PAUSED:
			service.stop_timer()
		console.print("[yellow]Pausing... the current call will finish first.[/yellow]")

	try:
		loop.add_signal_handler(signal.SIGINT, on_interrupt)
	except NotImplementedError:
		# Not supported on this platform's event loop
		pass


async def _drive(service: MissionService, console: Console, show_system: bool) -> MissionState:
	"""Run the mission until it rests, streaming the log."""
	unsubscribe = _follow(service, console, show_system=show_system)
	_install_interrupt(service, console)
	try:
		state = await service.runner.run_until_settled()
	finally:
		unsubscribe()
	console.print()
	render_mission(state, service.engine.rate_limit, service.engine.query, now_ms(), console=console)
	if state.status == MissionStatus.PAUSED:
		console.print("[dim]Mission paused. Continue with 'orchestrator-ai resume'.[/dim]")
	return state


async def _run(args: argparse.Namespace, config: Config) -> int:
	console = Console()
	service = MissionService(config)
	await service.open()
	try:
		interrupted = await service.interrupted_session()
		if interrupted and not args.yes and sys.stdin.isatty():
			if Confirm.ask(
				f"Found an interrupted mission: [bold]{interrupted.query}[/bold]. Resume it instead?",
				default=False,
				console=console,
			):
				service.engine.load_session(interrupted)
				service.resume()
				await _drive(service, console, args.show_system)
				return 0

		service.engine.update_rate_limit(_rate_limit_from_args(args, service.engine.rate_limit))
		service.start(args.objective)
		state = await _drive(service, console, args.show_system)
		if args.save:
			session_id = await service.save()
			console.print(f"Saved as [cyan]{session_id}[/cyan]")
		return 0 if state.status == MissionStatus.COMPLETED else 2
	finally:
		await service.close()


def cmd_run(args: argparse.Namespace) -> None:
	"""Start a new mission and follow it until it completes or pauses."""
	config = load_config()
	try:
		code = asyncio.run(_run(args, config))
	except ConfigurationError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(1)
	sys.exit(code)


async def _resume(args: argparse.Namespace, config: Config) -> int:
	console = Console()
	service = MissionService(config)
	await service.open()
	try:
		session = await service.load(args.session_id)
		if session is None:
			console.print(f"[red]Session not found: {args.session_id}[/red]")
			return 1
		if any(v is not None for v in (args.max_tokens, args.period_value, args.period_unit, args.auto_resume_minutes)):
			service.engine.update_rate_limit(_rate_limit_from_args(args, service.engine.rate_limit))
		if service.state.status == MissionStatus.COMPLETED or service.state.final_output is not None:
			render_mission(service.state, service.engine.rate_limit, service.engine.query, now_ms(), console=console)
			return 0
		console.print(f"Resuming [bold]{session.query}[/bold] ({session.id})")
		service.resume()
		state = await _drive(service, console, args.show_system)
		if args.save:
			session_id = await service.save()
			console.print(f"Saved as [cyan]{session_id}[/cyan]")
		return 0 if state.status == MissionStatus.COMPLETED else 2
	finally:
		await service.close()


def cmd_resume(args: argparse.Namespace) -> None:
	"""Resume the autosaved mission or a saved session."""
	config = load_config()
	try:
		code = asyncio.run(_resume(args, config))
	except ConfigurationError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(1)
	sys.exit(code)


async def _open_store(config: Config) -> SessionStore:
	store = SessionStore(str(config.sessions_db_path), history_limit=config.history_limit)
	await store.init()
	return store


def cmd_history(args: argparse.Namespace) -> None:
	"""List saved sessions."""
	config = load_config()

	async def _history():
		store = await _open_store(config)
		try:
			sessions = await store.list()
			autosave = await store.get_interrupted()
		finally:
			await store.close()
		render_history(sessions, now_ms())
		if autosave:
			print(f"\nInterrupted mission in autosave: {autosave.query} ({autosave.state.status.value})")

	asyncio.run(_history())


def cmd_delete(args: argparse.Namespace) -> None:
	"""Delete a saved session."""
	config = load_config()

	async def _delete() -> bool:
		store = await _open_store(config)
		try:
			return await store.delete(args.session_id)
		finally:
			await store.close()

	if asyncio.run(_delete()):
		print(f"Deleted {args.session_id}")
	else:
		print(f"Session not found: {args.session_id}", file=sys.stderr)
		sys.exit(1)


def cmd_prompts(args: argparse.Namespace) -> None:
	"""Show agent roles and their default instructions."""
	from .prompts import DEFAULT_AGENT_PROMPTS
	console = Console()
	roles = [r for r in AgentRole if args.role is None or r.value.lower() == args.role.lower()]
	if not roles:
		print(f"Unknown role: {args.role}", file=sys.stderr)
		sys.exit(1)
	for role in roles:
		console.print(f"\n{AGENT_ICONS[role]} [bold]{role.value}[/bold] [dim]- {AGENT_DESCRIPTIONS[role]}[/dim]")
		console.print(DEFAULT_AGENT_PROMPTS[role], highlight=False)


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	from .server import mcp
	mcp.run()


def _add_budget_args(parser: argparse.ArgumentParser) -> None:
	parser.add_argument("--max-tokens", type=int, default=None, help="Token budget per window")
	parser.add_argument("--period-value", type=int, default=None, help="Window length")
	parser.add_argument(
		"--period-unit",
		choices=[u.value for u in PeriodUnit],
		default=None,
		help="Window unit",
	)
	parser.add_argument(
		"--auto-resume-minutes",
		type=float,
		default=None,
		help="Timer for manual pauses (0 = off)",
	)
	parser.add_argument("--show-system", action="store_true", help="Include full prompts and outputs in the log")
	parser.add_argument("--save", action="store_true", help="Save the mission to history when it stops")


def main(argv: Optional[list[str]] = None) -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="orchestrator-ai",
		description="Multi-agent missions: plan, execute and report under a token budget",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Log to the console as well")
	subparsers = parser.add_subparsers(dest="command")

	# run
	run_parser = subparsers.add_parser("run", help="Start a mission")
	run_parser.add_argument("objective", help="What the team should accomplish")
	run_parser.add_argument("-y", "--yes", action="store_true", help="Don't offer to resume an interrupted mission")
	_add_budget_args(run_parser)
	run_parser.set_defaults(func=cmd_run)

	# resume
	resume_parser = subparsers.add_parser("resume", help="Resume the autosaved mission or a saved session")
	resume_parser.add_argument("session_id", nargs="?", default=AUTOSAVE_KEY, help="Session ID (default: autosave)")
	_add_budget_args(resume_parser)
	resume_parser.set_defaults(func=cmd_resume)

	# history
	history_parser = subparsers.add_parser("history", help="List saved sessions")
	history_parser.set_defaults(func=cmd_history)

	# delete
	delete_parser = subparsers.add_parser("delete", help="Delete a saved session")
	delete_parser.add_argument("session_id", help="Session ID")
	delete_parser.set_defaults(func=cmd_delete)

	# prompts
	prompts_parser = subparsers.add_parser("prompts", help="Show agent roles and default instructions")
	prompts_parser.add_argument("role", nargs="?", default=None, help="Single role to show")
	prompts_parser.set_defaults(func=cmd_prompts)

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	args = parser.parse_args(argv)

	if not args.command:
		parser.print_help()
		sys.exit(1)

	load_dotenv()
	if args.command != "serve":
		config = load_config()
		setup_logging(log_dir=config.log_dir, console=args.verbose)

	args.func(args)

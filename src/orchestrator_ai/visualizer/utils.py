"""Shared utilities for visualizer views."""

from datetime import datetime

from ..models import RateLimitConfig


def format_duration(seconds: float) -> str:
	"""Format a duration for display. e.g. '1.2s', '45ms', '2m 3s'."""
	if seconds < 0.001:
		return "<1ms"
	if seconds < 1.0:
		return f"{seconds * 1000:.0f}ms"
	if seconds < 60.0:
		return f"{seconds:.1f}s"
	minutes = int(seconds // 60)
	secs = seconds % 60
	return f"{minutes}m {secs:.0f}s"


def format_epoch_ms(timestamp_ms: int, now_ms: int | None = None) -> str:
	"""Format a millisecond timestamp as relative time (e.g. '2m ago')."""
	if now_ms is None:
		now_ms = int(datetime.now().timestamp() * 1000)
	total_secs = (now_ms - timestamp_ms) // 1000
	if total_secs < 0:
		return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")
	if total_secs < 60:
		return f"{total_secs}s ago"
	if total_secs < 3600:
		return f"{total_secs // 60}m ago"
	if total_secs < 86400:
		return f"{total_secs // 3600}h ago"
	return f"{total_secs // 86400}d ago"


def format_clock(timestamp_ms: int) -> str:
	return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")


def truncate(text: str, max_len: int = 60) -> str:
	"""Shorten text to a single line for table display."""
	if not text:
		return ""
	line = " ".join(text.split())
	if len(line) <= max_len:
		return line
	return line[:max_len - 3] + "..."


def describe_budget(config: RateLimitConfig) -> str:
	return f"{config.max_tokens:,} tokens / {config.period_value} {config.period_unit.value}"


def token_bar(used: int, limit: int, width: int = 30, threshold: float = 0.8) -> str:
	"""
	Text bar for token usage with a marker at the throttle threshold.

	e.g. '[green]██████[/green]░░░░░░░░│░░░░'
	"""
	ratio = min(used / limit, 1.0) if limit > 0 else 0.0
	filled = int(round(ratio * width))
	marker = min(int(threshold * width), width - 1)
	style = "green" if ratio < 0.5 else ("yellow" if ratio < threshold else "red")
	cells = []
	for i in range(width):
		if i == marker and i >= filled:
			cells.append("[bold]│[/bold]")
		elif i < filled:
			cells.append(f"[{style}]█[/{style}]")
		else:
			cells.append("[dim]░[/dim]")
	return "".join(cells)

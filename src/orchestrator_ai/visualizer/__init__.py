"""Visualizer package - Rich terminal views for missions and saved sessions."""

from .mission_view import (
	render_final_output,
	render_history,
	render_logs,
	render_mission,
	render_status,
	render_tasks,
)

__all__ = [
	"render_final_output",
	"render_history",
	"render_logs",
	"render_mission",
	"render_status",
	"render_tasks",
]

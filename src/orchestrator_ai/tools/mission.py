"""Mission control tools."""

import json

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from ..config import Config
from ..errors import MissionStateError
from ..models import AgentRole, PeriodUnit, RateLimitConfig
from ..prompts import AGENT_DESCRIPTIONS
from ..service import MissionService, get_mission_service


def _summary(service: MissionService, log_limit: int = 10) -> dict:
	state = service.state
	config = service.engine.rate_limit
	return {
		"query": service.engine.query,
		"status": state.status.value,
		"progress": state.get_progress(),
		"current_task_index": state.current_task_index,
		"token_usage": state.token_usage,
		"rate_limit": config.model_dump(mode="json"),
		"next_allowed_time": state.next_allowed_time,
		"tasks": [
			{
				"id": t.id,
				"title": t.title,
				"agent": t.assigned_agent.value,
				"status": t.status.value,
				"tokens_used": t.tokens_used,
			}
			for t in state.tasks
		],
		"recent_logs": [
			{"agent": e.agent.value, "kind": e.kind.value, "message": e.message}
			for e in state.logs
			if not e.message.startswith("[SYSTEM]")
		][-log_limit:],
		"final_output": state.final_output,
	}


def _role(name: str) -> AgentRole:
	for role in AgentRole:
		if role.value.lower() == name.strip().lower():
			return role
	raise ValueError(f"Unknown agent role: {name}. Valid roles: {', '.join(r.value for r in AgentRole)}")


def register_mission_tools(mcp: FastMCP, config: Config) -> None:
	"""Register mission control tools."""

	@mcp.tool()
	async def start_mission(objective: str) -> str:
		"""
		Start a new multi-agent mission.

		The Supervisor plans the objective into sequential tasks, worker agents
		execute them one by one, and a final report is compiled at the end.

		Args:
			objective: What the team should accomplish
		"""
		service = await get_mission_service(config)
		try:
			service.start(objective)
		except MissionStateError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "mission": _summary(service)}, indent=2)

	@mcp.tool()
	async def get_mission_status(log_limit: int = 10) -> str:
		"""
		Get the current mission status, task list and recent log entries.

		Args:
			log_limit: Number of recent log entries to include
		"""
		service = await get_mission_service(config)
		return json.dumps(_summary(service, log_limit=log_limit), indent=2)

	@mcp.tool()
	async def pause_mission() -> str:
		"""Pause the mission. Starts the auto-resume timer if one is configured."""
		service = await get_mission_service(config)
		try:
			state = service.pause()
		except MissionStateError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "status": state.status.value})

	@mcp.tool()
	async def resume_mission() -> str:
		"""Resume a paused mission."""
		service = await get_mission_service(config)
		try:
			state = service.resume()
		except MissionStateError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "status": state.status.value})

	@mcp.tool()
	async def stop_auto_resume() -> str:
		"""Cancel the auto-resume timer and keep the mission paused."""
		service = await get_mission_service(config)
		try:
			state = service.stop_timer()
		except MissionStateError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "status": state.status.value})

	@mcp.tool()
	async def restart_mission() -> str:
		"""Restart the current objective from scratch. Unsaved progress is lost."""
		service = await get_mission_service(config)
		try:
			state = service.restart()
		except MissionStateError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "status": state.status.value})

	@mcp.tool()
	async def save_mission() -> str:
		"""Save the current mission into the session history."""
		service = await get_mission_service(config)
		session_id = await service.save()
		return json.dumps({"success": True, "session_id": session_id})

	@mcp.tool()
	async def list_sessions() -> str:
		"""List saved sessions, most recent first."""
		service = await get_mission_service(config)
		sessions = await service.store.list()
		return json.dumps({
			"success": True,
			"count": len(sessions),
			"sessions": [
				{
					"id": s.id,
					"timestamp": s.timestamp,
					"query": s.query,
					"status": s.state.status.value,
					"progress": s.state.get_progress(),
				}
				for s in sessions
			],
		}, indent=2)

	@mcp.tool()
	async def load_session(session_id: str) -> str:
		"""
		Load a saved session. The loaded mission starts paused.

		Args:
			session_id: Session ID from list_sessions, or "autosave"
		"""
		service = await get_mission_service(config)
		session = await service.load(session_id)
		if session is None:
			return json.dumps({"success": False, "error": f"Session not found: {session_id}"})
		return json.dumps({"success": True, "mission": _summary(service)}, indent=2)

	@mcp.tool()
	async def delete_session(session_id: str) -> str:
		"""
		Delete a saved session.

		Args:
			session_id: Session ID from list_sessions
		"""
		service = await get_mission_service(config)
		deleted = await service.store.delete(session_id)
		if not deleted:
			return json.dumps({"success": False, "error": f"Session not found: {session_id}"})
		return json.dumps({"success": True, "session_id": session_id})

	@mcp.tool()
	async def get_agent_prompts() -> str:
		"""Show each agent's role description and instruction text."""
		service = await get_mission_service(config)
		prompts = service.state.agent_prompts
		return json.dumps({
			role.value: {"description": AGENT_DESCRIPTIONS[role], "prompt": prompts[role]}
			for role in AgentRole
		}, indent=2)

	@mcp.tool()
	async def set_agent_prompt(role: str, prompt: str) -> str:
		"""
		Replace one agent's instruction text.

		Args:
			role: Supervisor, Researcher, Analyst, Writer, Editor or Coder
			prompt: New instruction text
		"""
		service = await get_mission_service(config)
		try:
			agent = _role(role)
		except ValueError as e:
			return json.dumps({"success": False, "error": str(e)})
		service.engine.update_prompt(agent, prompt)
		return json.dumps({"success": True, "role": agent.value})

	@mcp.tool()
	async def reset_agent_prompts() -> str:
		"""Restore every agent's default instruction text."""
		service = await get_mission_service(config)
		service.engine.reset_prompts()
		return json.dumps({"success": True})

	@mcp.tool()
	async def set_rate_limit(
		max_tokens: int,
		period_value: int = 1,
		period_unit: str = "minutes",
		auto_resume_minutes: float = 0,
	) -> str:
		"""
		Configure the token budget. Only allowed while the mission is idle or paused.

		Args:
			max_tokens: Token budget per window (calls pause at 80%)
			period_value: Window length
			period_unit: seconds, minutes or hours
			auto_resume_minutes: Timer for manual pauses (0 = off)
		"""
		service = await get_mission_service(config)
		try:
			rate_limit = RateLimitConfig(
				max_tokens=max_tokens,
				period_value=period_value,
				period_unit=PeriodUnit(period_unit),
				auto_resume_minutes=auto_resume_minutes,
			)
			service.engine.update_rate_limit(rate_limit)
		except (ValueError, ValidationError, MissionStateError) as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "rate_limit": rate_limit.model_dump(mode="json")})

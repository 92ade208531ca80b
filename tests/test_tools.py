"""Tests for the MCP mission tools."""

import json

import pytest
import pytest_asyncio

from orchestrator_ai.config import Config
from orchestrator_ai.persistence import Lifecycle
from orchestrator_ai.service import MissionService
from orchestrator_ai.tools.mission import register_mission_tools

from .helpers import FakeGateway, capture_tools


@pytest_asyncio.fixture
async def service(tmp_path, monkeypatch):
	config = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
	svc = MissionService(config, gateway=FakeGateway(), lifecycle=Lifecycle())
	await svc.store.init()

	async def fake_get_mission_service(_config=None):
		return svc

	monkeypatch.setattr("orchestrator_ai.tools.mission.get_mission_service", fake_get_mission_service)
	yield svc
	await svc.store.close()


@pytest.fixture
def tools(service):
	return capture_tools(service.config, register_mission_tools)


class TestMissionControlTools:
	def test_all_tools_registered(self, tools):
		assert set(tools) == {
			"start_mission",
			"get_mission_status",
			"pause_mission",
			"resume_mission",
			"stop_auto_resume",
			"restart_mission",
			"save_mission",
			"list_sessions",
			"load_session",
			"delete_session",
			"get_agent_prompts",
			"set_agent_prompt",
			"reset_agent_prompts",
			"set_rate_limit",
		}

	@pytest.mark.asyncio
	async def test_start_and_status(self, tools):
		result = json.loads(await tools["start_mission"]("Compare vector databases"))

		assert result["success"] is True
		assert result["mission"]["status"] == "planning"
		assert result["mission"]["query"] == "Compare vector databases"

		status = json.loads(await tools["get_mission_status"]())
		assert status["progress"] == {"total": 0, "completed": 0, "percentage": 0}

	@pytest.mark.asyncio
	async def test_start_twice_fails(self, tools):
		await tools["start_mission"]("First")
		result = json.loads(await tools["start_mission"]("Second"))

		assert result["success"] is False
		assert "restart" in result["error"]

	@pytest.mark.asyncio
	async def test_pause_resume_and_timer(self, tools):
		await tools["start_mission"]("Objective")

		assert json.loads(await tools["pause_mission"]())["status"] == "paused"
		assert json.loads(await tools["stop_auto_resume"]())["success"] is False
		assert json.loads(await tools["resume_mission"]())["status"] == "planning"
		assert json.loads(await tools["restart_mission"]())["status"] == "planning"

	@pytest.mark.asyncio
	async def test_rate_limit_only_while_resting(self, tools, service):
		await tools["start_mission"]("Objective")
		locked = json.loads(await tools["set_rate_limit"](max_tokens=500))
		assert locked["success"] is False

		await tools["pause_mission"]()
		result = json.loads(await tools["set_rate_limit"](max_tokens=500, period_value=30, period_unit="seconds"))

		assert result["success"] is True
		assert service.engine.rate_limit.period_ms == 30_000

	@pytest.mark.asyncio
	async def test_rate_limit_rejects_bad_values(self, tools):
		bad_unit = json.loads(await tools["set_rate_limit"](max_tokens=500, period_unit="days"))
		bad_budget = json.loads(await tools["set_rate_limit"](max_tokens=0))

		assert bad_unit["success"] is False
		assert bad_budget["success"] is False


class TestSessionTools:
	@pytest.mark.asyncio
	async def test_save_list_load_delete(self, tools, service):
		await tools["start_mission"]("Objective")
		await tools["pause_mission"]()

		saved = json.loads(await tools["save_mission"]())
		session_id = saved["session_id"]
		listing = json.loads(await tools["list_sessions"]())
		assert listing["count"] == 1
		assert listing["sessions"][0]["id"] == session_id

		service.engine.restart()
		loaded = json.loads(await tools["load_session"](session_id))
		assert loaded["mission"]["status"] == "paused"

		assert json.loads(await tools["delete_session"](session_id))["success"] is True
		assert json.loads(await tools["delete_session"](session_id))["success"] is False

	@pytest.mark.asyncio
	async def test_load_missing_session(self, tools):
		result = json.loads(await tools["load_session"]("session-missing"))
		assert result["success"] is False


class TestPromptTools:
	@pytest.mark.asyncio
	async def test_set_and_reset_prompt(self, tools):
		result = json.loads(await tools["set_agent_prompt"]("writer", "Write in haiku."))
		assert result == {"success": True, "role": "Writer"}

		prompts = json.loads(await tools["get_agent_prompts"]())
		assert prompts["Writer"]["prompt"] == "Write in haiku."
		assert set(prompts) == {"Supervisor", "Researcher", "Analyst", "Writer", "Editor", "Coder"}

		await tools["reset_agent_prompts"]()
		prompts = json.loads(await tools["get_agent_prompts"]())
		assert prompts["Writer"]["prompt"] != "Write in haiku."

	@pytest.mark.asyncio
	async def test_unknown_role(self, tools):
		result = json.loads(await tools["set_agent_prompt"]("Designer", "Draw"))
		assert result["success"] is False
		assert "Designer" in result["error"]

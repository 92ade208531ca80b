"""Tests for prompt builders and plan parsing."""

import json

import pytest

from orchestrator_ai.errors import ParseFailureError
from orchestrator_ai.models import AgentRole, TaskStatus
from orchestrator_ai.prompts import (
	MAX_NEW_TASKS,
	build_replanning_prompt,
	build_synthesis_context,
	build_task_context,
	build_task_prompt,
	parse_task_list,
	task_list_schema,
)

from .helpers import make_task


class TestParseTaskList:
	def test_object_form(self):
		text = json.dumps({"tasks": [
			{"title": "Search", "description": "Find sources", "assignedAgent": "Researcher"},
			{"title": "Draft", "description": "Write it", "assignedAgent": "Writer"},
		]})
		tasks = parse_task_list(text, id_seed=123)
		assert [t.title for t in tasks] == ["Search", "Draft"]
		assert [t.id for t in tasks] == ["task-123-0", "task-123-1"]
		assert tasks[0].assigned_agent == AgentRole.RESEARCHER
		assert all(t.status == TaskStatus.PENDING for t in tasks)

	def test_bare_array_and_case_insensitive_roles(self):
		text = json.dumps([{"title": "Code", "description": "Build", "assignedAgent": "coder"}])
		tasks = parse_task_list(text, id_seed=1)
		assert tasks[0].assigned_agent == AgentRole.CODER

	def test_empty_list(self):
		assert parse_task_list('{"tasks": []}', id_seed=1) == ()

	@pytest.mark.parametrize("text", [
		"not json",
		'{"plan": []}',
		'[{"title": "x", "description": "y"}]',
		'[{"title": "x", "description": "y", "assignedAgent": "Astrologer"}]',
		'["just a string"]',
	])
	def test_malformed_output_raises(self, text):
		with pytest.raises(ParseFailureError):
			parse_task_list(text, id_seed=1)

	def test_schema_lists_every_role(self):
		schema = task_list_schema()
		roles = schema["properties"]["tasks"]["items"]["properties"]["assignedAgent"]["enum"]
		assert roles == [r.value for r in AgentRole]


class TestContexts:
	def test_task_context_uses_completed_tasks_only(self):
		tasks = [
			make_task("a", "First", status=TaskStatus.COMPLETED, result="Found it"),
			make_task("b", "Second"),
		]
		context = build_task_context(tasks)
		assert context == "[Completed Task: First]\nResult: Found it"

	def test_task_prompt_without_context(self):
		prompt = build_task_prompt("You write.", make_task(title="Draft intro"), "")
		assert "Your Task: Draft intro" in prompt
		assert "No previous context. You are starting the workflow." in prompt

	def test_synthesis_context_of_empty_plan_is_empty(self):
		assert build_synthesis_context([]) == ""

	def test_replanning_prompt_truncates_results(self):
		long_result = "x" * 1000
		completed = [make_task("a", "Research", status=TaskStatus.COMPLETED, result=long_result)]
		remaining = [make_task("b", "Write", agent=AgentRole.WRITER)]
		prompt = build_replanning_prompt("Plan well.", "Objective", completed, remaining)
		assert "x" * 300 + "..." in prompt
		assert "x" * 301 not in prompt
		assert "- Write (Writer)" in prompt
		assert f"MAXIMUM of {MAX_NEW_TASKS} new tasks" in prompt

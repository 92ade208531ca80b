"""Shared test fixtures and helpers for orchestrator-ai tests."""

import asyncio
import json
from types import SimpleNamespace
from typing import Callable, Optional
from unittest.mock import MagicMock

from orchestrator_ai.gateway import GenerateOptions, GenerationResult
from orchestrator_ai.models import (
	AgentRole,
	MissionState,
	MissionStatus,
	RateLimitConfig,
	SavedSession,
	Task,
	TaskStatus,
)


class FakeClock:
	"""Manually advanced millisecond clock."""

	def __init__(self, now: int = 1_700_000_000_000):
		self.now = now

	def __call__(self) -> int:
		return self.now

	def advance(self, ms: int) -> None:
		self.now += ms


class FakeGateway:
	"""
	Scripted gateway. Each call pops the next response; exceptions are raised.

	Set `gate` to an asyncio.Event to hold calls until it is set.
	"""

	def __init__(self, responses: Optional[list] = None):
		self.responses = list(responses or [])
		self.calls: list[tuple[AgentRole, str, Optional[GenerateOptions]]] = []
		self.gate: Optional[asyncio.Event] = None

	async def generate(self, role, prompt, options=None):
		self.calls.append((role, prompt, options))
		if self.gate is not None:
			await self.gate.wait()
		if not self.responses:
			raise AssertionError(f"Unexpected model call for {role.value}")
		item = self.responses.pop(0)
		if isinstance(item, BaseException):
			raise item
		return item

	@property
	def roles(self) -> list[AgentRole]:
		return [role for role, _, _ in self.calls]


def plan_result(*tasks: tuple[str, str], tokens: int = 100) -> GenerationResult:
	"""Supervisor plan output; each task is (title, agent)."""
	payload = {
		"tasks": [
			{"title": title, "description": f"Do {title.lower()}", "assignedAgent": agent}
			for title, agent in tasks
		]
	}
	return GenerationResult(text=json.dumps(payload), token_count=tokens)


def text_result(text: str, tokens: int = 50, sources: Optional[list[str]] = None) -> GenerationResult:
	return GenerationResult(text=text, token_count=tokens, sources=sources or [])


def make_task(
	task_id: str = "task-1",
	title: str = "Research market",
	agent: AgentRole = AgentRole.RESEARCHER,
	status: TaskStatus = TaskStatus.PENDING,
	result: Optional[str] = None,
	tokens_used: Optional[int] = None,
) -> Task:
	return Task(
		id=task_id,
		title=title,
		description=f"Details for {title.lower()}",
		assigned_agent=agent,
		status=status,
		result=result,
		tokens_used=tokens_used,
	)


def make_state(
	status: MissionStatus = MissionStatus.WORKING,
	completed: int = 1,
	pending: int = 2,
	**changes,
) -> MissionState:
	"""Mission state with `completed` finished tasks followed by `pending` ones."""
	tasks = [
		make_task(f"task-{i}", f"Done step {i}", AgentRole.ANALYST, TaskStatus.COMPLETED, f"Result {i}", 10)
		for i in range(completed)
	] + [
		make_task(f"task-{completed + i}", f"Next step {i}", AgentRole.WRITER)
		for i in range(pending)
	]
	fields = {
		"status": status,
		"tasks": tuple(tasks),
		"current_task_index": completed,
		"plan_ready": True,
	}
	fields.update(changes)
	return MissionState(**fields)


def make_session(
	session_id: str = "session-1",
	timestamp: int = 1_700_000_000_000,
	query: str = "Compare vector databases",
	state: Optional[MissionState] = None,
) -> SavedSession:
	return SavedSession(
		id=session_id,
		timestamp=timestamp,
		query=query,
		config=RateLimitConfig(max_tokens=5000),
		state=state or make_state(status=MissionStatus.PAUSED),
	)


# --- Fake OpenAI client ---

def make_completion(
	text: Optional[str] = "ok",
	total_tokens: Optional[int] = 42,
	finish_reason: str = "stop",
	refusal: Optional[str] = None,
	urls: Optional[list[str]] = None,
):
	"""Object shaped like an openai ChatCompletion."""
	annotations = [
		SimpleNamespace(type="url_citation", url_citation=SimpleNamespace(url=url, title=url))
		for url in (urls or [])
	]
	message = SimpleNamespace(content=text, refusal=refusal, annotations=annotations)
	usage = SimpleNamespace(total_tokens=total_tokens) if total_tokens is not None else None
	return SimpleNamespace(
		choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
		usage=usage,
	)


class FakeCompletions:
	def __init__(self, outcomes: list):
		self.outcomes = list(outcomes)
		self.requests: list[dict] = []

	async def create(self, **kwargs):
		self.requests.append(kwargs)
		outcome = self.outcomes.pop(0)
		if isinstance(outcome, BaseException):
			raise outcome
		return outcome


class FakeClient:
	"""Stands in for openai.AsyncOpenAI: client.chat.completions.create(...)."""

	def __init__(self, *outcomes):
		self.completions = FakeCompletions(list(outcomes))
		self.chat = SimpleNamespace(completions=self.completions)


def capture_tools(config: MagicMock, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		config: Config object to pass to the registration function
		register_fn: The registration function (e.g., register_mission_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), config)
	return captured

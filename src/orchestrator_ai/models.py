"""
Mission Models - Pydantic schemas for mission state and saved sessions.

Mission state is immutable: every change produces a new MissionState via
model_copy(update=...), so readers always see a consistent snapshot.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AgentRole(str, Enum):
	"""Specialized roles a task can be assigned to."""
	SUPERVISOR = "Supervisor"
	RESEARCHER = "Researcher"
	ANALYST = "Analyst"
	WRITER = "Writer"
	EDITOR = "Editor"
	CODER = "Coder"


class TaskStatus(str, Enum):
	"""Status of a task in the mission plan."""
	PENDING = "pending"
	IN_PROGRESS = "in-progress"
	COMPLETED = "completed"
	FAILED = "failed"


class LogKind(str, Enum):
	"""Category of a mission log entry."""
	PLAN = "plan"
	ACTION = "action"
	RESULT = "result"
	ERROR = "error"
	INFO = "info"


class PeriodUnit(str, Enum):
	"""Unit of the token budget window."""
	SECONDS = "seconds"
	MINUTES = "minutes"
	HOURS = "hours"


_UNIT_MS = {
	PeriodUnit.SECONDS: 1000,
	PeriodUnit.MINUTES: 60 * 1000,
	PeriodUnit.HOURS: 60 * 60 * 1000,
}


class MissionStatus(str, Enum):
	"""Lifecycle status of a mission."""
	IDLE = "idle"
	PLANNING = "planning"
	WORKING = "working"
	COOLDOWN = "cooldown"
	AUTO_PAUSED = "auto-paused"
	PAUSED = "paused"
	COMPLETED = "completed"
	ERROR = "error"


# Statuses in which the pacing loop issues steps
STEPPING_STATUSES = frozenset({MissionStatus.PLANNING, MissionStatus.WORKING})

# Statuses watched by the cooldown/auto-resume timer
TIMED_STATUSES = frozenset({MissionStatus.COOLDOWN, MissionStatus.AUTO_PAUSED})

# Statuses with a mission in progress that is worth persisting on teardown
ACTIVE_STATUSES = frozenset({
	MissionStatus.PLANNING,
	MissionStatus.WORKING,
	MissionStatus.COOLDOWN,
	MissionStatus.AUTO_PAUSED,
})


class Task(BaseModel):
	"""A single step of the mission plan."""
	model_config = ConfigDict(frozen=True)

	id: str = Field(description="Unique task identifier")
	title: str = Field(description="Short task title")
	description: str = Field(description="What the assigned agent should do")
	assigned_agent: AgentRole = Field(description="Role that executes the task")
	status: TaskStatus = Field(default=TaskStatus.PENDING)
	result: Optional[str] = Field(default=None, description="Agent output once completed")
	tokens_used: Optional[int] = Field(default=None, description="Tokens consumed executing the task")


class LogEntry(BaseModel):
	"""An append-only mission log record."""
	model_config = ConfigDict(frozen=True)

	id: str
	timestamp: int = Field(description="Milliseconds since the epoch")
	agent: AgentRole
	message: str
	kind: LogKind
	metadata: Optional[dict[str, Any]] = None


class RateLimitConfig(BaseModel):
	"""Token budget applied to a mission."""
	model_config = ConfigDict(frozen=True)

	max_tokens: int = Field(default=100_000, gt=0)
	period_value: int = Field(default=1, gt=0)
	period_unit: PeriodUnit = Field(default=PeriodUnit.MINUTES)
	auto_resume_minutes: float = Field(default=0, ge=0, description="0 disables the pause timer")

	@property
	def period_ms(self) -> int:
		return self.period_value * _UNIT_MS[self.period_unit]


def default_agent_prompts() -> dict[AgentRole, str]:
	from .prompts import DEFAULT_AGENT_PROMPTS
	return dict(DEFAULT_AGENT_PROMPTS)


class MissionState(BaseModel):
	"""Aggregate root of a mission."""
	model_config = ConfigDict(frozen=True)

	status: MissionStatus = MissionStatus.IDLE
	tasks: tuple[Task, ...] = ()
	logs: tuple[LogEntry, ...] = ()
	current_task_index: int = Field(default=0, ge=0)
	token_usage: int = Field(default=0, ge=0)
	window_start_time: int = 0
	next_allowed_time: int = 0
	final_output: Optional[str] = None
	plan_ready: bool = Field(default=False, description="Set once the supervisor produced a plan")
	agent_prompts: dict[AgentRole, str] = Field(default_factory=default_agent_prompts)

	@field_validator("agent_prompts", mode="before")
	@classmethod
	def _backfill_prompts(cls, value: Any) -> dict[AgentRole, str]:
		"""Every role gets a prompt; unknown roles in loaded data are dropped."""
		prompts = default_agent_prompts()
		if not value:
			return prompts
		known = {role.value: role for role in AgentRole}
		for key, text in dict(value).items():
			role = key if isinstance(key, AgentRole) else known.get(str(key))
			if role is not None and isinstance(text, str):
				prompts[role] = text
		return prompts

	@model_validator(mode="after")
	def _check_index(self) -> "MissionState":
		if self.current_task_index > len(self.tasks):
			raise ValueError(
				f"current_task_index {self.current_task_index} exceeds task count {len(self.tasks)}"
			)
		return self

	def resume_status(self) -> MissionStatus:
		"""Status a paused or cooling mission returns to."""
		if self.plan_ready or self.tasks:
			return MissionStatus.WORKING
		return MissionStatus.PLANNING

	def get_progress(self) -> dict:
		"""Get progress statistics."""
		completed = sum(1 for t in self.tasks if t.status == TaskStatus.COMPLETED)
		total = len(self.tasks)
		return {
			"total": total,
			"completed": completed,
			"percentage": round(completed / total * 100, 1) if total > 0 else 0,
		}


class SavedSession(BaseModel):
	"""Unit of persistence: a mission snapshot with its objective and budget."""
	id: str
	timestamp: int = Field(description="Milliseconds since the epoch")
	query: str
	config: RateLimitConfig = Field(default_factory=RateLimitConfig)
	state: MissionState

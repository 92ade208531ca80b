"""
Mission Engine - drives planning, task execution, re-planning and synthesis.

The engine owns the MissionState snapshot and replaces it wholesale on every
change. Each awaited model call is followed by a fresh read of the current
state; results from a call that was overtaken by start/restart/load are
discarded.

Usage:
	engine = MissionEngine(gateway)
	engine.start("Write a market report on solid-state batteries")
	while engine.state.status in STEPPING_STATUSES:
		await engine.step()
"""

import logging
import time
import uuid
from typing import Any, Callable, Optional, Protocol

from . import rate_limiter
from .errors import GatewayError, MissionStateError, QuotaExceededError
from .gateway.gateway import GenerateOptions, GenerationResult
from .models import (
	STEPPING_STATUSES,
	AgentRole,
	LogEntry,
	LogKind,
	MissionState,
	MissionStatus,
	RateLimitConfig,
	SavedSession,
	Task,
	TaskStatus,
	default_agent_prompts,
)
from .prompts import (
	EMPTY_FINAL_OUTPUT,
	EMPTY_TASK_OUTPUT,
	MAX_NEW_TASKS,
	build_planning_prompt,
	build_replanning_prompt,
	build_synthesis_context,
	build_synthesis_prompt,
	build_task_context,
	build_task_prompt,
	parse_task_list,
	task_list_schema,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[MissionState], None]

STARTABLE_STATUSES = frozenset({MissionStatus.IDLE, MissionStatus.COMPLETED, MissionStatus.ERROR})
PAUSABLE_STATUSES = frozenset({MissionStatus.PLANNING, MissionStatus.WORKING, MissionStatus.COOLDOWN})
RESUMABLE_STATUSES = frozenset({MissionStatus.PAUSED, MissionStatus.AUTO_PAUSED, MissionStatus.ERROR})
CONFIGURABLE_STATUSES = frozenset({
	MissionStatus.IDLE,
	MissionStatus.PAUSED,
	MissionStatus.AUTO_PAUSED,
	MissionStatus.COMPLETED,
	MissionStatus.ERROR,
})

RATE_LIMIT_MESSAGE = "CRITICAL: Rate limit exceeded. Pausing mission. Resume when quota resets."
GLOBAL_QUOTA_MESSAGE = "CRITICAL: Project-wide API quota exhausted. Pausing mission. Resume when quota resets."


class Generator(Protocol):
	"""What the engine needs from a model gateway."""

	async def generate(
		self,
		role: AgentRole,
		prompt: str,
		options: Optional[GenerateOptions] = None,
	) -> GenerationResult:
		...


def now_ms() -> int:
	return int(time.time() * 1000)


def _with_task(tasks: tuple[Task, ...], index: int, **changes: Any) -> tuple[Task, ...]:
	return tasks[:index] + (tasks[index].model_copy(update=changes),) + tasks[index + 1:]


def _revert_in_progress(tasks: tuple[Task, ...]) -> tuple[Task, ...]:
	if not any(t.status == TaskStatus.IN_PROGRESS for t in tasks):
		return tasks
	return tuple(
		t.model_copy(update={"status": TaskStatus.PENDING}) if t.status == TaskStatus.IN_PROGRESS else t
		for t in tasks
	)


class MissionEngine:
	"""State machine for one mission at a time."""

	def __init__(
		self,
		gateway: Generator,
		rate_limit: Optional[RateLimitConfig] = None,
		clock: Optional[Callable[[], int]] = None,
	):
		self.gateway = gateway
		self.clock = clock or now_ms
		self._rate_limit = rate_limit or RateLimitConfig()
		self._query = ""
		self._state = MissionState(window_start_time=self.clock())
		self._listeners: list[StateListener] = []
		# Bumped by start/restart/load so in-flight results can be discarded
		self._generation = 0
		self._step_in_flight = False

	# --- State access ---

	@property
	def state(self) -> MissionState:
		return self._state

	@property
	def query(self) -> str:
		return self._query

	@property
	def rate_limit(self) -> RateLimitConfig:
		return self._rate_limit

	def subscribe(self, listener: StateListener) -> Callable[[], None]:
		"""Register a callback invoked with every committed state. Returns an unsubscribe function."""
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def _commit(self, state: MissionState) -> None:
		if state is self._state:
			return
		previous = self._state.status
		self._state = state
		if state.status != previous:
			logger.info(f"Mission status: {previous.value} -> {state.status.value}")
		for listener in list(self._listeners):
			listener(state)

	def _entry(
		self,
		agent: AgentRole,
		message: str,
		kind: LogKind,
		metadata: Optional[dict] = None,
	) -> LogEntry:
		now = self.clock()
		if kind == LogKind.ERROR:
			logger.warning(f"[{agent.value}] {message}")
		elif kind == LogKind.INFO and message.startswith("[SYSTEM]"):
			logger.debug(f"[{agent.value}] {message}")
		else:
			logger.info(f"[{agent.value}] {message}")
		return LogEntry(
			id=f"log-{now}-{uuid.uuid4().hex[:8]}",
			timestamp=now,
			agent=agent,
			message=message,
			kind=kind,
			metadata=metadata,
		)

	def _apply(self, changes: dict, *entries: LogEntry) -> None:
		"""Commit field changes and log entries as one new snapshot."""
		update = dict(changes)
		if entries:
			update["logs"] = self._state.logs + entries
		self._commit(self._state.model_copy(update=update))

	def _log(self, agent: AgentRole, message: str, kind: LogKind, metadata: Optional[dict] = None) -> None:
		self._apply({}, self._entry(agent, message, kind, metadata))

	def _fresh_state(self, status: MissionStatus) -> MissionState:
		return MissionState(
			status=status,
			window_start_time=self.clock(),
			agent_prompts=self._state.agent_prompts,
		)

	def _charge(self, state: MissionState, tokens: int) -> dict:
		"""Usage fields after spending tokens. A window that elapsed during the call restarts first."""
		now = self.clock()
		if now - state.window_start_time > self._rate_limit.period_ms:
			return {"token_usage": tokens, "window_start_time": now}
		return {"token_usage": state.token_usage + tokens}

	# --- Commands ---

	def start(self, query: str) -> MissionState:
		"""Start a new mission, keeping only the agent prompt configuration."""
		if not query or not query.strip():
			raise MissionStateError("Objective must not be empty")
		if self._state.status not in STARTABLE_STATUSES:
			raise MissionStateError(
				f"Cannot start while mission is {self._state.status.value}; restart it instead"
			)
		self._query = query.strip()
		self._generation += 1
		self._commit(self._fresh_state(MissionStatus.PLANNING))
		logger.info(f"Mission started: {self._query}")
		return self._state

	def restart(self) -> MissionState:
		"""Start the current objective again from scratch."""
		if not self._query:
			raise MissionStateError("No mission to restart")
		self._generation += 1
		self._commit(self._fresh_state(MissionStatus.PLANNING))
		logger.info(f"Mission restarted: {self._query}")
		return self._state

	def pause(self) -> MissionState:
		"""Pause the mission; with auto-resume configured the pause is timed."""
		if self._state.status not in PAUSABLE_STATUSES:
			raise MissionStateError(f"Cannot pause while mission is {self._state.status.value}")
		minutes = self._rate_limit.auto_resume_minutes
		if minutes > 0:
			self._apply({
				"status": MissionStatus.AUTO_PAUSED,
				"next_allowed_time": self.clock() + int(minutes * 60 * 1000),
			})
		else:
			self._apply({"status": MissionStatus.PAUSED})
		return self._state

	def stop_timer(self) -> MissionState:
		"""Turn a timed pause into a plain pause."""
		if self._state.status != MissionStatus.AUTO_PAUSED:
			raise MissionStateError("No auto-resume timer is running")
		self._apply({"status": MissionStatus.PAUSED})
		return self._state

	def resume(self) -> MissionState:
		"""Resume a paused mission: back to work if a plan exists, else to planning."""
		if self._state.status not in RESUMABLE_STATUSES:
			raise MissionStateError(f"Cannot resume while mission is {self._state.status.value}")
		self._apply({"status": self._state.resume_status()})
		return self._state

	def load_session(self, session: SavedSession) -> MissionState:
		"""Replace the current mission with a saved one. Always lands paused."""
		self._generation += 1
		self._query = session.query
		self._rate_limit = session.config
		state = session.state
		self._commit(state.model_copy(update={
			"status": MissionStatus.PAUSED,
			"tasks": _revert_in_progress(state.tasks),
		}))
		logger.info(f"Loaded session {session.id}: {session.query}")
		return self._state

	def update_rate_limit(self, config: RateLimitConfig) -> RateLimitConfig:
		if self._state.status not in CONFIGURABLE_STATUSES:
			raise MissionStateError(
				f"Rate limit can only be changed while idle or paused (mission is {self._state.status.value})"
			)
		self._rate_limit = config
		logger.info(f"Rate limit updated: {config.max_tokens} tokens / {config.period_value} {config.period_unit.value}")
		return config

	def update_prompt(self, role: AgentRole, text: str) -> MissionState:
		prompts = dict(self._state.agent_prompts)
		prompts[role] = text
		self._apply({"agent_prompts": prompts})
		return self._state

	def reset_prompts(self) -> MissionState:
		self._apply({"agent_prompts": default_agent_prompts()})
		return self._state

	def to_session(self, session_id: str, timestamp: Optional[int] = None) -> SavedSession:
		return SavedSession(
			id=session_id,
			timestamp=timestamp if timestamp is not None else self.clock(),
			query=self._query,
			config=self._rate_limit,
			state=self._state,
		)

	# --- Rate limiting and timers ---

	def check_rate_limit(self) -> bool:
		"""Check the token budget against the latest state and commit the outcome."""
		permitted, state = rate_limiter.check(self._state, self._rate_limit, self.clock())
		if not permitted and self._state.status != MissionStatus.COOLDOWN:
			wait_s = rate_limiter.remaining_ms(state, self.clock()) / 1000
			entry = self._entry(
				AgentRole.SUPERVISOR,
				f"Token budget at {rate_limiter.usage_ratio(state, self._rate_limit):.0%}. "
				f"Cooling down for {wait_s:.1f}s.",
				LogKind.INFO,
			)
			self._commit(state.model_copy(update={"logs": state.logs + (entry,)}))
		else:
			self._commit(state)
		return permitted

	def tick(self) -> int:
		"""
		Advance the cooldown / auto-resume timer.

		Returns:
			Milliseconds remaining (0 once the timer has fired or no timer runs)
		"""
		state = self._state
		if state.status not in (MissionStatus.COOLDOWN, MissionStatus.AUTO_PAUSED):
			return 0
		now = self.clock()
		remaining = rate_limiter.remaining_ms(state, now)
		if remaining > 0:
			return remaining

		if state.status == MissionStatus.COOLDOWN:
			# Timer expiry is the end of the token window
			self._apply(
				{"status": state.resume_status(), "token_usage": 0, "window_start_time": now},
				self._entry(AgentRole.SUPERVISOR, "Cooldown finished. Resuming mission.", LogKind.INFO),
			)
		else:
			self._apply(
				{"status": state.resume_status()},
				self._entry(AgentRole.SUPERVISOR, "Auto-resume timer elapsed. Resuming mission.", LogKind.INFO),
			)
		return 0

	# --- Step logic ---

	async def step(self) -> None:
		"""Run one orchestration step. At most one step is in flight at a time."""
		if self._step_in_flight or self._state.status not in STEPPING_STATUSES:
			return
		self._step_in_flight = True
		try:
			await self._run_step()
		finally:
			self._step_in_flight = False

	async def _run_step(self) -> None:
		generation = self._generation
		if not self.check_rate_limit():
			return

		try:
			if self._state.status == MissionStatus.PLANNING:
				await self._plan(generation)
			elif self._state.current_task_index >= len(self._state.tasks):
				await self._synthesize(generation)
			else:
				await self._execute_task(generation)
		except GatewayError as e:
			if generation != self._generation:
				return
			self._fail(e)
		except Exception as e:
			logger.exception(f"Unexpected error during mission step: {e}")
			if generation != self._generation:
				return
			self._apply(
				{"status": MissionStatus.ERROR, "tasks": _revert_in_progress(self._state.tasks)},
				self._entry(AgentRole.SUPERVISOR, f"Error: {e}", LogKind.ERROR),
			)

	def _fail(self, error: GatewayError) -> None:
		if isinstance(error, QuotaExceededError):
			message = GLOBAL_QUOTA_MESSAGE if error.global_quota else RATE_LIMIT_MESSAGE
		else:
			message = f"Error: {error.user_message}"
		self._apply(
			{"status": MissionStatus.PAUSED, "tasks": _revert_in_progress(self._state.tasks)},
			self._entry(
				AgentRole.SUPERVISOR,
				message,
				LogKind.ERROR,
				{"kind": error.kind.value, "http_status": error.http_status},
			),
		)

	def _stale(self, generation: int, what: str) -> bool:
		if generation != self._generation:
			logger.info(f"Discarding {what} result from a superseded mission")
			return True
		return False

	async def _plan(self, generation: int) -> None:
		state = self._state
		self._log(AgentRole.SUPERVISOR, "Thinking... Analyzing request to build granular plan.", LogKind.PLAN)
		prompt = build_planning_prompt(state.agent_prompts[AgentRole.SUPERVISOR], self._query)

		result = await self.gateway.generate(
			AgentRole.SUPERVISOR,
			prompt,
			GenerateOptions(response_schema=task_list_schema()),
		)
		if self._stale(generation, "planning"):
			return
		tasks = parse_task_list(result.text, self.clock())

		current = self._state
		# A pause issued during the call wins
		status = MissionStatus.WORKING if current.status == MissionStatus.PLANNING else current.status
		self._apply(
			{
				"status": status,
				"tasks": tasks,
				"current_task_index": 0,
				"plan_ready": True,
				**self._charge(current, result.token_count),
			},
			self._entry(AgentRole.SUPERVISOR, f"[SYSTEM] Supervisor Planning Prompt:\n{prompt}", LogKind.INFO),
			self._entry(
				AgentRole.SUPERVISOR,
				f"Plan created with {len(tasks)} tasks. (Used {result.token_count} tokens)",
				LogKind.PLAN,
			),
		)

	async def _execute_task(self, generation: int) -> None:
		state = self._state
		index = state.current_task_index
		task = state.tasks[index]
		role = task.assigned_agent

		self._apply(
			{"tasks": _with_task(state.tasks, index, status=TaskStatus.IN_PROGRESS)},
			self._entry(
				AgentRole.SUPERVISOR,
				f"Starting Task {index + 1}/{len(state.tasks)}: {task.title} ({role.value})",
				LogKind.ACTION,
			),
		)

		context = build_task_context(state.tasks[:index])
		prompt = build_task_prompt(state.agent_prompts[role], task, context)
		result = await self.gateway.generate(
			role,
			prompt,
			GenerateOptions(web_search=role == AgentRole.RESEARCHER),
		)
		if self._stale(generation, "task"):
			return

		text = result.text if result.text.strip() else EMPTY_TASK_OUTPUT
		current = self._state
		tasks = _with_task(
			current.tasks,
			index,
			status=TaskStatus.COMPLETED,
			result=text,
			tokens_used=result.token_count,
		)
		self._apply(
			{
				"tasks": tasks,
				"current_task_index": index + 1,
				**self._charge(current, result.token_count),
			},
			self._entry(role, f"[SYSTEM] Agent Prompt:\n{prompt}", LogKind.INFO),
			self._entry(role, f"[SYSTEM] Agent Output:\n{text}", LogKind.INFO),
			self._entry(
				role,
				f"Task Complete. (Used {result.token_count} tokens)",
				LogKind.RESULT,
				{"sources": list(result.sources)},
			),
		)

		if (
			index + 1 < len(tasks)
			and self._state.status == MissionStatus.WORKING
			and self.check_rate_limit()
		):
			await self._replan(generation)

	async def _replan(self, generation: int) -> None:
		"""Revise the remaining tasks. Any failure keeps the current plan and charges nothing."""
		state = self._state
		done = state.current_task_index
		completed, remaining = state.tasks[:done], state.tasks[done:]

		self._log(AgentRole.SUPERVISOR, "Evaluating progress and checking if plan needs updates...", LogKind.PLAN)
		prompt = build_replanning_prompt(
			state.agent_prompts[AgentRole.SUPERVISOR],
			self._query,
			completed,
			remaining,
		)
		try:
			result = await self.gateway.generate(
				AgentRole.SUPERVISOR,
				prompt,
				GenerateOptions(response_schema=task_list_schema()),
			)
			new_remaining = parse_task_list(result.text, self.clock())
		except GatewayError as e:
			logger.warning(f"Re-planning failed, keeping current plan: {e!r}")
			if generation == self._generation:
				self._log(
					AgentRole.SUPERVISOR,
					f"Re-planning failed ({e.kind.value}). Keeping current plan. (Used 0 tokens)",
					LogKind.INFO,
				)
			return
		if self._stale(generation, "re-planning"):
			return

		if len(new_remaining) > len(remaining) + MAX_NEW_TASKS:
			logger.warning(
				f"Re-plan grew remaining tasks from {len(remaining)} to {len(new_remaining)} "
				f"(more than {MAX_NEW_TASKS} new)"
			)

		current = self._state
		self._apply(
			{
				"tasks": current.tasks[:done] + new_remaining,
				**self._charge(current, result.token_count),
			},
			self._entry(AgentRole.SUPERVISOR, f"[SYSTEM] Re-planning Prompt:\n{prompt}", LogKind.INFO),
			self._entry(
				AgentRole.SUPERVISOR,
				f"Plan updated. Remaining tasks: {len(new_remaining)} (Used {result.token_count} tokens)",
				LogKind.PLAN,
			),
		)

	async def _synthesize(self, generation: int) -> None:
		state = self._state
		self._log(AgentRole.SUPERVISOR, "All tasks completed. Compiling final report...", LogKind.INFO)
		context = build_synthesis_context(state.tasks)
		prompt = build_synthesis_prompt(state.agent_prompts[AgentRole.SUPERVISOR], context)

		result = await self.gateway.generate(AgentRole.SUPERVISOR, prompt)
		if self._stale(generation, "synthesis"):
			return

		text = result.text if result.text.strip() else EMPTY_FINAL_OUTPUT
		current = self._state
		self._apply(
			{
				"status": MissionStatus.COMPLETED,
				"final_output": text,
				"current_task_index": len(current.tasks),
				**self._charge(current, result.token_count),
			},
			self._entry(AgentRole.SUPERVISOR, f"[SYSTEM] Final Synthesis Prompt:\n{prompt}", LogKind.INFO),
			self._entry(
				AgentRole.SUPERVISOR,
				f"Final output delivered. (Used {result.token_count} tokens)",
				LogKind.RESULT,
			),
		)

"""
Mission Runner - asyncio loops that keep a mission moving.

Two loops drive the engine:
- a pacing timer that launches one step roughly every step_interval seconds
  while the mission is planning or working, rescheduled whenever the status,
  task index or token usage changes;
- a cooldown ticker that polls the engine every tick_interval seconds while a
  cooldown or auto-resume timer is running.

Pausing never cancels an in-flight step; it only stops the next one from
being scheduled.
"""

import asyncio
import logging
from typing import Optional

from .mission import MissionEngine
from .models import STEPPING_STATUSES, TIMED_STATUSES, MissionState, MissionStatus

logger = logging.getLogger(__name__)

RESTING_STATUSES = frozenset({
	MissionStatus.IDLE,
	MissionStatus.PAUSED,
	MissionStatus.COMPLETED,
	MissionStatus.ERROR,
})


class MissionRunner:
	"""Schedules engine steps and timer ticks on the running event loop."""

	def __init__(
		self,
		engine: MissionEngine,
		step_interval: float = 1.0,
		tick_interval: float = 0.1,
	):
		self.engine = engine
		self.step_interval = step_interval
		self.tick_interval = tick_interval
		self._pacer: Optional[asyncio.Task] = None
		self._ticker: Optional[asyncio.Task] = None
		self._step_task: Optional[asyncio.Task] = None
		self._schedule_key: Optional[tuple] = None
		self._changed = asyncio.Event()
		self._unsubscribe = None

	@property
	def running(self) -> bool:
		return self._unsubscribe is not None

	@property
	def step_in_flight(self) -> bool:
		return self._step_task is not None and not self._step_task.done()

	def start(self) -> None:
		"""Attach to the engine and react to its current state."""
		if self.running:
			return
		self._unsubscribe = self.engine.subscribe(self._on_change)
		self._on_change(self.engine.state)
		logger.debug("Mission runner started")

	async def stop(self) -> None:
		"""Detach from the engine and cancel every loop, including an in-flight step."""
		if self._unsubscribe:
			self._unsubscribe()
			self._unsubscribe = None
		tasks = [t for t in (self._pacer, self._ticker, self._step_task) if t and not t.done()]
		for task in tasks:
			task.cancel()
		for task in tasks:
			try:
				await task
			except asyncio.CancelledError:
				pass
		self._pacer = self._ticker = self._step_task = None
		self._schedule_key = None
		logger.debug("Mission runner stopped")

	def _on_change(self, state: MissionState) -> None:
		self._changed.set()

		if state.status in STEPPING_STATUSES:
			key = (state.status, state.current_task_index, state.token_usage)
			if key != self._schedule_key:
				self._schedule_step(key)
		else:
			self._cancel_pacer()

		if state.status in TIMED_STATUSES and (self._ticker is None or self._ticker.done()):
			self._ticker = asyncio.get_running_loop().create_task(self._tick_loop())

	def _cancel_pacer(self) -> None:
		if self._pacer and not self._pacer.done():
			self._pacer.cancel()
		self._pacer = None
		self._schedule_key = None

	def _schedule_step(self, key: tuple) -> None:
		self._cancel_pacer()
		self._schedule_key = key
		self._pacer = asyncio.get_running_loop().create_task(self._pace())

	async def _pace(self) -> None:
		await asyncio.sleep(self.step_interval)
		if self.step_in_flight or self.engine.state.status not in STEPPING_STATUSES:
			return
		self._step_task = asyncio.get_running_loop().create_task(self._run_step())

	async def _run_step(self) -> None:
		try:
			await self.engine.step()
		finally:
			self._changed.set()
		# A step that changed nothing observable still needs a follow-up
		state = self.engine.state
		if self.running and state.status in STEPPING_STATUSES and (self._pacer is None or self._pacer.done()):
			self._schedule_step((state.status, state.current_task_index, state.token_usage))

	async def _tick_loop(self) -> None:
		while self.engine.state.status in TIMED_STATUSES:
			self.engine.tick()
			await asyncio.sleep(self.tick_interval)

	async def run_until_settled(self) -> MissionState:
		"""Wait until the mission rests (paused, completed, error or idle) with no step in flight."""
		while True:
			state = self.engine.state
			if state.status in RESTING_STATUSES and not self.step_in_flight:
				return state
			self._changed.clear()
			await self._changed.wait()

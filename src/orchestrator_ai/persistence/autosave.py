"""Debounced autosave of the running mission."""

import asyncio
import logging
from typing import Optional

from ..mission import MissionEngine
from ..models import ACTIVE_STATUSES, MissionState, MissionStatus
from .store import AUTOSAVE_KEY, SessionStore

logger = logging.getLogger(__name__)


class AutoSaver:
	"""
	Keeps the autosave slot in step with the engine.

	Each state change cancels the pending write and schedules a new one after
	`delay` seconds, so bursts of changes produce a single write. Idle missions
	are not saved; completing a mission clears the slot.
	"""

	def __init__(self, engine: MissionEngine, store: SessionStore, delay: float = 1.0):
		self.engine = engine
		self.store = store
		self.delay = delay
		self._pending: Optional[asyncio.Task] = None
		self._clearing: Optional[asyncio.Task] = None
		self._last_status: Optional[MissionStatus] = None
		self._unsubscribe = None

	def start(self) -> None:
		if self._unsubscribe is None:
			self._last_status = self.engine.state.status
			self._unsubscribe = self.engine.subscribe(self._on_change)

	async def stop(self) -> None:
		"""Detach and drop any pending write. A running clear is awaited."""
		if self._unsubscribe:
			self._unsubscribe()
			self._unsubscribe = None
		self._cancel_pending()
		if self._clearing:
			await self._clearing
			self._clearing = None

	@property
	def pending(self) -> bool:
		return self._pending is not None and not self._pending.done()

	def _cancel_pending(self) -> None:
		if self._pending and not self._pending.done():
			self._pending.cancel()
		self._pending = None

	def _on_change(self, state: MissionState) -> None:
		previous, self._last_status = self._last_status, state.status
		self._cancel_pending()
		loop = asyncio.get_running_loop()

		if state.status == MissionStatus.COMPLETED:
			if previous != MissionStatus.COMPLETED:
				self._clearing = loop.create_task(self._clear())
			return
		if state.status == MissionStatus.IDLE:
			return
		self._pending = loop.create_task(self._write_later())

	async def _write_later(self) -> None:
		await asyncio.sleep(self.delay)
		await self.flush()

	async def flush(self) -> None:
		"""Write the latest state to the autosave slot now."""
		state = self.engine.state
		if state.status in (MissionStatus.IDLE, MissionStatus.COMPLETED):
			return
		await self.store.put(AUTOSAVE_KEY, self.engine.to_session(AUTOSAVE_KEY))

	async def _clear(self) -> None:
		await self.store.delete(AUTOSAVE_KEY)
		logger.info("Mission completed; autosave cleared")

	def flush_sync(self) -> None:
		"""Teardown hook: persist an active mission immediately."""
		self._cancel_pending()
		state = self.engine.state
		if state.status not in ACTIVE_STATUSES:
			return
		self.store.put_sync(AUTOSAVE_KEY, self.engine.to_session(AUTOSAVE_KEY))

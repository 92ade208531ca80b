"""
Mission Service - wires engine, runner, persistence and teardown for one process.

Usage:
	service = MissionService(config)
	await service.open()
	service.start("Compare three vector databases")
	await service.runner.run_until_settled()
	await service.close()
"""

import logging
from typing import Optional

from .config import Config
from .gateway import CredentialPool, ModelGateway
from .mission import Generator, MissionEngine
from .models import MissionState, SavedSession
from .persistence import AutoSaver, Lifecycle, SessionStore, get_lifecycle
from .runner import MissionRunner

logger = logging.getLogger(__name__)


def build_gateway(config: Config) -> ModelGateway:
	"""Create the OpenAI-backed gateway from environment credentials."""
	return ModelGateway(
		CredentialPool.from_env(),
		default_model=config.default_model,
		search_model=config.search_model,
		base_url=config.base_url,
	)


class MissionService:
	"""Owns the single mission of this process and everything that keeps it alive."""

	def __init__(
		self,
		config: Config,
		gateway: Optional[Generator] = None,
		store: Optional[SessionStore] = None,
		lifecycle: Optional[Lifecycle] = None,
	):
		self.config = config
		self.gateway = gateway if gateway is not None else build_gateway(config)
		self.store = store or SessionStore(str(config.sessions_db_path), history_limit=config.history_limit)
		self.lifecycle = lifecycle or get_lifecycle()
		self.engine = MissionEngine(self.gateway, rate_limit=config.default_rate_limit())
		self.runner = MissionRunner(
			self.engine,
			step_interval=config.step_interval,
			tick_interval=config.tick_interval,
		)
		self.autosaver = AutoSaver(self.engine, self.store, delay=config.autosave_delay)
		self._opened = False

	@property
	def state(self) -> MissionState:
		return self.engine.state

	async def open(self) -> None:
		"""Initialize storage, start background loops and register the teardown hook."""
		if self._opened:
			return
		await self.store.init()
		self.autosaver.start()
		self.runner.start()
		self.lifecycle.on_teardown(self.autosaver.flush_sync)
		self.lifecycle.install()
		self._opened = True
		logger.info("Mission service ready")

	async def close(self) -> None:
		"""Stop loops, write a final autosave for an unfinished mission and close storage."""
		if not self._opened:
			return
		await self.runner.stop()
		await self.autosaver.stop()
		await self.autosaver.flush()
		await self.store.close()
		self._opened = False
		logger.info("Mission service closed")

	# --- Mission commands ---

	def start(self, query: str) -> MissionState:
		return self.engine.start(query)

	def pause(self) -> MissionState:
		return self.engine.pause()

	def resume(self) -> MissionState:
		return self.engine.resume()

	def stop_timer(self) -> MissionState:
		return self.engine.stop_timer()

	def restart(self) -> MissionState:
		return self.engine.restart()

	# --- Sessions ---

	async def save(self) -> str:
		"""Save the current mission into history."""
		return await self.store.save_session(self.engine.to_session(""))

	async def load(self, session_id: str) -> Optional[SavedSession]:
		session = await self.store.get(session_id)
		if session is None:
			return None
		self.engine.load_session(session)
		return session

	async def interrupted_session(self) -> Optional[SavedSession]:
		return await self.store.get_interrupted()


# Global instance
_service: Optional[MissionService] = None


async def get_mission_service(config: Optional[Config] = None) -> MissionService:
	"""Get or create the process-wide mission service."""
	global _service
	if _service is None:
		if config is None:
			from .config import get_config
			config = get_config()
		_service = MissionService(config)
		await _service.open()
	return _service

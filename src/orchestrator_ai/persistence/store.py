"""
Session Store - SQLite-backed storage for saved missions.

Features:
- One reserved "autosave" slot, always overwritten
- Manually saved sessions with generated ids, bounded history (most recent first)
- Synchronous write path for process teardown
"""

import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite
from pydantic import ValidationError

from ..models import MissionStatus, SavedSession

logger = logging.getLogger(__name__)

AUTOSAVE_KEY = "autosave"
DEFAULT_HISTORY_LIMIT = 10

_SCHEMA = """
	CREATE TABLE IF NOT EXISTS sessions (
		id TEXT PRIMARY KEY,
		timestamp INTEGER NOT NULL,
		query TEXT NOT NULL,
		status TEXT NOT NULL,
		data TEXT NOT NULL,
		updated_at TEXT NOT NULL
	)
"""

_UPSERT = """
	INSERT INTO sessions (id, timestamp, query, status, data, updated_at)
	VALUES (?, ?, ?, ?, ?, ?)
	ON CONFLICT(id) DO UPDATE SET
		timestamp = excluded.timestamp,
		query = excluded.query,
		status = excluded.status,
		data = excluded.data,
		updated_at = excluded.updated_at
"""


def _row_values(key: str, session: SavedSession) -> tuple:
	return (
		key,
		session.timestamp,
		session.query,
		session.state.status.value,
		session.model_dump_json(),
		datetime.now().isoformat(),
	)


def _parse(row_id: str, data: str) -> Optional[SavedSession]:
	try:
		return SavedSession.model_validate_json(data)
	except ValidationError as e:
		logger.warning(f"Skipping unreadable session {row_id}: {e.error_count()} validation error(s)")
		return None


class SessionStore:
	"""
	SQLite-backed session storage.

	Usage:
		store = SessionStore("data/sessions.db")
		await store.init()

		session_id = await store.save_session(engine.to_session(""))
		history = await store.list()
	"""

	def __init__(self, db_path: str, history_limit: int = DEFAULT_HISTORY_LIMIT):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self.history_limit = history_limit
		self._db: Optional[aiosqlite.Connection] = None

	async def init(self):
		"""Initialize the database schema."""
		self._db = await aiosqlite.connect(str(self.db_path))
		self._db.row_factory = aiosqlite.Row
		await self._db.execute(_SCHEMA)
		await self._db.execute(
			"CREATE INDEX IF NOT EXISTS idx_sessions_timestamp ON sessions(timestamp)"
		)
		await self._db.commit()
		logger.info(f"Session store initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

	async def _conn(self) -> aiosqlite.Connection:
		if not self._db:
			await self.init()
		return self._db

	async def put(self, key: str, session: SavedSession) -> None:
		"""Insert or overwrite the session stored under key."""
		db = await self._conn()
		await db.execute(_UPSERT, _row_values(key, session))
		await db.commit()
		logger.debug(f"Stored session {key} ({session.state.status.value})")

	def put_sync(self, key: str, session: SavedSession) -> None:
		"""Blocking write for use where no event loop is available (process teardown)."""
		conn = sqlite3.connect(str(self.db_path))
		try:
			conn.execute(_SCHEMA)
			conn.execute(_UPSERT, _row_values(key, session))
			conn.commit()
		finally:
			conn.close()
		logger.info(f"Stored session {key} synchronously")

	async def get(self, key: str) -> Optional[SavedSession]:
		db = await self._conn()
		async with db.execute("SELECT id, data FROM sessions WHERE id = ?", (key,)) as cursor:
			row = await cursor.fetchone()
		if not row:
			return None
		return _parse(row["id"], row["data"])

	async def list(self) -> list[SavedSession]:
		"""Manually saved sessions, most recent first, bounded by history_limit."""
		db = await self._conn()
		async with db.execute(
			"SELECT id, data FROM sessions WHERE id != ? ORDER BY timestamp DESC, rowid DESC LIMIT ?",
			(AUTOSAVE_KEY, self.history_limit),
		) as cursor:
			rows = await cursor.fetchall()
		sessions = []
		for row in rows:
			session = _parse(row["id"], row["data"])
			if session is not None:
				sessions.append(session)
		return sessions

	async def delete(self, key: str) -> bool:
		db = await self._conn()
		cursor = await db.execute("DELETE FROM sessions WHERE id = ?", (key,))
		await db.commit()
		deleted = cursor.rowcount > 0
		if deleted:
			logger.info(f"Deleted session {key}")
		return deleted

	async def save_session(self, session: SavedSession) -> str:
		"""
		Save a session into the history under a new id.

		Returns:
			The generated session id
		"""
		session_id = f"session-{session.timestamp}-{uuid.uuid4().hex[:6]}"
		await self.put(session_id, session.model_copy(update={"id": session_id}))
		await self._prune()
		logger.info(f"Saved session {session_id}: {session.query}")
		return session_id

	async def _prune(self) -> None:
		db = await self._conn()
		cursor = await db.execute(
			"""
			DELETE FROM sessions
			WHERE id != ? AND id NOT IN (
				SELECT id FROM sessions WHERE id != ?
				ORDER BY timestamp DESC, rowid DESC LIMIT ?
			)
			""",
			(AUTOSAVE_KEY, AUTOSAVE_KEY, self.history_limit),
		)
		await db.commit()
		if cursor.rowcount > 0:
			logger.info(f"Pruned {cursor.rowcount} old session(s)")

	async def get_autosave(self) -> Optional[SavedSession]:
		return await self.get(AUTOSAVE_KEY)

	async def get_interrupted(self) -> Optional[SavedSession]:
		"""The autosave, if it holds a mission that was neither idle nor finished."""
		session = await self.get_autosave()
		if session is None:
			return None
		if session.state.status in (MissionStatus.IDLE, MissionStatus.COMPLETED):
			return None
		return session

"""API key pool with per-role preferences."""

import logging
import os
from typing import Mapping, Optional

from dotenv import load_dotenv

from ..errors import ConfigurationError
from ..models import AgentRole

logger = logging.getLogger(__name__)

ENV_KEY = "ORCHESTRATOR_AI_API_KEY"
ENV_KEYS = "ORCHESTRATOR_AI_API_KEYS"
ENV_ROLE_PREFIX = "ORCHESTRATOR_AI_API_KEY_"
FALLBACK_ENV_KEY = "OPENAI_API_KEY"


def mask_key(key: str) -> str:
	"""Render a key safely for logs."""
	return f"...{key[-4:]}" if key else "Unknown"


def _parse_key_list(raw: Optional[str]) -> list[str]:
	if not raw:
		return []
	return [k.strip() for k in raw.split(",") if k.strip()]


class CredentialPool:
	"""
	Ordered, de-duplicated set of interchangeable API keys.

	Each role prefers its own scoped key, else the first shared key. A call
	tries the preferred key first and then every other key in pool order.
	"""

	def __init__(
		self,
		shared_keys: list[str],
		role_keys: Optional[Mapping[AgentRole, str]] = None,
	):
		shared = [k for k in shared_keys if k]
		self._preferred: dict[AgentRole, str] = {}
		for role in AgentRole:
			scoped = (role_keys or {}).get(role)
			if scoped:
				self._preferred[role] = scoped
			elif shared:
				self._preferred[role] = shared[0]

		pool: list[str] = []
		for key in [*self._preferred.values(), *shared]:
			if key not in pool:
				pool.append(key)
		if not pool:
			raise ConfigurationError(
				f"No API keys configured. Set {ENV_KEY}, {ENV_KEYS} (comma-separated), "
				f"or role-specific {ENV_ROLE_PREFIX}<ROLE> values in your environment or .env file."
			)
		self.keys: tuple[str, ...] = tuple(pool)

	def preferred(self, role: AgentRole) -> str:
		return self._preferred.get(role, self.keys[0])

	def execution_order(self, role: AgentRole) -> list[str]:
		"""Preferred key first, then the rest of the pool in fixed order."""
		primary = self.preferred(role)
		return [primary, *(k for k in self.keys if k != primary)]

	def __len__(self) -> int:
		return len(self.keys)

	@classmethod
	def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "CredentialPool":
		"""Build the pool from environment variables (and a .env file when reading os.environ)."""
		if env is None:
			load_dotenv()
			env = os.environ

		shared = [env.get(ENV_KEY, ""), *_parse_key_list(env.get(ENV_KEYS))]
		shared = [k for k in shared if k]
		if not shared and env.get(FALLBACK_ENV_KEY):
			shared = [env[FALLBACK_ENV_KEY]]

		role_keys = {}
		for role in AgentRole:
			value = env.get(f"{ENV_ROLE_PREFIX}{role.value.upper()}")
			if value:
				role_keys[role] = value

		pool = cls(shared, role_keys)
		logger.info(f"Credential pool loaded with {len(pool)} key(s)")
		return pool

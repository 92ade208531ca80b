"""Process lifecycle hooks for best-effort durability on shutdown."""

import atexit
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TeardownHook = Callable[[], None]


class Lifecycle:
	"""
	Registry of teardown hooks.

	install() registers teardown() with atexit once; tests call teardown()
	directly. Each hook runs at most once, and a failing hook does not stop
	the ones after it.
	"""

	def __init__(self):
		self._hooks: list[TeardownHook] = []
		self._installed = False
		self._torn_down = False

	def on_teardown(self, hook: TeardownHook) -> TeardownHook:
		self._hooks.append(hook)
		return hook

	def install(self) -> None:
		if not self._installed:
			atexit.register(self.teardown)
			self._installed = True

	def teardown(self) -> None:
		if self._torn_down:
			return
		self._torn_down = True
		hooks, self._hooks = self._hooks, []
		for hook in hooks:
			try:
				hook()
			except Exception as e:
				logger.error(f"Teardown hook {getattr(hook, '__qualname__', hook)} failed: {e}")


# Global instance
_lifecycle: Optional[Lifecycle] = None


def get_lifecycle() -> Lifecycle:
	"""Get or create the process-wide lifecycle registry."""
	global _lifecycle
	if _lifecycle is None:
		_lifecycle = Lifecycle()
	return _lifecycle

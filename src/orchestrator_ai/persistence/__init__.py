"""Persistence - saved sessions, autosave and teardown hooks."""

from .autosave import AutoSaver
from .lifecycle import Lifecycle, get_lifecycle
from .store import AUTOSAVE_KEY, SessionStore

__all__ = [
	"AUTOSAVE_KEY",
	"AutoSaver",
	"Lifecycle",
	"SessionStore",
	"get_lifecycle",
]

"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

from .models import PeriodUnit, RateLimitConfig

APP_NAME = "orchestrator-ai"
APP_AUTHOR = "orchestrator-ai"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	sessions_db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Engine pacing
	step_interval: float = 1.0
	tick_interval: float = 0.1
	autosave_delay: float = 1.0
	history_limit: int = 10

	# Model endpoint
	default_model: str = "gpt-4o-mini"
	search_model: str = "gpt-4o-mini-search-preview"
	base_url: str = ""

	# Default token budget for new missions
	max_tokens: int = 100_000
	period_value: int = 1
	period_unit: str = PeriodUnit.MINUTES.value
	auto_resume_minutes: float = 0

	def __post_init__(self) -> None:
		self.sessions_db_path = self.data_dir / "sessions.db"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)

	def default_rate_limit(self) -> RateLimitConfig:
		"""Build the rate limit new missions start with."""
		return RateLimitConfig(
			max_tokens=self.max_tokens,
			period_value=self.period_value,
			period_unit=PeriodUnit(self.period_unit),
			auto_resume_minutes=self.auto_resume_minutes,
		)


_PATH_FIELDS = {"config_dir", "data_dir"}
_FLOAT_FIELDS = {"step_interval", "tick_interval", "autosave_delay", "auto_resume_minutes"}
_INT_FIELDS = {"history_limit", "max_tokens", "period_value"}


def _coerce(attr: str, val: str):
	if attr in _PATH_FIELDS:
		return Path(os.path.expanduser(val))
	if attr in _FLOAT_FIELDS:
		return float(val)
	if attr in _INT_FIELDS:
		return int(val)
	return val


def _apply_env_overrides(config: Config) -> Config:
	"""Apply ORCHESTRATOR_AI_* environment variable overrides."""
	env_map = {
		"ORCHESTRATOR_AI_CONFIG_DIR": "config_dir",
		"ORCHESTRATOR_AI_DATA_DIR": "data_dir",
		"ORCHESTRATOR_AI_STEP_INTERVAL": "step_interval",
		"ORCHESTRATOR_AI_TICK_INTERVAL": "tick_interval",
		"ORCHESTRATOR_AI_AUTOSAVE_DELAY": "autosave_delay",
		"ORCHESTRATOR_AI_HISTORY_LIMIT": "history_limit",
		"ORCHESTRATOR_AI_MODEL": "default_model",
		"ORCHESTRATOR_AI_SEARCH_MODEL": "search_model",
		"ORCHESTRATOR_AI_BASE_URL": "base_url",
		"ORCHESTRATOR_AI_MAX_TOKENS": "max_tokens",
		"ORCHESTRATOR_AI_PERIOD_VALUE": "period_value",
		"ORCHESTRATOR_AI_PERIOD_UNIT": "period_unit",
		"ORCHESTRATOR_AI_AUTO_RESUME_MINUTES": "auto_resume_minutes",
	}
	for env_key, attr in env_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, _coerce(attr, val))
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if hasattr(config, key):
			if key in _PATH_FIELDS:
				setattr(config, key, Path(os.path.expanduser(val)))
			else:
				setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	# The config dir override decides which config.toml is read
	config_dir = os.getenv("ORCHESTRATOR_AI_CONFIG_DIR")
	if config_dir:
		config.config_dir = _coerce("config_dir", config_dir)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config

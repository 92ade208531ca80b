"""Centralized logging configuration for orchestrator-ai."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .gateway.credentials import ENV_KEY, ENV_KEYS, ENV_ROLE_PREFIX, FALLBACK_ENV_KEY


def setup_logging(
	name: str = "orchestrator_ai",
	level: Optional[str] = None,
	log_dir: Optional[Path] = None,
	console: bool = True,
) -> logging.Logger:
	"""
	Set up logging with console and file handlers.

	Args:
		name: Logger name (the package logger by default)
		level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env var or INFO.
		log_dir: Directory for log files; no file handler when omitted
		console: Attach a stderr handler

	Returns:
		Configured logger
	"""
	level = level or os.getenv("LOG_LEVEL", "INFO")
	log_level = getattr(logging, level.upper(), logging.INFO)

	logger = logging.getLogger(name)
	logger.setLevel(log_level)

	# Avoid duplicate handlers
	if logger.handlers:
		return logger

	detailed_formatter = logging.Formatter(
		"%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
		datefmt="%Y-%m-%d %H:%M:%S",
	)
	simple_formatter = logging.Formatter(
		"%(asctime)s [%(levelname)s] %(message)s",
		datefmt="%H:%M:%S",
	)
	redactor = SecretRedactionFilter()

	if console:
		# stderr keeps stdout free for MCP stdio and rendered output
		console_handler = logging.StreamHandler(sys.stderr)
		console_handler.setLevel(log_level)
		console_handler.setFormatter(simple_formatter)
		console_handler.addFilter(redactor)
		logger.addHandler(console_handler)

	if log_dir is not None:
		log_path = Path(log_dir)
		log_path.mkdir(parents=True, exist_ok=True)
		file_handler = RotatingFileHandler(
			log_path / f"{name}.log",
			maxBytes=10 * 1024 * 1024,  # 10 MB
			backupCount=5,
		)
		file_handler.setLevel(logging.DEBUG)  # File gets all logs
		file_handler.setFormatter(detailed_formatter)
		file_handler.addFilter(redactor)
		logger.addHandler(file_handler)

	return logger


class SecretRedactionFilter(logging.Filter):
	"""Replace configured API keys with their masked form."""

	def __init__(self, env: Optional[dict] = None):
		super().__init__()
		env = os.environ if env is None else env
		secrets = set()
		for key, value in env.items():
			if not value:
				continue
			if key in (ENV_KEY, FALLBACK_ENV_KEY) or key.startswith(ENV_ROLE_PREFIX):
				secrets.add(value)
			elif key == ENV_KEYS:
				secrets.update(v.strip() for v in value.split(",") if v.strip())
		self._secrets = sorted(secrets, key=len, reverse=True)

	def filter(self, record: logging.LogRecord) -> bool:
		if not self._secrets:
			return True
		message = record.getMessage()
		redacted = message
		for secret in self._secrets:
			redacted = redacted.replace(secret, f"...{secret[-4:]}")
		if redacted != message:
			record.msg = redacted
			record.args = None
		return True

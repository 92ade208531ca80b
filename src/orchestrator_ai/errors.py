"""Error taxonomy for model calls and mission commands."""

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
	"""Classified reason a model call failed."""
	QUOTA_EXCEEDED = "quota_exceeded"
	SERVER_TRANSIENT = "server_transient"
	CONTENT_BLOCKED = "content_blocked"
	INVALID_REQUEST = "invalid_request"
	PARSE_FAILURE = "parse_failure"
	UNKNOWN = "unknown"


class GatewayError(Exception):
	"""Base class for classified model gateway failures."""

	kind: FailureKind = FailureKind.UNKNOWN

	def __init__(self, message: str, http_status: Optional[int] = None):
		super().__init__(message)
		self.message = message
		self.http_status = http_status

	@property
	def retryable(self) -> bool:
		"""Whether another credential may succeed where this one failed."""
		return False

	@property
	def user_message(self) -> str:
		return self.message

	def __repr__(self) -> str:
		return f"{type(self).__name__}(kind={self.kind.value!r}, http_status={self.http_status!r}, message={self.message!r})"


class QuotaExceededError(GatewayError):
	"""Quota exhausted, either for one key or for the whole project."""

	kind = FailureKind.QUOTA_EXCEEDED

	def __init__(self, message: str, http_status: Optional[int] = 429, global_quota: bool = False):
		super().__init__(message, http_status)
		self.global_quota = global_quota

	@property
	def retryable(self) -> bool:
		return not self.global_quota

	@property
	def user_message(self) -> str:
		if self.global_quota:
			return "Project-wide API quota exhausted."
		return "Rate limit exceeded."


class ServerTransientError(GatewayError):
	"""5xx or connection-level failure."""

	kind = FailureKind.SERVER_TRANSIENT

	@property
	def retryable(self) -> bool:
		return True


class ContentBlockedError(GatewayError):
	"""The provider refused to produce content for this prompt."""

	kind = FailureKind.CONTENT_BLOCKED

	@property
	def user_message(self) -> str:
		return f"Content generation blocked: {self.message}"


class InvalidRequestError(GatewayError):
	"""Client-side error such as a bad request or malformed schema."""

	kind = FailureKind.INVALID_REQUEST


class ParseFailureError(GatewayError):
	"""Structured output could not be parsed into a task list."""

	kind = FailureKind.PARSE_FAILURE

	@property
	def user_message(self) -> str:
		return f"Could not parse supervisor plan: {self.message}"


class UnknownGatewayError(GatewayError):
	"""Failure that fits no other category."""

	kind = FailureKind.UNKNOWN


class MissionStateError(Exception):
	"""Raised when a mission command is not allowed in the current status."""
	pass


class ConfigurationError(Exception):
	"""Raised when required configuration (e.g. API keys) is missing."""
	pass

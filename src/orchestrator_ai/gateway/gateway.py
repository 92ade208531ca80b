"""
Model Gateway - OpenAI-compatible chat completions with API key failover.

Strategy for one logical call:
1. Try the role's preferred key first.
2. On a per-key quota (429) or transient server error, try the next key.
3. Global quota exhaustion, content blocks and other client errors fail fast;
   switching keys cannot fix them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import openai

from ..errors import (
	ContentBlockedError,
	GatewayError,
	InvalidRequestError,
	QuotaExceededError,
	ServerTransientError,
	UnknownGatewayError,
)
from ..models import AgentRole
from .credentials import CredentialPool, mask_key

logger = logging.getLogger(__name__)

GLOBAL_QUOTA_MARKERS = (
	"limit: 0",
	"GenerateRequestsPerDayPerProjectPerModel-FreeTier",
)
GLOBAL_QUOTA_CODES = {"insufficient_quota"}
CONTENT_BLOCK_CODES = {"content_filter", "content_policy_violation"}


@dataclass
class GenerateOptions:
	"""Per-call options."""
	response_schema: Optional[dict] = None
	schema_name: str = "task_list"
	web_search: bool = False


@dataclass
class GenerationResult:
	"""Successful model output."""
	text: str
	token_count: int = 0
	sources: list[str] = field(default_factory=list)


def classify_failure(exc: BaseException) -> GatewayError:
	"""Map a provider exception onto the failure taxonomy."""
	if isinstance(exc, GatewayError):
		return exc

	status = getattr(exc, "status_code", None)
	code = getattr(exc, "code", None)
	text = str(exc)

	if code in GLOBAL_QUOTA_CODES or any(marker in text for marker in GLOBAL_QUOTA_MARKERS):
		return QuotaExceededError(text, http_status=status, global_quota=True)

	if status == 429 or "429" in text or "quota" in text.lower():
		return QuotaExceededError(text, http_status=status)

	if isinstance(status, int) and 500 <= status < 600:
		return ServerTransientError(text, http_status=status)

	if isinstance(exc, openai.APIConnectionError):
		return ServerTransientError(text)

	if code in CONTENT_BLOCK_CODES:
		return ContentBlockedError(text, http_status=status)

	if isinstance(status, int) and 400 <= status < 500:
		return InvalidRequestError(text, http_status=status)

	return UnknownGatewayError(text, http_status=status)


def _extract_sources(message: Any) -> list[str]:
	sources = []
	for annotation in getattr(message, "annotations", None) or []:
		if getattr(annotation, "type", None) != "url_citation":
			continue
		citation = getattr(annotation, "url_citation", None)
		url = getattr(citation, "url", None)
		if url and url not in sources:
			sources.append(url)
	return sources


class ModelGateway:
	"""
	Role-aware model caller over a credential pool.

	Usage:
		gateway = ModelGateway(CredentialPool.from_env())
		result = await gateway.generate(AgentRole.WRITER, prompt)
	"""

	def __init__(
		self,
		pool: CredentialPool,
		default_model: str = "gpt-4o-mini",
		search_model: str = "gpt-4o-mini-search-preview",
		base_url: str = "",
		client_factory: Optional[Callable[[str], Any]] = None,
	):
		self.pool = pool
		self.default_model = default_model
		self.search_model = search_model
		self.base_url = base_url
		self._client_factory = client_factory or self._default_client
		self._clients: dict[str, Any] = {}

	def _default_client(self, api_key: str) -> openai.AsyncOpenAI:
		# Failover is handled here, not by the SDK
		return openai.AsyncOpenAI(
			api_key=api_key,
			base_url=self.base_url or None,
			max_retries=0,
		)

	def _client(self, api_key: str) -> Any:
		if api_key not in self._clients:
			self._clients[api_key] = self._client_factory(api_key)
		return self._clients[api_key]

	def _request(self, prompt: str, options: GenerateOptions) -> dict:
		model = self.search_model if options.web_search else self.default_model
		request: dict[str, Any] = {
			"model": model,
			"messages": [{"role": "user", "content": prompt}],
		}
		if options.web_search:
			request["web_search_options"] = {}
		if options.response_schema is not None:
			request["response_format"] = {
				"type": "json_schema",
				"json_schema": {
					"name": options.schema_name,
					"schema": options.response_schema,
					"strict": True,
				},
			}
		return request

	async def generate(
		self,
		role: AgentRole,
		prompt: str,
		options: Optional[GenerateOptions] = None,
	) -> GenerationResult:
		"""
		Run one logical model call, rotating keys on retryable failures.

		Raises:
			GatewayError: Classified failure (last recorded one if every key failed)
		"""
		options = options or GenerateOptions()
		request = self._request(prompt, options)
		last_error: Optional[GatewayError] = None

		for api_key in self.pool.execution_order(role):
			try:
				response = await self._client(api_key).chat.completions.create(**request)
			except Exception as e:
				failure = classify_failure(e)
				if failure.retryable:
					logger.warning(
						f"Key {mask_key(api_key)} failed for {role.value} "
						f"({failure.kind.value}, status={failure.http_status}). Switching to next key..."
					)
					last_error = failure
					continue
				if isinstance(failure, QuotaExceededError) and failure.global_quota:
					logger.error("Global project quota exhausted. Not retrying with other keys.")
				else:
					logger.error(f"Non-retriable error for {role.value}: {failure.kind.value}: {failure}")
				raise failure from e

			return self._to_result(response)

		if last_error is not None:
			raise last_error
		raise UnknownGatewayError("All API keys exhausted or service unavailable.")

	def _to_result(self, response: Any) -> GenerationResult:
		choice = response.choices[0] if response.choices else None
		message = getattr(choice, "message", None)
		text = getattr(message, "content", None) or ""

		refusal = getattr(message, "refusal", None)
		finish_reason = getattr(choice, "finish_reason", None)
		if refusal or (finish_reason == "content_filter" and not text):
			raise ContentBlockedError(refusal or finish_reason)

		usage = getattr(response, "usage", None)
		token_count = getattr(usage, "total_tokens", None) or 0
		return GenerationResult(
			text=text,
			token_count=token_count,
			sources=_extract_sources(message),
		)

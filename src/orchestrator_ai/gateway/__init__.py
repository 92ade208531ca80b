"""Model gateway: role-aware model calls with API key failover."""

from .credentials import CredentialPool, mask_key
from .gateway import GenerateOptions, GenerationResult, ModelGateway, classify_failure

__all__ = [
	"CredentialPool",
	"GenerateOptions",
	"GenerationResult",
	"ModelGateway",
	"classify_failure",
	"mask_key",
]

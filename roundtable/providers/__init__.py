"""Generation service providers and the uniform dispatch entry point."""

from roundtable.providers.base import AIProvider, ProviderError
from roundtable.providers.dispatch import PROVIDER_CLASSES, call_provider

__all__ = ["AIProvider", "PROVIDER_CLASSES", "ProviderError", "call_provider"]

"""Structured extraction service providers."""

from .base import StructuredExtractionService
from .registry import get_provider, list_providers, provider_from_config

__all__ = ["StructuredExtractionService", "get_provider", "list_providers", "provider_from_config"]

# sts_core/providers/registry.py
from typing import Any, Dict, Type

from .mock import MockProvider
from .openai_provider import OpenAIProvider
from .rules import LocalRulesProvider

_REGISTRY: Dict[str, Type] = {
    "openai": OpenAIProvider,
    "rules": LocalRulesProvider,
    "mock": MockProvider,
}


def get_provider(name: str, cfg_block: Dict[str, Any] | None = None):
    cls = _REGISTRY.get(name)
    if not cls:
        raise KeyError(f"Unknown provider: {name}")
    return cls(cfg_block or {})


def provider_from_config(cfg: Dict[str, Any]):
    """The provider named by `active_provider`, built from its `providers` block."""
    name = cfg.get("active_provider", "rules")
    return get_provider(name, (cfg.get("providers") or {}).get(name, {}))


def list_providers() -> list[str]:
    return sorted(_REGISTRY.keys())

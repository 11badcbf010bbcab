# sts_core/providers/mock.py
import time
from typing import Any, Dict, List, Tuple

from .rules import LocalRulesProvider


class MockProvider:
    """
    Scripted provider for tests and demos. Payloads queued per schema name are
    returned in order; a queued exception is raised instead. With nothing queued
    it falls back to the local rules (unless `fallback_to_rules` is off).
    """
    name = "mock"

    def __init__(self, cfg: Dict[str, Any] | None = None):
        cfg = cfg or {}
        self.delay_s = float(cfg.get("delay_s", 0))
        self._queued: Dict[str, List[Any]] = {
            name: list(items) for name, items in (cfg.get("responses") or {}).items()
        }
        self._fallback = LocalRulesProvider() if cfg.get("fallback_to_rules", True) else None
        self.calls: List[Tuple[str, str]] = []

    def queue(self, schema, payload) -> None:
        name = schema if isinstance(schema, str) else schema.__name__
        self._queued.setdefault(name, []).append(payload)

    def respond(self, prompt: str, instructions: str, schema: type,
                options: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((prompt, schema.__name__))
        if self.delay_s > 0:
            time.sleep(self.delay_s)

        pending = self._queued.get(schema.__name__)
        if pending:
            item = pending.pop(0)
            if isinstance(item, BaseException):
                raise item
            return dict(item)
        if self._fallback is not None:
            return self._fallback.respond(prompt, instructions, schema, options)
        raise RuntimeError(f"mock provider has no response queued for {schema.__name__}")

# sts_core/pipeline.py
import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .errors import ExtractionFailure

log = logging.getLogger(__name__)


class ExtractionPipeline:
    """
    Runs one provider request: respond() in a worker thread, bounded by the
    configured timeout, then validation of the payload against its schema.
    Every provider problem surfaces as ExtractionFailure(kind).
    """
    def __init__(self, cfg: Dict[str, Any], provider):
        self.cfg = cfg
        self.provider = provider
        block = cfg.get("extraction", {}) or {}
        self.timeout_s = float(block.get("timeout_s", 10.0))
        self.temperature = float(block.get("temperature", 0.15))

    @property
    def provider_name(self) -> str:
        return getattr(self.provider, "name", type(self.provider).__name__)

    async def respond(self, prompt: str, instructions: str, schema: type,
                      kind: Optional[str] = None) -> Dict[str, Any]:
        """Raw JSON object from the provider."""
        options = {"temperature": self.temperature}
        try:
            payload = await asyncio.wait_for(
                asyncio.to_thread(self.provider.respond, prompt, instructions, schema, options),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            raise ExtractionFailure(kind, f"{self.provider_name} timed out after {self.timeout_s:g}s") from None
        except Exception as e:
            raise ExtractionFailure(kind, f"{self.provider_name} failed: {e}") from e

        if not isinstance(payload, dict):
            raise ExtractionFailure(kind, f"{self.provider_name} returned {type(payload).__name__}, not an object")
        log.debug("[Pipeline] %s %s -> %s", self.provider_name, schema.__name__, payload)
        return payload

    async def extract(self, prompt: str, instructions: str, schema: type, kind: Optional[str] = None):
        """Provider answer validated into a `schema` instance."""
        payload = await self.respond(prompt, instructions, schema, kind)
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            errors = "; ".join(f"{'.'.join(map(str, err['loc'])) or schema.__name__}: {err['msg']}"
                               for err in e.errors())
            raise ExtractionFailure(kind, errors) from e

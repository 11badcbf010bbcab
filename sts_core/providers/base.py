# sts_core/providers/base.py
from typing import Any, Dict, Protocol


class StructuredExtractionService(Protocol):
    name: str
    # blocking; the pipeline runs it in a worker thread under a timeout
    def respond(self, prompt: str, instructions: str, schema: type,
                options: Dict[str, Any]) -> Dict[str, Any]: ...

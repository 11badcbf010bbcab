# sts_core/providers/rules.py
# Offline provider: answers every schema from the local rule engine. No network, no model.
from typing import Any, Callable, Dict

from ..agents import rules
from ..commands.schema import (
    ActionChoice,
    CreationParams,
    ModifyParams,
    MoveParams,
    RotateParams,
    ScaleParams,
    SystemWord,
)


def _action(text: str) -> Dict[str, Any]:
    kind = rules.classify_text(text)
    return {"kind": kind.value if kind else "unknown"}


def _scale(text: str) -> Dict[str, Any]:
    factor = rules.read_scale_factor(text)
    return {"factor": 2.0 if factor is None else factor}


_READERS: Dict[type, Callable[[str], Dict[str, Any]]] = {
    ActionChoice: _action,
    SystemWord: lambda text: {"word": rules.read_system_word(text)},
    CreationParams: rules.read_creation,
    MoveParams: rules.read_movement,
    RotateParams: rules.read_rotation,
    ScaleParams: _scale,
    ModifyParams: rules.read_modification,
}


class LocalRulesProvider:
    name = "rules"

    def __init__(self, cfg: Dict[str, Any] | None = None):
        self.cfg = cfg or {}

    def respond(self, prompt: str, instructions: str, schema: type,
                options: Dict[str, Any]) -> Dict[str, Any]:
        reader = _READERS.get(schema)
        if reader is None:
            raise KeyError(f"rules provider has no reader for {schema.__name__}")
        return reader(prompt)

"""
Parameter Extractor Agent

Responsibility: turn an utterance of a known ActionKind into its parameter record
- Ask the extraction service with the kind's instructions and schema
- Pin down what the words fix unambiguously (direction table, scale law,
  spoken shape/color, "more" count, system on/off) over the service's answer
- Bounds-check the final record
"""

import logging
from typing import Awaitable, Callable, Dict

from ..commands.lexicon import find_color, find_direction, find_shape, tokenize
from ..commands.safety import is_allowed
from ..commands.schema import (
    ActionKind,
    CreationParams,
    ModifyParams,
    MoveParams,
    RotateParams,
    ScaleParams,
    SystemParams,
    SystemWord,
)
from ..errors import ExtractionFailure
from ..prompts.templates import INSTRUCTIONS_FOR_KIND
from . import rules

log = logging.getLogger(__name__)


def _clamp(v: float, lo: float, hi: float) -> float:
    return min(max(v, lo), hi)


class ParameterExtractor:
    def __init__(self, pipeline):
        self.pipeline = pipeline
        self._by_kind: Dict[ActionKind, Callable[[str], Awaitable]] = {
            ActionKind.CREATION: self.creation,
            ActionKind.MOVEMENT: self.movement,
            ActionKind.ROTATION: self.rotation,
            ActionKind.SCALING: self.scaling,
            ActionKind.MODIFICATION: self.modification,
            ActionKind.SYSTEM: self.system,
        }

    async def extract(self, utterance: str, kind: ActionKind):
        params = await self._by_kind[kind](utterance)
        ok, why = is_allowed(params)
        if not ok:
            raise ExtractionFailure(kind, why)
        log.debug("[Extractor] %s: %s", kind.value, params)
        return params

    async def _ask(self, utterance: str, kind: ActionKind, schema: type):
        return await self.pipeline.extract(utterance, INSTRUCTIONS_FOR_KIND[kind], schema, kind)

    # ---------------- per kind ----------------

    async def creation(self, utterance: str) -> CreationParams:
        params = await self._ask(utterance, ActionKind.CREATION, CreationParams)
        changes = {}
        shape = find_shape(utterance)
        if shape and shape != params.shape:
            changes["shape"] = shape
        color = find_color(utterance)
        if color and color != params.color:
            changes["color"] = color
        if "more" in tokenize(utterance) and params.count < 2:
            changes["count"] = 3
        return params.model_copy(update=changes) if changes else params

    async def movement(self, utterance: str) -> MoveParams:
        params = await self._ask(utterance, ActionKind.MOVEMENT, MoveParams)
        changes = {}
        found = find_direction(utterance)
        if found is not None:
            axis, sign = found
            changes["axis"] = axis
            changes["direction"] = "positive" if sign > 0 else "negative"
        if rules.read_distance(utterance) is None:
            changes["distance"] = 0.5
        return params.model_copy(update=changes)

    async def rotation(self, utterance: str) -> RotateParams:
        params = await self._ask(utterance, ActionKind.ROTATION, RotateParams)
        if rules.read_degrees(utterance) is None and params.degrees != 90.0:
            params = params.model_copy(update={"degrees": 90.0})
        return params

    async def scaling(self, utterance: str) -> ScaleParams:
        params = await self._ask(utterance, ActionKind.SCALING, ScaleParams)
        factor = rules.read_scale_factor(utterance)
        if factor is not None:
            params = params.model_copy(update={"factor": _clamp(factor, 0.1, 10.0)})
        return params

    async def modification(self, utterance: str) -> ModifyParams:
        params = await self._ask(utterance, ActionKind.MODIFICATION, ModifyParams)
        color = find_color(utterance)
        if color and color != params.color:
            params = params.model_copy(update={"color": color})
        return params

    async def system(self, utterance: str) -> SystemParams:
        spoken = rules.read_system_word(utterance)
        if spoken:
            return SystemParams.from_word(spoken)
        answer = await self._ask(utterance, ActionKind.SYSTEM, SystemWord)
        return SystemParams.from_word(answer.word)

# sts_core/dispatcher.py
# Routes one utterance: classify -> extract -> mutate the scene -> one history entry.

import asyncio
import itertools
import logging
import time
from typing import Any, Callable, Dict, Optional

from .agents import CommandClassifier, ParameterExtractor
from .analyzers.command_log import CommandLog
from .commands.schema import (
    ActionKind,
    Command,
    CommandLogEntry,
    CreationParams,
    ModifyParams,
    MoveParams,
    RotateParams,
    ScaleParams,
    SystemParams,
)
from .errors import (
    ClassificationFailure,
    CommandError,
    DispatcherBusy,
    ExtractionFailure,
    NoActiveEntity,
    UnrecognizedActionKind,
)
from .pipeline import ExtractionPipeline
from .providers.registry import provider_from_config
from .scene import Scene

log = logging.getLogger(__name__)

# kinds that act on the active entity
TARGETED_KINDS = (ActionKind.MODIFICATION, ActionKind.SCALING, ActionKind.MOVEMENT, ActionKind.ROTATION)

WARMUP_PROMPT = "Make a red cube"


class CommandDispatcher:
    """
    One command at a time. All awaits (classification, extraction) happen
    before the scene is touched; the mutation itself runs synchronously under
    the scene lock, so cancelling a command never leaves half a change behind.
    """

    def __init__(self, scene: Scene, classifier: CommandClassifier, extractor: ParameterExtractor,
                 history: Optional[CommandLog] = None):
        self.scene = scene
        self.classifier = classifier
        self.extractor = extractor
        self.history = history or CommandLog()
        self.new_entities_count = 0
        self.last_command: Optional[Command] = None
        # called with every recorded entry (host UI hooks)
        self.on_entry: Optional[Callable[[CommandLogEntry], None]] = None
        self._processing = False
        self._seq = itertools.count(1)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], scene: Optional[Scene] = None, provider=None,
                    renderer=None) -> "CommandDispatcher":
        provider = provider or provider_from_config(cfg)
        pipeline = ExtractionPipeline(cfg, provider)
        local_first = bool((cfg.get("classifier", {}) or {}).get("local_rules_first", True))
        return cls(
            scene=scene or Scene.from_config(cfg, renderer=renderer),
            classifier=CommandClassifier(pipeline, local_rules_first=local_first),
            extractor=ParameterExtractor(pipeline),
            history=CommandLog(int((cfg.get("history", {}) or {}).get("max_entries", 50))),
        )

    @property
    def processing(self) -> bool:
        return self._processing

    async def dispatch(self, text: str) -> CommandLogEntry:
        text = (text or "").strip()
        if self._processing:
            return self._failed("error", text, DispatcherBusy())
        if not text:
            return self._failed("unknown", text, UnrecognizedActionKind("", "Empty command"))

        self._processing = True
        self.last_command = Command(text, next(self._seq), time.time())
        log.info("[Dispatcher] #%d %r", self.last_command.seq, text)
        kind: Optional[ActionKind] = None
        try:
            kind = await self.classifier.classify(text)
            if kind in TARGETED_KINDS and self.scene.active is None:
                raise NoActiveEntity()
            params = await self.extractor.extract(text, kind)
            with self.scene.lock:
                result = self._apply(kind, params)
        except CommandError as e:
            return self._failed(self._failure_kind(e, kind), text, e)
        except asyncio.CancelledError:
            self._record(CommandLogEntry(kind.value if kind else "error", text, "Cancelled",
                                         False, error="cancelled", retryable=True))
            raise
        finally:
            self._processing = False

        log.info("[Dispatcher] ✅ %s: %s", kind.value, result)
        return self._record(CommandLogEntry(kind.value, text, result, True))

    async def warmup(self) -> None:
        """Prime the provider (model load, connection) with a throwaway classification."""
        try:
            await self.classifier.classify(WARMUP_PROMPT)
        except CommandError as e:
            log.warning("[Dispatcher] warmup failed: %s", e)

    def reset(self) -> None:
        self.new_entities_count = 0

    def clear_history(self) -> None:
        self.history.clear()

    # ---------------- internals ----------------

    @staticmethod
    def _failure_kind(e: CommandError, kind: Optional[ActionKind]) -> str:
        if isinstance(e, UnrecognizedActionKind):
            return "unknown"
        if kind is not None and not isinstance(e, ClassificationFailure):
            return kind.value
        return "error"

    def _record(self, entry: CommandLogEntry) -> CommandLogEntry:
        self.history.record(entry)
        if self.on_entry is not None:
            self.on_entry(entry)
        return entry

    def _failed(self, kind_label: str, text: str, e: CommandError) -> CommandLogEntry:
        if isinstance(e, (ClassificationFailure, ExtractionFailure)):
            result = f"Parsing failed: {e}"
        else:
            result = str(e)
        log.warning("[Dispatcher] ❌ %s: %r (%s)", kind_label, text, result)
        return self._record(CommandLogEntry(kind_label, text, result, False,
                                            error=e.code, retryable=e.retryable))

    def _apply(self, kind: ActionKind, params) -> str:
        if kind is ActionKind.CREATION:
            return self._create(params)
        if kind is ActionKind.SYSTEM:
            return self._system(params)

        target = self.scene.active
        if target is None:
            raise NoActiveEntity()
        if kind is ActionKind.MODIFICATION:
            return self._modify(target, params)
        if kind is ActionKind.SCALING:
            return self._scale(target, params)
        if kind is ActionKind.MOVEMENT:
            return self._move(target, params)
        return self._rotate(target, params)

    def _create(self, p: CreationParams) -> str:
        for _ in range(p.count):
            self.scene.add_entity(p.shape, p.size, p.color, p.metallic, p.roughness)
        self.new_entities_count = p.count
        return (f"{p.count}x {p.color} {p.shape} - "
                f"Size: {p.size:g}, Metallic: {p.metallic}, Roughness: {p.roughness:g}")

    def _modify(self, target, p: ModifyParams) -> str:
        self.scene.set_material(target, color=p.color, roughness=p.roughness, metallic=p.metallic)
        return f"{target.color} color, roughness: {target.roughness:g}, metallic: {target.metallic}"

    def _scale(self, target, p: ScaleParams) -> str:
        self.scene.scale_entity(target, p.factor)
        return f"Scale factor: {p.factor:g}"

    def _move(self, target, p: MoveParams) -> str:
        self.scene.move_entity(target, p.axis, p.sign * p.distance)
        return f"{p.direction} {p.distance:g}m on {p.axis}-axis"

    def _rotate(self, target, p: RotateParams) -> str:
        self.scene.rotate_entity(target, p.axis, p.sign * p.degrees)
        return f"{p.direction} {p.degrees:g}° around {p.axis}-axis"

    def _system(self, p: SystemParams) -> str:
        changed = self.scene.set_simulation(p.on)
        state = "enabled" if p.on else "disabled"
        return f"System {state}" if changed else f"System already {state}"

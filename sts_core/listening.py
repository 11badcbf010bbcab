# sts_core/listening.py
# Continuous listening: audio -> transcriber -> accumulated text -> dispatcher.

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from .errors import PermissionDenied

log = logging.getLogger(__name__)


class ListeningState(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    LISTENING = "listening"
    PROCESSING = "processing"


def _clean(text: str) -> str:
    return (text or "").lower().strip()


def _same_utterance(final: str, command: str) -> bool:
    return final.startswith(command) or command.startswith(final)


class ContinuousListener:
    """
    idle -> initializing -> listening <-> processing -> idle

    Final transcription results are accumulated and dispatched one command at
    a time; finals that arrive while a command runs wait in the buffer and are
    picked up as soon as it finishes. Retryable failures keep the buffer so the
    next final can complete the sentence.

    With the volatile fast path on, a volatile hypothesis that has been stable
    for `volatile_cooldown_s` is dispatched speculatively; when that succeeds
    the matching final result is swallowed instead of running twice.
    """

    def __init__(self, dispatcher, audio_source, transcriber, volatile_enabled: bool = False,
                 volatile_cooldown_s: float = 0.8, min_volatile_chars: int = 3,
                 clock: Callable[[], float] = time.monotonic,
                 on_state_change: Optional[Callable[[ListeningState, ListeningState], None]] = None):
        self.dispatcher = dispatcher
        self.audio = audio_source
        self.transcriber = transcriber
        self.volatile_enabled = volatile_enabled
        self.volatile_cooldown_s = volatile_cooldown_s
        self.min_volatile_chars = min_volatile_chars
        self.clock = clock
        self.on_state_change = on_state_change

        self.state = ListeningState.IDLE
        self.volatile_transcript = ""
        self.finalized_transcript = ""
        self._accumulated = ""
        self._pending_final = False
        self._want_listening = False
        # finals heard while a fast-path command is in flight
        self._fast_path_finals: Optional[List[str]] = None
        self._last_volatile_at: Optional[float] = None
        self._consumed_volatile: Optional[str] = None

        self._pump_task: Optional[asyncio.Task] = None
        self._consumer_task: Optional[asyncio.Task] = None
        self._command_task: Optional[asyncio.Task] = None
        self._volatile_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, cfg: Dict, dispatcher, audio_source, transcriber, **kwargs) -> "ContinuousListener":
        block = cfg.get("listening", {}) or {}
        return cls(
            dispatcher,
            audio_source,
            transcriber,
            volatile_enabled=bool(block.get("volatile_enabled", False)),
            volatile_cooldown_s=float(block.get("volatile_cooldown_s", 0.8)),
            min_volatile_chars=int(block.get("min_volatile_chars", 3)),
            **kwargs,
        )

    # ---------------- read-only views ----------------

    @property
    def current_transcript(self) -> str:
        return (self.finalized_transcript + " " + self.volatile_transcript).strip()

    @property
    def has_accumulated_command(self) -> bool:
        return bool(self._accumulated.strip())

    @property
    def current_command(self) -> str:
        return self._accumulated.strip()

    @property
    def is_listening(self) -> bool:
        return self.state is ListeningState.LISTENING

    # ---------------- lifecycle ----------------

    def _set_state(self, new: ListeningState) -> None:
        old, self.state = self.state, new
        if old is not new:
            log.debug("[Listener] %s -> %s", old.value, new.value)
            if self.on_state_change is not None:
                self.on_state_change(old, new)

    async def start(self) -> None:
        if self.state is not ListeningState.IDLE:
            log.info("[Listener] start ignored in state %s", self.state.value)
            return
        self._set_state(ListeningState.INITIALIZING)
        self._want_listening = True
        try:
            log.info("[Listener] checking microphone access...")
            if not await self.audio.request_permission():
                raise PermissionDenied("Microphone permission denied")
            log.info("[Listener] configuring audio...")
            self.audio.configure()
            log.info("[Listener] setting up transcriber...")
            await self.transcriber.setup()
        except Exception as e:
            log.error("[Listener] setup failed: %s", e)
            self._want_listening = False
            self.audio.close()
            self._set_state(ListeningState.IDLE)
            raise

        self._set_state(ListeningState.LISTENING)
        self._pump_task = asyncio.create_task(self._pump())
        self._consumer_task = asyncio.create_task(self._consume())
        log.info("[Listener] ready")

    async def stop(self) -> None:
        log.info("[Listener] stopping...")
        self._want_listening = False
        self.audio.close()
        await self.transcriber.finish()

        for task in (self._volatile_task, self._consumer_task, self._pump_task):
            if task is not None and not task.done():
                task.cancel()
        await asyncio.gather(*(t for t in (self._volatile_task, self._consumer_task, self._pump_task)
                               if t is not None), return_exceptions=True)

        # an in-flight final command runs to completion
        if self._command_task is not None and not self._command_task.done():
            await asyncio.shield(self._command_task)

        self._volatile_task = self._consumer_task = self._pump_task = self._command_task = None
        self._last_volatile_at = None
        self._consumed_volatile = None
        self._pending_final = False
        self._set_state(ListeningState.IDLE)
        log.info("[Listener] stopped")

    async def toggle(self) -> None:
        if self.state is ListeningState.IDLE:
            await self.start()
        elif self.state is ListeningState.LISTENING:
            await self.stop()

    # ---------------- background tasks ----------------

    async def _pump(self) -> None:
        try:
            async for block in self.audio.stream():
                await self.transcriber.feed(block)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("[Listener] audio pump stopped")

    async def _consume(self) -> None:
        async for result in self.transcriber.results():
            if result.is_final:
                self.handle_final(result.text)
            else:
                self.handle_volatile(result.text)

    # ---------------- transcription results ----------------

    def handle_final(self, text: str) -> None:
        cleaned = _clean(text)
        self.volatile_transcript = ""
        if not cleaned:
            return

        consumed, self._consumed_volatile = self._consumed_volatile, None
        if consumed and _same_utterance(cleaned, consumed):
            log.info("[Listener] final %r already handled by the fast path", cleaned)
            return

        if self._fast_path_finals is not None:
            self._fast_path_finals.append(cleaned)
        self._accumulated = f"{self._accumulated} {cleaned}".strip()
        self.finalized_transcript = f"{self.finalized_transcript} {cleaned}".strip()

        if self.state is ListeningState.LISTENING:
            self._set_state(ListeningState.PROCESSING)
            self._command_task = asyncio.create_task(self._process_accumulated())
        elif self.state is ListeningState.PROCESSING:
            self._pending_final = True

    def handle_volatile(self, text: str) -> None:
        self.volatile_transcript = text
        if not self.volatile_enabled or self.state is not ListeningState.LISTENING:
            return
        cleaned = _clean(text)
        if len(cleaned) < self.min_volatile_chars:
            return
        now = self.clock()
        if self._last_volatile_at is not None and now - self._last_volatile_at < self.volatile_cooldown_s:
            return

        self._last_volatile_at = now
        if self._volatile_task is not None and not self._volatile_task.done():
            self._volatile_task.cancel()
        log.info("[Listener] fast path: %r", cleaned)
        self._set_state(ListeningState.PROCESSING)
        self._volatile_task = asyncio.create_task(self._process_volatile(cleaned))

    # ---------------- command processing ----------------

    async def _process_accumulated(self) -> None:
        try:
            while True:
                command = self._accumulated.strip()
                self._pending_final = False
                if not command:
                    break
                log.info("[Listener] processing %r", command)
                entry = await self.dispatcher.dispatch(command)
                if entry.success or not entry.retryable:
                    self._drop_prefix(command)
                    self.finalized_transcript = ""
                else:
                    log.info("[Listener] keeping %r for retry", command)
                if not (self._pending_final and self._want_listening):
                    break
        finally:
            self._back_to_listening()

    async def _process_volatile(self, command: str) -> None:
        self._fast_path_finals = []
        try:
            entry = await self.dispatcher.dispatch(command)
            if entry.success:
                arrived = self._fast_path_finals
                if not arrived:
                    self._consumed_volatile = command
                elif _same_utterance(arrived[0], command):
                    arrived = arrived[1:]
                # later finals are new commands and stay buffered
                self._accumulated = " ".join(arrived)
                self._pending_final = bool(arrived)
            else:
                log.info("[Listener] fast path failed, final result will handle it: %s", entry.result)
        finally:
            self._fast_path_finals = None
            if self._pending_final and self._want_listening and self.has_accumulated_command:
                self._command_task = asyncio.create_task(self._process_accumulated())
            else:
                self._back_to_listening()

    def _drop_prefix(self, command: str) -> None:
        text = self._accumulated.strip()
        self._accumulated = text[len(command):].strip() if text.startswith(command) else ""

    def _back_to_listening(self) -> None:
        self._pending_final = False
        if self._want_listening and self.state is ListeningState.PROCESSING:
            self._set_state(ListeningState.LISTENING)

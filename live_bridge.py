"""
Scene Bridge: background thread that owns the asyncio loop (dispatcher, optional
continuous listener, simulation loop) and pushes everything a host app needs
to draw onto a plain queue.Queue. No top-level heavy imports.

Queue items are {"type": "CREATED"|"UPDATED"|"FORCES"|"LOG"|"STATE"|"ERROR", "payload": ...}.
"""
import asyncio
import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Dict, Optional

log = logging.getLogger("sts_core.bridge")


class QueueRenderer:
    """Scene renderer that forwards notifications to the host's queue."""

    def __init__(self, action_queue: queue.Queue, forward_forces: bool = True):
        self.action_queue = action_queue
        self.forward_forces = forward_forces

    def entity_created(self, descriptor):
        self.action_queue.put({"type": "CREATED", "payload": descriptor})

    def entity_updated(self, delta):
        self.action_queue.put({"type": "UPDATED", "payload": delta})

    def forces_applied(self, forces):
        if self.forward_forces:
            self.action_queue.put({"type": "FORCES", "payload": forces})


class SceneBridge(threading.Thread):
    """
    Bridge thread: runs its own event loop; typed commands come in through
    submit_text(), voice commands through the listener when `with_microphone`.
    """

    def __init__(self, cfg: Dict[str, Any], action_queue: queue.Queue, provider=None,
                 with_microphone: bool = False, audio_source=None, transcriber=None,
                 run_simulation: bool = True):
        super().__init__(daemon=True)
        self.cfg = cfg
        self.action_queue = action_queue
        self.provider = provider
        self.with_microphone = with_microphone
        self.audio_source = audio_source
        self.transcriber = transcriber
        self.run_simulation = run_simulation

        self.dispatcher = None
        self.listener = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._running = False

    def run(self):
        self._running = True
        try:
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)
            self._loop.run_until_complete(self._run_session())
        except Exception as e:
            log.exception("[Bridge] session failed")
            self.action_queue.put({"type": "ERROR", "payload": str(e)})
        finally:
            self._running = False
            self._ready.set()  # unblock anyone still waiting
            if self._loop:
                self._loop.close()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout) and self._running

    def submit_text(self, text: str) -> Future:
        """Dispatch a typed command on the bridge loop; the Future resolves to its log entry."""
        if not self.wait_ready(5.0):
            raise RuntimeError("scene bridge is not running")
        return asyncio.run_coroutine_threadsafe(self.dispatcher.dispatch(text), self._loop)

    def stop(self):
        if self._loop is not None and self._stop_event is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._stop_event.set)

    @property
    def running(self):
        return self._running

    async def _run_session(self):
        from sts_core.dispatcher import CommandDispatcher
        from sts_core.simulation import SimulationLoop

        self._stop_event = asyncio.Event()
        renderer = QueueRenderer(self.action_queue)
        self.dispatcher = CommandDispatcher.from_config(self.cfg, provider=self.provider, renderer=renderer)
        self.dispatcher.on_entry = lambda entry: self.action_queue.put({"type": "LOG", "payload": entry})

        tasks = []
        try:
            if self.run_simulation:
                sim = SimulationLoop.from_config(self.cfg, self.dispatcher.scene)
                tasks.append(asyncio.create_task(sim.run(self._stop_event)))
            if self.with_microphone:
                await self._start_listener()

            self._ready.set()
            log.info("[Bridge] ready")
            await self._stop_event.wait()
        finally:
            if self.listener is not None:
                await self.listener.stop()
            self._stop_event.set()
            await asyncio.gather(*tasks, return_exceptions=True)
            log.info("[Bridge] stopped")

    async def _start_listener(self):
        from sts_core.audio import MicrophoneSource, WhisperStreamingTranscriber
        from sts_core.listening import ContinuousListener

        def on_state(old, new):
            self.action_queue.put({"type": "STATE", "payload": new.value})

        listener = ContinuousListener.from_config(
            self.cfg,
            self.dispatcher,
            self.audio_source or MicrophoneSource.from_config(self.cfg),
            self.transcriber or WhisperStreamingTranscriber.from_config(self.cfg),
            on_state_change=on_state,
        )
        await listener.start()
        self.listener = listener

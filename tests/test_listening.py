import asyncio

import numpy as np
import pytest

from sts_core.audio import TranscriptionResult
from sts_core.commands.schema import CommandLogEntry
from sts_core.errors import AudioSetupFailure, PermissionDenied, TranscriberSetupFailure
from sts_core.listening import ContinuousListener, ListeningState


class FakeAudio:
    def __init__(self, allow=True, fail_configure=False):
        self.allow = allow
        self.fail_configure = fail_configure
        self.configured = False
        self.closed = 0
        self._queue = None

    async def request_permission(self):
        return self.allow

    def configure(self):
        if self.fail_configure:
            raise AudioSetupFailure("no input device")
        self._queue = asyncio.Queue()
        self.configured = True

    async def stream(self):
        while True:
            block = await self._queue.get()
            if block is None:
                return
            yield block

    def close(self):
        self.closed += 1
        if self._queue is not None:
            self._queue.put_nowait(None)


class FakeTranscriber:
    def __init__(self, fail_setup=False):
        self.fail_setup = fail_setup
        self.setup_called = False
        self.finished = False
        self.fed = []
        self._results = None

    async def setup(self):
        self.setup_called = True
        if self.fail_setup:
            raise TranscriberSetupFailure("language not supported")
        self._results = asyncio.Queue()

    async def feed(self, block):
        self.fed.append(block)

    async def results(self):
        while True:
            item = await self._results.get()
            if item is None:
                return
            yield item

    async def finish(self):
        self.finished = True
        if self._results is not None:
            await self._results.put(None)

    def say(self, text, final=True):
        self._results.put_nowait(TranscriptionResult(text, final))


class FakeDispatcher:
    """Scripted (success, retryable) outcomes; optionally parks every call on `gate`."""

    def __init__(self, outcomes=None, gate=None):
        self.outcomes = list(outcomes or [])
        self.gate = gate
        self.calls = []
        self.completed = []

    async def dispatch(self, text):
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        success, retryable = self.outcomes.pop(0) if self.outcomes else (True, False)
        self.completed.append(text)
        return CommandLogEntry("creation", text, "ok" if success else "failed", success, retryable=retryable)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _listener(dispatcher=None, audio=None, transcriber=None, **kwargs):
    return ContinuousListener(dispatcher or FakeDispatcher(), audio or FakeAudio(),
                              transcriber or FakeTranscriber(), **kwargs)


async def _settle(listener, timeout=2.0):
    """Wait until no command is in flight."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while listener.state is ListeningState.PROCESSING:
        if loop.time() > deadline:
            raise AssertionError("listener stuck in processing")
        await asyncio.sleep(0.01)
    await asyncio.sleep(0)


# ---------------- start / stop ----------------

def test_start_and_stop():
    changes = []
    audio, transcriber = FakeAudio(), FakeTranscriber()
    listener = _listener(audio=audio, transcriber=transcriber,
                         on_state_change=lambda old, new: changes.append(new))

    async def go():
        await listener.start()
        assert listener.is_listening
        assert audio.configured and transcriber.setup_called
        await listener.stop()

    asyncio.run(go())
    assert changes == [ListeningState.INITIALIZING, ListeningState.LISTENING, ListeningState.IDLE]
    assert audio.closed >= 1
    assert transcriber.finished


def test_permission_denied_goes_back_to_idle():
    audio, transcriber = FakeAudio(allow=False), FakeTranscriber()
    listener = _listener(audio=audio, transcriber=transcriber)
    with pytest.raises(PermissionDenied):
        asyncio.run(listener.start())
    assert listener.state is ListeningState.IDLE
    assert not audio.configured
    assert not transcriber.setup_called


def test_audio_failure_goes_back_to_idle():
    listener = _listener(audio=FakeAudio(fail_configure=True))
    with pytest.raises(AudioSetupFailure):
        asyncio.run(listener.start())
    assert listener.state is ListeningState.IDLE


def test_transcriber_failure_releases_the_microphone():
    audio = FakeAudio()
    listener = _listener(audio=audio, transcriber=FakeTranscriber(fail_setup=True))
    with pytest.raises(TranscriberSetupFailure):
        asyncio.run(listener.start())
    assert listener.state is ListeningState.IDLE
    assert audio.closed == 1


def test_toggle():
    listener = _listener()

    async def go():
        await listener.toggle()
        assert listener.state is ListeningState.LISTENING
        await listener.toggle()
        assert listener.state is ListeningState.IDLE

    asyncio.run(go())


def test_audio_blocks_reach_the_transcriber():
    audio, transcriber = FakeAudio(), FakeTranscriber()
    listener = _listener(audio=audio, transcriber=transcriber)

    async def go():
        await listener.start()
        audio._queue.put_nowait(np.zeros(160, dtype=np.int16))
        await asyncio.sleep(0.05)
        await listener.stop()

    asyncio.run(go())
    assert len(transcriber.fed) == 1


# ---------------- final results ----------------

def test_final_result_is_dispatched_cleaned():
    dispatcher, transcriber = FakeDispatcher(), FakeTranscriber()
    listener = _listener(dispatcher, transcriber=transcriber)

    async def go():
        await listener.start()
        transcriber.say("  Make A Red Cube  ")
        await asyncio.sleep(0.05)
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["make a red cube"]
    assert not listener.has_accumulated_command
    assert listener.finalized_transcript == ""


def test_retryable_failure_keeps_the_buffer():
    dispatcher = FakeDispatcher(outcomes=[(False, True)])
    listener = _listener(dispatcher)

    async def go():
        await listener.start()
        listener.handle_final("make a")
        await _settle(listener)
        assert listener.current_command == "make a"
        listener.handle_final("red cube")
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["make a", "make a red cube"]
    assert not listener.has_accumulated_command


def test_non_retryable_failure_clears_the_buffer():
    dispatcher = FakeDispatcher(outcomes=[(False, False)])
    listener = _listener(dispatcher)

    async def go():
        await listener.start()
        listener.handle_final("put it there")
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["put it there"]
    assert not listener.has_accumulated_command


def test_final_during_processing_waits_for_the_running_command():
    dispatcher = FakeDispatcher()
    listener = _listener(dispatcher)

    async def go():
        dispatcher.gate = asyncio.Event()
        await listener.start()
        listener.handle_final("make a red cube")
        await asyncio.sleep(0.01)
        listener.handle_final("move it right")
        await asyncio.sleep(0.01)
        # one command in flight, the second is only buffered
        assert dispatcher.calls == ["make a red cube"]
        assert listener.state is ListeningState.PROCESSING
        dispatcher.gate.set()
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["make a red cube", "move it right"]
    assert not listener.has_accumulated_command


def test_stop_lets_the_running_command_finish():
    dispatcher = FakeDispatcher()
    listener = _listener(dispatcher)

    async def go():
        dispatcher.gate = asyncio.Event()
        await listener.start()
        listener.handle_final("make a red cube")
        await asyncio.sleep(0.01)
        stopping = asyncio.create_task(listener.stop())
        await asyncio.sleep(0.05)
        assert not stopping.done()
        dispatcher.gate.set()
        await asyncio.wait_for(stopping, timeout=1.0)

    asyncio.run(go())
    assert dispatcher.completed == ["make a red cube"]
    assert listener.state is ListeningState.IDLE


def test_transcript_views():
    listener = _listener(dispatcher=FakeDispatcher())
    listener.volatile_transcript = "move it"
    listener.finalized_transcript = "make a red cube"
    assert listener.current_transcript == "make a red cube move it"
    assert not listener.has_accumulated_command


# ---------------- volatile fast path ----------------

def test_volatile_ignored_when_disabled():
    dispatcher = FakeDispatcher()
    listener = _listener(dispatcher)

    async def go():
        await listener.start()
        listener.handle_volatile("make a red cube")
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == []
    assert listener.volatile_transcript == "make a red cube"


def test_volatile_too_short_is_ignored():
    dispatcher = FakeDispatcher()
    listener = _listener(dispatcher, volatile_enabled=True)

    async def go():
        await listener.start()
        listener.handle_volatile("ok")
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == []


def test_volatile_cooldown_boundary():
    dispatcher, clock = FakeDispatcher(), FakeClock()
    listener = _listener(dispatcher, volatile_enabled=True, volatile_cooldown_s=0.8, clock=clock)

    async def go():
        await listener.start()
        listener.handle_volatile("make a red cube")
        await _settle(listener)
        clock.now = 0.79
        listener.handle_volatile("move it right")
        await _settle(listener)
        assert len(dispatcher.calls) == 1
        clock.now = 0.8
        listener.handle_volatile("move it right")
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["make a red cube", "move it right"]


def test_successful_volatile_swallows_the_matching_final():
    dispatcher = FakeDispatcher()
    listener = _listener(dispatcher, volatile_enabled=True)

    async def go():
        await listener.start()
        listener.handle_volatile("Make a red cube")
        await _settle(listener)
        listener.handle_final("Make a red cube.")
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["make a red cube"]
    assert not listener.has_accumulated_command


def test_failed_volatile_leaves_the_final_to_run():
    dispatcher = FakeDispatcher(outcomes=[(False, True)])
    listener = _listener(dispatcher, volatile_enabled=True)

    async def go():
        await listener.start()
        listener.handle_volatile("make a red cube")
        await _settle(listener)
        listener.handle_final("make a red cube")
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["make a red cube", "make a red cube"]


def test_swallow_only_applies_once():
    dispatcher = FakeDispatcher()
    listener = _listener(dispatcher, volatile_enabled=True)

    async def go():
        await listener.start()
        listener.handle_volatile("make a red cube")
        await _settle(listener)
        listener.handle_final("make a red cube")
        listener.handle_final("make a red cube")
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["make a red cube", "make a red cube"]


def test_finals_after_a_speculative_command_are_still_dispatched():
    dispatcher = FakeDispatcher()
    listener = _listener(dispatcher, volatile_enabled=True)

    async def go():
        dispatcher.gate = asyncio.Event()
        await listener.start()
        listener.handle_volatile("make a red cube")
        await asyncio.sleep(0.01)
        listener.handle_final("make a red cube")
        listener.handle_final("move it left")
        dispatcher.gate.set()
        await asyncio.sleep(0.01)
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    assert dispatcher.calls == ["make a red cube", "move it left"]
    assert not listener.has_accumulated_command


def test_stop_cancels_a_speculative_command():
    dispatcher = FakeDispatcher()
    listener = _listener(dispatcher, volatile_enabled=True)

    async def go():
        dispatcher.gate = asyncio.Event()
        await listener.start()
        listener.handle_volatile("make a red cube")
        await asyncio.sleep(0.01)
        assert listener.state is ListeningState.PROCESSING
        await asyncio.wait_for(listener.stop(), timeout=1.0)

    asyncio.run(go())
    assert dispatcher.calls == ["make a red cube"]
    assert dispatcher.completed == []
    assert listener.state is ListeningState.IDLE


# ---------------- with the real dispatcher ----------------

def test_spoken_session_builds_the_scene(make_dispatcher):
    dispatcher = make_dispatcher()
    transcriber = FakeTranscriber()
    listener = _listener(dispatcher, transcriber=transcriber)

    async def go():
        await listener.start()
        transcriber.say("Make a red cube.")
        await asyncio.sleep(0.05)
        await _settle(listener)
        transcriber.say("Move it right.")
        await asyncio.sleep(0.05)
        await _settle(listener)
        await listener.stop()

    asyncio.run(go())
    (cube,) = dispatcher.scene.entities
    assert cube.color == "red"
    assert [e.kind for e in dispatcher.history] == ["creation", "movement"]
    assert all(e.success for e in dispatcher.history)

# sts_core/audio.py
# Microphone capture (sounddevice), utterance segmentation (WebRTC VAD) and
# streaming transcription (faster-whisper). Heavy imports stay inside functions
# so the rest of the package works without an audio stack.

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, List, Optional, Protocol, Tuple

import numpy as np

from .errors import AudioSetupFailure, TranscriberSetupFailure

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    is_final: bool


class AudioSource(Protocol):
    async def request_permission(self) -> bool: ...
    def configure(self) -> None: ...
    def stream(self) -> AsyncIterator[np.ndarray]: ...
    def close(self) -> None: ...


class StreamingTranscriber(Protocol):
    async def setup(self) -> None: ...
    async def feed(self, block: np.ndarray) -> None: ...
    def results(self) -> AsyncIterator[TranscriptionResult]: ...
    async def finish(self) -> None: ...


# ---------------- Microphone ----------------

class MicrophoneSource:
    """
    int16 mono blocks from the default (or configured) input device. The
    PortAudio callback thread hands blocks to the event loop with
    call_soon_threadsafe; the queue drops the oldest block when it overflows.
    """

    def __init__(self, sample_rate: int = 16000, block_sec: float = 0.2, device=None, max_pending: int = 50):
        self.sample_rate = sample_rate
        self.block_samples = int(block_sec * sample_rate)
        self.device = device
        self.max_pending = max_pending
        self._stream = None
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

    @classmethod
    def from_config(cls, cfg: Dict) -> "MicrophoneSource":
        a = cfg.get("audio", {}) or {}
        return cls(int(a.get("sample_rate", 16000)), float(a.get("block_sec", 0.2)), a.get("device"))

    async def request_permission(self) -> bool:
        """There is no OS prompt here: access means an input device can be queried."""
        import sounddevice as sd

        try:
            info = await asyncio.to_thread(sd.query_devices, self.device, "input")
        except (sd.PortAudioError, ValueError) as e:
            log.warning("[Mic] no usable input device: %s", e)
            return False
        log.info("[Mic] input device: %s", info.get("name", "unknown"))
        return int(info.get("max_input_channels", 0)) > 0

    def configure(self) -> None:
        import sounddevice as sd

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.max_pending)
        self._closed = False

        def callback(indata, frames, time_info, status):
            if status:
                log.debug("[Mic] %s", status)
            block = indata.reshape(-1).copy()
            try:
                self._loop.call_soon_threadsafe(self._push, block)
            except RuntimeError:
                # event loop already closed during shutdown
                pass

        try:
            self._stream = sd.InputStream(device=self.device, samplerate=self.sample_rate, channels=1,
                                          dtype="int16", blocksize=self.block_samples, callback=callback)
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            raise AudioSetupFailure(f"could not open microphone: {e}") from e

    def _push(self, block) -> None:
        if self._queue is None or self._closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(block)

    async def stream(self):
        if self._queue is None:
            raise AudioSetupFailure("microphone not configured")
        while True:
            block = await self._queue.get()
            if block is None:
                return
            yield block

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                log.warning("[Mic] error closing stream: %s", e)
            self._stream = None
        if self._queue is not None:
            if self._queue.full():
                self._queue.get_nowait()
            self._queue.put_nowait(None)


# ---------------- Segmentation ----------------

class UtteranceSegmenter:
    """
    Incremental version of record-until-silence: blocks go in, ("partial", audio)
    events come out every `partial_every_s` while someone is talking, and one
    ("final", audio) once `silence_hold` seconds of silence follow at least
    `min_spoken` seconds of speech. Blips shorter than that are dropped.
    """

    def __init__(self, sample_rate: int = 16000, frame_ms: int = 30, aggressiveness: int = 2,
                 silence_hold: float = 0.6, min_spoken: float = 0.3, partial_every_s: float = 0.6,
                 max_utterance_s: float = 8.0, is_speech: Optional[Callable[[bytes], bool]] = None):
        self.sample_rate = sample_rate
        self.frame_samples = int(sample_rate * frame_ms / 1000.0)
        self.silence_hold = silence_hold
        self.min_spoken = min_spoken
        self.partial_every_s = partial_every_s
        self.max_utterance_s = max_utterance_s
        if is_speech is None:
            import webrtcvad

            vad = webrtcvad.Vad(aggressiveness)
            is_speech = lambda frame: vad.is_speech(frame, sample_rate)  # noqa: E731
        self._is_speech = is_speech
        self._reset()

    @classmethod
    def from_config(cls, cfg: Dict, is_speech=None) -> "UtteranceSegmenter":
        a = cfg.get("audio", {}) or {}
        return cls(
            sample_rate=int(a.get("sample_rate", 16000)),
            frame_ms=int(a.get("vad_frame_ms", 30)),
            aggressiveness=int(a.get("vad_aggressiveness", 2)),
            silence_hold=float(a.get("silence_hold", 0.6)),
            min_spoken=float(a.get("min_spoken", 0.3)),
            partial_every_s=float(a.get("partial_every_s", 0.6)),
            max_utterance_s=float(a.get("max_utterance_s", 8.0)),
            is_speech=is_speech,
        )

    def _reset(self) -> None:
        self._frames: List[np.ndarray] = []
        self._total = 0.0
        self._spoken = 0.0
        self._silence = 0.0
        self._last_partial = 0.0

    def block_has_voice(self, block: np.ndarray) -> bool:
        """True if any VAD frame inside the block is speech."""
        frame_bytes = self.frame_samples * 2  # int16
        raw = block.astype(np.int16).tobytes()
        if self.frame_samples <= 0 or len(raw) < frame_bytes:
            return False
        for start in range(0, len(raw) - frame_bytes + 1, frame_bytes):
            if self._is_speech(raw[start:start + frame_bytes]):
                return True
        return False

    def _audio(self) -> np.ndarray:
        return np.concatenate(self._frames).astype(np.int16)

    def push(self, block: np.ndarray) -> List[Tuple[str, np.ndarray]]:
        block = np.asarray(block).reshape(-1)
        voiced = self.block_has_voice(block)
        if not self._frames and not voiced:
            return []

        dur = len(block) / float(self.sample_rate)
        self._frames.append(block)
        self._total += dur
        if voiced:
            self._spoken += dur
            self._silence = 0.0
        else:
            self._silence += dur

        # small epsilon: 3 x 0.2 s blocks must count as 0.6 s
        if self._silence + 1e-9 >= self.silence_hold:
            events = [("final", self._audio())] if self._spoken + 1e-9 >= self.min_spoken else []
            self._reset()
            return events
        if self._total + 1e-9 >= self.max_utterance_s:
            events = [("final", self._audio())]
            self._reset()
            return events
        if voiced and self._total - self._last_partial + 1e-9 >= self.partial_every_s:
            self._last_partial = self._total
            return [("partial", self._audio())]
        return []

    def flush(self) -> List[Tuple[str, np.ndarray]]:
        events = [("final", self._audio())] if self._frames and self._spoken + 1e-9 >= self.min_spoken else []
        self._reset()
        return events


# ---------------- Transcription ----------------

class WhisperStreamingTranscriber:
    """
    Volatile + final transcription on top of faster-whisper. Partial audio is
    re-transcribed as the utterance grows (volatile results); the closing
    segment gives the final result.
    """

    def __init__(self, model_name: str = "small", language: str = "en", device: str = "cpu",
                 compute_type: Optional[str] = None, beam_size: int = 1,
                 segmenter: Optional[UtteranceSegmenter] = None, segmenter_cfg: Optional[Dict] = None,
                 model=None):
        self.model_name = model_name
        self.language = language
        self.device = device
        self.compute_type = compute_type
        self.beam_size = beam_size
        self.segmenter = segmenter
        self._segmenter_cfg = segmenter_cfg or {}
        self._model = model
        self._results: Optional[asyncio.Queue] = None

    @classmethod
    def from_config(cls, cfg: Dict) -> "WhisperStreamingTranscriber":
        w = cfg.get("whisper", {}) or {}
        return cls(
            model_name=w.get("model", "small"),
            language=(cfg.get("listening", {}) or {}).get("language", "en"),
            device=w.get("device", "cpu"),
            compute_type=w.get("compute_type"),
            beam_size=int(w.get("beam_size", 1)),
            segmenter_cfg=cfg,
        )

    def _load_model(self):
        from faster_whisper import WhisperModel

        compute_type = self.compute_type or ("int8" if self.device == "cpu" else "float16")
        log.info("[Whisper] loading %s on %s (%s)", self.model_name, self.device, compute_type)
        return WhisperModel(self.model_name, device=self.device, compute_type=compute_type)

    async def setup(self) -> None:
        if self._model is None:
            try:
                # first use downloads the model
                self._model = await asyncio.to_thread(self._load_model)
            except Exception as e:
                raise TranscriberSetupFailure(f"could not load whisper model {self.model_name!r}: {e}") from e

        supported = getattr(self._model, "supported_languages", None)
        if self.language and supported and self.language not in supported:
            raise TranscriberSetupFailure(f"language {self.language!r} not supported by {self.model_name}")

        if self.segmenter is None:
            try:
                self.segmenter = UtteranceSegmenter.from_config(self._segmenter_cfg)
            except ImportError as e:
                raise TranscriberSetupFailure(f"webrtcvad not installed: {e}") from e
        self._results = asyncio.Queue()

    def _run_model(self, audio: np.ndarray) -> str:
        samples = audio.astype(np.float32) / 32768.0
        segments, _info = self._model.transcribe(samples, language=self.language or None,
                                                 beam_size=self.beam_size, vad_filter=False)
        return "".join(s.text for s in segments).strip()

    async def _transcribe(self, audio: np.ndarray, is_final: bool) -> None:
        try:
            text = await asyncio.to_thread(self._run_model, audio)
        except Exception as e:
            log.warning("[Whisper] transcription failed (%s result dropped): %s",
                        "final" if is_final else "volatile", e)
            return
        if text:
            await self._results.put(TranscriptionResult(text, is_final))

    async def feed(self, block: np.ndarray) -> None:
        for event, audio in self.segmenter.push(block):
            await self._transcribe(audio, is_final=event == "final")

    async def results(self):
        if self._results is None:
            raise TranscriberSetupFailure("transcriber not set up")
        while True:
            item = await self._results.get()
            if item is None:
                return
            yield item

    async def finish(self) -> None:
        if self._results is None:
            return
        if self.segmenter is not None:
            for _event, audio in self.segmenter.flush():
                await self._transcribe(audio, is_final=True)
        await self._results.put(None)

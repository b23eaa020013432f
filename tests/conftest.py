import asyncio

import numpy as np
import pytest

from voice_assistant.domain.errors import DeviceError, DownstreamError, StreamConnectionError
from voice_assistant.domain.frame_relay import FrameRelay
from voice_assistant.domain.session import SessionOrchestrator
from voice_assistant.ports.audio import FrameSink
from voice_assistant.ports.transcriber import (
    ErrorCallback,
    TranscriptCallback,
    TranscriptEvent,
    TranscriptionConfig,
)


SAMPLE_RATE = 16000
FRAME_DURATION_MS = 32
FRAME_SIZE = int(SAMPLE_RATE * FRAME_DURATION_MS / 1000)


def generate_sine_frame(
    frequency: float = 440.0,
    amplitude: float = 0.5,
    frame_size: int = FRAME_SIZE,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    t = np.arange(frame_size) / sample_rate
    return (np.sin(2 * np.pi * frequency * t) * amplitude).astype(np.float32)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.005)


class FakeTranscriber:
    def __init__(self, fail_open: bool = False) -> None:
        self._fail_open = fail_open
        self._open = False
        self._event_callback: TranscriptCallback | None = None
        self._error_callback: ErrorCallback | None = None
        self.open_count = 0
        self.close_count = 0
        self.keepalive_count = 0
        self.sent_frames: list[bytes] = []
        self.last_config: TranscriptionConfig | None = None

    @property
    def is_open(self) -> bool:
        return self._open

    def on_event(self, callback: TranscriptCallback) -> None:
        self._event_callback = callback

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callback = callback

    async def open(self, config: TranscriptionConfig) -> None:
        self.last_config = config
        if self._fail_open:
            raise StreamConnectionError("handshake failed")
        self.open_count += 1
        self._open = True

    async def send(self, frame: bytes) -> None:
        if not self._open:
            return
        self.sent_frames.append(frame)

    async def keep_alive(self) -> bool:
        if not self._open:
            return False
        self.keepalive_count += 1
        return True

    async def close(self) -> None:
        if not self._open:
            return
        self.close_count += 1
        self._open = False

    def drop_connection(self) -> None:
        self._open = False

    def restore_connection(self) -> None:
        self._open = True

    async def emit(self, text: str, is_final: bool, ends_utterance: bool = True) -> None:
        await self._event_callback(TranscriptEvent(text=text, is_final=is_final, ends_utterance=ends_utterance))

    async def emit_error(self, error) -> None:
        await self._error_callback(error)


class FakeAudioCapture:
    def __init__(self, fail_open: bool = False, fail_close: bool = False) -> None:
        self._fail_open = fail_open
        self._fail_close = fail_close
        self._sink: FrameSink | None = None
        self.device_open = False
        self.running = False
        self.open_count = 0

    @property
    def sample_rate(self) -> int:
        return SAMPLE_RATE

    async def open(self) -> None:
        if self._fail_open:
            raise DeviceError("Microphone permission denied")
        self.open_count += 1
        self.device_open = True

    def start(self, sink: FrameSink) -> None:
        self._sink = sink
        self.running = True

    def stop(self) -> None:
        self._sink = None
        self.running = False

    async def close(self) -> None:
        if self._fail_close:
            raise DeviceError("device busy")
        self.device_open = False

    def push(self, samples: np.ndarray) -> None:
        if self._sink is not None:
            self._sink(samples)


class FakeAudioPlayback:
    def __init__(self) -> None:
        self.played: list[bytes] = []
        self.started = False
        self.cancel_count = 0

    async def start(self) -> None:
        self.started = True

    async def play(self, audio: bytes) -> None:
        self.played.append(audio)

    async def cancel(self) -> None:
        self.cancel_count += 1

    async def stop(self) -> None:
        self.started = False


class FakeCompletion:
    def __init__(self, fail_on: set[str] | None = None) -> None:
        self._fail_on = fail_on or set()
        self.requests: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def complete(self, text: str) -> str:
        self.requests.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if text in self._fail_on:
                raise DownstreamError("Failed to get LLM response: HTTP error 500")
            return f"reply to {text}"
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


class FakeSynthesizer:
    def __init__(self, fail: bool = False) -> None:
        self._fail = fail
        self.requests: list[str] = []
        self.closed = False

    async def synthesize(self, text: str) -> bytes:
        self.requests.append(text)
        if self._fail:
            raise DownstreamError("Failed to convert text to speech: HTTP error 503")
        await asyncio.sleep(0)
        return text.encode()

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def transcription_config():
    return TranscriptionConfig(api_key="test-key")


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def fake_capture():
    return FakeAudioCapture()


@pytest.fixture
def fake_playback():
    return FakeAudioPlayback()


@pytest.fixture
def fake_completion():
    return FakeCompletion()


@pytest.fixture
def fake_synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def make_session(
    transcription_config,
    fake_transcriber,
    fake_capture,
    fake_playback,
    fake_completion,
    fake_synthesizer,
):
    def _make(**overrides) -> SessionOrchestrator:
        kwargs = dict(
            capture=fake_capture,
            playback=fake_playback,
            transcriber=fake_transcriber,
            completion=fake_completion,
            synthesizer=fake_synthesizer,
            transcription_config=transcription_config,
            relay=FrameRelay(max_frames=8),
        )
        kwargs.update(overrides)
        return SessionOrchestrator(**kwargs)

    return _make

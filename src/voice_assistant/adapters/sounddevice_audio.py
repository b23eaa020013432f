import asyncio
import logging
import os

import numpy as np
import sounddevice as sd

from voice_assistant.domain.errors import DeviceError
from voice_assistant.ports.audio import FrameSink

logger = logging.getLogger(__name__)


class SounddeviceCapture:
    def __init__(
        self,
        device: str | int | None = None,
        sample_rate: int = 16000,
        frame_duration_ms: int = 32,
        gain: float = 1.0,
    ) -> None:
        self._device = device
        self._sample_rate = sample_rate
        self._frame_duration_ms = frame_duration_ms
        self._frame_size = int(sample_rate * frame_duration_ms / 1000)
        self._gain = gain
        self._stream: sd.InputStream | None = None
        self._sink: FrameSink | None = None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def frame_size(self) -> int:
        return self._frame_size

    async def open(self) -> None:
        if self._stream is not None:
            return
        device = self._resolve_device()
        try:
            self._stream = sd.InputStream(
                device=device,
                samplerate=self._sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self._frame_size,
                callback=self._audio_callback,
            )
        except (sd.PortAudioError, ValueError) as exc:
            raise DeviceError(f"Microphone unavailable: {exc}") from exc
        logger.info(
            "Microphone opened (device=%s, rate=%d, frame=%dms)",
            device, self._sample_rate, self._frame_duration_ms,
        )

    def start(self, sink: FrameSink) -> None:
        if self._stream is None:
            raise DeviceError("Microphone is not open")
        self._sink = sink
        try:
            self._stream.start()
        except sd.PortAudioError as exc:
            self._sink = None
            raise DeviceError(f"Failed to start audio capture: {exc}") from exc

    def stop(self) -> None:
        self._sink = None
        if self._stream is not None and self._stream.active:
            self._stream.stop()

    async def close(self) -> None:
        self._sink = None
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()
            logger.info("Microphone released")

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.warning("Audio capture status: %s", status)
        sink = self._sink
        if sink is None:
            return
        samples = indata[:, 0]
        if self._gain != 1.0:
            samples = samples * self._gain
        sink(samples)

    def _resolve_device(self) -> str | int | None:
        if self._device is None or self._device == "":
            return None
        if isinstance(self._device, int):
            return self._device
        try:
            return int(self._device)
        except ValueError:
            pass
        for i, dev in enumerate(sd.query_devices()):
            if self._device.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                logger.info("Resolved device '%s' -> %d (%s)", self._device, i, dev["name"])
                return i
        os.environ["PIPEWIRE_NODE"] = self._device
        logger.info("Device '%s' not in PortAudio, set PIPEWIRE_NODE for PipeWire routing", self._device)
        return None


class SounddevicePlayback:
    def __init__(self, sample_rate: int = 24000, chunk_ms: int = 100) -> None:
        self._sample_rate = sample_rate
        self._chunk_samples = int(sample_rate * chunk_ms / 1000)
        self._stream: sd.OutputStream | None = None
        self._cancelled = False

    async def start(self) -> None:
        if self._stream is not None:
            return
        try:
            self._stream = sd.OutputStream(
                samplerate=self._sample_rate,
                channels=1,
                dtype="int16",
            )
            self._stream.start()
        except sd.PortAudioError as exc:
            self._stream = None
            raise DeviceError(f"Audio output unavailable: {exc}") from exc

    async def play(self, audio: bytes) -> None:
        self._cancelled = False
        samples = np.frombuffer(audio[: len(audio) - len(audio) % 2], dtype="<i2")
        for offset in range(0, len(samples), self._chunk_samples):
            if self._cancelled or self._stream is None:
                break
            chunk = samples[offset : offset + self._chunk_samples]
            try:
                await asyncio.to_thread(self._stream.write, chunk.reshape(-1, 1))
            except sd.PortAudioError:
                logger.warning("Playback write error")
                break

    async def cancel(self) -> None:
        self._cancelled = True
        if self._stream is not None and self._stream.active:
            self._stream.abort()

    async def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()

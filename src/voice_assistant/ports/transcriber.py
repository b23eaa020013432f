from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from voice_assistant.domain.errors import ConfigError, TransportError


@dataclass(frozen=True)
class TranscriptEvent:
    text: str
    is_final: bool
    ends_utterance: bool = True


@dataclass(frozen=True)
class TranscriptionConfig:
    api_key: str = field(default="", repr=False)
    model: str = "nova-2"
    language: str = "en-US"
    sample_rate: int = 16000
    channels: int = 1
    encoding: str = "linear16"
    punctuate: bool = True
    endpointing: bool = True
    interim_results: bool = True

    def validate(self) -> None:
        if not self.api_key:
            raise ConfigError("Transcription API key is missing")
        if self.sample_rate <= 0:
            raise ConfigError(f"Invalid sample rate: {self.sample_rate}")
        if self.channels != 1:
            raise ConfigError(f"Only mono capture is supported (channels={self.channels})")
        if not self.model or not self.language or not self.encoding:
            raise ConfigError("Transcription model, language and encoding are required")


TranscriptCallback = Callable[[TranscriptEvent], Awaitable[None]]
ErrorCallback = Callable[[TransportError], Awaitable[None]]


class TranscriberPort(Protocol):
    @property
    def is_open(self) -> bool: ...
    async def open(self, config: TranscriptionConfig) -> None: ...
    async def send(self, frame: bytes) -> None: ...
    def on_event(self, callback: TranscriptCallback) -> None: ...
    def on_error(self, callback: ErrorCallback) -> None: ...
    async def keep_alive(self) -> bool: ...
    async def close(self) -> None: ...

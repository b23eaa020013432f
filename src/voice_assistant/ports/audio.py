from collections.abc import Callable
from typing import Protocol

import numpy as np

FrameSink = Callable[[np.ndarray], None]


class AudioCapturePort(Protocol):
    @property
    def sample_rate(self) -> int: ...
    async def open(self) -> None: ...
    def start(self, sink: FrameSink) -> None: ...
    def stop(self) -> None: ...
    async def close(self) -> None: ...


class AudioPlaybackPort(Protocol):
    async def start(self) -> None: ...
    async def play(self, audio: bytes) -> None: ...
    async def cancel(self) -> None: ...
    async def stop(self) -> None: ...

from typing import Protocol


class SynthesizerPort(Protocol):
    async def synthesize(self, text: str) -> bytes: ...
    async def aclose(self) -> None: ...

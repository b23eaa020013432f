from typing import Protocol


class CompletionPort(Protocol):
    async def complete(self, text: str) -> str: ...
    async def aclose(self) -> None: ...

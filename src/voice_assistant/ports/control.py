import asyncio
from dataclasses import dataclass, field
from typing import Protocol, AsyncIterator


@dataclass(frozen=True)
class ControlCommand:
    action: str
    reply: asyncio.Future | None = field(default=None, compare=False, repr=False)

    def respond(self, data: dict) -> None:
        if self.reply is not None and not self.reply.done():
            self.reply.set_result(data)


class ControlPort(Protocol):
    async def start(self) -> None: ...
    async def stop(self) -> None: ...
    def commands(self) -> AsyncIterator[ControlCommand]: ...

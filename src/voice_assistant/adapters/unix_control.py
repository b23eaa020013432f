import asyncio
import json
import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path

from voice_assistant.ports.control import ControlCommand

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "/tmp/voice-assistant.sock"
REQUEST_TIMEOUT_SECONDS = 5.0
RESPONSE_TIMEOUT_SECONDS = 10.0


def _encode(message: dict) -> bytes:
    return (json.dumps(message) + "\n").encode()


class UnixSocketControlServer:
    """One JSON line in, one JSON line out per connection.

    Each request becomes a ``ControlCommand`` on ``commands()``; the
    connection stays open until the daemon answers through
    ``ControlCommand.respond`` or the reply times out.
    """

    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH) -> None:
        self._socket_file = Path(socket_path)
        self._server: asyncio.Server | None = None
        self._pending: asyncio.Queue[ControlCommand] = asyncio.Queue()

    async def start(self) -> None:
        self._socket_file.unlink(missing_ok=True)
        self._server = await asyncio.start_unix_server(self._serve, path=str(self._socket_file))
        os.chmod(self._socket_file, 0o600)
        logger.info("Control socket listening at %s", self._socket_file)

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server is not None:
            server.close()
            await server.wait_closed()
        self._socket_file.unlink(missing_ok=True)

    async def commands(self) -> AsyncIterator[ControlCommand]:
        while True:
            yield await self._pending.get()

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            raw = await asyncio.wait_for(reader.readline(), timeout=REQUEST_TIMEOUT_SECONDS)
            if raw:
                writer.write(_encode(await self._dispatch(raw)))
                await writer.drain()
        except asyncio.TimeoutError:
            logger.warning("Control client sent no request in time")
        except Exception:
            logger.exception("Error handling control client")
        finally:
            writer.close()
            await writer.wait_closed()

    async def _dispatch(self, raw: bytes) -> dict:
        try:
            action = json.loads(raw)["action"]
        except (ValueError, TypeError, KeyError):
            logger.warning("Malformed control request: %r", raw[:80])
            return {"status": "error", "error": "Malformed request"}

        reply = asyncio.get_running_loop().create_future()
        await self._pending.put(ControlCommand(action=str(action), reply=reply))
        try:
            return await asyncio.wait_for(reply, timeout=RESPONSE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("No reply to control command %s", action)
            return {"status": "error", "action": action, "error": "No response from daemon"}


class UnixSocketControlClient:
    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH) -> None:
        self._socket_path = socket_path

    async def send_command(self, action: str) -> dict:
        reader, writer = await asyncio.open_unix_connection(self._socket_path)
        try:
            writer.write(_encode({"action": action}))
            await writer.drain()
            raw = await asyncio.wait_for(
                reader.readline(), timeout=RESPONSE_TIMEOUT_SECONDS + REQUEST_TIMEOUT_SECONDS
            )
            return json.loads(raw)
        finally:
            writer.close()
            await writer.wait_closed()

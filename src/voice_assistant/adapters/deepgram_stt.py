import asyncio
import logging

from deepgram import AsyncDeepgramClient
from deepgram.extensions.types.sockets import ListenV1ControlMessage
from deepgram.extensions.types.sockets.listen_v1_results_event import ListenV1ResultsEvent
from deepgram.listen.v1.socket_client import EventType

from voice_assistant.domain.errors import StreamConnectionError, TransportError
from voice_assistant.ports.transcriber import (
    ErrorCallback,
    TranscriptCallback,
    TranscriptEvent,
    TranscriptionConfig,
)

logger = logging.getLogger(__name__)


def _flag(value: bool) -> str:
    return "true" if value else "false"


class DeepgramStreamingTranscriber:
    def __init__(self) -> None:
        self._socket = None
        self._context_manager = None
        self._listener_task: asyncio.Task | None = None
        self._open = False
        self._closing = False
        self._event_callback: TranscriptCallback | None = None
        self._error_callback: ErrorCallback | None = None

    @property
    def is_open(self) -> bool:
        return self._open

    def on_event(self, callback: TranscriptCallback) -> None:
        self._event_callback = callback

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callback = callback

    async def open(self, config: TranscriptionConfig) -> None:
        if self._open:
            await self.close()

        client = AsyncDeepgramClient(api_key=config.api_key)
        self._context_manager = client.listen.v1.connect(
            model=config.model,
            language=config.language,
            encoding=config.encoding,
            sample_rate=str(config.sample_rate),
            channels=str(config.channels),
            punctuate=_flag(config.punctuate),
            endpointing=_flag(config.endpointing),
            interim_results=_flag(config.interim_results),
        )
        try:
            self._socket = await self._context_manager.__aenter__()
        except Exception as exc:
            self._context_manager = None
            raise StreamConnectionError(f"Deepgram handshake failed: {exc}") from exc

        self._socket.on(EventType.MESSAGE, self._on_message)
        self._socket.on(EventType.ERROR, self._on_error)
        self._closing = False
        self._open = True
        self._listener_task = asyncio.create_task(self._listen())
        logger.info("Deepgram session opened (model=%s, language=%s)", config.model, config.language)

    async def send(self, frame: bytes) -> None:
        if not self._open or self._socket is None:
            return
        try:
            await self._socket.send_media(frame)
        except Exception as exc:
            await self._report(TransportError(f"Failed to send audio to Deepgram: {exc}"))

    async def keep_alive(self) -> bool:
        if not self._open or self._socket is None:
            return False
        try:
            await self._socket.send_control(ListenV1ControlMessage(type="KeepAlive"))
        except Exception as exc:
            await self._report(TransportError(f"Deepgram keep-alive failed: {exc}"))
            return False
        logger.debug("Deepgram keep-alive sent")
        return True

    async def close(self) -> None:
        if self._context_manager is None and not self._open:
            return

        self._closing = True
        if self._open and self._socket is not None:
            try:
                await self._socket.send_control(ListenV1ControlMessage(type="CloseStream"))
            except Exception as exc:
                logger.warning("Deepgram CloseStream failed: %s", exc)
        self._open = False

        if self._listener_task and not self._listener_task.done():
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
        self._listener_task = None

        context_manager, self._context_manager = self._context_manager, None
        self._socket = None
        if context_manager is not None:
            await context_manager.__aexit__(None, None, None)
        logger.info("Deepgram session closed")

    async def _listen(self) -> None:
        try:
            await self._socket.start_listening()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._closing:
                self._open = False
                await self._report(TransportError(f"Deepgram connection failed: {exc}"))
            return

        if not self._closing:
            self._open = False
            await self._report(TransportError("Deepgram connection closed unexpectedly"))

    async def _on_message(self, message) -> None:
        if not isinstance(message, ListenV1ResultsEvent):
            return
        try:
            transcript = message.channel.alternatives[0].transcript
        except (IndexError, AttributeError):
            await self._report(TransportError("Malformed Deepgram results message"))
            return

        speech_final = bool(message.speech_final)
        event = TranscriptEvent(
            text=transcript or "",
            is_final=bool(message.is_final) or speech_final,
            ends_utterance=speech_final,
        )
        if self._event_callback is not None:
            await self._event_callback(event)

    async def _on_error(self, error) -> None:
        await self._report(TransportError(f"Deepgram error: {error}"))

    async def _report(self, error: TransportError) -> None:
        if self._error_callback is None:
            logger.error("%s", error)
            return
        await self._error_callback(error)

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import numpy as np

from voice_assistant.domain.assembler import TranscriptAssembler
from voice_assistant.domain.errors import ConfigError, DownstreamError, TransportError
from voice_assistant.domain.events import (
    DomainEvent,
    ErrorReported,
    ResponseReady,
    SessionStateChanged,
    UtteranceCompleted,
)
from voice_assistant.domain.frame_relay import FrameRelay
from voice_assistant.domain.pcm import float_to_pcm16
from voice_assistant.domain.state import SessionState, validate_transition
from voice_assistant.ports.audio import AudioCapturePort, AudioPlaybackPort
from voice_assistant.ports.completion import CompletionPort
from voice_assistant.ports.synthesizer import SynthesizerPort
from voice_assistant.ports.transcriber import (
    TranscriberPort,
    TranscriptEvent,
    TranscriptionConfig,
)

logger = logging.getLogger(__name__)

SessionListener = Callable[[DomainEvent], None]


@dataclass
class SessionView:
    state: SessionState = SessionState.IDLE
    interim_text: str = ""
    transcript: str = ""
    response: str = ""
    loading: bool = False
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "state": self.state.name,
            "interim_text": self.interim_text,
            "transcript": self.transcript,
            "response": self.response,
            "loading": self.loading,
            "error": self.error,
        }


@dataclass
class SessionResources:
    transcriber_open: bool = False
    device_open: bool = False
    relay_open: bool = False
    capture_running: bool = False
    pump_task: asyncio.Task | None = None
    playback_started: bool = False
    dispatch_task: asyncio.Task | None = None
    keepalive_task: asyncio.Task | None = None


class SessionOrchestrator:
    """Owns one listening session: device, connection, timers and dispatch.

    Resources exist only while the state is LISTENING. ``start`` either
    acquires everything or releases whatever it got before re-raising, and
    ``stop`` releases best-effort, always landing in IDLE. Completed
    utterances are answered one at a time by a single dispatch task.
    """

    def __init__(
        self,
        capture: AudioCapturePort,
        playback: AudioPlaybackPort,
        transcriber: TranscriberPort,
        completion: CompletionPort,
        synthesizer: SynthesizerPort,
        transcription_config: TranscriptionConfig,
        relay: FrameRelay | None = None,
        keepalive_interval_seconds: float = 10.0,
        keepalive_max_misses: int = 2,
    ) -> None:
        self._capture = capture
        self._playback = playback
        self._transcriber = transcriber
        self._completion = completion
        self._synthesizer = synthesizer
        self._transcription_config = transcription_config
        self._relay = relay or FrameRelay()
        self._keepalive_interval_seconds = keepalive_interval_seconds
        self._keepalive_max_misses = keepalive_max_misses

        self._assembler = TranscriptAssembler()
        self._state = SessionState.IDLE
        self._view = SessionView()
        self._resources: SessionResources | None = None
        self._utterance_queue: asyncio.Queue[str] = asyncio.Queue()
        self._lifecycle_lock = asyncio.Lock()
        self._listeners: list[SessionListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def view(self) -> SessionView:
        return dataclasses.replace(self._view)

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> SessionState:
        async with self._lifecycle_lock:
            if self._state is SessionState.LISTENING:
                logger.info("Session already listening")
                return self._state

            self._validate_config()
            resources = SessionResources()
            self._assembler.reset()
            self._utterance_queue = asyncio.Queue()

            try:
                await self._acquire(resources)
            except BaseException:
                logger.warning("Session start failed, releasing acquired resources")
                await self._release(resources, report_failures=False)
                raise

            resources.keepalive_task = asyncio.create_task(self._keepalive_loop())
            self._resources = resources
            self._view.error = ""
            self._transition_to(SessionState.LISTENING)
            return self._state

    async def stop(self) -> SessionState:
        async with self._lifecycle_lock:
            resources = self._resources
            if resources is None:
                return self._state

            self._resources = None
            await self._release(resources, report_failures=True)
            self._assembler.reset()
            self._view.interim_text = ""
            self._view.loading = False
            self._transition_to(SessionState.IDLE)
            return self._state

    async def aclose(self) -> None:
        """Stop listening and close the downstream clients."""
        await self.stop()
        for name, client in (("completion", self._completion), ("synthesizer", self._synthesizer)):
            try:
                await client.aclose()
            except Exception as exc:
                logger.warning("Failed to close %s client: %s", name, exc)

    async def toggle(self) -> SessionState:
        if self._state is SessionState.LISTENING:
            return await self.stop()
        return await self.start()

    def _validate_config(self) -> None:
        self._transcription_config.validate()
        if self._keepalive_interval_seconds <= 0:
            raise ConfigError(
                f"Invalid keep-alive interval: {self._keepalive_interval_seconds}"
            )
        if self._keepalive_max_misses < 1:
            raise ConfigError(f"Invalid keep-alive miss limit: {self._keepalive_max_misses}")

    def _transition_to(self, target: SessionState) -> None:
        validate_transition(self._state, target)
        logger.info("State: %s -> %s", self._state.name, target.name)
        self._state = target
        self._view.state = target
        self._emit(SessionStateChanged(state=target))

    async def _acquire(self, resources: SessionResources) -> None:
        self._transcriber.on_event(self._handle_transcript)
        self._transcriber.on_error(self._handle_transport_error)
        await self._transcriber.open(self._transcription_config)
        resources.transcriber_open = True

        await self._capture.open()
        resources.device_open = True

        self._relay.open()
        resources.relay_open = True
        resources.pump_task = asyncio.create_task(self._pump_frames())
        self._capture.start(self._on_audio)
        resources.capture_running = True

        await self._playback.start()
        resources.playback_started = True
        resources.dispatch_task = asyncio.create_task(self._dispatch_loop())

    async def _release(self, resources: SessionResources, report_failures: bool) -> None:
        steps: list[tuple[str, Callable[[SessionResources], Awaitable[None]]]] = [
            ("downstream dispatch", self._release_dispatch),
            ("transcription client", self._release_transcriber),
            ("audio processing", self._release_audio_graph),
            ("microphone", self._release_device),
            ("keep-alive timer", self._release_keepalive),
        ]
        for name, release in steps:
            try:
                await release(resources)
            except Exception as exc:
                if report_failures:
                    self._report(exc, context=f"Failed to release {name}")
                else:
                    logger.error("Failed to release %s: %s", name, exc)

    async def _release_dispatch(self, resources: SessionResources) -> None:
        task, resources.dispatch_task = resources.dispatch_task, None
        await _cancel_task(task)
        if resources.playback_started:
            resources.playback_started = False
            try:
                await self._playback.cancel()
            finally:
                await self._playback.stop()

    async def _release_transcriber(self, resources: SessionResources) -> None:
        if resources.transcriber_open:
            resources.transcriber_open = False
            await self._transcriber.close()

    async def _release_audio_graph(self, resources: SessionResources) -> None:
        if resources.capture_running:
            resources.capture_running = False
            self._capture.stop()
        task, resources.pump_task = resources.pump_task, None
        try:
            await _cancel_task(task)
        finally:
            if resources.relay_open:
                resources.relay_open = False
                await self._relay.close()

    async def _release_device(self, resources: SessionResources) -> None:
        if resources.device_open:
            resources.device_open = False
            await self._capture.close()

    async def _release_keepalive(self, resources: SessionResources) -> None:
        task, resources.keepalive_task = resources.keepalive_task, None
        await _cancel_task(task)

    def _on_audio(self, samples: np.ndarray) -> None:
        self._relay.push(float_to_pcm16(samples))

    async def _pump_frames(self) -> None:
        async for frame in self._relay.frames():
            await self._transcriber.send(frame)

    async def _handle_transcript(self, event: TranscriptEvent) -> None:
        if self._state is not SessionState.LISTENING:
            return

        for observation in self._assembler.process(event):
            if isinstance(observation, UtteranceCompleted):
                self._view.transcript = observation.text
                self._utterance_queue.put_nowait(observation.text)
            self._emit(observation)
        self._view.interim_text = self._assembler.interim_text

    async def _handle_transport_error(self, error: TransportError) -> None:
        self._report(error)

    async def _dispatch_loop(self) -> None:
        while True:
            text = await self._utterance_queue.get()
            try:
                await self._respond(text)
            finally:
                self._utterance_queue.task_done()

    async def _respond(self, text: str) -> None:
        self._view.loading = True
        try:
            response = await self._completion.complete(text)
            logger.info("Response: %s", response)
            self._view.response = response
            self._emit(ResponseReady(text=response))

            audio = await self._synthesizer.synthesize(response)
            if self._state is SessionState.LISTENING:
                await self._playback.play(audio)
        except asyncio.CancelledError:
            raise
        except DownstreamError as exc:
            self._report(exc)
        except Exception as exc:
            logger.exception("Unexpected downstream failure")
            self._report(DownstreamError(f"Downstream call failed: {exc}"))
        finally:
            self._view.loading = False

    async def _keepalive_loop(self) -> None:
        misses = 0
        while True:
            await asyncio.sleep(self._keepalive_interval_seconds)
            if await self._transcriber.keep_alive():
                misses = 0
                continue

            misses += 1
            logger.debug("Keep-alive skipped, connection not open (misses=%d)", misses)
            if misses == self._keepalive_max_misses:
                self._report(
                    TransportError(
                        f"Liveness lost: no keep-alive could be sent for {misses} "
                        "consecutive intervals"
                    )
                )

    def _report(self, error: Exception, context: str = "") -> None:
        message = str(error) or type(error).__name__
        if context:
            message = f"{context}: {message}"
        self._view.error = message
        logger.error("%s: %s", type(error).__name__, message)
        self._emit(ErrorReported(message=message))

    def _emit(self, event: DomainEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed on %s", type(event).__name__)


async def _cancel_task(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass

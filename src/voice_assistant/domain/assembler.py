import logging
from enum import Enum, auto

from voice_assistant.domain.events import DomainEvent, InterimUpdated, UtteranceCompleted
from voice_assistant.ports.transcriber import TranscriptEvent

logger = logging.getLogger(__name__)


class AssemblerState(Enum):
    EMPTY = auto()
    ACCUMULATING = auto()


class TranscriptAssembler:
    """Turns a stream of interim and final transcript segments into utterances.

    Interim text is only ever a preview and never enters the sentence buffer.
    Final fragments are buffered until a final segment that closes the
    utterance arrives, at which point the buffer is joined with single spaces,
    emitted once as an ``UtteranceCompleted`` and reset. An empty closing
    segment still flushes a non-empty buffer; other empty segments are ignored.
    """

    def __init__(self) -> None:
        self._sentence_buffer: list[str] = []
        self._interim_text = ""

    @property
    def state(self) -> AssemblerState:
        if self._sentence_buffer:
            return AssemblerState.ACCUMULATING
        return AssemblerState.EMPTY

    @property
    def interim_text(self) -> str:
        return self._interim_text

    @property
    def buffered_fragments(self) -> list[str]:
        return list(self._sentence_buffer)

    def process(self, event: TranscriptEvent) -> list[DomainEvent]:
        text = event.text.strip()
        if not text:
            # An empty endpoint still closes whatever finals were buffered.
            if event.is_final and event.ends_utterance and self._sentence_buffer:
                return [self._flush()]
            return []

        if not event.is_final:
            self._interim_text = text
            logger.debug("Interim: %s", text)
            return [InterimUpdated(text=text)]

        self._sentence_buffer.append(text)
        self._interim_text = ""
        if not event.ends_utterance:
            logger.debug("Final fragment buffered: %s", text)
            return []
        return [self._flush()]

    def reset(self) -> None:
        self._sentence_buffer.clear()
        self._interim_text = ""

    def _flush(self) -> UtteranceCompleted:
        sentence = " ".join(self._sentence_buffer)
        self._sentence_buffer.clear()
        self._interim_text = ""
        logger.info("Utterance: %s", sentence)
        return UtteranceCompleted(text=sentence)

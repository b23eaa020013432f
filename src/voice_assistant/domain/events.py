from dataclasses import dataclass, field
from time import time

from voice_assistant.domain.state import SessionState


@dataclass(frozen=True)
class DomainEvent:
    timestamp: float = field(default_factory=time)


@dataclass(frozen=True)
class InterimUpdated(DomainEvent):
    text: str = ""


@dataclass(frozen=True)
class UtteranceCompleted(DomainEvent):
    text: str = ""


@dataclass(frozen=True)
class SessionStateChanged(DomainEvent):
    state: SessionState = SessionState.IDLE


@dataclass(frozen=True)
class ResponseReady(DomainEvent):
    text: str = ""


@dataclass(frozen=True)
class ErrorReported(DomainEvent):
    message: str = ""

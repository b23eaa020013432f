from enum import Enum, auto

from voice_assistant.domain.errors import VoiceAssistantError


class SessionState(Enum):
    IDLE = auto()
    LISTENING = auto()


VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.LISTENING},
    SessionState.LISTENING: {SessionState.IDLE},
}


class InvalidTransitionError(VoiceAssistantError):
    pass


def validate_transition(current: SessionState, target: SessionState) -> None:
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot transition from {current.name} to {target.name}")

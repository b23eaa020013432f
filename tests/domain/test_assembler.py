import pytest

from voice_assistant.domain.assembler import AssemblerState, TranscriptAssembler
from voice_assistant.domain.events import InterimUpdated, UtteranceCompleted
from voice_assistant.ports.transcriber import TranscriptEvent


def _completed(assembler: TranscriptAssembler, events: list[TranscriptEvent]) -> list[str]:
    texts = []
    for event in events:
        for observation in assembler.process(event):
            if isinstance(observation, UtteranceCompleted):
                texts.append(observation.text)
    return texts


@pytest.fixture
def assembler():
    return TranscriptAssembler()


class TestTranscriptAssembler:
    def test_interim_then_final_completes_once(self, assembler):
        texts = _completed(assembler, [
            TranscriptEvent(text="hel", is_final=False),
            TranscriptEvent(text="hello world", is_final=True),
        ])
        assert texts == ["hello world"]
        assert assembler.state == AssemblerState.EMPTY
        assert assembler.buffered_fragments == []

    def test_empty_final_does_not_flush(self, assembler):
        texts = _completed(assembler, [
            TranscriptEvent(text="hello", is_final=True),
            TranscriptEvent(text="", is_final=True),
            TranscriptEvent(text="there", is_final=True),
        ])
        assert texts == ["hello", "there"]

    def test_interim_emits_preview_without_buffering(self, assembler):
        observations = assembler.process(TranscriptEvent(text="  what is ", is_final=False))
        assert len(observations) == 1
        assert isinstance(observations[0], InterimUpdated)
        assert observations[0].text == "what is"
        assert assembler.interim_text == "what is"
        assert assembler.state == AssemblerState.EMPTY

    def test_interim_replaced_by_next_interim(self, assembler):
        assembler.process(TranscriptEvent(text="what", is_final=False))
        assembler.process(TranscriptEvent(text="what time", is_final=False))
        assert assembler.interim_text == "what time"

    def test_whitespace_interim_is_ignored(self, assembler):
        assembler.process(TranscriptEvent(text="what", is_final=False))
        assert assembler.process(TranscriptEvent(text="   ", is_final=False)) == []
        assert assembler.interim_text == "what"

    def test_final_clears_interim_preview(self, assembler):
        assembler.process(TranscriptEvent(text="good mor", is_final=False))
        assembler.process(TranscriptEvent(text="good morning", is_final=True))
        assert assembler.interim_text == ""

    def test_fragments_accumulate_until_utterance_ends(self, assembler):
        texts = _completed(assembler, [
            TranscriptEvent(text="I was wondering", is_final=True, ends_utterance=False),
            TranscriptEvent(text="about", is_final=False),
            TranscriptEvent(text="about the weather", is_final=True, ends_utterance=False),
        ])
        assert texts == []
        assert assembler.state == AssemblerState.ACCUMULATING
        assert assembler.buffered_fragments == ["I was wondering", "about the weather"]

        texts = _completed(assembler, [TranscriptEvent(text="today.", is_final=True)])
        assert texts == ["I was wondering about the weather today."]
        assert assembler.state == AssemblerState.EMPTY

    def test_empty_closing_final_flushes_buffer(self, assembler):
        texts = _completed(assembler, [
            TranscriptEvent(text="turn on the lights", is_final=True, ends_utterance=False),
            TranscriptEvent(text="", is_final=True),
        ])
        assert texts == ["turn on the lights"]
        assert assembler.state == AssemblerState.EMPTY

        texts = _completed(assembler, [TranscriptEvent(text="what time is it", is_final=True)])
        assert texts == ["what time is it"]

    def test_empty_closing_final_with_empty_buffer_emits_nothing(self, assembler):
        assert assembler.process(TranscriptEvent(text="  ", is_final=True)) == []
        assert assembler.state == AssemblerState.EMPTY

    def test_empty_non_closing_final_keeps_buffer(self, assembler):
        texts = _completed(assembler, [
            TranscriptEvent(text="turn on", is_final=True, ends_utterance=False),
            TranscriptEvent(text="", is_final=True, ends_utterance=False),
        ])
        assert texts == []
        assert assembler.buffered_fragments == ["turn on"]

    def test_fragments_are_trimmed_before_joining(self, assembler):
        texts = _completed(assembler, [
            TranscriptEvent(text=" one ", is_final=True, ends_utterance=False),
            TranscriptEvent(text="two  ", is_final=True),
        ])
        assert texts == ["one two"]

    def test_reset_discards_buffer_and_preview(self, assembler):
        assembler.process(TranscriptEvent(text="half", is_final=True, ends_utterance=False))
        assembler.process(TranscriptEvent(text="sent", is_final=False))
        assembler.reset()
        assert assembler.state == AssemblerState.EMPTY
        assert assembler.interim_text == ""

    @pytest.mark.parametrize("events, expected", [
        ([], []),
        ([("a", False), ("b", False)], []),
        ([("a", True), ("b", True), ("c", True)], ["a", "b", "c"]),
        ([("", True), ("", False), ("x", True), ("", True)], ["x"]),
        ([("hi", False), ("hi there", True), ("", True), ("bye", False), ("bye now", True)], ["hi there", "bye now"]),
    ])
    def test_one_completion_per_non_empty_final(self, assembler, events, expected):
        texts = _completed(assembler, [TranscriptEvent(text=t, is_final=f) for t, f in events])
        assert texts == expected
        assert all(texts)

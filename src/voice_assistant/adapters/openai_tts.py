import logging

from openai import AsyncOpenAI, OpenAIError

from voice_assistant.domain.errors import DownstreamError

logger = logging.getLogger(__name__)


class OpenAITtsSynthesizer:
    def __init__(self, api_key: str, voice: str = "onyx", model: str = "tts-1") -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._voice = voice
        self._model = model

    async def synthesize(self, text: str) -> bytes:
        try:
            response = await self._client.audio.speech.create(
                model=self._model,
                voice=self._voice,
                input=text,
                response_format="pcm",
                speed=1.0,
            )
        except OpenAIError as exc:
            raise DownstreamError(f"Failed to convert text to speech: {exc}") from exc
        return response.content

    async def aclose(self) -> None:
        await self._client.close()

import logging

import httpx

from voice_assistant.domain.errors import DownstreamError

logger = logging.getLogger(__name__)

DEEPGRAM_SPEAK_URL = "https://api.deepgram.com/v1/speak"


class DeepgramSpeechSynthesizer:
    """Deepgram Speak, asked for raw linear16 so the bytes can be played directly."""

    def __init__(
        self,
        api_key: str,
        model: str = "aura-asteria-en",
        sample_rate: int = 24000,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._sample_rate = sample_rate
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def synthesize(self, text: str) -> bytes:
        params = {
            "model": self._model,
            "encoding": "linear16",
            "sample_rate": str(self._sample_rate),
            "container": "none",
        }
        headers = {
            "Authorization": f"Token {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.post(
                DEEPGRAM_SPEAK_URL, params=params, headers=headers, json={"text": text}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DownstreamError(
                f"Failed to convert text to speech: HTTP error {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise DownstreamError(f"Failed to convert text to speech: {exc}") from exc

        logger.debug("Synthesized %d bytes for: %s", len(response.content), text[:50])
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()

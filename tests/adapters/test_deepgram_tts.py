import json

import httpx
import pytest

from voice_assistant.adapters.deepgram_tts import DEEPGRAM_SPEAK_URL, DeepgramSpeechSynthesizer
from voice_assistant.domain.errors import DownstreamError


def _synthesizer(handler) -> DeepgramSpeechSynthesizer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DeepgramSpeechSynthesizer(api_key="dg-key", client=client)


class TestDeepgramSpeechSynthesizer:
    @pytest.mark.asyncio
    async def test_returns_raw_audio_bytes(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, content=b"\x01\x00\x02\x00")

        synthesizer = _synthesizer(handler)
        audio = await synthesizer.synthesize("Hello there")

        request = seen["request"]
        assert audio == b"\x01\x00\x02\x00"
        assert str(request.url).startswith(DEEPGRAM_SPEAK_URL)
        assert request.headers["Authorization"] == "Token dg-key"
        assert request.url.params["encoding"] == "linear16"
        assert request.url.params["container"] == "none"
        assert request.url.params["sample_rate"] == "24000"
        assert json.loads(request.content) == {"text": "Hello there"}
        await synthesizer.aclose()

    @pytest.mark.asyncio
    async def test_http_error_raises_downstream_error(self):
        synthesizer = _synthesizer(lambda request: httpx.Response(401, json={"err_msg": "bad key"}))
        with pytest.raises(DownstreamError, match="401"):
            await synthesizer.synthesize("Hello")

    @pytest.mark.asyncio
    async def test_transport_error_raises_downstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        synthesizer = _synthesizer(handler)
        with pytest.raises(DownstreamError, match="text to speech"):
            await synthesizer.synthesize("Hello")

import logging

import httpx

from voice_assistant.domain.errors import DownstreamError

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "No response from LLM"


class HttpCompletion:
    """Posts ``{"text": ...}`` to a completion endpoint and returns its ``response``."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def complete(self, text: str) -> str:
        logger.debug("Completion request (%d chars)", len(text))
        try:
            response = await self._client.post(self._url, json={"text": text})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise DownstreamError(
                f"Failed to get LLM response: HTTP error {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise DownstreamError(f"Failed to get LLM response: {exc}") from exc
        except ValueError as exc:
            raise DownstreamError("Failed to get LLM response: invalid JSON body") from exc

        if not isinstance(data, dict):
            raise DownstreamError("Failed to get LLM response: unexpected response shape")
        return data.get("response") or FALLBACK_RESPONSE

    async def aclose(self) -> None:
        await self._client.aclose()

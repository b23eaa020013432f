import logging

import anthropic

from voice_assistant.domain.errors import DownstreamError

logger = logging.getLogger(__name__)


class AnthropicCompletion:
    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5",
        system_prompt: str = "",
        max_tokens: int = 1024,
    ) -> None:
        self._client = anthropic.AsyncAnthropic(api_key=api_key or None)
        self._model = model.removeprefix("anthropic/")
        self._system_prompt = system_prompt
        self._max_tokens = max_tokens

    async def complete(self, text: str) -> str:
        kwargs: dict = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [{"role": "user", "content": text}],
        }
        if self._system_prompt:
            kwargs["system"] = self._system_prompt

        try:
            message = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            raise DownstreamError(
                f"Failed to get LLM response: Anthropic API error {exc.status_code}"
            ) from exc
        except anthropic.APIError as exc:
            raise DownstreamError(f"Failed to get LLM response: {exc}") from exc

        logger.debug("Anthropic stop reason: %s", message.stop_reason)
        return "".join(block.text for block in message.content if block.type == "text")

    async def aclose(self) -> None:
        await self._client.close()

import asyncio
from typing import Any
from urllib.parse import urlparse

import openai
from loguru import logger

from ...shared.constants import (
    API_MAX_RETRIES,
    API_TIMEOUT,
    OPENAI_MAX_CONCURRENCY,
    REQUEST_TIMEOUT,
)
from ...shared.exceptions import (
    APIBadRequestError,
    APIConnectionError,
    APIRateLimitError,
    AuthenticationError,
)
from ...shared.utils import retry_async

__all__ = ("OpenAIAPI",)

# TimeoutError from asyncio.wait_for is an OSError
_TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.InternalServerError,
    OSError,
)


def _short_message(e: Exception, *, limit: int = 300) -> str:
    name = type(e).__name__
    text = " ".join(str(e).split())
    if not text:
        return name
    if len(text) > limit:
        text = f"{text[: limit - 3]}..."
    return f"{name}: {text}"


def _token_limit_param(api_base: str) -> str:
    host = urlparse(api_base).hostname or ""
    if host == "openai.com" or host.endswith(".openai.com"):
        return "max_completion_tokens"
    return "max_tokens"


def completion_text(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as e:
        raise APIConnectionError("completion response has no choices") from e
    if not isinstance(content, str):
        return ""
    return content


class OpenAIAPI:
    """Single-turn chat completion client.

    One prompt in, one reply out. Transient transport failures are retried;
    everything else is mapped onto the ``ChatRelayError`` family with a short
    message that can be shown to the sender as-is.
    """

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        api_base: str | None = None,
    ):
        self.model = model or "gpt-4o-mini"
        self.api_base = (api_base or "https://api.openai.com/v1").strip().rstrip("/")
        self._token_param = _token_limit_param(self.api_base)
        self._semaphore = asyncio.Semaphore(OPENAI_MAX_CONCURRENCY)
        self._initialized = False
        self.client = openai.AsyncOpenAI(
            api_key=api_key, base_url=self.api_base, timeout=API_TIMEOUT
        )

    def initialize(self) -> None:
        if not self._initialized:
            logger.info(f"Completion client ready: {self.api_base} ({self.model})")
            self._initialized = True

    async def close(self) -> None:
        await self.client.close()
        logger.debug("Completion client closed")

    @staticmethod
    def build_messages(prompt: str, system_prompt: str | None = None) -> list[dict[str, str]]:
        messages = []
        if system_prompt and system_prompt.strip():
            messages.append({"role": "system", "content": system_prompt.strip()})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def create_completion(self, **kwargs: Any) -> Any:
        async with self._semaphore:
            return await asyncio.wait_for(
                self.client.chat.completions.create(**kwargs), timeout=REQUEST_TIMEOUT
            )

    @retry_async(max_retries=API_MAX_RETRIES, retryable_exceptions=_TRANSIENT_ERRORS)
    async def _complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None,
        temperature: float | None,
    ) -> str:
        kwargs: dict[str, Any] = {"model": self.model, "messages": messages}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs[self._token_param] = max_tokens
        return completion_text(await self.create_completion(**kwargs))

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        messages = self.build_messages(prompt, system_prompt)
        try:
            text = await self._complete(messages, max_tokens, temperature)
        except openai.AuthenticationError as e:
            logger.error(f"Completion authentication failed: {e}")
            raise AuthenticationError(_short_message(e)) from e
        except openai.BadRequestError as e:
            logger.error(f"Completion request rejected: {e}")
            raise APIBadRequestError(_short_message(e)) from e
        except openai.RateLimitError as e:
            raise APIRateLimitError(_short_message(e)) from e
        except (openai.OpenAIError, OSError) as e:
            raise APIConnectionError(_short_message(e)) from e
        logger.debug(f"Completion succeeded; output length: {len(text)}")
        return text

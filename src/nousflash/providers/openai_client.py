"""OpenAI-compatible completion and embedding client.

Chat completions and embeddings may live on different hosts (e.g. an
open-weights inference provider for text, OpenAI for embeddings), so each
has its own base URL and key.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import aiohttp
from loguru import logger

from nousflash.core.constants import RATING_MAX, RATING_MIN
from nousflash.providers.base import CompletionProvider, EmbeddingProvider
from nousflash.utils.exceptions import ParseError, ProviderError
from nousflash.utils.retry import retry_async

if TYPE_CHECKING:
    from nousflash.config.settings import ProviderSettings

_INTEGER = re.compile(r"^\s*(-?\d+)(?:\.0+)?\s*$")


def parse_rating(text: str) -> int:
    """
    Parse a bare integer rating from model output.

    Raises:
        ParseError: If the text is not a single integer
    """
    match = _INTEGER.match(text or "")
    if not match:
        raise ParseError(f"Expected an integer rating, got {text!r}")
    return int(match.group(1))


class OpenAICompatibleClient(CompletionProvider, EmbeddingProvider):
    """Async client for /chat/completions and /embeddings endpoints."""

    def __init__(self, settings: Optional[ProviderSettings] = None):
        if settings is None:
            from nousflash.config.settings import ProviderSettings
            settings = ProviderSettings()

        self.settings = settings
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.settings.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "OpenAICompatibleClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _post_once(self, url: str, api_key: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        await self.connect()
        headers = {"Authorization": f"Bearer {api_key}"}
        try:
            async with self._session.post(url, json=payload, headers=headers) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    error = ProviderError(f"{url} returned {resp.status}: {body[:200]}")
                    # Client errors other than rate limiting will not improve on retry
                    error.retryable = resp.status == 429 or resp.status >= 500
                    raise error
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise ParseError(f"{url} returned invalid JSON: {e}") from e
        except aiohttp.ClientError as e:
            raise ProviderError(f"Request to {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Request to {url} timed out") from e

    async def _post(self, url: str, api_key: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await retry_async(
            lambda: self._post_once(url, api_key, payload),
            attempts=self.settings.max_retries + 1,
            description=f"POST {url}",
        )

    async def complete(self, prompt: str, system: str | None = None) -> str:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        data = await self._post(
            f"{self.settings.api_base.rstrip('/')}/chat/completions",
            self.settings.api_key,
            {
                "model": self.settings.completion_model,
                "messages": messages,
                "temperature": self.settings.temperature,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError(f"Invalid completion response format: {e}") from e
        if not isinstance(content, str):
            raise ParseError("Completion content is not text")

        content = content.strip()
        logger.debug(f"Completion: {content[:100]}")
        return content

    async def rate(self, prompt: str) -> int:
        rating = parse_rating(await self.complete(prompt))
        if not RATING_MIN <= rating <= RATING_MAX:
            raise ParseError(f"Rating {rating} outside [{RATING_MIN}, {RATING_MAX}]")
        return rating

    async def embed(self, text: str) -> List[float]:
        data = await self._post(
            f"{self.settings.embedding_api_base.rstrip('/')}/embeddings",
            self.settings.embedding_api_key or self.settings.api_key,
            {"model": self.settings.embedding_model, "input": text},
        )
        try:
            embedding = data["data"][0]["embedding"]
            return [float(x) for x in embedding]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ParseError(f"Invalid embedding response format: {e}") from e

"""X (Twitter) API v2 client.

Implements both sides of the agent's social boundary: reading context and
mentions, and publishing posts and replies.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import aiohttp
from loguru import logger

from nousflash.core.models import IncomingMessage, RecentPost
from nousflash.providers.base import ActionSink, ContextSource
from nousflash.utils.exceptions import (
    ConfigurationError,
    ParseError,
    ProviderError,
    PublishError,
)

if TYPE_CHECKING:
    from nousflash.config.settings import SocialSettings

# The v2 timeline endpoints reject max_results outside this range
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 100

TWEET_FIELDS = "created_at,author_id,conversation_id,in_reply_to_user_id"


def _page_size(limit: int) -> int:
    return max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, limit))


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable timestamp from X API: {value!r}")
        return None


def _publish_error(status: int, body: str) -> PublishError:
    if status == 429:
        kind = PublishError.RATE_LIMITED
    elif 400 <= status < 500:
        kind = PublishError.REJECTED
    else:
        kind = PublishError.NETWORK
    return PublishError(f"X API returned {status}: {body[:200]}", kind=kind, status=status)


class XClient(ContextSource, ActionSink):
    """Async X API v2 client authenticated with a bearer token."""

    def __init__(self, settings: Optional[SocialSettings] = None):
        if settings is None:
            from nousflash.config.settings import SocialSettings
            settings = SocialSettings()

        self.settings = settings
        self.api_base = settings.api_base.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        if not self.settings.bearer_token:
            raise ConfigurationError("NOUSFLASH_SOCIAL_BEARER_TOKEN is not set")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self.settings.bearer_token}"},
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _require_user_id(self) -> str:
        if not self.settings.user_id:
            raise ConfigurationError("NOUSFLASH_SOCIAL_USER_ID is not set")
        return self.settings.user_id

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        await self.connect()
        url = f"{self.api_base}{path}"
        try:
            async with self._session.get(url, params=params) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    error = ProviderError(f"GET {path} returned {resp.status}: {body[:200]}")
                    error.retryable = resp.status == 429 or resp.status >= 500
                    raise error
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise ParseError(f"GET {path} returned invalid JSON: {e}") from e
        except aiohttp.ClientError as e:
            raise ProviderError(f"GET {path} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise ProviderError(f"GET {path} timed out") from e

    async def _post_tweet(self, payload: Dict[str, Any]) -> str:
        await self.connect()
        try:
            async with self._session.post(f"{self.api_base}/tweets", json=payload) as resp:
                if resp.status not in (200, 201):
                    raise _publish_error(resp.status, await resp.text())
                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise PublishError(
                        f"POST /tweets returned invalid JSON: {e}", kind=PublishError.REJECTED
                    ) from e
        except aiohttp.ClientError as e:
            raise PublishError(f"POST /tweets failed: {e}", kind=PublishError.NETWORK) from e
        except asyncio.TimeoutError as e:
            raise PublishError("POST /tweets timed out", kind=PublishError.NETWORK) from e

        try:
            return str(data["data"]["id"])
        except (KeyError, TypeError) as e:
            raise PublishError(
                f"Unexpected publish response: {data!r}", kind=PublishError.REJECTED
            ) from e

    # --- ContextSource ---

    async def recent_posts(self, limit: int) -> List[RecentPost]:
        if limit <= 0:
            return []
        user_id = self._require_user_id()
        data = await self._get(
            f"/users/{user_id}/tweets",
            {"max_results": _page_size(limit), "tweet.fields": "created_at"},
        )
        posts = [
            RecentPost(
                content=tweet.get("text", ""),
                username=self.settings.username,
                timestamp=_parse_time(tweet.get("created_at")),
            )
            for tweet in data.get("data") or []
        ]
        return posts[:limit]

    async def external_context(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        data = await self._get(
            "/tweets/search/recent",
            {
                "query": self.settings.context_query,
                "max_results": max(10, _page_size(limit)),
                "tweet.fields": TWEET_FIELDS,
                "expansions": "author_id",
                "user.fields": "username",
            },
        )
        users = {
            user["id"]: user.get("username", user["id"])
            for user in (data.get("includes") or {}).get("users") or []
        }
        context = [
            f"@{users.get(tweet.get('author_id'), tweet.get('author_id') or 'unknown')}: {tweet.get('text', '')}"
            for tweet in data.get("data") or []
        ]
        logger.debug(f"Fetched {len(context)} external context items")
        return context[:limit]

    async def mentions(self, since_id: str | None = None) -> Sequence[IncomingMessage]:
        user_id = self._require_user_id()
        params: Dict[str, Any] = {"max_results": MAX_PAGE_SIZE, "tweet.fields": TWEET_FIELDS}
        if since_id:
            params["since_id"] = since_id
        data = await self._get(f"/users/{user_id}/mentions", params)
        return [
            IncomingMessage(
                id=str(tweet["id"]),
                text=tweet.get("text", ""),
                author_id=tweet.get("author_id"),
                in_reply_to_user_id=tweet.get("in_reply_to_user_id"),
                conversation_id=tweet.get("conversation_id"),
                created_at=_parse_time(tweet.get("created_at")),
            )
            for tweet in data.get("data") or []
            if "id" in tweet
        ]

    # --- ActionSink ---

    async def publish(self, content: str) -> str:
        post_id = await self._post_tweet({"text": content})
        logger.info(f"Published post {post_id}")
        return post_id

    async def reply(self, content: str, target_id: str) -> str:
        post_id = await self._post_tweet(
            {"text": content, "reply": {"in_reply_to_tweet_id": target_id}}
        )
        logger.info(f"Replied to {target_id} with {post_id}")
        return post_id

"""Tests for the OpenAI-compatible client and X client helpers."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nousflash.config.settings import ProviderSettings, SocialSettings
from nousflash.providers.openai_client import OpenAICompatibleClient, parse_rating
from nousflash.providers.prompts import consolidation_content, thought_prompt
from nousflash.core.models import ThoughtContext
from nousflash.social.x_client import XClient, _publish_error
from nousflash.utils.exceptions import (
    ConfigurationError,
    ParseError,
    ProviderError,
    PublishError,
)


def fake_session(status=200, body=None, text="", method="get"):
    """A ClientSession whose single request yields a canned response."""
    resp = MagicMock()
    resp.status = status
    resp.text = AsyncMock(return_value=text)
    if body is None:
        resp.json = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", text, 0))
    else:
        resp.json = AsyncMock(return_value=body)

    request = MagicMock()
    request.__aenter__ = AsyncMock(return_value=resp)
    request.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    getattr(session, method).return_value = request
    return session


class TestParseRating:
    @pytest.mark.parametrize("text,expected", [("7", 7), (" 8\n", 8), ("10", 10), ("6.0", 6)])
    def test_integer_forms(self, text, expected):
        assert parse_rating(text) == expected

    @pytest.mark.parametrize("text", ["eight", "7/10", "", "Rating: 7", "6.5"])
    def test_rejects_other_text(self, text):
        with pytest.raises(ParseError):
            parse_rating(text)


class TestOpenAICompatibleClient:
    @pytest.mark.asyncio
    async def test_rate_out_of_range(self):
        client = OpenAICompatibleClient(ProviderSettings())
        with patch.object(client, "complete", AsyncMock(return_value="11")):
            with pytest.raises(ParseError):
                await client.rate("prompt")

    @pytest.mark.asyncio
    async def test_rate_parses_completion(self):
        client = OpenAICompatibleClient(ProviderSettings())
        with patch.object(client, "complete", AsyncMock(return_value="4")):
            assert await client.rate("prompt") == 4

    @pytest.mark.asyncio
    async def test_complete_extracts_message(self):
        client = OpenAICompatibleClient(ProviderSettings(completion_model="test-model"))
        response = {"choices": [{"message": {"content": "  a thought  "}}]}
        with patch.object(client, "_post", AsyncMock(return_value=response)) as post:
            result = await client.complete("hello", system="be brief")

        assert result == "a thought"
        payload = post.await_args.args[2]
        assert payload["model"] == "test-model"
        assert payload["messages"][0] == {"role": "system", "content": "be brief"}
        assert payload["messages"][1] == {"role": "user", "content": "hello"}

    @pytest.mark.asyncio
    async def test_complete_bad_shape(self):
        client = OpenAICompatibleClient(ProviderSettings())
        with patch.object(client, "_post", AsyncMock(return_value={"choices": []})):
            with pytest.raises(ParseError):
                await client.complete("hello")

    @pytest.mark.asyncio
    async def test_embed_uses_embedding_endpoint(self):
        settings = ProviderSettings(
            api_key="chat-key",
            embedding_api_base="https://embed.example/v1/",
            embedding_api_key="embed-key",
        )
        client = OpenAICompatibleClient(settings)
        response = {"data": [{"embedding": [0.1, 0.2]}]}
        with patch.object(client, "_post", AsyncMock(return_value=response)) as post:
            assert await client.embed("text") == [0.1, 0.2]

        url, key, _ = post.await_args.args
        assert url == "https://embed.example/v1/embeddings"
        assert key == "embed-key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,retryable", [(500, True), (429, True), (400, False), (401, False)])
    async def test_http_status_mapped(self, status, retryable):
        client = OpenAICompatibleClient(ProviderSettings())
        client._session = fake_session(status=status, text="nope", method="post")

        with pytest.raises(ProviderError) as exc_info:
            await client._post_once("https://llm.example/v1/chat/completions", "key", {})

        assert exc_info.value.retryable is retryable

    @pytest.mark.asyncio
    async def test_invalid_json_body(self):
        client = OpenAICompatibleClient(ProviderSettings())
        client._session = fake_session(text="<html>bad gateway</html>", method="post")

        with pytest.raises(ParseError):
            await client._post_once("https://llm.example/v1/chat/completions", "key", {})

    @pytest.mark.asyncio
    async def test_sends_bearer_key(self):
        client = OpenAICompatibleClient(ProviderSettings())
        client._session = fake_session(body={"ok": True}, method="post")

        assert await client._post_once("https://llm.example/v1/embeddings", "secret", {"a": 1}) == {"ok": True}
        kwargs = client._session.post.call_args.kwargs
        assert kwargs["headers"] == {"Authorization": "Bearer secret"}
        assert kwargs["json"] == {"a": 1}


class TestPrompts:
    def test_consolidation_content(self):
        assert consolidation_content("a", "b") == "Consolidated memory: a | b"

    def test_thought_prompt_without_summary(self):
        prompt = thought_prompt(ThoughtContext(recent_posts=("p",), external_context=("c",)))
        assert "Recent thoughts:" not in prompt
        assert "Recent posts:\np" in prompt


class TestXClient:
    @pytest.mark.parametrize(
        "status,kind",
        [
            (429, PublishError.RATE_LIMITED),
            (403, PublishError.REJECTED),
            (400, PublishError.REJECTED),
            (503, PublishError.NETWORK),
        ],
    )
    def test_publish_error_kinds(self, status, kind):
        error = _publish_error(status, "body")
        assert error.kind == kind
        assert error.status == status

    def test_rejected_is_not_retryable(self):
        assert not _publish_error(403, "duplicate").retryable
        assert _publish_error(429, "slow down").retryable

    @pytest.mark.asyncio
    async def test_missing_token(self):
        client = XClient(SocialSettings(bearer_token=""))
        with pytest.raises(ConfigurationError):
            await client.connect()

    @pytest.mark.asyncio
    async def test_missing_user_id(self):
        client = XClient(SocialSettings(bearer_token="token", user_id=""))
        with pytest.raises(ConfigurationError):
            await client.recent_posts(5)

    @pytest.mark.asyncio
    async def test_external_context_renders_authors(self):
        client = XClient(SocialSettings(bearer_token="token"))
        payload = {
            "data": [
                {"id": "1", "text": "hello", "author_id": "u1"},
                {"id": "2", "text": "world", "author_id": "u2"},
            ],
            "includes": {"users": [{"id": "u1", "username": "alice"}]},
        }
        with patch.object(client, "_get", AsyncMock(return_value=payload)):
            context = await client.external_context(20)

        assert context == ["@alice: hello", "@u2: world"]

    @pytest.mark.asyncio
    async def test_mentions_parsed(self):
        client = XClient(SocialSettings(bearer_token="token", user_id="42"))
        payload = {
            "data": [
                {
                    "id": "7",
                    "text": "@bot hi",
                    "author_id": "u1",
                    "in_reply_to_user_id": "42",
                    "created_at": "2024-05-01T12:00:00.000Z",
                }
            ]
        }
        with patch.object(client, "_get", AsyncMock(return_value=payload)) as get:
            messages = await client.mentions(since_id="5")

        assert messages[0].id == "7"
        assert messages[0].is_reply
        assert messages[0].created_at.year == 2024
        assert get.await_args.args[1]["since_id"] == "5"

    @pytest.mark.asyncio
    async def test_get_invalid_json_is_parse_error(self):
        client = XClient(SocialSettings(bearer_token="token"))
        client._session = fake_session(text="<html>maintenance</html>")

        with pytest.raises(ParseError):
            await client._get("/tweets/search/recent", {"query": "ai"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,retryable", [(503, True), (429, True), (404, False)])
    async def test_get_status_mapped(self, status, retryable):
        client = XClient(SocialSettings(bearer_token="token"))
        client._session = fake_session(status=status, text="error")

        with pytest.raises(ProviderError) as exc_info:
            await client._get("/users/42/tweets", {})

        assert exc_info.value.retryable is retryable

    @pytest.mark.asyncio
    async def test_publish_invalid_json_is_rejected(self):
        client = XClient(SocialSettings(bearer_token="token"))
        client._session = fake_session(status=201, text="<html>", method="post")

        with pytest.raises(PublishError) as exc_info:
            await client.publish("hello")

        assert exc_info.value.kind == PublishError.REJECTED
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_publish_rate_limited(self):
        client = XClient(SocialSettings(bearer_token="token"))
        client._session = fake_session(status=429, text="Too Many Requests", method="post")

        with pytest.raises(PublishError) as exc_info:
            await client.publish("hello")

        assert exc_info.value.kind == PublishError.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_reply_returns_new_id(self):
        client = XClient(SocialSettings(bearer_token="token"))
        client._session = fake_session(status=201, body={"data": {"id": "99"}}, method="post")

        assert await client.reply("thanks", "7") == "99"
        payload = client._session.post.call_args.kwargs["json"]
        assert payload == {"text": "thanks", "reply": {"in_reply_to_tweet_id": "7"}}

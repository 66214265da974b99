"""Tests for guestbot.providers.qstash.QStashScheduler"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from guestbot.providers.qstash import QStashScheduler


def _mock_async_client(response):
    client = MagicMock()
    client.post = AsyncMock(return_value=response)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


class TestQStashScheduler:

    def test_enabled_only_when_configured(self):
        assert QStashScheduler("tok", "https://app/reply").is_enabled() is True
        assert QStashScheduler("", "https://app/reply").is_enabled() is False

    @pytest.mark.asyncio
    async def test_schedule_posts_delayed_callback(self):
        response = MagicMock()
        response.json.return_value = {"messageId": "msg_123"}
        client = _mock_async_client(response)

        with patch("guestbot.providers.qstash.httpx.AsyncClient", return_value=client):
            message_id = await QStashScheduler("tok", "https://app/reply").schedule(
                {"sessionId": "sess_1", "organizationId": "org_1"}, 3
            )

        assert message_id == "msg_123"
        url = client.post.call_args.args[0]
        kwargs = client.post.call_args.kwargs
        assert url == "https://qstash.upstash.io/v2/publish/https://app/reply"
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["headers"]["Upstash-Delay"] == "3s"
        assert kwargs["json"] == {"sessionId": "sess_1", "organizationId": "org_1"}
        response.raise_for_status.assert_called_once()

    @pytest.mark.asyncio
    async def test_schedule_without_config_raises(self):
        with pytest.raises(ValueError, match="QStash is not configured"):
            await QStashScheduler("", "").schedule({}, 3)

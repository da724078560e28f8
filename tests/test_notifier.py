"""Tests for the Discord and SMS notifiers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from salewatch.config import DiscordConfig, TwilioConfig
from salewatch.matcher.rules import compile_rule
from salewatch.notifier import (
    DiscordNotifier,
    NotificationContent,
    NotificationError,
    OutOfRequestsError,
    SmsNotifier,
    create_notification_content,
)


def _webhook_response(status_code: int = 204, remaining: str | None = "4"):
    response = MagicMock()
    response.status_code = status_code
    response.text = ""
    response.headers = {} if remaining is None else {"X-RateLimit-Remaining": remaining}
    return response


def _contents(count: int) -> list[NotificationContent]:
    return [
        NotificationContent(
            title=f"Rule {i}",
            body=f"[GPU] card {i} $100",
            link=f"https://www.reddit.com/r/buildapcsales/comments/p{i}",
        )
        for i in range(count)
    ]


@pytest.fixture
def discord_config() -> DiscordConfig:
    return DiscordConfig(
        enabled=True,
        webhook_url="https://discord.com/api/webhooks/123/abc",
    )


class TestDiscordNotifier:
    def test_is_enabled(self, discord_config: DiscordConfig):
        assert DiscordNotifier(discord_config).is_enabled()
        assert not DiscordNotifier(DiscordConfig(enabled=True)).is_enabled()
        assert not DiscordNotifier(DiscordConfig(webhook_url="https://x")).is_enabled()

    @pytest.mark.asyncio
    async def test_disabled_does_not_send(self):
        with patch("salewatch.notifier.discord.DiscordWebhook") as webhook_cls:
            sent = await DiscordNotifier(DiscordConfig()).send_batch(_contents(1))

        assert sent is False
        webhook_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_one_embed_per_match(self, discord_config: DiscordConfig):
        with patch("salewatch.notifier.discord.DiscordWebhook") as webhook_cls:
            webhook = webhook_cls.return_value
            webhook.execute.return_value = _webhook_response()

            sent = await DiscordNotifier(discord_config).send_batch(_contents(3))

        assert sent is True
        webhook_cls.assert_called_once()
        assert webhook_cls.call_args.kwargs["content"] == "Found 3 matches:"
        assert webhook_cls.call_args.kwargs["rate_limit_retry"] is False
        assert webhook.add_embed.call_count == 3
        webhook.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_large_batches_are_split(self, discord_config: DiscordConfig):
        with patch("salewatch.notifier.discord.DiscordWebhook") as webhook_cls:
            webhook_cls.return_value.execute.return_value = _webhook_response()

            await DiscordNotifier(discord_config).send_batch(_contents(23))

        assert webhook_cls.call_count == 3
        headers = [call.kwargs["content"] for call in webhook_cls.call_args_list]
        assert headers == ["Found 23 matches:", None, None]
        assert webhook_cls.return_value.add_embed.call_count == 23

    @pytest.mark.asyncio
    async def test_tracks_remaining_quota(self, discord_config: DiscordConfig):
        notifier = DiscordNotifier(discord_config)
        with patch("salewatch.notifier.discord.DiscordWebhook") as webhook_cls:
            webhook_cls.return_value.execute.return_value = _webhook_response(remaining="0")

            await notifier.send_batch(_contents(1))
            assert notifier.ratelimit_remaining == 0

            with pytest.raises(OutOfRequestsError, match="no requests remaining"):
                await notifier.send_batch(_contents(1))

        assert webhook_cls.return_value.execute.call_count == 1

    @pytest.mark.asyncio
    async def test_quota_checked_before_each_chunk(self, discord_config: DiscordConfig):
        notifier = DiscordNotifier(discord_config)
        with patch("salewatch.notifier.discord.DiscordWebhook") as webhook_cls:
            webhook_cls.return_value.execute.return_value = _webhook_response(remaining="0")

            with pytest.raises(OutOfRequestsError):
                await notifier.send_batch(_contents(15))

        assert webhook_cls.return_value.execute.call_count == 1

    @pytest.mark.asyncio
    async def test_rejected_message_raises(self, discord_config: DiscordConfig):
        with patch("salewatch.notifier.discord.DiscordWebhook") as webhook_cls:
            webhook_cls.return_value.execute.return_value = _webhook_response(status_code=400)

            with pytest.raises(NotificationError, match="400"):
                await DiscordNotifier(discord_config).send_batch(_contents(1))

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, discord_config: DiscordConfig):
        with patch("salewatch.notifier.discord.DiscordWebhook") as webhook_cls:
            webhook_cls.return_value.execute.side_effect = requests.ConnectionError("down")

            with pytest.raises(requests.ConnectionError):
                await DiscordNotifier(discord_config).send_batch(_contents(1))


def test_create_notification_content(listing_factory):
    rule = compile_rule({"name": "Cheap GPUs"})
    listing = listing_factory(id="xyz789", title="[GPU] RX 7800 XT $449")

    content = create_notification_content(listing, rule)

    assert content.title == "Cheap GPUs"
    assert content.body == "[GPU] RX 7800 XT $449"
    assert content.link == "https://www.reddit.com/r/buildapcsales/comments/xyz789"


class TestSmsNotifier:
    @pytest.fixture
    def twilio_config(self) -> TwilioConfig:
        return TwilioConfig(
            enabled=True,
            api_key="SKkey",
            api_key_secret="keysecret",
            account_sid="AC123",
            phone_number_from="+15550001111",
            phone_number_to="+15552223333",
        )

    def test_is_enabled(self, twilio_config: TwilioConfig):
        assert SmsNotifier(twilio_config).is_enabled()
        assert not SmsNotifier(TwilioConfig()).is_enabled()

    def test_send_text(self, twilio_config: TwilioConfig):
        session = MagicMock()
        session.post.return_value.json.return_value = {
            "uri": "/2010-04-01/Accounts/AC123/Messages/SM1.json"
        }

        receipt = SmsNotifier(twilio_config, session=session).send_text("ingestion stopped")

        assert receipt.uri == "/2010-04-01/Accounts/AC123/Messages/SM1.json"
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
        assert kwargs["auth"] == ("SKkey", "keysecret")
        assert kwargs["data"] == {
            "Body": "ingestion stopped",
            "From": "+15550001111",
            "To": "+15552223333",
        }

    def test_send_text_failure(self, twilio_config: TwilioConfig):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("401")

        with pytest.raises(requests.HTTPError):
            SmsNotifier(twilio_config, session=session).send_text("hi")

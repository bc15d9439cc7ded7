import hashlib
import hmac
import json
import time
from unittest.mock import AsyncMock, Mock, patch

import pytest
from slack_sdk.errors import SlackApiError

from repochat.schemas.service_handler import ServiceProvider
from repochat.services.service_handlers.base import ResponseType
from repochat.services.service_handlers.slack import SlackHandler


@pytest.fixture
def slack_client():
    return AsyncMock()


@pytest.fixture
def slack_handler(slack_client):
    return SlackHandler(signing_secret="test_secret", client=slack_client)


@pytest.fixture
def sample_message_payload():
    return {
        "type": "event_callback",
        "event": {
            "type": "message",
            "text": "Hello bot",
            "user": "U123456",
            "channel": "C123456",
            "ts": "1234567890.123456"
        },
        "team_id": "T123456",
        "event_id": "Ev123456",
        "event_time": 1234567890
    }

@pytest.fixture
def sample_slash_command_payload():
    return {
        "token": "verification_token",
        "team_id": "T123456",
        "team_domain": "team",
        "channel_id": "C123456",
        "channel_name": "test-channel",
        "user_id": "U123456",
        "user_name": "testuser",
        "command": "/resume_commit",
        "text": "\"fix login\" develop",
        "response_url": "https://hooks.slack.com/commands/xxx",
        "trigger_id": "trigger_id"
    }

def sign(body: bytes, timestamp: str, secret: str = "test_secret") -> str:
    return 'v0=' + hmac.new(
        key=secret.encode(),
        msg=b"v0:" + timestamp.encode() + b":" + body,
        digestmod=hashlib.sha256
    ).hexdigest()

def test_webhook_validation(slack_handler):
    timestamp = str(int(time.time()))
    body = json.dumps({"test": "data"}).encode()

    headers = {
        'X-Slack-Request-Timestamp': timestamp,
        'X-Slack-Signature': sign(body, timestamp)
    }

    assert slack_handler.validate_webhook(headers, body) == True

def test_webhook_validation_lowercase_headers(slack_handler):
    timestamp = str(int(time.time()))
    body = b"command=%2Finfo_repo"

    headers = {
        'x-slack-request-timestamp': timestamp,
        'x-slack-signature': sign(body, timestamp)
    }

    assert slack_handler.validate_webhook(headers, body) == True

def test_webhook_validation_wrong_secret(slack_handler):
    timestamp = str(int(time.time()))
    body = b"{}"

    headers = {
        'X-Slack-Request-Timestamp': timestamp,
        'X-Slack-Signature': sign(body, timestamp, secret="other")
    }

    assert slack_handler.validate_webhook(headers, body) == False

def test_webhook_validation_stale_timestamp(slack_handler):
    timestamp = str(int(time.time()) - 60 * 10)
    body = b"{}"

    headers = {
        'X-Slack-Request-Timestamp': timestamp,
        'X-Slack-Signature': sign(body, timestamp)
    }

    assert slack_handler.validate_webhook(headers, body) == False

def test_webhook_validation_missing_headers(slack_handler):
    assert slack_handler.validate_webhook({}, b"{}") == False

def test_process_message_webhook(slack_handler, sample_message_payload):
    event = slack_handler.process_webhook(sample_message_payload)

    assert event.provider == ServiceProvider.SLACK
    assert event.event_type == "message"
    assert event.text == "Hello bot"
    assert event.user == "U123456"
    assert event.channel == "C123456"
    assert event.ts == "1234567890.123456"

def test_process_slash_command_webhook(slack_handler, sample_slash_command_payload):
    event = slack_handler.process_webhook(sample_slash_command_payload)

    assert event.provider == ServiceProvider.SLACK
    assert event.event_type == "slash_command"
    assert event.command == "resume_commit"
    assert event.text == "\"fix login\" develop"
    assert event.channel == "C123456"
    assert event.response_url == "https://hooks.slack.com/commands/xxx"

def test_url_verification(slack_handler):
    payload = {
        "type": "url_verification",
        "challenge": "test_challenge"
    }

    event = slack_handler.process_webhook(payload)
    assert event.event_type == "url_verification"
    assert event.text == "test_challenge"

def test_unknown_event(slack_handler):
    event = slack_handler.process_webhook({"type": "event_callback", "event": {"type": "reaction_added"}})
    assert event.event_type == "unknown"

@pytest.mark.asyncio
async def test_resolve_identity(slack_handler, slack_client):
    slack_client.auth_test.return_value = {"user_id": "UBOT", "bot_id": "BBOT", "user": "repochat"}

    identity = await slack_handler.resolve_identity()

    assert identity.user_id == "UBOT"
    assert identity.bot_id == "BBOT"
    assert identity.name == "repochat"
    assert slack_handler.identity == identity

@pytest.mark.asyncio
async def test_send_response(slack_handler, slack_client, sample_message_payload):
    slack_client.chat_postMessage.return_value = {"ts": "1234567890.123457"}
    event = slack_handler.process_webhook(sample_message_payload)

    thread_id = await slack_handler.send_response(
        event=event,
        message="Test response",
        response_type=ResponseType.CHANNEL
    )

    assert thread_id == "1234567890.123457"
    slack_client.chat_postMessage.assert_awaited_once_with(
        channel="C123456",
        text="Test response",
        thread_ts=None
    )

@pytest.mark.asyncio
async def test_send_threaded_response(slack_handler, slack_client, sample_message_payload):
    slack_client.chat_postMessage.return_value = {"ts": "1234567890.123457"}
    event = slack_handler.process_webhook(sample_message_payload)

    await slack_handler.send_response(
        event=event,
        message="Test response",
        response_type=ResponseType.CHANNEL,
        thread_id="1234567890.123456"
    )

    slack_client.chat_postMessage.assert_awaited_once_with(
        channel="C123456",
        text="Test response",
        thread_ts="1234567890.123456"
    )

@pytest.mark.asyncio
async def test_send_response_error(slack_handler, slack_client, sample_message_payload):
    slack_client.chat_postMessage.side_effect = SlackApiError("Error", {"error": "channel_not_found"})
    event = slack_handler.process_webhook(sample_message_payload)

    with pytest.raises(SlackApiError):
        await slack_handler.send_response(
            event=event,
            message="Test response",
            response_type=ResponseType.CHANNEL
        )

@pytest.mark.asyncio
async def test_edit_deferred_reply(slack_handler, sample_slash_command_payload):
    event = slack_handler.process_webhook(sample_slash_command_payload)

    with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = Mock()
        await slack_handler.send_response(event, "Done", ResponseType.EDIT)

    mock_post.assert_awaited_once_with(
        "https://hooks.slack.com/commands/xxx",
        json={"text": "Done", "response_type": "in_channel", "replace_original": True}
    )

@pytest.mark.asyncio
async def test_follow_up(slack_handler, sample_slash_command_payload):
    event = slack_handler.process_webhook(sample_slash_command_payload)

    with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = Mock()
        await slack_handler.send_response(event, "More", ResponseType.FOLLOW_UP)

    mock_post.assert_awaited_once_with(
        "https://hooks.slack.com/commands/xxx",
        json={"text": "More", "response_type": "in_channel"}
    )

@pytest.mark.asyncio
async def test_edit_without_response_url(slack_handler, sample_message_payload):
    event = slack_handler.process_webhook(sample_message_payload)

    with pytest.raises(ValueError):
        await slack_handler.send_response(event, "Done", ResponseType.EDIT)

@pytest.mark.asyncio
async def test_send_typing(slack_handler, slack_client, sample_message_payload):
    event = slack_handler.process_webhook(sample_message_payload)

    await slack_handler.send_typing(event)

    slack_client.reactions_add.assert_awaited_once_with(
        channel="C123456",
        timestamp="1234567890.123456",
        name="hourglass_flowing_sand"
    )

@pytest.mark.asyncio
async def test_send_typing_again_is_ignored(slack_handler, slack_client, sample_message_payload):
    slack_client.reactions_add.side_effect = SlackApiError("Error", {"error": "already_reacted"})
    event = slack_handler.process_webhook(sample_message_payload)

    await slack_handler.send_typing(event)

@pytest.mark.asyncio
async def test_send_typing_error(slack_handler, slack_client, sample_message_payload):
    slack_client.reactions_add.side_effect = SlackApiError("Error", {"error": "missing_scope"})
    event = slack_handler.process_webhook(sample_message_payload)

    with pytest.raises(SlackApiError):
        await slack_handler.send_typing(event)

@pytest.mark.asyncio
async def test_stop_typing(slack_handler, slack_client, sample_message_payload):
    event = slack_handler.process_webhook(sample_message_payload)

    await slack_handler.stop_typing(event)

    slack_client.reactions_remove.assert_awaited_once_with(
        channel="C123456",
        timestamp="1234567890.123456",
        name="hourglass_flowing_sand"
    )

@pytest.mark.asyncio
async def test_stop_typing_without_reaction(slack_handler, slack_client, sample_message_payload):
    slack_client.reactions_remove.side_effect = SlackApiError("Error", {"error": "no_reaction"})
    event = slack_handler.process_webhook(sample_message_payload)

    await slack_handler.stop_typing(event)

@pytest.mark.asyncio
async def test_fetch_history(slack_handler, slack_client):
    slack_client.conversations_history.return_value = {
        "messages": [
            {"user": "U1", "text": "newest", "ts": "2"},
            {"bot_id": "B1", "username": "deploybot", "text": "deployed", "ts": "1"},
        ]
    }

    history = await slack_handler.fetch_history("C123456", 10)

    slack_client.conversations_history.assert_awaited_once_with(channel="C123456", limit=10)
    assert [m.text for m in history] == ["newest", "deployed"]
    assert history[1].bot_id == "B1"

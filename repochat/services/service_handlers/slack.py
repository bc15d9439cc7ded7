import hashlib
import hmac
import logging
import time
from typing import Any, Dict, List, Mapping, Optional

import httpx
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from repochat.core.config import settings
from repochat.schemas.service_handler import (
    BotIdentity,
    HistoryMessage,
    ServiceProvider,
    StandardizedEvent,
)

from .base import ResponseType, ServiceHandler

# Reaction left on the user's message while an answer is being prepared
TYPING_REACTION = "hourglass_flowing_sand"


class SlackHandler(ServiceHandler):
    def __init__(
        self,
        signing_secret: Optional[str] = None,
        bot_token: Optional[str] = None,
        client: Optional[AsyncWebClient] = None,
    ):
        self.signing_secret = signing_secret or settings.SLACK_SIGNING_SECRET
        self.client = client or AsyncWebClient(token=bot_token or settings.SLACK_BOT_TOKEN)
        self.identity: Optional[BotIdentity] = None

    def validate_webhook(self, headers: Mapping[str, str], body: bytes) -> bool:
        """
        Validate Slack webhook using signing secret
        https://api.slack.com/authentication/verifying-requests-from-slack
        """
        headers = {key.lower(): value for key, value in headers.items()}

        # Check for required headers
        if not all(key in headers for key in ['x-slack-request-timestamp', 'x-slack-signature']):
            return False

        timestamp = headers['x-slack-request-timestamp']
        signature = headers['x-slack-signature']

        # Check timestamp is not too old (5 minutes max)
        try:
            if abs(int(time.time()) - int(timestamp)) > 60 * 5:
                return False
        except ValueError:
            return False

        # Prepare the base string for HMAC
        base_string = b"v0:" + timestamp.encode() + b":" + body

        # Compute the expected signature
        expected_signature = 'v0=' + hmac.new(
            key=self.signing_secret.encode(),
            msg=base_string,
            digestmod=hashlib.sha256
        ).hexdigest()

        # Compare signatures
        return hmac.compare_digest(signature, expected_signature)

    def process_webhook(self, payload: Dict[str, Any]) -> StandardizedEvent:
        """
        Process Slack events and slash commands into StandardizedEvent
        """
        # URL verification for Slack Events API
        if payload.get('type') == 'url_verification':
            return StandardizedEvent(
                provider=ServiceProvider.SLACK,
                event_type='url_verification',
                text=payload.get('challenge', ''),
                raw_payload=payload
            )

        # Handle slash commands
        if 'command' in payload:
            return StandardizedEvent(
                provider=ServiceProvider.SLACK,
                event_type='slash_command',
                user=payload.get('user_id'),
                channel=payload.get('channel_id'),
                text=payload.get('text', ''),
                command=payload['command'].lstrip('/'),
                response_url=payload.get('response_url'),
                raw_payload=payload
            )

        # Handle message events
        event = payload.get('event', {})
        if payload.get('type') == 'event_callback' and event.get('type') == 'message':
            return StandardizedEvent(
                provider=ServiceProvider.SLACK,
                event_type='message',
                user=event.get('user') or event.get('bot_id'),
                channel=event.get('channel'),
                text=event.get('text', ''),
                ts=event.get('ts'),
                thread_ts=event.get('thread_ts'),
                bot_id=event.get('bot_id'),
                subtype=event.get('subtype'),
                raw_payload=payload
            )

        return StandardizedEvent(
            provider=ServiceProvider.SLACK,
            event_type='unknown',
            raw_payload=payload
        )

    async def resolve_identity(self) -> BotIdentity:
        response = await self.client.auth_test()
        self.identity = BotIdentity(
            user_id=response['user_id'],
            bot_id=response.get('bot_id'),
            name=response.get('user') or settings.PROJECT_NAME,
        )
        logging.info(f"Connected to Slack as {self.identity.name} ({self.identity.user_id})")
        return self.identity

    async def send_response(
        self,
        event: StandardizedEvent,
        message: str,
        response_type: ResponseType,
        thread_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Send response back to Slack, either through the command's
        response_url or as a regular channel/thread message
        """
        try:
            if response_type in (ResponseType.EDIT, ResponseType.FOLLOW_UP):
                if not event.response_url:
                    raise ValueError("No response_url found in event")

                body = {"text": message, "response_type": "in_channel"}
                if response_type == ResponseType.EDIT:
                    body["replace_original"] = True

                async with httpx.AsyncClient() as client:
                    response = await client.post(event.response_url, json=body)
                    response.raise_for_status()
                return None

            if not event.channel:
                raise ValueError("No channel found in event")

            # Send message with optional threading
            response = await self.client.chat_postMessage(
                channel=event.channel,
                text=message,
                thread_ts=thread_id
            )

            # Return the timestamp which can be used as a thread ID
            return response['ts']

        except SlackApiError as e:
            logging.error(f"Slack API error: {e}")
            raise
        except Exception as e:
            logging.error(f"Error sending Slack response: {e}")
            raise

    async def send_typing(self, event: StandardizedEvent) -> None:
        """
        Slack has no typing event for bots in channels, so an hourglass
        reaction on the message stands in for it. Refreshing an existing
        reaction is a no-op.
        """
        try:
            await self.client.reactions_add(
                channel=event.channel,
                timestamp=event.ts,
                name=TYPING_REACTION,
            )
        except SlackApiError as e:
            if e.response.get("error") != "already_reacted":
                raise

    async def stop_typing(self, event: StandardizedEvent) -> None:
        try:
            await self.client.reactions_remove(
                channel=event.channel,
                timestamp=event.ts,
                name=TYPING_REACTION,
            )
        except SlackApiError as e:
            if e.response.get("error") != "no_reaction":
                raise

    async def fetch_history(self, channel: str, limit: int) -> List[HistoryMessage]:
        response = await self.client.conversations_history(channel=channel, limit=limit)
        return [
            HistoryMessage(
                user=message.get('user'),
                bot_id=message.get('bot_id'),
                username=message.get('username'),
                text=message.get('text', ''),
                ts=message.get('ts'),
            )
            for message in response.get('messages', [])
        ]

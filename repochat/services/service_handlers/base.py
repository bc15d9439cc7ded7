from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from repochat.schemas.service_handler import (
    BotIdentity,
    HistoryMessage,
    StandardizedEvent,
)


class ResponseType(Enum):
    EDIT = "edit"  # Replace the deferred reply of a command
    FOLLOW_UP = "follow_up"  # New message tied to a command
    CHANNEL = "channel"  # Plain message in the channel or thread


class ServiceHandler(ABC):
    identity: Optional[BotIdentity] = None

    @abstractmethod
    def validate_webhook(self, headers: Mapping[str, str], body: bytes) -> bool:
        """Validate the webhook signature/authenticity"""
        pass

    @abstractmethod
    def process_webhook(self, payload: Dict[str, Any]) -> StandardizedEvent:
        """Convert webhook payload to standardized event"""
        pass

    @abstractmethod
    async def resolve_identity(self) -> BotIdentity:
        """Look up who the bot is on the platform"""
        pass

    @abstractmethod
    async def send_response(
        self,
        event: StandardizedEvent,
        message: str,
        response_type: ResponseType,
        thread_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Send a response to the platform

        Args:
            event: The original event being responded to
            message: The response message content
            response_type: How the response is attached to the event
            thread_id: Optional ID of the thread to reply in

        Returns:
            ID of the created message when the platform reports one
        """
        pass

    @abstractmethod
    async def send_typing(self, event: StandardizedEvent) -> None:
        """Show that the bot is working on the event"""
        pass

    @abstractmethod
    async def stop_typing(self, event: StandardizedEvent) -> None:
        """Clear the working indicator shown by send_typing"""
        pass

    @abstractmethod
    async def fetch_history(self, channel: str, limit: int) -> List[HistoryMessage]:
        """Return the latest messages of a channel, newest first"""
        pass

import asyncio
import logging
from typing import List, Optional, Sequence

from repochat.schemas.service_handler import StandardizedEvent
from repochat.services.service_handlers.base import ResponseType, ServiceHandler

logger = logging.getLogger(__name__)

# Edit the deferred reply, then post a follow-up, then write to the channel
COMMAND_CHAIN = (ResponseType.EDIT, ResponseType.FOLLOW_UP, ResponseType.CHANNEL)


def chunk_text(text: str, size: int) -> List[str]:
    """Split text into consecutive pieces of at most ``size`` characters"""
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    return [text[i : i + size] for i in range(0, len(text), size)]


def render_file_content(
    path: str,
    content: str,
    branch: Optional[str] = None,
    size_limit: int = 1900,
    preview_size: int = 1800,
) -> str:
    """Format a file for a single message, truncating it when too large"""
    if len(content) > size_limit:
        return (
            f"Le fichier *{path}* est trop volumineux pour être affiché en entier. "
            f"Voici les premières lignes:\n\n```\n{content[:preview_size]}\n...\n```"
        )
    location = f" (branche: {branch})" if branch else ""
    return f"Contenu du fichier *{path}*{location}:\n\n```\n{content}\n```"


class TypingIndicator:
    """Keeps the platform's "working" indicator alive while a block runs.

    The refresh task is cancelled and the indicator cleared when the block
    exits, whether it returns or raises.
    """

    def __init__(
        self, handler: ServiceHandler, event: StandardizedEvent, interval: float = 5.0
    ):
        self.handler = handler
        self.event = event
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def __aenter__(self) -> "TypingIndicator":
        await self._emit()
        self._task = asyncio.create_task(self._refresh())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        try:
            await self.handler.stop_typing(self.event)
        except Exception as e:
            logger.warning(f"Could not clear typing indicator: {e}")

    async def _refresh(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self._emit()

    async def _emit(self) -> None:
        try:
            await self.handler.send_typing(self.event)
        except Exception as e:
            logger.warning(f"Could not send typing indicator: {e}")


async def send_chunks(
    handler: ServiceHandler,
    event: StandardizedEvent,
    text: str,
    chunk_size: int,
) -> None:
    """Send every chunk of ``text`` as its own message, in order"""
    for chunk in chunk_text(text, chunk_size):
        await handler.send_response(
            event, chunk, ResponseType.CHANNEL, thread_id=event.thread_ts
        )


async def deliver_with_fallback(
    handler: ServiceHandler,
    event: StandardizedEvent,
    message: str,
    chain: Sequence[ResponseType] = COMMAND_CHAIN,
) -> Optional[ResponseType]:
    """Deliver a command response, degrading along ``chain``.

    Returns the response type that succeeded, or None when every path failed.
    """
    for response_type in chain:
        try:
            await handler.send_response(event, message, response_type)
            return response_type
        except Exception as e:
            logger.error(f"Delivery via {response_type.value} failed: {e}")
    return None

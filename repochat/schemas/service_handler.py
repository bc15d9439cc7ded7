from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

class ServiceProvider(str, Enum):
    SLACK = "slack"

class StandardizedEvent(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    provider: ServiceProvider
    event_type: str  # e.g. "message", "slash_command", "url_verification"
    user: Optional[str] = None  # Author id (user id, or bot id for bot posts)
    channel: Optional[str] = None
    text: str = ""  # Message text, or the raw argument string of a slash command
    ts: Optional[str] = None
    thread_ts: Optional[str] = None
    bot_id: Optional[str] = None
    subtype: Optional[str] = None
    command: Optional[str] = None  # Slash command name without the leading "/"
    response_url: Optional[str] = None
    raw_payload: Dict[str, Any]  # Original provider-specific payload

class HistoryMessage(BaseModel):
    """A past channel message as returned by the platform"""

    user: Optional[str] = None
    bot_id: Optional[str] = None
    username: Optional[str] = None
    text: str = ""
    ts: Optional[str] = None

class BotIdentity(BaseModel):
    user_id: str
    bot_id: Optional[str] = None
    name: str = "RepoChat"

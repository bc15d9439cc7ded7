from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    """One entry of the prompt sent to the completion API"""

    role: Role
    content: str
    name: Optional[str] = None

    def to_api(self) -> Dict[str, str]:
        message = {"role": self.role.value, "content": self.content}
        if self.name:
            message["name"] = self.name
        return message

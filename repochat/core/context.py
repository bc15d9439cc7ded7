"""Process state shared by every event handler"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from repochat.core.config import Settings, get_settings
from repochat.schemas.repository import RepositoryInfo
from repochat.schemas.service_handler import BotIdentity
from repochat.services.conversation import ConversationBuilder
from repochat.services.github_repository import RepositoryService
from repochat.services.intent import IntentExtractor
from repochat.services.llm import LLMService
from repochat.services.service_handlers.base import ServiceHandler
from repochat.services.service_handlers.slack import SlackHandler

logger = logging.getLogger(__name__)


@dataclass
class BotContext:
    settings: Settings
    handler: ServiceHandler
    repositories: RepositoryService
    llm: LLMService
    conversation: ConversationBuilder
    intents: IntentExtractor = field(default_factory=IntentExtractor)
    repo_info: Optional[RepositoryInfo] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "BotContext":
        settings = settings or get_settings()
        return cls(
            settings=settings,
            handler=SlackHandler(
                signing_secret=settings.SLACK_SIGNING_SECRET,
                bot_token=settings.SLACK_BOT_TOKEN,
            ),
            repositories=RepositoryService(
                full_name=settings.repository_full_name,
                github_token=settings.GITHUB_TOKEN,
                search_window=settings.COMMIT_SEARCH_WINDOW,
            ),
            llm=LLMService(),
            conversation=ConversationBuilder(
                repository_full_name=settings.repository_full_name,
                ignore_prefix=settings.IGNORE_PREFIX,
            ),
        )

    @property
    def identity(self) -> BotIdentity:
        return self.handler.identity or BotIdentity(
            user_id="", name=self.settings.PROJECT_NAME
        )

    @property
    def default_branch(self) -> Optional[str]:
        return self.repo_info.default_branch if self.repo_info else None

    async def refresh_repository_info(self) -> RepositoryInfo:
        """Fetch a fresh snapshot and swap it in"""
        info = await asyncio.to_thread(self.repositories.fetch_repository_info)
        self.repo_info = info
        logger.info(f"Repository info loaded for {info.name}")
        return info

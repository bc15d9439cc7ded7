from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "RepoChat"
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 3000

    # Slack settings
    SLACK_SIGNING_SECRET: str = ''
    SLACK_BOT_TOKEN: str = ''
    CHANNELS: List[str] = []  # Channels where the bot answers without a mention
    IGNORE_PREFIX: str = "!"

    # GitHub settings
    GITHUB_TOKEN: str = ''
    GITHUB_OWNER: str = ''
    GITHUB_REPO: str = ''
    COMMIT_SEARCH_WINDOW: int = 50

    # LLM Settings
    LLM_MODEL: str = "gpt-4.1-mini"  # Default model
    LLM_API_KEY: str = ""     # API key for the model provider
    LLM_PROVIDER: str = "openai"  # Provider (openai, azure, anthropic, etc)

    # Conversation and delivery
    HISTORY_LIMIT: int = 10
    CHUNK_SIZE: int = 2000
    FILE_SIZE_LIMIT: int = 1900
    FILE_PREVIEW_SIZE: int = 1800
    TYPING_INTERVAL: float = 5.0

    model_config = {
        "env_file": ".env"
    }

    @property
    def repository_full_name(self) -> str:
        return f"{self.GITHUB_OWNER}/{self.GITHUB_REPO}"


@lru_cache
def get_settings():
    return Settings()


settings = get_settings()

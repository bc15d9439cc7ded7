import hashlib
import hmac
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from repochat.core.config import Settings
from repochat.core.context import BotContext
from repochat.schemas.repository import (
    CommitRecord,
    FileChange,
    FileStatus,
    RepositoryInfo,
)
from repochat.schemas.service_handler import (
    BotIdentity,
    HistoryMessage,
    ServiceProvider,
    StandardizedEvent,
)
from repochat.services.conversation import ConversationBuilder
from repochat.services.github_repository import RepositoryService
from repochat.services.llm import LLMService
from repochat.services.service_handlers.base import ResponseType, ServiceHandler


def pytest_configure(config):
    """Register the 'integration' marker"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test that uses real external services",
    )


class FakeHandler(ServiceHandler):
    """In-memory chat platform recording everything the bot sends"""

    def __init__(self):
        self.identity = BotIdentity(user_id="UBOT", bot_id="BBOT", name="RepoChat")
        self.sent: List[Dict[str, Any]] = []
        self.typing_calls = 0
        self.typing_cleared = 0
        self.history: List[HistoryMessage] = []
        self.failing: set = set()

    def validate_webhook(self, headers, body) -> bool:
        return True

    def process_webhook(self, payload):
        raise NotImplementedError

    async def resolve_identity(self) -> BotIdentity:
        return self.identity

    async def send_response(
        self,
        event: StandardizedEvent,
        message: str,
        response_type: ResponseType,
        thread_id: Optional[str] = None,
    ) -> Optional[str]:
        if response_type in self.failing:
            raise RuntimeError(f"{response_type.value} unavailable")
        self.sent.append(
            {"message": message, "response_type": response_type, "thread_id": thread_id}
        )
        return str(len(self.sent))

    async def send_typing(self, event: StandardizedEvent) -> None:
        self.typing_calls += 1

    async def stop_typing(self, event: StandardizedEvent) -> None:
        self.typing_cleared += 1

    async def fetch_history(self, channel: str, limit: int) -> List[HistoryMessage]:
        return self.history[:limit]


@pytest.fixture
def test_settings():
    return Settings(
        SLACK_SIGNING_SECRET="test_secret",
        SLACK_BOT_TOKEN="test_token",
        GITHUB_OWNER="octocat",
        GITHUB_REPO="hello-world",
        CHANNELS=["C123456"],
        TYPING_INTERVAL=0.01,
        CHUNK_SIZE=2000,
        FILE_SIZE_LIMIT=1900,
        FILE_PREVIEW_SIZE=1800,
    )


@pytest.fixture
def repo_info():
    return RepositoryInfo(
        name="hello-world",
        description="My first repository",
        default_branch="main",
        last_updated=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def make_commit():
    def _make_commit(
        sha: str = "7fd1a60b01f91b314f59955a4e4d4e80d8edf11d",
        message: str = "Update README.md\n\nMore details",
        files: int = 2,
    ) -> CommitRecord:
        return CommitRecord(
            sha=sha,
            message=message,
            author="octocat",
            date=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            files=tuple(
                FileChange(
                    filename=f"file_{i}.py",
                    status=FileStatus.MODIFIED,
                    additions=3,
                    deletions=1,
                    changes=4,
                    patch="@@ -1 +1 @@\n-old\n+new",
                )
                for i in range(files)
            ),
        )

    return _make_commit


@pytest.fixture
def fake_handler():
    return FakeHandler()


@pytest.fixture
def mock_repositories():
    return Mock(spec=RepositoryService)


@pytest.fixture
def mock_llm():
    llm = Mock(spec=LLMService)
    llm.complete = AsyncMock(return_value="Voici la réponse")
    llm.summarize_commit = AsyncMock(return_value="Résumé des changements")
    return llm


@pytest.fixture
def bot_context(test_settings, fake_handler, mock_repositories, mock_llm, repo_info):
    return BotContext(
        settings=test_settings,
        handler=fake_handler,
        repositories=mock_repositories,
        llm=mock_llm,
        conversation=ConversationBuilder(
            repository_full_name=test_settings.repository_full_name,
            ignore_prefix=test_settings.IGNORE_PREFIX,
        ),
        repo_info=repo_info,
    )


@pytest.fixture
def message_event():
    def _message_event(text: str, **kwargs) -> StandardizedEvent:
        fields = {
            "provider": ServiceProvider.SLACK,
            "event_type": "message",
            "user": "U123456",
            "channel": "C123456",
            "text": text,
            "ts": "1700000000.000100",
            "raw_payload": {},
        }
        fields.update(kwargs)
        return StandardizedEvent(**fields)

    return _message_event


@pytest.fixture
def command_event():
    def _command_event(command: str, text: str = "") -> StandardizedEvent:
        return StandardizedEvent(
            provider=ServiceProvider.SLACK,
            event_type="slash_command",
            user="U123456",
            channel="C123456",
            text=text,
            command=command,
            response_url="https://hooks.slack.com/commands/xxx",
            raw_payload={},
        )

    return _command_event


@pytest.fixture
def slack_signature():
    """Fixture to generate Slack request signatures for testing"""
    def _generate_signature(signing_secret: str, body: bytes) -> Dict[str, str]:
        timestamp = str(int(time.time()))
        signature = 'v0=' + hmac.new(
            key=signing_secret.encode(),
            msg=b"v0:" + timestamp.encode() + b":" + body,
            digestmod=hashlib.sha256
        ).hexdigest()

        return {
            "X-Slack-Request-Timestamp": timestamp,
            "X-Slack-Signature": signature,
        }

    return _generate_signature

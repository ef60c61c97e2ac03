"""Shared pytest fixtures and fakes."""

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from primate_bot.config import BotConfig, Config, GitLabConfig, SlackConfig
from primate_bot.services.gitlab_service import ReviewStatus
from primate_bot.services.review_registry import ReviewRegistry
from primate_bot.services.statistics_service import StatisticsService

MR_URL = "https://gitlab.example.com/workspace/group/project/-/merge_requests/42"


class MemoryStore:
    """In-memory stand-in for CollectionStore."""

    def __init__(self, records: Optional[dict] = None):
        self.records = copy.deepcopy(records or {})
        self.saves = 0
        self.fail = False

    async def load_all(self) -> dict:
        return copy.deepcopy(self.records)

    async def save_all(self, records: dict) -> bool:
        if self.fail:
            return False
        self.records = copy.deepcopy(records)
        self.saves += 1
        return True


@dataclass
class PostedMessage:
    channel: str
    text: str
    thread_ts: Optional[str] = None
    blocks: Optional[list] = None


class RecordingChat:
    """Records outbound Slack messages; resolves names from a dict."""

    def __init__(self, names: Optional[dict[str, str]] = None):
        self.names = names or {}
        self.messages: list[PostedMessage] = []
        self.failing_channels: set[str] = set()

    async def post_message(self, channel, text, thread_ts=None, blocks=None):
        if channel in self.failing_channels:
            raise RuntimeError(f"channel_not_found: {channel}")
        self.messages.append(PostedMessage(channel, text, thread_ts, blocks))
        return f"{len(self.messages)}.000100"

    async def get_display_name(self, user_id: str) -> str:
        return self.names.get(user_id, user_id)

    @property
    def texts(self) -> list[str]:
        return [message.text for message in self.messages]


class FakeGitLab:
    """Scripted GitLab service."""

    def __init__(self, mergeable: bool = True, last_update: Optional[datetime] = None):
        self.status = ReviewStatus(
            last_update_time=last_update or datetime.now(timezone.utc),
            mergeable=mergeable,
            is_draft=False,
        )
        self.per_review: dict[tuple[str, int], Any] = {}
        self.merge_result = True
        self.queries: list[tuple[str, int]] = []
        self.merges: list[tuple[str, int]] = []

    async def query_review(self, project_path: str, review_number: int) -> ReviewStatus:
        self.queries.append((project_path, review_number))
        status = self.per_review.get((project_path, review_number), self.status)
        if isinstance(status, Exception):
            raise status
        return status

    async def merge_review(self, project_path: str, review_number: int) -> bool:
        self.merges.append((project_path, review_number))
        return self.merge_result


@pytest.fixture
def config() -> Config:
    return Config(
        slack=SlackConfig(
            bot_token="xoxb-test",
            bot_user_id="UBOT",
            channel_ids="C1, C2",
            workspace="acme",
        ),
        gitlab=GitLabConfig(
            host="gitlab.example.com",
            token="glpat-test",
            direct_merge_patterns=["asgard"],
        ),
        bot=BotConfig(),
    )


@pytest.fixture
def review_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def stats_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def registry(review_store) -> ReviewRegistry:
    return ReviewRegistry(review_store)


@pytest.fixture
def statistics(stats_store) -> StatisticsService:
    return StatisticsService(stats_store)


@pytest.fixture
def chat() -> RecordingChat:
    return RecordingChat(names={"UA": "Alice", "UB": "Bob", "UAUTH": "Carol"})


@pytest.fixture
def gitlab() -> FakeGitLab:
    return FakeGitLab()

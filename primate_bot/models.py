"""Domain models for tracked reviews and user statistics.

Both models serialize to camelCase JSON (``model_dump(by_alias=True,
mode="json")``), which is the layout of the persisted collections.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return math.floor(value + 0.5)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from ``start`` to ``end``; negative if inverted."""
    return round_half_up((end - start).total_seconds() / 60)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class TrackedReview(_CamelModel):
    """A Slack thread tracking one GitLab merge request."""

    thread_key: str
    review_url: str
    project_path: str
    review_number: int
    channel: str
    author_id: str
    reviewers: list[str] = Field(default_factory=list)
    approved: bool = False
    merged: bool = False
    commenters: list[str] = Field(default_factory=list)
    approval_times: dict[str, datetime] = Field(default_factory=dict)
    first_approval_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_updated: Optional[datetime] = None

    def is_reviewer(self, user_id: str) -> bool:
        return user_id in self.reviewers


class UserStats(_CamelModel):
    """Per-user review activity counters and duration samples (minutes)."""

    prs_authored: int = 0
    prs_approved: int = 0
    prs_merged: int = 0
    comments_left: int = 0
    approval_times: list[int] = Field(default_factory=list)
    pr_durations: list[int] = Field(default_factory=list)
    fastest_approval: Optional[int] = None
    longest_pr_duration: Optional[int] = Field(default=None, alias="longestPRDuration")
    first_activity: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)

    def add_approval_time(self, minutes: int) -> None:
        self.approval_times.append(minutes)
        if self.fastest_approval is None or minutes < self.fastest_approval:
            self.fastest_approval = minutes

    def add_pr_duration(self, minutes: int) -> None:
        self.pr_durations.append(minutes)
        if self.longest_pr_duration is None or minutes > self.longest_pr_duration:
            self.longest_pr_duration = minutes


class UserAverages(BaseModel):
    """Average approval latency and PR lifetime for one user."""

    avg_approval_time: Optional[int] = None
    avg_pr_duration: Optional[int] = None
    total_approvals: int = 0
    total_merges: int = 0


class LeaderboardEntry(BaseModel):
    """One ranked row of a leaderboard."""

    user_id: str
    value: int
    stats: UserStats

"""Best-effort per-user review statistics.

Recording never raises: a statistics failure is logged and the calling
workflow carries on.
"""

import functools
import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from ..models import LeaderboardEntry, UserAverages, UserStats, minutes_between, round_half_up, utcnow

logger = logging.getLogger(__name__)

LEADERBOARD_METRICS = (
    "prsAuthored",
    "prsApproved",
    "commentsLeft",
    "prsMerged",
    "fastestApproval",
    "longestPRDuration",
)

# Lower is better for these metrics
ASCENDING_METRICS = frozenset({"fastestApproval"})

_LEGACY_STATS_FIELDS = {
    "approvalsGiven": "prsApproved",
    "mergesDone": "prsMerged",
    "longestPR": "longestPRDuration",
}


def migrate_user_stats(records: dict[str, dict]) -> int:
    """Backfill missing fields and rename legacy ones in place.

    Idempotent. Returns the number of records changed.
    """
    migrated = 0
    for record in records.values():
        needs_migration = False

        if record.get("approvalTimes") is None:
            record["approvalTimes"] = []
            needs_migration = True
        if record.get("prDurations") is None:
            record["prDurations"] = []
            needs_migration = True
        if not record.get("firstActivity"):
            record["firstActivity"] = record.get("lastUpdated") or utcnow().isoformat()
            needs_migration = True

        for old, new in _LEGACY_STATS_FIELDS.items():
            if old in record:
                record[new] = record.pop(old)
                needs_migration = True

        if needs_migration:
            migrated += 1
    return migrated


def _best_effort(operation):
    """Log and swallow any exception raised by a recording coroutine."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.error("Error during statistics update (%s): %s", operation, e, exc_info=True)
                return None

        return wrapper

    return decorator


class StatisticsService:
    """Ledger of review activity per Slack user."""

    def __init__(self, store):
        self.store = store
        self._stats: dict[str, UserStats] = {}

    async def load(self) -> int:
        """Load and migrate persisted statistics. Returns the number of users."""
        raw = await self.store.load_all()
        migrated = migrate_user_stats(raw)

        self._stats = {}
        for user_id, record in raw.items():
            try:
                self._stats[user_id] = UserStats.model_validate(record)
            except ValidationError as e:
                logger.error("Dropping unreadable statistics for %s: %s", user_id, e)

        if migrated:
            logger.info("Migrated %d user statistics to new format", migrated)
            await self._persist()
        return len(self._stats)

    async def _persist(self) -> bool:
        return await self.store.save_all(
            {user_id: stats.to_json_dict() for user_id, stats in self._stats.items()}
        )

    def _working_copy(self, user_id: str) -> UserStats:
        stats = self._stats.get(user_id)
        return stats.model_copy(deep=True) if stats else UserStats()

    async def _commit(self, user_id: str, stats: UserStats) -> None:
        stats.last_updated = utcnow()
        self._stats[user_id] = stats
        await self._persist()

    @_best_effort("record_creation")
    async def record_creation(self, user_id: str, created_at: datetime) -> None:
        stats = self._working_copy(user_id)
        stats.prs_authored += 1
        await self._commit(user_id, stats)
        logger.info("Tracked PR creation for user %s at %s", user_id, created_at.isoformat())

    @_best_effort("record_approval")
    async def record_approval(
        self, reviewer_id: str, author_id: str, created_at: datetime, approved_at: datetime
    ) -> None:
        stats = self._working_copy(reviewer_id)
        stats.prs_approved += 1
        minutes = minutes_between(created_at, approved_at)
        stats.add_approval_time(minutes)
        await self._commit(reviewer_id, stats)
        logger.info(
            "Tracked approval by %s of a PR from %s: %d minutes", reviewer_id, author_id, minutes
        )

    @_best_effort("record_comment")
    async def record_comment(self, user_id: str) -> None:
        stats = self._working_copy(user_id)
        stats.comments_left += 1
        await self._commit(user_id, stats)
        logger.info("Tracked comment for user %s", user_id)

    @_best_effort("record_merge")
    async def record_merge(self, author_id: str, created_at: datetime, merged_at: datetime) -> None:
        stats = self._working_copy(author_id)
        stats.prs_merged += 1
        minutes = minutes_between(created_at, merged_at)
        stats.add_pr_duration(minutes)
        await self._commit(author_id, stats)
        logger.info("Tracked PR merge for author %s: %d minutes duration", author_id, minutes)

    def get_user_stats(self, user_id: str) -> Optional[UserStats]:
        stats = self._stats.get(user_id)
        return stats.model_copy(deep=True) if stats else None

    def get_leaderboard(self, metric: str, limit: int = 10) -> list[LeaderboardEntry]:
        """Top ``limit`` users by ``metric``.

        Users with no value or a non-positive value are left out.

        Raises:
            ValueError: If ``metric`` is not one of LEADERBOARD_METRICS.
        """
        if metric not in LEADERBOARD_METRICS:
            raise ValueError(f"Invalid metric: {metric}")

        entries = []
        for user_id, stats in self._stats.items():
            value = stats.model_dump(by_alias=True).get(metric)
            if value is None or value <= 0:
                continue
            entries.append(
                LeaderboardEntry(user_id=user_id, value=value, stats=stats.model_copy(deep=True))
            )

        descending = metric not in ASCENDING_METRICS
        entries.sort(key=lambda entry: entry.value, reverse=descending)
        return entries[:limit]

    def get_user_averages(self, user_id: str) -> Optional[UserAverages]:
        stats = self._stats.get(user_id)
        if stats is None:
            return None

        def mean(samples: list[int]) -> Optional[int]:
            return round_half_up(sum(samples) / len(samples)) if samples else None

        return UserAverages(
            avg_approval_time=mean(stats.approval_times),
            avg_pr_duration=mean(stats.pr_durations),
            total_approvals=len(stats.approval_times),
            total_merges=len(stats.pr_durations),
        )

"""Tests for StatisticsService."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import MemoryStore
from primate_bot.services.statistics_service import StatisticsService, migrate_user_stats

T0 = datetime(2024, 5, 6, 9, 0, tzinfo=timezone.utc)


class TestRecording:
    """Counters and duration samples."""

    @pytest.mark.asyncio
    async def test_creation_counts_and_persists(self, statistics, stats_store):
        """Test a tracked creation bumps prsAuthored."""
        await statistics.record_creation("UAUTH", T0)
        await statistics.record_creation("UAUTH", T0)

        stats = statistics.get_user_stats("UAUTH")
        assert stats.prs_authored == 2
        assert stats_store.records["UAUTH"]["prsAuthored"] == 2
        assert stats_store.saves == 2

    @pytest.mark.asyncio
    async def test_approval_tracks_fastest(self, statistics):
        """Test fastestApproval is the minimum of the samples."""
        await statistics.record_approval("UA", "UAUTH", T0, T0 + timedelta(minutes=90))
        await statistics.record_approval("UA", "UAUTH", T0, T0 + timedelta(minutes=30))
        await statistics.record_approval("UA", "UAUTH", T0, T0 + timedelta(minutes=45))

        stats = statistics.get_user_stats("UA")
        assert stats.prs_approved == 3
        assert stats.approval_times == [90, 30, 45]
        assert stats.fastest_approval == 30

    @pytest.mark.asyncio
    async def test_merge_tracks_longest(self, statistics, stats_store):
        """Test longestPRDuration is the maximum of the samples."""
        await statistics.record_merge("UAUTH", T0, T0 + timedelta(hours=2))
        await statistics.record_merge("UAUTH", T0, T0 + timedelta(hours=1))

        stats = statistics.get_user_stats("UAUTH")
        assert stats.prs_merged == 2
        assert stats.pr_durations == [120, 60]
        assert stats.longest_pr_duration == 120
        assert stats_store.records["UAUTH"]["longestPRDuration"] == 120

    @pytest.mark.asyncio
    async def test_negative_duration_is_recorded(self, statistics):
        """Test inverted timestamps are recorded as-is."""
        await statistics.record_approval("UA", "UAUTH", T0, T0 - timedelta(minutes=5))

        stats = statistics.get_user_stats("UA")
        assert stats.approval_times == [-5]
        assert stats.fastest_approval == -5

    @pytest.mark.asyncio
    async def test_comment(self, statistics):
        """Test comments are counted per user."""
        await statistics.record_comment("UB")

        assert statistics.get_user_stats("UB").comments_left == 1
        assert statistics.get_user_stats("UA") is None

    @pytest.mark.asyncio
    async def test_store_failure_does_not_raise(self):
        """Test recording is best effort when persistence breaks."""

        class BrokenStore(MemoryStore):
            async def save_all(self, records):
                raise RuntimeError("disk full")

        statistics = StatisticsService(BrokenStore())

        await statistics.record_creation("UAUTH", T0)
        await statistics.record_comment("UB")

    @pytest.mark.asyncio
    async def test_get_user_stats_returns_copy(self, statistics):
        """Test callers cannot mutate the ledger."""
        await statistics.record_comment("UA")
        statistics.get_user_stats("UA").comments_left = 99

        assert statistics.get_user_stats("UA").comments_left == 1

    @pytest.mark.asyncio
    async def test_failed_recording_leaves_no_record(self, statistics, stats_store):
        """Test a recording that fails midway does not create an empty user."""
        naive_created_at = datetime(2024, 5, 6, 9, 0)

        await statistics.record_approval("UA", "UAUTH", naive_created_at, T0)

        assert statistics.get_user_stats("UA") is None
        assert statistics.get_leaderboard("prsApproved") == []
        assert stats_store.saves == 0


class TestLeaderboard:
    """Ranking users by a metric."""

    @pytest.mark.asyncio
    async def test_descending_with_limit(self, statistics):
        """Test counters rank highest first."""
        for user_id, count in (("UA", 1), ("UB", 3), ("UC", 2)):
            for _ in range(count):
                await statistics.record_creation(user_id, T0)

        entries = statistics.get_leaderboard("prsAuthored", limit=2)

        assert [(entry.user_id, entry.value) for entry in entries] == [("UB", 3), ("UC", 2)]

    @pytest.mark.asyncio
    async def test_fastest_approval_ascending(self, statistics):
        """Test fastestApproval ranks lowest first."""
        await statistics.record_approval("UA", "UAUTH", T0, T0 + timedelta(minutes=40))
        await statistics.record_approval("UB", "UAUTH", T0, T0 + timedelta(minutes=10))

        entries = statistics.get_leaderboard("fastestApproval")

        assert [entry.user_id for entry in entries] == ["UB", "UA"]

    @pytest.mark.asyncio
    async def test_excludes_missing_and_non_positive(self, statistics):
        """Test users without a positive value are left out."""
        await statistics.record_creation("UAUTH", T0)
        await statistics.record_approval("UA", "UAUTH", T0, T0)
        await statistics.record_approval("UB", "UAUTH", T0, T0 + timedelta(minutes=3))

        entries = statistics.get_leaderboard("fastestApproval")

        assert [entry.user_id for entry in entries] == ["UB"]
        assert statistics.get_leaderboard("prsMerged") == []

    def test_invalid_metric(self, statistics):
        """Test an unknown metric is rejected."""
        with pytest.raises(ValueError, match="Invalid metric"):
            statistics.get_leaderboard("karma")


class TestAverages:
    """Per-user averages."""

    @pytest.mark.asyncio
    async def test_rounded_means(self, statistics):
        """Test averages round halves up."""
        await statistics.record_approval("UA", "UAUTH", T0, T0 + timedelta(minutes=10))
        await statistics.record_approval("UA", "UAUTH", T0, T0 + timedelta(minutes=15))

        averages = statistics.get_user_averages("UA")

        assert averages.avg_approval_time == 13
        assert averages.avg_pr_duration is None
        assert averages.total_approvals == 2
        assert averages.total_merges == 0

    def test_unknown_user(self, statistics):
        """Test a user with no record has no averages."""
        assert statistics.get_user_averages("UZ") is None


class TestStatsLoading:
    """Loading persisted and legacy statistics."""

    @pytest.mark.asyncio
    async def test_legacy_fields_are_migrated(self):
        """Test old field names are renamed and samples backfilled."""
        store = MemoryStore(
            {
                "UA": {
                    "prsAuthored": 2,
                    "approvalsGiven": 4,
                    "longestPR": 300,
                    "lastUpdated": "2024-05-01T10:00:00.000Z",
                }
            }
        )
        statistics = StatisticsService(store)

        assert await statistics.load() == 1
        stats = statistics.get_user_stats("UA")
        assert stats.prs_approved == 4
        assert stats.longest_pr_duration == 300
        assert stats.approval_times == []
        assert stats.first_activity == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert store.saves == 1

    def test_migration_is_idempotent(self):
        """Test a second pass reports no changes."""
        records = {"UA": {"approvalsGiven": 1}}

        assert migrate_user_stats(records) == 1
        assert migrate_user_stats(records) == 0
        assert records["UA"]["prsApproved"] == 1

    @pytest.mark.asyncio
    async def test_null_samples_are_backfilled(self):
        """Test legacy records with null sample lists still load."""
        store = MemoryStore(
            {
                "UA": {
                    "prsApproved": 2,
                    "approvalTimes": None,
                    "prDurations": None,
                    "firstActivity": "2024-05-01T10:00:00.000Z",
                }
            }
        )
        statistics = StatisticsService(store)

        assert await statistics.load() == 1
        stats = statistics.get_user_stats("UA")
        assert stats.prs_approved == 2
        assert stats.approval_times == []
        assert stats.pr_durations == []
        assert store.records["UA"]["approvalTimes"] == []

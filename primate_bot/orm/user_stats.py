"""UserStatsDocument model for the user statistics collection."""

from .base import KeyedDocument


class UserStatsDocument(KeyedDocument):
    """Review activity statistics, keyed by Slack user ID."""

    __tablename__ = "user_stats"

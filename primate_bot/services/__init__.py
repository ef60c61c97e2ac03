"""Service layer for review tracking, statistics and reminders."""

from .database import DatabaseService, get_db_service, init_db_service
from .gitlab_service import GitLabService, ReviewStatus
from .reminder_service import DailyScheduler, ReminderService
from .review_registry import ApplyResult, RegistryResult, ReviewRegistry
from .statistics_service import StatisticsService
from .store import CollectionStore
from .transition_engine import TransitionEngine

__all__ = [
    "ApplyResult",
    "CollectionStore",
    "DailyScheduler",
    "DatabaseService",
    "GitLabService",
    "RegistryResult",
    "ReminderService",
    "ReviewRegistry",
    "ReviewStatus",
    "StatisticsService",
    "TransitionEngine",
    "get_db_service",
    "init_db_service",
]

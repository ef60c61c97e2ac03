"""Daily reminders for pending reviews and stale merge requests."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from .. import formatting
from ..config import parse_reminder_time

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(hours=24)
REMINDER_INTERVAL = timedelta(hours=24)
# A run that ends this close to the slot counts as that slot
RESCHEDULE_MARGIN = timedelta(minutes=1)


@dataclass
class PendingItem:
    """A tracked review waiting on one user."""

    review_url: str
    thread_key: str
    channel: str


def is_stale(last_update: datetime, now: datetime) -> bool:
    """Whether a merge request has gone more than 24 hours without updates."""
    return now - last_update > STALE_AFTER


def seconds_until(hour: int, minute: int, now: datetime) -> float:
    """Seconds from ``now`` to the next local ``hour:minute``."""
    scheduled = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if now > scheduled:
        scheduled += timedelta(days=1)
    return (scheduled - now).total_seconds()


class DailyScheduler:
    """Runs a coroutine every day at a fixed local time of day."""

    def __init__(self, reminder_time: str, job: Callable[[], Awaitable[None]]):
        self.hour, self.minute = parse_reminder_time(reminder_time)
        self.job = job
        self._task: Optional[asyncio.Task] = None

    def initial_delay(self, now: Optional[datetime] = None) -> float:
        return seconds_until(self.hour, self.minute, now or datetime.now())

    def next_delay(self, now: Optional[datetime] = None) -> float:
        """Delay after a run, always targeting the following day's slot."""
        delay = self.initial_delay(now)
        if delay < RESCHEDULE_MARGIN.total_seconds():
            delay += REMINDER_INTERVAL.total_seconds()
        return delay

    async def run(self) -> None:
        """Sleep until the reminder time, run the job, repeat daily."""
        delay = self.initial_delay()
        while True:
            logger.info(
                "Reminders scheduled for %s",
                (datetime.now() + timedelta(seconds=delay)).strftime("%Y-%m-%d %H:%M"),
            )
            await asyncio.sleep(delay)
            try:
                await self.job()
            except Exception as e:
                logger.error("Reminder sweep failed: %s", e, exc_info=True)
            delay = self.next_delay()

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="daily-reminders")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


class ReminderService:
    """Builds and sends the daily reminder direct messages."""

    def __init__(self, registry, chat, gitlab, workspace: str = "", batch_size: int = 15):
        self.registry = registry
        self.chat = chat
        self.gitlab = gitlab
        self.workspace = workspace
        self.batch_size = batch_size

    def _link(self, item: PendingItem) -> str:
        return formatting.permalink(self.workspace, item.channel, item.thread_key, item.review_url)

    def get_pending_reviews(self) -> dict[str, list[PendingItem]]:
        """Unapproved reviews grouped by each reviewer still to approve."""
        reviewer_items: dict[str, list[PendingItem]] = {}
        for review in self.registry.snapshot():
            if review.approved:
                continue
            for reviewer_id in review.reviewers:
                reviewer_items.setdefault(reviewer_id, []).append(
                    PendingItem(review.review_url, review.thread_key, review.channel)
                )
        return reviewer_items

    async def get_stale_author_reviews(
        self, now: Optional[datetime] = None
    ) -> dict[str, list[PendingItem]]:
        """Unapproved reviews with no GitLab activity for 24 hours, grouped by author.

        Reviews whose GitLab status cannot be fetched are skipped.
        """
        now = now or datetime.now(timezone.utc)
        author_items: dict[str, list[PendingItem]] = {}
        for review in self.registry.snapshot():
            if review.approved or review.last_updated is None:
                continue
            try:
                status = await self.gitlab.query_review(review.project_path, review.review_number)
            except Exception as e:
                logger.warning("Skipping stale check for %s: %s", review.review_url, e)
                continue
            if status.last_update_time is None:
                continue
            if is_stale(status.last_update_time, now):
                author_items.setdefault(review.author_id, []).append(
                    PendingItem(review.review_url, review.thread_key, review.channel)
                )
        return author_items

    async def _remind_reviewer(self, reviewer_id: str, items: list[PendingItem]) -> None:
        name = await self.chat.get_display_name(reviewer_id)
        text = formatting.reviewer_reminder(name, [self._link(item) for item in items])
        await self.chat.post_message(channel=reviewer_id, text=text)
        logger.info("Sent reminder to %s about %d PRs", name, len(items))

    async def _remind_author(self, author_id: str, items: list[PendingItem]) -> None:
        await asyncio.sleep(1 / self.batch_size)
        name = await self.chat.get_display_name(author_id)
        links = [self._link(item) for item in items]
        await self.chat.post_message(
            channel=author_id,
            text=f"Stale PR Reminder for {name}",
            blocks=formatting.stale_author_blocks(name, links),
        )

    async def send_reminders(self, now: Optional[datetime] = None) -> dict[str, int]:
        """Run one reminder sweep.

        Args:
            now: Local time of the sweep; defaults to the current time.

        Returns:
            Counts of reminders sent and failed.
        """
        local_now = now or datetime.now()
        summary = {"reviewers": 0, "authors": 0, "failed": 0}
        if local_now.weekday() >= 5:
            logger.info("Skipping PR reminders as it is a weekend day.")
            return summary

        for reviewer_id, items in self.get_pending_reviews().items():
            try:
                await self._remind_reviewer(reviewer_id, items)
                summary["reviewers"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.error("Error sending reminder to reviewer %s: %s", reviewer_id, e)

        utc_now = local_now.astimezone(timezone.utc)
        stale = await self.get_stale_author_reviews(utc_now)
        entries = list(stale.items())
        for start in range(0, len(entries), self.batch_size):
            batch = entries[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self._remind_author(author_id, items) for author_id, items in batch),
                return_exceptions=True,
            )
            for (author_id, _), result in zip(batch, results):
                if isinstance(result, BaseException):
                    summary["failed"] += 1
                    logger.error("Error sending stale PR reminder to %s: %s", author_id, result)
                else:
                    summary["authors"] += 1

        logger.info(
            "Reminder sweep done: %d reviewer(s), %d stale author(s), %d failed",
            summary["reviewers"],
            summary["authors"],
            summary["failed"],
        )
        return summary

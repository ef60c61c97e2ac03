"""Main bot logic: routes Slack events to the review services."""

import asyncio
import logging

from slack_bolt.async_app import AsyncApp

from . import formatting
from .command_router import CommandRouter, CommandType, ParsedCommand
from .config import Config
from .reactions import ReactionKind
from .services.reminder_service import DailyScheduler, ReminderService
from .services.transition_engine import TransitionEngine
from .slack_client import MentionEvent, ReactionEvent

logger = logging.getLogger(__name__)

LEADERBOARD_SIZE = 10


class Bot:
    """Bot orchestrator for review tracking, statistics and reminders."""

    def __init__(self, config: Config, chat, gitlab, registry, statistics) -> None:
        self.config = config
        self.chat = chat
        self.registry = registry
        self.statistics = statistics

        self.engine = TransitionEngine(config, registry, statistics, chat, gitlab)
        self.reminders = ReminderService(
            registry,
            chat,
            gitlab,
            workspace=config.slack.workspace,
            batch_size=config.bot.reminder_batch_size,
        )
        self.scheduler = DailyScheduler(config.bot.reminder_time, self.reminders.send_reminders)
        self.command_router = CommandRouter()

    async def _say(self, event: MentionEvent, text: str) -> None:
        await self.chat.post_message(channel=event.channel, text=text, thread_ts=event.reply_thread)

    async def process_mention(self, event: MentionEvent) -> CommandType:
        """Handle a message that mentions the bot.

        Returns:
            The command the message was routed to.
        """
        command = self.command_router.parse_command(event.text, in_thread=event.thread_ts is not None)
        logger.info(
            "Mention from %s in %s routed to %s", event.user, event.channel, command.command_type.value
        )

        try:
            if command.command_type is CommandType.HELP:
                await self._say(event, formatting.help_text(self.config.bot.reminder_time))
            elif command.command_type is CommandType.STATS_ME:
                await self._handle_stats_me(event)
            elif command.command_type is CommandType.LEADERBOARD:
                await self._handle_leaderboard(event, command)
            elif command.command_type in (CommandType.ADD_REVIEWER, CommandType.REMOVE_REVIEWER):
                await self.engine.handle_thread_command(event, command.command_type)
            elif event.channel in self.config.slack.channel_ids:
                await self.engine.track_review(event)
            else:
                logger.debug("Ignoring mention in unmonitored channel %s", event.channel)
        except Exception as e:
            logger.error("Error processing mention %s: %s", event.ts, e, exc_info=True)

        return command.command_type

    async def _handle_stats_me(self, event: MentionEvent) -> None:
        stats = self.statistics.get_user_stats(event.user)
        if stats is None:
            await self._say(event, formatting.NO_STATS)
            return
        averages = self.statistics.get_user_averages(event.user)
        await self._say(event, formatting.stats_message(stats, averages))

    async def _handle_leaderboard(self, event: MentionEvent, command: ParsedCommand) -> None:
        metric = command.metric
        title = formatting.LEADERBOARD_TITLES[metric]
        entries = self.statistics.get_leaderboard(metric, LEADERBOARD_SIZE)

        if not entries:
            await self._say(event, f"No data available for {title.lower()} yet.")
            return

        names = await asyncio.gather(
            *(self.chat.get_display_name(entry.user_id) for entry in entries)
        )
        lines = [
            f"{rank}. {name}: {formatting.leaderboard_value(metric, entry.value)}"
            for rank, (name, entry) in enumerate(zip(names, entries), start=1)
        ]
        await self._say(event, formatting.leaderboard_message(title, lines))

    async def process_reaction(self, event: ReactionEvent) -> ReactionKind:
        """Handle a reaction added anywhere the bot can see."""
        return await self.engine.handle_reaction(event)

    def register(self, app: AsyncApp) -> None:
        """Attach the bot's event listeners to a Slack Bolt app."""

        @app.event("app_mention")
        async def handle_app_mention(event):
            await self.process_mention(MentionEvent.from_payload(event))

        @app.event("reaction_added")
        async def handle_reaction_added(event):
            await self.process_reaction(ReactionEvent.from_payload(event))

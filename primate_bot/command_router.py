"""Command router for parsing bot mentions."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .review_links import MENTION_PATTERN, URL_PATTERN


class CommandType(Enum):
    """What a bot mention asks for."""

    HELP = "help"
    STATS_ME = "stats_me"
    LEADERBOARD = "leaderboard"
    ADD_REVIEWER = "add-reviewer"
    REMOVE_REVIEWER = "remove-reviewer"
    TRACK = "track"


# (keywords, metric) checked in order; the default is prsAuthored.
LEADERBOARD_METRIC_KEYWORDS = (
    (("approvers", "approved"), "prsApproved"),
    (("comments", "reviewers"), "commentsLeft"),
    (("mergers", "merged"), "prsMerged"),
    (("fastest",), "fastestApproval"),
    (("longest",), "longestPRDuration"),
)
DEFAULT_LEADERBOARD_METRIC = "prsAuthored"


@dataclass
class ParsedCommand:
    """Parsed mention with its command and, for leaderboards, the metric."""

    command_type: CommandType
    raw_text: str
    metric: Optional[str] = None


class CommandRouter:
    """Classify mention text into a command.

    Keywords are matched as whole words, ignoring user mentions. Messages
    that carry a link are never read as help or statistics commands.
    Thread commands only apply to replies inside a thread.
    """

    def __init__(self):
        self.word_pattern = re.compile(r"[a-z0-9_+-]+")

    def _words(self, text: str) -> set[str]:
        cleaned = MENTION_PATTERN.sub(" ", text)
        return set(self.word_pattern.findall(cleaned.lower()))

    def parse_command(self, text: str, in_thread: bool = False) -> ParsedCommand:
        """
        Classify mention text.

        Args:
            text: The full text of the mention.
            in_thread: Whether the mention is a reply inside a thread.

        Returns:
            ParsedCommand; TRACK when nothing else matches.

        Examples:
            >>> CommandRouter().parse_command("<@UBOT> stats me").command_type
            <CommandType.STATS_ME: 'stats_me'>
        """
        text = text or ""
        words = set() if URL_PATTERN.search(text) else self._words(text)

        if "help" in words:
            return ParsedCommand(CommandType.HELP, text)

        if "stats" in words and words & {"me", "my"}:
            return ParsedCommand(CommandType.STATS_ME, text)

        if words & {"leaderboard", "top"}:
            return ParsedCommand(
                CommandType.LEADERBOARD, text, metric=self.leaderboard_metric(words)
            )

        if in_thread:
            lowered = text.lower()
            for command_type in (CommandType.ADD_REVIEWER, CommandType.REMOVE_REVIEWER):
                if command_type.value in lowered:
                    return ParsedCommand(command_type, text)

        return ParsedCommand(CommandType.TRACK, text)

    @staticmethod
    def leaderboard_metric(words: set[str]) -> str:
        for keywords, metric in LEADERBOARD_METRIC_KEYWORDS:
            if words & set(keywords):
                return metric
        return DEFAULT_LEADERBOARD_METRIC

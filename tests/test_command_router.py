"""Tests for CommandRouter."""

from primate_bot.command_router import CommandRouter, CommandType


class TestCommandRouter:
    """Test command router functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.router = CommandRouter()

    def test_parse_help(self):
        """Test parsing help."""
        cmd = self.router.parse_command("<@UBOT> help")

        assert cmd.command_type == CommandType.HELP
        assert cmd.raw_text == "<@UBOT> help"

    def test_parse_stats_me(self):
        """Test parsing personal statistics."""
        assert self.router.parse_command("<@UBOT> stats me").command_type == CommandType.STATS_ME
        assert self.router.parse_command("<@UBOT> my stats").command_type == CommandType.STATS_ME

    def test_parse_case_insensitive(self):
        """Test that keywords are case insensitive."""
        assert self.router.parse_command("<@UBOT> Stats ME").command_type == CommandType.STATS_ME

    def test_parse_leaderboard_default_metric(self):
        """Test leaderboard without qualifier ranks authors."""
        cmd = self.router.parse_command("<@UBOT> leaderboard")

        assert cmd.command_type == CommandType.LEADERBOARD
        assert cmd.metric == "prsAuthored"

    def test_parse_leaderboard_metrics(self):
        """Test leaderboard qualifiers select the metric."""
        cases = {
            "<@UBOT> top approvers": "prsApproved",
            "<@UBOT> leaderboard comments": "commentsLeft",
            "<@UBOT> stats top reviewers": "commentsLeft",
            "<@UBOT> top mergers": "prsMerged",
            "<@UBOT> top fastest": "fastestApproval",
            "<@UBOT> leaderboard longest": "longestPRDuration",
        }
        for text, metric in cases.items():
            cmd = self.router.parse_command(text)
            assert cmd.command_type == CommandType.LEADERBOARD, text
            assert cmd.metric == metric, text

    def test_keywords_must_be_whole_words(self):
        """Test substrings like 'stop' or 'helpful' do not trigger commands."""
        assert self.router.parse_command("<@UBOT> stop this").command_type == CommandType.TRACK
        assert self.router.parse_command("<@UBOT> helpful").command_type == CommandType.TRACK

    def test_message_with_link_is_tracking(self):
        """Test a link message is never a statistics command."""
        text = "<@UBOT> top priority https://gitlab.example.com/a/b/-/merge_requests/1 <@UA>"
        assert self.router.parse_command(text).command_type == CommandType.TRACK

    def test_thread_commands_only_in_threads(self):
        """Test add/remove reviewer require a thread reply."""
        text = "<@UBOT> add-reviewer <@UA>"
        assert self.router.parse_command(text, in_thread=True).command_type == CommandType.ADD_REVIEWER
        assert self.router.parse_command(text).command_type == CommandType.TRACK

        text = "<@UBOT> Remove-Reviewer <@UA>"
        assert (
            self.router.parse_command(text, in_thread=True).command_type
            == CommandType.REMOVE_REVIEWER
        )

    def test_parse_empty_text(self):
        """Test parsing empty text falls back to tracking."""
        assert self.router.parse_command("").command_type == CommandType.TRACK

    def test_parse_none_text(self):
        """Test parsing None text falls back to tracking."""
        assert self.router.parse_command(None).command_type == CommandType.TRACK

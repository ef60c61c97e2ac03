"""Tests for reaction classification."""

import pytest

from primate_bot.reactions import (
    APPROVAL_EMOJIS,
    COMMENT_EMOJIS,
    FIXED_EMOJIS,
    MERGE_EMOJIS,
    ReactionKind,
    classify_reaction,
)


class TestClassifyReaction:
    """Reaction names map to transitions in priority order."""

    @pytest.mark.parametrize(
        "reaction,expected",
        [
            ("thumbsup", ReactionKind.APPROVE),
            ("+1", ReactionKind.APPROVE),
            ("+1::skin-tone-3", ReactionKind.APPROVE),
            ("memo", ReactionKind.COMMENT),
            ("merge", ReactionKind.MERGE),
            ("merged", ReactionKind.MERGE),
            ("x", ReactionKind.STOP),
            ("fixed", ReactionKind.FIXED),
            ("hammer_and_wrench", ReactionKind.FIXED),
            ("wrench", ReactionKind.FIXED),
            ("tada", ReactionKind.UNKNOWN),
            ("eyes", ReactionKind.UNKNOWN),
            ("heavy_multiplication_x", ReactionKind.UNKNOWN),
            ("", ReactionKind.UNKNOWN),
        ],
    )
    def test_reviewer_reactions(self, reaction, expected):
        """Test classification for a pending reviewer."""
        assert classify_reaction(reaction, is_reviewer=True) is expected

    @pytest.mark.parametrize("reaction", APPROVAL_EMOJIS + COMMENT_EMOJIS)
    def test_reviewer_only_reactions_ignored_for_others(self, reaction):
        """Test approval and comment need reviewer membership."""
        assert classify_reaction(reaction, is_reviewer=False) is ReactionKind.UNKNOWN

    @pytest.mark.parametrize("reaction", MERGE_EMOJIS + ("x",) + FIXED_EMOJIS)
    def test_open_reactions_apply_to_anyone(self, reaction):
        """Test merge, stop and fixed do not need reviewer membership."""
        assert classify_reaction(reaction, is_reviewer=False) is not ReactionKind.UNKNOWN

    def test_comment_open_to_everyone_when_configured(self):
        """Test the comment policy switch."""
        kind = classify_reaction("memo", is_reviewer=False, comment_requires_reviewer=False)
        assert kind is ReactionKind.COMMENT

    def test_priority_falls_through_for_non_reviewers(self):
        """Test an ambiguous name falls through to the next applicable rule."""
        # Matches both approval ("+1") and fixed ("wrench")
        assert classify_reaction("+1_wrench", is_reviewer=True) is ReactionKind.APPROVE
        assert classify_reaction("+1_wrench", is_reviewer=False) is ReactionKind.FIXED

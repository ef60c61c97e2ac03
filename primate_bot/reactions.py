"""Classification of emoji reactions into review transitions."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

APPROVAL_EMOJIS = ("thumbsup", "+1")
COMMENT_EMOJIS = ("memo",)
MERGE_EMOJIS = ("merge",)
STOP_EMOJIS = ("x",)
FIXED_EMOJIS = ("fixed", "hammer_and_wrench", "wrench")


class ReactionKind(Enum):
    """Transition requested by a reaction."""

    APPROVE = "approve"
    COMMENT = "comment"
    MERGE = "merge"
    STOP = "stop"
    FIXED = "fixed"
    UNKNOWN = "unknown"


def _contains_any(emojis: tuple[str, ...]) -> Callable[[str], bool]:
    return lambda reaction: any(emoji in reaction for emoji in emojis)


def _equals_any(emojis: tuple[str, ...]) -> Callable[[str], bool]:
    return lambda reaction: reaction in emojis


@dataclass(frozen=True)
class ReactionRule:
    matches: Callable[[str], bool]
    kind: ReactionKind
    reviewer_only: bool = False


# Evaluated in order; the first rule that matches and applies wins.
# "x" is matched exactly since it is a substring of many emoji names.
REACTION_RULES = (
    ReactionRule(_contains_any(APPROVAL_EMOJIS), ReactionKind.APPROVE, reviewer_only=True),
    ReactionRule(_contains_any(COMMENT_EMOJIS), ReactionKind.COMMENT, reviewer_only=True),
    ReactionRule(_contains_any(MERGE_EMOJIS), ReactionKind.MERGE),
    ReactionRule(_equals_any(STOP_EMOJIS), ReactionKind.STOP),
    ReactionRule(_contains_any(FIXED_EMOJIS), ReactionKind.FIXED),
)


def classify_reaction(
    reaction: str,
    is_reviewer: bool = True,
    comment_requires_reviewer: bool = True,
) -> ReactionKind:
    """Map a raw reaction name to the transition it requests.

    Args:
        reaction: Emoji name as delivered by Slack (e.g. ``+1::skin-tone-2``).
        is_reviewer: Whether the reacting user is a pending reviewer.
        comment_requires_reviewer: Whether COMMENT is restricted to reviewers.
    """
    for rule in REACTION_RULES:
        if not rule.matches(reaction):
            continue
        reviewer_only = rule.reviewer_only
        if rule.kind is ReactionKind.COMMENT:
            reviewer_only = comment_requires_reviewer
        if reviewer_only and not is_reviewer:
            continue
        return rule.kind
    return ReactionKind.UNKNOWN

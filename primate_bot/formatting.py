"""User-facing message texts."""

from typing import Optional

from .models import UserAverages, UserStats, round_half_up

LEADERBOARD_TITLES = {
    "prsAuthored": "PR Authors",
    "prsApproved": "PR Approvers",
    "commentsLeft": "Active Reviewers",
    "prsMerged": "PR Mergers",
    "fastestApproval": "Fastest Approvers",
    "longestPRDuration": "Longest PR Durations",
}

NO_LINK_HINT = (
    "I couldn't find a GitLab merge request URL in your message. Please make sure to "
    "include the full URL (e.g., https://{host}/group/project/-/merge_requests/123)"
)
ALREADY_TRACKED = "This PR is already being tracked."
NO_REVIEWERS_HINT = "Please mention the reviewers you'd like me to track."
NO_USERS_HINT = "Please mention the user(s) you want to add or remove."
NO_TRACKED_PR = "I couldn't find a tracked PR in this thread."
GENERIC_ERROR = "Sorry, I encountered an error while processing your request."
NO_STATS = "You don't have any tracked statistics yet! Start by creating or reviewing PRs."
UNTRACK_ERROR = "There was an error removing this PR from being tracked."
STOPPED_TRACKING = "This PR will no longer be tracked."
MERGED = "The PR has been merged :merge: and will no longer be tracked."
MERGE_FAILED = "I couldn't merge this PR. It is still being tracked."
ALL_APPROVED = "All reviewers have approved the PR! 🎉"
BLOCKED_DIRECT_MERGE = (
    "The PR cannot be merged at this time. Please check for conflicts or other issues."
)
BLOCKED_DRAFT_WORKFLOW = (
    "Please remove the PR from draft status and push the changes to the repo "
    "to trigger the smoke test."
)


def help_text(reminder_time: str) -> str:
    return f"""Here's how to use PRimate Bot:

*Basic Commands*
• Post a GitLab PR link in this channel to start tracking it
• Add reviewers by mentioning them in the same message as the PR link
• React with 👍 to approve a PR
• React with :memo: to leave a comment on a PR
• React with :fixed:, :hammer_and_wrench:, or :wrench: (PR author only) to notify commenters that issues have been addressed
• React with :merge: once the PR is merged
• React with :x: to stop tracking a PR

*Thread Commands*
When in a PR thread, you can:
• `@PRimate add-reviewer @user` - Add a reviewer to the PR
• `@PRimate remove-reviewer @user` - Remove a reviewer from the PR

*Statistics Commands*
• `@PRimate stats me` - View your personal PR statistics
• `@PRimate leaderboard` - View top PR authors
• `@PRimate top approvers` - View top PR approvers
• `@PRimate leaderboard comments` - View most active reviewers
• `@PRimate top fastest` - View fastest approval times
• `@PRimate leaderboard longest` - View longest PR durations

*Reminders*
• Daily summaries of open PRs are sent automatically on weekdays at {reminder_time}."""


def tracking_confirmation(reviewer_names: list[str]) -> str:
    lines = "\n".join(f"• {name}" for name in reviewer_names)
    return f"Got it! I'll track this PR.\n\n*Current reviewers:*\n{lines}"


def merge_readiness(mergeable: bool, allows_direct_merge: bool) -> str:
    """Announcement posted once every reviewer has approved."""
    if mergeable:
        return ALL_APPROVED
    reason = BLOCKED_DIRECT_MERGE if allows_direct_merge else BLOCKED_DRAFT_WORKFLOW
    return f"{ALL_APPROVED}\n\n{reason}"


def _hours(minutes: Optional[int]) -> str:
    return f"{round_half_up(minutes / 60)} hours" if minutes else "N/A"


def _minutes(minutes: Optional[int]) -> str:
    return f"{minutes} minutes" if minutes else "N/A"


def stats_message(stats: UserStats, averages: Optional[UserAverages]) -> str:
    avg_duration = averages.avg_pr_duration if averages else None
    avg_approval = averages.avg_approval_time if averages else None
    return f"""📊 *Your Statistics:*

*Authoring:*
• PRs Created: {stats.prs_authored}
• PRs Merged: {stats.prs_merged}
• Longest PR Duration: {_hours(stats.longest_pr_duration)}
• Average PR Duration: {_hours(avg_duration)}

*Reviewing:*
• PRs Approved: {stats.prs_approved}
• Comments Left: {stats.comments_left}
• Fastest Approval: {_minutes(stats.fastest_approval)}
• Average Approval Time: {_minutes(avg_approval)}

_Stats since: {stats.first_activity.date().isoformat()}_"""


def leaderboard_value(metric: str, value: int) -> str:
    if metric == "fastestApproval":
        return f"{value} minutes"
    if metric == "longestPRDuration":
        return f"{round_half_up(value / 60)} hours"
    return str(value)


def leaderboard_message(title: str, lines: list[str]) -> str:
    return f"🏆 *Top {title}:*\n\n" + "\n".join(lines)


def permalink(workspace: str, channel: str, thread_key: str, fallback: str) -> str:
    """Slack archive link to a thread, or ``fallback`` without a workspace."""
    if not workspace:
        return fallback
    return f"https://{workspace}.slack.com/archives/{channel}/p{thread_key.replace('.', '')}"


def reviewer_reminder(user_name: str, links: list[str]) -> str:
    plural = "s" if len(links) > 1 else ""
    link_list = "\n".join(links)
    return (
        f"Hi, {user_name}! 👋 You have {len(links)} pending PR{plural} to review:\n\n{link_list}"
    )


def stale_author_blocks(user_name: str, links: list[str]) -> list[dict]:
    many = len(links) > 1
    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*Hi {user_name}!* 👋 Your PR{'s haven' if many else ' hasn'}'t "
                "been updated in over 24 hours.",
            },
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*{len(links)} PR{'s need' if many else ' needs'} attention:*\n"
                + "\n".join(f"• <{link}|View PR>" for link in links),
            },
        },
    ]

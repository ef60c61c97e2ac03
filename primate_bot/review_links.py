"""Parsing of GitLab merge request links and Slack user mentions."""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

REVIEW_PATH_MARKER = "merge_requests"

URL_PATTERN = re.compile(r"https?://[^\s>|]+")
MENTION_PATTERN = re.compile(r"<@([A-Z0-9]+)>")
_LEADING_DIGITS = re.compile(r"^\d+")


@dataclass(frozen=True)
class ReviewLink:
    """A merge request link split into its GitLab coordinates."""

    url: str
    workspace: str
    group: Optional[str]
    project: str
    number: int

    @property
    def project_path(self) -> str:
        if self.group:
            return f"{self.workspace}/{self.group}/{self.project}"
        return f"{self.workspace}/{self.project}"


@dataclass(frozen=True)
class LinkParseError:
    """Why no usable merge request link was found."""

    reason: str


def parse_review_url(url: str) -> ReviewLink | LinkParseError:
    """Split a merge request URL into workspace, optional group, project and number.

    The URL is split on ``/``; the segments between the host and the ``-``
    preceding ``merge_requests`` are the project path. Exactly three of them
    means ``workspace/group/project``; otherwise the first and last are used.

    >>> parse_review_url("https://gitlab.example.com/acme/web/-/merge_requests/7").project_path
    'acme/web'
    """
    parts = url.split("/")
    try:
        marker_index = parts.index(REVIEW_PATH_MARKER)
    except ValueError:
        return LinkParseError("link does not point to a merge request")

    if marker_index + 1 >= len(parts) or not parts[marker_index + 1]:
        return LinkParseError("merge request number is missing")
    number = _LEADING_DIGITS.match(parts[marker_index + 1])
    if not number:
        return LinkParseError("merge request number is not numeric")

    # Skip scheme, empty segment and host; stop before the "-" separator
    path_parts = parts[3:marker_index - 1]
    if len(path_parts) < 2:
        return LinkParseError("project path is too short")

    return ReviewLink(
        url=url,
        workspace=path_parts[0],
        group=path_parts[1] if len(path_parts) == 3 else None,
        project=path_parts[-1],
        number=int(number.group(0)),
    )


def _matches_host(url: str, host: str) -> bool:
    """Compare against ``host``, including the port when one is configured."""
    parts = urlsplit(url)
    host = host.lower()
    if ":" in host:
        return parts.netloc.rsplit("@", 1)[-1].lower() == host
    return (parts.hostname or "") == host


def find_review_link(text: str, host: str) -> ReviewLink | LinkParseError:
    """Find and parse the first merge request link on ``host`` in ``text``."""
    urls = URL_PATTERN.findall(text or "")
    if not urls:
        return LinkParseError("no links found")

    candidate = next(
        (
            url
            for url in urls
            if _matches_host(url, host) and REVIEW_PATH_MARKER in url.split("/")
        ),
        None,
    )
    if candidate is None:
        return LinkParseError(f"no merge request link on {host}")
    return parse_review_url(candidate)


def extract_user_mentions(text: str, exclude: Optional[str] = None) -> list[str]:
    """Mentioned user IDs in order of first appearance, without duplicates."""
    seen: list[str] = []
    for user_id in MENTION_PATTERN.findall(text or ""):
        if user_id != exclude and user_id not in seen:
            seen.append(user_id)
    return seen

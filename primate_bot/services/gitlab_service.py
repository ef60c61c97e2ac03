"""GitLab REST API service for merge request status and merging."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


@dataclass
class ReviewStatus:
    """Merge request state as reported by GitLab."""

    last_update_time: Optional[datetime]
    mergeable: bool
    is_draft: bool


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitLab ISO-8601 timestamp (``2024-05-01T10:00:00.000Z``)."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def review_status_from_payload(data: dict[str, Any]) -> ReviewStatus:
    """Build a ReviewStatus from a merge request API payload."""
    is_draft = bool(data.get("draft") or data.get("work_in_progress"))
    status_ok = (
        data.get("detailed_merge_status") == "mergeable"
        or data.get("merge_status") == "can_be_merged"
    )
    return ReviewStatus(
        last_update_time=parse_timestamp(data.get("updated_at")),
        mergeable=status_ok and not is_draft,
        is_draft=is_draft,
    )


class GitLabService:
    """GitLab API interactions using a private access token."""

    def __init__(self, host: str, token: str, timeout: float = 10.0):
        """
        Initialize GitLab service.

        Args:
            host: GitLab hostname (no scheme).
            token: Access token with ``api`` scope.
            timeout: Request timeout in seconds.
        """
        self.api_base = f"https://{host}/api/v4"
        self.token = token
        self.timeout = timeout
        logger.debug("GitLabService initialized for %s", host)

    def _headers(self) -> dict[str, str]:
        return {"PRIVATE-TOKEN": self.token, "Accept": "application/json"}

    def _merge_request_url(self, project_path: str, review_number: int) -> str:
        project_id = quote(project_path, safe="")
        return f"{self.api_base}/projects/{project_id}/merge_requests/{review_number}"

    async def query_review(self, project_path: str, review_number: int) -> ReviewStatus:
        """
        Fetch merge request state.

        Args:
            project_path: Project path, e.g. "workspace/group/project".
            review_number: Merge request IID within the project.

        Returns:
            ReviewStatus with last update time and mergeability.

        Raises:
            httpx.HTTPError: If the request fails.
        """
        logger.debug("Fetching MR !%d from %s...", review_number, project_path)
        url = self._merge_request_url(project_path, review_number)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(url, headers=self._headers())
                response.raise_for_status()
                return review_status_from_payload(response.json())

            except httpx.HTTPStatusError as e:
                logger.error(
                    "Failed to fetch MR !%d of %s (HTTP %d): %s",
                    review_number,
                    project_path,
                    e.response.status_code,
                    e.response.text,
                )
                raise
            except httpx.HTTPError as e:
                logger.error("Failed to fetch MR !%d of %s: %s", review_number, project_path, e)
                raise

    async def merge_review(self, project_path: str, review_number: int) -> bool:
        """
        Ask GitLab to merge a merge request.

        Returns:
            True if GitLab accepted the merge, False otherwise.
        """
        logger.info("Merging MR !%d in %s", review_number, project_path)
        url = f"{self._merge_request_url(project_path, review_number)}/merge"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.put(url, headers=self._headers())
                response.raise_for_status()
                logger.info("Merged MR !%d for %s", review_number, project_path)
                return True

            except httpx.HTTPStatusError as e:
                logger.error(
                    "Failed to merge MR !%d of %s (HTTP %d): %s",
                    review_number,
                    project_path,
                    e.response.status_code,
                    e.response.text,
                )
                return False
            except httpx.HTTPError as e:
                logger.error("Failed to merge MR !%d of %s: %s", review_number, project_path, e)
                return False

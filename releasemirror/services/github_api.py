"""
Read-only client for GitHub releases (the mirror's source of truth).
"""

from typing import Dict, List, Optional

import httpx

from ..models import Release
from ..infrastructure.error_handler import (
    SourceUnavailable, handle_api_error, raise_for_status
)
from ..infrastructure.logger import logger


GITHUB_API_URL = "https://api.github.com/repos"
GITHUB_URL = "https://github.com"
MAX_PAGE_SIZE = 100
USER_AGENT = "release-mirror"


class GitHubReleaseReader:
    """Fetches the most recently published releases of a GitHub repository."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: Optional[str] = None,
        api_url: str = GITHUB_API_URL
    ):
        self.client = client
        self.token = token
        self.api_url = api_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        # GitHub rejects requests without a User-Agent
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @handle_api_error(SourceUnavailable, "Failed to read GitHub releases")
    async def latest_releases(self, owner: str, repo: str, count: int) -> List[Release]:
        """
        Get the ``count`` most recently published releases, newest first.

        Args:
            owner: Repository owner
            repo: Repository name
            count: Number of releases to return

        Returns:
            Up to ``count`` releases sorted by publish time, newest first

        Raises:
            SourceUnavailable: On transport errors, non-success status or
                a malformed payload
        """

        page_size = min(count, MAX_PAGE_SIZE)
        url = f"{self.api_url}/{owner}/{repo}/releases"
        releases: List[Release] = []
        page = 1

        while len(releases) < count:
            response = await self.client.get(
                url,
                params={"per_page": page_size, "page": page},
                headers=self._headers()
            )
            raise_for_status(response, SourceUnavailable, f"GitHub releases page {page}")

            items = response.json()
            if not isinstance(items, list):
                raise SourceUnavailable(f"GitHub releases page {page} is not a list")

            for item in items:
                release = Release.from_github(item)
                if item.get("draft") or release.published_at is None:
                    logger.debug(f"Ignoring unpublished release {release.tag_name}")
                    continue
                releases.append(release)

            if len(items) < page_size:
                break
            page += 1

        releases.sort(key=lambda r: r.published_at, reverse=True)
        releases = releases[:count]

        logger.info(
            f"GitHub {owner}/{repo}: latest {len(releases)} releases: "
            f"{', '.join(r.tag_name for r in releases)}"
        )
        return releases


__all__ = [
    "GitHubReleaseReader",
    "GITHUB_URL",
]

"""
Read/write client for Gitee releases (the mirror side).

Every mutating call targets a single release or attachment by its stable
identity, so repeating any of them after an interruption is safe.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..models import Attachment, Release
from ..infrastructure.error_handler import (
    MirrorListUnavailable, MirrorWriteError, UploadFailed,
    handle_api_error, raise_for_status
)
from ..infrastructure.logger import logger
from .progress import ProgressCallback, ProgressReader


GITEE_API_URL = "https://gitee.com/api/v5/repos"
GITEE_URL = "https://gitee.com"
PAGE_SIZE = 100


class GiteeMirrorClient:
    """Lists, creates, updates and deletes releases and attachments on Gitee."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        api_url: str = GITEE_API_URL
    ):
        self.client = client
        self.token = token
        self.api_url = api_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"token {self.token}"}

    def _releases_url(self, owner: str, repo: str) -> str:
        return f"{self.api_url}/{owner}/{repo}/releases"

    async def _paginate(self, url: str, what: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            response = await self.client.get(
                url,
                params={"per_page": PAGE_SIZE, "page": page},
                headers=self._headers()
            )
            raise_for_status(response, MirrorListUnavailable, f"Gitee {what} page {page}")

            batch = response.json()
            if not isinstance(batch, list):
                raise MirrorListUnavailable(f"Gitee {what} page {page} is not a list")
            items.extend(batch)

            if len(batch) < PAGE_SIZE:
                return items
            page += 1

    @handle_api_error(MirrorListUnavailable, "Failed to list Gitee releases")
    async def list_all(self, owner: str, repo: str) -> List[Release]:
        """
        Get every release of the mirror repository.

        The full list is required for diffing and retention, so pagination
        always runs to exhaustion.
        """

        items = await self._paginate(self._releases_url(owner, repo), "releases")
        releases = [Release.from_gitee(item) for item in items]
        logger.info(
            f"Gitee {owner}/{repo}: {len(releases)} releases: "
            f"{', '.join(r.tag_name for r in releases)}"
        )
        return releases

    @handle_api_error(MirrorListUnavailable, "Failed to list Gitee release attachments")
    async def list_attachments(self, owner: str, repo: str, release_id: int) -> List[Attachment]:
        url = f"{self._releases_url(owner, repo)}/{release_id}/attach_files"
        items = await self._paginate(url, f"attachments of release {release_id}")
        return [Attachment.from_api(item) for item in items]

    @handle_api_error(MirrorWriteError, "Failed to create Gitee release")
    async def create(self, owner: str, repo: str, release: Release) -> int:
        """
        Create a release and return its Gitee id.

        Raises:
            MirrorWriteError: If Gitee does not accept the release
        """

        response = await self.client.post(
            self._releases_url(owner, repo),
            json=release.to_payload(),
            headers=self._headers()
        )
        raise_for_status(response, MirrorWriteError, f"Create release {release.tag_name}")

        release_id = int(response.json()["id"])
        logger.info(f"Gitee release created: {release.tag_name} (id {release_id})")
        return release_id

    @handle_api_error(MirrorWriteError, "Failed to update Gitee release")
    async def update(self, owner: str, repo: str, release_id: int, release: Release) -> None:
        """Replace name, body and prerelease flag; attachments are untouched."""

        payload = release.to_payload()
        payload.pop("target_commitish")
        response = await self.client.patch(
            f"{self._releases_url(owner, repo)}/{release_id}",
            json=payload,
            headers=self._headers()
        )
        raise_for_status(response, MirrorWriteError, f"Update release {release.tag_name}")
        logger.info(f"Gitee release updated: {release.tag_name}")

    @handle_api_error(MirrorWriteError, "Failed to delete Gitee release")
    async def delete(self, owner: str, repo: str, release_id: int) -> None:
        response = await self.client.delete(
            f"{self._releases_url(owner, repo)}/{release_id}",
            headers=self._headers()
        )
        raise_for_status(response, MirrorWriteError, f"Delete release {release_id}")

    @handle_api_error(MirrorWriteError, "Failed to delete Gitee attachment")
    async def delete_attachments(
        self,
        owner: str,
        repo: str,
        release_id: int,
        attachments: Iterable[Attachment]
    ) -> None:
        """
        Delete attachments one file at a time.

        Attachments must come from ``list_attachments`` so they carry
        their Gitee attachment id.
        """

        for attachment in attachments:
            if attachment.id is None:
                raise MirrorWriteError(f"Attachment {attachment.name} has no Gitee id")
            response = await self.client.delete(
                f"{self._releases_url(owner, repo)}/{release_id}/attach_files/{attachment.id}",
                headers=self._headers()
            )
            raise_for_status(response, MirrorWriteError, f"Delete attachment {attachment.name}")
            logger.info(f"Gitee attachment deleted: {attachment.name}")

    @handle_api_error(UploadFailed, "Failed to upload attachment to Gitee")
    async def attach(
        self,
        owner: str,
        repo: str,
        release_id: int,
        file_path: Path,
        filename: Optional[str] = None,
        progress: Optional[ProgressCallback] = None
    ) -> Attachment:
        """
        Upload one local file as an attachment of an existing release.

        Args:
            owner: Mirror repository owner
            repo: Mirror repository name
            release_id: Gitee id of the release
            file_path: Local file to upload
            filename: Attachment name, defaults to the file's name
            progress: Observer called with (bytes_sent, total_bytes)

        Returns:
            The attachment as stored by Gitee

        Raises:
            UploadFailed: On transport errors or a non-success status
        """

        file_path = Path(file_path)
        filename = filename or file_path.name
        total = file_path.stat().st_size

        with file_path.open("rb") as fh:
            reader = ProgressReader(fh, total, progress)
            response = await self.client.post(
                f"{self._releases_url(owner, repo)}/{release_id}/attach_files",
                files={"file": (filename, reader, "application/octet-stream")},
                headers=self._headers()
            )
        raise_for_status(response, UploadFailed, f"Upload {filename}")

        data = response.json()
        logger.info(f"Gitee attachment uploaded: {filename}")
        return Attachment(
            name=data.get("name") or filename,
            size=data.get("size", total),
            download_url=data.get("browser_download_url"),
            id=data.get("id"),
        )


__all__ = [
    "GiteeMirrorClient",
    "GITEE_URL",
]

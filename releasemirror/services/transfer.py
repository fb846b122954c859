"""
Resumable attachment transfer: source download into a local cache, then
upload to the mirror.

The cache directory is the resumability substrate. A complete, correctly
sized cache file is never downloaded again, partial downloads are left in
place and restarted from scratch on the next run, and nothing here ever
deletes the cache.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import httpx

from ..models import Attachment, CacheEntry, MirrorConfig, Release
from ..infrastructure.error_handler import (
    DownloadFailed, ManifestRewriteFailed, UploadFailed
)
from ..infrastructure.logger import logger
from .gitee_api import GiteeMirrorClient
from .github_api import USER_AGENT
from .progress import ProgressCallback, ProgressFactory, no_progress_factory

if TYPE_CHECKING:
    from ..core.rewriter import ContentRewriter


# Git tag components never start with ".", so this cannot clash with a tag
REWRITTEN_DIR = ".rewritten"


####
##      RELEASE CACHE
#####
class ReleaseCache:
    """
    Tag-scoped directory tree of downloaded attachments.

    Originals live in ``<root>/<tag>/<filename>``, rewritten manifests in
    ``<root>/.rewritten/<tag>/<filename>``.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def directory(self, tag_name: str) -> Path:
        path = self.root / tag_name
        if not path.exists():
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DownloadFailed(f"Cannot create cache directory {path}", e) from e
            logger.debug(f"Created cache directory {path}")
        return path

    def entry(self, release: Release, attachment: Attachment) -> CacheEntry:
        return CacheEntry(
            tag_name=release.tag_name,
            name=attachment.name,
            path=self.directory(release.tag_name) / attachment.name,
            expected_size=attachment.size,
        )

    def rewritten_path(self, entry: CacheEntry) -> Path:
        directory = self.root / REWRITTEN_DIR / entry.tag_name
        directory.mkdir(parents=True, exist_ok=True)
        return directory / entry.name


####
##      TRANSFER PIPELINE
#####
class AttachmentTransferPipeline:
    """
    Moves one attachment at a time from the source to the mirror.

    A transfer always finishes its download before its upload starts, and
    callers run transfers sequentially.
    """

    def __init__(
        self,
        config: MirrorConfig,
        client: httpx.AsyncClient,
        mirror: GiteeMirrorClient,
        rewriter: "ContentRewriter",
        cache: Optional[ReleaseCache] = None,
        progress_factory: Optional[ProgressFactory] = None
    ):
        self.config = config
        self.client = client
        self.mirror = mirror
        self.rewriter = rewriter
        self.cache = cache or ReleaseCache(config.resolved_cache_dir)
        self.progress_factory = progress_factory or no_progress_factory

        self.downloads = 0
        self.cache_hits = 0
        self.uploads = 0
        self.warnings = []

    def _source_headers(self) -> dict:
        headers = {"User-Agent": USER_AGENT, "Accept": "application/octet-stream"}
        if self.config.source_token:
            headers["Authorization"] = f"Bearer {self.config.source_token}"
        return headers

    async def fetch(self, release: Release, attachment: Attachment) -> CacheEntry:
        """
        Make sure the attachment is present in the cache.

        Returns:
            The complete cache entry

        Raises:
            DownloadFailed: On transport or status errors, or a size mismatch.
                The partial file is kept.
        """

        entry = self.cache.entry(release, attachment)
        if entry.is_complete:
            self.cache_hits += 1
            logger.info(f"Cached file is complete, skipping download: {release.tag_name}/{attachment.name}")
            return entry

        if not attachment.download_url:
            raise DownloadFailed(f"No download URL for {attachment.name}")

        await self.download(attachment.download_url, entry, self.progress_factory("download", attachment.name))
        self.downloads += 1
        return entry

    async def download(self, url: str, entry: CacheEntry, progress: ProgressCallback) -> None:
        """Stream ``url`` into the entry's partial file, then move it in place."""

        partial = entry.partial_path
        logger.info(f"Downloading {entry.tag_name}/{entry.name}")

        try:
            async with self.client.stream("GET", url, headers=self._source_headers()) as response:
                if not response.is_success:
                    raise DownloadFailed(f"Download {entry.name}: HTTP {response.status_code}")

                total = entry.expected_size or int(response.headers.get("content-length") or 0)
                transferred = 0
                with partial.open("wb") as fh:
                    async for chunk in response.aiter_bytes(self.config.chunk_size):
                        fh.write(chunk)
                        transferred += len(chunk)
                        progress(transferred, total)

            if entry.expected_size is not None and transferred != entry.expected_size:
                raise DownloadFailed(
                    f"Download {entry.name}: got {transferred} bytes, expected {entry.expected_size}"
                )

            os.replace(partial, entry.path)
        except (httpx.HTTPError, OSError) as e:
            raise DownloadFailed(f"Download {entry.name} failed", e) from e

        logger.debug(f"Downloaded {entry.name} ({transferred} bytes)")

    def prepare_upload(self, entry: CacheEntry) -> Path:
        """
        Path of the file to upload for ``entry``.

        Manifests are rewritten into a separate copy so the cached original
        keeps its expected size. A manifest that cannot be parsed is
        uploaded unmodified.

        Raises:
            UploadFailed: If the cached manifest or its rewritten copy cannot
                be read or written
        """

        if not self.rewriter.is_manifest(entry.name):
            return entry.path

        try:
            content = self.rewriter.rewrite_manifest(entry.path.read_bytes())
        except ManifestRewriteFailed as e:
            message = f"{entry.tag_name}/{entry.name}: {e}; uploading unmodified"
            logger.warning(message)
            self.warnings.append(message)
            return entry.path
        except OSError as e:
            raise UploadFailed(f"Cannot read cached manifest {entry.path}", e) from e

        try:
            target = self.cache.rewritten_path(entry)
            target.write_bytes(content)
        except OSError as e:
            raise UploadFailed(f"Cannot write rewritten manifest for {entry.name}", e) from e
        logger.info(f"Rewrote download URLs in {entry.tag_name}/{entry.name}")
        return target

    async def upload(self, entry: CacheEntry, mirror_release_id: int) -> Attachment:
        """
        Upload a cached attachment to the mirror release.

        Raises:
            UploadFailed: The cache entry is left intact for a retry
        """

        if not entry.path.is_file():
            raise UploadFailed(f"Local file missing: {entry.path}")

        path = self.prepare_upload(entry)
        attachment = await self.mirror.attach(
            self.config.mirror_owner,
            self.config.mirror_repo,
            mirror_release_id,
            path,
            filename=entry.name,
            progress=self.progress_factory("upload", entry.name)
        )
        self.uploads += 1
        return attachment

    async def transfer(self, release: Release, attachment: Attachment, mirror_release_id: int) -> Attachment:
        """Download (unless cached) and then upload one attachment."""

        entry = await self.fetch(release, attachment)
        return await self.upload(entry, mirror_release_id)


__all__ = [
    "ReleaseCache",
    "AttachmentTransferPipeline",
]

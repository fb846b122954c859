"""
Python API for release-mirror.

Example:
    config = MirrorConfig(
        source_owner="me", source_repo="app",
        mirror_owner="me", mirror_repo="app",
        mirror_token="...",
    )
    result = asyncio.run(ReleaseMirror(config).sync())
"""

import logging
from typing import Optional

import httpx

from ..core import ContentRewriter, ReleaseReconciler
from ..models import MirrorConfig, SyncResult
from ..services import (
    AttachmentTransferPipeline, GiteeMirrorClient, GitHubReleaseReader, ReleaseCache
)
from ..services.github_api import USER_AGENT
from ..services.progress import ProgressFactory
from ..infrastructure.logger import logger


class ReleaseMirror:
    """Wires the HTTP client, provider clients and reconciler for one run."""

    def __init__(
        self,
        config: MirrorConfig,
        verbose: bool = False,
        progress_factory: Optional[ProgressFactory] = None,
        quiet: bool = False
    ):
        self.config = config
        self.progress_factory = progress_factory
        self.quiet = quiet
        self.set_verbose(verbose)

    def set_verbose(self, verbose: bool) -> None:
        """Switch the package logger to DEBUG, or back to INFO (WARNING when quiet)."""

        self.verbose = verbose
        if verbose:
            logger.setLevel(logging.DEBUG)
        elif self.quiet:
            logger.setLevel(logging.WARNING)
        else:
            logger.setLevel(logging.INFO)

    def build_client(self) -> httpx.AsyncClient:
        # Attachment downloads redirect to a storage host
        return httpx.AsyncClient(
            timeout=self.config.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT}
        )

    def build_reconciler(self, client: httpx.AsyncClient) -> ReleaseReconciler:
        rewriter = ContentRewriter(self.config)
        mirror = GiteeMirrorClient(client, self.config.mirror_token)
        pipeline = AttachmentTransferPipeline(
            self.config,
            client,
            mirror,
            rewriter,
            cache=ReleaseCache(self.config.resolved_cache_dir),
            progress_factory=self.progress_factory
        )
        return ReleaseReconciler(
            self.config,
            GitHubReleaseReader(client, self.config.source_token),
            mirror,
            pipeline,
            rewriter
        )

    async def sync(self) -> SyncResult:
        """
        Run one reconciliation of the mirror against the source.

        Raises:
            ReconciliationAborted: If source or mirror state cannot be read
        """

        logger.info(f"Mirroring {self.config.source_display_name} -> {self.config.mirror_display_name}")
        async with self.build_client() as client:
            return await self.build_reconciler(client).run()


__all__ = [
    "ReleaseMirror",
]

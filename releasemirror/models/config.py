"""
Configuration model for release-mirror runs.
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def mask_token(token: Optional[str]) -> str:
    """Keep the first 8 characters of a credential and star out the rest."""

    if token is None:
        return "None"
    if len(token) > 8:
        return token[:8] + "*" * (len(token) - 8)
    return "*" * len(token)


@dataclass(frozen=True)
class MirrorConfig:
    """
    Resolved, immutable settings for a mirror run.

    Built once by the CLI (or a caller of the Python API) and passed into
    the reconciler; nothing reads credentials or toggles from globals.
    """

    # Source (GitHub) repository
    source_owner: str
    source_repo: str

    # Mirror (Gitee) repository
    mirror_owner: str
    mirror_repo: str
    mirror_token: str = field(repr=False)

    source_token: Optional[str] = field(default=None, repr=False)

    # Window of most recent source releases to mirror
    latest_release_count: int = 5
    # Maximum number of releases kept on the mirror
    retain_release_count: int = 999

    # Content rewriting toggles
    rewrite_release_body: bool = True
    rewrite_manifest: bool = True
    manifest_name: str = "latest.json"

    # Transfer settings
    cache_dir: Optional[Path] = None
    chunk_size: int = 8192
    timeout: int = 60

    dry_run: bool = False

    def __post_init__(self) -> None:
        for attr in ("source_owner", "source_repo", "mirror_owner", "mirror_repo", "mirror_token"):
            if not getattr(self, attr):
                raise ValueError(f"{attr} is required")
        if self.latest_release_count < 1:
            raise ValueError("latest_release_count must be greater than 0")
        if self.retain_release_count < 1:
            raise ValueError("retain_release_count must be greater than 0")
        if self.retain_release_count < self.latest_release_count:
            raise ValueError(
                f"retain_release_count ({self.retain_release_count}) must be greater "
                f"than or equal to latest_release_count ({self.latest_release_count})"
            )
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def source_display_name(self) -> str:
        return f"{self.source_owner}/{self.source_repo}"

    @property
    def mirror_display_name(self) -> str:
        return f"{self.mirror_owner}/{self.mirror_repo}"

    @property
    def resolved_cache_dir(self) -> Path:
        """Cache root, by default ``<tempdir>/<source repo>``."""

        if self.cache_dir is not None:
            return Path(self.cache_dir)
        return Path(tempfile.gettempdir()) / self.source_repo

    def describe(self) -> str:
        return (
            f"source: {self.source_display_name} (token: {mask_token(self.source_token)}), "
            f"mirror: {self.mirror_display_name} (token: {mask_token(self.mirror_token)}), "
            f"latest_release_count: {self.latest_release_count}, "
            f"retain_release_count: {self.retain_release_count}, "
            f"rewrite_release_body: {self.rewrite_release_body}, "
            f"rewrite_manifest: {self.rewrite_manifest}, "
            f"cache_dir: {self.resolved_cache_dir}, dry_run: {self.dry_run}"
        )

    def __str__(self) -> str:
        return self.describe()


__all__ = [
    "MirrorConfig",
    "mask_token",
]

"""
Command line interface for release-mirror.

Usage:
    release-mirror --github-owner me --github-repo app \
        --gitee-owner me --gitee-repo app --gitee-token TOKEN
    python -m releasemirror --dry-run

Every option can also be given through the environment variable shown in
``--help``.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from .. import __version__
from ..models import MirrorConfig, SyncResult
from ..services.progress import ProgressCallback, no_progress
from ..infrastructure.error_handler import ReconciliationAborted
from .api import ReleaseMirror


class ClickProgress:
    """Progress observer drawing a ``click.progressbar`` for one transfer."""

    def __init__(self, label: str):
        self.label = label
        self.bar = None
        self.last = 0
        self.finished = False

    def __call__(self, transferred: int, total: int) -> None:
        if self.finished or total <= 0:
            return
        if self.bar is None:
            self.bar = click.progressbar(length=total, label=self.label, file=sys.stderr)
            self.bar.__enter__()
        if transferred < self.last:
            # The uploader rewound the file
            self.last = transferred
            return
        self.bar.update(transferred - self.last)
        self.last = transferred
        if transferred >= total:
            self.bar.__exit__(None, None, None)
            self.finished = True


def click_progress_factory(direction: str, filename: str) -> ProgressCallback:
    return ClickProgress(f"{direction:<8} {filename}")


def quiet_progress_factory(direction: str, filename: str) -> ProgressCallback:
    return no_progress


def print_summary(result: SyncResult) -> None:
    prefix = "[dry-run] " if result.dry_run else ""
    click.echo(f"\n{prefix}Release mirror summary")
    click.echo(f"  Created:       {', '.join(result.created) or '-'}")
    click.echo(f"  Updated:       {', '.join(result.updated) or '-'}")
    click.echo(f"  Unchanged:     {', '.join(result.skipped) or '-'}")
    click.echo(f"  Downloaded:    {result.downloaded} ({result.cache_hits} from cache)")
    click.echo(f"  Uploaded:      {result.uploaded}")
    click.echo(f"  Attachments removed: {len(result.deleted_attachments)}")
    click.echo(f"  Releases removed:    {', '.join(result.deleted_releases) or '-'}")
    for warning in result.warnings:
        click.echo(f"  Warning: {warning}")
    click.echo(f"  Failures:      {result.failure_count}")
    for key, message in result.failures.items():
        click.echo(f"    {key}: {message}")


@click.command("release-mirror")
@click.version_option(__version__, prog_name="release-mirror")
@click.option("--github-owner", envvar="GITHUB_OWNER", required=True, help="Source repository owner")
@click.option("--github-repo", envvar="GITHUB_REPO", required=True, help="Source repository name")
@click.option("--github-token", envvar="GITHUB_TOKEN", default=None, help="Optional GitHub token (raises the rate limit)")
@click.option("--gitee-owner", envvar="GITEE_OWNER", required=True, help="Mirror repository owner")
@click.option("--gitee-repo", envvar="GITEE_REPO", required=True, help="Mirror repository name")
@click.option("--gitee-token", envvar="GITEE_TOKEN", required=True, help="Gitee token with write access")
@click.option(
    "--latest-count", "latest_count", envvar="RELEASE_MIRROR_LATEST_COUNT",
    type=int, default=5, show_default=True, help="Number of recent GitHub releases to mirror"
)
@click.option(
    "--retain-count", "retain_count", envvar="RELEASE_MIRROR_RETAIN_COUNT",
    type=int, default=999, show_default=True, help="Maximum number of releases kept on Gitee"
)
@click.option(
    "--body-url-replace/--no-body-url-replace", envvar="RELEASE_MIRROR_BODY_URL_REPLACE",
    default=True, show_default=True, help="Rewrite GitHub URLs in release notes"
)
@click.option(
    "--manifest-url-replace/--no-manifest-url-replace", envvar="RELEASE_MIRROR_MANIFEST_URL_REPLACE",
    default=True, show_default=True, help="Rewrite GitHub URLs in the auto-update manifest"
)
@click.option("--manifest-name", default="latest.json", show_default=True, help="Manifest attachment filename")
@click.option(
    "--cache-dir", envvar="RELEASE_MIRROR_CACHE_DIR", default=None,
    type=click.Path(file_okay=False, path_type=Path), help="Attachment cache (default: <tmp>/<github repo>)"
)
@click.option("--timeout", type=int, default=60, show_default=True, help="HTTP timeout in seconds")
@click.option("--dry-run", is_flag=True, help="Show what would change without touching Gitee")
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.option("-q", "--quiet", is_flag=True, help="Only log warnings and errors")
def main(
    github_owner: str,
    github_repo: str,
    github_token: Optional[str],
    gitee_owner: str,
    gitee_repo: str,
    gitee_token: str,
    latest_count: int,
    retain_count: int,
    body_url_replace: bool,
    manifest_url_replace: bool,
    manifest_name: str,
    cache_dir: Optional[Path],
    timeout: int,
    dry_run: bool,
    no_progress: bool,
    verbose: bool,
    quiet: bool
) -> None:
    """Sync the latest GitHub releases to Gitee releases."""

    try:
        config = MirrorConfig(
            source_owner=github_owner,
            source_repo=github_repo,
            source_token=github_token or None,
            mirror_owner=gitee_owner,
            mirror_repo=gitee_repo,
            mirror_token=gitee_token,
            latest_release_count=latest_count,
            retain_release_count=retain_count,
            rewrite_release_body=body_url_replace,
            rewrite_manifest=manifest_url_replace,
            manifest_name=manifest_name,
            cache_dir=cache_dir,
            timeout=timeout,
            dry_run=dry_run,
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    factory = quiet_progress_factory if (no_progress or quiet) else click_progress_factory
    mirror = ReleaseMirror(config, verbose=verbose, progress_factory=factory, quiet=quiet)

    try:
        result = asyncio.run(mirror.sync())
    except ReconciliationAborted as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    print_summary(result)


__all__ = [
    "main",
]

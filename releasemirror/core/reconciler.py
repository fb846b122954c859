"""
Reconciler converging the mirror's releases onto the source's
most recent releases.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from ..models import (
    MirrorConfig, Release, ReleasePlan, ReleaseState, SyncDecision, SyncResult
)
from ..services import AttachmentTransferPipeline, GiteeMirrorClient, GitHubReleaseReader
from ..infrastructure.error_handler import (
    MirrorListUnavailable, MirrorSyncError, ReconciliationAborted, SourceUnavailable
)
from ..infrastructure.logger import logger
from .rewriter import ContentRewriter


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_body(body: str) -> str:
    """Ignore line ending and trailing whitespace differences in bodies."""

    lines = (body or "").replace("\r\n", "\n").split("\n")
    return "\n".join(line.rstrip() for line in lines).strip()


####
##      RELEASE RECONCILER
#####
class ReleaseReconciler:
    """
    Computes and applies the create/update/transfer/delete actions that
    make the mirror match the source.

    Releases are handled one at a time, and attachments one at a time within
    a release, so every mirror write sees the effects of the previous ones.
    """

    def __init__(
        self,
        config: MirrorConfig,
        source: GitHubReleaseReader,
        mirror: GiteeMirrorClient,
        pipeline: AttachmentTransferPipeline,
        rewriter: Optional[ContentRewriter] = None
    ):
        self.config = config
        self.source = source
        self.mirror = mirror
        self.pipeline = pipeline
        self.rewriter = rewriter or ContentRewriter(config)

    @property
    def _mirror_repo(self) -> tuple:
        return self.config.mirror_owner, self.config.mirror_repo

    async def run(self) -> SyncResult:
        """
        Execute one complete reconciliation.

        Returns:
            SyncResult listing what changed and what failed

        Raises:
            ReconciliationAborted: If the source releases or the mirror
                release list cannot be read
        """

        result = SyncResult(dry_run=self.config.dry_run)
        logger.debug(f"Starting reconciliation: {self.config.describe()}")

        try:
            source_releases = await self.source.latest_releases(
                self.config.source_owner,
                self.config.source_repo,
                self.config.latest_release_count
            )
        except SourceUnavailable as e:
            logger.error(f"Cannot read source releases: {e}")
            raise ReconciliationAborted("Source releases unavailable", e) from e

        mirror_releases = await self._list_mirror("Mirror releases unavailable")
        by_tag: Dict[str, Release] = {r.tag_name: r for r in mirror_releases}

        # Oldest first, so newer releases are created last on the mirror
        for source_release in reversed(source_releases):
            plan = await self._reconcile_release(source_release, by_tag, result)
            if plan is not None:
                result.plans.append(plan)

        await self.apply_retention(result)

        result.downloaded = self.pipeline.downloads
        result.cache_hits = self.pipeline.cache_hits
        result.uploaded = self.pipeline.uploads
        result.warnings.extend(self.pipeline.warnings)
        result.mark_completed()

        logger.info(
            f"Reconciliation finished: {len(result.created)} created, "
            f"{len(result.updated)} updated, {len(result.skipped)} unchanged, "
            f"{result.uploaded} uploaded, {len(result.deleted_releases)} removed, "
            f"{result.failure_count} failed"
        )
        return result

    async def _list_mirror(self, message: str) -> List[Release]:
        try:
            return await self.mirror.list_all(*self._mirror_repo)
        except MirrorListUnavailable as e:
            logger.error(f"Cannot list mirror releases: {e}")
            raise ReconciliationAborted(message, e) from e

    ####
    ##      PLANNING
    #####
    def decide(self, source_release: Release, mirror_release: Optional[Release]) -> SyncDecision:
        """Choose CREATE, UPDATE or SKIP for a release's metadata."""

        if mirror_release is None:
            return SyncDecision.CREATE

        body = self.rewriter.rewrite_body(source_release.body)
        if (
            normalize_body(body) != normalize_body(mirror_release.body)
            or source_release.display_name != mirror_release.display_name
            or source_release.prerelease != mirror_release.prerelease
        ):
            return SyncDecision.UPDATE
        return SyncDecision.SKIP

    async def plan(self, source_release: Release, mirror_release: Optional[Release]) -> ReleasePlan:
        """
        Compute the actions for one release without mutating the mirror.

        Attachments are compared by filename: missing ones are transferred,
        extra ones deleted, and common ones left alone.
        """

        decision = self.decide(source_release, mirror_release)
        plan = ReleasePlan(source=source_release, mirror=mirror_release, decision=decision)

        if mirror_release is not None and mirror_release.id is not None:
            mirror_release.attachments = await self.mirror.list_attachments(
                *self._mirror_repo, mirror_release.id
            )
            mirror_attachments = mirror_release.attachments
        else:
            mirror_attachments = []

        mirror_names = {a.name for a in mirror_attachments}
        source_names = set(source_release.attachment_names)

        plan.to_transfer = [a for a in source_release.attachments if a.name not in mirror_names]
        plan.to_delete = [a for a in mirror_attachments if a.name not in source_names]

        for attachment in mirror_attachments:
            # A rewritten manifest never has the source's size
            if self.rewriter.is_manifest(attachment.name):
                continue
            source_attachment = source_release.attachment(attachment.name)
            if source_attachment is not None and not source_attachment.matches(attachment):
                logger.warning(
                    f"{source_release.tag_name}/{attachment.name}: size differs from source "
                    "but attachments are matched by name only; leaving it untouched"
                )

        logger.debug(
            f"Plan {plan.tag_name}: {decision.value}, "
            f"{len(plan.to_transfer)} to transfer, {len(plan.to_delete)} to delete"
        )
        return plan

    ####
    ##      APPLYING
    #####
    async def _reconcile_release(
        self,
        source_release: Release,
        by_tag: Dict[str, Release],
        result: SyncResult
    ) -> Optional[ReleasePlan]:
        tag = source_release.tag_name
        try:
            plan = await self.plan(source_release, by_tag.get(tag))
        except MirrorSyncError as e:
            logger.error(f"Failed to plan release {tag}: {e}")
            result.record_failure(tag, e)
            return None

        if self.config.dry_run:
            self._report_dry_run(plan, result)
            return plan

        try:
            mirror_id = await self._apply_metadata(plan, by_tag, result)
        except MirrorSyncError as e:
            logger.error(f"Failed to sync release {tag}: {e}")
            plan.advance(ReleaseState.FAILED)
            result.record_failure(tag, e)
            return plan

        await self._apply_attachments(plan, mirror_id, result)
        plan.advance(ReleaseState.ATTACHMENTS_RECONCILED)
        plan.advance(ReleaseState.DONE)
        return plan

    async def _apply_metadata(
        self,
        plan: ReleasePlan,
        by_tag: Dict[str, Release],
        result: SyncResult
    ) -> int:
        """Create or update the mirror release; returns its mirror id."""

        source_release = plan.source
        desired = Release(
            tag_name=source_release.tag_name,
            name=source_release.display_name,
            body=self.rewriter.rewrite_body(source_release.body),
            published_at=source_release.published_at,
            prerelease=source_release.prerelease,
            target_commitish=source_release.target_commitish,
        )

        if plan.decision is SyncDecision.CREATE:
            plan.advance(ReleaseState.CREATE)
            desired.id = await self.mirror.create(*self._mirror_repo, desired)
            # Keep the lookup current so the same tag is never created twice
            by_tag[desired.tag_name] = desired
            plan.mirror = desired
            result.created.append(desired.tag_name)
            return desired.id

        if plan.decision is SyncDecision.UPDATE:
            plan.advance(ReleaseState.UPDATE)
            await self.mirror.update(*self._mirror_repo, plan.mirror.id, desired)
            result.updated.append(desired.tag_name)
        else:
            plan.advance(ReleaseState.SKIP)
            logger.info(f"Mirror release metadata unchanged: {desired.tag_name}")
            result.skipped.append(desired.tag_name)
        return plan.mirror.id

    async def _apply_attachments(self, plan: ReleasePlan, mirror_id: int, result: SyncResult) -> None:
        tag = plan.tag_name
        if not plan.has_attachment_changes:
            logger.info(f"Mirror release attachments unchanged: {tag}")
            return

        for attachment in plan.to_delete:
            try:
                await self.mirror.delete_attachments(*self._mirror_repo, mirror_id, [attachment])
                result.deleted_attachments.append(f"{tag}/{attachment.name}")
            except MirrorSyncError as e:
                logger.error(f"Failed to delete attachment {tag}/{attachment.name}: {e}")
                result.record_failure(f"{tag}/{attachment.name}", e)

        for attachment in plan.to_transfer:
            try:
                await self.pipeline.transfer(plan.source, attachment, mirror_id)
            except MirrorSyncError as e:
                logger.error(f"Failed to transfer attachment {tag}/{attachment.name}: {e}")
                result.record_failure(f"{tag}/{attachment.name}", e)

    def _report_dry_run(self, plan: ReleasePlan, result: SyncResult) -> None:
        tag = plan.tag_name
        {
            SyncDecision.CREATE: result.created,
            SyncDecision.UPDATE: result.updated,
            SyncDecision.SKIP: result.skipped,
        }[plan.decision].append(tag)
        result.deleted_attachments.extend(f"{tag}/{a.name}" for a in plan.to_delete)
        logger.info(
            f"Dry-run {tag}: would {plan.decision.value}, "
            f"transfer {[a.name for a in plan.to_transfer]}, "
            f"delete {[a.name for a in plan.to_delete]}"
        )

    ####
    ##      RETENTION
    #####
    def retention_candidates(self, releases: List[Release]) -> List[Release]:
        """Mirror releases beyond the retain count, oldest first."""

        retain = self.config.retain_release_count
        if len(releases) <= retain:
            return []

        newest_first = sorted(
            releases,
            key=lambda r: (r.published_at or _EPOCH, r.id or 0),
            reverse=True
        )
        return list(reversed(newest_first[retain:]))

    def _with_planned_creates(self, releases: List[Release], result: SyncResult) -> List[Release]:
        """Add the releases a dry run would have created, newest on the mirror."""

        newest = max((r.published_at or _EPOCH for r in releases), default=_EPOCH)
        planned = [
            Release(tag_name=plan.tag_name, published_at=newest + timedelta(seconds=position))
            for position, plan in enumerate(
                (p for p in result.plans if p.decision is SyncDecision.CREATE), start=1
            )
        ]
        return releases + planned

    async def apply_retention(self, result: SyncResult) -> None:
        """Delete the oldest mirror releases beyond the retain count."""

        releases = await self._list_mirror("Mirror releases unavailable for retention")
        if self.config.dry_run:
            releases = self._with_planned_creates(releases, result)
        candidates = self.retention_candidates(releases)
        if not candidates:
            logger.info("No mirror releases to remove")
            return

        logger.info(
            f"Mirror holds {len(releases)} releases, removing {len(candidates)} "
            f"beyond retain count {self.config.retain_release_count}"
        )
        for release in candidates:
            if self.config.dry_run:
                logger.info(f"Dry-run: would remove mirror release {release.tag_name}")
                result.deleted_releases.append(release.tag_name)
                continue
            try:
                await self.mirror.delete(*self._mirror_repo, release.id)
                result.deleted_releases.append(release.tag_name)
                logger.info(f"Mirror release removed: {release.tag_name}")
            except MirrorSyncError as e:
                logger.error(f"Failed to remove mirror release {release.tag_name}: {e}")
                result.record_failure(release.tag_name, e)


__all__ = [
    "ReleaseReconciler",
    "normalize_body",
]

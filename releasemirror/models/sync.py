"""
Synchronization domain models for release-mirror.

This module contains the per-release plan and state machine, the cache entry
describing a locally downloaded attachment, and the run summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from .release import Attachment, Release


class SyncDecision(Enum):
    """What happens to a source release's metadata on the mirror."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class ReleaseState(Enum):
    """Reconciliation state of a single source release."""

    PLAN = "plan"
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    ATTACHMENTS_RECONCILED = "attachments_reconciled"
    DONE = "done"
    FAILED = "failed"


# Allowed forward transitions of the per-release state machine
_TRANSITIONS: Dict[ReleaseState, set] = {
    ReleaseState.PLAN: {ReleaseState.CREATE, ReleaseState.UPDATE, ReleaseState.SKIP},
    ReleaseState.CREATE: {ReleaseState.ATTACHMENTS_RECONCILED},
    ReleaseState.UPDATE: {ReleaseState.ATTACHMENTS_RECONCILED},
    ReleaseState.SKIP: {ReleaseState.ATTACHMENTS_RECONCILED},
    ReleaseState.ATTACHMENTS_RECONCILED: {ReleaseState.DONE},
    ReleaseState.DONE: set(),
    ReleaseState.FAILED: set(),
}


@dataclass
class ReleasePlan:
    """Minimal set of actions converging one mirror release to its source."""

    source: Release
    mirror: Optional[Release]
    decision: SyncDecision
    to_transfer: List[Attachment] = field(default_factory=list)
    to_delete: List[Attachment] = field(default_factory=list)
    state: ReleaseState = ReleaseState.PLAN

    @property
    def tag_name(self) -> str:
        return self.source.tag_name

    @property
    def has_attachment_changes(self) -> bool:
        return bool(self.to_transfer or self.to_delete)

    def advance(self, state: ReleaseState) -> None:
        """Move to ``state``; any state may fall to FAILED."""

        if state is not ReleaseState.FAILED and state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Invalid transition {self.state.value} -> {state.value}")
        self.state = state


@dataclass
class CacheEntry:
    """A locally cached copy of one attachment, keyed by (tag, filename)."""

    tag_name: str
    name: str
    path: Path
    expected_size: Optional[int] = None

    @property
    def partial_path(self) -> Path:
        return self.path.with_name(self.path.name + ".part")

    @property
    def is_complete(self) -> bool:
        if not self.path.is_file():
            return False
        if self.expected_size is None:
            return True
        return self.path.stat().st_size == self.expected_size


@dataclass
class SyncResult:
    """Summary of one reconciliation run."""

    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    downloaded: int = 0
    cache_hits: int = 0
    uploaded: int = 0
    deleted_attachments: List[str] = field(default_factory=list)
    deleted_releases: List[str] = field(default_factory=list)

    # "tag" or "tag/filename" -> error message
    failures: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    plans: List[ReleasePlan] = field(default_factory=list)
    dry_run: bool = False

    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def is_successful(self) -> bool:
        return self.completed_at is not None and not self.failures

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def record_failure(self, key: str, error: BaseException) -> None:
        self.failures[key] = str(error)

    def mark_completed(self) -> None:
        self.completed_at = datetime.now()


__all__ = [
    "SyncDecision",
    "ReleaseState",
    "ReleasePlan",
    "CacheEntry",
    "SyncResult",
]

"""
Core data models API surface for release-mirror.

This file re-exports model classes from domain-specific modules so callers
can write `from releasemirror.models import X`.
"""

from .release import (
    Attachment,
    Release,
)
from .sync import (
    SyncDecision,
    ReleaseState,
    ReleasePlan,
    CacheEntry,
    SyncResult,
)
from .config import MirrorConfig

__all__ = [
    # Release models
    "Attachment",
    "Release",
    # Sync models
    "SyncDecision",
    "ReleaseState",
    "ReleasePlan",
    "CacheEntry",
    "SyncResult",
    # Config models
    "MirrorConfig",
]

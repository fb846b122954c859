"""
Release domain models for release-mirror.

This module contains the provider-neutral release and attachment snapshots
and the parsers turning GitHub and Gitee API payloads into them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by either provider."""

    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Attachment:
    """A named binary file attached to a release."""

    name: str
    size: Optional[int] = None
    download_url: Optional[str] = None
    id: Optional[int] = None  # Mirror-side attachment id

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Attachment name is required")
        if self.size is not None and self.size < 0:
            raise ValueError("Attachment size cannot be negative")

    def matches(self, other: "Attachment") -> bool:
        """Filename and size equality; content is never hashed."""

        if self.name != other.name:
            return False
        if self.size is None or other.size is None:
            return True
        return self.size == other.size

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Attachment":
        return cls(
            name=data["name"],
            size=data.get("size"),
            download_url=data.get("browser_download_url"),
            id=data.get("id"),
        )


@dataclass
class Release:
    """Snapshot of a release on either provider, keyed by tag name."""

    tag_name: str
    name: str = ""
    body: str = ""
    published_at: Optional[datetime] = None
    attachments: List[Attachment] = field(default_factory=list)
    id: Optional[int] = None  # Assigned by the mirror on creation
    prerelease: bool = False
    target_commitish: str = ""

    def __post_init__(self) -> None:
        if not self.tag_name:
            raise ValueError("Release tag name is required")

        names = [a.name for a in self.attachments]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate attachment names in release {self.tag_name}")

    @property
    def display_name(self) -> str:
        return self.name or self.tag_name

    @property
    def attachment_names(self) -> List[str]:
        return [a.name for a in self.attachments]

    def attachment(self, name: str) -> Optional[Attachment]:
        for attachment in self.attachments:
            if attachment.name == name:
                return attachment
        return None

    def to_payload(self) -> Dict[str, Any]:
        """Body of a create/update request on the mirror."""

        return {
            "tag_name": self.tag_name,
            "name": self.display_name,
            "body": self.body,
            "prerelease": self.prerelease,
            "target_commitish": self.target_commitish,
        }

    @classmethod
    def from_github(cls, data: Dict[str, Any]) -> "Release":
        """Build a release from a GitHub ``/releases`` item."""

        return cls(
            tag_name=data["tag_name"],
            name=data.get("name") or "",
            body=data.get("body") or "",
            published_at=parse_timestamp(data.get("published_at")),
            attachments=[Attachment.from_api(a) for a in data.get("assets") or []],
            id=data.get("id"),
            prerelease=bool(data.get("prerelease", False)),
            target_commitish=data.get("target_commitish") or "",
        )

    @classmethod
    def from_gitee(cls, data: Dict[str, Any]) -> "Release":
        """
        Build a release from a Gitee ``/releases`` item.

        Gitee has no separate publish time; ``created_at`` is used instead.
        Attachments are left empty because the release payload mixes
        uploaded files with generated source archives; they are listed
        through the ``attach_files`` endpoint instead.
        """

        return cls(
            tag_name=data["tag_name"],
            name=data.get("name") or "",
            body=data.get("body") or "",
            published_at=parse_timestamp(data.get("created_at")),
            id=data["id"],
            prerelease=bool(data.get("prerelease", False)),
            target_commitish=data.get("target_commitish") or "",
        )


__all__ = [
    "Attachment",
    "Release",
    "parse_timestamp",
]

"""
Rewrites source download URLs into their mirror equivalents.
"""

import json
import re
from typing import Any

from ..models import MirrorConfig
from ..infrastructure.error_handler import ManifestRewriteFailed
from ..services.github_api import GITHUB_URL
from ..services.gitee_api import GITEE_URL


class ContentRewriter:
    """
    Replaces ``https://github.com/{owner}/{repo}`` with
    ``https://gitee.com/{owner}/{repo}`` in release bodies and in the
    auto-update manifest.

    Both providers serve attachments from ``/releases/download/{tag}/{file}``
    under the repository URL, so swapping the repository base is enough.
    """

    def __init__(self, config: MirrorConfig):
        self.config = config
        self.source_base = f"{GITHUB_URL}/{config.source_owner}/{config.source_repo}"
        self.mirror_base = f"{GITEE_URL}/{config.mirror_owner}/{config.mirror_repo}"
        # Stop at a URL boundary so "owner/repo-extra" is left alone
        self._pattern = re.compile(
            r"https?://github\.com/"
            + re.escape(f"{config.source_owner}/{config.source_repo}")
            + r"(?![\w-]|\.\w)",
            re.IGNORECASE
        )

    def rewrite_urls(self, text: str) -> str:
        return self._pattern.sub(self.mirror_base, text)

    def rewrite_body(self, body: str) -> str:
        if not self.config.rewrite_release_body:
            return body
        return self.rewrite_urls(body)

    def is_manifest(self, filename: str) -> bool:
        return self.config.rewrite_manifest and filename == self.config.manifest_name

    def rewrite_manifest(self, content: bytes) -> bytes:
        """
        Rewrite every URL inside a JSON manifest.

        Raises:
            ManifestRewriteFailed: If the content is not valid UTF-8 JSON
        """

        try:
            document = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ManifestRewriteFailed("Manifest is not valid JSON", e) from e

        rewritten = self._rewrite_value(document)
        return (json.dumps(rewritten, indent=2, ensure_ascii=False) + "\n").encode("utf-8")

    def _rewrite_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.rewrite_urls(value)
        if isinstance(value, list):
            return [self._rewrite_value(item) for item in value]
        if isinstance(value, dict):
            return {key: self._rewrite_value(item) for key, item in value.items()}
        return value


__all__ = [
    "ContentRewriter",
]

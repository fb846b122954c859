"""
Provider clients and the attachment transfer pipeline.
"""

from .github_api import GitHubReleaseReader
from .gitee_api import GiteeMirrorClient
from .transfer import AttachmentTransferPipeline, ReleaseCache

__all__ = [
    "GitHubReleaseReader",
    "GiteeMirrorClient",
    "AttachmentTransferPipeline",
    "ReleaseCache",
]

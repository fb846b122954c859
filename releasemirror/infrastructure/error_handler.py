"""
Error taxonomy and API error translation for release-mirror.

Fatal errors (``SourceUnavailable``, ``MirrorListUnavailable``,
``ReconciliationAborted``) stop a run. Everything else is isolated to the
release or attachment it happened on and reported in the run summary.
Nothing here retries; a failed run is retried by invoking it again.
"""

import functools
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

import httpx


T = TypeVar("T")


####
##      EXCEPTIONS
#####
class MirrorSyncError(Exception):
    """Base class for every error raised by release-mirror."""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.original_error is not None:
            return f"{self.message} (Original: {self.original_error})"
        return self.message


class SourceUnavailable(MirrorSyncError):
    """Releases could not be read from the source provider."""


class MirrorListUnavailable(MirrorSyncError):
    """Mirror releases or attachments could not be enumerated."""


class MirrorWriteError(MirrorSyncError):
    """A create, update or delete on the mirror provider failed."""


class DownloadFailed(MirrorSyncError):
    """An attachment could not be downloaded from the source."""


class UploadFailed(MirrorSyncError):
    """An attachment could not be uploaded to the mirror."""


class ManifestRewriteFailed(MirrorSyncError):
    """A manifest attachment could not be parsed for URL rewriting."""


class ReconciliationAborted(MirrorSyncError):
    """The run cannot continue because its diffing precondition failed."""


####
##      HELPERS
#####
def raise_for_status(
    response: httpx.Response,
    error_cls: Type[MirrorSyncError],
    message: str
) -> None:
    """
    Raise ``error_cls`` if ``response`` carries a non-success status.

    Args:
        response: Response to check
        error_cls: Exception type to raise
        message: Human readable context prepended to the status line
    """

    if not response.is_success:
        raise error_cls(f"{message}: HTTP {response.status_code} {response.text[:200]}")


def handle_api_error(
    error_cls: Type[MirrorSyncError],
    message: str
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator translating transport, local I/O and payload errors of a
    coroutine function into ``error_cls``.

    Errors that are already a ``MirrorSyncError`` pass through untouched.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except MirrorSyncError:
                raise
            except (httpx.HTTPError, OSError) as e:
                raise error_cls(message, e) from e
            except (ValueError, KeyError, TypeError) as e:
                raise error_cls(f"{message}: malformed response", e) from e

        return wrapper

    return decorator


__all__ = [
    "MirrorSyncError",
    "SourceUnavailable",
    "MirrorListUnavailable",
    "MirrorWriteError",
    "DownloadFailed",
    "UploadFailed",
    "ManifestRewriteFailed",
    "ReconciliationAborted",
    "raise_for_status",
    "handle_api_error",
]

"""
Byte progress reporting for attachment transfers.

Transfers report ``(bytes_transferred, total_bytes)`` to a plain callable,
so tests can inject a recording observer and the CLI a progress bar.
"""

import os
from typing import BinaryIO, Callable, Optional


ProgressCallback = Callable[[int, int], None]

# (direction, filename) -> callback; direction is "download" or "upload"
ProgressFactory = Callable[[str, str], ProgressCallback]


def no_progress(transferred: int, total: int) -> None:
    """Progress observer that ignores every update."""


def no_progress_factory(direction: str, filename: str) -> ProgressCallback:
    return no_progress


class ProgressReader:
    """
    Binary file wrapper reporting read progress.

    httpx reads multipart file fields through ``read``; ``fileno`` and
    ``seek`` are passed through so the request keeps a known length.
    """

    def __init__(self, file: BinaryIO, total: int, callback: Optional[ProgressCallback] = None):
        self._file = file
        self.total = total
        self.transferred = 0
        self.callback = callback or no_progress

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size)
        if chunk:
            self.transferred += len(chunk)
            self.callback(self.transferred, self.total)
        return chunk

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        position = self._file.seek(offset, whence)
        self.transferred = position
        return position

    def tell(self) -> int:
        return self._file.tell()

    def fileno(self) -> int:
        return self._file.fileno()


__all__ = [
    "ProgressCallback",
    "ProgressFactory",
    "ProgressReader",
    "no_progress",
    "no_progress_factory",
]

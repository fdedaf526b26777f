"""Filesystem access used by the parser.

The parser only ever needs to know whether a file exists, how large it
is, and its text (or just its first lines).  Keeping that behind :class:`FileSystem` lets tests
(and embedding tools with their own storage) supply the content without
touching disk.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from itertools import islice
from typing import List


class FileSystem(ABC):
    """Minimal read-only filesystem interface."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if ``path`` names a readable regular file."""

    @abstractmethod
    def size(self, path: str) -> int:
        """Return the size of ``path`` in bytes."""

    @abstractmethod
    def read_text(self, path: str) -> str:
        """Return the full text of ``path``.

        Raises:
            OSError: If the file cannot be read.
        """

    def read_head(self, path: str, max_lines: int) -> List[str]:
        """Return at most the first ``max_lines`` lines of ``path``."""
        return self.read_text(path).splitlines()[:max_lines]


class LocalFileSystem(FileSystem):
    """:class:`FileSystem` backed by the local disk."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def exists(self, path: str) -> bool:
        return os.path.isfile(path)

    def size(self, path: str) -> int:
        return os.path.getsize(path)

    def read_text(self, path: str) -> str:
        with open(path, "r", encoding=self.encoding, errors="replace") as fh:
            return fh.read()

    def read_head(self, path: str, max_lines: int) -> List[str]:
        with open(path, "r", encoding=self.encoding, errors="replace") as fh:
            return [line.rstrip("\r\n") for line in islice(fh, max_lines)]

"""File systems rooted at a directory, optionally without directory listing."""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO


class ServedFile:
    """A file or directory opened from a FileSystem."""

    def __init__(self, path: Path, list_directory: bool = True):
        self.path = path
        self._list_directory = list_directory
        self._handle: BinaryIO | None = None if path.is_dir() else path.open("rb")

    def read(self) -> bytes:
        """Read the rest of the file."""
        if self._handle is None:
            raise IsADirectoryError(str(self.path))
        return self._handle.read()

    def readdir(self) -> list[str]:
        """Return the sorted entry names, or none when listing is disabled."""
        if not self.is_dir():
            raise NotADirectoryError(str(self.path))
        if not self._list_directory:
            return []
        return sorted(entry.name for entry in self.path.iterdir())

    def is_dir(self) -> bool:
        """Tell whether this is a directory."""
        return self._handle is None

    def close(self) -> None:
        """Release the underlying file handle."""
        if self._handle is not None:
            self._handle.close()

    def __enter__(self) -> ServedFile:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass(frozen=True)
class FileSystem:
    """Files below ``root``; names cannot climb out of it."""

    root: str
    list_directory: bool = True

    def open(self, name: str) -> ServedFile:
        """Open a slash-separated name relative to the root."""
        if "\x00" in name or (os.sep != "/" and os.sep in name):
            raise ValueError("invalid character in file path")
        clean = posixpath.normpath("/" + name).lstrip("/")
        base = Path(self.root or ".")
        path = base.joinpath(*clean.split("/")) if clean else base
        return ServedFile(path, self.list_directory)


def directory(root: str, list_directory: bool) -> FileSystem:
    """Return a file system at ``root``; without listing, directories read as empty."""
    return FileSystem(root, list_directory)
"""Filesystem capability used by the size scanner, orchestrator and checksum pass.

Only a handful of primitives are needed: list direct children, tell files from
directories, report lengths, stream reads, write whole files and delete trees.
``LocalFileSystem`` implements them on top of the OS; other backends (object
stores, HDFS gateways) plug in by subclassing ``FileSystem``.
"""

from __future__ import annotations

import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from storecore.io_atomic import atomic_write_bytes


@dataclass(frozen=True)
class FileEntry:
    """One entry of a directory listing."""

    path: Path
    is_dir: bool
    length: int = 0

    @property
    def name(self) -> str:
        return self.path.name


class FileSystem(ABC):
    """Minimal filesystem contract."""

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Return True when a file or directory exists at path."""

    @abstractmethod
    def is_dir(self, path: Path) -> bool:
        """Return True when path is an existing directory."""

    @abstractmethod
    def list_entries(self, path: Path) -> list[FileEntry]:
        """List direct children in backend order. Absent or empty paths list as []. Symbolic links are skipped."""

    @abstractmethod
    def open_read(self, path: Path) -> BinaryIO:
        """Open a file for binary streaming reads."""

    @abstractmethod
    def write_bytes(self, path: Path, data: bytes) -> None:
        """Write a whole file. Readers never observe a partial file."""

    @abstractmethod
    def delete(self, path: Path, recursive: bool = True) -> bool:
        """Delete path. Returns False when nothing existed."""

    @abstractmethod
    def mkdirs(self, path: Path) -> None:
        """Create a directory and any missing parents."""


class LocalFileSystem(FileSystem):
    """FileSystem backed by the local OS."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def list_entries(self, path: Path) -> list[FileEntry]:
        if not path.is_dir():
            return []
        entries: list[FileEntry] = []
        with os.scandir(path) as scan:
            for item in scan:
                if item.is_symlink():
                    continue
                is_dir = item.is_dir(follow_symlinks=False)
                length = 0 if is_dir else int(item.stat(follow_symlinks=False).st_size)
                entries.append(FileEntry(path=Path(item.path), is_dir=is_dir, length=length))
        return entries

    def open_read(self, path: Path) -> BinaryIO:
        return path.open("rb")

    def write_bytes(self, path: Path, data: bytes) -> None:
        atomic_write_bytes(data, path)

    def delete(self, path: Path, recursive: bool = True) -> bool:
        if not path.exists() and not path.is_symlink():
            return False
        if path.is_dir() and not path.is_symlink():
            if recursive:
                shutil.rmtree(path)
            else:
                path.rmdir()
        else:
            path.unlink()
        return True

    def mkdirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

"""Shared fakes for store builder tests."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Callable

import pytest

from storecore.config import BuildConfig, Cluster, Node, StoreDefinition
from storecore.filesystem import FileEntry, FileSystem
from storebuilder.engine import ExecutionEngine, JobOutcome, JobSpec


class MemoryFileSystem(FileSystem):
    """In-memory filesystem whose listings follow insertion order."""

    def __init__(self) -> None:
        self.files: dict[Path, bytes] = {}
        self.dirs: set[Path] = set()
        self._children: dict[Path, dict[Path, None]] = {}
        self.reads: list[Path] = []

    def _register(self, path: Path) -> None:
        if path.parent != path:
            self._children.setdefault(path.parent, {})[path] = None

    def mkdirs(self, path: Path) -> None:
        missing: list[Path] = []
        current = path
        while current not in self.dirs:
            missing.append(current)
            if current.parent == current:
                break
            current = current.parent
        for item in reversed(missing):
            self.dirs.add(item)
            self._register(item)

    def add_file(self, path: Path, data: bytes) -> None:
        self.mkdirs(path.parent)
        self.files[path] = data
        self._register(path)

    def exists(self, path: Path) -> bool:
        return path in self.files or path in self.dirs

    def is_dir(self, path: Path) -> bool:
        return path in self.dirs

    def list_entries(self, path: Path) -> list[FileEntry]:
        if path not in self.dirs:
            return []
        entries: list[FileEntry] = []
        for item in self._children.get(path, {}):
            if item in self.dirs:
                entries.append(FileEntry(path=item, is_dir=True))
            else:
                entries.append(FileEntry(path=item, is_dir=False, length=len(self.files[item])))
        return entries

    def open_read(self, path: Path) -> io.BytesIO:
        if path not in self.files:
            raise FileNotFoundError(str(path))
        self.reads.append(path)
        return io.BytesIO(self.files[path])

    def write_bytes(self, path: Path, data: bytes) -> None:
        self.add_file(path, data)

    def delete(self, path: Path, recursive: bool = True) -> bool:
        if not self.exists(path):
            return False
        pending = [path]
        while pending:
            current = pending.pop()
            children = self._children.pop(current, {})
            if children and not recursive:
                raise OSError(f"Directory not empty: {current}")
            pending.extend(children)
            self.files.pop(current, None)
            self.dirs.discard(current)
        self._children.get(path.parent, {}).pop(path, None)
        return True


class FakeEngine(ExecutionEngine):
    """Engine double that records jobs and optionally writes output."""

    def __init__(
        self,
        outcome: JobOutcome | None = None,
        raises: Exception | None = None,
        on_run: Callable[[JobSpec], None] | None = None,
    ) -> None:
        self.outcome = outcome if outcome is not None else JobOutcome(success=True, message="ok")
        self.raises = raises
        self.on_run = on_run
        self.jobs: list[JobSpec] = []

    def run_job(self, job: JobSpec) -> JobOutcome:
        self.jobs.append(job)
        if self.raises is not None:
            raise self.raises
        if self.on_run is not None:
            self.on_run(job)
        return self.outcome


def make_cluster(num_nodes: int = 2) -> Cluster:
    return Cluster(
        name="test",
        nodes=tuple(Node(node_id=node_id, host="localhost", partition_ids=(node_id,)) for node_id in range(num_nodes)),
    )


def make_build_config(tmp_path: Path, **overrides: object) -> BuildConfig:
    values: dict[str, object] = {
        "chunk_size_bytes": 1024,
        "replication_factor": 1,
        "input_path": tmp_path / "input",
        "temp_path": tmp_path / "tmp",
        "output_path": tmp_path / "output",
    }
    values.update(overrides)
    return BuildConfig(**values)  # type: ignore[arg-type]


def identity_mapper(record: dict[str, object]) -> tuple[bytes, bytes]:
    return str(record["id"]).encode("utf-8"), str(record["value"]).encode("utf-8")


@pytest.fixture
def memory_fs() -> MemoryFileSystem:
    return MemoryFileSystem()


@pytest.fixture
def store_def() -> StoreDefinition:
    return StoreDefinition(name="test-store", replication_factor=1)

"""Tests for node checksum manifests."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from conftest import MemoryFileSystem
from storecore.errors import ChecksumMismatch
from storecore.filesystem import FileEntry, LocalFileSystem
from storecore.paths import CHECKSUM_FILE_NAME
from storebuilder.checksum import (
    DIGEST_SIZE,
    aggregate_node_checksum,
    aggregate_output_checksums,
    compute_node_checksum,
    order_store_files,
    read_manifest,
    verify_node_checksum,
)

NODE = Path("/out/node-0")


def _md5(data: bytes) -> bytes:
    return hashlib.md5(data).digest()


def _seed(fs: MemoryFileSystem, files: dict[str, bytes]) -> None:
    fs.mkdirs(NODE)
    for name, data in files.items():
        fs.add_file(NODE / name, data)


def test_order_puts_directories_first_and_index_files_last() -> None:
    entries = [
        FileEntry(Path("/n/1.index"), False, 1),
        FileEntry(Path("/n/1.data"), False, 1),
        FileEntry(Path("/n/sub"), True),
        FileEntry(Path("/n/0.index"), False, 1),
        FileEntry(Path("/n/0.data"), False, 1),
    ]
    ordered = [entry.name for entry in order_store_files(entries)]
    assert ordered == ["sub", "1.data", "0.data", "1.index", "0.index"]


def test_aggregate_processes_data_files_then_index_and_skips_hidden(memory_fs: MemoryFileSystem) -> None:
    files = {"a.index": b"index-a", "b.data": b"data-b", "c.data": b"data-c", ".hidden": b"meta"}
    _seed(memory_fs, files)

    checksum = aggregate_node_checksum(memory_fs, NODE)

    assert [path.name for path in memory_fs.reads] == ["b.data", "c.data", "a.index"]
    expected = _md5(_md5(b"data-b") + _md5(b"data-c") + _md5(b"index-a"))
    assert checksum == expected
    assert memory_fs.files[NODE / CHECKSUM_FILE_NAME] == expected
    assert len(checksum) == DIGEST_SIZE


def test_same_tier_files_follow_listing_order(memory_fs: MemoryFileSystem) -> None:
    _seed(memory_fs, {"1.data": b"one", "0.data": b"zero"})

    checksum = compute_node_checksum(memory_fs, NODE)

    assert checksum == _md5(_md5(b"one") + _md5(b"zero"))
    assert checksum != _md5(_md5(b"zero") + _md5(b"one"))


def test_subdirectories_are_not_digested(memory_fs: MemoryFileSystem) -> None:
    _seed(memory_fs, {"0.data": b"zero"})
    memory_fs.add_file(NODE / "nested" / "9.data", b"ignored")

    assert compute_node_checksum(memory_fs, NODE) == _md5(_md5(b"zero"))


def test_rerun_over_unchanged_directory_is_byte_identical(memory_fs: MemoryFileSystem) -> None:
    _seed(memory_fs, {"0.data": b"zero", "0.index": b"idx"})

    first = aggregate_node_checksum(memory_fs, NODE)
    first_manifest = memory_fs.files[NODE / CHECKSUM_FILE_NAME]
    second = aggregate_node_checksum(memory_fs, NODE)

    assert first == second
    assert memory_fs.files[NODE / CHECKSUM_FILE_NAME] == first_manifest


def test_empty_node_directory_digests_nothing(memory_fs: MemoryFileSystem) -> None:
    memory_fs.mkdirs(NODE)
    assert aggregate_node_checksum(memory_fs, NODE) == hashlib.md5().digest()


def test_streaming_with_tiny_buffer_matches_whole_file_digest(tmp_path: Path) -> None:
    node = tmp_path / "node-0"
    node.mkdir()
    payload = bytes(range(256)) * 513
    (node / "0.data").write_bytes(payload)

    fs = LocalFileSystem()
    assert compute_node_checksum(fs, node, buffer_size=7) == _md5(_md5(payload))
    assert compute_node_checksum(fs, node) == _md5(_md5(payload))


def test_aggregate_output_checksums_covers_every_node_directory(tmp_path: Path) -> None:
    output = tmp_path / "output"
    for node_id in range(3):
        node = output / f"node-{node_id}"
        node.mkdir(parents=True)
        (node / "0.data").write_bytes(f"data-{node_id}".encode())
        (node / "0.index").write_bytes(f"index-{node_id}".encode())
    (output / "stray.txt").write_text("not a node", encoding="utf-8")

    results = aggregate_output_checksums(LocalFileSystem(), output)

    assert sorted(results) == ["node-0", "node-1", "node-2"]
    for name, digest in results.items():
        assert (output / name / CHECKSUM_FILE_NAME).read_bytes() == digest
    assert not (output / CHECKSUM_FILE_NAME).exists()


def test_verify_detects_tampering(memory_fs: MemoryFileSystem) -> None:
    _seed(memory_fs, {"0.data": b"zero", "0.index": b"idx"})
    stored = aggregate_node_checksum(memory_fs, NODE)

    assert verify_node_checksum(memory_fs, NODE) == stored
    assert read_manifest(memory_fs, NODE) == stored

    memory_fs.files[NODE / "0.data"] = b"ZERO"
    with pytest.raises(ChecksumMismatch, match="mismatch"):
        verify_node_checksum(memory_fs, NODE)


def test_verify_requires_manifest(memory_fs: MemoryFileSystem) -> None:
    _seed(memory_fs, {"0.data": b"zero"})
    with pytest.raises(ChecksumMismatch, match=CHECKSUM_FILE_NAME):
        verify_node_checksum(memory_fs, NODE)


def test_read_failure_propagates_and_leaves_no_manifest(memory_fs: MemoryFileSystem, monkeypatch: pytest.MonkeyPatch) -> None:
    _seed(memory_fs, {"0.data": b"zero", "0.index": b"idx"})

    def broken_open(path: Path) -> object:
        raise OSError(f"read failed: {path}")

    monkeypatch.setattr(memory_fs, "open_read", broken_open)
    with pytest.raises(OSError, match="read failed"):
        aggregate_node_checksum(memory_fs, NODE)
    assert NODE / CHECKSUM_FILE_NAME not in memory_fs.files

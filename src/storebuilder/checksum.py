"""Per-node checksum manifests for built store output.

Each node directory gets one ``checkSum.txt`` holding the raw 16-byte MD5 of
the concatenated MD5s of its chunk files (an MD5-of-MD5s, as HDFS does). File
order matters for the result, so files are ordered by tier: directories first
(they are not digested), then non-index files, then index files. Ties keep the
order of the directory listing.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Sequence

from storecore.config import DEFAULT_BUFFER_SIZE
from storecore.errors import ChecksumMismatch
from storecore.filesystem import FileEntry, FileSystem
from storecore.logging import get_logger
from storecore.paths import CHECKSUM_FILE_NAME, INDEX_FILE_SUFFIX

LOGGER = get_logger(__name__)

DIGEST_SIZE = 16

_TIER_DIRECTORY = 0
_TIER_FILE = 1
_TIER_INDEX = 2


def _tier(entry: FileEntry) -> int:
    if entry.is_dir:
        return _TIER_DIRECTORY
    if entry.name.endswith(INDEX_FILE_SUFFIX):
        return _TIER_INDEX
    return _TIER_FILE


def order_store_files(entries: Iterable[FileEntry]) -> list[FileEntry]:
    """Order entries directories-first, index-files-last. Stable within a tier."""
    return sorted(entries, key=_tier)


def select_digest_files(entries: Sequence[FileEntry]) -> list[FileEntry]:
    """Return the files that contribute to a node digest, in digest order."""
    selected: list[FileEntry] = []
    for entry in order_store_files(entries):
        if entry.is_dir:
            continue
        if entry.name.startswith("."):
            continue
        # a manifest from an earlier pass is not node content
        if entry.name == CHECKSUM_FILE_NAME:
            continue
        selected.append(entry)
    return selected


def file_digest(fs: FileSystem, path: Path, buffer_size: int = DEFAULT_BUFFER_SIZE) -> bytes:
    """MD5 of one file, streamed in buffer_size reads."""
    if buffer_size < 1:
        raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")
    digest = hashlib.md5()
    with fs.open_read(path) as handle:
        for block in iter(lambda: handle.read(buffer_size), b""):
            digest.update(block)
    return digest.digest()


def compute_node_checksum(fs: FileSystem, node_dir: Path, buffer_size: int = DEFAULT_BUFFER_SIZE) -> bytes:
    """Compute the MD5-of-MD5s for a node directory without writing anything."""
    node_digest = hashlib.md5()
    files = select_digest_files(fs.list_entries(node_dir))
    for entry in files:
        node_digest.update(file_digest(fs, entry.path, buffer_size))
        LOGGER.debug("Checksummed store file | node_dir=%s file=%s", node_dir, entry.name)
    return node_digest.digest()


def aggregate_node_checksum(
    fs: FileSystem,
    node_dir: Path,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    write_manifest: bool = True,
) -> bytes:
    """Compute the node digest and persist it as the node's manifest."""
    checksum = compute_node_checksum(fs, node_dir, buffer_size)
    if write_manifest:
        fs.write_bytes(node_dir / CHECKSUM_FILE_NAME, checksum)
    LOGGER.info("Node checksum | node_dir=%s md5=%s", node_dir, checksum.hex())
    return checksum


def aggregate_output_checksums(
    fs: FileSystem,
    output_path: Path,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> dict[str, bytes]:
    """Write a manifest into every node directory directly under output_path."""
    results: dict[str, bytes] = {}
    for entry in fs.list_entries(output_path):
        if not entry.is_dir:
            continue
        results[entry.name] = aggregate_node_checksum(fs, entry.path, buffer_size)
    return results


def read_manifest(fs: FileSystem, node_dir: Path) -> bytes | None:
    """Return stored manifest bytes, or None when the node has no manifest."""
    manifest_path = node_dir / CHECKSUM_FILE_NAME
    if not fs.exists(manifest_path):
        return None
    with fs.open_read(manifest_path) as handle:
        return handle.read()


def verify_node_checksum(fs: FileSystem, node_dir: Path, buffer_size: int = DEFAULT_BUFFER_SIZE) -> bytes:
    """Recompute a node digest and compare it with the stored manifest."""
    expected = read_manifest(fs, node_dir)
    if expected is None:
        raise ChecksumMismatch(f"No {CHECKSUM_FILE_NAME} in {node_dir}")
    actual = compute_node_checksum(fs, node_dir, buffer_size)
    if actual != expected:
        raise ChecksumMismatch(
            f"Checksum mismatch in {node_dir}: manifest={expected.hex()} computed={actual.hex()}"
        )
    return actual

"""Read-only chunk file format.

A chunk is a pair of files. The index file is a sorted run of fixed-width
entries, each the 16-byte key digest followed by a 4-byte big-endian offset
into the data file. The data file holds ``[4-byte big-endian length][value]``
per entry, in index order.
"""

from __future__ import annotations

import bisect
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from storecore.filesystem import FileSystem

KEY_DIGEST_SIZE = 16
OFFSET_SIZE = 4
INDEX_ENTRY_SIZE = KEY_DIGEST_SIZE + OFFSET_SIZE
MAX_OFFSET = 2**31 - 1

_OFFSET = struct.Struct(">i")
_LENGTH = struct.Struct(">i")


@dataclass(frozen=True)
class ChunkStats:
    """What was written for one chunk."""

    num_entries: int
    data_bytes: int
    index_bytes: int


ChunkWriter = Callable[[FileSystem, Path, Path, Iterable[tuple[bytes, bytes]]], ChunkStats]


def encode_chunk(records: Iterable[tuple[bytes, bytes]]) -> tuple[bytes, bytes]:
    """Encode (key digest, value) pairs, already sorted by digest, into (data, index) bytes."""
    data = bytearray()
    index = bytearray()
    previous: bytes | None = None
    for digest, value in records:
        if len(digest) != KEY_DIGEST_SIZE:
            raise ValueError(f"Key digest must be {KEY_DIGEST_SIZE} bytes, got {len(digest)}")
        if previous is not None and digest <= previous:
            raise ValueError("Chunk records must be strictly ascending by key digest.")
        offset = len(data)
        if offset > MAX_OFFSET:
            raise ValueError(f"Chunk data exceeds addressable size: offset {offset}")
        index += digest
        index += _OFFSET.pack(offset)
        data += _LENGTH.pack(len(value))
        data += value
        previous = digest
    return bytes(data), bytes(index)


def write_chunk(
    fs: FileSystem,
    data_path: Path,
    index_path: Path,
    records: Iterable[tuple[bytes, bytes]],
) -> ChunkStats:
    """Write one chunk's data and index files."""
    data, index = encode_chunk(records)
    fs.mkdirs(data_path.parent)
    fs.write_bytes(data_path, data)
    fs.write_bytes(index_path, index)
    return ChunkStats(num_entries=len(index) // INDEX_ENTRY_SIZE, data_bytes=len(data), index_bytes=len(index))


def read_chunk(fs: FileSystem, data_path: Path, index_path: Path) -> list[tuple[bytes, bytes]]:
    """Read a chunk back as (key digest, value) pairs in index order."""
    with fs.open_read(index_path) as handle:
        index = handle.read()
    with fs.open_read(data_path) as handle:
        data = handle.read()
    if len(index) % INDEX_ENTRY_SIZE:
        raise ValueError(f"Corrupt index file, size {len(index)} is not a multiple of {INDEX_ENTRY_SIZE}: {index_path}")

    out: list[tuple[bytes, bytes]] = []
    for position in range(0, len(index), INDEX_ENTRY_SIZE):
        digest = index[position : position + KEY_DIGEST_SIZE]
        (offset,) = _OFFSET.unpack_from(index, position + KEY_DIGEST_SIZE)
        (length,) = _LENGTH.unpack_from(data, offset)
        start = offset + _LENGTH.size
        out.append((digest, data[start : start + length]))
    return out


def lookup(fs: FileSystem, data_path: Path, index_path: Path, digest: bytes) -> bytes | None:
    """Binary-search a chunk for a key digest."""
    entries = read_chunk(fs, data_path, index_path)
    digests = [item[0] for item in entries]
    position = bisect.bisect_left(digests, digest)
    if position < len(digests) and digests[position] == digest:
        return entries[position][1]
    return None

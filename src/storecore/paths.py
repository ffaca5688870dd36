"""Path utilities for input discovery and store output layout."""

from __future__ import annotations

from pathlib import Path

from storecore.filesystem import FileSystem

DATA_FILE_SUFFIX = ".data"
INDEX_FILE_SUFFIX = ".index"
CHECKSUM_FILE_NAME = "checkSum.txt"
NODE_DIR_PREFIX = "node-"
INPUT_SUFFIXES = (".csv", ".parquet")


def ensure_within_root(path: Path, root: Path) -> None:
    """Ensure the given path resolves under the provided root path."""
    resolved_path = path.resolve()
    resolved_root = root.resolve()
    try:
        resolved_path.relative_to(resolved_root)
    except ValueError as exc:
        raise ValueError(f"Path escapes root: {resolved_path} (root: {resolved_root})") from exc


def is_hidden_name(name: str) -> bool:
    """Return True for names treated as metadata rather than input data."""
    return name.startswith(".") or name.startswith("_")


def discover_input_files(fs: FileSystem, input_root: Path) -> list[Path]:
    """Discover CSV and parquet input files recursively, skipping hidden entries."""
    if not fs.exists(input_root):
        raise FileNotFoundError(f"Input root does not exist: {input_root}")
    if not fs.is_dir(input_root):
        return [input_root] if input_root.suffix.lower() in INPUT_SUFFIXES else []

    files: list[Path] = []
    pending = [input_root]
    while pending:
        for entry in fs.list_entries(pending.pop()):
            if is_hidden_name(entry.name):
                continue
            if entry.is_dir:
                pending.append(entry.path)
            elif entry.path.suffix.lower() in INPUT_SUFFIXES:
                files.append(entry.path)
    return sorted(files)


def node_dir_name(node_id: int) -> str:
    """Return the output directory name for a node."""
    return f"{NODE_DIR_PREFIX}{node_id}"


def chunk_file_names(chunk_index: int) -> tuple[str, str]:
    """Return (data file name, index file name) for a chunk."""
    if chunk_index < 0:
        raise ValueError(f"chunk_index must be >= 0, got {chunk_index}")
    return f"{chunk_index}{DATA_FILE_SUFFIX}", f"{chunk_index}{INDEX_FILE_SUFFIX}"


def build_chunk_paths(output_root: Path, node_id: int, chunk_index: int) -> tuple[Path, Path]:
    """Build (data path, index path) for a chunk under the output root."""
    node_dir = output_root / node_dir_name(node_id)
    data_name, index_name = chunk_file_names(chunk_index)
    data_path = node_dir / data_name
    index_path = node_dir / index_name
    ensure_within_root(data_path, output_root)
    return data_path, index_path


def build_part_path(temp_root: Path, reduce_task: int) -> Path:
    """Build intermediate reducer output path for a reduce task."""
    part_path = temp_root / f"part-{reduce_task:05d}.parquet"
    ensure_within_root(part_path, temp_root)
    return part_path

"""Input volume estimation."""

from __future__ import annotations

from pathlib import Path

from storecore.filesystem import FileSystem


def size_of_path(fs: FileSystem, path: Path) -> int:
    """Sum file lengths under path, descending into every subdirectory.

    Absent and empty paths both report 0. Traversal uses an explicit stack, so
    tree depth is not bounded by the interpreter's recursion limit.
    """
    total = 0
    pending = [path]
    while pending:
        current = pending.pop()
        for entry in fs.list_entries(current):
            if entry.is_dir:
                pending.append(entry.path)
            else:
                total += int(entry.length)
    return total

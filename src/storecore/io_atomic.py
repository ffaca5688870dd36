"""Write-then-rename helpers.

Each writer fills ``<dest>.tmp`` next to the destination and renames it over
``dest`` with ``os.replace``. On any failure the temp file is removed and a
``RuntimeError`` naming the destination is raised with the cause chained.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable

import pandas as pd


def _tmp_path(dest: Path) -> Path:
    """Return deterministic temp path next to destination."""
    return dest.with_suffix(f"{dest.suffix}.tmp")


def _replace_atomically(dest: Path, kind: str, fill: Callable[[Path], None]) -> None:
    tmp = _tmp_path(dest)
    tmp.parent.mkdir(parents=True, exist_ok=True)

    try:
        fill(tmp)
        os.replace(tmp, dest)
    except Exception as exc:
        tmp.unlink(missing_ok=True)
        raise RuntimeError(f"Failed to atomically write {kind}: {dest}") from exc


def atomic_write_bytes(data: bytes, dest: Path) -> None:
    """Atomically write raw bytes, fsynced before the rename. Used for chunk files and manifests."""

    def fill(tmp: Path) -> None:
        with tmp.open("wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())

    _replace_atomically(dest, "bytes", fill)


def atomic_write_parquet(df: pd.DataFrame, dest: Path) -> None:
    """Atomically write a reduce task's sorted part file."""
    _replace_atomically(dest, "parquet", lambda tmp: df.to_parquet(tmp, index=False))


def atomic_write_json(payload: dict[str, Any], dest: Path) -> None:
    """Atomically write a build report. Values json cannot encode (paths) are written as strings."""

    def fill(tmp: Path) -> None:
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding="utf-8")

    _replace_atomically(dest, "json", fill)

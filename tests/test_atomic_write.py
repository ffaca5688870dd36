"""Tests for atomic write behavior."""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from storecore.io_atomic import atomic_write_bytes, atomic_write_json, atomic_write_parquet


def test_atomic_write_parquet_success(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    df = pd.DataFrame({"key_digest": [b"\x00" * 16], "value": [b"v"]})
    dest = tmp_path / "part-00000.parquet"
    tmp_dest = dest.with_suffix(".parquet.tmp")

    def fake_to_parquet(self: pd.DataFrame, path: Path, index: bool = False) -> None:
        del self, index
        Path(path).write_text("ok", encoding="utf-8")

    monkeypatch.setattr(pd.DataFrame, "to_parquet", fake_to_parquet)
    atomic_write_parquet(df, dest)

    assert dest.exists()
    assert not tmp_dest.exists()


def test_atomic_write_parquet_cleans_tmp_on_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    df = pd.DataFrame({"key_digest": [b"\x00" * 16], "value": [b"v"]})
    dest = tmp_path / "broken.parquet"
    tmp_dest = dest.with_suffix(".parquet.tmp")

    def fake_to_parquet_fail(self: pd.DataFrame, path: Path, index: bool = False) -> None:
        del self, index
        Path(path).write_text("partial", encoding="utf-8")
        raise RuntimeError("simulated parquet failure")

    monkeypatch.setattr(pd.DataFrame, "to_parquet", fake_to_parquet_fail)

    with pytest.raises(RuntimeError, match="Failed to atomically write parquet"):
        atomic_write_parquet(df, dest)

    assert not dest.exists()
    assert not tmp_dest.exists()


def test_atomic_write_bytes_replaces_whole_file(tmp_path: Path) -> None:
    dest = tmp_path / "node-0" / "checkSum.txt"
    atomic_write_bytes(b"first", dest)
    atomic_write_bytes(b"\x00\x01", dest)

    assert dest.read_bytes() == b"\x00\x01"
    assert not dest.with_suffix(".txt.tmp").exists()


def test_atomic_write_bytes_cleans_tmp_on_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    dest = tmp_path / "checkSum.txt"

    def failing_replace(src: object, dst: object) -> None:
        raise OSError("rename refused")

    monkeypatch.setattr("storecore.io_atomic.os.replace", failing_replace)
    with pytest.raises(RuntimeError, match="Failed to atomically write bytes"):
        atomic_write_bytes(b"digest", dest)

    assert not dest.exists()
    assert not dest.with_suffix(".txt.tmp").exists()


def test_atomic_write_json(tmp_path: Path) -> None:
    dest = tmp_path / "reports" / "build_report.json"
    atomic_write_json({"store_name": "s", "ok": True}, dest)
    assert json.loads(dest.read_text(encoding="utf-8")) == {"store_name": "s", "ok": True}


def test_atomic_write_json_writes_paths_as_strings(tmp_path: Path) -> None:
    dest = tmp_path / "report.json"
    atomic_write_json({"output_path": tmp_path / "store"}, dest)
    assert json.loads(dest.read_text(encoding="utf-8")) == {"output_path": str(tmp_path / "store")}
    assert not dest.with_suffix(".json.tmp").exists()

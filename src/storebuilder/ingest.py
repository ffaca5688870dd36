"""Input record readers for the local engine."""

from __future__ import annotations

import csv
from pathlib import Path

import pandas as pd


def _detect_delimiter(path: Path) -> str:
    """Detect delimiter from CSV sample. Fallback to comma."""
    with path.open("r", encoding="utf-8", errors="ignore", newline="") as handle:
        sample = handle.read(8192)

    if not sample.strip():
        return ","

    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
    except csv.Error:
        return ","
    return dialect.delimiter


def read_input_frame(path: Path) -> pd.DataFrame:
    """Read one input file (CSV or parquet) into a dataframe.

    CSV cells are kept as text so keys such as ``007`` survive unchanged.
    """
    if not path.exists():
        raise FileNotFoundError(f"Input does not exist: {path}")
    if not path.is_file():
        raise ValueError(f"Input path is not a file: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix == ".parquet":
            return pd.read_parquet(path)
        if suffix == ".csv":
            if not path.read_bytes().strip():
                return pd.DataFrame()
            return pd.read_csv(path, sep=_detect_delimiter(path), dtype=str, keep_default_na=False)
    except Exception as exc:
        raise RuntimeError(f"Failed to read input: {path}") from exc
    raise ValueError(f"Unsupported input format: {path}")

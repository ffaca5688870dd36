"""Record transforms turning input rows into store keys and values."""

from __future__ import annotations

import importlib
from typing import Any, Callable, Mapping

from storecore.config import MapperSettings
from storecore.errors import ConfigurationError

Mapper = Callable[[Mapping[str, Any]], tuple[bytes, bytes]]


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def column_mapper(key_column: str, value_column: str) -> Mapper:
    """Build a mapper emitting (row[key_column], row[value_column]) as UTF-8 bytes."""

    def _map(record: Mapping[str, Any]) -> tuple[bytes, bytes]:
        try:
            return _to_bytes(record[key_column]), _to_bytes(record[value_column])
        except KeyError as exc:
            raise KeyError(f"Record is missing column {exc.args[0]!r}") from exc

    return _map


def import_mapper(target: str) -> Mapper:
    """Import a mapper given as 'package.module:attribute'."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Mapper target must look like 'module:attribute', got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import mapper module {module_name!r}") from exc
    mapper = getattr(module, attr, None)
    if not callable(mapper):
        raise ConfigurationError(f"Mapper target {target!r} is not callable")
    return mapper


def resolve_mapper(settings: MapperSettings) -> Mapper:
    """Return the mapper selected by configuration."""
    if settings.target:
        return import_mapper(settings.target)
    if settings.key_column and settings.value_column:
        return column_mapper(settings.key_column, settings.value_column)
    raise ConfigurationError("mapper requires either target or both key_column and value_column.")

"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from storecore.errors import ConfigurationError

MIN_CHUNK_SIZE = 1
MAX_CHUNK_SIZE = int(1.9 * 1024 * 1024 * 1024)
DEFAULT_BUFFER_SIZE = 64 * 1024


@dataclass(frozen=True)
class Node:
    """A serving node and the ring partitions it masters."""

    node_id: int
    host: str = "localhost"
    partition_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class Cluster:
    """Ordered, immutable set of nodes."""

    name: str
    nodes: tuple[Node, ...]

    def __post_init__(self) -> None:
        if not self.nodes:
            raise ConfigurationError("Cluster must contain at least one node.")
        ids = [node.node_id for node in self.nodes]
        if len(set(ids)) != len(ids):
            raise ConfigurationError(f"Duplicate node ids in cluster {self.name!r}: {ids}")
        owned = [pid for node in self.nodes for pid in node.partition_ids]
        if len(set(owned)) != len(owned):
            raise ConfigurationError(f"A partition is assigned to more than one node in cluster {self.name!r}.")

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    @property
    def node_ids(self) -> tuple[int, ...]:
        return tuple(node.node_id for node in self.nodes)

    def node_index(self, node_id: int) -> int:
        """Return the position of node_id in cluster order."""
        for index, node in enumerate(self.nodes):
            if node.node_id == node_id:
                return index
        raise KeyError(f"Unknown node id: {node_id}")


@dataclass(frozen=True)
class StoreDefinition:
    """Store name and replication factor."""

    name: str
    replication_factor: int

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ConfigurationError("Store name cannot be empty.")
        if self.replication_factor < 1:
            raise ConfigurationError(f"replication_factor must be >= 1, got {self.replication_factor}")


@dataclass(frozen=True)
class BuildConfig:
    """Immutable per-build settings. Invalid values fail construction."""

    chunk_size_bytes: int
    replication_factor: int
    input_path: Path
    temp_path: Path
    output_path: Path
    checksum_enabled: bool = False
    buffer_size: int = DEFAULT_BUFFER_SIZE

    def __post_init__(self) -> None:
        if self.chunk_size_bytes > MAX_CHUNK_SIZE or self.chunk_size_bytes < MIN_CHUNK_SIZE:
            raise ConfigurationError(
                f"Invalid chunk size, chunk size must be in the range {MIN_CHUNK_SIZE}...{MAX_CHUNK_SIZE} "
                f"(got {self.chunk_size_bytes})"
            )
        if self.replication_factor < 1:
            raise ConfigurationError(f"replication_factor must be >= 1, got {self.replication_factor}")
        if self.buffer_size < 1:
            raise ConfigurationError(f"buffer_size must be >= 1, got {self.buffer_size}")


@dataclass(frozen=True)
class MapperSettings:
    """Record transform selection: either two columns or an importable 'module:attr' target."""

    key_column: str | None = None
    value_column: str | None = None
    target: str | None = None


@dataclass(frozen=True)
class JobConfig:
    """Everything a store build needs, as loaded from YAML."""

    cluster: Cluster
    store: StoreDefinition
    build: BuildConfig
    mapper: MapperSettings = field(default_factory=MapperSettings)


def _resolve_path(value: str, base_dir: Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else (base_dir / path).resolve()


def _get_required(data: dict[str, Any], key: str, section: str) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise ConfigurationError(f"Missing required config key: {section}.{key}")
    return data[key]


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _as_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be true or false, got {value!r}")
    return value


def _parse_cluster(raw: dict[str, Any]) -> Cluster:
    raw_nodes = _get_required(raw, "nodes", "cluster")
    if not isinstance(raw_nodes, list):
        raise ConfigurationError("cluster.nodes must be a list.")

    nodes: list[Node] = []
    for position, item in enumerate(raw_nodes):
        if not isinstance(item, dict):
            raise ConfigurationError(f"cluster.nodes[{position}] must be a mapping.")
        node_id = _as_int(_get_required(item, "id", f"cluster.nodes[{position}]"), f"cluster.nodes[{position}].id")
        partitions = item.get("partitions")
        if partitions is None:
            partition_ids: tuple[int, ...] = (position,)
        elif isinstance(partitions, list):
            partition_ids = tuple(_as_int(pid, f"cluster.nodes[{position}].partitions") for pid in partitions)
        else:
            raise ConfigurationError(f"cluster.nodes[{position}].partitions must be a list.")
        nodes.append(Node(node_id=node_id, host=str(item.get("host", "localhost")), partition_ids=partition_ids))

    return Cluster(name=str(raw.get("name", "cluster")), nodes=tuple(nodes))


def load_config(path: Path) -> JobConfig:
    """Load and validate a store build job from YAML."""
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Config is not valid YAML: {path}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config root must be a mapping: {path}")
    base_dir = path.resolve().parent

    cluster = _parse_cluster(_get_required(raw, "cluster", "root"))

    raw_store = _get_required(raw, "store", "root")
    store = StoreDefinition(
        name=str(_get_required(raw_store, "name", "store")),
        replication_factor=_as_int(_get_required(raw_store, "replication_factor", "store"), "store.replication_factor"),
    )

    raw_build = _get_required(raw, "build", "root")
    build = BuildConfig(
        chunk_size_bytes=_as_int(_get_required(raw_build, "chunk_size_bytes", "build"), "build.chunk_size_bytes"),
        replication_factor=_as_int(raw_build.get("replication_factor", store.replication_factor), "build.replication_factor"),
        input_path=_resolve_path(str(_get_required(raw_build, "input_path", "build")), base_dir),
        temp_path=_resolve_path(str(_get_required(raw_build, "temp_path", "build")), base_dir),
        output_path=_resolve_path(str(_get_required(raw_build, "output_path", "build")), base_dir),
        checksum_enabled=_as_bool(raw_build.get("checksum_enabled", False), "build.checksum_enabled"),
        buffer_size=_as_int(raw_build.get("buffer_size", DEFAULT_BUFFER_SIZE), "build.buffer_size"),
    )

    raw_mapper = raw.get("mapper") or {}
    if not isinstance(raw_mapper, dict):
        raise ConfigurationError("mapper must be a mapping.")
    mapper = MapperSettings(
        key_column=raw_mapper.get("key_column"),
        value_column=raw_mapper.get("value_column"),
        target=raw_mapper.get("target"),
    )

    cfg = JobConfig(cluster=cluster, store=store, build=build, mapper=mapper)
    validate_config(cfg)
    return cfg


def validate_config(cfg: JobConfig) -> None:
    """Validate cross-field constraints."""
    if cfg.build.replication_factor > cfg.cluster.num_nodes:
        raise ConfigurationError(
            f"replication_factor {cfg.build.replication_factor} exceeds node count {cfg.cluster.num_nodes}."
        )
    if cfg.store.replication_factor > cfg.cluster.num_nodes:
        raise ConfigurationError(
            f"store replication_factor {cfg.store.replication_factor} exceeds node count {cfg.cluster.num_nodes}."
        )
    if cfg.mapper.target is None and (not cfg.mapper.key_column or not cfg.mapper.value_column):
        raise ConfigurationError("mapper requires either target or both key_column and value_column.")
    if cfg.build.output_path == cfg.build.temp_path:
        raise ConfigurationError("output_path and temp_path must differ.")

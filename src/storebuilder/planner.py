"""Chunk sizing: how many chunks each node holds and how many reduce tasks to request."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class ChunkPlan:
    """Result of chunk planning."""

    num_chunks_per_node: int
    total_parallelism: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def compute_chunk_plan(
    total_input_bytes: int,
    replication_factor: int,
    num_nodes: int,
    chunk_size_bytes: int,
) -> ChunkPlan:
    """Compute chunks per node and total reduce parallelism.

    Roughly ``replication_factor * total_input_bytes`` bytes land across the
    cluster. Spread over ``num_nodes`` nodes in chunks of ``chunk_size_bytes``,
    that gives the floored chunk count per node, clamped to at least one.
    """
    if total_input_bytes < 0:
        raise ValueError(f"total_input_bytes must be >= 0, got {total_input_bytes}")
    if replication_factor < 1:
        raise ValueError(f"replication_factor must be >= 1, got {replication_factor}")
    if num_nodes < 1:
        raise ValueError(f"num_nodes must be >= 1, got {num_nodes}")
    if chunk_size_bytes < 1:
        raise ValueError(f"chunk_size_bytes must be >= 1, got {chunk_size_bytes}")

    num_chunks = max(replication_factor * total_input_bytes // (num_nodes * chunk_size_bytes), 1)
    return ChunkPlan(num_chunks_per_node=int(num_chunks), total_parallelism=int(num_nodes * num_chunks))

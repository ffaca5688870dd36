"""Routing of keys to replica nodes and chunks.

Two independent hashes are involved. The partition ring is walked from the
FNV-1a hash of the raw key, while the chunk within a node comes from the
leading bytes of the key's MD5 digest. Keeping them independent spreads a
node's keys over all of its chunks even when the partition and chunk counts
share a factor.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod

from storecore.config import Cluster
from storecore.errors import ConfigurationError

FNV_OFFSET_BASIS = 0xCBF29CE484222325
FNV_PRIME = 0x100000001B3
_MASK_64 = (1 << 64) - 1


def key_digest(key: bytes) -> bytes:
    """16-byte MD5 digest used for chunking and index ordering."""
    return hashlib.md5(key).digest()


def _signed_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def fnv_hash(key: bytes) -> int:
    """64-bit FNV-1a over the key, folded to a non-negative 32-bit int."""
    hashed = FNV_OFFSET_BASIS
    for byte in key:
        hashed ^= byte
        hashed = (hashed * FNV_PRIME) & _MASK_64
    return abs(_signed_int32(hashed))


def _digest_int(digest: bytes) -> int:
    return abs(int.from_bytes(digest[:4], "big", signed=True))


def chunk_index(digest: bytes, num_chunks: int) -> int:
    """Chunk a key digest belongs to within its node."""
    if num_chunks < 1:
        raise ValueError(f"num_chunks must be >= 1, got {num_chunks}")
    return _digest_int(digest) % num_chunks


class Partitioner(ABC):
    """Assigns each key to the reduce tasks (node, chunk pairs) that must hold it."""

    @abstractmethod
    def replica_nodes(self, key: bytes) -> list[int]:
        """Node ids holding a copy of the key, master first."""

    def reduce_tasks(self, cluster: Cluster, key: bytes, num_chunks: int) -> list[int]:
        """Reduce task numbers for a key: node position * num_chunks + chunk."""
        chunk = chunk_index(key_digest(key), num_chunks)
        return [cluster.node_index(node_id) * num_chunks + chunk for node_id in self.replica_nodes(key)]


class ConsistentRoutingPartitioner(Partitioner):
    """Hash the key onto the partition ring and walk it to collect distinct replica nodes."""

    def __init__(self, cluster: Cluster, replication_factor: int) -> None:
        if replication_factor < 1:
            raise ConfigurationError(f"replication_factor must be >= 1, got {replication_factor}")
        if replication_factor > cluster.num_nodes:
            raise ConfigurationError(
                f"replication_factor {replication_factor} exceeds node count {cluster.num_nodes}"
            )
        owners: dict[int, int] = {}
        for node in cluster.nodes:
            for partition_id in node.partition_ids:
                owners[partition_id] = node.node_id
        if not owners:
            raise ConfigurationError("Cluster has no partitions to route to.")
        if sorted(owners) != list(range(len(owners))):
            raise ConfigurationError(f"Partition ids must be contiguous from 0, got {sorted(owners)}")

        self.cluster = cluster
        self.replication_factor = replication_factor
        self._ring = [owners[pid] for pid in range(len(owners))]

    @property
    def num_partitions(self) -> int:
        return len(self._ring)

    def master_partition(self, key: bytes) -> int:
        return fnv_hash(key) % self.num_partitions

    def owner(self, partition_id: int) -> int:
        return self._ring[partition_id]

    def replica_nodes(self, key: bytes) -> list[int]:
        start = self.master_partition(key)
        nodes: list[int] = []
        for step in range(self.num_partitions):
            node_id = self._ring[(start + step) % self.num_partitions]
            if node_id not in nodes:
                nodes.append(node_id)
                if len(nodes) == self.replication_factor:
                    break
        return nodes

"""Builds a read-only store from input data.

Order of operations in ``StoreBuilder.build``:

1. refuse to run when the final output path already exists;
2. clear the temp path;
3. size the input and plan chunks per node;
4. run the job on the execution engine and wait for it;
5. optionally write a checksum manifest into every node directory.

Every failure after step 1 surfaces as ``BuildFailed`` with the original error
chained. Nothing is cleaned up on failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storecore.config import BuildConfig, Cluster, StoreDefinition
from storecore.errors import BuildFailed, ConfigurationError, PreconditionFailed
from storecore.filesystem import FileSystem, LocalFileSystem
from storecore.logging import get_logger
from storebuilder.checksum import aggregate_output_checksums
from storebuilder.chunk_writer import ChunkWriter, write_chunk
from storebuilder.engine import ExecutionEngine, JobOutcome, JobSpec
from storebuilder.mappers import Mapper
from storebuilder.partitioner import ConsistentRoutingPartitioner, Partitioner
from storebuilder.planner import ChunkPlan, compute_chunk_plan
from storebuilder.scanner import size_of_path

LOGGER = get_logger(__name__)

STORE_BUILDER_VERSION = "store_builder.v1"


@dataclass
class BuildResult:
    """What a successful build produced."""

    store_name: str
    total_input_bytes: int
    plan: ChunkPlan
    job: dict[str, Any]
    outcome: JobOutcome
    node_checksums: dict[str, str] = field(default_factory=dict)
    finished_at_utc: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize into JSON payload."""

        return {
            "builder_version": STORE_BUILDER_VERSION,
            "store_name": self.store_name,
            "finished_at_utc": self.finished_at_utc,
            "total_input_bytes": int(self.total_input_bytes),
            "plan": self.plan.to_dict(),
            "job": dict(self.job),
            "engine": {
                "success": bool(self.outcome.success),
                "message": self.outcome.message,
                "counters": dict(self.outcome.counters),
            },
            "node_checksums": dict(self.node_checksums),
        }


class StoreBuilder:
    """Drives one read-only store build."""

    def __init__(
        self,
        config: BuildConfig,
        cluster: Cluster,
        store_def: StoreDefinition,
        mapper: Mapper,
        engine: ExecutionEngine,
        partitioner: Partitioner | None = None,
        fs: FileSystem | None = None,
        writer: ChunkWriter | None = None,
    ) -> None:
        if not callable(mapper):
            raise ConfigurationError("mapper must be callable")
        if writer is not None and not callable(writer):
            raise ConfigurationError("writer must be callable")
        if cluster.num_nodes < 1:
            raise ConfigurationError("Cluster must contain at least one node.")

        self.config = config
        self.cluster = cluster
        self.store_def = store_def
        self.mapper = mapper
        self.engine = engine
        self.partitioner = (
            partitioner if partitioner is not None else ConsistentRoutingPartitioner(cluster, config.replication_factor)
        )
        self.fs = fs if fs is not None else LocalFileSystem()
        self.writer = writer if writer is not None else write_chunk

    def build(self) -> BuildResult:
        """Run the build. Blocks until the job and checksum pass finish."""
        cfg = self.config

        if self.fs.exists(cfg.output_path):
            raise PreconditionFailed(f"Final output directory already exists: {cfg.output_path}")

        try:
            return self._run()
        except BuildFailed:
            raise
        except Exception as exc:
            raise BuildFailed(f"Store build failed for {self.store_def.name!r}: {exc}") from exc

    def _run(self) -> BuildResult:
        cfg = self.config

        self.fs.delete(cfg.temp_path, recursive=True)

        size = size_of_path(self.fs, cfg.input_path)
        plan = compute_chunk_plan(
            total_input_bytes=size,
            replication_factor=self.store_def.replication_factor,
            num_nodes=self.cluster.num_nodes,
            chunk_size_bytes=cfg.chunk_size_bytes,
        )
        LOGGER.info(
            "Data size = %d, replication factor = %d, numNodes = %d, chunk size = %d, num.chunks = %d",
            size,
            self.store_def.replication_factor,
            self.cluster.num_nodes,
            cfg.chunk_size_bytes,
            plan.num_chunks_per_node,
        )
        LOGGER.info("Number of reduces: %d", plan.total_parallelism)

        job = JobSpec(
            input_path=cfg.input_path,
            temp_path=cfg.temp_path,
            final_output_path=cfg.output_path,
            num_reduce_tasks=plan.total_parallelism,
            num_chunks=plan.num_chunks_per_node,
            replication_factor=cfg.replication_factor,
            buffer_size=cfg.buffer_size,
            cluster=self.cluster,
            store_def=self.store_def,
            mapper=self.mapper,
            partitioner=self.partitioner,
            writer=self.writer,
        )

        LOGGER.info("Building store... | store=%s output=%s", self.store_def.name, cfg.output_path)
        outcome = self.engine.run_job(job)
        if not outcome.success:
            message = outcome.message or "engine reported failure"
            raise BuildFailed(f"Job failed for store {self.store_def.name!r}: {message}") from outcome.error

        node_checksums: dict[str, str] = {}
        if cfg.checksum_enabled:
            digests = aggregate_output_checksums(self.fs, cfg.output_path, cfg.buffer_size)
            node_checksums = {name: digest.hex() for name, digest in sorted(digests.items())}

        LOGGER.info("Store build complete | store=%s nodes_checksummed=%d", self.store_def.name, len(node_checksums))
        return BuildResult(
            store_name=self.store_def.name,
            total_input_bytes=size,
            plan=plan,
            job=job.to_dict(),
            outcome=outcome,
            node_checksums=node_checksums,
            finished_at_utc=datetime.now(timezone.utc).isoformat(),
        )

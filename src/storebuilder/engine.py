"""Execution engine collaborator and an in-process implementation.

The store builder hands a ``JobSpec`` to an ``ExecutionEngine`` and blocks on
the returned ``JobOutcome``. ``LocalEngine`` runs the whole job in this
process: map input rows to key/value pairs, route them to reduce tasks,
sort each task's records by key digest into a parquet part file under the temp
path, then hand every part file to the job's chunk writer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from storecore.config import Cluster, StoreDefinition
from storecore.errors import DuplicateKeyError
from storecore.filesystem import FileSystem, LocalFileSystem
from storecore.io_atomic import atomic_write_parquet
from storecore.logging import get_logger
from storecore.paths import build_chunk_paths, build_part_path, discover_input_files
from storebuilder.chunk_writer import ChunkWriter, write_chunk
from storebuilder.ingest import read_input_frame
from storebuilder.mappers import Mapper
from storebuilder.partitioner import Partitioner, key_digest

LOGGER = get_logger(__name__)

PART_COLUMNS = ("key_digest", "value")


@dataclass(frozen=True)
class JobSpec:
    """Description of one distributed build job."""

    input_path: Path
    temp_path: Path
    final_output_path: Path
    num_reduce_tasks: int
    num_chunks: int
    replication_factor: int
    buffer_size: int
    cluster: Cluster
    store_def: StoreDefinition
    mapper: Mapper
    partitioner: Partitioner
    writer: ChunkWriter = write_chunk

    def to_dict(self) -> dict[str, Any]:
        """Serialize the data-only part of the job for reports."""
        return {
            "store_name": self.store_def.name,
            "input_path": str(self.input_path),
            "temp_path": str(self.temp_path),
            "final_output_path": str(self.final_output_path),
            "num_reduce_tasks": int(self.num_reduce_tasks),
            "num_chunks": int(self.num_chunks),
            "replication_factor": int(self.replication_factor),
            "buffer_size": int(self.buffer_size),
            "num_nodes": int(self.cluster.num_nodes),
            "writer": getattr(self.writer, "__name__", type(self.writer).__name__),
        }


@dataclass
class JobOutcome:
    """Engine verdict for a job."""

    success: bool
    message: str = ""
    counters: dict[str, Any] = field(default_factory=dict)
    error: BaseException | None = None


class ExecutionEngine(ABC):
    """Runs a JobSpec to completion."""

    @abstractmethod
    def run_job(self, job: JobSpec) -> JobOutcome:
        """Run the job synchronously and report the outcome."""


class LocalEngine(ExecutionEngine):
    """Single-process engine. Holds every mapped record in memory.

    Input discovery and chunk output go through ``fs``. Input files and the
    parquet parts under the temp path are read and written by pandas, so both
    must live on local disk.
    """

    def __init__(self, fs: FileSystem | None = None) -> None:
        self.fs = fs if fs is not None else LocalFileSystem()

    def run_job(self, job: JobSpec) -> JobOutcome:
        try:
            counters = self._run(job)
        except Exception as exc:  # noqa: BLE001
            LOGGER.info("Local job failed | store=%s error=%s", job.store_def.name, exc)
            return JobOutcome(success=False, message=str(exc), error=exc)
        return JobOutcome(success=True, message="completed", counters=counters)

    def _run(self, job: JobSpec) -> dict[str, Any]:
        if job.num_reduce_tasks != job.cluster.num_nodes * job.num_chunks:
            raise ValueError(
                f"num_reduce_tasks {job.num_reduce_tasks} != num_nodes {job.cluster.num_nodes} * num_chunks {job.num_chunks}"
            )

        mapped, records_read, input_files = self._map(job)
        task_counts = np.bincount(mapped["reduce_task"].to_numpy(dtype=np.int64), minlength=job.num_reduce_tasks)
        self._reduce(job, mapped)
        self._write_chunks(job)

        return {
            "input_files": int(input_files),
            "records_read": int(records_read),
            "records_emitted": int(len(mapped)),
            "reduce_task_records": [int(count) for count in task_counts],
        }

    def _map(self, job: JobSpec) -> tuple[pd.DataFrame, int, int]:
        input_files = discover_input_files(self.fs, job.input_path) if self.fs.exists(job.input_path) else []
        tasks: list[int] = []
        digests: list[bytes] = []
        values: list[bytes] = []
        records_read = 0

        for path in input_files:
            frame = read_input_frame(path)
            LOGGER.info("Mapping input | file=%s rows=%d", path, len(frame))
            for record in frame.to_dict(orient="records"):
                records_read += 1
                key, value = job.mapper(record)
                digest = key_digest(key)
                for task in job.partitioner.reduce_tasks(job.cluster, key, job.num_chunks):
                    tasks.append(task)
                    digests.append(digest)
                    values.append(value)

        mapped = pd.DataFrame(
            {
                "reduce_task": pd.Series(tasks, dtype="int64"),
                "key_digest": pd.Series(digests, dtype="object"),
                "value": pd.Series(values, dtype="object"),
            }
        )
        return mapped, records_read, len(input_files)

    def _reduce(self, job: JobSpec, mapped: pd.DataFrame) -> None:
        groups = {int(task): frame for task, frame in mapped.groupby("reduce_task", sort=True)}
        for task in range(job.num_reduce_tasks):
            frame = groups.get(task)
            if frame is None:
                part = pd.DataFrame({"key_digest": pd.Series([], dtype="object"), "value": pd.Series([], dtype="object")})
            else:
                part = frame.sort_values("key_digest", kind="mergesort").loc[:, list(PART_COLUMNS)].reset_index(drop=True)
            duplicated = part["key_digest"].duplicated()
            if duplicated.any():
                raise DuplicateKeyError(
                    f"Duplicate keys detected for md5 sum {part.loc[duplicated, 'key_digest'].iloc[0].hex()} in reduce task {task}"
                )
            atomic_write_parquet(part, build_part_path(job.temp_path, task))

    def _write_chunks(self, job: JobSpec) -> None:
        for task in range(job.num_reduce_tasks):
            node_position, chunk = divmod(task, job.num_chunks)
            node_id = job.cluster.nodes[node_position].node_id
            part = pd.read_parquet(build_part_path(job.temp_path, task))
            records = [(bytes(digest), bytes(value)) for digest, value in zip(part["key_digest"], part["value"])]
            data_path, index_path = build_chunk_paths(job.final_output_path, node_id, chunk)
            stats = job.writer(self.fs, data_path, index_path, records)
            LOGGER.debug(
                "Chunk written | node=%s chunk=%d entries=%d data_bytes=%d",
                node_id,
                chunk,
                stats.num_entries,
                stats.data_bytes,
            )

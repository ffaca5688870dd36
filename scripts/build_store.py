"""CLI entrypoint for building a read-only store."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from storecore.config import load_config
from storecore.errors import BuildFailed, ConfigurationError, PreconditionFailed
from storecore.io_atomic import atomic_write_json
from storecore.logging import LOG_LEVELS, get_logger, setup_logging
from storebuilder.engine import LocalEngine
from storebuilder.mappers import resolve_mapper
from storebuilder.store_builder import StoreBuilder

LOGGER = get_logger("cli.build_store")

EXIT_OK = 0
EXIT_CONTRACT = 2
EXIT_RUNTIME = 3


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(description="Build a partitioned read-only key-value store from bulk input data.")
    parser.add_argument("--config", type=Path, required=True, help="YAML job configuration.")
    parser.add_argument(
        "--checksum",
        type=str,
        default=None,
        choices=("true", "false"),
        help="Override build.checksum_enabled from the config.",
    )
    parser.add_argument("--report-path", type=Path, default=None, help="Optional JSON build report destination.")
    parser.add_argument("--log-level", type=str.upper, default="INFO", choices=LOG_LEVELS, help="Logging level.")
    return parser.parse_args()


def _to_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _write_report_best_effort(payload: dict[str, Any], report_path: Path | None) -> None:
    if report_path is None:
        return
    try:
        atomic_write_json(payload, report_path)
    except RuntimeError as exc:
        LOGGER.info("Build report write failed (best-effort) | path=%s error=%s", report_path, exc)


def _failure_payload(config_path: Path, exit_code: int, exc: Exception) -> dict[str, Any]:
    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "config_path": str(config_path),
        "build_overall": False,
        "exit_code": exit_code,
        "error": {
            "type": type(exc).__name__,
            "message": str(exc),
            "cause": repr(exc.__cause__) if exc.__cause__ is not None else None,
        },
    }


def main() -> int:
    """Run the store build and return deterministic exit code."""

    args = parse_args()
    setup_logging(args.log_level)
    config_path = args.config.resolve()

    try:
        job_cfg = load_config(config_path)
        build_cfg = job_cfg.build
        if args.checksum is not None:
            build_cfg = replace(build_cfg, checksum_enabled=_to_bool(args.checksum))

        builder = StoreBuilder(
            config=build_cfg,
            cluster=job_cfg.cluster,
            store_def=job_cfg.store,
            mapper=resolve_mapper(job_cfg.mapper),
            engine=LocalEngine(),
        )
        result = builder.build()
    except (ConfigurationError, PreconditionFailed, FileNotFoundError) as exc:
        LOGGER.info("Store build rejected | config=%s exit_code=%d error=%s", config_path, EXIT_CONTRACT, exc)
        _write_report_best_effort(_failure_payload(config_path, EXIT_CONTRACT, exc), args.report_path)
        return EXIT_CONTRACT
    except BuildFailed as exc:
        LOGGER.info("Store build failed | config=%s exit_code=%d error=%s", config_path, EXIT_RUNTIME, exc)
        _write_report_best_effort(_failure_payload(config_path, EXIT_RUNTIME, exc), args.report_path)
        return EXIT_RUNTIME
    except Exception as exc:  # noqa: BLE001
        LOGGER.info("Store build runtime error | config=%s exit_code=%d error=%s", config_path, EXIT_RUNTIME, exc)
        _write_report_best_effort(_failure_payload(config_path, EXIT_RUNTIME, exc), args.report_path)
        return EXIT_RUNTIME

    payload = result.to_dict()
    payload["build_overall"] = True
    payload["exit_code"] = EXIT_OK
    _write_report_best_effort(payload, args.report_path)
    LOGGER.info(
        "Store build summary | store=%s chunks_per_node=%d reduces=%d checksummed_nodes=%d",
        result.store_name,
        result.plan.num_chunks_per_node,
        result.plan.total_parallelism,
        len(result.node_checksums),
    )
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())

"""CLI entrypoint for verifying node checksum manifests of a built store."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from storecore.config import DEFAULT_BUFFER_SIZE
from storecore.errors import ChecksumMismatch
from storecore.filesystem import LocalFileSystem
from storecore.logging import LOG_LEVELS, get_logger, setup_logging
from storebuilder.checksum import verify_node_checksum

LOGGER = get_logger("cli.verify_checksums")


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(description="Verify checkSum.txt manifests under a built store output path.")
    parser.add_argument("--output-path", type=Path, required=True, help="Store output path holding node directories.")
    parser.add_argument("--buffer-size", type=int, default=DEFAULT_BUFFER_SIZE, help="Read buffer size in bytes.")
    parser.add_argument("--log-level", type=str.upper, default="INFO", choices=LOG_LEVELS, help="Logging level.")
    return parser.parse_args()


def main() -> int:
    """Verify every node directory and return 0 only when all manifests match."""

    args = parse_args()
    setup_logging(args.log_level)

    fs = LocalFileSystem()
    output_path = args.output_path.resolve()
    if not fs.exists(output_path):
        LOGGER.info("Output path does not exist | path=%s", output_path)
        return 2

    node_dirs = [entry for entry in fs.list_entries(output_path) if entry.is_dir]
    failures = 0
    for entry in sorted(node_dirs, key=lambda item: item.name):
        try:
            digest = verify_node_checksum(fs, entry.path, args.buffer_size)
        except ChecksumMismatch as exc:
            failures += 1
            LOGGER.info("Checksum FAILED | node_dir=%s error=%s", entry.path, exc)
            continue
        except OSError as exc:
            failures += 1
            LOGGER.info("Checksum unreadable | node_dir=%s error=%s", entry.path, exc)
            continue
        LOGGER.info("Checksum ok | node_dir=%s md5=%s", entry.path, digest.hex())

    LOGGER.info("Checksum verification summary | nodes=%d failed=%d", len(node_dirs), failures)
    return 0 if failures == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())

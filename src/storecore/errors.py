"""Exception hierarchy for store builds."""

from __future__ import annotations


class StoreBuildError(Exception):
    """Base class for all store build errors."""


class ConfigurationError(StoreBuildError):
    """Raised when build configuration is invalid. No I/O has happened yet."""


class PreconditionFailed(StoreBuildError):
    """Raised when the final output path already exists."""


class BuildFailed(StoreBuildError):
    """Raised for any failure after preconditions passed. The cause is chained."""


class ChecksumMismatch(StoreBuildError):
    """Raised when a node manifest does not match the node's current content."""


class DuplicateKeyError(StoreBuildError):
    """Raised when two records resolve to the same key digest within one chunk."""

"""Exception taxonomy for aumai-driftwatch.

Every error here is terminal: the engine never retries or recovers from them,
it surfaces them to the caller with enough context to explain what went wrong.
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "BaselineError",
    "BaselineNotFoundError",
    "InvalidBaselineJSONError",
    "BaselineFormatError",
    "BaselineTooLargeError",
    "IntegrityMismatchError",
    "BaselineVersionError",
    "MigrationDowngradeError",
    "ConfigError",
]


class BaselineError(Exception):
    """Base class for all baseline load, verify and migrate failures."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message)


class BaselineNotFoundError(BaselineError):
    """Raised when the baseline path does not exist or is not a regular file."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Baseline file not found: {path}", path)


class InvalidBaselineJSONError(BaselineError):
    """Raised when a baseline file is empty or is not parseable JSON."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid JSON in baseline file {path}: {reason}", path)


class BaselineFormatError(BaselineError):
    """Raised when a baseline parses as JSON but fails structural validation.

    Attributes
    ----------
    issues : list[str]
        One ``field.path: message`` line per validation problem.
    """

    def __init__(
        self, issues: list[str], path: Path | str | None = None
    ) -> None:
        self.issues = list(issues)
        where = f" in {path}" if path is not None else ""
        lines = [f"Invalid baseline format{where}:"]
        lines.extend(f"  - {issue}" for issue in self.issues)
        super().__init__("\n".join(lines), path)


class BaselineTooLargeError(BaselineError):
    """Raised when a baseline file exceeds the configured size ceiling."""

    def __init__(self, path: Path | str, size_bytes: int, limit_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        size_mb = size_bytes / (1024 * 1024)
        limit_mb = limit_bytes / (1024 * 1024)
        super().__init__(
            f"Baseline file too large: {size_mb:.2f}MB exceeds limit of {limit_mb:.0f}MB. "
            "File may be corrupted or contain excessive data.",
            path,
        )


class IntegrityMismatchError(BaselineError):
    """Raised when the stored integrity hash does not match the recomputed one."""

    def __init__(
        self, expected: str, actual: str, path: Path | str | None = None
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            "Baseline hash verification failed - file may have been modified "
            f"(stored {expected!r}, computed {actual!r})",
            path,
        )


class BaselineVersionError(BaselineError):
    """Raised when two baseline format versions cannot be used together."""

    def __init__(
        self,
        message: str,
        source_version: str,
        target_version: str,
        path: Path | str | None = None,
    ) -> None:
        self.source_version = source_version
        self.target_version = target_version
        super().__init__(message, path)


class MigrationDowngradeError(BaselineVersionError):
    """Raised when a migration would move a baseline to an older format."""

    def __init__(self, source_version: str, target_version: str) -> None:
        super().__init__(
            f"Cannot downgrade baseline from v{source_version} to v{target_version}. "
            "Downgrading baselines is not supported.",
            source_version,
            target_version,
        )


class ConfigError(Exception):
    """Raised when a driftwatch configuration file cannot be loaded."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message)

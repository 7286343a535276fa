"""Loading, saving and sealing baseline files."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from aumai_driftwatch.errors import (
    BaselineFormatError,
    BaselineNotFoundError,
    BaselineTooLargeError,
    BaselineVersionError,
    IntegrityMismatchError,
    InvalidBaselineJSONError,
)
from aumai_driftwatch.hashing import hash_value
from aumai_driftwatch.models import AcceptedDiff, BehavioralBaseline, BehavioralDiff, DriftAcceptance
from aumai_driftwatch.versioning import (
    BASELINE_FORMAT_VERSION,
    MigrationInfo,
    MigrationRegistry,
    build_default_registry,
    parse_version,
)

__all__ = [
    "MAX_BASELINE_SIZE_BYTES",
    "BaselineStore",
    "accept_drift",
    "clear_acceptance",
    "compute_integrity_hash",
    "has_acceptance",
    "recalculate_integrity_hash",
    "verify_integrity",
]

logger = logging.getLogger(__name__)

MAX_BASELINE_SIZE_BYTES = 50 * 1024 * 1024

# Legacy 1.x files stored the seal under a different key.
_HASH_KEYS = ("hash", "integrityHash")


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------


def compute_integrity_hash(baseline: BehavioralBaseline) -> str:
    """Hash every field of *baseline* except ``hash`` itself."""
    payload = baseline.model_dump(mode="json", by_alias=True, exclude={"hash"}, exclude_none=True)
    return hash_value(payload)


def _compute_raw_hash(raw: dict[str, Any]) -> str:
    return hash_value({k: v for k, v in raw.items() if k not in _HASH_KEYS})


def recalculate_integrity_hash(baseline: BehavioralBaseline) -> BehavioralBaseline:
    """Return a copy of *baseline* sealed with a freshly computed hash."""
    return baseline.model_copy(update={"hash": compute_integrity_hash(baseline)})


def verify_integrity(baseline: BehavioralBaseline) -> bool:
    return baseline.hash == compute_integrity_hash(baseline)


# ---------------------------------------------------------------------------
# Acceptance
# ---------------------------------------------------------------------------


def has_acceptance(baseline: BehavioralBaseline) -> bool:
    return baseline.acceptance is not None


def clear_acceptance(baseline: BehavioralBaseline) -> BehavioralBaseline:
    """Return a resealed copy of *baseline* with no acceptance record."""
    if baseline.acceptance is None:
        return baseline
    return recalculate_integrity_hash(baseline.model_copy(update={"acceptance": None}))


def accept_drift(
    current: BehavioralBaseline,
    diff: BehavioralDiff,
    accepted_by: str | None = None,
    reason: str | None = None,
    accepted_at: datetime | None = None,
) -> BehavioralBaseline:
    """Record that *diff* was intentionally accepted on *current*.

    The record is for auditing only; comparisons never consult it.

    Args:
        current: The baseline that embodies the accepted drift.
        diff: The drift being accepted.
        accepted_by: Who accepted it.
        reason: Why it was accepted.
        accepted_at: When it was accepted; defaults to now.

    Returns:
        A resealed copy of *current* carrying a :class:`DriftAcceptance`.
    """
    acceptance = DriftAcceptance(
        accepted_at=accepted_at or datetime.now(tz=timezone.utc),
        accepted_by=accepted_by,
        reason=reason,
        accepted_diff=AcceptedDiff(
            tools_added=list(diff.tools_added),
            tools_removed=list(diff.tools_removed),
            tools_modified=[tool_diff.tool for tool_diff in diff.tools_modified],
            severity=diff.severity,
            breaking_count=diff.breaking_count,
            warning_count=diff.warning_count,
            info_count=diff.info_count,
        ),
    )
    return recalculate_integrity_hash(current.model_copy(update={"acceptance": acceptance}))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


def _format_issues(exc: ValidationError) -> list[str]:
    issues: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "(root)"
        issues.append(f"{location}: {error['msg']}")
    return issues


class BaselineStore:
    """Read and write baseline files.

    Args:
        registry: Migrations applied to older baselines on load. A fresh
            default registry is built when omitted.
        max_size_bytes: Files larger than this are refused before reading.
    """

    def __init__(
        self,
        registry: MigrationRegistry | None = None,
        max_size_bytes: int = MAX_BASELINE_SIZE_BYTES,
    ) -> None:
        self._registry = registry if registry is not None else build_default_registry()
        self._max_size_bytes = max_size_bytes

    @property
    def registry(self) -> MigrationRegistry:
        return self._registry

    def exists(self, path: Path | str) -> bool:
        return Path(path).is_file()

    def read_raw(self, path: Path | str) -> dict[str, Any]:
        """Read *path* as a JSON object with a parseable ``version``.

        Raises:
            BaselineNotFoundError: *path* is missing or not a regular file.
            BaselineTooLargeError: The file exceeds the size ceiling.
            InvalidBaselineJSONError: The file is empty or not JSON.
            BaselineFormatError: The document is not an object or has no
                valid version.
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise BaselineNotFoundError(file_path)

        size = file_path.stat().st_size
        if size > self._max_size_bytes:
            raise BaselineTooLargeError(file_path, size, self._max_size_bytes)

        text = file_path.read_text(encoding="utf-8")
        if not text.strip():
            raise InvalidBaselineJSONError(file_path, "file is empty")
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidBaselineJSONError(file_path, str(exc)) from exc

        if not isinstance(raw, dict):
            raise BaselineFormatError(["(root): expected a JSON object"], file_path)
        if "version" not in raw:
            raise BaselineFormatError(["version: field required"], file_path)
        try:
            parse_version(raw["version"])
        except ValueError as exc:
            raise BaselineFormatError([f"version: {exc}"], file_path) from exc
        return raw

    def migration_info(self, path: Path | str) -> MigrationInfo:
        """Describe the migrations loading *path* would apply."""
        return self._registry.get_migration_info(self.read_raw(path), BASELINE_FORMAT_VERSION)

    def load(self, path: Path | str, skip_integrity_check: bool = False) -> BehavioralBaseline:
        """Load, migrate and verify the baseline at *path*.

        Args:
            path: Baseline file to read.
            skip_integrity_check: Accept the file even if its hash does not
                match its content.

        Returns:
            The validated baseline at the current format version.

        Raises:
            BaselineNotFoundError: *path* is missing or not a regular file.
            BaselineTooLargeError: The file exceeds the size ceiling.
            InvalidBaselineJSONError: The file is empty or not JSON.
            BaselineFormatError: The document does not match the baseline shape.
            BaselineVersionError: The file uses a newer format than supported.
            IntegrityMismatchError: The stored hash does not match.
        """
        file_path = Path(path)
        raw = self.read_raw(file_path)
        source = parse_version(raw["version"])
        current = parse_version(BASELINE_FORMAT_VERSION)
        logger.debug("Loading baseline %s (format v%s)", file_path, source.raw)

        if source > current:
            raise BaselineVersionError(
                f"Baseline format v{source.raw} is newer than supported v{current.raw}. "
                "Upgrade the tool to read this baseline.",
                source.raw,
                current.raw,
                file_path,
            )

        if skip_integrity_check:
            logger.warning("Skipping integrity check for baseline %s", file_path)

        migrated = source < current
        if migrated:
            if not skip_integrity_check:
                stored = next((raw[k] for k in _HASH_KEYS if raw.get(k)), None)
                if stored is not None:
                    actual = _compute_raw_hash(raw)
                    if stored != actual:
                        raise IntegrityMismatchError(stored, actual, file_path)
            raw = self._registry.migrate(raw, current)

        try:
            baseline = BehavioralBaseline.model_validate(raw)
        except ValidationError as exc:
            raise BaselineFormatError(_format_issues(exc), file_path) from exc

        if migrated:
            baseline = recalculate_integrity_hash(baseline)
            logger.info("Migrated baseline %s from v%s to v%s", file_path, source.raw, current.raw)
        elif not skip_integrity_check:
            actual = compute_integrity_hash(baseline)
            if baseline.hash != actual:
                raise IntegrityMismatchError(baseline.hash, actual, file_path)

        return baseline

    def save(self, baseline: BehavioralBaseline, path: Path | str) -> Path:
        """Write *baseline* to *path* as indented UTF-8 JSON, replacing any file there."""
        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(baseline.to_json_dict(), indent=2, ensure_ascii=False)
        file_path.write_text(payload + "\n", encoding="utf-8")
        logger.debug("Saved baseline %s (%d tools)", file_path, len(baseline.tool_profiles))
        return file_path

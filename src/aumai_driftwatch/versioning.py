"""Baseline format versions, compatibility checks and forward migrations."""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable
from functools import total_ordering
from typing import Any

from pydantic import Field

from aumai_driftwatch.base import CamelModel
from aumai_driftwatch.errors import BaselineVersionError, MigrationDowngradeError

__all__ = [
    "BASELINE_FORMAT_VERSION",
    "FormatVersion",
    "MigrationInfo",
    "MigrationRegistry",
    "VersionCompatibility",
    "are_versions_compatible",
    "assert_version_compatibility",
    "build_default_registry",
    "check_version_compatibility",
    "compare_versions",
    "format_version",
    "get_compatibility_warning",
    "parse_version",
]

logger = logging.getLogger(__name__)

BASELINE_FORMAT_VERSION = "2.0.0"

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?$")

RawBaseline = dict[str, Any]
MigrationTransform = Callable[[RawBaseline], RawBaseline]


@total_ordering
class FormatVersion:
    """A parsed ``major.minor.patch`` baseline format version."""

    __slots__ = ("major", "minor", "patch")

    def __init__(self, major: int, minor: int = 0, patch: int = 0) -> None:
        self.major = major
        self.minor = minor
        self.patch = patch

    @property
    def raw(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def _key(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FormatVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: FormatVersion) -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"FormatVersion({self.raw!r})"


VersionLike = FormatVersion | str | int


def parse_version(version: VersionLike) -> FormatVersion:
    """Parse *version* into a :class:`FormatVersion`.

    Accepts a legacy bare integer ``N`` (read as ``N.0.0``), a numeric string
    with one to three components, or an existing :class:`FormatVersion`.

    Raises:
        ValueError: If *version* is not a recognisable format version.
    """
    if isinstance(version, FormatVersion):
        return version
    if isinstance(version, bool):
        raise ValueError(f"Invalid baseline version: {version!r}")
    if isinstance(version, int):
        if version < 0:
            raise ValueError(f"Invalid baseline version: {version!r}")
        return FormatVersion(version)
    if not isinstance(version, str):
        raise ValueError(f"Invalid baseline version: {version!r}")

    match = _VERSION_RE.match(version.strip())
    if match is None:
        raise ValueError(f"Invalid baseline version: {version!r}")
    major, minor, patch = match.groups()
    return FormatVersion(int(major), int(minor or 0), int(patch or 0))


def format_version(version: VersionLike) -> str:
    """Return the normalised ``major.minor.patch`` string for *version*."""
    return parse_version(version).raw


def compare_versions(a: VersionLike, b: VersionLike) -> int:
    """Return -1, 0 or 1 as *a* sorts before, equal to, or after *b*."""
    left = parse_version(a)
    right = parse_version(b)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def are_versions_compatible(source: VersionLike, target: VersionLike) -> bool:
    """A baseline at *source* can be read by code at *target*.

    Majors must match, and a newer source format is never compatible.
    """
    src = parse_version(source)
    tgt = parse_version(target)
    return src.major == tgt.major and src <= tgt


def get_compatibility_warning(source: VersionLike, target: VersionLike) -> str | None:
    """Describe how *source* and *target* differ, or return *None* if equal."""
    src = parse_version(source)
    tgt = parse_version(target)
    if src == tgt:
        return None

    if src.major != tgt.major:
        older, newer = (src, tgt) if src < tgt else (tgt, src)
        return (
            f"Baseline format versions are incompatible: v{src.raw} vs v{tgt.raw}. "
            f"Major version differs. Run `migrate` to upgrade the v{older.raw} baseline "
            f"to v{newer.raw}."
        )
    if src > tgt:
        return (
            f"Baseline format v{src.raw} is newer than supported v{tgt.raw}. "
            "Upgrade the tool to read this baseline."
        )
    return (
        f"Baseline format versions differ (v{src.raw} vs v{tgt.raw}) but are compatible."
    )


class VersionCompatibility(CamelModel):
    """Outcome of checking two baseline format versions against each other."""

    compatible: bool
    warning: str | None = None
    source_version: str
    target_version: str


def check_version_compatibility(source: VersionLike, target: VersionLike) -> VersionCompatibility:
    """Return the full compatibility verdict for *source* against *target*."""
    return VersionCompatibility(
        compatible=are_versions_compatible(source, target),
        warning=get_compatibility_warning(source, target),
        source_version=format_version(source),
        target_version=format_version(target),
    )


def assert_version_compatibility(source: VersionLike, target: VersionLike) -> None:
    """Raise :class:`BaselineVersionError` unless the versions are compatible."""
    result = check_version_compatibility(source, target)
    if not result.compatible:
        raise BaselineVersionError(
            result.warning or "Baseline format versions are incompatible",
            result.source_version,
            result.target_version,
        )


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------


class MigrationInfo(CamelModel):
    """Read-only summary of what migrating a baseline would do."""

    current_version: str
    target_version: str
    needs_migration: bool
    migrations_to_apply: list[str] = Field(default_factory=list)
    can_migrate: bool


def _raw_version(raw: RawBaseline) -> FormatVersion:
    if "version" not in raw:
        raise ValueError("Baseline has no version field")
    return parse_version(raw["version"])


class MigrationRegistry:
    """Ordered set of pure baseline transforms keyed by target version.

    Each transform receives a raw (JSON-decoded) baseline that is at the
    previous registered version and returns it at its own version.
    """

    def __init__(self) -> None:
        self._migrations: list[tuple[FormatVersion, MigrationTransform]] = []

    def register(self, version: VersionLike, transform: MigrationTransform) -> None:
        """Add a transform producing *version*.

        Raises:
            ValueError: If *version* does not sort after every registered version.
        """
        parsed = parse_version(version)
        if self._migrations and parsed <= self._migrations[-1][0]:
            raise ValueError(
                f"Migration v{parsed.raw} must be newer than v{self._migrations[-1][0].raw}"
            )
        self._migrations.append((parsed, transform))

    def versions(self) -> list[str]:
        return [version.raw for version, _ in self._migrations]

    def can_migrate(self, source: VersionLike, target: VersionLike) -> bool:
        return parse_version(source) < parse_version(target)

    def get_migrations_to_apply(self, source: VersionLike, target: VersionLike) -> list[str]:
        """Return the registered versions strictly after *source* up to *target*."""
        src = parse_version(source)
        tgt = parse_version(target)
        if src >= tgt:
            return []
        return [version.raw for version, _ in self._migrations if src < version <= tgt]

    def migrate(self, raw: RawBaseline, target: VersionLike = BASELINE_FORMAT_VERSION) -> RawBaseline:
        """Bring *raw* forward to *target*.

        Args:
            raw: A JSON-decoded baseline document. It is never mutated.
            target: Format version to migrate to.

        Returns:
            *raw* itself when it is already at *target*, otherwise a migrated
            deep copy whose ``version`` is *target*.

        Raises:
            MigrationDowngradeError: If *raw* is newer than *target*.
        """
        source = _raw_version(raw)
        tgt = parse_version(target)
        if source > tgt:
            raise MigrationDowngradeError(source.raw, tgt.raw)
        if source == tgt:
            return raw

        result = copy.deepcopy(raw)
        for version, transform in self._migrations:
            if source < version <= tgt:
                logger.debug("Applying baseline migration to v%s", version.raw)
                result = transform(result)
        result["version"] = tgt.raw
        return result

    def needs_migration(self, raw: RawBaseline, target: VersionLike = BASELINE_FORMAT_VERSION) -> bool:
        return _raw_version(raw) < parse_version(target)

    def get_migration_info(
        self, raw: RawBaseline, target: VersionLike = BASELINE_FORMAT_VERSION
    ) -> MigrationInfo:
        source = _raw_version(raw)
        tgt = parse_version(target)
        return MigrationInfo(
            current_version=source.raw,
            target_version=tgt.raw,
            needs_migration=source < tgt,
            migrations_to_apply=self.get_migrations_to_apply(source, tgt),
            can_migrate=source <= tgt,
        )


# ---------------------------------------------------------------------------
# Shipped migrations
# ---------------------------------------------------------------------------

_LEGACY_MODES = {"full": "explore", "structural": "check"}

# Top-level keys of the structured 2.x layout.
_STRUCTURED_KEYS = frozenset(
    {
        "version",
        "metadata",
        "server",
        "capabilities",
        "toolProfiles",
        "assertions",
        "summary",
        "hash",
        "acceptance",
        "documentationScore",
    }
)


def _drop_unknown_keys(raw: RawBaseline) -> RawBaseline:
    for key in [k for k in raw if k not in _STRUCTURED_KEYS]:
        del raw[key]
    return raw


def _migrate_to_1_0_0(raw: RawBaseline) -> RawBaseline:
    """Legacy integer versions become semantic version strings."""
    raw["version"] = "1.0.0"
    return raw


def _migrate_to_2_0_0(raw: RawBaseline) -> RawBaseline:
    """Move the flat 1.x layout to the structured 2.x layout."""
    if "toolProfiles" in raw and "metadata" in raw:
        raw["version"] = "2.0.0"
        return _drop_unknown_keys(raw)

    legacy_tools = raw.pop("tools", None) or []
    metadata = dict(raw.get("metadata") or {})
    metadata.setdefault("mode", _LEGACY_MODES.get(str(raw.pop("mode", "structural")), "check"))
    if "createdAt" in raw:
        metadata.setdefault("generatedAt", raw.pop("createdAt"))
    metadata.setdefault("generatedAt", "1970-01-01T00:00:00.000Z")
    metadata.setdefault("serverCommand", raw.pop("serverCommand", ""))
    metadata.setdefault("cliVersion", raw.pop("cliVersion", "unknown"))
    metadata.setdefault("durationMs", 0)
    metadata.setdefault("personas", [])
    metadata.setdefault("model", "none")

    raw.pop("workflowSignatures", None)
    raw.pop("integrityHash", None)

    server = raw.get("server") or {}
    server.setdefault("name", "unknown")
    server.setdefault("version", "unknown")
    server.setdefault("protocolVersion", "unknown")
    server.setdefault("capabilities", [])

    profiles: list[dict[str, Any]] = []
    capability_tools: list[dict[str, Any]] = []
    for tool in legacy_tools:
        schema = tool.get("inputSchema")
        profile: dict[str, Any] = {
            "name": tool.get("name", ""),
            "description": tool.get("description", ""),
            "schemaHash": tool.get("schemaHash", ""),
            "assertions": tool.get("assertions", []),
            "securityNotes": tool.get("securityNotes", []),
            "limitations": tool.get("limitations", []),
            "behavioralNotes": tool.get("behavioralNotes", []),
        }
        if schema is not None:
            profile["inputSchema"] = schema
        profiles.append(profile)
        capability_tools.append(
            {
                "name": profile["name"],
                "description": profile["description"],
                "inputSchema": schema if schema is not None else {},
            }
        )

    raw["metadata"] = metadata
    raw["server"] = server
    raw["capabilities"] = {"tools": capability_tools}
    raw["toolProfiles"] = profiles
    raw.setdefault("assertions", [])
    raw.setdefault("summary", "")
    raw["version"] = "2.0.0"
    return _drop_unknown_keys(raw)


def build_default_registry() -> MigrationRegistry:
    """Return a fresh registry holding every shipped migration."""
    registry = MigrationRegistry()
    registry.register("1.0.0", _migrate_to_1_0_0)
    registry.register("2.0.0", _migrate_to_2_0_0)
    return registry

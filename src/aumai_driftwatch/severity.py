"""Severity ordering and the policy applied to drift diffs."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from aumai_driftwatch.base import SEVERITY_ORDER, ChangeSeverity
from aumai_driftwatch.models import BehaviorChange, BehavioralDiff, SeverityConfig, ToolDiff

__all__ = [
    "EXIT_CODE_ERROR",
    "SEVERITY_ORDER",
    "SEVERITY_TO_EXIT_CODE",
    "apply_aspect_override",
    "apply_severity_config",
    "compare_severity",
    "count_by_severity",
    "filter_by_minimum_severity",
    "has_breaking_changes",
    "has_security_changes",
    "max_severity",
    "severity_meets_threshold",
    "should_fail_on_diff",
    "summarize_changes",
]

SEVERITY_TO_EXIT_CODE: dict[str, int] = {
    "none": 0,
    "info": 1,
    "warning": 2,
    "breaking": 3,
}
EXIT_CODE_ERROR = 4

_RANK = {severity: index for index, severity in enumerate(SEVERITY_ORDER)}


def compare_severity(a: ChangeSeverity, b: ChangeSeverity) -> int:
    """Return -1, 0 or 1 as *a* is less, equally or more severe than *b*."""
    diff = _RANK[a] - _RANK[b]
    return (diff > 0) - (diff < 0)


def severity_meets_threshold(severity: ChangeSeverity, threshold: ChangeSeverity) -> bool:
    return _RANK[severity] >= _RANK[threshold]


def max_severity(severities: Iterable[ChangeSeverity]) -> ChangeSeverity:
    """Return the most severe value, or ``"none"`` for an empty input."""
    result: ChangeSeverity = "none"
    for severity in severities:
        if _RANK[severity] > _RANK[result]:
            result = severity
    return result


def count_by_severity(changes: Iterable[BehaviorChange]) -> dict[str, int]:
    counts = {severity: 0 for severity in SEVERITY_ORDER}
    for change in changes:
        counts[change.severity] += 1
    return counts


def summarize_changes(
    tools_added: list[str],
    tools_removed: list[str],
    tools_modified: list[ToolDiff],
    changes: list[BehaviorChange],
) -> str:
    """Build the one-line human summary of a diff."""
    if not changes:
        return "No behavioral changes detected."

    counts = count_by_severity(changes)
    parts: list[str] = []
    if tools_removed:
        parts.append(f"{len(tools_removed)} tool(s) removed: {', '.join(tools_removed)}")
    if tools_added:
        parts.append(f"{len(tools_added)} tool(s) added: {', '.join(tools_added)}")
    if tools_modified:
        parts.append(f"{len(tools_modified)} tool(s) modified")
    if counts["breaking"]:
        parts.append(f"{counts['breaking']} breaking change(s)")
    if counts["warning"]:
        parts.append(f"{counts['warning']} warning(s)")
    if counts["info"]:
        parts.append(f"{counts['info']} informational change(s)")
    return ". ".join(parts) + "."


def apply_aspect_override(
    change: BehaviorChange, overrides: Mapping[str, ChangeSeverity]
) -> BehaviorChange:
    """Return *change* with its severity replaced by any override for its aspect."""
    override = overrides.get(change.aspect)
    if override is None or override == change.severity:
        return change
    return change.model_copy(update={"severity": override})


def _effective(change: BehaviorChange, config: SeverityConfig) -> BehaviorChange | None:
    """Apply *config* to one change; *None* means the change is dropped."""
    change = apply_aspect_override(change, config.aspect_overrides)
    if change.severity == "none":
        return None
    if config.suppress_warnings and change.severity == "warning":
        return None
    if not severity_meets_threshold(change.severity, config.minimum_severity):
        return None
    return change


def apply_severity_config(diff: BehavioralDiff, config: SeverityConfig) -> BehavioralDiff:
    """Reclassify and filter *diff* according to *config*.

    Overrides are applied before any filtering, so a change downgraded by an
    override can then fall below ``minimum_severity``. Counts, the aggregate
    severity and the summary are recomputed from the surviving changes.
    Applying the same config twice gives the same result as applying it once.

    Args:
        diff: The diff produced by the drift detector.
        config: The severity policy.

    Returns:
        A new :class:`BehavioralDiff`; *diff* is not modified.
    """
    changes = [c for c in (_effective(c, config) for c in diff.behavior_changes) if c is not None]

    tools_modified: list[ToolDiff] = []
    for tool_diff in diff.tools_modified:
        kept = [c for c in (_effective(c, config) for c in tool_diff.changes) if c is not None]
        if not kept:
            continue
        tools_modified.append(
            tool_diff.model_copy(
                update={
                    "changes": kept,
                    "schema_changed": tool_diff.schema_changed and any(c.aspect == "schema" for c in kept),
                    "description_changed": tool_diff.description_changed
                    and any(c.aspect == "description" for c in kept),
                }
            )
        )

    surviving_tools = {c.tool for c in changes if c.aspect == "tool"}
    tools_added = [name for name in diff.tools_added if name in surviving_tools]
    tools_removed = [name for name in diff.tools_removed if name in surviving_tools]

    counts = count_by_severity(changes)
    return diff.model_copy(
        update={
            "tools_added": tools_added,
            "tools_removed": tools_removed,
            "tools_modified": tools_modified,
            "behavior_changes": changes,
            "severity": max_severity(c.severity for c in changes),
            "breaking_count": counts["breaking"],
            "warning_count": counts["warning"],
            "info_count": counts["info"],
            "summary": summarize_changes(tools_added, tools_removed, tools_modified, changes),
        }
    )


def should_fail_on_diff(diff: BehavioralDiff, fail_on_severity: ChangeSeverity = "breaking") -> bool:
    return severity_meets_threshold(diff.severity, fail_on_severity)


def filter_by_minimum_severity(diff: BehavioralDiff, minimum: ChangeSeverity) -> list[BehaviorChange]:
    """Return the changes at or above *minimum* without touching *diff*."""
    return [c for c in diff.behavior_changes if severity_meets_threshold(c.severity, minimum)]


def has_breaking_changes(diff: BehavioralDiff) -> bool:
    return diff.severity == "breaking"


def has_security_changes(diff: BehavioralDiff) -> bool:
    return any(c.aspect == "security" for c in diff.behavior_changes)

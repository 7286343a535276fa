"""Evidence variants attached to tool fingerprints, and their diff primitives.

External collaborators (response sampling, security testing, latency
tracking, documentation scoring) produce these values. The drift detector
never looks inside them; it calls the one compare function each kind ships.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar, Literal

from pydantic import Field

from aumai_driftwatch.base import SEVERITY_ORDER, CamelModel, ChangeSeverity, Timestamp

__all__ = [
    "DEFAULT_PERFORMANCE_THRESHOLD",
    "PERFORMANCE_WARNING_THRESHOLD",
    "DeprecationChange",
    "DeprecationInfo",
    "DocumentationScoreChange",
    "DocumentationScoreSummary",
    "ErrorPattern",
    "ErrorPatternDiff",
    "ErrorTrend",
    "ErrorTrendReport",
    "FingerprintChange",
    "FingerprintDiff",
    "InferredSchema",
    "PerformanceBaseline",
    "PerformanceComparison",
    "PerformanceConfidence",
    "PerformanceReport",
    "ResponseFingerprint",
    "ResponseSchemaEvolution",
    "SchemaEvolutionDiff",
    "SchemaEvolutionReport",
    "SchemaTypeChange",
    "SchemaVersion",
    "SecurityDiff",
    "SecurityFinding",
    "SecurityFingerprint",
    "analyze_error_trends",
    "build_performance_report",
    "build_schema_evolution_report",
    "compare_deprecation",
    "compare_documentation_scores",
    "compare_error_patterns",
    "compare_inferred_schemas",
    "compare_performance",
    "compare_response_fingerprints",
    "compare_schema_evolution",
    "compare_security_fingerprints",
]

DEFAULT_PERFORMANCE_THRESHOLD = 0.10
PERFORMANCE_WARNING_THRESHOLD = 0.05
_TREND_IMPROVING = -0.05
_TREND_DEGRADING = 0.05


# ---------------------------------------------------------------------------
# Response fingerprint
# ---------------------------------------------------------------------------


class ResponseFingerprint(CamelModel):
    """Structural summary of a tool's successful responses."""

    kind: ClassVar[str] = "response_fingerprint"

    structure_hash: str = Field(..., description="Hash of keys, types and nesting")
    content_type: Literal["text", "object", "array", "primitive", "empty", "binary", "mixed"]
    fields: list[str] | None = Field(default=None, description="Top-level field names")
    array_item_structure: str | None = None
    size: Literal["tiny", "small", "medium", "large"] = "small"
    is_empty: bool = False
    sample_count: int = Field(default=0, ge=0)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class FingerprintChange(CamelModel):
    aspect: Literal["structure", "content_type", "fields", "array_items", "emptiness"]
    description: str
    before: str
    after: str
    breaking: bool


class FingerprintDiff(CamelModel):
    identical: bool
    changes: list[FingerprintChange] = Field(default_factory=list)
    significance: Literal["none", "low", "medium", "high"] = "none"


def compare_response_fingerprints(
    previous: ResponseFingerprint | None,
    current: ResponseFingerprint | None,
) -> FingerprintDiff:
    """Diff two response fingerprints.

    Structure, content type, removed fields, array item shape and a switch
    from data to empty are breaking; added fields are not.
    """
    if previous is None:
        if current is None:
            return FingerprintDiff(identical=True)
        return FingerprintDiff(
            identical=False,
            changes=[
                FingerprintChange(
                    aspect="structure",
                    description="Response fingerprint added (new baseline data)",
                    before="none",
                    after=current.structure_hash,
                    breaking=False,
                )
            ],
            significance="low",
        )
    if current is None:
        return FingerprintDiff(
            identical=False,
            changes=[
                FingerprintChange(
                    aspect="structure",
                    description="Response fingerprint removed",
                    before=previous.structure_hash,
                    after="none",
                    breaking=False,
                )
            ],
            significance="low",
        )

    changes: list[FingerprintChange] = []
    if previous.structure_hash != current.structure_hash:
        changes.append(
            FingerprintChange(
                aspect="structure",
                description="Response structure changed",
                before=previous.structure_hash,
                after=current.structure_hash,
                breaking=True,
            )
        )

    if previous.content_type != current.content_type:
        changes.append(
            FingerprintChange(
                aspect="content_type",
                description=f"Response type changed from {previous.content_type} to {current.content_type}",
                before=previous.content_type,
                after=current.content_type,
                breaking=True,
            )
        )

    prev_fields = previous.fields or []
    curr_fields = current.fields or []
    if prev_fields != curr_fields:
        before = ",".join(prev_fields)
        after = ",".join(curr_fields)
        removed = [f for f in prev_fields if f not in curr_fields]
        added = [f for f in curr_fields if f not in prev_fields]
        if removed:
            changes.append(
                FingerprintChange(
                    aspect="fields",
                    description=f"Fields removed: {', '.join(removed)}",
                    before=before,
                    after=after,
                    breaking=True,
                )
            )
        if added:
            changes.append(
                FingerprintChange(
                    aspect="fields",
                    description=f"Fields added: {', '.join(added)}",
                    before=before,
                    after=after,
                    breaking=False,
                )
            )

    if previous.array_item_structure != current.array_item_structure:
        changes.append(
            FingerprintChange(
                aspect="array_items",
                description="Array item structure changed",
                before=previous.array_item_structure or "none",
                after=current.array_item_structure or "none",
                breaking=True,
            )
        )

    if previous.is_empty != current.is_empty:
        changes.append(
            FingerprintChange(
                aspect="emptiness",
                description=(
                    "Response now returns data (was empty)"
                    if previous.is_empty
                    else "Response now empty (was returning data)"
                ),
                before=str(previous.is_empty).lower(),
                after=str(current.is_empty).lower(),
                breaking=current.is_empty,
            )
        )

    significance: Literal["none", "low", "medium", "high"] = "none"
    if changes:
        has_breaking = any(c.breaking for c in changes)
        structure_changed = any(c.aspect == "structure" for c in changes)
        if has_breaking and structure_changed:
            significance = "high"
        elif has_breaking:
            significance = "medium"
        else:
            significance = "low"

    return FingerprintDiff(identical=not changes, changes=changes, significance=significance)


# ---------------------------------------------------------------------------
# Error patterns
# ---------------------------------------------------------------------------

ErrorCategory = Literal["validation", "not_found", "permission", "timeout", "internal", "unknown"]


class ErrorPattern(CamelModel):
    """One normalised class of error a tool produced."""

    kind: ClassVar[str] = "error_patterns"

    category: ErrorCategory = "unknown"
    pattern_hash: str
    example: str = ""
    count: int = Field(default=1, ge=0)


class ErrorPatternDiff(CamelModel):
    added: list[ErrorPattern] = Field(default_factory=list)
    removed: list[ErrorPattern] = Field(default_factory=list)
    behavior_changed: bool = False


def compare_error_patterns(
    previous: Iterable[ErrorPattern] | None,
    current: Iterable[ErrorPattern] | None,
) -> ErrorPatternDiff:
    """Diff two error pattern lists by ``pattern_hash``. *None* means no errors."""
    prev = list(previous or [])
    curr = list(current or [])
    prev_hashes = {p.pattern_hash for p in prev}
    curr_hashes = {p.pattern_hash for p in curr}

    added = [p for p in curr if p.pattern_hash not in prev_hashes]
    removed = [p for p in prev if p.pattern_hash not in curr_hashes]
    return ErrorPatternDiff(added=added, removed=removed, behavior_changed=bool(added or removed))


class ErrorTrend(CamelModel):
    category: str
    previous_count: int
    current_count: int
    trend: Literal["new", "resolved", "increasing", "decreasing", "stable"]
    significance: Literal["low", "medium", "high"]
    change_percent: int


class ErrorTrendReport(CamelModel):
    trends: list[ErrorTrend] = Field(default_factory=list)
    significant_change: bool = False
    new_categories: list[str] = Field(default_factory=list)
    resolved_categories: list[str] = Field(default_factory=list)
    increasing_categories: list[str] = Field(default_factory=list)
    decreasing_categories: list[str] = Field(default_factory=list)
    summary: str = "No error trend changes"


def _tally(patterns: Iterable[ErrorPattern]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for pattern in patterns:
        counts[pattern.category] = counts.get(pattern.category, 0) + pattern.count
    return counts


def analyze_error_trends(
    previous: Iterable[ErrorPattern],
    current: Iterable[ErrorPattern],
) -> ErrorTrendReport:
    """Tally error counts per category and classify how each one moved.

    A category is ``new`` when it was absent before, ``resolved`` when it is
    absent now, ``increasing`` above 1.5x its previous count and
    ``decreasing`` below half of it.
    """
    prev_counts = _tally(previous)
    curr_counts = _tally(current)

    categories = list(prev_counts)
    categories.extend(c for c in curr_counts if c not in prev_counts)

    report = ErrorTrendReport()
    trends: list[ErrorTrend] = []
    for category in categories:
        prev_count = prev_counts.get(category, 0)
        curr_count = curr_counts.get(category, 0)
        change_percent = 0.0

        if prev_count == 0 and curr_count > 0:
            trend, significance, change_percent = "new", "high", 100.0
            report.new_categories.append(category)
        elif curr_count == 0 and prev_count > 0:
            trend, significance, change_percent = "resolved", "medium", -100.0
            report.resolved_categories.append(category)
        elif prev_count > 0:
            change_percent = (curr_count - prev_count) / prev_count * 100
            if curr_count > prev_count * 1.5:
                trend, significance = "increasing", "high"
                report.increasing_categories.append(category)
            elif curr_count < prev_count * 0.5:
                trend, significance = "decreasing", "low"
                report.decreasing_categories.append(category)
            else:
                trend, significance = "stable", "low"
        else:
            trend, significance = "stable", "low"

        if trend == "stable" and curr_count == 0:
            continue
        trends.append(
            ErrorTrend(
                category=category,
                previous_count=prev_count,
                current_count=curr_count,
                trend=trend,
                significance=significance,
                change_percent=round(change_percent),
            )
        )

    report.trends = trends
    report.significant_change = bool(
        report.new_categories
        or report.increasing_categories
        or any(t.significance == "high" for t in trends)
    )

    parts: list[str] = []
    if report.new_categories:
        parts.append(f"New error types: {', '.join(report.new_categories)}")
    if report.resolved_categories:
        parts.append(f"Resolved: {', '.join(report.resolved_categories)}")
    if report.increasing_categories:
        parts.append(f"Increasing: {', '.join(report.increasing_categories)}")
    if report.decreasing_categories:
        parts.append(f"Decreasing: {', '.join(report.decreasing_categories)}")
    if parts:
        report.summary = "; ".join(parts)
    return report


# ---------------------------------------------------------------------------
# Security fingerprint
# ---------------------------------------------------------------------------

RiskLevel = Literal["critical", "high", "medium", "low", "info"]


class SecurityFinding(CamelModel):
    category: str
    risk_level: RiskLevel
    title: str
    description: str = ""
    evidence: str = ""
    remediation: str = ""
    cwe_id: str = ""
    parameter: str = ""
    tool: str

    @property
    def key(self) -> str:
        return f"{self.tool}:{self.category}:{self.parameter}"

    @property
    def is_high_risk(self) -> bool:
        return self.risk_level in ("high", "critical")


class SecurityFingerprint(CamelModel):
    """Result of the deterministic security payload run for one tool."""

    kind: ClassVar[str] = "security_fingerprint"

    tested: bool = True
    categories_tested: list[str] = Field(default_factory=list)
    findings: list[SecurityFinding] = Field(default_factory=list)
    risk_score: float = Field(default=0, ge=0, le=100)
    tested_at: Timestamp | None = None
    findings_hash: str = ""


class SecurityDiff(CamelModel):
    new_findings: list[SecurityFinding] = Field(default_factory=list)
    resolved_findings: list[SecurityFinding] = Field(default_factory=list)
    previous_risk_score: float = 0
    current_risk_score: float = 0
    risk_score_change: float = 0
    degraded: bool = False
    summary: str = "No security testing data available"


def compare_security_fingerprints(
    previous: SecurityFingerprint | None,
    current: SecurityFingerprint | None,
) -> SecurityDiff:
    """Diff two security fingerprints keyed by ``tool:category:parameter``."""
    if previous is None:
        if current is None:
            return SecurityDiff()
        return SecurityDiff(
            new_findings=list(current.findings),
            current_risk_score=current.risk_score,
            risk_score_change=current.risk_score,
            degraded=bool(current.findings),
            summary=(
                f"Initial security scan found {len(current.findings)} finding(s)"
                if current.findings
                else "Initial security scan: no findings"
            ),
        )
    if current is None:
        return SecurityDiff(
            resolved_findings=list(previous.findings),
            previous_risk_score=previous.risk_score,
            risk_score_change=-previous.risk_score,
            summary="Security testing not performed in current run",
        )

    prev_keys = {f.key for f in previous.findings}
    curr_keys = {f.key for f in current.findings}
    new_findings = [f for f in current.findings if f.key not in prev_keys]
    resolved = [f for f in previous.findings if f.key not in curr_keys]
    change = current.risk_score - previous.risk_score

    parts: list[str] = []
    if new_findings:
        parts.append(f"{len(new_findings)} new finding(s)")
    if resolved:
        parts.append(f"{len(resolved)} resolved")
    if change:
        direction = "increased" if change > 0 else "decreased"
        parts.append(f"risk score {direction} by {abs(change):g}")

    return SecurityDiff(
        new_findings=new_findings,
        resolved_findings=resolved,
        previous_risk_score=previous.risk_score,
        current_risk_score=current.risk_score,
        risk_score_change=change,
        degraded=bool(new_findings) or change > 0,
        summary=", ".join(parts) if parts else "No security changes",
    )


# ---------------------------------------------------------------------------
# Performance
# ---------------------------------------------------------------------------


class PerformanceConfidence(CamelModel):
    """How far the latency percentiles of one tool can be trusted."""

    kind: ClassVar[str] = "performance"

    sample_count: int = Field(default=0, ge=0)
    standard_deviation: float = Field(default=0.0, ge=0)
    coefficient_of_variation: float = Field(default=0.0, ge=0)
    confidence_level: Literal["high", "medium", "low"] = "low"
    recommendation: str | None = None


class PerformanceBaseline(CamelModel):
    """Latency percentiles of one tool, as stored on its fingerprint."""

    p50_ms: float | None = None
    p95_ms: float | None = None
    p99_ms: float | None = None
    success_rate: float | None = None
    confidence: PerformanceConfidence | None = None

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence is not None and self.confidence.confidence_level == "low"


LatencyTrend = Literal["improving", "stable", "degrading"]


class PerformanceComparison(CamelModel):
    tool_name: str
    trend: LatencyTrend = "stable"
    p50_regression: float | None = None
    p95_regression: float | None = None
    p99_regression: float | None = None
    has_regression: bool = False
    severity: ChangeSeverity = "none"
    low_confidence: bool = False
    summary: str


class PerformanceReport(CamelModel):
    tool_comparisons: list[PerformanceComparison] = Field(default_factory=list)
    regression_count: int = 0
    improvement_count: int = 0
    stable_count: int = 0
    overall_trend: LatencyTrend = "stable"
    overall_severity: ChangeSeverity = "none"
    summary: str = "No performance data to compare"


def _regression(baseline: float | None, current: float | None) -> float | None:
    if baseline is None or current is None or baseline == 0:
        return None
    return (current - baseline) / baseline


def _trend(regression: float | None) -> LatencyTrend:
    if regression is None:
        return "stable"
    if regression <= _TREND_IMPROVING:
        return "improving"
    if regression >= _TREND_DEGRADING:
        return "degrading"
    return "stable"


def compare_performance(
    tool_name: str,
    previous: PerformanceBaseline | None,
    current: PerformanceBaseline | None,
    threshold: float = DEFAULT_PERFORMANCE_THRESHOLD,
) -> PerformanceComparison:
    """Compare latency percentiles of one tool across two runs.

    Args:
        tool_name: Tool the percentiles belong to.
        previous: Percentiles from the baseline, if any.
        current: Percentiles from the new run, if any.
        threshold: Fractional slowdown on p50 or p95 that counts as a
            regression (``0.10`` is 10% slower).

    Returns:
        A :class:`PerformanceComparison`. Regressions are ``None`` when the
        baseline percentile is missing or zero.
    """
    if previous is None or current is None:
        return PerformanceComparison(
            tool_name=tool_name,
            summary=f'No baseline performance data for "{tool_name}".',
        )

    p50 = _regression(previous.p50_ms, current.p50_ms)
    p95 = _regression(previous.p95_ms, current.p95_ms)
    p99 = _regression(previous.p99_ms, current.p99_ms)
    trend = _trend(p50 if p50 is not None else p95)
    has_regression = (p50 is not None and p50 > threshold) or (p95 is not None and p95 > threshold)

    worst = max(p50 or 0.0, p95 or 0.0)
    severity: ChangeSeverity
    if worst > threshold:
        severity = "breaking"
    elif worst > PERFORMANCE_WARNING_THRESHOLD:
        severity = "warning"
    elif worst > 0:
        severity = "info"
    else:
        severity = "none"

    def pct(value: float | None) -> str:
        return "N/A" if value is None else f"{value * 100:.1f}"

    if p50 is None and p95 is None:
        summary = f'No baseline performance data for "{tool_name}".'
    elif has_regression:
        summary = (
            f'"{tool_name}" performance REGRESSION: p50 {pct(p50)}% slower, '
            f"p95 {pct(p95)}% slower (threshold: {threshold * 100:.0f}%)"
        )
    elif trend == "improving":
        summary = f'"{tool_name}" performance improved: p50 {pct(abs(p50 or 0.0))}% faster'
    elif trend == "degrading":
        summary = f'"{tool_name}" performance slightly degraded: p50 {pct(p50)}% slower (within threshold)'
    else:
        summary = f'"{tool_name}" performance stable: p50 {pct(p50)}% change'

    return PerformanceComparison(
        tool_name=tool_name,
        trend=trend,
        p50_regression=p50,
        p95_regression=p95,
        p99_regression=p99,
        has_regression=has_regression,
        severity=severity,
        low_confidence=previous.is_low_confidence or current.is_low_confidence,
        summary=summary,
    )


def build_performance_report(comparisons: Iterable[PerformanceComparison]) -> PerformanceReport:
    """Roll per-tool comparisons up into one report."""
    items = list(comparisons)
    if not items:
        return PerformanceReport()

    regressions = sum(1 for c in items if c.has_regression)
    improvements = sum(1 for c in items if not c.has_regression and c.trend == "improving")
    stable = len(items) - regressions - improvements

    overall_trend: LatencyTrend = "stable"
    if regressions > improvements:
        overall_trend = "degrading"
    elif improvements > regressions:
        overall_trend = "improving"

    if regressions:
        summary = f"{regressions} tool(s) regressed beyond threshold"
    elif improvements:
        summary = f"{improvements} tool(s) improved, no regressions"
    else:
        summary = "Performance stable across all tools"

    return PerformanceReport(
        tool_comparisons=items,
        regression_count=regressions,
        improvement_count=improvements,
        stable_count=stable,
        overall_trend=overall_trend,
        overall_severity=max((c.severity for c in items), key=SEVERITY_ORDER.index),
        summary=summary,
    )


# ---------------------------------------------------------------------------
# Response schema evolution
# ---------------------------------------------------------------------------


class InferredSchema(CamelModel):
    """A response schema inferred from samples."""

    type: str
    properties: dict[str, InferredSchema] | None = None
    items: InferredSchema | None = None
    required: list[str] | None = None
    nullable: bool | None = None
    enum: list[Any] | None = None


class SchemaVersion(CamelModel):
    hash: str
    snapshot: InferredSchema = Field(..., alias="schema")
    observed_at: Timestamp
    sample_count: int = Field(default=0, ge=0)


class ResponseSchemaEvolution(CamelModel):
    """History of a tool's inferred response schema, most recent first."""

    kind: ClassVar[str] = "schema_evolution"

    current_hash: str
    history: list[SchemaVersion] = Field(default_factory=list)
    is_stable: bool = True
    stability_confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    inconsistent_fields: list[str] = Field(default_factory=list)
    sample_count: int = Field(default=0, ge=0)


class SchemaTypeChange(CamelModel):
    field: str
    previous_type: str
    current_type: str
    backward_compatible: bool


class SchemaEvolutionDiff(CamelModel):
    structure_changed: bool = False
    fields_added: list[str] = Field(default_factory=list)
    fields_removed: list[str] = Field(default_factory=list)
    type_changes: list[SchemaTypeChange] = Field(default_factory=list)
    new_required: list[str] = Field(default_factory=list)
    new_optional: list[str] = Field(default_factory=list)
    backward_compatible: bool = True
    is_breaking: bool = False
    summary: str = "No schema changes"


class SchemaEvolutionReport(CamelModel):
    diffs: dict[str, SchemaEvolutionDiff] = Field(default_factory=dict)
    tools_with_changes: list[str] = Field(default_factory=list)
    breaking_tools: list[str] = Field(default_factory=list)
    has_breaking_changes: bool = False
    summary: str = "No response schema changes"


_WIDENING = {
    "integer": {"number"},
    "null": {"string", "number", "integer", "boolean", "object", "array"},
}


def _is_widening(previous_type: str, current_type: str) -> bool:
    if current_type in _WIDENING.get(previous_type, set()):
        return True
    return previous_type != "null" and current_type == "mixed"


def compare_inferred_schemas(
    previous: InferredSchema | None,
    current: InferredSchema | None,
) -> SchemaEvolutionDiff:
    """Diff two inferred response schemas at the top level."""
    if previous is None:
        if current is None:
            return SchemaEvolutionDiff()
        fields = list(current.properties or {})
        return SchemaEvolutionDiff(
            structure_changed=bool(fields),
            fields_added=fields,
            new_required=list(current.required or []),
            summary=f"Schema established with {len(fields)} field(s)" if fields else "Empty schema established",
        )
    if current is None:
        fields = list(previous.properties or {})
        return SchemaEvolutionDiff(
            structure_changed=bool(fields),
            fields_removed=fields,
            backward_compatible=False,
            is_breaking=True,
            summary=f"Schema removed ({len(fields)} field(s) lost)" if fields else "Schema removed",
        )

    prev_props = previous.properties or {}
    curr_props = current.properties or {}
    added = [f for f in curr_props if f not in prev_props]
    removed = [f for f in prev_props if f not in curr_props]

    type_changes = [
        SchemaTypeChange(
            field=name,
            previous_type=prev_props[name].type,
            current_type=curr_props[name].type,
            backward_compatible=_is_widening(prev_props[name].type, curr_props[name].type),
        )
        for name in prev_props
        if name in curr_props and prev_props[name].type != curr_props[name].type
    ]

    prev_required = previous.required or []
    curr_required = current.required or []
    new_required = [f for f in curr_required if f not in prev_required and f in prev_props]
    new_optional = [f for f in prev_required if f not in curr_required and f in curr_props]

    is_breaking = bool(removed) or any(not tc.backward_compatible for tc in type_changes) or bool(new_required)

    parts: list[str] = []
    if removed:
        parts.append(f"{len(removed)} field(s) removed")
    if added:
        parts.append(f"{len(added)} field(s) added")
    if type_changes:
        parts.append(f"{len(type_changes)} type change(s)")
    if new_required:
        parts.append(f"{len(new_required)} field(s) now required")
    if new_optional:
        parts.append(f"{len(new_optional)} field(s) now optional")

    return SchemaEvolutionDiff(
        structure_changed=bool(added or removed or type_changes or new_required or new_optional),
        fields_added=added,
        fields_removed=removed,
        type_changes=type_changes,
        new_required=new_required,
        new_optional=new_optional,
        backward_compatible=not is_breaking,
        is_breaking=is_breaking,
        summary=", ".join(parts) if parts else "No schema changes",
    )


def compare_schema_evolution(
    previous: ResponseSchemaEvolution | None,
    current: ResponseSchemaEvolution | None,
) -> SchemaEvolutionDiff:
    """Diff two schema evolution records via their most recent schemas."""
    if previous is None:
        if current is None:
            return SchemaEvolutionDiff()
        return SchemaEvolutionDiff(
            structure_changed=bool(current.inconsistent_fields) or current.current_hash != "empty",
            summary=(
                "Schema tracking established (stable)"
                if current.is_stable
                else f"Schema tracking established ({len(current.inconsistent_fields)} inconsistent field(s))"
            ),
        )
    if current is None:
        return SchemaEvolutionDiff(
            structure_changed=True,
            backward_compatible=False,
            is_breaking=True,
            summary="Schema evolution data removed",
        )

    if previous.history and current.history:
        return compare_inferred_schemas(previous.history[0].snapshot, current.history[0].snapshot)
    if previous.current_hash != current.current_hash:
        return SchemaEvolutionDiff(structure_changed=True, summary="Schema hash changed")
    if previous.is_stable != current.is_stable:
        return SchemaEvolutionDiff(
            summary="Schema stabilized" if current.is_stable else "Schema became unstable"
        )
    return SchemaEvolutionDiff()


def build_schema_evolution_report(diffs: dict[str, SchemaEvolutionDiff]) -> SchemaEvolutionReport:
    changed = [tool for tool, diff in diffs.items() if diff.structure_changed]
    breaking = [tool for tool, diff in diffs.items() if diff.is_breaking]
    if breaking:
        summary = f"{len(breaking)} tool(s) with breaking response schema changes"
    elif changed:
        summary = f"{len(changed)} tool(s) with response schema changes"
    else:
        summary = "No response schema changes"
    return SchemaEvolutionReport(
        diffs=dict(diffs),
        tools_with_changes=changed,
        breaking_tools=breaking,
        has_breaking_changes=bool(breaking),
        summary=summary,
    )


# ---------------------------------------------------------------------------
# Deprecation
# ---------------------------------------------------------------------------


class DeprecationInfo(CamelModel):
    """Deprecation lifecycle of a tool."""

    kind: ClassVar[str] = "deprecation"

    deprecated: bool = False
    deprecated_at: Timestamp | None = None
    deprecation_notice: str | None = None
    removal_date: Timestamp | None = None
    replacement_tool: str | None = None


class DeprecationChange(CamelModel):
    status: Literal["deprecated", "undeprecated"]
    notice: str | None = None
    replacement_tool: str | None = None
    removal_date: Timestamp | None = None


def compare_deprecation(
    previous: DeprecationInfo | None,
    current: DeprecationInfo | None,
) -> DeprecationChange | None:
    """Return the lifecycle transition between two runs, if there was one."""
    was = previous is not None and previous.deprecated
    now = current is not None and current.deprecated
    if was == now:
        return None
    if current is not None and now:
        return DeprecationChange(
            status="deprecated",
            notice=current.deprecation_notice,
            replacement_tool=current.replacement_tool,
            removal_date=current.removal_date,
        )
    return DeprecationChange(status="undeprecated")


# ---------------------------------------------------------------------------
# Documentation score
# ---------------------------------------------------------------------------


class DocumentationScoreSummary(CamelModel):
    kind: ClassVar[str] = "documentation_score"

    overall_score: float = Field(..., ge=0, le=100)
    grade: str
    issue_count: int = Field(default=0, ge=0)
    tool_count: int = Field(default=0, ge=0)


class DocumentationScoreChange(CamelModel):
    previous_score: float
    current_score: float
    change: float
    previous_grade: str
    current_grade: str
    improved: bool
    degraded: bool
    issues_fixed: int
    new_issues: int
    summary: str


def compare_documentation_scores(
    previous: DocumentationScoreSummary,
    current: DocumentationScoreSummary,
) -> DocumentationScoreChange:
    change = current.overall_score - previous.overall_score
    if change == 0:
        summary = f"Documentation score unchanged at {current.overall_score:g} ({current.grade})"
    elif change > 0:
        summary = (
            f"Documentation improved: {previous.overall_score:g} -> {current.overall_score:g} "
            f"(+{change:g}) | Grade: {previous.grade} -> {current.grade}"
        )
    else:
        summary = (
            f"Documentation degraded: {previous.overall_score:g} -> {current.overall_score:g} "
            f"({change:g}) | Grade: {previous.grade} -> {current.grade}"
        )
    return DocumentationScoreChange(
        previous_score=previous.overall_score,
        current_score=current.overall_score,
        change=change,
        previous_grade=previous.grade,
        current_grade=current.grade,
        improved=change > 0,
        degraded=change < 0,
        issues_fixed=max(0, previous.issue_count - current.issue_count),
        new_issues=max(0, current.issue_count - previous.issue_count),
        summary=summary,
    )

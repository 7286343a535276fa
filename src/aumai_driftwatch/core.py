"""Core logic for aumai-driftwatch: building baselines and detecting drift."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import Field

from aumai_driftwatch.base import BehaviorAspect, CamelModel, ChangeSeverity, Timestamp
from aumai_driftwatch.evidence import (
    DeprecationInfo,
    DocumentationScoreSummary,
    ErrorPattern,
    InferredSchema,
    PerformanceBaseline,
    PerformanceComparison,
    ResponseFingerprint,
    ResponseSchemaEvolution,
    SchemaEvolutionDiff,
    SecurityFingerprint,
    analyze_error_trends,
    build_performance_report,
    build_schema_evolution_report,
    compare_deprecation,
    compare_documentation_scores,
    compare_error_patterns,
    compare_performance,
    compare_response_fingerprints,
    compare_schema_evolution,
    compare_security_fingerprints,
)
from aumai_driftwatch.hashing import canonical_json
from aumai_driftwatch.models import (
    BaselineMetadata,
    BehavioralAssertion,
    BehavioralBaseline,
    BehavioralDiff,
    BehaviorChange,
    Capabilities,
    CompareOptions,
    ServerFingerprint,
    ToolCapability,
    ToolDiff,
    ToolFingerprint,
)
from aumai_driftwatch.schema import compare_schemas, compute_consensus_schema_hash, compute_schema_hash
from aumai_driftwatch.severity import count_by_severity, max_severity, summarize_changes
from aumai_driftwatch.store import recalculate_integrity_hash
from aumai_driftwatch.versioning import BASELINE_FORMAT_VERSION, check_version_compatibility

__all__ = [
    "BaselineBuilder",
    "DriftDetector",
    "InteractionRecord",
    "InterviewResult",
    "InterviewToolResult",
    "compare_baselines",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Interview input
# ---------------------------------------------------------------------------


class InteractionRecord(CamelModel):
    """One observed call of a tool during an interview."""

    args: dict[str, Any] = Field(default_factory=dict)
    duration_ms: float = Field(default=0.0, ge=0)
    error: str | None = None
    response: Any = None


class InterviewToolResult(CamelModel):
    """Everything the interview layer learned about one tool."""

    tool: ToolCapability
    interactions: list[InteractionRecord] = Field(default_factory=list)
    assertions: list[BehavioralAssertion] = Field(default_factory=list)
    security_notes: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)
    behavioral_notes: list[str] = Field(default_factory=list)
    response_fingerprint: ResponseFingerprint | None = None
    inferred_output_schema: InferredSchema | None = None
    error_patterns: list[ErrorPattern] | None = None
    performance: PerformanceBaseline | None = None
    security_fingerprint: SecurityFingerprint | None = None
    response_schema_evolution: ResponseSchemaEvolution | None = None
    deprecation: DeprecationInfo | None = None


class InterviewResult(CamelModel):
    """A completed interview run handed over by the exploration layer."""

    server: ServerFingerprint = Field(default_factory=ServerFingerprint)
    capabilities: Capabilities | None = None
    tool_results: list[InterviewToolResult] = Field(default_factory=list)
    assertions: list[BehavioralAssertion] = Field(default_factory=list)
    summary: str = ""
    mode: Literal["check", "explore"] = "check"
    duration_ms: int = Field(default=0, ge=0)
    personas: list[str] = Field(default_factory=list)
    model: str = "none"
    generated_at: Timestamp | None = None
    documentation_score: DocumentationScoreSummary | None = None


# ---------------------------------------------------------------------------
# Baseline construction
# ---------------------------------------------------------------------------


class BaselineBuilder:
    """Turn interview results into sealed baselines."""

    def __init__(self, tool_version: str = "unknown") -> None:
        self.tool_version = tool_version

    def fingerprint_tool(
        self, tool_result: InterviewToolResult, tested_at: datetime | None = None
    ) -> ToolFingerprint:
        """Create a :class:`ToolFingerprint` for one interviewed tool.

        The schema hash is the consensus over observed argument shapes. When
        the tool was never called, the declared input schema hash is used.

        Args:
            tool_result: What the interview layer recorded for the tool.
            tested_at: When the tool was exercised.

        Returns:
            The fingerprint, with evidence copied only where it was supplied.
        """
        tool = tool_result.tool
        samples = [record.args for record in tool_result.interactions]
        consistency: float | None = None
        variations: int | None = None
        if samples:
            consensus = compute_consensus_schema_hash(samples)
            schema_hash = consensus.hash
            consistency = consensus.consistency
            variations = consensus.variations
        else:
            schema_hash = compute_schema_hash(tool.input_schema)

        performance = tool_result.performance
        return ToolFingerprint(
            name=tool.name,
            description=tool.description,
            schema_hash=schema_hash,
            input_schema=tool.input_schema,
            output_schema=tool.output_schema,
            observed_args_schema_consistency=consistency,
            observed_args_schema_variations=variations,
            assertions=list(tool_result.assertions),
            security_notes=list(tool_result.security_notes),
            limitations=list(tool_result.limitations),
            behavioral_notes=list(tool_result.behavioral_notes),
            response_fingerprint=tool_result.response_fingerprint,
            inferred_output_schema=tool_result.inferred_output_schema,
            error_patterns=tool_result.error_patterns,
            baseline_p50_ms=performance.p50_ms if performance else None,
            baseline_p95_ms=performance.p95_ms if performance else None,
            baseline_p99_ms=performance.p99_ms if performance else None,
            baseline_success_rate=performance.success_rate if performance else None,
            performance_confidence=performance.confidence if performance else None,
            security_fingerprint=tool_result.security_fingerprint,
            response_schema_evolution=tool_result.response_schema_evolution,
            deprecation=tool_result.deprecation,
            last_tested_at=tested_at if tool_result.interactions else None,
        )

    def build(self, result: InterviewResult, server_command: str) -> BehavioralBaseline:
        """Create a sealed :class:`BehavioralBaseline` from an interview run.

        Args:
            result: The completed interview.
            server_command: Command line used to start the server.

        Returns:
            A baseline at the current format version with its hash set.
        """
        generated_at = result.generated_at or datetime.now(tz=timezone.utc)
        profiles = [self.fingerprint_tool(tr, generated_at) for tr in result.tool_results]
        capabilities = result.capabilities or Capabilities(
            tools=[tr.tool for tr in result.tool_results]
        )

        baseline = BehavioralBaseline(
            version=BASELINE_FORMAT_VERSION,
            metadata=BaselineMetadata(
                mode=result.mode,
                generated_at=generated_at,
                server_command=server_command,
                cli_version=self.tool_version,
                duration_ms=result.duration_ms,
                personas=list(result.personas),
                model=result.model,
                server_name=result.server.name,
            ),
            server=result.server,
            capabilities=capabilities,
            tool_profiles=profiles,
            assertions=list(result.assertions),
            summary=result.summary,
            documentation_score=result.documentation_score,
        )
        logger.debug("Built baseline with %d tool profiles", len(profiles))
        return recalculate_integrity_hash(baseline)


# ---------------------------------------------------------------------------
# Drift detection
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return canonical_json(value)


def _assertion_key(assertion: BehavioralAssertion) -> tuple[str, str, str]:
    return (assertion.tool, assertion.aspect, assertion.assertion)


def _assertion_severity(assertion: BehavioralAssertion) -> ChangeSeverity:
    if assertion.aspect == "security":
        return "warning"
    if assertion.aspect == "error_handling" and not assertion.is_positive:
        return "warning"
    return "info"


class DriftDetector:
    """Compare two baselines tool by tool and aspect by aspect.

    Example::

        detector = DriftDetector(CompareOptions(ignore_description_changes=True))
        diff = detector.compare(previous, current)
    """

    def __init__(self, options: CompareOptions | None = None) -> None:
        self.options = options or CompareOptions()
        self._ignored: dict[str, bool] = {
            "schema": self.options.ignore_schema_changes,
            "description": self.options.ignore_description_changes,
            "response_structure": self.options.ignore_response_structure_changes,
            "error_pattern": self.options.ignore_error_pattern_changes,
            "security": self.options.ignore_security_changes,
            "performance": self.options.ignore_performance_changes,
            "schema_evolution": self.options.ignore_schema_evolution_changes,
        }

    def compare(self, previous: BehavioralBaseline, current: BehavioralBaseline) -> BehavioralDiff:
        """Produce the severity-classified diff from *previous* to *current*.

        Missing evidence on either side is treated as "no data" for that
        aspect and never raises.

        Args:
            previous: The reference baseline.
            current: The baseline under test.

        Returns:
            A :class:`BehavioralDiff` with every change, counts, the aggregate
            severity, a summary and the evidence sub-reports.
        """
        compatibility = check_version_compatibility(previous.version, current.version)
        if not compatibility.compatible and not self.options.ignore_version_mismatch:
            logger.warning("Comparing baselines with incompatible formats: %s", compatibility.warning)

        prev_tools = {p.name: p for p in previous.tool_profiles if self._selected(p.name)}
        curr_tools = {p.name: p for p in current.tool_profiles if self._selected(p.name)}

        changes: list[BehaviorChange] = []
        tools_removed = [name for name in prev_tools if name not in curr_tools]
        tools_added = [name for name in curr_tools if name not in prev_tools]

        for name in tools_removed:
            changes.append(
                BehaviorChange(
                    tool=name,
                    aspect="tool",
                    before=name,
                    after="",
                    severity="breaking",
                    description=f'Tool "{name}" was removed',
                )
            )
        for name in tools_added:
            changes.append(
                BehaviorChange(
                    tool=name,
                    aspect="tool",
                    before="",
                    after=name,
                    severity="info",
                    description=f'Tool "{name}" was added',
                )
            )

        tools_modified: list[ToolDiff] = []
        common = [name for name in prev_tools if name in curr_tools]
        for name in common:
            tool_diff = self._compare_tool(
                prev_tools[name],
                curr_tools[name],
                [a for a in previous.assertions if a.tool == name],
                [a for a in current.assertions if a.tool == name],
            )
            if tool_diff.changes:
                tools_modified.append(tool_diff)
                changes.extend(tool_diff.changes)

        counts = count_by_severity(changes)
        diff = BehavioralDiff(
            tools_added=tools_added,
            tools_removed=tools_removed,
            tools_modified=tools_modified,
            behavior_changes=changes,
            severity=max_severity(c.severity for c in changes),
            breaking_count=counts["breaking"],
            warning_count=counts["warning"],
            info_count=counts["info"],
            summary=summarize_changes(tools_added, tools_removed, tools_modified, changes),
            version_compatibility=compatibility,
            **self._sub_reports(previous, current, [(prev_tools[n], curr_tools[n]) for n in common]),
        )
        logger.debug(
            "Compared %d/%d tools: severity=%s, %d change(s)",
            len(prev_tools),
            len(curr_tools),
            diff.severity,
            len(changes),
        )
        return diff

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _selected(self, name: str) -> bool:
        return not self.options.tools or name in self.options.tools

    def _compare_tool(
        self,
        prev: ToolFingerprint,
        curr: ToolFingerprint,
        prev_extra_assertions: list[BehavioralAssertion],
        curr_extra_assertions: list[BehavioralAssertion],
    ) -> ToolDiff:
        tool_diff = ToolDiff(tool=prev.name)
        found: list[BehaviorChange] = []

        def add(
            aspect: BehaviorAspect, severity: ChangeSeverity, description: str, before: Any = None, after: Any = None
        ) -> None:
            found.append(
                BehaviorChange(
                    tool=prev.name,
                    aspect=aspect,
                    before=_text(before),
                    after=_text(after),
                    severity=severity,
                    description=description,
                )
            )

        # Schema
        prev_declared = compute_schema_hash(prev.input_schema) if prev.input_schema is not None else None
        curr_declared = compute_schema_hash(curr.input_schema) if curr.input_schema is not None else None
        if prev.schema_hash != curr.schema_hash or prev_declared != curr_declared:
            tool_diff.schema_changed = True
            if prev.input_schema is not None and curr.input_schema is not None:
                comparison = compare_schemas(prev.input_schema, curr.input_schema)
                for change in comparison.changes:
                    add(
                        "schema",
                        "breaking" if change.breaking else "info",
                        f"{change.path}: {change.description}",
                        change.before,
                        change.after,
                    )
                if not comparison.changes and prev_declared == curr_declared:
                    add(
                        "schema",
                        "info",
                        "Observed argument shape changed; declared schema is unchanged",
                        prev.schema_hash,
                        curr.schema_hash,
                    )
                elif not comparison.changes:
                    add(
                        "schema",
                        "breaking",
                        f"Declared schema structure changed from {prev_declared} to {curr_declared}",
                        prev_declared,
                        curr_declared,
                    )
            else:
                add(
                    "schema",
                    "breaking",
                    f"Schema hash changed from {prev.schema_hash} to {curr.schema_hash}",
                    prev.schema_hash,
                    curr.schema_hash,
                )

        # Description
        if prev.description != curr.description:
            tool_diff.description_changed = True
            add("description", "info", "Tool description changed", prev.description, curr.description)

        # Response structure
        fingerprint_diff = compare_response_fingerprints(prev.response_fingerprint, curr.response_fingerprint)
        for fp_change in fingerprint_diff.changes:
            add("response_structure", "warning", fp_change.description, fp_change.before, fp_change.after)

        # Error patterns
        error_diff = compare_error_patterns(prev.error_patterns, curr.error_patterns)
        for pattern in error_diff.added:
            add(
                "error_pattern",
                "warning",
                f"New error pattern ({pattern.category}): {pattern.example}",
                None,
                pattern.pattern_hash,
            )
        for pattern in error_diff.removed:
            add(
                "error_pattern",
                "info",
                f"Error pattern resolved ({pattern.category}): {pattern.example}",
                pattern.pattern_hash,
                None,
            )

        # Security
        security_diff = compare_security_fingerprints(prev.security_fingerprint, curr.security_fingerprint)
        for finding in security_diff.new_findings:
            add(
                "security",
                "breaking" if finding.is_high_risk else "warning",
                f"New {finding.risk_level} security finding: {finding.title}",
                None,
                finding.key,
            )
        for finding in security_diff.resolved_findings:
            add("security", "info", f"Security finding resolved: {finding.title}", finding.key, None)
        for note in curr.security_notes:
            if note not in prev.security_notes:
                add("security", "warning", f"New security note: {note}", None, note)
        for note in prev.security_notes:
            if note not in curr.security_notes:
                add("security", "info", f"Security note removed: {note}", note, None)

        # Performance
        prev_perf = prev.performance_baseline()
        curr_perf = curr.performance_baseline()
        if prev_perf is not None and curr_perf is not None:
            comparison_perf = compare_performance(
                prev.name, prev_perf, curr_perf, self.options.performance_threshold
            )
            if comparison_perf.has_regression:
                description = comparison_perf.summary
                if comparison_perf.low_confidence:
                    description += " (low confidence: collect more samples before acting)"
                add("performance", "warning", description, prev_perf.p50_ms, curr_perf.p50_ms)

        # Response schema evolution
        prev_evolution = prev.response_schema_evolution
        curr_evolution = curr.response_schema_evolution
        if prev_evolution is not None or curr_evolution is not None:
            evolution = compare_schema_evolution(prev_evolution, curr_evolution)
            one_sided = prev_evolution is None or curr_evolution is None
            if evolution.structure_changed or one_sided:
                add(
                    "schema_evolution",
                    "warning" if evolution.is_breaking or one_sided else "info",
                    f"Response schema changed: {evolution.summary}",
                    prev_evolution.current_hash if prev_evolution is not None else None,
                    curr_evolution.current_hash if curr_evolution is not None else None,
                )

        # Deprecation
        deprecation = compare_deprecation(prev.deprecation, curr.deprecation)
        if deprecation is not None:
            if deprecation.status == "deprecated":
                description = "Tool is now deprecated"
                if deprecation.replacement_tool:
                    description += f'; use "{deprecation.replacement_tool}" instead'
                add("deprecation", "warning", description, "active", "deprecated")
            else:
                add("deprecation", "info", "Tool is no longer deprecated", "deprecated", "active")

        # Limitations
        for limitation in curr.limitations:
            if limitation not in prev.limitations:
                add("error_handling", "warning", f"New limitation: {limitation}", None, limitation)
        for limitation in prev.limitations:
            if limitation not in curr.limitations:
                add("error_handling", "info", f"Limitation resolved: {limitation}", limitation, None)

        # Assertions
        prev_assertions = self._index_assertions(prev.assertions, prev_extra_assertions)
        curr_assertions = self._index_assertions(curr.assertions, curr_extra_assertions)
        for key, assertion in curr_assertions.items():
            if key not in prev_assertions:
                add(
                    assertion.aspect,
                    _assertion_severity(assertion),
                    f"New assertion: {assertion.assertion}",
                    None,
                    assertion.assertion,
                )
        for key, assertion in prev_assertions.items():
            if key not in curr_assertions:
                add(
                    assertion.aspect,
                    _assertion_severity(assertion),
                    f"Assertion no longer observed: {assertion.assertion}",
                    assertion.assertion,
                    None,
                )

        tool_diff.changes = [c for c in found if not self._ignored.get(c.aspect, False)]
        return tool_diff

    @staticmethod
    def _index_assertions(
        *groups: Iterable[BehavioralAssertion],
    ) -> dict[tuple[str, str, str], BehavioralAssertion]:
        indexed: dict[tuple[str, str, str], BehavioralAssertion] = {}
        for group in groups:
            for assertion in group:
                indexed.setdefault(_assertion_key(assertion), assertion)
        return indexed

    def _sub_reports(
        self,
        previous: BehavioralBaseline,
        current: BehavioralBaseline,
        pairs: list[tuple[ToolFingerprint, ToolFingerprint]],
    ) -> dict[str, Any]:
        """Run every evidence comparison over the tools present on both sides."""
        performance: list[PerformanceComparison] = []
        evolution: dict[str, SchemaEvolutionDiff] = {}
        prev_findings: list[SecurityFingerprint] = []
        curr_findings: list[SecurityFingerprint] = []
        prev_errors: list[ErrorPattern] = []
        curr_errors: list[ErrorPattern] = []

        for prev, curr in pairs:
            prev_perf = prev.performance_baseline()
            curr_perf = curr.performance_baseline()
            if prev_perf is not None and curr_perf is not None:
                performance.append(
                    compare_performance(prev.name, prev_perf, curr_perf, self.options.performance_threshold)
                )
            if prev.response_schema_evolution is not None or curr.response_schema_evolution is not None:
                evolution[prev.name] = compare_schema_evolution(
                    prev.response_schema_evolution, curr.response_schema_evolution
                )
            if prev.security_fingerprint is not None:
                prev_findings.append(prev.security_fingerprint)
            if curr.security_fingerprint is not None:
                curr_findings.append(curr.security_fingerprint)
            prev_errors.extend(prev.error_patterns or [])
            curr_errors.extend(curr.error_patterns or [])

        reports: dict[str, Any] = {
            "performance_report": build_performance_report(performance),
            "schema_evolution_report": build_schema_evolution_report(evolution),
            "security_report": compare_security_fingerprints(
                _merge_security(prev_findings), _merge_security(curr_findings)
            ),
            "error_trend_report": analyze_error_trends(prev_errors, curr_errors),
        }
        if previous.documentation_score is not None and current.documentation_score is not None:
            reports["documentation_score_change"] = compare_documentation_scores(
                previous.documentation_score, current.documentation_score
            )
        return reports


def _merge_security(fingerprints: list[SecurityFingerprint]) -> SecurityFingerprint | None:
    """Fold per-tool security fingerprints into one server-wide fingerprint."""
    if not fingerprints:
        return None
    categories: list[str] = []
    for fingerprint in fingerprints:
        categories.extend(c for c in fingerprint.categories_tested if c not in categories)
    return SecurityFingerprint(
        tested=any(f.tested for f in fingerprints),
        categories_tested=categories,
        findings=[finding for f in fingerprints for finding in f.findings],
        risk_score=max(f.risk_score for f in fingerprints),
    )


def compare_baselines(
    previous: BehavioralBaseline,
    current: BehavioralBaseline,
    options: CompareOptions | None = None,
) -> BehavioralDiff:
    """Shortcut for ``DriftDetector(options).compare(previous, current)``."""
    return DriftDetector(options).compare(previous, current)

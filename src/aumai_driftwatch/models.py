"""Pydantic models for aumai-driftwatch baselines and drift diffs."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import ConfigDict, Field, field_validator, model_validator

from aumai_driftwatch.base import BehaviorAspect, CamelModel, ChangeSeverity, Timestamp
from aumai_driftwatch.evidence import (
    DEFAULT_PERFORMANCE_THRESHOLD,
    DeprecationInfo,
    DocumentationScoreChange,
    DocumentationScoreSummary,
    ErrorPattern,
    ErrorTrendReport,
    InferredSchema,
    PerformanceBaseline,
    PerformanceConfidence,
    PerformanceReport,
    ResponseFingerprint,
    ResponseSchemaEvolution,
    SchemaEvolutionReport,
    SecurityDiff,
    SecurityFingerprint,
)
from aumai_driftwatch.versioning import VersionCompatibility, format_version

__all__ = [
    "AcceptedDiff",
    "BehaviorAspect",
    "BehaviorChange",
    "BehavioralAssertion",
    "BehavioralBaseline",
    "BehavioralDiff",
    "BaselineMetadata",
    "Capabilities",
    "ChangeSeverity",
    "CompareOptions",
    "DocumentationScoreSummary",
    "DriftAcceptance",
    "ServerFingerprint",
    "SeverityConfig",
    "ToolCapability",
    "ToolDiff",
    "ToolFingerprint",
    "VersionCompatibility",
]


# ---------------------------------------------------------------------------
# Baseline
# ---------------------------------------------------------------------------


class BehavioralAssertion(CamelModel):
    """A claim about how a tool behaves, with its polarity."""

    tool: str
    aspect: BehaviorAspect
    assertion: str
    evidence: str | None = None
    is_positive: bool = True


class ToolFingerprint(CamelModel):
    """Captured contract and observed behaviour of a single tool."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Unique tool name within a baseline")
    description: str = Field(default="", description="Tool description as advertised by the server")
    schema_hash: str = Field(..., description="Consensus hash of the observed input schema")
    input_schema: dict[str, Any] | None = None
    output_schema: dict[str, Any] | None = None
    observed_args_schema_consistency: float | None = Field(default=None, ge=0.0, le=1.0)
    observed_args_schema_variations: int | None = Field(default=None, ge=0)
    assertions: list[BehavioralAssertion] = Field(default_factory=list)
    security_notes: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)
    behavioral_notes: list[str] = Field(default_factory=list)

    # Evidence supplied by external collaborators.
    response_fingerprint: ResponseFingerprint | None = None
    inferred_output_schema: InferredSchema | None = None
    error_patterns: list[ErrorPattern] | None = None
    baseline_p50_ms: float | None = Field(default=None, ge=0)
    baseline_p95_ms: float | None = Field(default=None, ge=0)
    baseline_p99_ms: float | None = Field(default=None, ge=0)
    baseline_success_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    performance_confidence: PerformanceConfidence | None = None
    security_fingerprint: SecurityFingerprint | None = None
    response_schema_evolution: ResponseSchemaEvolution | None = None
    deprecation: DeprecationInfo | None = None
    last_tested_at: Timestamp | None = None

    def performance_baseline(self) -> PerformanceBaseline | None:
        """Return the latency percentiles as one value, or *None* if unmeasured."""
        if self.baseline_p50_ms is None and self.baseline_p95_ms is None:
            return None
        return PerformanceBaseline(
            p50_ms=self.baseline_p50_ms,
            p95_ms=self.baseline_p95_ms,
            p99_ms=self.baseline_p99_ms,
            success_rate=self.baseline_success_rate,
            confidence=self.performance_confidence,
        )


class ToolCapability(CamelModel):
    """A tool as discovered from the server, before any testing."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict)
    output_schema: dict[str, Any] | None = None


class Capabilities(CamelModel):
    tools: list[ToolCapability] = Field(default_factory=list)
    resources: list[dict[str, Any]] | None = None
    prompts: list[dict[str, Any]] | None = None


class BaselineMetadata(CamelModel):
    mode: Literal["check", "explore"] = "check"
    generated_at: Timestamp
    server_command: str = ""
    cli_version: str = "unknown"
    duration_ms: int = Field(default=0, ge=0)
    personas: list[str] = Field(default_factory=list)
    model: str = "none"
    server_name: str | None = None


class ServerFingerprint(CamelModel):
    name: str = "unknown"
    version: str = "unknown"
    protocol_version: str = "unknown"
    capabilities: list[str] = Field(default_factory=list)


class AcceptedDiff(CamelModel):
    """Snapshot of the drift that was accepted."""

    tools_added: list[str] = Field(default_factory=list)
    tools_removed: list[str] = Field(default_factory=list)
    tools_modified: list[str] = Field(default_factory=list)
    severity: ChangeSeverity
    breaking_count: int = Field(default=0, ge=0)
    warning_count: int = Field(default=0, ge=0)
    info_count: int = Field(default=0, ge=0)


class DriftAcceptance(CamelModel):
    """Audit record of an intentionally accepted drift."""

    accepted_at: Timestamp
    accepted_by: str | None = None
    reason: str | None = None
    accepted_diff: AcceptedDiff


class BehavioralBaseline(CamelModel):
    """The aggregate root persisted to a baseline file.

    Instances are immutable; use :meth:`model_copy` and re-seal the hash via
    :func:`aumai_driftwatch.store.recalculate_integrity_hash` to change one.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str
    metadata: BaselineMetadata
    server: ServerFingerprint = Field(default_factory=ServerFingerprint)
    capabilities: Capabilities = Field(default_factory=Capabilities)
    tool_profiles: list[ToolFingerprint] = Field(default_factory=list)
    assertions: list[BehavioralAssertion] = Field(default_factory=list)
    summary: str = ""
    hash: str = ""
    acceptance: DriftAcceptance | None = None
    documentation_score: DocumentationScoreSummary | None = None

    @field_validator("version", mode="before")
    @classmethod
    def _normalize_version(cls, value: Any) -> str:
        # Legacy baselines stored a bare integer.
        return format_version(value)

    @model_validator(mode="after")
    def _unique_tool_names(self) -> BehavioralBaseline:
        seen: set[str] = set()
        duplicates: list[str] = []
        for profile in self.tool_profiles:
            if profile.name in seen and profile.name not in duplicates:
                duplicates.append(profile.name)
            seen.add(profile.name)
        if duplicates:
            raise ValueError(f"Duplicate tool names in toolProfiles: {', '.join(duplicates)}")
        return self

    def tool(self, name: str) -> ToolFingerprint | None:
        for profile in self.tool_profiles:
            if profile.name == name:
                return profile
        return None

    @property
    def tool_names(self) -> list[str]:
        return [profile.name for profile in self.tool_profiles]


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


class BehaviorChange(CamelModel):
    """One detected change, tagged with the aspect it concerns."""

    tool: str
    aspect: BehaviorAspect
    before: str = ""
    after: str = ""
    severity: ChangeSeverity
    description: str


class ToolDiff(CamelModel):
    tool: str
    changes: list[BehaviorChange] = Field(default_factory=list)
    schema_changed: bool = False
    description_changed: bool = False


class BehavioralDiff(CamelModel):
    """Severity-classified difference between two baselines."""

    tools_added: list[str] = Field(default_factory=list)
    tools_removed: list[str] = Field(default_factory=list)
    tools_modified: list[ToolDiff] = Field(default_factory=list)
    behavior_changes: list[BehaviorChange] = Field(default_factory=list)
    severity: ChangeSeverity = "none"
    breaking_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    summary: str = "No behavioral changes detected."
    version_compatibility: VersionCompatibility | None = None
    performance_report: PerformanceReport | None = None
    security_report: SecurityDiff | None = None
    schema_evolution_report: SchemaEvolutionReport | None = None
    error_trend_report: ErrorTrendReport | None = None
    documentation_score_change: DocumentationScoreChange | None = None


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class CompareOptions(CamelModel):
    """Knobs for :class:`aumai_driftwatch.core.DriftDetector`."""

    ignore_schema_changes: bool = False
    ignore_description_changes: bool = False
    ignore_response_structure_changes: bool = False
    ignore_error_pattern_changes: bool = False
    ignore_security_changes: bool = False
    ignore_performance_changes: bool = False
    ignore_schema_evolution_changes: bool = False
    tools: list[str] = Field(default_factory=list, description="Only compare these tools; empty means all")
    performance_threshold: float = Field(
        default=DEFAULT_PERFORMANCE_THRESHOLD,
        ge=0.0,
        description="Fractional slowdown that counts as a regression",
    )
    ignore_version_mismatch: bool = False


class SeverityConfig(CamelModel):
    """Policy applied to a diff before deciding pass or fail."""

    minimum_severity: ChangeSeverity = "none"
    fail_on_severity: ChangeSeverity = "breaking"
    suppress_warnings: bool = False
    aspect_overrides: dict[BehaviorAspect, ChangeSeverity] = Field(default_factory=dict)

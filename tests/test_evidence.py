"""Tests for aumai_driftwatch.evidence diff primitives."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from aumai_driftwatch.evidence import (
    DeprecationInfo,
    DocumentationScoreSummary,
    ErrorPattern,
    InferredSchema,
    PerformanceBaseline,
    PerformanceConfidence,
    ResponseFingerprint,
    ResponseSchemaEvolution,
    SchemaVersion,
    SecurityFinding,
    SecurityFingerprint,
    analyze_error_trends,
    build_performance_report,
    build_schema_evolution_report,
    compare_deprecation,
    compare_documentation_scores,
    compare_error_patterns,
    compare_inferred_schemas,
    compare_performance,
    compare_response_fingerprints,
    compare_schema_evolution,
    compare_security_fingerprints,
)


def _fp(**kwargs) -> ResponseFingerprint:
    kwargs.setdefault("structure_hash", "s1")
    kwargs.setdefault("content_type", "object")
    return ResponseFingerprint(**kwargs)


def _errors(*specs: tuple[str, str, int]) -> list[ErrorPattern]:
    return [ErrorPattern(category=c, pattern_hash=h, count=n) for c, h, n in specs]


def _obj(**props: str) -> InferredSchema:
    return InferredSchema(type="object", properties={k: InferredSchema(type=v) for k, v in props.items()})


# ===========================================================================
# Response fingerprints
# ===========================================================================


class TestResponseFingerprint:
    def test_identical(self) -> None:
        diff = compare_response_fingerprints(_fp(fields=["a"]), _fp(fields=["a"]))
        assert diff.identical
        assert diff.significance == "none"

    def test_both_missing(self) -> None:
        assert compare_response_fingerprints(None, None).identical

    def test_added_is_low(self) -> None:
        diff = compare_response_fingerprints(None, _fp())
        assert not diff.identical
        assert diff.significance == "low"
        assert not diff.changes[0].breaking

    def test_field_removed_is_breaking(self) -> None:
        diff = compare_response_fingerprints(_fp(fields=["a", "b"]), _fp(fields=["a"]))
        assert [c.aspect for c in diff.changes] == ["fields"]
        assert diff.changes[0].breaking
        assert diff.significance == "medium"

    def test_field_added_is_not_breaking(self) -> None:
        diff = compare_response_fingerprints(_fp(fields=["a"]), _fp(fields=["a", "b"]))
        assert not diff.changes[0].breaking
        assert diff.significance == "low"

    def test_structure_change_is_high(self) -> None:
        diff = compare_response_fingerprints(_fp(), _fp(structure_hash="s2", content_type="array"))
        assert {c.aspect for c in diff.changes} == {"structure", "content_type"}
        assert diff.significance == "high"

    def test_becoming_empty_is_breaking(self) -> None:
        diff = compare_response_fingerprints(_fp(), _fp(is_empty=True))
        assert diff.changes[0].aspect == "emptiness"
        assert diff.changes[0].breaking

    def test_returning_data_again_is_not_breaking(self) -> None:
        diff = compare_response_fingerprints(_fp(is_empty=True), _fp())
        assert not diff.changes[0].breaking


# ===========================================================================
# Error patterns
# ===========================================================================


class TestErrorPatterns:
    def test_none_means_no_errors(self) -> None:
        diff = compare_error_patterns(None, _errors(("timeout", "e1", 1)))
        assert [p.pattern_hash for p in diff.added] == ["e1"]
        assert diff.behavior_changed

    def test_unchanged(self) -> None:
        patterns = _errors(("timeout", "e1", 1))
        assert not compare_error_patterns(patterns, patterns).behavior_changed

    def test_removed(self) -> None:
        diff = compare_error_patterns(_errors(("timeout", "e1", 1)), [])
        assert [p.pattern_hash for p in diff.removed] == ["e1"]


class TestErrorTrends:
    def test_classification(self) -> None:
        report = analyze_error_trends(
            _errors(("timeout", "a", 2), ("validation", "b", 10), ("permission", "c", 4), ("not_found", "d", 3)),
            _errors(("timeout", "a", 4), ("validation", "b", 2), ("permission", "c", 4), ("internal", "e", 1)),
        )
        trends = {t.category: t.trend for t in report.trends}
        assert trends == {
            "timeout": "increasing",
            "validation": "decreasing",
            "permission": "stable",
            "not_found": "resolved",
            "internal": "new",
        }
        assert report.new_categories == ["internal"]
        assert report.resolved_categories == ["not_found"]
        assert report.significant_change
        assert report.summary.startswith("New error types: internal")

    def test_change_percent(self) -> None:
        report = analyze_error_trends(_errors(("timeout", "a", 2)), _errors(("timeout", "a", 4)))
        assert report.trends[0].change_percent == 100

    def test_empty(self) -> None:
        report = analyze_error_trends([], [])
        assert report.trends == []
        assert not report.significant_change
        assert report.summary == "No error trend changes"


# ===========================================================================
# Security
# ===========================================================================


class TestSecurity:
    def _finding(self, risk: str = "high", parameter: str = "path") -> SecurityFinding:
        return SecurityFinding(
            category="path_traversal", risk_level=risk, title="Traversal", parameter=parameter, tool="read_file"
        )

    def test_key_and_risk(self) -> None:
        finding = self._finding("critical")
        assert finding.key == "read_file:path_traversal:path"
        assert finding.is_high_risk
        assert not self._finding("medium").is_high_risk

    def test_no_data(self) -> None:
        assert compare_security_fingerprints(None, None).summary == "No security testing data available"

    def test_initial_scan(self) -> None:
        diff = compare_security_fingerprints(None, SecurityFingerprint(findings=[self._finding()], risk_score=40))
        assert len(diff.new_findings) == 1
        assert diff.degraded
        assert diff.risk_score_change == 40

    def test_scan_dropped(self) -> None:
        diff = compare_security_fingerprints(SecurityFingerprint(findings=[self._finding()], risk_score=40), None)
        assert len(diff.resolved_findings) == 1
        assert not diff.degraded

    def test_keyed_by_parameter(self) -> None:
        previous = SecurityFingerprint(findings=[self._finding(parameter="path")], risk_score=30)
        current = SecurityFingerprint(findings=[self._finding(parameter="dest")], risk_score=20)
        diff = compare_security_fingerprints(previous, current)
        assert [f.parameter for f in diff.new_findings] == ["dest"]
        assert [f.parameter for f in diff.resolved_findings] == ["path"]
        assert diff.risk_score_change == -10
        assert diff.degraded
        assert "risk score decreased by 10" in diff.summary


# ===========================================================================
# Performance
# ===========================================================================


class TestPerformance:
    def test_regression(self) -> None:
        result = compare_performance(
            "read_file", PerformanceBaseline(p50_ms=100, p95_ms=200), PerformanceBaseline(p50_ms=120, p95_ms=200)
        )
        assert result.p50_regression == pytest.approx(0.2)
        assert result.has_regression
        assert result.severity == "breaking"
        assert result.trend == "degrading"

    @pytest.mark.parametrize(
        ("current", "severity"),
        [(107.0, "warning"), (103.0, "info"), (100.0, "none"), (90.0, "none")],
    )
    def test_severity_bands(self, current: float, severity: str) -> None:
        result = compare_performance("t", PerformanceBaseline(p50_ms=100), PerformanceBaseline(p50_ms=current))
        assert result.severity == severity
        assert not result.has_regression

    def test_improvement(self) -> None:
        result = compare_performance("t", PerformanceBaseline(p50_ms=100), PerformanceBaseline(p50_ms=80))
        assert result.trend == "improving"
        assert "improved" in result.summary

    def test_zero_baseline_has_no_regression(self) -> None:
        result = compare_performance("t", PerformanceBaseline(p50_ms=0), PerformanceBaseline(p50_ms=50))
        assert result.p50_regression is None
        assert not result.has_regression

    def test_missing_side(self) -> None:
        result = compare_performance("t", None, PerformanceBaseline(p50_ms=50))
        assert result.severity == "none"
        assert "No baseline performance data" in result.summary

    def test_low_confidence(self) -> None:
        low = PerformanceBaseline(p50_ms=100, confidence=PerformanceConfidence(confidence_level="low"))
        assert low.is_low_confidence
        result = compare_performance("t", low, PerformanceBaseline(p50_ms=100))
        assert result.low_confidence

    def test_report(self) -> None:
        comparisons = [
            compare_performance("a", PerformanceBaseline(p50_ms=100), PerformanceBaseline(p50_ms=150)),
            compare_performance("b", PerformanceBaseline(p50_ms=100), PerformanceBaseline(p50_ms=80)),
            compare_performance("c", PerformanceBaseline(p50_ms=100), PerformanceBaseline(p50_ms=100)),
        ]
        report = build_performance_report(comparisons)
        assert report.regression_count == 1
        assert report.improvement_count == 1
        assert report.stable_count == 1
        assert report.overall_trend == "stable"
        assert report.overall_severity == "breaking"

    def test_empty_report(self) -> None:
        report = build_performance_report([])
        assert report.overall_severity == "none"
        assert report.summary == "No performance data to compare"


# ===========================================================================
# Response schema evolution
# ===========================================================================


class TestSchemaEvolution:
    def test_field_removed_is_breaking(self) -> None:
        diff = compare_inferred_schemas(_obj(a="string", b="integer"), _obj(a="string"))
        assert diff.fields_removed == ["b"]
        assert diff.is_breaking

    def test_widening_is_compatible(self) -> None:
        diff = compare_inferred_schemas(_obj(n="integer", m="null"), _obj(n="number", m="string"))
        assert all(tc.backward_compatible for tc in diff.type_changes)
        assert not diff.is_breaking
        assert diff.structure_changed

    def test_narrowing_is_breaking(self) -> None:
        diff = compare_inferred_schemas(_obj(n="number"), _obj(n="integer"))
        assert diff.is_breaking

    def test_mixed_is_widening(self) -> None:
        diff = compare_inferred_schemas(_obj(n="string"), _obj(n="mixed"))
        assert not diff.is_breaking

    def test_newly_required(self) -> None:
        previous = InferredSchema(type="object", properties={"a": InferredSchema(type="string")}, required=[])
        current = InferredSchema(type="object", properties={"a": InferredSchema(type="string")}, required=["a"])
        diff = compare_inferred_schemas(previous, current)
        assert diff.new_required == ["a"]
        assert diff.is_breaking

    def test_uses_latest_history_entry(self) -> None:
        observed = datetime(2026, 1, 1, tzinfo=timezone.utc)

        def evolution(schema: InferredSchema, current_hash: str) -> ResponseSchemaEvolution:
            return ResponseSchemaEvolution(
                current_hash=current_hash,
                history=[SchemaVersion(hash=current_hash, schema=schema, observed_at=observed)],
            )

        diff = compare_schema_evolution(evolution(_obj(a="string"), "h1"), evolution(_obj(a="string", b="string"), "h2"))
        assert diff.fields_added == ["b"]
        assert not diff.is_breaking

    def test_hash_only(self) -> None:
        diff = compare_schema_evolution(
            ResponseSchemaEvolution(current_hash="h1"), ResponseSchemaEvolution(current_hash="h2")
        )
        assert diff.structure_changed
        assert diff.summary == "Schema hash changed"

    def test_evolution_removed(self) -> None:
        diff = compare_schema_evolution(ResponseSchemaEvolution(current_hash="h1"), None)
        assert diff.is_breaking

    def test_schema_alias_round_trip(self) -> None:
        version = SchemaVersion(hash="h", schema=_obj(a="string"), observed_at=datetime(2026, 1, 1))
        document = version.to_json_dict()
        assert "schema" in document
        assert document["observedAt"] == "2026-01-01T00:00:00.000Z"
        assert SchemaVersion.model_validate(document) == version

    def test_report(self) -> None:
        report = build_schema_evolution_report(
            {
                "a": compare_inferred_schemas(_obj(x="string"), _obj()),
                "b": compare_inferred_schemas(_obj(x="string"), _obj(x="string", y="string")),
                "c": compare_inferred_schemas(_obj(x="string"), _obj(x="string")),
            }
        )
        assert report.tools_with_changes == ["a", "b"]
        assert report.breaking_tools == ["a"]
        assert report.has_breaking_changes


# ===========================================================================
# Deprecation and documentation
# ===========================================================================


class TestDeprecation:
    def test_no_transition(self) -> None:
        assert compare_deprecation(None, None) is None
        assert compare_deprecation(None, DeprecationInfo(deprecated=False)) is None

    def test_deprecated(self) -> None:
        change = compare_deprecation(
            None, DeprecationInfo(deprecated=True, deprecation_notice="Use v2", replacement_tool="read_v2")
        )
        assert change is not None
        assert change.status == "deprecated"
        assert change.replacement_tool == "read_v2"

    def test_undeprecated(self) -> None:
        change = compare_deprecation(DeprecationInfo(deprecated=True), None)
        assert change is not None
        assert change.status == "undeprecated"


class TestDocumentationScore:
    def test_degraded(self) -> None:
        change = compare_documentation_scores(
            DocumentationScoreSummary(overall_score=90, grade="A", issue_count=1),
            DocumentationScoreSummary(overall_score=70, grade="C", issue_count=4),
        )
        assert change.degraded
        assert change.new_issues == 3
        assert change.issues_fixed == 0
        assert change.summary == "Documentation degraded: 90 -> 70 (-20) | Grade: A -> C"

    def test_unchanged(self) -> None:
        score = DocumentationScoreSummary(overall_score=75, grade="B")
        change = compare_documentation_scores(score, score)
        assert not change.improved
        assert not change.degraded
        assert change.summary == "Documentation score unchanged at 75 (B)"

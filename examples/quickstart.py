"""Quickstart examples for aumai-driftwatch.

Demonstrates the baseline lifecycle:
  1. Building a sealed baseline from an interview run
  2. Detecting schema drift between two runs
  3. Applying a severity policy before gating CI
  4. Saving, tampering with and reloading baselines
  5. Accepting intentional drift

Run directly:
    python examples/quickstart.py
"""

from __future__ import annotations

import json
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from aumai_driftwatch import (
    BaselineBuilder,
    BaselineStore,
    DriftDetector,
    InteractionRecord,
    InterviewResult,
    InterviewToolResult,
    SeverityConfig,
    apply_severity_config,
    should_fail_on_diff,
)
from aumai_driftwatch.errors import IntegrityMismatchError
from aumai_driftwatch.models import ServerFingerprint, ToolCapability
from aumai_driftwatch.store import accept_drift

# ---------------------------------------------------------------------------
# Shared data
# ---------------------------------------------------------------------------

CALCULATOR_SCHEMA_V1: dict[str, object] = {
    "type": "object",
    "properties": {
        "expression": {"type": "string", "description": "Math expression to evaluate"},
        "precision": {"type": "integer"},
    },
    "required": ["expression"],
}

CALCULATOR_SCHEMA_V2: dict[str, object] = {
    "type": "object",
    "properties": {
        "expression": {"type": "string", "description": "Math expression to evaluate"},
        "precision": {"type": "integer"},
    },
    "required": ["expression", "precision"],  # precision is now mandatory
}

SERVER = ServerFingerprint(name="calc-server", version="1.0.0", protocol_version="2025-06-18")


def _interview(schema: dict[str, object], generated_at: datetime) -> InterviewResult:
    return InterviewResult(
        server=SERVER,
        tool_results=[
            InterviewToolResult(
                tool=ToolCapability(
                    name="calculator",
                    description="Evaluate a mathematical expression",
                    input_schema=schema,
                ),
                interactions=[
                    InteractionRecord(args={"expression": "6 * 7"}, duration_ms=3),
                    InteractionRecord(args={"expression": "22 / 7", "precision": 2}, duration_ms=4),
                ],
            )
        ],
        summary="Calculator interview",
        generated_at=generated_at,
    )


# ---------------------------------------------------------------------------
# Demo 1: Building a baseline
# ---------------------------------------------------------------------------


def demo_build_baseline() -> None:
    """Show how BaselineBuilder produces a sealed, deterministic baseline."""
    print("\n=== Demo 1: Building a Baseline ===")

    builder = BaselineBuilder(tool_version="0.1.0")
    generated_at = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
    baseline = builder.build(_interview(CALCULATOR_SCHEMA_V1, generated_at), "npx calc-server")

    profile = baseline.tool_profiles[0]
    print(f"Format version    : {baseline.version}")
    print(f"Integrity hash    : {baseline.hash}")
    print(f"Tool              : {profile.name}")
    print(f"Schema hash       : {profile.schema_hash}")
    print(f"Shape consistency : {profile.observed_args_schema_consistency:.2f}")

    again = builder.build(_interview(CALCULATOR_SCHEMA_V1, generated_at), "npx calc-server")
    assert again.hash == baseline.hash, "Hash should be deterministic"
    print("Determinism check : PASSED (same run produces same hash)")


# ---------------------------------------------------------------------------
# Demo 2: Detecting drift
# ---------------------------------------------------------------------------


def demo_drift_detection() -> None:
    """Detect that an optional parameter became required."""
    print("\n=== Demo 2: Drift Detection ===")

    builder = BaselineBuilder()
    previous = builder.build(_interview(CALCULATOR_SCHEMA_V1, datetime(2026, 1, 1, tzinfo=timezone.utc)), "calc")
    current = builder.build(_interview(CALCULATOR_SCHEMA_V2, datetime(2026, 2, 1, tzinfo=timezone.utc)), "calc")

    diff = DriftDetector().compare(previous, current)
    print(f"Severity : {diff.severity}")
    print(f"Summary  : {diff.summary}")
    for change in diff.behavior_changes:
        print(f"  [{change.severity}] {change.tool} {change.aspect}: {change.description}")


# ---------------------------------------------------------------------------
# Demo 3: Severity policy
# ---------------------------------------------------------------------------


def demo_severity_policy() -> None:
    """Downgrade schema changes and check whether CI would fail."""
    print("\n=== Demo 3: Severity Policy ===")

    builder = BaselineBuilder()
    previous = builder.build(_interview(CALCULATOR_SCHEMA_V1, datetime(2026, 1, 1, tzinfo=timezone.utc)), "calc")
    current = builder.build(_interview(CALCULATOR_SCHEMA_V2, datetime(2026, 2, 1, tzinfo=timezone.utc)), "calc")
    diff = DriftDetector().compare(previous, current)

    strict = SeverityConfig(fail_on_severity="warning")
    lenient = SeverityConfig(aspect_overrides={"schema": "info"}, minimum_severity="warning")
    print(f"Strict policy fails  : {should_fail_on_diff(apply_severity_config(diff, strict), 'warning')}")
    relaxed = apply_severity_config(diff, lenient)
    print(f"Lenient policy fails : {should_fail_on_diff(relaxed, lenient.fail_on_severity)}")
    print(f"Lenient summary      : {relaxed.summary}")


# ---------------------------------------------------------------------------
# Demo 4: Persistence and tamper detection
# ---------------------------------------------------------------------------


def demo_persistence() -> None:
    """Save a baseline, edit it by hand, and watch the load fail."""
    print("\n=== Demo 4: Persistence and Tamper Detection ===")

    store = BaselineStore()
    baseline = BaselineBuilder().build(_interview(CALCULATOR_SCHEMA_V1, datetime.now(tz=timezone.utc)), "calc")

    with tempfile.TemporaryDirectory() as tmp:
        path = store.save(baseline, Path(tmp) / "baseline.json")
        assert store.load(path).hash == baseline.hash
        print("Round-trip check  : PASSED (hash verified on load)")

        document = json.loads(path.read_text(encoding="utf-8"))
        document["summary"] = "edited by hand"
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        try:
            store.load(path)
        except IntegrityMismatchError as exc:
            print(f"Tamper check      : PASSED ({exc.expected} != {exc.actual})")


# ---------------------------------------------------------------------------
# Demo 5: Accepting drift
# ---------------------------------------------------------------------------


def demo_accept_drift() -> None:
    """Record an intentional change on the new baseline."""
    print("\n=== Demo 5: Accepting Drift ===")

    builder = BaselineBuilder()
    previous = builder.build(_interview(CALCULATOR_SCHEMA_V1, datetime(2026, 1, 1, tzinfo=timezone.utc)), "calc")
    current = builder.build(_interview(CALCULATOR_SCHEMA_V2, datetime(2026, 2, 1, tzinfo=timezone.utc)), "calc")

    diff = DriftDetector().compare(previous, current)
    accepted = accept_drift(current, diff, accepted_by="release-bot", reason="precision is required in v2")
    assert accepted.acceptance is not None
    print(f"Accepted by : {accepted.acceptance.accepted_by}")
    print(f"Reason      : {accepted.acceptance.reason}")
    print(f"Recorded    : {accepted.acceptance.accepted_diff.severity} drift")


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run all quickstart demos in sequence."""
    print("aumai-driftwatch quickstart")
    print("=" * 50)

    demo_build_baseline()
    demo_drift_detection()
    demo_severity_policy()
    demo_persistence()
    demo_accept_drift()

    print("\n" + "=" * 50)
    print("All demos completed successfully.")


if __name__ == "__main__":
    main()

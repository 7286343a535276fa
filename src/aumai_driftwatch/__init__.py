"""AumAI Driftwatch: baseline integrity and drift detection for tool-exposing servers."""

from aumai_driftwatch.core import (
    BaselineBuilder,
    DriftDetector,
    InteractionRecord,
    InterviewResult,
    InterviewToolResult,
    compare_baselines,
)
from aumai_driftwatch.models import (
    BehavioralBaseline,
    BehavioralDiff,
    BehaviorChange,
    CompareOptions,
    SeverityConfig,
    ToolDiff,
    ToolFingerprint,
)
from aumai_driftwatch.severity import apply_severity_config, should_fail_on_diff
from aumai_driftwatch.store import BaselineStore

__version__ = "0.1.0"

__all__ = [
    "BaselineBuilder",
    "BaselineStore",
    "BehaviorChange",
    "BehavioralBaseline",
    "BehavioralDiff",
    "CompareOptions",
    "DriftDetector",
    "InteractionRecord",
    "InterviewResult",
    "InterviewToolResult",
    "SeverityConfig",
    "ToolDiff",
    "ToolFingerprint",
    "apply_severity_config",
    "compare_baselines",
    "should_fail_on_diff",
]

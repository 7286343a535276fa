"""CLI entry point for aumai-driftwatch."""

from __future__ import annotations

import json
import logging
import sys
from typing import NoReturn

import click

from aumai_driftwatch import __version__
from aumai_driftwatch.config import load_config
from aumai_driftwatch.core import DriftDetector
from aumai_driftwatch.errors import BaselineError, ConfigError
from aumai_driftwatch.models import BehavioralDiff
from aumai_driftwatch.severity import (
    EXIT_CODE_ERROR,
    SEVERITY_ORDER,
    SEVERITY_TO_EXIT_CODE,
    apply_severity_config,
    should_fail_on_diff,
)
from aumai_driftwatch.store import BaselineStore, accept_drift, clear_acceptance, has_acceptance
from aumai_driftwatch.versioning import check_version_compatibility

_SEVERITY_CHOICE = click.Choice(list(SEVERITY_ORDER))
_BASELINE_PATH = click.Path(dir_okay=False)


def _abort(exc: Exception) -> NoReturn:
    """Report *exc* on stderr and exit with the error code."""
    click.echo(f"Error: {exc}", err=True)
    sys.exit(EXIT_CODE_ERROR)


def _render_compact(diff: BehavioralDiff) -> str:
    lines = [
        f"severity={diff.severity} breaking={diff.breaking_count} "
        f"warning={diff.warning_count} info={diff.info_count}",
        diff.summary,
    ]
    for change in diff.behavior_changes:
        lines.append(f"[{change.severity}] {change.tool} {change.aspect}: {change.description}")
    return "\n".join(lines)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity on stderr.",
)
def main(log_level: str) -> None:
    """AumAI Driftwatch: detect drift between tool-server baselines."""
    logging.basicConfig(
        level=log_level.upper(),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command("show")
@click.argument("path", type=_BASELINE_PATH)
@click.option("--skip-integrity-check", is_flag=True, help="Load even if the hash does not match.")
def show_cmd(path: str, skip_integrity_check: bool) -> None:
    """Print a JSON summary of a baseline."""
    try:
        baseline = BaselineStore().load(path, skip_integrity_check=skip_integrity_check)
    except BaselineError as exc:
        _abort(exc)

    summary = {
        "version": baseline.version,
        "hash": baseline.hash,
        "generatedAt": baseline.metadata.to_json_dict()["generatedAt"],
        "server": baseline.server.to_json_dict(),
        "tools": baseline.tool_names,
        "acceptance": baseline.acceptance.to_json_dict() if baseline.acceptance else None,
    }
    click.echo(json.dumps(summary, indent=2))


@main.command("verify")
@click.argument("path", type=_BASELINE_PATH)
def verify_cmd(path: str) -> None:
    """Check that a baseline loads and its integrity hash matches."""
    try:
        baseline = BaselineStore().load(path)
    except BaselineError as exc:
        _abort(exc)
    click.echo(f"Baseline integrity verified ({baseline.hash}).")


@main.command("migrate")
@click.argument("path", type=_BASELINE_PATH)
@click.option("--output", "output", type=_BASELINE_PATH, default=None, help="Write here instead of in place.")
@click.option("--dry-run", is_flag=True, help="Only report what would change.")
def migrate_cmd(path: str, output: str | None, dry_run: bool) -> None:
    """Upgrade a baseline to the current format version."""
    store = BaselineStore()
    try:
        info = store.migration_info(path)
        click.echo(json.dumps(info.to_json_dict(), indent=2))
        if dry_run or not info.needs_migration:
            return
        baseline = store.load(path)
        written = store.save(baseline, output or path)
    except BaselineError as exc:
        _abort(exc)
    click.echo(f"Migrated baseline written to {written}", err=True)


@main.command("compare")
@click.argument("previous", type=_BASELINE_PATH)
@click.argument("current", type=_BASELINE_PATH)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="YAML config file.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "compact"]),
    default="json",
    show_default=True,
)
@click.option("--min-severity", type=_SEVERITY_CHOICE, default=None, help="Hide changes below this severity.")
@click.option("--fail-on-severity", type=_SEVERITY_CHOICE, default=None, help="Fail at or above this severity.")
@click.option("--tool", "tools", multiple=True, help="Only compare this tool (repeatable).")
@click.option("--performance-threshold", type=float, default=None, help="Fractional slowdown, e.g. 0.10.")
@click.option("--ignore-version-mismatch", is_flag=True, help="Compare across incompatible formats.")
@click.option("--skip-integrity-check", is_flag=True, help="Load baselines even if hashes do not match.")
def compare_cmd(
    previous: str,
    current: str,
    config_path: str | None,
    output_format: str,
    min_severity: str | None,
    fail_on_severity: str | None,
    tools: tuple[str, ...],
    performance_threshold: float | None,
    ignore_version_mismatch: bool,
    skip_integrity_check: bool,
) -> None:
    """Compare two baselines and exit non-zero when drift crosses the threshold."""
    try:
        config = load_config(config_path)
        store = BaselineStore()
        prev_baseline = store.load(previous, skip_integrity_check=skip_integrity_check)
        curr_baseline = store.load(current, skip_integrity_check=skip_integrity_check)
    except (BaselineError, ConfigError) as exc:
        _abort(exc)

    option_updates: dict[str, object] = {}
    if tools:
        option_updates["tools"] = list(tools)
    if performance_threshold is not None:
        option_updates["performance_threshold"] = performance_threshold
    if ignore_version_mismatch:
        option_updates["ignore_version_mismatch"] = True
    options = config.baseline.compare.model_copy(update=option_updates)

    severity_updates: dict[str, object] = {}
    if min_severity is not None:
        severity_updates["minimum_severity"] = min_severity
    if fail_on_severity is not None:
        severity_updates["fail_on_severity"] = fail_on_severity
    severity_config = config.baseline.severity.model_copy(update=severity_updates)

    compatibility = check_version_compatibility(prev_baseline.version, curr_baseline.version)
    if not compatibility.compatible and not options.ignore_version_mismatch:
        click.echo(f"Error: {compatibility.warning}", err=True)
        sys.exit(EXIT_CODE_ERROR)

    diff = apply_severity_config(DriftDetector(options).compare(prev_baseline, curr_baseline), severity_config)

    if output_format == "compact":
        click.echo(_render_compact(diff))
    else:
        click.echo(json.dumps(diff.to_json_dict(), indent=2))

    if should_fail_on_diff(diff, severity_config.fail_on_severity):
        sys.exit(SEVERITY_TO_EXIT_CODE[diff.severity])


@main.command("accept")
@click.argument("previous", type=_BASELINE_PATH)
@click.argument("current", type=_BASELINE_PATH)
@click.option("--reason", default=None, help="Why the drift is intentional.")
@click.option("--by", "accepted_by", default=None, help="Who accepted the drift.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="YAML config file.")
def accept_cmd(
    previous: str, current: str, reason: str | None, accepted_by: str | None, config_path: str | None
) -> None:
    """Record the drift from PREVIOUS to CURRENT as accepted on CURRENT."""
    store = BaselineStore()
    try:
        config = load_config(config_path)
        prev_baseline = store.load(previous)
        curr_baseline = store.load(current)
        diff = DriftDetector(config.baseline.compare).compare(prev_baseline, curr_baseline)
        accepted = accept_drift(curr_baseline, diff, accepted_by=accepted_by, reason=reason)
        store.save(accepted, current)
    except (BaselineError, ConfigError) as exc:
        _abort(exc)
    click.echo(f"Accepted {diff.severity} drift ({len(diff.behavior_changes)} change(s)) in {current}.")


@main.command("clear-acceptance")
@click.argument("path", type=_BASELINE_PATH)
def clear_acceptance_cmd(path: str) -> None:
    """Remove the acceptance record from a baseline."""
    store = BaselineStore()
    try:
        baseline = store.load(path)
        if not has_acceptance(baseline):
            click.echo("Baseline has no acceptance record.")
            return
        store.save(clear_acceptance(baseline), path)
    except BaselineError as exc:
        _abort(exc)
    click.echo(f"Acceptance record cleared from {path}.")


if __name__ == "__main__":
    main()

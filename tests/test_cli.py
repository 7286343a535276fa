"""CLI tests for aumai-driftwatch."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from aumai_driftwatch.cli import main
from aumai_driftwatch.store import BaselineStore, verify_integrity
from aumai_driftwatch.versioning import BASELINE_FORMAT_VERSION


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _tamper(path: Path) -> None:
    document = json.loads(path.read_text(encoding="utf-8"))
    document["summary"] = "hand edited"
    path.write_text(json.dumps(document), encoding="utf-8")


# ===========================================================================
# --version / --help
# ===========================================================================


class TestVersion:
    def test_version_exits_zero(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestHelp:
    @pytest.mark.parametrize("subcommand", ["show", "verify", "migrate", "compare", "accept", "clear-acceptance"])
    def test_subcommands_in_help(self, runner: CliRunner, subcommand: str) -> None:
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert subcommand in result.output

    @pytest.mark.parametrize("subcommand", ["show", "verify", "migrate", "compare", "accept", "clear-acceptance"])
    def test_subcommand_help(self, runner: CliRunner, subcommand: str) -> None:
        assert runner.invoke(main, [subcommand, "--help"]).exit_code == 0


# ===========================================================================
# show / verify
# ===========================================================================


class TestShowCommand:
    def test_show_summary(self, runner: CliRunner, baseline_b_file: Path) -> None:
        result = runner.invoke(main, ["show", str(baseline_b_file)])
        assert result.exit_code == 0
        summary = json.loads(result.output)
        assert summary["version"] == BASELINE_FORMAT_VERSION
        assert summary["tools"] == ["read_file", "write_file"]
        assert summary["generatedAt"] == "2026-01-15T12:00:00.000Z"
        assert summary["server"]["name"] == "fs-server"
        assert summary["acceptance"] is None

    def test_show_missing_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["show", str(tmp_path / "missing.json")])
        assert result.exit_code == 4
        assert "not found" in result.output

    def test_show_tampered_needs_flag(self, runner: CliRunner, baseline_a_file: Path) -> None:
        _tamper(baseline_a_file)
        assert runner.invoke(main, ["show", str(baseline_a_file)]).exit_code == 4
        assert runner.invoke(main, ["show", str(baseline_a_file), "--skip-integrity-check"]).exit_code == 0


class TestVerifyCommand:
    def test_verify_ok(self, runner: CliRunner, baseline_a_file: Path, baseline_a) -> None:
        result = runner.invoke(main, ["verify", str(baseline_a_file)])
        assert result.exit_code == 0
        assert baseline_a.hash in result.output

    def test_verify_tampered(self, runner: CliRunner, baseline_a_file: Path) -> None:
        _tamper(baseline_a_file)
        result = runner.invoke(main, ["verify", str(baseline_a_file)])
        assert result.exit_code == 4
        assert "hash verification failed" in result.output

    def test_verify_invalid_json(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        assert runner.invoke(main, ["verify", str(path)]).exit_code == 4


# ===========================================================================
# migrate
# ===========================================================================


class TestMigrateCommand:
    def test_dry_run_reports_without_writing(
        self, runner: CliRunner, tmp_path: Path, legacy_document: dict, write_json
    ) -> None:
        path = write_json(tmp_path / "legacy.json", legacy_document)
        before = path.read_text(encoding="utf-8")
        result = runner.invoke(main, ["migrate", str(path), "--dry-run"])
        assert result.exit_code == 0
        info = json.loads(result.output)
        assert info["currentVersion"] == "1.0.0"
        assert info["needsMigration"] is True
        assert info["migrationsToApply"] == ["2.0.0"]
        assert path.read_text(encoding="utf-8") == before

    def test_migrate_in_place(
        self, runner: CliRunner, tmp_path: Path, legacy_document: dict, write_json
    ) -> None:
        path = write_json(tmp_path / "legacy.json", legacy_document)
        result = runner.invoke(main, ["migrate", str(path)])
        assert result.exit_code == 0
        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["version"] == BASELINE_FORMAT_VERSION
        assert verify_integrity(BaselineStore().load(path))

    def test_migrate_to_output(
        self, runner: CliRunner, tmp_path: Path, legacy_document: dict, write_json
    ) -> None:
        path = write_json(tmp_path / "legacy.json", legacy_document)
        out = tmp_path / "out" / "migrated.json"
        result = runner.invoke(main, ["migrate", str(path), "--output", str(out)])
        assert result.exit_code == 0
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
        assert BaselineStore().load(out).version == BASELINE_FORMAT_VERSION

    def test_current_baseline_untouched(self, runner: CliRunner, baseline_a_file: Path) -> None:
        before = baseline_a_file.read_text(encoding="utf-8")
        result = runner.invoke(main, ["migrate", str(baseline_a_file)])
        assert result.exit_code == 0
        assert json.loads(result.output)["needsMigration"] is False
        assert baseline_a_file.read_text(encoding="utf-8") == before


# ===========================================================================
# compare
# ===========================================================================


class TestCompareCommand:
    def test_tool_removed_exits_breaking(
        self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path
    ) -> None:
        result = runner.invoke(main, ["compare", str(baseline_b_file), str(baseline_a_file)])
        assert result.exit_code == 3
        diff = json.loads(result.output)
        assert diff["toolsRemoved"] == ["write_file"]
        assert diff["severity"] == "breaking"

    def test_tool_added_passes_by_default(
        self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path
    ) -> None:
        result = runner.invoke(main, ["compare", str(baseline_a_file), str(baseline_b_file)])
        assert result.exit_code == 0
        assert json.loads(result.output)["toolsAdded"] == ["write_file"]

    def test_fail_on_info(self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path) -> None:
        result = runner.invoke(
            main, ["compare", str(baseline_a_file), str(baseline_b_file), "--fail-on-severity", "info"]
        )
        assert result.exit_code == 1

    def test_identical_passes(self, runner: CliRunner, baseline_a_file: Path) -> None:
        result = runner.invoke(main, ["compare", str(baseline_a_file), str(baseline_a_file)])
        assert result.exit_code == 0
        assert json.loads(result.output)["summary"] == "No behavioral changes detected."

    def test_min_severity_hides_info(self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path) -> None:
        result = runner.invoke(
            main, ["compare", str(baseline_a_file), str(baseline_b_file), "--min-severity", "warning"]
        )
        diff = json.loads(result.output)
        assert diff["behaviorChanges"] == []
        assert diff["severity"] == "none"

    def test_tool_filter(self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path) -> None:
        result = runner.invoke(
            main, ["compare", str(baseline_b_file), str(baseline_a_file), "--tool", "read_file"]
        )
        assert result.exit_code == 0

    def test_compact_format(self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path) -> None:
        result = runner.invoke(
            main, ["compare", str(baseline_b_file), str(baseline_a_file), "--format", "compact"]
        )
        assert result.exit_code == 3
        assert "severity=breaking breaking=1 warning=0 info=0" in result.output
        assert "[breaking] write_file tool:" in result.output

    def test_config_file_applies(
        self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path, tmp_path: Path
    ) -> None:
        config = tmp_path / "driftwatch.yaml"
        config.write_text("baseline:\n  severity:\n    aspectOverrides:\n      tool: warning\n", encoding="utf-8")
        result = runner.invoke(
            main, ["compare", str(baseline_b_file), str(baseline_a_file), "--config", str(config)]
        )
        assert result.exit_code == 0
        assert json.loads(result.output)["severity"] == "warning"

    def test_cli_flag_overrides_config(
        self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path, tmp_path: Path
    ) -> None:
        config = tmp_path / "driftwatch.yaml"
        config.write_text("baseline:\n  severity:\n    failOnSeverity: info\n", encoding="utf-8")
        args = ["compare", str(baseline_a_file), str(baseline_b_file), "--config", str(config)]
        assert runner.invoke(main, args).exit_code == 1
        assert runner.invoke(main, [*args, "--fail-on-severity", "breaking"]).exit_code == 0

    def test_missing_config_is_error(
        self, runner: CliRunner, baseline_a_file: Path, tmp_path: Path
    ) -> None:
        result = runner.invoke(
            main, ["compare", str(baseline_a_file), str(baseline_a_file), "--config", str(tmp_path / "nope.yaml")]
        )
        assert result.exit_code == 4

    def test_tampered_baseline_is_error(
        self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path
    ) -> None:
        _tamper(baseline_a_file)
        result = runner.invoke(main, ["compare", str(baseline_a_file), str(baseline_b_file)])
        assert result.exit_code == 4
        skipped = runner.invoke(
            main, ["compare", str(baseline_a_file), str(baseline_b_file), "--skip-integrity-check"]
        )
        assert skipped.exit_code == 0

    def test_legacy_baseline_compares_after_migration(
        self, runner: CliRunner, tmp_path: Path, legacy_document: dict, write_json, baseline_a_file: Path
    ) -> None:
        legacy = write_json(tmp_path / "legacy.json", legacy_document)
        result = runner.invoke(main, ["compare", str(legacy), str(baseline_a_file)])
        assert result.exit_code == 0
        diff = json.loads(result.output)
        assert diff["toolsAdded"] == []
        assert diff["toolsRemoved"] == []


# ===========================================================================
# accept / clear-acceptance
# ===========================================================================


class TestAcceptCommands:
    def test_accept_then_clear(self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path) -> None:
        result = runner.invoke(
            main, ["accept", str(baseline_a_file), str(baseline_b_file), "--reason", "new tool", "--by", "ops"]
        )
        assert result.exit_code == 0
        assert "Accepted info drift" in result.output

        store = BaselineStore()
        accepted = store.load(baseline_b_file)
        assert accepted.acceptance is not None
        assert accepted.acceptance.reason == "new tool"
        assert accepted.acceptance.accepted_by == "ops"
        assert accepted.acceptance.accepted_diff.tools_added == ["write_file"]

        shown = json.loads(runner.invoke(main, ["show", str(baseline_b_file)]).output)
        assert shown["acceptance"]["reason"] == "new tool"

        cleared = runner.invoke(main, ["clear-acceptance", str(baseline_b_file)])
        assert cleared.exit_code == 0
        assert store.load(baseline_b_file).acceptance is None

    def test_accepted_drift_still_reported(
        self, runner: CliRunner, baseline_a_file: Path, baseline_b_file: Path
    ) -> None:
        runner.invoke(main, ["accept", str(baseline_b_file), str(baseline_a_file)])
        result = runner.invoke(main, ["compare", str(baseline_b_file), str(baseline_a_file)])
        assert result.exit_code == 3

    def test_clear_without_record(self, runner: CliRunner, baseline_a_file: Path) -> None:
        result = runner.invoke(main, ["clear-acceptance", str(baseline_a_file)])
        assert result.exit_code == 0
        assert "no acceptance record" in result.output

    def test_accept_missing_baseline(self, runner: CliRunner, baseline_a_file: Path, tmp_path: Path) -> None:
        result = runner.invoke(main, ["accept", str(baseline_a_file), str(tmp_path / "missing.json")])
        assert result.exit_code == 4

"""Shared test fixtures for aumai-driftwatch tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from aumai_driftwatch.models import (
    BaselineMetadata,
    BehavioralBaseline,
    Capabilities,
    ServerFingerprint,
    ToolCapability,
    ToolFingerprint,
)
from aumai_driftwatch.schema import compute_schema_hash
from aumai_driftwatch.store import BaselineStore, recalculate_integrity_hash
from aumai_driftwatch.versioning import BASELINE_FORMAT_VERSION

GENERATED_AT = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

ProfileFactory = Callable[..., ToolFingerprint]
BaselineFactory = Callable[..., BehavioralBaseline]


# ---------------------------------------------------------------------------
# Schema fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def read_file_schema() -> dict:
    return {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path of the file to read"},
            "encoding": {"type": "string", "enum": ["utf-8", "latin-1"]},
        },
        "required": ["path"],
    }


@pytest.fixture()
def write_file_schema() -> dict:
    return {
        "type": "object",
        "properties": {
            "path": {"type": "string"},
            "content": {"type": "string"},
        },
        "required": ["path", "content"],
    }


# ---------------------------------------------------------------------------
# Baseline factories
# ---------------------------------------------------------------------------


def _build_profile(name: str, input_schema: dict | None = None, **kwargs: Any) -> ToolFingerprint:
    schema = input_schema if input_schema is not None else {"type": "object", "properties": {}}
    kwargs.setdefault("description", f"The {name} tool")
    kwargs.setdefault("schema_hash", compute_schema_hash(schema))
    return ToolFingerprint(name=name, input_schema=schema, **kwargs)


def _build_baseline(profiles: list[ToolFingerprint], **kwargs: Any) -> BehavioralBaseline:
    kwargs.setdefault("version", BASELINE_FORMAT_VERSION)
    kwargs.setdefault(
        "metadata",
        BaselineMetadata(generated_at=GENERATED_AT, server_command="npx fs-server", duration_ms=1200),
    )
    kwargs.setdefault(
        "server",
        ServerFingerprint(name="fs-server", version="1.2.0", protocol_version="2025-06-18", capabilities=["tools"]),
    )
    kwargs.setdefault(
        "capabilities",
        Capabilities(
            tools=[
                ToolCapability(name=p.name, description=p.description, input_schema=p.input_schema or {})
                for p in profiles
            ]
        ),
    )
    return recalculate_integrity_hash(BehavioralBaseline(tool_profiles=profiles, **kwargs))


@pytest.fixture()
def make_profile() -> ProfileFactory:
    return _build_profile


@pytest.fixture()
def make_baseline() -> BaselineFactory:
    return _build_baseline


@pytest.fixture()
def read_file_profile(read_file_schema: dict) -> ToolFingerprint:
    return _build_profile("read_file", read_file_schema)


@pytest.fixture()
def write_file_profile(write_file_schema: dict) -> ToolFingerprint:
    return _build_profile("write_file", write_file_schema)


@pytest.fixture()
def baseline_a(read_file_profile: ToolFingerprint) -> BehavioralBaseline:
    """Server exposing only ``read_file``."""
    return _build_baseline([read_file_profile])


@pytest.fixture()
def baseline_b(read_file_profile: ToolFingerprint, write_file_profile: ToolFingerprint) -> BehavioralBaseline:
    """Server exposing ``read_file`` and ``write_file``."""
    return _build_baseline([read_file_profile, write_file_profile])


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> BaselineStore:
    return BaselineStore()


@pytest.fixture()
def baseline_a_file(tmp_path: Path, store: BaselineStore, baseline_a: BehavioralBaseline) -> Path:
    return store.save(baseline_a, tmp_path / "baseline-a.json")


@pytest.fixture()
def baseline_b_file(tmp_path: Path, store: BaselineStore, baseline_b: BehavioralBaseline) -> Path:
    return store.save(baseline_b, tmp_path / "baseline-b.json")


@pytest.fixture()
def legacy_document(read_file_schema: dict) -> dict:
    """A 1.x flat-layout baseline as older releases wrote it."""
    return {
        "version": 1,
        "createdAt": "2025-03-01T10:00:00.000Z",
        "serverCommand": "node server.js",
        "mode": "full",
        "tools": [
            {
                "name": "read_file",
                "description": "Read a file",
                "schemaHash": compute_schema_hash(read_file_schema),
                "inputSchema": read_file_schema,
            }
        ],
        "workflowSignatures": [],
        "summary": "legacy run",
    }


@pytest.fixture()
def write_json() -> Callable[[Path, Any], Path]:
    def _write(path: Path, data: Any) -> Path:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write

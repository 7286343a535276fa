"""Stable fingerprints and structural comparison of tool JSON schemas."""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field

from aumai_driftwatch.hashing import EMPTY_HASH, ConsensusHash, canonical_json, consensus_hash, hash_value

__all__ = [
    "MAX_SCHEMA_DEPTH",
    "SchemaChange",
    "SchemaChangeType",
    "SchemaComparison",
    "compare_schemas",
    "compute_consensus_schema_hash",
    "compute_schema_hash",
    "infer_schema_from_args",
]

MAX_SCHEMA_DEPTH = 50

_CONSTRAINT_FIELDS = ("minimum", "maximum", "minLength", "maxLength", "pattern", "default")

SchemaChangeType = Literal[
    "property_added",
    "property_removed",
    "type_changed",
    "constraint_changed",
    "required_changed",
    "enum_changed",
    "format_changed",
]


class SchemaChange(BaseModel):
    """A single structural difference between two schemas."""

    path: str = Field(..., description="Dotted property path; '[]' marks array items")
    change_type: SchemaChangeType = Field(..., description="Kind of structural change")
    before: Any = Field(default=None, description="Summary of the previous value")
    after: Any = Field(default=None, description="Summary of the current value")
    breaking: bool = Field(..., description="Whether existing callers may break")
    description: str = Field(..., description="Human-readable explanation")


class SchemaComparison(BaseModel):
    """Result of :func:`compare_schemas`."""

    identical: bool
    changes: list[SchemaChange] = Field(default_factory=list)
    previous_hash: str
    current_hash: str

    @property
    def has_breaking_changes(self) -> bool:
        return any(change.breaking for change in self.changes)


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def _nfc(key: str) -> str:
    return unicodedata.normalize("NFC", key)


def _normalize_number(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _normalize_schema(schema: Mapping[str, Any], depth: int, active: set[int]) -> dict[str, Any]:
    """Reduce *schema* to the parts that define its structure.

    Descriptions and titles are dropped; property keys are NFC-normalised.
    *active* holds the ids of mappings on the current recursion path.
    """
    if depth > MAX_SCHEMA_DEPTH:
        return {"_truncated": True, "_reason": "max_depth_exceeded", "_depth": depth}
    if id(schema) in active:
        return {"_circular": True}
    active.add(id(schema))

    result: dict[str, Any] = {}
    try:
        schema_type = schema.get("type")
        if schema_type is not None:
            result["type"] = sorted(schema_type) if isinstance(schema_type, list) else schema_type
        if schema.get("format") is not None:
            result["format"] = schema["format"]
        if schema.get("enum") is not None:
            result["enum"] = sorted(schema["enum"], key=canonical_json)

        for field in _CONSTRAINT_FIELDS:
            if schema.get(field) is not None:
                result[field] = _normalize_number(schema[field])

        required = schema.get("required")
        if required:
            result["required"] = sorted(_nfc(str(name)) for name in required)

        properties = schema.get("properties")
        if isinstance(properties, Mapping):
            result["properties"] = {
                _nfc(str(key)): _normalize_schema(value, depth + 1, active)
                for key, value in properties.items()
                if isinstance(value, Mapping)
            }

        items = schema.get("items")
        if isinstance(items, Mapping):
            result["items"] = _normalize_schema(items, depth + 1, active)

        additional = schema.get("additionalProperties")
        if isinstance(additional, bool):
            result["additionalProperties"] = additional
        elif isinstance(additional, Mapping):
            result["additionalProperties"] = _normalize_schema(additional, depth + 1, active)
    finally:
        active.discard(id(schema))

    return result


def compute_schema_hash(schema: Mapping[str, Any] | None) -> str:
    """Return a 16-character structural hash of *schema*.

    Property declaration order, descriptions and Unicode normalisation form
    do not affect the result; property names, required set, types,
    constraints and nesting do.

    Args:
        schema: A JSON-Schema-like mapping, or *None*.

    Returns:
        The hash, or ``"empty"`` when *schema* is *None*.
    """
    if schema is None:
        return EMPTY_HASH
    return hash_value(_normalize_schema(schema, 0, set()))


# ---------------------------------------------------------------------------
# Observed argument shapes
# ---------------------------------------------------------------------------


def _infer_property(value: Any) -> dict[str, Any]:
    if value is None:
        return {"type": "null"}
    if isinstance(value, bool):
        return {"type": "boolean"}
    if isinstance(value, int):
        return {"type": "integer"}
    if isinstance(value, float):
        return {"type": "integer"} if value.is_integer() else {"type": "number"}
    if isinstance(value, str):
        return {"type": "string"}
    if isinstance(value, (list, tuple)):
        if not value:
            return {"type": "array"}
        return {"type": "array", "items": _infer_property(value[0])}
    if isinstance(value, Mapping):
        return {
            "type": "object",
            "properties": {str(k): _infer_property(v) for k, v in value.items()},
        }
    return {"type": "string"}


def infer_schema_from_args(args: Mapping[str, Any]) -> dict[str, Any]:
    """Infer the argument schema of one observed call.

    Every key present in *args* is treated as required.
    """
    properties = {str(key): _infer_property(value) for key, value in args.items()}
    return {"type": "object", "properties": properties, "required": sorted(properties)}


def compute_consensus_schema_hash(arg_samples: Iterable[Mapping[str, Any]]) -> ConsensusHash:
    """Return the consensus schema hash over observed call arguments."""
    return consensus_hash(
        (infer_schema_from_args(args) for args in arg_samples),
        hasher=compute_schema_hash,
    )


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def _type_label(schema_type: Any) -> str:
    if schema_type is None:
        return "any"
    if isinstance(schema_type, list):
        return "|".join(sorted(str(t) for t in schema_type))
    return str(schema_type)


def _summarize_property(prop: Mapping[str, Any]) -> str:
    parts: list[str] = []
    if prop.get("type") is not None:
        parts.append(_type_label(prop["type"]))
    if prop.get("format"):
        parts.append(f"({prop['format']})")
    if prop.get("enum") is not None:
        parts.append(f"enum[{len(prop['enum'])}]")

    constraints: list[str] = []
    for field, label in (("minimum", "min"), ("maximum", "max"), ("minLength", "minLen"), ("maxLength", "maxLen")):
        if prop.get(field) is not None:
            constraints.append(f"{label}:{prop[field]}")
    if prop.get("pattern"):
        constraints.append("pattern")
    if constraints:
        parts.append("{" + ",".join(constraints) + "}")

    return " ".join(parts) or "unknown"


def _enum_set(values: list[Any] | None) -> set[str]:
    return {canonical_json(v) for v in values or []}


def _compare_constraint(
    prev: Mapping[str, Any],
    curr: Mapping[str, Any],
    path: str,
    field: str,
    changes: list[SchemaChange],
) -> None:
    before = _normalize_number(prev.get(field))
    after = _normalize_number(curr.get(field))
    if before == after:
        return

    if field in ("minimum", "minLength"):
        breaking = after is not None and (before is None or after > before)
    elif field in ("maximum", "maxLength"):
        breaking = after is not None and (before is None or after < before)
    elif field == "default":
        breaking = False
    else:
        breaking = after is not None

    changes.append(
        SchemaChange(
            path=path,
            change_type="constraint_changed",
            before=before,
            after=after,
            breaking=breaking,
            description=(
                f'Constraint "{field}" changed from '
                f"{'none' if before is None else before} to {'none' if after is None else after}"
            ),
        )
    )


def _compare_properties(
    prev: Mapping[str, Any],
    curr: Mapping[str, Any],
    path: str,
    changes: list[SchemaChange],
) -> None:
    prev_type = _type_label(prev.get("type"))
    curr_type = _type_label(curr.get("type"))
    if prev_type != curr_type:
        changes.append(
            SchemaChange(
                path=path,
                change_type="type_changed",
                before=prev.get("type"),
                after=curr.get("type"),
                breaking=True,
                description=f'Type changed from "{prev_type}" to "{curr_type}"',
            )
        )

    if prev.get("format") != curr.get("format"):
        changes.append(
            SchemaChange(
                path=path,
                change_type="format_changed",
                before=prev.get("format"),
                after=curr.get("format"),
                breaking=curr.get("format") is not None and prev.get("format") is None,
                description=(
                    f'Format changed from "{prev.get("format") or "none"}" '
                    f'to "{curr.get("format") or "none"}"'
                ),
            )
        )

    prev_enum = _enum_set(prev.get("enum"))
    curr_enum = _enum_set(curr.get("enum"))
    if (prev.get("enum") is None) != (curr.get("enum") is None) or prev_enum != curr_enum:
        removed = prev_enum - curr_enum
        added = curr_enum - prev_enum
        changes.append(
            SchemaChange(
                path=path,
                change_type="enum_changed",
                before=prev.get("enum"),
                after=curr.get("enum"),
                breaking=bool(removed) and curr.get("enum") is not None,
                description=f"Enum values changed: {len(removed)} removed, {len(added)} added",
            )
        )

    for field in _CONSTRAINT_FIELDS:
        _compare_constraint(prev, curr, path, field, changes)

    _compare_object(prev, curr, path, changes)

    prev_items = prev.get("items")
    curr_items = curr.get("items")
    if isinstance(prev_items, Mapping) and isinstance(curr_items, Mapping):
        _compare_properties(prev_items, curr_items, f"{path}[]", changes)
    elif isinstance(curr_items, Mapping):
        changes.append(
            SchemaChange(
                path=f"{path}[]",
                change_type="type_changed",
                before="untyped array",
                after=_summarize_property(curr_items),
                breaking=False,
                description="Array items type added",
            )
        )
    elif isinstance(prev_items, Mapping):
        changes.append(
            SchemaChange(
                path=f"{path}[]",
                change_type="type_changed",
                before=_summarize_property(prev_items),
                after="untyped array",
                breaking=False,
                description="Array items type removed",
            )
        )


def _ordered_union(first: Mapping[str, Any], second: Mapping[str, Any]) -> list[str]:
    keys = list(first)
    keys.extend(k for k in second if k not in first)
    return keys


def _schema_properties(schema: Mapping[str, Any]) -> dict[str, Mapping[str, Any]]:
    properties = schema.get("properties")
    if not isinstance(properties, Mapping):
        return {}
    return {str(key): value for key, value in properties.items() if isinstance(value, Mapping)}


def _additional_label(value: Any) -> str:
    if value is None:
        return "unspecified"
    if value is True:
        return "allowed"
    if value is False:
        return "forbidden"
    return _summarize_property(value) if isinstance(value, Mapping) else str(value)


def _compare_additional(
    prev: Mapping[str, Any],
    curr: Mapping[str, Any],
    path: str,
    changes: list[SchemaChange],
) -> None:
    before = prev.get("additionalProperties")
    after = curr.get("additionalProperties")
    if isinstance(before, Mapping) and isinstance(after, Mapping):
        _compare_properties(before, after, f"{path}.*", changes)
        return
    if before == after:
        return
    # Absent and true both admit any extra key.
    before_open = before is None or before is True

    before_label = _additional_label(before)
    after_label = _additional_label(after)
    changes.append(
        SchemaChange(
            path=path,
            change_type="constraint_changed",
            before=before_label,
            after=after_label,
            breaking=after is False or (isinstance(after, Mapping) and before_open),
            description=f'Constraint "additionalProperties" changed from {before_label} to {after_label}',
        )
    )


def _compare_object(
    prev: Mapping[str, Any],
    curr: Mapping[str, Any],
    prefix: str,
    changes: list[SchemaChange],
) -> None:
    """Compare the required set, properties and extra-key policy of two objects.

    *prefix* is the dotted path of the object; the empty string is the root.
    """
    prev_props = _schema_properties(prev)
    curr_props = _schema_properties(curr)
    prev_required = [str(r) for r in prev.get("required") or []]
    curr_required = [str(r) for r in curr.get("required") or []]
    required_path = f"{prefix}.required" if prefix else "required"
    label = "Nested property" if prefix else "Property"

    # Added and removed properties report their own required-ness below.
    for name in curr_required:
        if name not in prev_required and (name in prev_props or name not in curr_props):
            changes.append(
                SchemaChange(
                    path=required_path,
                    change_type="required_changed",
                    before=sorted(prev_required),
                    after=sorted(curr_required),
                    breaking=True,
                    description=f'{label} "{name}" is now required',
                )
            )
    for name in prev_required:
        if name not in curr_required and (name in curr_props or name not in prev_props):
            changes.append(
                SchemaChange(
                    path=required_path,
                    change_type="required_changed",
                    before=sorted(prev_required),
                    after=sorted(curr_required),
                    breaking=False,
                    description=f'{label} "{name}" is no longer required',
                )
            )

    for key in _ordered_union(prev_props, curr_props):
        key_path = f"{prefix}.{key}" if prefix else key
        if key not in prev_props:
            is_required = key in curr_required
            changes.append(
                SchemaChange(
                    path=key_path,
                    change_type="property_added",
                    after=_summarize_property(curr_props[key]),
                    breaking=is_required,
                    description=f'{label} "{key}" added ({"required" if is_required else "optional"})',
                )
            )
        elif key not in curr_props:
            changes.append(
                SchemaChange(
                    path=key_path,
                    change_type="property_removed",
                    before=_summarize_property(prev_props[key]),
                    breaking=True,
                    description=f'{label} "{key}" removed',
                )
            )
        else:
            _compare_properties(prev_props[key], curr_props[key], key_path, changes)

    _compare_additional(prev, curr, prefix or "$", changes)


def compare_schemas(
    previous: Mapping[str, Any] | None,
    current: Mapping[str, Any] | None,
) -> SchemaComparison:
    """Compare two input schemas and classify every structural difference.

    Args:
        previous: The baseline schema, or *None*.
        current: The freshly observed schema, or *None*.

    Returns:
        A :class:`SchemaComparison`; ``identical`` is true when the structural
        hashes match.
    """
    previous_hash = compute_schema_hash(previous)
    current_hash = compute_schema_hash(current)
    if previous_hash == current_hash:
        return SchemaComparison(
            identical=True, previous_hash=previous_hash, current_hash=current_hash
        )

    prev = previous or {}
    curr = current or {}
    changes: list[SchemaChange] = []

    _compare_object(prev, curr, "", changes)

    if _type_label(prev.get("type")) != _type_label(curr.get("type")):
        changes.append(
            SchemaChange(
                path="$",
                change_type="type_changed",
                before=prev.get("type"),
                after=curr.get("type"),
                breaking=True,
                description=(
                    f'Root type changed from "{_type_label(prev.get("type"))}" '
                    f'to "{_type_label(curr.get("type"))}"'
                ),
            )
        )

    return SchemaComparison(
        identical=False,
        changes=changes,
        previous_hash=previous_hash,
        current_hash=current_hash,
    )

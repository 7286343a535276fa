"""Canonical, order-independent hashing of nested values."""

from __future__ import annotations

import hashlib
import json
import math
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel

__all__ = [
    "EMPTY_HASH",
    "ConsensusHash",
    "canonicalize",
    "canonical_json",
    "consensus_hash",
    "format_timestamp",
    "hash_value",
    "sha256_hex",
]

# Sentinel returned when there is nothing to hash a consensus over.
EMPTY_HASH = "empty"

DEFAULT_HASH_LENGTH = 16


class ConsensusHash(NamedTuple):
    """Most frequent hash among repeated observations."""

    hash: str
    consistency: float
    variations: int


def format_timestamp(value: datetime) -> str:
    """Render *value* as an ISO-8601 UTC string with millisecond precision.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def canonicalize(value: Any) -> Any:
    """Reduce *value* to a JSON-compatible tree whose encoding is stable.

    Mapping keys are stringified and sorted, sequences keep their order, sets
    are sorted, and timestamps become ISO-8601 UTC strings so that a
    ``datetime`` and its string form canonicalize identically.
    """
    if isinstance(value, BaseModel):
        return canonicalize(value.model_dump(mode="json", by_alias=True, exclude_none=True))
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, Enum):
        return canonicalize(value.value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"Cannot canonicalize non-finite float: {value!r}")
        return int(value) if value.is_integer() else value
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): canonicalize(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (set, frozenset)):
        items = [canonicalize(v) for v in value]
        return sorted(items, key=_stable_json)
    if isinstance(value, (list, tuple)):
        return [canonicalize(v) for v in value]
    raise TypeError(f"Cannot canonicalize value of type {type(value).__name__}")


def _stable_json(data: object) -> str:
    """Serialise an already-canonical tree to compact, key-sorted JSON."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def canonical_json(value: Any) -> str:
    """Return the canonical JSON encoding of *value*."""
    return _stable_json(canonicalize(value))


def sha256_hex(text: str) -> str:
    """Return the hex-encoded SHA-256 digest of *text*."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_value(value: Any, length: int = DEFAULT_HASH_LENGTH) -> str:
    """Hash *value* by its semantic content.

    Args:
        value: Any nesting of mappings, sequences, scalars, timestamps or
            pydantic models.
        length: Number of hex characters to keep from the SHA-256 digest.

    Returns:
        A lowercase hex string of *length* characters.
    """
    return sha256_hex(canonical_json(value))[:length]


def consensus_hash(
    samples: Iterable[Any],
    hasher: Callable[[Any], str] = hash_value,
) -> ConsensusHash:
    """Find the most frequent hash among *samples*.

    Ties are broken in favour of the hash that was seen first.

    Args:
        samples: Observations to hash individually.
        hasher: Function mapping one sample to its hash.

    Returns:
        A :class:`ConsensusHash`. With no samples the hash is
        :data:`EMPTY_HASH` and the consistency is ``0.0``.
    """
    counts: dict[str, int] = {}
    total = 0
    for sample in samples:
        digest = hasher(sample)
        counts[digest] = counts.get(digest, 0) + 1
        total += 1

    if total == 0:
        return ConsensusHash(hash=EMPTY_HASH, consistency=0.0, variations=0)

    best_hash = EMPTY_HASH
    best_count = 0
    for digest, count in counts.items():
        if count > best_count:
            best_hash = digest
            best_count = count

    return ConsensusHash(hash=best_hash, consistency=best_count / total, variations=len(counts))

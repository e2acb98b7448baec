"""Canonical hashing for ledger blocks.

The canonical serialisation sorts object keys at **every** nesting level and
uses compact separators, so two records that differ only in key insertion
order always produce the same digest.  No other normalisation is applied:
numbers and strings are hashed exactly as given, which is why block
timestamps are pre-rendered by :mod:`bims_ledger.ledger.timestamps`.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any


def sort_keys(value: Any) -> Any:
    """Return a copy of ``value`` with mapping keys sorted recursively.

    Lists keep their order; their elements are sorted in turn.  Scalars are
    returned unchanged.
    """
    if isinstance(value, Mapping):
        return {key: sort_keys(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [sort_keys(item) for item in value]
    return value


def canonicalize(data: Any) -> str:
    """Serialise ``data`` to its canonical JSON text.

    Example::

        >>> canonicalize({"b": 1, "a": {"d": 2, "c": 3}})
        '{"a":{"c":3,"d":2},"b":1}'
    """
    return json.dumps(
        sort_keys(data),
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
    )


def calculate_hash(data: Any) -> str:
    """Compute the 64-character lowercase SHA-256 hex digest of ``data``.

    Args:
        data: Any JSON-serialisable structure.

    Returns:
        Hex digest of the UTF-8 encoded canonical serialisation.
    """
    return hashlib.sha256(canonicalize(data).encode("utf-8")).hexdigest()

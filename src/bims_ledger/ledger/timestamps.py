"""Canonical block timestamp format.

A block's digest covers its timestamp *as text*.  Creation and verification
must therefore render instants identically; both go through
:func:`format_timestamp`.

Canonical form: UTC, millisecond precision, ``Z`` suffix::

    2024-01-15T10:30:00.000Z
"""

from __future__ import annotations

from datetime import UTC, datetime

from bims_ledger.ledger.errors import InvalidTimestampError


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime (patched in tests)."""
    return datetime.now(UTC)


def format_timestamp(instant: datetime) -> str:
    """Render ``instant`` in the canonical block timestamp form.

    Naive datetimes are taken to be UTC.  Sub-millisecond precision is
    truncated, never rounded.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    instant = instant.astimezone(UTC)
    return instant.strftime("%Y-%m-%dT%H:%M:%S.") + f"{instant.microsecond // 1000:03d}Z"


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime) as aware UTC.

    Accepts the canonical ``Z`` form as well as explicit offsets and bare
    dates.  Naive values are taken to be UTC.

    Raises:
        InvalidTimestampError: If ``value`` is not a recognisable instant.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise InvalidTimestampError(f"Invalid timestamp: {value!r}")
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidTimestampError(f"Invalid timestamp: {value!r}") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def canonicalize_timestamp(value: str | datetime) -> str:
    """Re-render a stored timestamp (string or datetime) canonically."""
    return format_timestamp(parse_timestamp(value))

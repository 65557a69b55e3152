"""
Pure normalizer that converts a raw iSpindel feed entry into a NormalizedReading.

The feed delivers each entry as a JSON object whose numeric values usually
arrive as strings::

    {"entry_id": 42, "created_at": "2026-10-17T08:00:00Z",
     "field1": "25.3", "field2": "22.1", "field3": "C", "field4": "4.01",
     "field5": "1.052", "field6": "900", "field7": "-67", "field8": "farm-ap"}

Field mapping: field1=tilt, field2=temperature, field3=unit, field4=battery,
field5=gravity, field6=interval, field7=rssi, field8=optional SSID.

Any field that fails to parse rejects the whole entry with MalformedReading.
Integers must also fit their storage columns: entry_id a signed 64-bit
BIGINT, interval and rssi a signed 32-bit INTEGER. Physical ranges are not
checked here; out-of-range sensor values are an alerting concern.

This is a pure function: no side effects, no I/O, no clock.

CHANGELOG:
- 2026-10-17: Reject integers that overflow their storage columns
- 2026-10-17: Accept integral decimal strings ("900.0") for integer fields
- 2026-10-17: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import math
import re
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime

from backend.src.errors import MalformedReading
from backend.src.models import NormalizedReading

# ---------------------------------------------------------------------------
# Feed field names
# ---------------------------------------------------------------------------

_FLOAT_FIELDS: dict[str, str] = {
    "angle_tilt": "field1",
    "temperature": "field2",
    "battery": "field4",
    "gravity": "field5",
}
"""Maps NormalizedReading float attribute -> feed field name."""

_INT_FIELDS: dict[str, str] = {
    "interval": "field6",
    "rssi": "field7",
}
"""Maps NormalizedReading int attribute -> feed field name."""

_UNIT_FIELD = "field3"
_SSID_FIELD = "field8"

_INTEGER_RE = re.compile(r"[+-]?\d+")

BIGINT_RANGE = (-(2**63), 2**63 - 1)
INT32_RANGE = (-(2**31), 2**31 - 1)


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


def _check_range(field: str, raw: object, value: int, bounds: tuple[int, int]) -> int:
    """Return *value* if it lies within the inclusive *bounds*."""
    low, high = bounds
    if not low <= value <= high:
        raise MalformedReading(field, raw, "integer out of range")
    return value


def _parse_entry_id(value: object) -> int:
    """Parse the feed entry_id as a BIGINT identifier."""
    if isinstance(value, bool) or value is None:
        raise MalformedReading("entry_id", value, "not an integer")
    if isinstance(value, int):
        return _check_range("entry_id", value, value, BIGINT_RANGE)
    if isinstance(value, str) and _INTEGER_RE.fullmatch(value.strip()):
        return _check_range("entry_id", value, int(value.strip()), BIGINT_RANGE)
    raise MalformedReading("entry_id", value, "not an integer")


def _parse_timestamp(value: object) -> datetime:
    """Parse an ISO-8601 timestamp and convert it to UTC.

    Naive values are taken as UTC.
    """
    if not isinstance(value, str) or not value.strip():
        raise MalformedReading("created_at", value, "missing timestamp")
    try:
        ts = datetime.fromisoformat(value.strip())
    except ValueError:
        raise MalformedReading("created_at", value, "unparsable timestamp") from None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def _parse_float(field: str, value: object) -> float:
    """Parse a finite float from a number or numeric string."""
    if value is None:
        raise MalformedReading(field, value, "missing value")
    if isinstance(value, bool):
        raise MalformedReading(field, value, "not a number")
    try:
        result = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise MalformedReading(field, value, "not a number") from None
    if not math.isfinite(result):
        raise MalformedReading(field, value, "not a finite number")
    return result


def _parse_int(field: str, value: object) -> int:
    """Parse a 32-bit integer, allowing integral decimal strings such as '900.0'."""
    if value is None:
        raise MalformedReading(field, value, "missing value")
    if isinstance(value, bool):
        raise MalformedReading(field, value, "not an integer")
    if isinstance(value, int):
        return _check_range(field, value, value, INT32_RANGE)
    as_float = _parse_float(field, value)
    if not as_float.is_integer():
        raise MalformedReading(field, value, "not an integer")
    return _check_range(field, value, int(as_float), INT32_RANGE)


def _parse_ssid(value: object) -> str | None:
    """Return the SSID, or None when absent or blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_entry(
    entry: Mapping[str, object],
    *,
    batch_id: uuid.UUID,
) -> NormalizedReading:
    """Convert one raw feed entry into a NormalizedReading.

    Args:
        entry: Mapping of feed field names to raw values.
        batch_id: Batch the reading will be stored against.

    Returns:
        The parsed reading.

    Raises:
        MalformedReading: If the entry is not an object or any required
            field fails to parse. No partial reading is produced.
    """
    if not isinstance(entry, Mapping):
        raise MalformedReading("entry", entry, "not an object")

    entry_id = _parse_entry_id(entry.get("entry_id"))
    created_at = _parse_timestamp(entry.get("created_at"))

    fields: dict[str, float | int] = {}
    for attr, feed_field in _FLOAT_FIELDS.items():
        fields[attr] = _parse_float(feed_field, entry.get(feed_field))
    for attr, feed_field in _INT_FIELDS.items():
        fields[attr] = _parse_int(feed_field, entry.get(feed_field))

    unit = entry.get(_UNIT_FIELD)

    return NormalizedReading(
        entry_id=entry_id,
        batch_id=batch_id,
        created_at=created_at,
        unit="" if unit is None else str(unit),
        ssid=_parse_ssid(entry.get(_SSID_FIELD)),
        **fields,
    )


def entry_label(entry: object) -> str | None:
    """Return the raw entry_id of an entry as text for reporting, if any."""
    if isinstance(entry, Mapping) and entry.get("entry_id") is not None:
        return str(entry["entry_id"])
    return None

"""
Unit tests for the feed entry normalizer (STORY-004).

Tests verify:
- A well-formed entry maps field1..field8 onto NormalizedReading.
- Numeric strings and native numbers are both accepted.
- Any unparsable required field rejects the whole entry.
- Integers that overflow their storage columns are malformed.
- Optional SSID and unit handling.
- Timestamps keep the feed time and are always timezone-aware.

CHANGELOG:
- 2026-10-17: Cover BIGINT and INTEGER overflow
- 2026-10-17: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from backend.src.errors import MalformedReading
from backend.src.normalizer import entry_label, normalize_entry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

BATCH_ID = uuid.UUID("6f1c1f9e-2b7a-4c55-9d0e-0a1b2c3d4e5f")


def _make_entry(entry_id: object = 101, **overrides: object) -> dict:
    """Build a raw feed entry with healthy string-typed values."""
    entry = {
        "entry_id": entry_id,
        "created_at": "2026-10-17T08:00:00Z",
        "field1": "25.3",
        "field2": "22.1",
        "field3": "C",
        "field4": "4.01",
        "field5": "1.052",
        "field6": "900",
        "field7": "-67",
        "field8": "farm-ap",
    }
    entry.update(overrides)
    return entry


# ---------------------------------------------------------------------------
# Well-formed entries
# ---------------------------------------------------------------------------


class TestNormalizeValidEntry:
    """A valid entry produces a fully populated reading."""

    def test_maps_every_field(self) -> None:
        """field1..field8 land on the matching reading attributes."""
        reading = normalize_entry(_make_entry(), batch_id=BATCH_ID)

        assert reading.entry_id == 101
        assert reading.batch_id == BATCH_ID
        assert reading.created_at == datetime(2026, 10, 17, 8, 0, tzinfo=UTC)
        assert reading.angle_tilt == pytest.approx(25.3)
        assert reading.temperature == pytest.approx(22.1)
        assert reading.unit == "C"
        assert reading.battery == pytest.approx(4.01)
        assert reading.gravity == pytest.approx(1.052)
        assert reading.interval == 900
        assert reading.rssi == -67
        assert reading.ssid == "farm-ap"

    def test_native_numbers_accepted(self) -> None:
        """Numbers delivered as JSON numbers parse the same as strings."""
        entry = _make_entry(field1=25.3, field2=22, field6=900, field7=-67)

        reading = normalize_entry(entry, batch_id=BATCH_ID)

        assert reading.angle_tilt == pytest.approx(25.3)
        assert reading.temperature == 22.0
        assert reading.interval == 900
        assert reading.rssi == -67

    def test_string_entry_id_accepted(self) -> None:
        """A digit string entry_id is parsed as an integer."""
        reading = normalize_entry(_make_entry(entry_id="2048"), batch_id=BATCH_ID)
        assert reading.entry_id == 2048

    def test_integral_decimal_string_for_int_field(self) -> None:
        """'900.0' is an acceptable interval."""
        reading = normalize_entry(_make_entry(field6="900.0"), batch_id=BATCH_ID)
        assert reading.interval == 900

    def test_created_at_converted_to_utc(self) -> None:
        """The feed instant is kept, converted to UTC, never ingestion time."""
        reading = normalize_entry(
            _make_entry(created_at="2026-10-17T11:00:00+03:00"), batch_id=BATCH_ID
        )
        assert reading.created_at.utcoffset() == timedelta(0)
        assert reading.created_at == datetime(2026, 10, 17, 8, 0, tzinfo=UTC)

    def test_naive_created_at_is_utc(self) -> None:
        """A timestamp without offset is taken as UTC."""
        reading = normalize_entry(
            _make_entry(created_at="2026-10-17 08:00:00"), batch_id=BATCH_ID
        )
        assert reading.created_at.utcoffset() == timedelta(0)


# ---------------------------------------------------------------------------
# Optional fields
# ---------------------------------------------------------------------------


class TestOptionalFields:
    """SSID and unit are tolerated when absent."""

    @pytest.mark.parametrize("ssid", [None, "", "   "])
    def test_missing_or_blank_ssid_is_none(self, ssid: object) -> None:
        """Absent or blank field8 yields ssid=None rather than an error."""
        reading = normalize_entry(_make_entry(field8=ssid), batch_id=BATCH_ID)
        assert reading.ssid is None

    def test_ssid_key_absent(self) -> None:
        """An entry without a field8 key is still valid."""
        entry = _make_entry()
        del entry["field8"]
        assert normalize_entry(entry, batch_id=BATCH_ID).ssid is None

    def test_missing_unit_is_empty_string(self) -> None:
        """A null unit label becomes an empty string."""
        reading = normalize_entry(_make_entry(field3=None), batch_id=BATCH_ID)
        assert reading.unit == ""


# ---------------------------------------------------------------------------
# Malformed entries
# ---------------------------------------------------------------------------


class TestMalformedEntries:
    """Any unparsable required field rejects the entry."""

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("field1", "abc"),
            ("field2", None),
            ("field4", ""),
            ("field5", "1,052"),
            ("field2", "nan"),
            ("field1", "inf"),
            ("field2", True),
        ],
    )
    def test_bad_float_field(self, field: str, value: object) -> None:
        """Non-numeric, missing or non-finite floats are rejected."""
        with pytest.raises(MalformedReading) as exc_info:
            normalize_entry(_make_entry(**{field: value}), batch_id=BATCH_ID)
        assert exc_info.value.field == field

    @pytest.mark.parametrize("value", ["900.5", "x", None, False])
    def test_bad_int_field(self, value: object) -> None:
        """Fractional or non-numeric integers are rejected."""
        with pytest.raises(MalformedReading) as exc_info:
            normalize_entry(_make_entry(field6=value), batch_id=BATCH_ID)
        assert exc_info.value.field == "field6"

    @pytest.mark.parametrize("entry_id", [None, "abc", "1.5", True, 3.0])
    def test_bad_entry_id(self, entry_id: object) -> None:
        """entry_id must be an integer or a digit string."""
        with pytest.raises(MalformedReading) as exc_info:
            normalize_entry(_make_entry(entry_id=entry_id), batch_id=BATCH_ID)
        assert exc_info.value.field == "entry_id"

    @pytest.mark.parametrize(
        "entry_id",
        [2**63, "18446744073709551616", -(2**63) - 1, "-9223372036854775809"],
    )
    def test_entry_id_beyond_bigint_rejected(self, entry_id: object) -> None:
        """An entry_id that cannot be stored as BIGINT is malformed."""
        with pytest.raises(MalformedReading) as exc_info:
            normalize_entry(_make_entry(entry_id=entry_id), batch_id=BATCH_ID)
        assert exc_info.value.field == "entry_id"
        assert exc_info.value.reason == "integer out of range"

    def test_entry_id_bigint_bounds_accepted(self) -> None:
        high = normalize_entry(_make_entry(entry_id=str(2**63 - 1)), batch_id=BATCH_ID)
        low = normalize_entry(_make_entry(entry_id=-(2**63)), batch_id=BATCH_ID)
        assert high.entry_id == 2**63 - 1
        assert low.entry_id == -(2**63)

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("field6", "2147483648"),
            ("field6", 2**40),
            ("field7", "-2147483649"),
            ("field7", "1e12"),
        ],
    )
    def test_int_field_beyond_int32_rejected(self, field: str, value: object) -> None:
        """interval and rssi must fit a 32-bit INTEGER column."""
        with pytest.raises(MalformedReading) as exc_info:
            normalize_entry(_make_entry(**{field: value}), batch_id=BATCH_ID)
        assert exc_info.value.field == field
        assert exc_info.value.reason == "integer out of range"

    @pytest.mark.parametrize(
        ("value", "reason"),
        [
            (None, "missing timestamp"),
            ("", "missing timestamp"),
            ("yesterday", "unparsable timestamp"),
        ],
    )
    def test_bad_created_at(self, value: object, reason: str) -> None:
        """A missing or unparsable timestamp rejects the entry."""
        with pytest.raises(MalformedReading) as exc_info:
            normalize_entry(_make_entry(created_at=value), batch_id=BATCH_ID)
        assert exc_info.value.field == "created_at"
        assert exc_info.value.reason == reason

    def test_non_object_entry(self) -> None:
        """A list or scalar in the feed is not an entry."""
        with pytest.raises(MalformedReading) as exc_info:
            normalize_entry(["not", "an", "entry"], batch_id=BATCH_ID)  # type: ignore[arg-type]
        assert exc_info.value.field == "entry"

    def test_out_of_range_values_are_not_malformed(self) -> None:
        """Range checks belong to the evaluator, not the normalizer."""
        reading = normalize_entry(
            _make_entry(field2="80", field4="0.2", field1="400"), batch_id=BATCH_ID
        )
        assert reading.temperature == 80.0
        assert reading.angle_tilt == 400.0


# ---------------------------------------------------------------------------
# entry_label
# ---------------------------------------------------------------------------


class TestEntryLabel:
    """entry_label() reports the raw entry_id for dropped entries."""

    def test_label_from_entry(self) -> None:
        assert entry_label({"entry_id": 7}) == "7"

    def test_label_missing(self) -> None:
        assert entry_label({"field1": "1"}) is None
        assert entry_label("garbage") is None

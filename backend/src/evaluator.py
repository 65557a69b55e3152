"""
Threshold alert evaluator for iSpindel readings.

Maps a reading to an ordered list of violation messages. Rules are evaluated
independently in a fixed order, so one reading may violate several, and the
order of the list is the order the messages appear in the alert text.

Thresholds live in an AlertThresholds structure passed to the evaluator.
They are global; there is no per-tank or per-variety override.

This is a pure function: no side effects, no I/O.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

# ---------------------------------------------------------------------------
# Messages (order below is the evaluation order)
# ---------------------------------------------------------------------------

MSG_TEMPERATURE = "Temperature out of range (15-30°C)"
MSG_GRAVITY = "Gravity out of range (1.000-1.200)"
MSG_BATTERY = "Low battery voltage"
MSG_TILT = "Angle tilt out of expected range (0-360°)"
MSG_RSSI = "Weak signal strength (RSSI)"
MSG_SSID = "WiFi SSID not detected"

ALERT_SEPARATOR = "; "


@dataclass(frozen=True)
class AlertThresholds:
    """Inclusive bounds a healthy reading stays within.

    Attributes:
        temperature_min_c: Lowest acceptable temperature in Celsius.
        temperature_max_c: Highest acceptable temperature in Celsius.
        gravity_min: Lowest acceptable specific gravity.
        gravity_max: Highest acceptable specific gravity.
        battery_min_v: Battery voltage below which the device is flagged.
        tilt_min_deg: Lowest plausible tilt angle.
        tilt_max_deg: Highest plausible tilt angle.
        rssi_min_dbm: Signal strength below which the link is flagged.
    """

    temperature_min_c: float = 15.0
    temperature_max_c: float = 30.0
    gravity_min: float = 1.0
    gravity_max: float = 1.2
    battery_min_v: float = 3.0
    tilt_min_deg: float = 0.0
    tilt_max_deg: float = 360.0
    rssi_min_dbm: int = -80


DEFAULT_THRESHOLDS = AlertThresholds()


class ReadingLike(Protocol):
    """Any object carrying the evaluated reading attributes."""

    temperature: float
    gravity: float
    battery: float
    angle_tilt: float
    rssi: int
    ssid: str | None


def evaluate_reading(
    reading: ReadingLike,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> list[str]:
    """Return the violation messages for a reading, in evaluation order.

    Args:
        reading: A NormalizedReading or SpindelReading row.
        thresholds: Bounds to evaluate against.

    Returns:
        Violation messages; empty when the reading is healthy.
    """
    t = thresholds
    violations: list[str] = []

    if reading.temperature < t.temperature_min_c or reading.temperature > t.temperature_max_c:
        violations.append(MSG_TEMPERATURE)

    if reading.gravity < t.gravity_min or reading.gravity > t.gravity_max:
        violations.append(MSG_GRAVITY)

    if reading.battery < t.battery_min_v:
        violations.append(MSG_BATTERY)

    if reading.angle_tilt < t.tilt_min_deg or reading.angle_tilt > t.tilt_max_deg:
        violations.append(MSG_TILT)

    if reading.rssi < t.rssi_min_dbm:
        violations.append(MSG_RSSI)

    if not reading.ssid:
        violations.append(MSG_SSID)

    return violations


def build_alert_message(violations: list[str]) -> str:
    """Join violation messages into the alert text."""
    return ALERT_SEPARATOR.join(violations)

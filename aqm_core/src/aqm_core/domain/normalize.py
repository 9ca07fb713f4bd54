"""
Raw telemetry message -> validated :class:`Reading`.

Expected malformed input never raises; ``normalize`` returns either
:class:`Accepted` or :class:`Rejected` and the caller decides how to log it.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from aqm_core.domain.models import Reading

# Anything above this is taken to be epoch milliseconds.
MILLIS_THRESHOLD = 2e10

MEASUREMENT_FIELDS = ("temp", "hum", "gas", "dust")


@dataclass(frozen=True)
class Accepted:
    reading: Reading


@dataclass(frozen=True)
class Rejected:
    reason: str


NormalizeResult = Union[Accepted, Rejected]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def coerce_measurement(value: Any) -> Optional[float]:
    """Finite float, or None for absent / empty / unparseable values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if not _is_number(value):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def normalize_timestamp(ts: float) -> float:
    """Epoch milliseconds are truncated to seconds; seconds pass through."""
    if ts > MILLIS_THRESHOLD:
        return math.trunc(ts / 1000)
    return ts


def normalize_dust_unit(dust: Optional[float]) -> Optional[float]:
    """
    Mixed-unit dust heuristic, result in ug/m3.

    Values in [0, 1] are read as mg/m3 and multiplied by 1000, anything larger
    is assumed to already be ug/m3. This is lossy: a real ug/m3 reading below 1
    is inflated a thousandfold, and a sensor whose calibration drifts across
    the boundary silently changes unit.
    """
    if dust is None:
        return None
    if 0 <= dust <= 1:
        return dust * 1000
    return dust


def _device_id(raw: Mapping[str, Any]) -> Optional[str]:
    value = raw.get("deviceId", raw.get("device_id"))
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def normalize(raw: Any, *, dust_mixed_units: bool = False) -> NormalizeResult:
    if not isinstance(raw, Mapping):
        return Rejected("payload is not an object")

    device_id = _device_id(raw)
    if device_id is None:
        return Rejected("missing deviceId")

    ts = raw.get("ts")
    if not _is_number(ts):
        return Rejected("missing or non-numeric ts")
    try:
        finite = math.isfinite(ts)
    except OverflowError:
        finite = False
    if not finite:
        return Rejected("non-finite ts")

    values = {name: coerce_measurement(raw.get(name)) for name in MEASUREMENT_FIELDS}
    if dust_mixed_units:
        values["dust"] = normalize_dust_unit(values["dust"])

    return Accepted(Reading(device_id=device_id, ts=normalize_timestamp(ts), **values))

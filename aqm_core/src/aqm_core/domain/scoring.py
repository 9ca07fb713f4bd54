"""
Air-quality scoring.

Every input gets a 0..100 goodness score (100 = ideal) and the index is the
worst of the four, floored to an integer. Missing inputs take neutral
defaults, so a reading with no measurements at all scores 100.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from aqm_core.domain.models import Level, Reading


class ScoringConfigError(ValueError):
    """Raised for curve parameters that cannot describe a valid score curve."""


class DustUnit(str, Enum):
    MG_M3 = "mg/m3"
    UG_M3 = "ug/m3"


SAFE_MIN_INDEX = 80
WARN_MIN_INDEX = 60

DEFAULT_TEMP_C = 24.0
DEFAULT_HUM_PCT = 50.0
DEFAULT_DUST_MG_M3 = 0.0
DEFAULT_GAS_PPM = 0.0


def _clamp100(x: float) -> float:
    if x < 0:
        return 0.0
    if x > 100:
        return 100.0
    return x


def score_decreasing_one_sided(x: float, good: float, bad: float) -> float:
    """100 at or below *good*, 0 at or above *bad*, linear in between."""
    if good >= bad:
        raise ScoringConfigError(f"require good < bad, got good={good} bad={bad}")

    if x <= good:
        return 100.0
    if x < bad:
        return _clamp100(100 * (bad - x) / (bad - good))
    return 0.0


def score_trapezoid(x: float, a: float, b: float, c: float, d: float) -> float:
    """0 outside (a, d), 100 on [b, c], linear ramps on [a, b] and [c, d]."""
    if a >= b or b > c or c >= d:
        raise ScoringConfigError(f"require a < b <= c < d, got {a}, {b}, {c}, {d}")

    if x <= a:
        return 0.0
    if x < b:
        return _clamp100(100 * (x - a) / (b - a))
    if x <= c:
        return 100.0
    if x < d:
        return _clamp100(100 * (d - x) / (d - c))
    return 0.0


@dataclass(frozen=True)
class OneSidedCurve:
    good: float
    bad: float

    def __post_init__(self) -> None:
        if self.good >= self.bad:
            raise ScoringConfigError(f"require good < bad, got {self.good}, {self.bad}")

    def score(self, x: float) -> float:
        return score_decreasing_one_sided(x, self.good, self.bad)


@dataclass(frozen=True)
class TrapezoidCurve:
    a: float
    b: float
    c: float
    d: float

    def __post_init__(self) -> None:
        if self.a >= self.b or self.b > self.c or self.c >= self.d:
            raise ScoringConfigError(
                f"require a < b <= c < d, got {self.a}, {self.b}, {self.c}, {self.d}"
            )

    def score(self, x: float) -> float:
        return score_trapezoid(x, self.a, self.b, self.c, self.d)


# Built at import, so a bad constant fails before the first reading arrives.
TEMP_CURVE = TrapezoidCurve(16, 22, 26, 32)
HUM_CURVE = TrapezoidCurve(30, 40, 60, 70)
DUST_CURVE = OneSidedCurve(0.03, 0.15)
GAS_CURVE = OneSidedCurve(200, 1000)


def score_temp_c(temp_c: float) -> float:
    return TEMP_CURVE.score(temp_c)


def score_humidity_pct(rh: float) -> float:
    return HUM_CURVE.score(rh)


def score_dust_mg_m3(dust: float) -> float:
    return DUST_CURVE.score(dust)


def score_gas_ppm(gas: float) -> float:
    return GAS_CURVE.score(gas)


def level_for(index: int) -> Level:
    if index >= SAFE_MIN_INDEX:
        return Level.SAFE
    if index >= WARN_MIN_INDEX:
        return Level.WARN
    return Level.DANGER


def _or_default(value: Optional[float], default: float) -> float:
    return default if value is None else value


def sub_scores(reading: Reading, dust_unit: DustUnit = DustUnit.MG_M3) -> Tuple[float, ...]:
    dust = _or_default(reading.dust, DEFAULT_DUST_MG_M3)
    if dust_unit is DustUnit.UG_M3 and reading.dust is not None:
        dust = dust / 1000
    return (
        score_temp_c(_or_default(reading.temp, DEFAULT_TEMP_C)),
        score_humidity_pct(_or_default(reading.hum, DEFAULT_HUM_PCT)),
        score_dust_mg_m3(dust),
        score_gas_ppm(_or_default(reading.gas, DEFAULT_GAS_PPM)),
    )


def score(reading: Reading, dust_unit: DustUnit = DustUnit.MG_M3) -> Tuple[int, Level]:
    """Return ``(index, level)`` for *reading*."""
    index = math.floor(min(sub_scores(reading, dust_unit)))
    return index, level_for(index)

"""Unit normalization for raw sensor samples.

Each continuous MeasurementKind has exactly one canonical unit and a table of
raw units it accepts, with the conversion from each raw unit into the
canonical one.  Sleep analysis is categorical and maps its integer category
value to a stage label instead.

Nothing in this module raises for unexpected input: unsupported kinds become
``value=0, unit="unknown"`` and unrecognized raw units are treated as the
kind's default raw unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from fhir_sync.base import (
    CATEGORY_UNIT,
    SLEEP_FALLBACK_LABEL,
    SLEEP_STAGE_LABELS,
    UNKNOWN_UNIT,
    MeasurementKind,
    NormalizedDataPoint,
    RawSample,
    SleepStage,
    ensure_utc,
)

logger = logging.getLogger("fhir_sync.normalizer")

Converter = Callable[[float], float]

# mg/dL per mmol/L for glucose (molar mass 180.15588 g/mol)
_GLUCOSE_MG_DL_PER_MMOL_L = 18.015588


def _identity(x: float) -> float:
    return x


def _scale(factor: float) -> Converter:
    return lambda x: x * factor


def _fahrenheit_to_celsius(x: float) -> float:
    return (x - 32.0) * 5.0 / 9.0


@dataclass(frozen=True)
class UnitRule:
    """Conversion rule for one continuous kind.

    Attributes:
        canonical_unit:   Unit of the normalized value.
        default_raw_unit: Unit assumed when the sample carries none.
        converters:       Raw unit → function producing the canonical value.
    """

    canonical_unit: str
    default_raw_unit: str
    converters: dict[str, Converter]

    def converter_for(self, raw_unit: str | None) -> Converter | None:
        unit = raw_unit or self.default_raw_unit
        if unit in self.converters:
            return self.converters[unit]
        # HealthKit exports glucose as e.g. "mmol<180.1558800000541>/L"
        if unit.startswith("mmol<") and unit.endswith(">/L"):
            return self.converters.get("mmol/L")
        return None


_PER_MINUTE = {"count/min": _identity, "/min": _identity}

_UNIT_RULES: dict[MeasurementKind, UnitRule] = {
    MeasurementKind.HEART_RATE: UnitRule(
        "beats/min", "count/min", {**_PER_MINUTE, "beats/min": _identity}
    ),
    MeasurementKind.BLOOD_PRESSURE_SYSTOLIC: UnitRule(
        "mmHg", "mmHg", {"mmHg": _identity}
    ),
    MeasurementKind.BLOOD_PRESSURE_DIASTOLIC: UnitRule(
        "mmHg", "mmHg", {"mmHg": _identity}
    ),
    # Saturation is stored as a 0–1 fraction even when labelled "%"
    MeasurementKind.OXYGEN_SATURATION: UnitRule("%", "%", {"%": _scale(100.0)}),
    MeasurementKind.RESPIRATORY_RATE: UnitRule(
        "breaths/min", "count/min", {**_PER_MINUTE, "breaths/min": _identity}
    ),
    MeasurementKind.BODY_TEMPERATURE: UnitRule(
        "°C",
        "degC",
        {
            "degC": _identity,
            "°C": _identity,
            "degF": _fahrenheit_to_celsius,
            "°F": _fahrenheit_to_celsius,
        },
    ),
    MeasurementKind.STEP_COUNT: UnitRule(
        "steps", "count", {"count": _identity, "steps": _identity}
    ),
    MeasurementKind.DISTANCE_WALKING_RUNNING: UnitRule(
        "m",
        "m",
        {
            "m": _identity,
            "km": _scale(1000.0),
            "mi": _scale(1609.344),
            "ft": _scale(0.3048),
            "yd": _scale(0.9144),
        },
    ),
    MeasurementKind.ACTIVE_ENERGY_BURNED: UnitRule(
        "kcal",
        "kcal",
        {"kcal": _identity, "Cal": _identity, "kJ": _scale(1 / 4.184)},
    ),
    MeasurementKind.FLIGHTS_CLIMBED: UnitRule(
        "floors", "count", {"count": _identity, "floors": _identity}
    ),
    MeasurementKind.BODY_MASS: UnitRule(
        "kg",
        "kg",
        {"kg": _identity, "g": _scale(0.001), "lb": _scale(0.45359237)},
    ),
    MeasurementKind.HEIGHT: UnitRule(
        "cm",
        "cm",
        {
            "cm": _identity,
            "m": _scale(100.0),
            "in": _scale(2.54),
            "ft": _scale(30.48),
        },
    ),
    MeasurementKind.BODY_MASS_INDEX: UnitRule(
        "kg/m²",
        "count",
        {"count": _identity, "kg/m²": _identity, "kg/m2": _identity},
    ),
    MeasurementKind.BLOOD_GLUCOSE: UnitRule(
        "mmol/L",
        "mg/dL",
        {
            "mmol/L": _identity,
            "mg/dL": _scale(1 / _GLUCOSE_MG_DL_PER_MMOL_L),
        },
    ),
}


def canonical_unit(kind: str | MeasurementKind) -> str:
    """Return the canonical unit for a kind (``"unknown"`` if unsupported)."""
    resolved = MeasurementKind.resolve(kind)
    if resolved is None:
        return UNKNOWN_UNIT
    if resolved.is_categorical:
        return CATEGORY_UNIT
    return _UNIT_RULES[resolved].canonical_unit


def sleep_stage_label(category_value: int | None) -> str:
    """Map a sleep analysis category value to its stage label."""
    if category_value is None:
        return SLEEP_FALLBACK_LABEL
    try:
        return SLEEP_STAGE_LABELS[SleepStage(category_value)]
    except ValueError:
        return SLEEP_FALLBACK_LABEL


class UnitNormalizer:
    """Convert RawSample records into NormalizedDataPoint records."""

    def normalize(self, raw: RawSample) -> NormalizedDataPoint:
        start = ensure_utc(raw.start)
        end = ensure_utc(raw.end)
        if end < start:
            logger.warning(
                "Sample %s ends before it starts (%s < %s); clamping end",
                raw.kind, end, start,
            )
            end = start

        common = dict(
            id=raw.stable_id(),
            kind=raw.kind,
            timestamp=start,
            end_timestamp=end,
            source_name=raw.source_name,
            source_identifier=raw.source_identifier,
        )

        kind = MeasurementKind.resolve(raw.kind)
        if kind is None:
            logger.debug("Unsupported sample kind %r; emitting placeholder value", raw.kind)
            return NormalizedDataPoint(value=0.0, unit=UNKNOWN_UNIT, **common)

        if kind.is_categorical:
            return NormalizedDataPoint(
                label=sleep_stage_label(raw.category_value),
                unit=CATEGORY_UNIT,
                **common,
            )

        rule = _UNIT_RULES[kind]
        convert = rule.converter_for(raw.unit)
        if convert is None:
            logger.warning(
                "Unrecognized unit %r for %s; assuming %s",
                raw.unit, kind.value, rule.default_raw_unit,
            )
            convert = rule.converter_for(rule.default_raw_unit) or _identity

        return NormalizedDataPoint(
            value=float(convert(float(raw.magnitude))),
            unit=rule.canonical_unit,
            **common,
        )

    def normalize_all(self, samples: list[RawSample]) -> list[NormalizedDataPoint]:
        """Normalize a batch, sorted by descending timestamp."""
        points = [self.normalize(s) for s in samples]
        points.sort(key=lambda p: p.timestamp, reverse=True)
        return points

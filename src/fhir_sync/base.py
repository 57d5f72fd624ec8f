"""Canonical data models for the fhir_sync pipeline.

Every sample source must subclass SampleSource and yield RawSample records.
Those are normalized into NormalizedDataPoint, the single unit of work
consumed by the observation builder, bundle builder and sync cycle.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum

#: Namespace for content-derived data point ids.
_POINT_ID_NAMESPACE = uuid.UUID("6f1c2b8e-3d4a-5e6f-8a9b-0c1d2e3f4a5b")


# ---------------------------------------------------------------------------
# Measurement kinds
# ---------------------------------------------------------------------------


class MeasurementKind(str, Enum):
    """Supported HealthKit sample types.

    The enum closes the set of kinds every lookup table must cover.
    Identifiers outside it resolve to ``None`` and take the fallback path
    in the normalizer and vocabulary mapper.
    """

    HEART_RATE = "HKQuantityTypeIdentifierHeartRate"
    BLOOD_PRESSURE_SYSTOLIC = "HKQuantityTypeIdentifierBloodPressureSystolic"
    BLOOD_PRESSURE_DIASTOLIC = "HKQuantityTypeIdentifierBloodPressureDiastolic"
    OXYGEN_SATURATION = "HKQuantityTypeIdentifierOxygenSaturation"
    RESPIRATORY_RATE = "HKQuantityTypeIdentifierRespiratoryRate"
    BODY_TEMPERATURE = "HKQuantityTypeIdentifierBodyTemperature"
    STEP_COUNT = "HKQuantityTypeIdentifierStepCount"
    DISTANCE_WALKING_RUNNING = "HKQuantityTypeIdentifierDistanceWalkingRunning"
    ACTIVE_ENERGY_BURNED = "HKQuantityTypeIdentifierActiveEnergyBurned"
    FLIGHTS_CLIMBED = "HKQuantityTypeIdentifierFlightsClimbed"
    BODY_MASS = "HKQuantityTypeIdentifierBodyMass"
    HEIGHT = "HKQuantityTypeIdentifierHeight"
    BODY_MASS_INDEX = "HKQuantityTypeIdentifierBodyMassIndex"
    BLOOD_GLUCOSE = "HKQuantityTypeIdentifierBloodGlucose"
    SLEEP_ANALYSIS = "HKCategoryTypeIdentifierSleepAnalysis"

    @classmethod
    def resolve(cls, identifier: str | MeasurementKind) -> MeasurementKind | None:
        """Return the member for an identifier, or None if it is not supported."""
        if isinstance(identifier, cls):
            return identifier
        try:
            return cls(identifier)
        except ValueError:
            return None

    @property
    def is_categorical(self) -> bool:
        return self in CATEGORICAL_KINDS


CATEGORICAL_KINDS: frozenset[MeasurementKind] = frozenset({MeasurementKind.SLEEP_ANALYSIS})


class SleepStage(IntEnum):
    """HealthKit sleep analysis category values."""

    IN_BED = 0
    ASLEEP = 1
    AWAKE = 2
    CORE = 3
    DEEP = 4
    REM = 5


#: Label used for sleep category values outside SleepStage.
SLEEP_FALLBACK_LABEL = "Sleep"

SLEEP_STAGE_LABELS: dict[SleepStage, str] = {
    SleepStage.IN_BED: "In Bed",
    SleepStage.ASLEEP: "Asleep",
    SleepStage.AWAKE: "Awake",
    SleepStage.CORE: "Core Sleep",
    SleepStage.DEEP: "Deep Sleep",
    SleepStage.REM: "REM Sleep",
}

#: Unit carried by categorical data points.
CATEGORY_UNIT = "category"
#: Unit carried by data points of unsupported kinds.
UNKNOWN_UNIT = "unknown"

CANONICAL_UNITS: frozenset[str] = frozenset({
    "beats/min",
    "breaths/min",
    "mmHg",
    "%",
    "°C",
    "steps",
    "m",
    "kcal",
    "floors",
    "kg",
    "cm",
    "kg/m²",
    "mmol/L",
    CATEGORY_UNIT,
    UNKNOWN_UNIT,
})


# ---------------------------------------------------------------------------
# Pipeline records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawSample:
    """One sample as produced by the sensor store.

    Attributes:
        kind:              Sample type identifier (HealthKit identifier string).
        magnitude:         Numeric value in ``unit`` (raw, kind-specific scale).
        start:             Sample start time.
        end:               Sample end time; equal to ``start`` for instant kinds.
        source_name:       Name of the recording app or device.
        source_identifier: Bundle identifier of the recording app.
        unit:              Raw unit string. None means the kind's default raw unit.
        category_value:    Integer category value, categorical kinds only.
        uuid:              Sample UUID assigned by the store, if any.
    """

    kind: str
    magnitude: float
    start: datetime
    end: datetime
    source_name: str = ""
    source_identifier: str = ""
    unit: str | None = None
    category_value: int | None = None
    uuid: str | None = None

    def stable_id(self) -> str:
        """Return the store UUID, or a UUIDv5 derived from the sample content.

        The derived id is deterministic so that re-submitting the same window
        produces the same resource ids.
        """
        if self.uuid:
            return self.uuid
        key = "|".join(
            str(part)
            for part in (
                self.kind,
                format_instant(self.start),
                format_instant(self.end),
                self.source_identifier,
                self.magnitude,
                self.unit,
                self.category_value,
            )
        )
        return str(uuid.uuid5(_POINT_ID_NAMESPACE, key)).upper()


@dataclass(frozen=True)
class NormalizedDataPoint:
    """Canonical measurement in a uniform unit.

    Exactly one of ``value`` / ``label`` is populated: ``label`` for
    categorical kinds (sleep stages), ``value`` for everything else.
    ``unit`` is always a member of CANONICAL_UNITS.
    """

    id: str
    kind: str
    unit: str
    timestamp: datetime
    end_timestamp: datetime
    source_name: str = ""
    source_identifier: str = ""
    value: float | None = None
    label: str | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.label is None):
            raise ValueError("exactly one of value or label must be set")
        if self.end_timestamp < self.timestamp:
            raise ValueError("end_timestamp must not precede timestamp")
        if self.unit not in CANONICAL_UNITS:
            raise ValueError(f"non-canonical unit {self.unit!r}")

    @property
    def measurement_kind(self) -> MeasurementKind | None:
        return MeasurementKind.resolve(self.kind)

    @property
    def is_categorical(self) -> bool:
        kind = self.measurement_kind
        return kind is not None and kind.is_categorical


@dataclass(frozen=True)
class VocabularyEntry:
    """Standardized coding for one measurement kind."""

    code: str
    display: str
    category: str


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one submission attempt.

    Attributes:
        success:   True when the server accepted the delivery.
        message:   Server diagnostics or a failure description.
        accepted:  Resources the server reports as accepted.
        rejected:  Resources the server reports as rejected.
        timestamp: UTC time the outcome was produced.
    """

    success: bool
    message: str
    accepted: int = 0
    rejected: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Sample source boundary
# ---------------------------------------------------------------------------


class SampleSource(ABC):
    """Read-only access to the sensor store.

    Implementations own the query mechanism and any permission handling.
    The pipeline makes no assumption about the order of returned samples.
    """

    #: Human-readable name for logging.
    DISPLAY_NAME: str = "Unknown Source"

    @abstractmethod
    async def fetch_samples(self, start: datetime, end: datetime) -> list[RawSample]:
        """Return all samples whose start lies in ``[start, end]``.

        Args:
            start: Window start (UTC).
            end:   Window end (UTC).

        Returns:
            List of RawSample, in any order.
        """


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_instant(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC instant with a ``Z`` suffix."""
    return ensure_utc(value).replace(microsecond=0).isoformat().replace("+00:00", "Z")

"""fhir_sync — HealthKit samples to FHIR R4, submitted to a clinical backend.

Pipeline:
    normalizer    — RawSample → NormalizedDataPoint (canonical units)
    vocabulary    — kind → LOINC / UCUM / SNOMED CT codes
    observation   — NormalizedDataPoint → Observation
    bundle        — Observations → collection Bundle
    client        — Bundle → POST → SyncOutcome
    result_parser — OperationOutcome diagnostics → accepted/rejected counts

Subpackages:
    sources/ — SampleSource implementations (Apple Health export)
    sync/    — Sync cycle orchestration
"""

from fhir_sync.base import (
    MeasurementKind,
    NormalizedDataPoint,
    RawSample,
    SampleSource,
    SleepStage,
    SyncOutcome,
    VocabularyEntry,
)
from fhir_sync.bundle import BundleBuilder
from fhir_sync.client import SyncClient
from fhir_sync.normalizer import UnitNormalizer
from fhir_sync.observation import ObservationBuilder
from fhir_sync.result_parser import ResultParser
from fhir_sync.vocabulary import VocabularyMapper

__all__ = [
    "MeasurementKind",
    "SleepStage",
    "RawSample",
    "NormalizedDataPoint",
    "VocabularyEntry",
    "SyncOutcome",
    "SampleSource",
    "UnitNormalizer",
    "VocabularyMapper",
    "ObservationBuilder",
    "BundleBuilder",
    "SyncClient",
    "ResultParser",
]

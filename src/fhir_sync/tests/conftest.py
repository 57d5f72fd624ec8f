"""Shared fixtures for fhir_sync tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest
from fastapi import FastAPI, Request, Response

from fhir_sync.base import MeasurementKind, RawSample, SampleSource, SleepStage
from fhir_sync.bundle import BundleBuilder
from fhir_sync.config import Settings
from fhir_sync.observation import ObservationBuilder
from fhir_sync.vocabulary import VocabularyMapper
from fhir_sync.vocabulary_loader import VocabularyConfig, load_vocabulary

FIXED_NOW = datetime(2026, 2, 23, 12, 0, 0, tzinfo=timezone.utc)
SAMPLE_TIME = datetime(2026, 2, 23, 7, 30, 0, tzinfo=timezone.utc)

# Five usable records (four inside 2026-02-20..24) plus two malformed ones.
EXPORT_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_DK">
 <ExportDate value="2026-02-23 12:00:00 +0100"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Apple Watch" unit="count/min"
         startDate="2026-02-23 08:30:00 +0100" endDate="2026-02-23 08:30:00 +0100" value="61"/>
 <Record type="HKQuantityTypeIdentifierOxygenSaturation" sourceName="Apple Watch" unit="%"
         startDate="2026-02-23 08:31:00 +0100" endDate="2026-02-23 08:31:00 +0100" value="0.98"/>
 <Record type="HKQuantityTypeIdentifierBloodGlucose" sourceName="Dexcom" unit="mg/dL"
         startDate="2026-02-22 21:00:00 +0100" endDate="2026-02-22 21:00:00 +0100" value="108"/>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" sourceName="Apple Watch"
         startDate="2026-02-23 01:00:00 +0100" endDate="2026-02-23 02:00:00 +0100"
         value="HKCategoryValueSleepAnalysisAsleepREM"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="iPhone" unit="count"
         startDate="2025-12-01 10:00:00 +0100" endDate="2025-12-01 10:05:00 +0100" value="120"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Apple Watch" unit="count/min"
         startDate="garbage" endDate="garbage" value="70"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Apple Watch" unit="count/min"
         startDate="2026-02-23 09:00:00 +0100" endDate="2026-02-23 09:00:00 +0100" value="n/a"/>
</HealthData>
"""


# ---------------------------------------------------------------------------
# Vocabulary / builders
# ---------------------------------------------------------------------------


@pytest.fixture
def vocabulary() -> VocabularyConfig:
    """Load the real bundled vocabulary."""
    return load_vocabulary()


@pytest.fixture
def mapper(vocabulary: VocabularyConfig) -> VocabularyMapper:
    return VocabularyMapper(vocabulary)


@pytest.fixture
def observation_builder(mapper: VocabularyMapper) -> ObservationBuilder:
    return ObservationBuilder(mapper=mapper, clock=lambda: FIXED_NOW)


@pytest.fixture
def bundle_builder(observation_builder: ObservationBuilder) -> BundleBuilder:
    return BundleBuilder(observation_builder=observation_builder, clock=lambda: FIXED_NOW)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        server_url="http://backend.test",
        device_id="test-device",
        request_timeout_seconds=30.0,
        sync_window_days=7,
    )


# ---------------------------------------------------------------------------
# Sample factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_sample() -> Callable[..., RawSample]:
    """Factory for RawSample with realistic defaults."""

    def _make(
        kind: str | MeasurementKind = MeasurementKind.HEART_RATE,
        magnitude: float = 62.0,
        unit: str | None = None,
        category_value: int | None = None,
        start: datetime = SAMPLE_TIME,
        end: datetime | None = None,
        uuid: str | None = None,
    ) -> RawSample:
        return RawSample(
            kind=kind.value if isinstance(kind, MeasurementKind) else kind,
            magnitude=magnitude,
            unit=unit,
            category_value=category_value,
            start=start,
            end=end or start,
            source_name="Apple Watch",
            source_identifier="com.apple.health.8F2C",
            uuid=uuid,
        )

    return _make


@pytest.fixture
def sleep_sample(make_sample) -> RawSample:
    return make_sample(
        kind=MeasurementKind.SLEEP_ANALYSIS,
        magnitude=0.0,
        category_value=int(SleepStage.DEEP),
        start=datetime(2026, 2, 23, 1, 0, 0, tzinfo=timezone.utc),
        end=datetime(2026, 2, 23, 2, 15, 0, tzinfo=timezone.utc),
        uuid="B1E3D2A4-0000-4000-8000-000000000002",
    )


class StaticSource(SampleSource):
    """SampleSource that returns a fixed list and records the requested window."""

    DISPLAY_NAME = "Static test source"

    def __init__(self, samples: list[RawSample], fail: bool = False) -> None:
        self.samples = samples
        self.fail = fail
        self.windows: list[tuple[datetime, datetime]] = []

    async def fetch_samples(self, start: datetime, end: datetime) -> list[RawSample]:
        self.windows.append((start, end))
        if self.fail:
            raise RuntimeError("store unavailable")
        return list(self.samples)


@pytest.fixture
def static_source() -> type[StaticSource]:
    return StaticSource


@pytest.fixture
def export_xml() -> bytes:
    """A small Apple Health export.xml document."""
    return EXPORT_XML


# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------


class FakeBackend:
    """FastAPI app mimicking the backend's HealthKit endpoints.

    Set ``submit_status`` / ``submit_body`` / ``status_code`` to shape the
    responses; received bundles and headers are recorded on the instance.
    """

    def __init__(self) -> None:
        self.submit_status = 200
        self.submit_body: str = (
            '{"resourceType": "OperationOutcome", "issue": [{"severity": "information", '
            '"code": "informational", "diagnostics": "Processed 0 resources: 0 accepted, 0 rejected"}]}'
        )
        self.status_code = 200
        self.received: list[dict] = []
        self.headers: list[dict[str, str]] = []
        self.app = FastAPI()

        @self.app.post("/api/healthkit/fhir")
        async def submit(request: Request) -> Response:
            self.received.append(await request.json())
            self.headers.append(dict(request.headers))
            return Response(
                content=self.submit_body,
                status_code=self.submit_status,
                media_type="application/fhir+json",
            )

        @self.app.get("/api/healthkit/status")
        async def status() -> Response:
            return Response(content='{"status": "ok"}', status_code=self.status_code)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def backend_client(fake_backend: FakeBackend) -> httpx.AsyncClient:
    """httpx client routed in-process to the fake backend."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=fake_backend.app))


@pytest.fixture
def failing_client() -> httpx.AsyncClient:
    """httpx client whose every request fails to connect."""

    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    return httpx.AsyncClient(transport=httpx.MockTransport(_refuse))

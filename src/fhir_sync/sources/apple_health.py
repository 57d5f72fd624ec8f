"""Apple Health export source.

Reads the ``export.xml`` file produced by the Health app's "Export All Health
Data" action and yields its ``<Record>`` elements as RawSample records.

Apple does not provide a server-side API, so the export file stands in for a
live HealthKit query.  The export carries no bundle identifier for the
recording app; ``sourceName`` is used for both source fields.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from xml.etree import ElementTree as ET

from fhir_sync.base import (
    MeasurementKind,
    RawSample,
    SampleSource,
    SleepStage,
    ensure_utc,
)

logger = logging.getLogger("fhir_sync.sources.apple_health")

# Sleep stage values as written in the export
_SLEEP_VALUE_MAP: dict[str, SleepStage] = {
    "HKCategoryValueSleepAnalysisInBed": SleepStage.IN_BED,
    "HKCategoryValueSleepAnalysisAsleep": SleepStage.ASLEEP,
    "HKCategoryValueSleepAnalysisAsleepUnspecified": SleepStage.ASLEEP,
    "HKCategoryValueSleepAnalysisAwake": SleepStage.AWAKE,
    "HKCategoryValueSleepAnalysisAsleepCore": SleepStage.CORE,
    "HKCategoryValueSleepAnalysisAsleepDeep": SleepStage.DEEP,
    "HKCategoryValueSleepAnalysisAsleepREM": SleepStage.REM,
}

# Export timestamps look like "2026-02-22 23:00:00 +0100"
_EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def parse_export_datetime(value: str | None) -> datetime | None:
    """Parse an export timestamp to an aware UTC datetime, or None."""
    if not value:
        return None
    try:
        return ensure_utc(datetime.strptime(value, _EXPORT_DATE_FORMAT))
    except ValueError:
        pass
    try:
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        logger.debug("Could not parse export datetime: %r", value)
        return None


def _sleep_category_value(raw_value: str) -> int | None:
    stage = _SLEEP_VALUE_MAP.get(raw_value)
    if stage is not None:
        return int(stage)
    try:
        return int(raw_value)
    except ValueError:
        return None


class AppleHealthExportSource(SampleSource):
    """SampleSource over an Apple Health XML export.

    Args:
        export: Path to ``export.xml`` or its raw bytes.
    """

    DISPLAY_NAME = "Apple Health export"

    def __init__(self, export: Path | str | bytes) -> None:
        self._export = export

    def _read(self) -> bytes:
        if isinstance(self._export, bytes):
            return self._export
        return Path(self._export).read_bytes()

    async def fetch_samples(self, start: datetime, end: datetime) -> list[RawSample]:
        start, end = ensure_utc(start), ensure_utc(end)
        return [
            s for s in self.parse_xml_export(self._read())
            if start <= s.start <= end
        ]

    def parse_xml_export(self, xml_bytes: bytes) -> list[RawSample]:
        """Parse every ``<Record>`` in an export into RawSample records.

        Records with a missing type or unparseable dates are skipped.

        Raises:
            ValueError: If the document is not well-formed XML.
        """
        try:
            root = ET.fromstring(xml_bytes)
        except ET.ParseError as exc:
            logger.error("Apple Health XML parse error: %s", exc)
            raise ValueError(f"Invalid Apple Health XML: {exc}") from exc

        samples: list[RawSample] = []
        skipped = 0
        for record in root.iter("Record"):
            sample = self._record_to_sample(record)
            if sample is None:
                skipped += 1
                continue
            samples.append(sample)

        logger.info(
            "Apple Health XML: parsed %d records (%d skipped)", len(samples), skipped
        )
        return samples

    def _record_to_sample(self, record: ET.Element) -> RawSample | None:
        rec_type = record.get("type", "")
        start = parse_export_datetime(record.get("startDate"))
        end = parse_export_datetime(record.get("endDate")) or start
        if not rec_type or start is None or end is None:
            logger.debug("Skipping record with missing type or dates: %r", record.attrib)
            return None

        raw_value = record.get("value", "")
        source_name = record.get("sourceName", "")
        common = dict(
            kind=rec_type,
            start=start,
            end=end,
            source_name=source_name,
            source_identifier=source_name,
        )

        if MeasurementKind.resolve(rec_type) is MeasurementKind.SLEEP_ANALYSIS:
            return RawSample(
                magnitude=0.0,
                category_value=_sleep_category_value(raw_value),
                **common,
            )

        try:
            magnitude = float(raw_value)
        except ValueError:
            logger.debug("Skipping %s record with non-numeric value %r", rec_type, raw_value)
            return None

        return RawSample(magnitude=magnitude, unit=record.get("unit") or None, **common)

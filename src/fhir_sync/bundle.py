"""Collect Observation resources into a single collection Bundle."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable

from fhir_sync.base import NormalizedDataPoint, format_instant
from fhir_sync.models import Bundle, BundleEntry
from fhir_sync.observation import ObservationBuilder

logger = logging.getLogger("fhir_sync.bundle")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BundleBuilder:
    """Wrap every data point's Observation in a ``collection`` Bundle.

    Args:
        observation_builder: Builder used per point.
        clock:               Returns the bundle timestamp.
    """

    def __init__(
        self,
        observation_builder: ObservationBuilder | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._observations = observation_builder or ObservationBuilder(clock=clock)
        self._clock = clock

    def build(self, points: Iterable[NormalizedDataPoint]) -> Bundle:
        entries: list[BundleEntry] = []
        for point in points:
            resource = self._observations.build(point)
            reference_id = resource.id or str(uuid.uuid4()).upper()
            entries.append(BundleEntry(full_url=f"urn:uuid:{reference_id}", resource=resource))

        logger.debug("Built bundle with %d entries", len(entries))
        return Bundle(timestamp=format_instant(self._clock()), entry=entries)

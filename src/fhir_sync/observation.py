"""Build FHIR Observation resources from normalized data points."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from fhir_sync.base import NormalizedDataPoint, format_instant
from fhir_sync.models import (
    BUNDLE_IDENTIFIER_SYSTEM,
    HEALTHKIT_SYSTEM,
    LOINC_SYSTEM,
    OBSERVATION_CATEGORY_SYSTEM,
    SNOMED_SYSTEM,
    UCUM_SYSTEM,
    CodeableConcept,
    Coding,
    DeviceReference,
    Identifier,
    Observation,
    Period,
    Quantity,
)
from fhir_sync.vocabulary import VocabularyMapper

logger = logging.getLogger("fhir_sync.observation")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ObservationBuilder:
    """Assemble one Observation per NormalizedDataPoint.

    The resource carries two codings: the LOINC code for interoperability and
    the original HealthKit identifier for provenance.  Categorical points
    (sleep stages) are encoded as a period with a SNOMED CT concept; all
    others as an instant with a UCUM quantity.

    Args:
        mapper: Vocabulary lookups. Defaults to the bundled vocabulary.
        clock:  Returns the ``issued`` time. Defaults to the current UTC time.
    """

    def __init__(
        self,
        mapper: VocabularyMapper | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._mapper = mapper or VocabularyMapper()
        self._clock = clock

    @property
    def mapper(self) -> VocabularyMapper:
        return self._mapper

    def build(self, point: NormalizedDataPoint) -> Observation:
        entry = self._mapper.map_kind(point.kind)
        name = self._mapper.display_name(point.kind)

        code = CodeableConcept(
            coding=[
                Coding(system=LOINC_SYSTEM, code=entry.code, display=entry.display),
                Coding(system=HEALTHKIT_SYSTEM, code=point.kind, display=name),
            ],
            text=name,
        )
        category = CodeableConcept(
            coding=[
                Coding(
                    system=OBSERVATION_CATEGORY_SYSTEM,
                    code=entry.category,
                    display=self._mapper.category_display(entry.category),
                )
            ]
        )
        device = DeviceReference(
            display=point.source_name,
            identifier=Identifier(system=BUNDLE_IDENTIFIER_SYSTEM, value=point.source_identifier),
        )

        fields: dict = {}
        if point.is_categorical:
            label = point.label or ""
            fields["effective_period"] = Period(
                start=format_instant(point.timestamp),
                end=format_instant(point.end_timestamp),
            )
            fields["value_codeable_concept"] = CodeableConcept(
                coding=[
                    Coding(
                        system=SNOMED_SYSTEM,
                        code=self._mapper.sleep_stage_code(label),
                        display=label,
                    )
                ],
                text=label,
            )
        else:
            fields["effective_date_time"] = format_instant(point.timestamp)
            fields["value_quantity"] = Quantity(
                value=point.value if point.value is not None else 0.0,
                unit=point.unit,
                system=UCUM_SYSTEM,
                code=self._mapper.unit_code(point.unit),
            )

        return Observation(
            id=point.id,
            status="final",
            category=[category],
            code=code,
            issued=format_instant(self._clock()),
            device=device,
            **fields,
        )

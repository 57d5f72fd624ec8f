"""Pydantic models for the FHIR R4 resources exchanged with the backend.

Field names are snake_case in Python and camelCase on the wire.  Serialize
with ``by_alias=True, exclude_none=True`` (see ``FhirBase.to_wire``).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

FHIR_JSON_MEDIA_TYPE = "application/fhir+json"

LOINC_SYSTEM = "http://loinc.org"
UCUM_SYSTEM = "http://unitsofmeasure.org"
SNOMED_SYSTEM = "http://snomed.info/sct"
HEALTHKIT_SYSTEM = "http://developer.apple.com/documentation/healthkit"
OBSERVATION_CATEGORY_SYSTEM = "http://terminology.hl7.org/CodeSystem/observation-category"
BUNDLE_IDENTIFIER_SYSTEM = "http://apple.com/bundle-identifier"


class FhirBase(BaseModel):
    """Base model with shared config for all FHIR schemas."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------- Data types ----------


class Coding(FhirBase):
    system: str
    code: str
    display: str | None = None


class CodeableConcept(FhirBase):
    coding: list[Coding] = Field(default_factory=list)
    text: str | None = None


class Quantity(FhirBase):
    value: float
    unit: str
    system: str = UCUM_SYSTEM
    code: str


class Period(FhirBase):
    start: str
    end: str


class Identifier(FhirBase):
    system: str
    value: str


class DeviceReference(FhirBase):
    display: str
    identifier: Identifier


# ---------- Resources ----------


class Observation(FhirBase):
    """FHIR Observation for one measurement.

    Carries exactly one of ``effective_date_time`` / ``effective_period`` and
    exactly one of ``value_quantity`` / ``value_codeable_concept``.
    """

    resource_type: Literal["Observation"] = "Observation"
    id: str | None = None
    status: str = "final"
    category: list[CodeableConcept] = Field(default_factory=list)
    code: CodeableConcept
    effective_date_time: str | None = None
    effective_period: Period | None = None
    issued: str | None = None
    device: DeviceReference | None = None
    value_quantity: Quantity | None = None
    value_codeable_concept: CodeableConcept | None = None

    @model_validator(mode="after")
    def _one_timing_one_value(self) -> Observation:
        if (self.effective_date_time is None) == (self.effective_period is None):
            raise ValueError("exactly one of effectiveDateTime or effectivePeriod is required")
        if (self.value_quantity is None) == (self.value_codeable_concept is None):
            raise ValueError("exactly one of valueQuantity or valueCodeableConcept is required")
        return self


class BundleEntry(FhirBase):
    full_url: str
    resource: Observation


class Bundle(FhirBase):
    """Collection Bundle submitted in a single POST."""

    resource_type: Literal["Bundle"] = "Bundle"
    type: str = "collection"
    timestamp: str
    entry: list[BundleEntry] = Field(default_factory=list)


# ---------- Acknowledgement ----------


class OperationOutcome(FhirBase):
    """Server acknowledgement.

    Only ``issue[0].diagnostics`` is read.  Issues are kept as plain
    mappings.
    """

    model_config = ConfigDict(extra="allow")

    issue: list[dict[str, Any]]

    @property
    def first_diagnostics(self) -> str | None:
        """``issue[0].diagnostics`` when it is a string, otherwise None."""
        if not self.issue:
            return None
        diagnostics = self.issue[0].get("diagnostics")
        return diagnostics if isinstance(diagnostics, str) else None

"""Measurement kind → clinical vocabulary lookups.

All lookups are total: anything outside the tables resolves to a sentinel or
passes through unchanged, so building a resource never fails on a mapping gap.
"""

from __future__ import annotations

import logging

from fhir_sync.base import MeasurementKind, VocabularyEntry
from fhir_sync.vocabulary_loader import VocabularyConfig, get_vocabulary

logger = logging.getLogger("fhir_sync.vocabulary")

#: Code given to kinds with no LOINC mapping.
UNKNOWN_CODE = "unknown"
#: Category given to kinds with no LOINC mapping.
DEFAULT_CATEGORY = "vital-signs"


class VocabularyMapper:
    """Resolve LOINC, UCUM and SNOMED CT codes for normalized data points.

    Args:
        vocabulary: Vocabulary tables. Defaults to the bundled vocabulary.yaml.
    """

    def __init__(self, vocabulary: VocabularyConfig | None = None) -> None:
        self._vocab = vocabulary or get_vocabulary()

    def map_kind(self, kind: str | MeasurementKind) -> VocabularyEntry:
        """Return the LOINC entry for a kind, or the sentinel for unknown kinds."""
        identifier = kind.value if isinstance(kind, MeasurementKind) else kind
        entry = self._vocab.kinds.get(identifier)
        if entry is None:
            logger.debug("No vocabulary entry for %r; using sentinel", identifier)
            return VocabularyEntry(code=UNKNOWN_CODE, display=identifier, category=DEFAULT_CATEGORY)
        return VocabularyEntry(code=entry.code, display=entry.display, category=entry.category)

    def category_display(self, category: str) -> str:
        return self._vocab.categories.get(category, category)

    def display_name(self, kind: str | MeasurementKind) -> str:
        """Human-readable name for a kind; the identifier itself if unknown."""
        identifier = kind.value if isinstance(kind, MeasurementKind) else kind
        entry = self._vocab.kinds.get(identifier)
        return entry.name if entry else identifier

    def unit_code(self, unit: str) -> str:
        """UCUM code for a canonical unit. Unmapped units are their own code."""
        return self._vocab.unit_codes.get(unit, unit)

    def sleep_stage_code(self, label: str) -> str:
        return self._vocab.sleep_stage_codes.get(label, self._vocab.sleep_default_code)

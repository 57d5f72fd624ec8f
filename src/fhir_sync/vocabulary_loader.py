"""Load, validate, and hot-reload the clinical vocabulary tables.

The tables live in ``vocabulary.yaml`` alongside this module.  They are
loaded once and cached.  Call ``reload_vocabulary()`` to re-read from disk
after editing the file.

Usage::

    from fhir_sync.vocabulary_loader import get_vocabulary

    vocab = get_vocabulary()
    vocab.kinds["HKQuantityTypeIdentifierHeartRate"].code   # "8867-4"
    vocab.unit_codes["mmHg"]                                # "mm[Hg]"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from fhir_sync.base import SLEEP_STAGE_LABELS, MeasurementKind

logger = logging.getLogger("fhir_sync.vocabulary")

# Path to the YAML file sitting next to this module
_VOCABULARY_PATH = Path(__file__).parent / "vocabulary.yaml"

#: Observation categories the backend understands.
KNOWN_CATEGORIES: frozenset[str] = frozenset(
    {"vital-signs", "activity", "laboratory", "social-history"}
)


# ---------------------------------------------------------------------------
# Typed sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KindVocabulary:
    """LOINC coding and human name for one measurement kind."""

    code: str
    display: str
    category: str
    name: str


@dataclass
class VocabularyConfig:
    """Complete, validated vocabulary.

    Attributes:
        version:            Schema version string.
        kinds:              HealthKit identifier → KindVocabulary.
        categories:         Observation category code → display text.
        unit_codes:         Canonical unit → UCUM code.
        sleep_stage_codes:  Sleep stage label → SNOMED CT code.
        sleep_default_code: SNOMED CT code for unrecognized stage labels.
    """

    version: str
    kinds: dict[str, KindVocabulary]
    categories: dict[str, str]
    unit_codes: dict[str, str]
    sleep_stage_codes: dict[str, str]
    sleep_default_code: str
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class VocabularyConfigError(ValueError):
    """Raised when vocabulary.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError:     If the file does not exist.
        VocabularyConfigError: If the YAML is malformed.
    """
    try:
        import yaml  # pyyaml
    except ImportError as exc:
        raise ImportError(
            "pyyaml is required for vocabulary loading. Install with: pip install pyyaml"
        ) from exc

    if not path.exists():
        raise FileNotFoundError(f"Vocabulary file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise VocabularyConfigError(f"YAML parse error in {path}: {exc}") from exc


def _string_map(raw: object, section: str, errors: list[str]) -> dict[str, str]:
    if not isinstance(raw, dict):
        errors.append(f"'{section}' must be a mapping")
        return {}
    out: dict[str, str] = {}
    for key, val in raw.items():
        if not isinstance(val, (str, int, float)) or isinstance(val, bool):
            errors.append(f"{section}.{key} must be a string, got {val!r}")
            continue
        out[str(key)] = str(val)
    return out


def _validate_and_build(raw: dict) -> VocabularyConfig:
    """Validate the raw YAML dict and construct a VocabularyConfig.

    Raises:
        VocabularyConfigError: If a section is missing or a kind is not covered.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Categories ──
    categories = _string_map(raw.get("categories", {}), "categories", errors)
    for code in sorted(KNOWN_CATEGORIES - set(categories)):
        errors.append(f"categories is missing '{code}'")

    # ── Kinds ──
    kinds_raw = raw.get("kinds", {})
    kinds: dict[str, KindVocabulary] = {}
    if not isinstance(kinds_raw, dict) or not kinds_raw:
        errors.append("'kinds' section is missing or empty")
        kinds_raw = {}
    for identifier, entry in kinds_raw.items():
        if not isinstance(entry, dict):
            errors.append(f"kinds.{identifier} must be a mapping")
            continue
        missing = [k for k in ("code", "display", "category") if not entry.get(k)]
        if missing:
            errors.append(f"kinds.{identifier} is missing {', '.join(missing)}")
            continue
        category = str(entry["category"])
        if category not in KNOWN_CATEGORIES:
            errors.append(f"kinds.{identifier}.category '{category}' is not a known category")
        kinds[str(identifier)] = KindVocabulary(
            code=str(entry["code"]),
            display=str(entry["display"]),
            category=category,
            name=str(entry.get("name") or entry["display"]),
        )
    for kind in MeasurementKind:
        if kind.value not in kinds and kind.value not in kinds_raw:
            errors.append(f"kinds has no entry for {kind.value}")

    # ── Units ──
    unit_codes = _string_map(raw.get("unit_codes", {}), "unit_codes", errors)

    # ── Sleep stages ──
    ss_raw = raw.get("sleep_stage_codes", {})
    if not isinstance(ss_raw, dict):
        errors.append("'sleep_stage_codes' must be a mapping")
        ss_raw = {}
    sleep_stage_codes = _string_map(ss_raw.get("stages", {}), "sleep_stage_codes.stages", errors)
    for label in SLEEP_STAGE_LABELS.values():
        if label not in sleep_stage_codes:
            errors.append(f"sleep_stage_codes.stages is missing '{label}'")
    sleep_default_code = str(ss_raw.get("default", "248220008"))

    if errors:
        raise VocabularyConfigError(
            f"vocabulary.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return VocabularyConfig(
        version=version,
        kinds=kinds,
        categories=categories,
        unit_codes=unit_codes,
        sleep_stage_codes=sleep_stage_codes,
        sleep_default_code=sleep_default_code,
        _raw=raw,
    )


def load_vocabulary(path: Path | None = None) -> VocabularyConfig:
    """Load and validate the vocabulary from disk.

    Args:
        path: Override path to YAML. Uses the bundled vocabulary.yaml by default.
    """
    target = path or _VOCABULARY_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded vocabulary v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_vocabulary: VocabularyConfig | None = None
_vocabulary_lock = threading.Lock()


def get_vocabulary() -> VocabularyConfig:
    """Return the global VocabularyConfig, loading it on first call.  Thread-safe."""
    global _vocabulary
    if _vocabulary is None:
        with _vocabulary_lock:
            if _vocabulary is None:  # double-checked locking
                _vocabulary = load_vocabulary()
    return _vocabulary


def reload_vocabulary(path: Path | None = None) -> VocabularyConfig:
    """Reload the vocabulary from disk and replace the global singleton.

    If validation fails the old vocabulary is retained and the error re-raised.

    Raises:
        VocabularyConfigError: If the new file is invalid.
        FileNotFoundError:     If the file is missing.
    """
    global _vocabulary
    new_vocabulary = load_vocabulary(path)  # validate before acquiring lock
    with _vocabulary_lock:
        old_version = _vocabulary.version if _vocabulary else "none"
        _vocabulary = new_vocabulary
    logger.info("Reloaded vocabulary: %s → %s", old_version, new_vocabulary.version)
    return new_vocabulary

"""Interpret the backend's OperationOutcome acknowledgement.

The backend reports counts only inside a free-text diagnostics string such
as ``"Processed 10 resources: 8 accepted, 2 rejected"``.  Reading numbers out
of prose is fragile, so the extraction lives in ``extract_count`` alone; when
the backend grows typed count fields only that function needs to change.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from pydantic import ValidationError

from fhir_sync.models import OperationOutcome

logger = logging.getLogger("fhir_sync.result_parser")


@dataclass(frozen=True)
class ParsedAcknowledgement:
    """Counts and message read from an acknowledgement."""

    accepted: int
    rejected: int
    message: str


def extract_count(text: str, word: str) -> int | None:
    """Return the integer directly preceding ``word`` in ``text``, if any."""
    match = re.search(rf"(\d+)\s+{re.escape(word)}", text)
    return int(match.group(1)) if match else None


class ResultParser:
    """Parse raw acknowledgement bodies into ParsedAcknowledgement."""

    def parse(self, raw_body: bytes | str, submitted: int) -> ParsedAcknowledgement | None:
        """Extract accepted/rejected counts from an OperationOutcome body.

        A missing accepted count defaults to ``submitted`` and a missing
        rejected count to 0.  These defaults only apply when the
        acknowledgement structure itself is valid.

        Args:
            raw_body:  Response body as received.
            submitted: Number of resources that were sent.

        Returns:
            ParsedAcknowledgement, or None when the body is not an
            OperationOutcome with a string diagnostics on its first issue.
        """
        try:
            payload = json.loads(raw_body)
        except (TypeError, ValueError):
            logger.debug("Acknowledgement is not JSON")
            return None

        try:
            outcome = OperationOutcome.model_validate(payload)
        except ValidationError as exc:
            logger.debug("Acknowledgement is not an OperationOutcome: %s", exc)
            return None

        diagnostics = outcome.first_diagnostics
        if diagnostics is None:
            return None

        accepted = extract_count(diagnostics, "accepted")
        rejected = extract_count(diagnostics, "rejected")
        return ParsedAcknowledgement(
            accepted=submitted if accepted is None else accepted,
            rejected=0 if rejected is None else rejected,
            message=diagnostics,
        )

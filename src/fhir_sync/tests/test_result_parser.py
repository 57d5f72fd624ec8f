"""Tests for acknowledgement parsing."""

from __future__ import annotations

import json

import pytest

from fhir_sync.result_parser import ResultParser, extract_count


@pytest.fixture
def parser() -> ResultParser:
    return ResultParser()


def _outcome(diagnostics) -> str:
    return json.dumps({"resourceType": "OperationOutcome", "issue": [{"diagnostics": diagnostics}]})


class TestResultParser:
    def test_reads_counts_from_diagnostics(self, parser: ResultParser) -> None:
        body = '{"issue":[{"diagnostics":"Processed 10 resources: 8 accepted, 2 rejected"}]}'
        result = parser.parse(body, submitted=10)
        assert result is not None
        assert result.accepted == 8
        assert result.rejected == 2
        assert result.message == "Processed 10 resources: 8 accepted, 2 rejected"

    def test_accepts_bytes(self, parser: ResultParser) -> None:
        result = parser.parse(_outcome("3 accepted, 0 rejected").encode(), submitted=3)
        assert result is not None
        assert (result.accepted, result.rejected) == (3, 0)

    def test_missing_counts_use_optimistic_defaults(self, parser: ResultParser) -> None:
        result = parser.parse(_outcome("All good"), submitted=7)
        assert result is not None
        assert result.accepted == 7
        assert result.rejected == 0
        assert result.message == "All good"

    def test_only_rejected_count_present(self, parser: ResultParser) -> None:
        result = parser.parse(_outcome("4 rejected"), submitted=9)
        assert (result.accepted, result.rejected) == (9, 4)

    @pytest.mark.parametrize(
        "body",
        [
            "not json",
            "",
            "[]",
            '{"resourceType": "OperationOutcome"}',
            '{"issue": []}',
            '{"issue": [{"severity": "error"}]}',
            '{"issue": [{"diagnostics": 12}]}',
            '{"issue": "broken"}',
        ],
    )
    def test_malformed_acknowledgements_return_none(self, parser: ResultParser, body: str) -> None:
        assert parser.parse(body, submitted=5) is None

    def test_extra_fields_are_tolerated(self, parser: ResultParser) -> None:
        body = json.dumps({
            "resourceType": "OperationOutcome",
            "id": "ack-1",
            "issue": [
                {"severity": "information", "code": "informational",
                 "diagnostics": "Processed 2 resources: 2 accepted, 0 rejected",
                 "details": {"text": "ok"}},
                {"severity": "warning", "diagnostics": "ignored"},
            ],
        })
        result = parser.parse(body, submitted=2)
        assert (result.accepted, result.rejected) == (2, 0)

    def test_later_issue_with_structured_diagnostics(self, parser: ResultParser) -> None:
        body = json.dumps({
            "issue": [
                {"diagnostics": "Processed 10 resources: 8 accepted, 2 rejected"},
                {"severity": "error", "diagnostics": {"text": "resource 3 invalid"}},
            ],
        })
        result = parser.parse(body, submitted=10)
        assert result is not None
        assert (result.accepted, result.rejected) == (8, 2)

    def test_non_string_fields_on_first_issue(self, parser: ResultParser) -> None:
        body = '{"issue":[{"code":422,"diagnostics":"Processed 10 resources: 8 accepted, 2 rejected"}]}'
        result = parser.parse(body, submitted=10)
        assert result is not None
        assert (result.accepted, result.rejected) == (8, 2)

    def test_non_object_issue_is_rejected(self, parser: ResultParser) -> None:
        assert parser.parse('{"issue": ["3 accepted"]}', submitted=3) is None


class TestExtractCount:
    def test_first_match_wins(self) -> None:
        assert extract_count("1 accepted then 5 accepted", "accepted") == 1

    def test_requires_adjacent_digits(self) -> None:
        assert extract_count("accepted: 8", "accepted") is None

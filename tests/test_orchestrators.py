#!/usr/bin/env python3
"""
Tests for the validation and commit orchestrators.
"""

import asyncio

import pytest

from fakes import FakeBackend
from import_wizard.commit import CommitOrchestrator
from import_wizard.errors import BackendRequestError, CommitRequestError, ValidationRequestError
from import_wizard.transformer import CanonicalRecord
from import_wizard.validation import InvalidRecord, ValidationOrchestrator


def make_records(count):
    return [
        CanonicalRecord(row_index=i + 2, fields={"email": f"user{i}@example.com"})
        for i in range(count)
    ]


def validate(backend, records, target_id="users"):
    return asyncio.run(ValidationOrchestrator(backend).validate(target_id, records))


def commit(backend, rows, target_id="users"):
    return asyncio.run(CommitOrchestrator(backend).commit(target_id, rows))


class TestValidation:
    """Test cases for ValidationOrchestrator."""

    def test_partition_covers_every_row(self):
        backend = FakeBackend(invalid_rows={3, 7})
        records = make_records(10)
        outcome = validate(backend, records)

        assert len(outcome.valid_rows) == 8
        assert len(outcome.invalid_rows) == 2
        returned = {r.row_index for r in outcome.valid_rows} | {
            r.row_index for r in outcome.invalid_rows
        }
        assert returned == {r.row_index for r in records}
        assert outcome.total == 10
        assert not outcome.all_valid

    def test_wire_payload(self):
        backend = FakeBackend()
        validate(backend, make_records(2))
        call = backend.validate_calls[0]
        assert call["type"] == "users"
        assert call["rows"][0] == {"_rowIndex": 2, "email": "user0@example.com"}

    def test_invalid_rows_keep_errors(self):
        backend = FakeBackend(invalid_rows={2})
        outcome = validate(backend, make_records(2))
        invalid = outcome.invalid_rows[0]
        assert isinstance(invalid, InvalidRecord)
        assert invalid.errors == ("Row 2 rejected",)
        assert "_errors" not in invalid.fields

    def test_missing_errors_default(self):
        backend = FakeBackend(
            validate_response={
                "success": True,
                "data": {"validRows": [], "invalidRows": [{"_rowIndex": 2, "email": "x"}]},
            }
        )
        outcome = validate(backend, make_records(1))
        assert outcome.invalid_rows[0].errors == ("Unknown Error",)

    def test_single_error_string_accepted(self):
        backend = FakeBackend(
            validate_response={
                "success": True,
                "data": {
                    "validRows": [],
                    "invalidRows": [{"_rowIndex": 2, "_errors": "Bad email"}],
                },
            }
        )
        outcome = validate(backend, make_records(1))
        assert outcome.invalid_rows[0].errors == ("Bad email",)

    @pytest.mark.parametrize("errors", [5, {"email": "bad"}, ["ok", 3]])
    def test_malformed_row_errors_rejected(self, errors):
        backend = FakeBackend(
            validate_response={
                "success": True,
                "data": {"validRows": [], "invalidRows": [{"_rowIndex": 2, "_errors": errors}]},
            }
        )
        with pytest.raises(ValidationRequestError, match="_errors"):
            validate(backend, make_records(1))

    def test_rows_sorted_in_submitted_order(self):
        records = make_records(3)
        backend = FakeBackend(
            validate_response={
                "success": True,
                "data": {
                    "validRows": [
                        {"_rowIndex": 4, "email": "c"},
                        {"_rowIndex": 2, "email": "a"},
                        {"_rowIndex": 3, "email": "b"},
                    ],
                    "invalidRows": [],
                },
            }
        )
        outcome = validate(backend, records)
        assert [r.row_index for r in outcome.valid_rows] == [2, 3, 4]

    def test_local_issues_carried_over(self):
        records = [CanonicalRecord(row_index=2, fields={"qty": "many"}, issues=("Quantity: bad",))]
        outcome = validate(FakeBackend(), records)
        assert outcome.valid_rows[0].issues == ("Quantity: bad",)

    def test_system_errors_reported(self):
        backend = FakeBackend(
            validate_response={
                "success": True,
                "data": {
                    "validRows": [{"_rowIndex": 2}],
                    "invalidRows": [],
                    "errors": ["Site lookup degraded"],
                },
            }
        )
        outcome = validate(backend, make_records(1))
        assert outcome.system_errors == ["Site lookup degraded"]

    def test_incomplete_partition_rejected(self):
        backend = FakeBackend(
            validate_response={
                "success": True,
                "data": {"validRows": [{"_rowIndex": 2}], "invalidRows": [], "errors": ["boom"]},
            }
        )
        with pytest.raises(ValidationRequestError, match=r"missing rows \[3\]") as excinfo:
            validate(backend, make_records(2))
        assert "boom" in str(excinfo.value)

    def test_duplicate_rows_rejected(self):
        backend = FakeBackend(
            validate_response={
                "success": True,
                "data": {
                    "validRows": [{"_rowIndex": 2}],
                    "invalidRows": [{"_rowIndex": 2, "_errors": ["bad"]}],
                },
            }
        )
        with pytest.raises(ValidationRequestError, match="reported twice"):
            validate(backend, make_records(1))

    def test_row_without_index_rejected(self):
        backend = FakeBackend(
            validate_response={"success": True, "data": {"validRows": [{"email": "x"}]}}
        )
        with pytest.raises(ValidationRequestError, match="_rowIndex"):
            validate(backend, make_records(1))

    def test_failure_envelope(self):
        backend = FakeBackend(validate_response={"success": False, "error": "Unknown import type"})
        with pytest.raises(ValidationRequestError, match="Unknown import type"):
            validate(backend, make_records(1))

    def test_malformed_envelope(self):
        backend = FakeBackend(validate_response={"data": "nonsense"})
        with pytest.raises(ValidationRequestError, match="Malformed validation response"):
            validate(backend, make_records(1))

    def test_network_error(self):
        backend = FakeBackend()
        backend.validate_error = BackendRequestError("Network error: could not reach backend")
        with pytest.raises(ValidationRequestError, match="Network error during validation"):
            validate(backend, make_records(1))


class TestCommit:
    """Test cases for CommitOrchestrator."""

    def test_partial_success_reported_verbatim(self):
        backend = FakeBackend(
            invalid_rows={3, 7},
            commit_response={"success": True, "data": {"success": 7, "failed": 1}},
        )
        outcome = validate(backend, make_records(10))
        result = commit(backend, outcome.valid_rows)

        committed = backend.commit_calls[0]["rows"]
        assert len(committed) == 8
        assert {r["_rowIndex"] for r in committed}.isdisjoint({3, 7})
        assert result.success_count == 7
        assert result.failure_count == 1
        assert result.is_partial

    def test_full_success(self):
        result = commit(FakeBackend(), make_records(3))
        assert (result.success_count, result.failure_count) == (3, 0)
        assert not result.is_partial

    def test_failed_count_derived_when_missing(self):
        backend = FakeBackend(commit_response={"success": True, "data": {"success": 2}})
        result = commit(backend, make_records(3))
        assert result.failure_count == 1

    def test_failed_rows(self):
        backend = FakeBackend(
            commit_response={
                "success": True,
                "data": {
                    "success": 1,
                    "failed": 1,
                    "failedRows": [{"_rowIndex": 3, "error": "Email already exists"}],
                },
            }
        )
        result = commit(backend, make_records(2))
        assert result.failed_rows[0].row_index == 3
        assert result.failed_rows[0].error == "Email already exists"

    def test_invalid_records_refused(self):
        rows = [InvalidRecord(row_index=2, fields={}, errors=("bad",))]
        backend = FakeBackend()
        with pytest.raises(ValueError):
            commit(backend, rows)
        assert backend.commit_calls == []

    def test_nothing_to_commit(self):
        backend = FakeBackend()
        result = commit(backend, [])
        assert result.submitted == 0
        assert backend.commit_calls == []

    def test_failure_envelope(self):
        backend = FakeBackend(commit_response={"success": False, "error": "Database unavailable"})
        with pytest.raises(CommitRequestError, match="Database unavailable"):
            commit(backend, make_records(1))

    def test_network_error(self):
        backend = FakeBackend()
        backend.commit_error = BackendRequestError("Network error")
        with pytest.raises(CommitRequestError, match="Commit failed"):
            commit(backend, make_records(1))

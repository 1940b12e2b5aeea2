#!/usr/bin/env python3
"""
Validation orchestrator for import-wizard.

Sends the whole batch of canonical records to the backend validator in one
call and turns its answer into a ValidationOutcome. Field rules are not
re-derived here: the backend's partition is trusted as long as it accounts
for every submitted row exactly once.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from .client import ImportBackend
from .errors import BackendRequestError, ValidationRequestError
from .logging_config import get_logger
from .schema import ValidationEnvelope
from .transformer import CanonicalRecord

logger = get_logger(__name__)

ROW_INDEX_KEY = "_rowIndex"
ROW_ERRORS_KEY = "_errors"


@dataclass(frozen=True)
class InvalidRecord(CanonicalRecord):
    """A canonical record the validator rejected, with its reasons."""

    errors: Tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class ValidationOutcome:
    """Partition of one validated batch."""

    valid_rows: List[CanonicalRecord]
    invalid_rows: List[InvalidRecord]
    system_errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.valid_rows) + len(self.invalid_rows)

    @property
    def all_valid(self) -> bool:
        return not self.invalid_rows and bool(self.valid_rows)


def to_wire(record: CanonicalRecord) -> Dict[str, Any]:
    """Serialize a record for the backend: its fields plus _rowIndex."""
    return {ROW_INDEX_KEY: record.row_index, **record.fields}


def from_wire(row: Dict[str, Any]) -> CanonicalRecord:
    """Read a record back from a backend row."""
    row_index = row.get(ROW_INDEX_KEY)
    if not isinstance(row_index, int) or isinstance(row_index, bool):
        raise ValidationRequestError(
            f"Validator returned a row without a valid {ROW_INDEX_KEY}"
        )
    fields = {k: v for k, v in row.items() if not k.startswith("_")}
    return CanonicalRecord(row_index=row_index, fields=fields)


def _row_errors(row: Dict[str, Any]) -> Tuple[str, ...]:
    errors = row.get(ROW_ERRORS_KEY) or []
    if isinstance(errors, str):
        errors = [errors]
    if not isinstance(errors, (list, tuple)) or not all(isinstance(e, str) for e in errors):
        raise ValidationRequestError(
            f"Malformed validation response: {ROW_ERRORS_KEY} of row "
            f"{row.get(ROW_INDEX_KEY)} must be a string or a list of strings"
        )
    return tuple(errors) or ("Unknown Error",)


class ValidationOrchestrator:
    """Runs the validate stage against an ImportBackend."""

    def __init__(self, backend: ImportBackend):
        self._backend = backend

    async def validate(
        self, target_id: str, records: Sequence[CanonicalRecord]
    ) -> ValidationOutcome:
        """
        Validate a batch of records.

        Raises:
            ValidationRequestError: If the request failed or the response
                cannot be trusted as a partition of the batch
        """
        logger.info(f"Validating {len(records)} rows for '{target_id}'")
        try:
            response = await self._backend.validate(
                target_id, [to_wire(r) for r in records]
            )
        except BackendRequestError as e:
            raise ValidationRequestError(f"Network error during validation: {e}") from e

        try:
            envelope = ValidationEnvelope.model_validate(response)
        except PydanticValidationError as e:
            raise ValidationRequestError(f"Malformed validation response: {e}") from e

        if not envelope.success or envelope.data is None:
            raise ValidationRequestError(envelope.error or "Validation failed")

        data = envelope.data
        submitted = {r.row_index: r for r in records}
        order = {r.row_index: position for position, r in enumerate(records)}

        valid_rows = []
        for row in data.valid_rows:
            record = from_wire(row)
            local = submitted.get(record.row_index)
            valid_rows.append(
                CanonicalRecord(
                    row_index=record.row_index,
                    fields=record.fields,
                    issues=local.issues if local else (),
                )
            )
        invalid_rows = []
        for row in data.invalid_rows:
            record = from_wire(row)
            local = submitted.get(record.row_index)
            invalid_rows.append(
                InvalidRecord(
                    row_index=record.row_index,
                    fields=record.fields,
                    issues=local.issues if local else (),
                    errors=_row_errors(row),
                )
            )

        self._check_partition(submitted, valid_rows, invalid_rows, data.errors)

        valid_rows.sort(key=lambda r: order[r.row_index])
        invalid_rows.sort(key=lambda r: order[r.row_index])

        outcome = ValidationOutcome(
            valid_rows=valid_rows,
            invalid_rows=invalid_rows,
            system_errors=list(data.errors),
        )
        logger.info(
            f"Validation of '{target_id}': {len(valid_rows)} valid, "
            f"{len(invalid_rows)} invalid, {len(outcome.system_errors)} system errors"
        )
        return outcome

    @staticmethod
    def _check_partition(
        submitted: Dict[int, CanonicalRecord],
        valid_rows: List[CanonicalRecord],
        invalid_rows: List[InvalidRecord],
        system_errors: List[str],
    ) -> None:
        returned = [r.row_index for r in valid_rows] + [r.row_index for r in invalid_rows]
        if len(returned) == len(set(returned)) and set(returned) == set(submitted):
            return

        unknown = sorted(set(returned) - set(submitted))
        missing = sorted(set(submitted) - set(returned))
        duplicated = sorted({i for i in returned if returned.count(i) > 1})
        details = []
        if missing:
            details.append(f"missing rows {missing}")
        if unknown:
            details.append(f"unknown rows {unknown}")
        if duplicated:
            details.append(f"rows reported twice {duplicated}")
        if system_errors:
            details.append(f"system errors: {', '.join(system_errors)}")
        raise ValidationRequestError(
            "Validator returned an incomplete partition: " + "; ".join(details)
        )

#!/usr/bin/env python3
"""
Commit orchestrator for import-wizard.

Submits the valid partition of a validated batch and reports what the backend
persisted. Partial success is a normal outcome: both counts are reported as
returned, never rounded up.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from .client import ImportBackend
from .errors import BackendRequestError, CommitRequestError
from .logging_config import get_logger
from .schema import CommitEnvelope
from .transformer import CanonicalRecord
from .validation import ROW_ERRORS_KEY, ROW_INDEX_KEY, InvalidRecord, to_wire

logger = get_logger(__name__)


@dataclass(frozen=True)
class FailedRow:
    """A valid row the backend could not persist."""

    row_index: Optional[int]
    error: str


@dataclass(frozen=True)
class CommitOutcome:
    """Counts of one commit request."""

    success_count: int
    failure_count: int
    failed_rows: Tuple[FailedRow, ...] = field(default=())

    @property
    def submitted(self) -> int:
        return self.success_count + self.failure_count

    @property
    def is_partial(self) -> bool:
        return self.success_count > 0 and self.failure_count > 0


def _failed_row(row: Dict[str, Any]) -> FailedRow:
    row_index = row.get(ROW_INDEX_KEY)
    if not isinstance(row_index, int) or isinstance(row_index, bool):
        row_index = None
    error = row.get("error") or row.get(ROW_ERRORS_KEY) or "Unknown Error"
    if isinstance(error, (list, tuple)):
        error = ", ".join(str(e) for e in error)
    return FailedRow(row_index=row_index, error=str(error))


class CommitOrchestrator:
    """Runs the commit stage against an ImportBackend."""

    def __init__(self, backend: ImportBackend):
        self._backend = backend

    async def commit(
        self, target_id: str, valid_rows: Sequence[CanonicalRecord]
    ) -> CommitOutcome:
        """
        Commit the valid partition.

        Raises:
            ValueError: If an invalid record is passed in
            CommitRequestError: If the request failed; nothing is assumed committed
        """
        if any(isinstance(r, InvalidRecord) for r in valid_rows):
            raise ValueError("Invalid rows cannot be committed")
        if not valid_rows:
            logger.info(f"Nothing to commit for '{target_id}'")
            return CommitOutcome(success_count=0, failure_count=0)

        logger.info(f"Committing {len(valid_rows)} rows for '{target_id}'")
        try:
            response = await self._backend.commit(
                target_id, [to_wire(r) for r in valid_rows]
            )
        except BackendRequestError as e:
            raise CommitRequestError(f"Commit failed: {e}") from e

        try:
            envelope = CommitEnvelope.model_validate(response)
        except PydanticValidationError as e:
            raise CommitRequestError(f"Malformed commit response: {e}") from e

        if not envelope.success or envelope.data is None:
            raise CommitRequestError(envelope.error or "Import failed")

        data = envelope.data
        failed = data.failed
        if failed is None:
            failed = max(len(valid_rows) - data.success, 0)

        outcome = CommitOutcome(
            success_count=data.success,
            failure_count=failed,
            failed_rows=tuple(_failed_row(row) for row in data.failed_rows),
        )
        if outcome.submitted != len(valid_rows):
            logger.warning(
                f"Commit of '{target_id}' reported {outcome.submitted} rows "
                f"for {len(valid_rows)} submitted"
            )
        logger.info(
            f"Commit of '{target_id}': {outcome.success_count} imported, "
            f"{outcome.failure_count} failed"
        )
        return outcome

#!/usr/bin/env python3
"""
Import wizard state machine.

Sequences one import session through its stages:

    UPLOAD -> MAPPING -> VALIDATING -> RESULT

with a back-edge VALIDATING -> MAPPING when the validation request fails, and
a terminal CANCELLED state reachable from anywhere. Inside VALIDATING the
session is "reviewing" once the partition has arrived; only then can the
operator commit, and RESULT is reached only after a successful commit.

Ingestion, validation and commit are the only suspension points. Each one
runs under its own CancellationToken, at most one runs at a time, and a
response that arrives after cancel() is discarded instead of being applied.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from .client import ImportBackend
from .commit import CommitOrchestrator, CommitOutcome
from .errors import (
    CommitRequestError,
    IngestionError,
    MappingIncompleteError,
    RequestInFlightError,
    SessionCancelledError,
    ValidationRequestError,
    WizardStateError,
)
from .fuzzy import FuzzyConfig
from .logging_config import get_logger
from .mapping import (
    ColumnMapping,
    MappingProposal,
    check_mapping_entry,
    ensure_mapping_complete,
    propose_mapping,
    set_mapping,
    validate_mapping_complete,
)
from .parsers import ParsedSheet, RawRow, ingest
from .registry import SchemaRegistry
from .schema import ImportTarget
from .transformer import CanonicalRecord, transform
from .validation import ValidationOrchestrator, ValidationOutcome

logger = get_logger(__name__)


class WizardStep(str, Enum):
    """Stages of an import session."""

    UPLOAD = "upload"
    MAPPING = "mapping"
    VALIDATING = "validating"
    RESULT = "result"
    CANCELLED = "cancelled"


STEP_PROGRESS = {
    WizardStep.UPLOAD: 25,
    WizardStep.MAPPING: 50,
    WizardStep.VALIDATING: 75,
    WizardStep.RESULT: 100,
    WizardStep.CANCELLED: 0,
}


class CancellationToken:
    """Marks one outstanding request; once cancelled its response is ignored."""

    def __init__(self, operation: str):
        self.operation = operation
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True)
class Transition:
    source: WizardStep
    destination: WizardStep
    reason: str


class ImportWizard:
    """One import session for one import target."""

    def __init__(
        self,
        target: ImportTarget,
        backend: ImportBackend,
        *,
        fuzzy_config: Optional[FuzzyConfig] = None,
        allow_partial_commit: bool = True,
    ):
        self.target = target
        self.fuzzy_config = fuzzy_config
        self.allow_partial_commit = allow_partial_commit
        self._validator = ValidationOrchestrator(backend)
        self._committer = CommitOrchestrator(backend)

        self.step = WizardStep.UPLOAD
        self.history: List[Transition] = []
        self.last_error: Optional[str] = None

        self.sheet: Optional[ParsedSheet] = None
        self.proposal: Optional[MappingProposal] = None
        self.mapping: Optional[ColumnMapping] = None
        self.records: Optional[List[CanonicalRecord]] = None
        self.validation: Optional[ValidationOutcome] = None
        self.commit_outcome: Optional[CommitOutcome] = None

        self._pending: Optional[CancellationToken] = None

    @classmethod
    def for_target(
        cls, registry: SchemaRegistry, target_id: str, backend: ImportBackend, **kwargs
    ) -> "ImportWizard":
        """
        Start a session for a registered target.

        Raises:
            ConfigurationError: If the target id is unknown
        """
        return cls(registry.get_target(target_id), backend, **kwargs)

    # State helpers

    @property
    def progress(self) -> int:
        return STEP_PROGRESS[self.step]

    @property
    def is_busy(self) -> bool:
        return self._pending is not None

    @property
    def is_reviewing(self) -> bool:
        return (
            self.step == WizardStep.VALIDATING
            and self.validation is not None
            and not self.is_busy
        )

    @property
    def headers(self) -> List[str]:
        return list(self.sheet.headers) if self.sheet else []

    @property
    def rows(self) -> List[RawRow]:
        return list(self.sheet.rows) if self.sheet else []

    @property
    def missing_required(self) -> List[str]:
        if self.mapping is None:
            return [f.label for f in self.target.required_fields]
        return validate_mapping_complete(self.target, self.mapping)

    @property
    def can_commit(self) -> bool:
        if not self.is_reviewing or not self.validation.valid_rows:
            return False
        return self.allow_partial_commit or not self.validation.invalid_rows

    def _transition(self, destination: WizardStep, reason: str) -> None:
        logger.info(f"Wizard '{self.target.id}': {self.step.value} -> {destination.value} ({reason})")
        self.history.append(Transition(self.step, destination, reason))
        self.step = destination

    def _require_step(self, *steps: WizardStep) -> None:
        if self.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise WizardStateError(
                f"Not allowed in step '{self.step.value}' (expected: {allowed})"
            )

    def _guard_single_flight(self) -> None:
        if self._pending is not None:
            raise RequestInFlightError(
                f"A {self._pending.operation} request is already in progress"
            )

    async def _await_response(
        self, operation: str, call: Callable[..., Awaitable[Any]], *args, **kwargs
    ) -> Any:
        """Run one suspending call under a fresh cancellation token."""
        self._guard_single_flight()
        token = CancellationToken(operation)
        self._pending = token
        try:
            result = await call(*args, **kwargs)
        except Exception:
            if token.cancelled:
                logger.info(f"Discarding {operation} failure for cancelled session")
                raise SessionCancelledError(f"Session cancelled during {operation}") from None
            raise
        finally:
            if self._pending is token:
                self._pending = None
        if token.cancelled:
            logger.info(f"Discarding {operation} response for cancelled session")
            raise SessionCancelledError(f"Session cancelled during {operation}")
        return result

    # Operations

    async def upload(
        self,
        data: bytes,
        file_format: str,
        sheet: Optional[str] = None,
        delimiter: Optional[str] = None,
    ) -> MappingProposal:
        """
        Ingest a file and move to MAPPING with an auto-mapped proposal.

        On EmptyFileError/ParseError the session stays in UPLOAD so the
        operator can pick another file.
        """
        self._guard_single_flight()
        self._require_step(WizardStep.UPLOAD)
        try:
            parsed = await self._await_response(
                "upload", ingest, data, file_format, sheet=sheet, delimiter=delimiter
            )
        except IngestionError as e:
            self.last_error = str(e)
            logger.warning(f"Upload rejected: {e}")
            raise

        self.sheet = parsed
        self.proposal = propose_mapping(self.target, parsed.headers, self.fuzzy_config)
        self.mapping = self.proposal.mapping.copy()
        self.last_error = None
        self._transition(WizardStep.MAPPING, f"parsed {len(parsed.rows)} rows")
        return self.proposal

    def set_mapping(self, field_key: str, header: Optional[str]) -> List[str]:
        """
        Override one mapping entry and return the labels still missing.

        Raises:
            MappingError: If the field or header is unknown
        """
        self._require_step(WizardStep.MAPPING)
        check_mapping_entry(self.target, self.headers, field_key, header)
        set_mapping(self.mapping, field_key, header)
        return self.missing_required

    async def validate(self) -> ValidationOutcome:
        """
        Transform the rows and validate them with the backend.

        Raises:
            MappingIncompleteError: If required fields are unmapped (stays in MAPPING)
            ValidationRequestError: If the request failed (returns to MAPPING)
            SessionCancelledError: If the session was cancelled meanwhile
        """
        self._guard_single_flight()
        self._require_step(WizardStep.MAPPING)
        try:
            ensure_mapping_complete(self.target, self.mapping)
        except MappingIncompleteError as e:
            self.last_error = str(e)
            raise

        records = transform(self.sheet.rows, self.mapping, self.target)
        self.records = records
        self.validation = None
        self._transition(WizardStep.VALIDATING, f"validating {len(records)} rows")
        try:
            outcome = await self._await_response(
                "validate", self._validator.validate, self.target.id, records
            )
        except SessionCancelledError:
            raise
        except ValidationRequestError as e:
            self.last_error = str(e)
            self._transition(WizardStep.MAPPING, "validation request failed")
            raise
        except Exception as e:
            logger.error(f"Unexpected validation failure: {e!r}")
            self.last_error = f"Validation failed: {e}"
            self._transition(WizardStep.MAPPING, "validation request failed")
            raise ValidationRequestError(self.last_error) from e

        self.validation = outcome
        self.last_error = None
        return outcome

    async def commit(self) -> CommitOutcome:
        """
        Commit the valid partition and move to RESULT.

        Raises:
            WizardStateError: If there is nothing committable
            CommitRequestError: If the request failed (stays reviewing, rows kept)
            SessionCancelledError: If the session was cancelled meanwhile
        """
        self._guard_single_flight()
        if not self.is_reviewing:
            raise WizardStateError("Commit is only possible after validation")
        if not self.validation.valid_rows:
            raise WizardStateError("No valid rows to import")
        if self.validation.invalid_rows and not self.allow_partial_commit:
            raise WizardStateError(
                f"{len(self.validation.invalid_rows)} invalid rows must be fixed before importing"
            )

        valid_rows = list(self.validation.valid_rows)
        try:
            outcome = await self._await_response(
                "commit", self._committer.commit, self.target.id, valid_rows
            )
        except SessionCancelledError:
            raise
        except CommitRequestError as e:
            self.last_error = f"{e} (0 rows imported, {len(valid_rows)} rows kept for retry)"
            raise
        except Exception as e:
            logger.error(f"Unexpected commit failure: {e!r}")
            self.last_error = (
                f"Commit failed: {e} (0 rows imported, {len(valid_rows)} rows kept for retry)"
            )
            raise CommitRequestError(self.last_error) from e

        self.commit_outcome = outcome
        self.last_error = None
        self._transition(
            WizardStep.RESULT,
            f"{outcome.success_count} imported, {outcome.failure_count} failed",
        )
        return outcome

    def cancel(self) -> None:
        """Abandon the session; a response still in flight will be discarded."""
        if self.step == WizardStep.CANCELLED:
            return
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._transition(WizardStep.CANCELLED, "cancelled by operator")
        self.sheet = None
        self.proposal = None
        self.mapping = None
        self.records = None
        self.validation = None
        self.commit_outcome = None
        self.last_error = None

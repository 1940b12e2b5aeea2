#!/usr/bin/env python3
"""
Exception hierarchy for import-wizard.

Every failure the pipeline can surface to the operator has its own type so
the wizard and the CLI can decide whether a session survives it:

- ConfigurationError: unknown import target or broken config (fatal)
- IngestionError: unusable upload (operator re-uploads)
- MappingError: mapping cannot be used yet (operator fixes the mapping)
- ValidationRequestError / CommitRequestError: remote call failed (retry)
- WizardStateError: an action that the current wizard state does not allow
"""

from typing import List, Optional


class ImportWizardError(Exception):
    """Base class for all import-wizard errors."""

    pass


class ConfigurationError(ImportWizardError):
    """Raised when an import target or the configuration is invalid."""

    pass


class IngestionError(ImportWizardError):
    """Raised when an uploaded file cannot be turned into rows."""

    pass


class EmptyFileError(IngestionError):
    """Raised when a file has no header row or no data rows."""

    pass


class ParseError(IngestionError):
    """Raised when a file is corrupt or in an unsupported format."""

    pass


class MappingError(ImportWizardError):
    """Raised for mapping entries that reference unknown fields or headers."""

    pass


class MappingIncompleteError(MappingError):
    """Raised when required fields are still unmapped."""

    def __init__(self, missing_labels: List[str]):
        self.missing_labels = list(missing_labels)
        super().__init__(
            f"Missing required mappings: {', '.join(self.missing_labels)}"
        )


class BackendRequestError(ImportWizardError):
    """Raised by the HTTP client when the backend cannot be reached or answers badly."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ValidationRequestError(ImportWizardError):
    """Raised when a validation request produced no trustworthy partition."""

    pass


class CommitRequestError(ImportWizardError):
    """Raised when a commit request failed; nothing is assumed committed."""

    pass


class WizardStateError(ImportWizardError):
    """Raised when an action is not allowed in the current wizard state."""

    pass


class RequestInFlightError(WizardStateError):
    """Raised when a validate/commit is requested while another is outstanding."""

    pass


class SessionCancelledError(WizardStateError):
    """Raised when a response arrives for a session that has been cancelled."""

    pass

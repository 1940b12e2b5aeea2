#!/usr/bin/env python3
"""
Pydantic models for import-wizard.

This module provides models for validating:
- ImportField / ImportTarget: the static import target catalog
- config.yaml: main configuration file
- targets.yaml: additional import targets loaded at start-up
- validate/commit response envelopes returned by the backend
"""

from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .errors import ConfigurationError


class FieldType(str, Enum):
    """Value types an import field can declare."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    ENUM = "enum"
    REFERENCE = "reference"


# Import target catalog
class ImportField(BaseModel):
    """One system field of an import target."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(min_length=1)
    label: str = Field(min_length=1)
    required: bool = False
    type: FieldType = FieldType.STRING
    enum_options: tuple[str, ...] = Field(
        default=(), validation_alias=AliasChoices("enum_options", "options")
    )
    description: str | None = None
    example: str | None = None

    @model_validator(mode="after")
    def validate_enum_options(self) -> "ImportField":
        """Enum fields must list at least one option."""
        if self.type == FieldType.ENUM and not self.enum_options:
            raise ValueError(f"enum field '{self.key}' requires enum_options")
        return self


class ImportTarget(BaseModel):
    """An importable entity kind with its ordered field list."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    display_name: str = Field(validation_alias=AliasChoices("display_name", "name"))
    target_collection: str = Field(
        validation_alias=AliasChoices("target_collection", "targetTable")
    )
    fields: tuple[ImportField, ...]

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v: tuple[ImportField, ...]) -> tuple[ImportField, ...]:
        """Validate that fields is not empty and keys are unique."""
        if not v:
            raise ValueError("fields cannot be empty")
        seen = set()
        for field in v:
            if field.key in seen:
                raise ValueError(f"duplicate field key '{field.key}'")
            seen.add(field.key)
        return v

    @property
    def required_fields(self) -> tuple[ImportField, ...]:
        return tuple(f for f in self.fields if f.required)

    def get_field(self, key: str) -> Optional[ImportField]:
        for field in self.fields:
            if field.key == key:
                return field
        return None


class TargetsFileSchema(BaseModel):
    """Schema for targets.yaml."""

    targets: list[ImportTarget]


# Config.yaml schema
class ConfigSchema(BaseModel):
    """Schema for config.yaml."""

    backend_url: str = "http://localhost:3420"
    auth_token: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_initial_seconds: float = Field(default=0.5, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    preview_limit: int = Field(default=10, ge=1)
    allow_partial_commit: bool = True
    fuzzy_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    max_suggestions: int = Field(default=3, ge=1)
    disable_fuzzy: bool = False
    targets_file: str | None = None

    @field_validator("backend_url")
    @classmethod
    def validate_backend_url(cls, v: str) -> str:
        """Backend URL must be http(s); a trailing slash is dropped."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("backend_url must start with http:// or https://")
        return v.rstrip("/")


# Backend response envelopes
class ValidationData(BaseModel):
    """Partitioned result of a validate call."""

    model_config = ConfigDict(populate_by_name=True)

    valid_rows: list[dict[str, Any]] = Field(default_factory=list, alias="validRows")
    invalid_rows: list[dict[str, Any]] = Field(
        default_factory=list, alias="invalidRows"
    )
    errors: list[str] = Field(default_factory=list)


class ValidationEnvelope(BaseModel):
    """Schema for the validate endpoint response."""

    success: bool
    data: ValidationData | None = None
    error: str | None = None


class CommitData(BaseModel):
    """Counts returned by a commit call."""

    model_config = ConfigDict(populate_by_name=True)

    success: int = Field(ge=0)
    failed: int | None = Field(default=None, ge=0)
    failed_rows: list[dict[str, Any]] = Field(default_factory=list, alias="failedRows")


class CommitEnvelope(BaseModel):
    """Schema for the commit endpoint response."""

    success: bool
    data: CommitData | None = None
    error: str | None = None


def validate_config(data: dict[str, Any]) -> ConfigSchema:
    """
    Validate config.yaml data.

    Args:
        data: Dictionary containing config data

    Returns:
        Validated ConfigSchema instance

    Raises:
        ConfigurationError: If validation fails
    """
    try:
        return ConfigSchema(**data)
    except Exception as e:
        raise ConfigurationError(f"Config validation failed: {e}") from e


def validate_targets_file(data: dict[str, Any]) -> TargetsFileSchema:
    """
    Validate targets.yaml data.

    Raises:
        ConfigurationError: If validation fails
    """
    try:
        return TargetsFileSchema(**data)
    except Exception as e:
        raise ConfigurationError(f"Targets file validation failed: {e}") from e

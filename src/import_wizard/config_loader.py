#!/usr/bin/env python3
"""
Configuration loading and management for import-wizard.

Handles loading configuration from config.yaml, environment variables and
CLI arguments. Precedence: CLI arguments > environment > config.yaml > defaults.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError
from .fuzzy import FuzzyConfig
from .logging_config import get_logger
from .schema import validate_config

logger = get_logger(__name__)

ENV_BACKEND_URL = "IMPORT_WIZARD_BACKEND_URL"
ENV_AUTH_TOKEN = "IMPORT_WIZARD_TOKEN"


class Config:
    """Configuration management class for import-wizard."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration with defaults and load from file if available."""
        # Backend
        self.backend_url = "http://localhost:3420"
        self.auth_token: Optional[str] = None
        self.timeout_seconds = 30.0
        self.max_retries = 2
        self.backoff_initial_seconds = 0.5
        self.backoff_multiplier = 2.0

        # Wizard behaviour
        self.preview_limit = 10
        self.allow_partial_commit = True

        # Mapping suggestions
        self.fuzzy_threshold = 0.6
        self.max_suggestions = 3
        self.disable_fuzzy = False

        # Extra import targets on top of the built-in catalog
        self.targets_file: Optional[str] = None

        self.config_path: Optional[Path] = None

        if config_path is None:
            # Look in config directory first, fallback to working directory
            config_path = Path.cwd() / "config" / "config.yaml"
            if not config_path.exists():
                config_path = Path.cwd() / "config.yaml"
        elif not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        if config_path.exists():
            self._load_from_file(config_path)

        self._load_from_env()

    def _load_from_file(self, config_path: Path) -> None:
        """Load configuration from YAML file."""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not load {config_path}: {e}") from e

        if not config_data:
            logger.info(f"{config_path} is empty, using default values")
            return
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")

        validated = validate_config(config_data)
        for key in config_data:
            if key in validated.model_fields_set:
                setattr(self, key, getattr(validated, key))

        # Relative targets files are resolved against the config file location
        if self.targets_file and not Path(self.targets_file).is_absolute():
            self.targets_file = str(config_path.parent / self.targets_file)

        self.config_path = config_path
        logger.debug(f"Loaded configuration from {config_path}")

    def _load_from_env(self) -> None:
        """Apply environment overrides."""
        backend_url = os.getenv(ENV_BACKEND_URL)
        if backend_url:
            self.backend_url = validate_config({"backend_url": backend_url}).backend_url
        token = os.getenv(ENV_AUTH_TOKEN)
        if token:
            self.auth_token = token

    def merge_with_cli_args(self, args) -> None:
        """Merge CLI arguments with config values. CLI args take precedence."""
        overrides: Dict[str, Any] = {}
        for name in (
            "backend_url",
            "auth_token",
            "timeout_seconds",
            "preview_limit",
            "fuzzy_threshold",
            "max_suggestions",
            "targets_file",
        ):
            value = getattr(args, name, None)
            if value is not None:
                overrides[name] = value
        if getattr(args, "disable_fuzzy", False):
            overrides["disable_fuzzy"] = True
        if getattr(args, "require_all_valid", False):
            overrides["allow_partial_commit"] = False

        if not overrides:
            return

        # Re-validate the merged values so bad CLI input fails like bad YAML
        validated = validate_config({**self.as_dict(), **overrides})
        for key in overrides:
            setattr(self, key, getattr(validated, key))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "backend_url": self.backend_url,
            "auth_token": self.auth_token,
            "timeout_seconds": self.timeout_seconds,
            "max_retries": self.max_retries,
            "backoff_initial_seconds": self.backoff_initial_seconds,
            "backoff_multiplier": self.backoff_multiplier,
            "preview_limit": self.preview_limit,
            "allow_partial_commit": self.allow_partial_commit,
            "fuzzy_threshold": self.fuzzy_threshold,
            "max_suggestions": self.max_suggestions,
            "disable_fuzzy": self.disable_fuzzy,
            "targets_file": self.targets_file,
        }

    @property
    def fuzzy_config(self) -> FuzzyConfig:
        return FuzzyConfig(
            enabled=not self.disable_fuzzy,
            threshold=self.fuzzy_threshold,
            max_suggestions=self.max_suggestions,
        )


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or use defaults."""
    return Config(config_path)

#!/usr/bin/env python3
"""
Schema registry for import-wizard.

Static catalog of import targets. The registry is built once at start-up
(built-in targets plus an optional targets.yaml) and handed by reference to
every stage of the pipeline; it is never mutated afterwards.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from .errors import ConfigurationError
from .logging_config import get_logger
from .schema import ImportTarget, validate_targets_file

logger = get_logger(__name__)


def _field(key, label, required=False, type="string", **extra) -> Dict[str, Any]:
    return {"key": key, "label": label, "required": required, "type": type, **extra}


BUILTIN_TARGETS: List[Dict[str, Any]] = [
    {
        "id": "attendance",
        "display_name": "Attendance Import",
        "target_collection": "attendance_logs",
        "fields": [
            _field("date", "Date", True, "date", example="2024-01-01"),
            _field(
                "employee_code",
                "Employee Code / User ID",
                True,
                "reference",
                description="Must match a user in the system",
            ),
            _field(
                "site_code",
                "Site Code / Site ID",
                True,
                "reference",
                description="Must match a site",
            ),
            _field("check_in_time", "Check In Time", True, example="09:00:00"),
            _field("check_out_time", "Check Out Time", example="18:00:00"),
            _field(
                "status",
                "Status",
                type="enum",
                enum_options=["Present", "Absent", "Leave", "Half Day"],
            ),
            _field("remarks", "Remarks"),
        ],
    },
    {
        "id": "tickets",
        "display_name": "Tickets Import",
        "target_collection": "complaints",
        "fields": [
            _field("title", "Title", True),
            _field(
                "category",
                "Category",
                True,
                "enum",
                enum_options=["HVAC", "Electrical", "Plumbing", "IT", "Other"],
            ),
            _field("site_id", "Site ID", True, "reference"),
            _field(
                "priority",
                "Priority",
                type="enum",
                enum_options=["Low", "Medium", "High", "Critical"],
            ),
            _field(
                "status",
                "Status",
                type="enum",
                enum_options=["Open", "In Progress", "Resolved", "Closed"],
            ),
            _field("assigned_to", "Assigned To (User ID)", type="reference"),
            _field("location", "Location within Site"),
        ],
    },
    {
        "id": "site-logs-temp-rh",
        "display_name": "Temp & RH Import",
        "target_collection": "site_logs",
        "fields": [
            _field("scheduled_date", "Date", True, "date"),
            _field("site_id", "Site ID", True, "reference"),
            _field("executor_id", "Technician ID", True, "reference"),
            _field("temperature", "Temperature (°C)", True, "number"),
            _field("rh", "Humidity (%)", True, "number"),
            _field("entry_time", "Entry Time"),
            _field("remarks", "Remarks"),
        ],
    },
    {
        "id": "site-logs-water",
        "display_name": "Water Parameters Import",
        "target_collection": "site_logs",
        "fields": [
            _field("scheduled_date", "Date", True, "date"),
            _field("site_id", "Site ID", True, "reference"),
            _field("executor_id", "Technician ID", True, "reference"),
            _field("tds", "TDS", True, "number"),
            _field("ph", "pH", True, "number"),
            _field("hardness", "Hardness", True, "number"),
            _field("remarks", "Remarks"),
        ],
    },
    {
        "id": "site-logs-chemical",
        "display_name": "Chemical Dosing Import",
        "target_collection": "site_logs",
        "fields": [
            _field("scheduled_date", "Date", True, "date"),
            _field("site_id", "Site ID", True, "reference"),
            _field("executor_id", "Technician ID", True, "reference"),
            _field("chemical_dosing", "Dosing Amount", True, "number"),
            _field("remarks", "Remarks"),
        ],
    },
    {
        "id": "users",
        "display_name": "Users",
        "target_collection": "users",
        "fields": [
            _field("email", "Email", True),
            _field("name", "Full Name", True),
            _field("phone", "Phone Number"),
            _field(
                "role",
                "Role",
                True,
                "enum",
                enum_options=["super_admin", "admin", "site_manager", "technician"],
                example="technician",
            ),
        ],
    },
    {
        "id": "sites",
        "display_name": "Sites",
        "target_collection": "sites",
        "fields": [
            _field("name", "Site Name", True),
            _field("location", "Location", True),
            _field("client_name", "Client Name", True),
        ],
    },
    {
        "id": "assets",
        "display_name": "Assets",
        "target_collection": "assets",
        "fields": [
            _field("name", "Asset Name", True),
            _field("type", "Asset Type", True),
            _field("serial_number", "Serial Number"),
            _field("site_name", "Site Name", True),
        ],
    },
]


class SchemaRegistry:
    """Read-only lookup of import targets by id."""

    def __init__(self, targets: Iterable[ImportTarget]):
        catalog: Dict[str, ImportTarget] = {}
        for target in targets:
            if target.id in catalog:
                raise ConfigurationError(f"Duplicate import target id: {target.id}")
            catalog[target.id] = target
        self._targets = MappingProxyType(catalog)

    def get_target(self, target_id: str) -> ImportTarget:
        """
        Look up an import target.

        Raises:
            ConfigurationError: If the id is unknown
        """
        try:
            return self._targets[target_id]
        except KeyError:
            raise ConfigurationError(
                f'Import configuration "{target_id}" not found'
            ) from None

    def list_targets(self) -> List[ImportTarget]:
        return list(self._targets.values())

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._targets

    def __len__(self) -> int:
        return len(self._targets)


def builtin_targets() -> List[ImportTarget]:
    """Return the built-in import targets."""
    return [ImportTarget.model_validate(data) for data in BUILTIN_TARGETS]


def load_targets_file(path: Path) -> List[ImportTarget]:
    """Load and validate extra import targets from a YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not load targets file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Targets file {path} must contain a mapping")

    targets = validate_targets_file(data).targets
    logger.debug(f"Loaded {len(targets)} import targets from {path}")
    return targets


def load_registry(
    targets_file: Optional[Union[str, Path]] = None, include_builtin: bool = True
) -> SchemaRegistry:
    """Build the registry from the built-in catalog and an optional targets file."""
    targets: List[ImportTarget] = builtin_targets() if include_builtin else []
    if targets_file:
        targets.extend(load_targets_file(Path(targets_file)))
    return SchemaRegistry(targets)

"""
Shared fixtures for import-wizard tests.
"""

import pytest
from fakes import FakeBackend

from import_wizard.registry import load_registry
from import_wizard.schema import ImportTarget


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def registry():
    return load_registry()


@pytest.fixture
def contacts_target():
    """Target requiring name and email, with an optional phone."""
    return ImportTarget.model_validate(
        {
            "id": "contacts",
            "name": "Contacts",
            "targetTable": "contacts",
            "fields": [
                {"key": "name", "label": "Full Name", "required": True},
                {"key": "email", "label": "Email", "required": True},
                {"key": "phone", "label": "Phone Number"},
            ],
        }
    )


def make_csv(headers, rows) -> bytes:
    lines = [",".join(headers)] + [",".join(row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def contacts_csv():
    return make_csv(
        ["Full Name", "Email"],
        [
            ["Ada Lovelace", "ada@example.com"],
            ["Alan Turing", "alan@example.com"],
            ["Grace Hopper", "grace@example.com"],
        ],
    )


@pytest.fixture
def csv_bytes():
    return make_csv

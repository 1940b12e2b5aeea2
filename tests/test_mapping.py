#!/usr/bin/env python3
"""
Tests for the column mapping engine.
"""

import pytest

from import_wizard.errors import MappingError, MappingIncompleteError
from import_wizard.fuzzy import FuzzyConfig, FuzzyMatcher
from import_wizard.mapping import (
    ColumnMapping,
    auto_map,
    check_mapping_entry,
    ensure_mapping_complete,
    propose_mapping,
    set_mapping,
    validate_mapping_complete,
)


class TestAutoMap:
    """Test cases for automatic mapping."""

    def test_labels_map_and_complete(self, contacts_target):
        mapping = auto_map(contacts_target, ["Full Name", "Email"])
        assert mapping == {"name": "Full Name", "email": "Email"}
        assert validate_mapping_complete(contacts_target, mapping) == []

    def test_missing_required_label(self, contacts_target):
        mapping = auto_map(contacts_target, ["Email"])
        assert validate_mapping_complete(contacts_target, mapping) == ["Full Name"]
        with pytest.raises(MappingIncompleteError) as excinfo:
            ensure_mapping_complete(contacts_target, mapping)
        assert excinfo.value.missing_labels == ["Full Name"]
        assert str(excinfo.value) == "Missing required mappings: Full Name"

    def test_case_insensitive_key_or_label(self, contacts_target):
        mapping = auto_map(contacts_target, ["EMAIL", "full name", "PHONE"])
        assert mapping == {"name": "full name", "email": "EMAIL", "phone": "PHONE"}

    def test_first_matching_header_wins(self, contacts_target):
        mapping = auto_map(contacts_target, ["email", "Email"])
        assert mapping.get("email") == "email"

    def test_idempotent(self, contacts_target):
        headers = ["Email", "Full Name", "Notes"]
        assert auto_map(contacts_target, headers) == auto_map(contacts_target, headers)

    def test_more_headers_never_unmap(self, contacts_target):
        before = auto_map(contacts_target, ["Email"])
        after = auto_map(contacts_target, ["Email", "Full Name", "Extra"])
        for key, header in before.items():
            assert after.get(key) == header

    def test_optional_fields_do_not_block(self, contacts_target):
        mapping = auto_map(contacts_target, ["Full Name", "Email"])
        assert "phone" not in mapping
        ensure_mapping_complete(contacts_target, mapping)


class TestProposal:
    """Test cases for ambiguity flags and suggestions."""

    def test_multiple_matching_headers_ambiguous(self, contacts_target):
        proposal = propose_mapping(contacts_target, ["Email", "EMAIL", "Full Name"])
        assert proposal.is_ambiguous("email")
        assert not proposal.is_ambiguous("name")

    def test_duplicate_header_ambiguous(self, contacts_target):
        proposal = propose_mapping(contacts_target, ["Email", "Email", "Full Name"])
        assert proposal.is_ambiguous("email")

    def test_suggestions_for_unmapped_fields(self, contacts_target):
        proposal = propose_mapping(contacts_target, ["Full Name", "Email", "Phone No"])
        assert "phone" not in proposal.mapping
        suggested = [header for header, _ in proposal.suggestions["phone"]]
        assert suggested[0] == "Phone No"

    def test_suggestions_never_applied(self, contacts_target):
        proposal = propose_mapping(contacts_target, ["Fullname", "E-mail"])
        assert len(proposal.mapping) == 0
        assert proposal.suggestions

    def test_fuzzy_disabled(self, contacts_target):
        proposal = propose_mapping(
            contacts_target, ["Full Name", "Email", "Phone No"], FuzzyConfig(enabled=False)
        )
        assert proposal.suggestions == {}


class TestManualMapping:
    """Test cases for overrides."""

    def test_set_and_unset(self, contacts_target):
        mapping = auto_map(contacts_target, ["Full Name", "Email", "Mobile"])
        set_mapping(mapping, "phone", "Mobile")
        assert mapping.get("phone") == "Mobile"
        set_mapping(mapping, "name", None)
        assert validate_mapping_complete(contacts_target, mapping) == ["Full Name"]

    def test_check_unknown_field(self, contacts_target):
        with pytest.raises(MappingError, match="Unknown field"):
            check_mapping_entry(contacts_target, ["Email"], "fax", "Email")

    def test_check_unknown_header(self, contacts_target):
        with pytest.raises(MappingError, match="not present in the file"):
            check_mapping_entry(contacts_target, ["Email"], "email", "E-mail")

    def test_check_allows_unset(self, contacts_target):
        check_mapping_entry(contacts_target, ["Email"], "email", None)

    def test_copy_is_independent(self):
        mapping = ColumnMapping({"email": "Email"})
        copy = mapping.copy()
        copy.set("email", "Mail")
        assert mapping.get("email") == "Email"


class TestFuzzyMatcher:
    """Test cases for suggestion ranking."""

    def test_identical_after_normalization(self):
        matcher = FuzzyMatcher()
        assert matcher.similarity("fullname", "fullname") == 1.0

    def test_threshold_and_limit(self):
        matcher = FuzzyMatcher(FuzzyConfig(threshold=0.0, max_suggestions=2))
        ranked = matcher.rank_candidates(["email"], ["Email Address", "E-mail", "Zip"])
        assert len(ranked) == 2
        assert ranked[0][0] == "E-mail"
        assert ranked[0][1] >= ranked[1][1]

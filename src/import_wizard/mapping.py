#!/usr/bin/env python3
"""
Column mapping engine for import-wizard.

Connects system fields of an import target to columns of the uploaded file:
- Automatic mapping by case-insensitive key/label equality
- Ambiguity flags and fuzzy suggestions for the operator
- Manual override of any entry
- Completeness check on required fields
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import MappingError, MappingIncompleteError
from .fuzzy import FuzzyConfig, FuzzyMatcher
from .logging_config import get_logger
from .schema import ImportTarget

logger = get_logger(__name__)


class ColumnMapping:
    """Mutable table of field key -> file header; unset fields have no entry."""

    def __init__(self, entries: Optional[Mapping[str, Optional[str]]] = None):
        self._entries: Dict[str, str] = {}
        for key, header in (entries or {}).items():
            self.set(key, header)

    def get(self, field_key: str) -> Optional[str]:
        return self._entries.get(field_key)

    def set(self, field_key: str, header: Optional[str]) -> None:
        """Map a field to a header; an empty header unsets the field."""
        if header:
            self._entries[field_key] = header
        else:
            self._entries.pop(field_key, None)

    def unset(self, field_key: str) -> None:
        self._entries.pop(field_key, None)

    def items(self) -> List[Tuple[str, str]]:
        return list(self._entries.items())

    def as_dict(self) -> Dict[str, str]:
        return dict(self._entries)

    def copy(self) -> "ColumnMapping":
        return ColumnMapping(self._entries)

    def __contains__(self, field_key: object) -> bool:
        return field_key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ColumnMapping):
            return self._entries == other._entries
        if isinstance(other, dict):
            return self._entries == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"ColumnMapping({self._entries!r})"


@dataclass
class MappingProposal:
    """Auto-mapping result with the information the operator needs to review it."""

    mapping: ColumnMapping
    ambiguous: List[str] = field(default_factory=list)
    suggestions: Dict[str, List[Tuple[str, float]]] = field(default_factory=dict)

    def is_ambiguous(self, field_key: str) -> bool:
        return field_key in self.ambiguous


def _matching_headers(target_field, headers: Sequence[str]) -> List[str]:
    key = target_field.key.lower()
    label = target_field.label.lower()
    matches = []
    for header in headers:
        lowered = header.lower()
        if (lowered == key or lowered == label) and header not in matches:
            matches.append(header)
    return matches


def auto_map(target: ImportTarget, headers: Sequence[str]) -> ColumnMapping:
    """
    Propose a mapping by name: a header matches a field when it equals the
    field's key or label, ignoring case. The first matching header wins and
    unmatched fields stay unset.
    """
    mapping = ColumnMapping()
    for target_field in target.fields:
        matches = _matching_headers(target_field, headers)
        if matches:
            mapping.set(target_field.key, matches[0])
    return mapping


def propose_mapping(
    target: ImportTarget,
    headers: Sequence[str],
    fuzzy_config: Optional[FuzzyConfig] = None,
) -> MappingProposal:
    """
    Auto-map and annotate the result.

    A field is flagged ambiguous when more than one header matched it, its
    header appears more than once in the file, or its header was also chosen
    for another field. Unmapped fields get ranked fuzzy suggestions.
    """
    mapping = auto_map(target, headers)
    matcher = FuzzyMatcher(fuzzy_config)

    chosen_by: Dict[str, List[str]] = {}
    for key, header in mapping.items():
        chosen_by.setdefault(header, []).append(key)

    ambiguous = []
    suggestions: Dict[str, List[Tuple[str, float]]] = {}
    for target_field in target.fields:
        header = mapping.get(target_field.key)
        if header is None:
            ranked = matcher.rank_candidates(
                [target_field.key, target_field.label], headers
            )
            if ranked:
                suggestions[target_field.key] = ranked
            continue
        if (
            len(_matching_headers(target_field, headers)) > 1
            or headers.count(header) > 1
            or len(chosen_by[header]) > 1
        ):
            ambiguous.append(target_field.key)

    logger.info(
        f"Auto-mapped {len(mapping)}/{len(target.fields)} fields for '{target.id}'"
        + (f", ambiguous: {ambiguous}" if ambiguous else "")
    )
    return MappingProposal(mapping=mapping, ambiguous=ambiguous, suggestions=suggestions)


def check_mapping_entry(
    target: ImportTarget,
    headers: Sequence[str],
    field_key: str,
    header: Optional[str],
) -> None:
    """
    Reject entries for unknown fields or headers that are not in the file.

    Raises:
        MappingError: If the entry cannot be applied
    """
    if target.get_field(field_key) is None:
        raise MappingError(f"Unknown field '{field_key}' for target '{target.id}'")
    if header and header not in headers:
        raise MappingError(f"Column '{header}' is not present in the file")


def set_mapping(mapping: ColumnMapping, field_key: str, header: Optional[str]) -> None:
    """Override one mapping entry; an empty header unsets it."""
    mapping.set(field_key, header)


def validate_mapping_complete(target: ImportTarget, mapping: ColumnMapping) -> List[str]:
    """Return the labels of required fields that have no mapped header."""
    return [f.label for f in target.fields if f.required and not mapping.get(f.key)]


def ensure_mapping_complete(target: ImportTarget, mapping: ColumnMapping) -> None:
    """
    Raises:
        MappingIncompleteError: If any required field is unmapped
    """
    missing = validate_mapping_complete(target, mapping)
    if missing:
        raise MappingIncompleteError(missing)

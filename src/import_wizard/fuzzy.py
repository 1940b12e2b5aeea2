#!/usr/bin/env python3
"""
Fuzzy matching and header normalization for import-wizard.

Used to rank file headers as suggestions for fields the exact auto-mapping
left unmapped. Scores combine Levenshtein and Jaro-Winkler similarity from
rapidfuzz; suggestions are shown to the operator, never applied.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import JaroWinkler, Levenshtein


@dataclass
class FuzzyConfig:
    """Configuration for fuzzy matching behavior."""

    enabled: bool = True
    threshold: float = 0.6  # Minimum similarity score for suggestions
    max_suggestions: int = 3  # Maximum number of suggestions to return
    levenshtein_weight: float = 0.5
    jaro_winkler_weight: float = 0.5


class FieldNormalizer:
    """Normalizes field names and headers for matching."""

    @staticmethod
    def normalize_field_name(name: str) -> str:
        """
        Normalize a field key, label or header:
        - Remove accents and special characters
        - Convert to lowercase
        - Remove spaces, underscores, hyphens
        """
        if not name:
            return ""

        normalized = unicodedata.normalize("NFD", name)
        ascii_text = normalized.encode("ascii", "ignore").decode("ascii")

        return re.sub(r"[^a-zA-Z0-9]", "", ascii_text.lower())


class FuzzyMatcher:
    """Ranks candidate headers against field names."""

    def __init__(self, config: Optional[FuzzyConfig] = None):
        self.config = config or FuzzyConfig()

    def similarity(self, s1: str, s2: str) -> float:
        """Weighted Levenshtein/Jaro-Winkler similarity of two normalized strings (0.0 to 1.0)."""
        if not s1 or not s2:
            return 0.0
        lev_sim = Levenshtein.normalized_similarity(s1, s2)
        jw_sim = JaroWinkler.normalized_similarity(s1, s2)
        total_weight = self.config.levenshtein_weight + self.config.jaro_winkler_weight
        if total_weight <= 0:
            return 0.0
        return (
            lev_sim * self.config.levenshtein_weight
            + jw_sim * self.config.jaro_winkler_weight
        ) / total_weight

    def rank_candidates(
        self, terms: Iterable[str], candidates: Sequence[str]
    ) -> List[Tuple[str, float]]:
        """
        Rank candidates by their best similarity to any of the terms.

        Args:
            terms: Names describing the field (key, label)
            candidates: File headers, in file order

        Returns:
            Up to max_suggestions (header, score) pairs at or above the threshold,
            best first; ties keep file order
        """
        if not self.config.enabled:
            return []

        queries = [FieldNormalizer.normalize_field_name(t) for t in terms]
        queries = [q for q in queries if q]

        scored = []
        seen = set()
        for position, candidate in enumerate(candidates):
            if candidate in seen:
                continue
            seen.add(candidate)
            normalized = FieldNormalizer.normalize_field_name(candidate)
            score = max((self.similarity(q, normalized) for q in queries), default=0.0)
            if score >= self.config.threshold:
                scored.append((position, candidate, round(score, 3)))

        scored.sort(key=lambda item: (-item[2], item[0]))
        return [(c, s) for _, c, s in scored[: self.config.max_suggestions]]

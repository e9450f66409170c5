"""Pluggable product scoring.

The resolver only depends on the ScoringStrategy protocol, so the substring
heuristic can be replaced (token similarity, learned aliases, ...) without
touching selection or tie-breaking.
"""

from decimal import Decimal
from typing import List, Protocol

from core.models.canonical import InternalProduct
from product_resolver.models import DEFAULT_MATCHING_CONFIG, MatchingConfig, ProductQuery


class ScoringStrategy(Protocol):
    """Scores one catalog product against a query (higher is better)."""

    def score(self, candidate: InternalProduct, query: ProductQuery) -> Decimal:
        ...

    def explain(self, candidate: InternalProduct, query: ProductQuery) -> List[str]:
        """Human-readable reasons for the score."""
        ...


def _contains(haystack: str, needle: str) -> bool:
    # An empty needle would match everything
    if not needle:
        return False
    return needle.casefold() in (haystack or "").casefold()


class SubstringScoringStrategy:
    """Case-insensitive containment of the query terms in catalog fields."""

    def __init__(self, config: MatchingConfig = DEFAULT_MATCHING_CONFIG):
        self.config = config

    def score(self, candidate: InternalProduct, query: ProductQuery) -> Decimal:
        total = Decimal("0")
        if _contains(candidate.name, query.name):
            total += self.config.name_weight
        if _contains(candidate.category, query.category):
            total += self.config.category_weight
        return total

    def explain(self, candidate: InternalProduct, query: ProductQuery) -> List[str]:
        reasons = []
        if _contains(candidate.name, query.name):
            reasons.append(f"Name '{candidate.name}' contains '{query.name}'")
        if _contains(candidate.category, query.category):
            reasons.append(f"Category '{candidate.category}' contains '{query.category}'")
        return reasons

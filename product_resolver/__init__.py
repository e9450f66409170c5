"""Product Resolver - map external product descriptions to catalog variants.

This package provides heuristic product resolution based on:
- Case-insensitive containment of the product name in catalog names
- Case-insensitive containment of the category in catalog categories
- A minimum score threshold and deterministic tie-breaking

The scoring heuristic is pluggable through the ScoringStrategy protocol.

Usage:
    from product_resolver import ProductResolver

    resolver = ProductResolver(cache=cache, db_path=db_path)
    resolution = await resolver.resolve_line(line)

    if resolution.is_matched:
        print(resolution.product.id, resolution.confidence_score)
"""

from product_resolver.models import (
    DEFAULT_VARIANT,
    MatchingConfig,
    DEFAULT_MATCHING_CONFIG,
    ProductQuery,
    ProductCandidate,
    ProductResolution,
)
from product_resolver.scoring import ScoringStrategy, SubstringScoringStrategy
from product_resolver.resolver import ProductResolver, representative_variant
from product_resolver.db import init_catalog_db, add_product, list_active_products

__all__ = [
    # Models
    "DEFAULT_VARIANT",
    "MatchingConfig",
    "DEFAULT_MATCHING_CONFIG",
    "ProductQuery",
    "ProductCandidate",
    "ProductResolution",
    # Scoring
    "ScoringStrategy",
    "SubstringScoringStrategy",
    # Resolver
    "ProductResolver",
    "representative_variant",
    # Database
    "init_catalog_db",
    "add_product",
    "list_active_products",
]

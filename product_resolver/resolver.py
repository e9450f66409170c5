"""Product Resolver Algorithm.

This module implements the product resolution algorithm that:
1. Builds a query from the external line (name, falling back to category)
2. Scores every active catalog product with the configured strategy
3. Discards candidates below the threshold
4. Picks the single best candidate, lowest catalog id winning ties

The catalog snapshot and the resolutions themselves are kept in the injected
TTL cache, so repeated product names within one run cost one scoring pass.
"""

import time
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional

from core.cache import TTLCache
from core.config import DEFAULT_DB_PATH
from core.models.canonical import ExternalInvoiceLine, InternalProduct, utc_now
from product_resolver.db import list_active_products
from product_resolver.models import (
    DEFAULT_MATCHING_CONFIG,
    DEFAULT_VARIANT,
    MatchingConfig,
    ProductCandidate,
    ProductQuery,
    ProductResolution,
)
from product_resolver.scoring import ScoringStrategy, SubstringScoringStrategy


CATALOG_CACHE_KEY = "product_catalog"


def representative_variant(values: List[str]) -> str:
    """First configured variant value, or the default placeholder."""
    for value in values:
        if value and value.strip():
            return value.strip()
    return DEFAULT_VARIANT


class ProductResolver:
    """Resolves external product name + category to a catalog variant.

    Example:
        resolver = ProductResolver(cache=TTLCache(ttl_seconds=300))
        resolution = await resolver.resolve_line(line)

        if resolution.is_matched:
            print(resolution.product.name, resolution.color, resolution.size)
    """

    def __init__(
        self,
        cache: TTLCache,
        db_path: Path = DEFAULT_DB_PATH,
        strategy: Optional[ScoringStrategy] = None,
        config: MatchingConfig = DEFAULT_MATCHING_CONFIG,
        catalog_loader: Callable[[], List[InternalProduct]] = None,
    ):
        """Initialize the resolver.

        Args:
            cache: Shared TTL cache
            db_path: Path to SQLite database holding the products table
            strategy: Scoring strategy (defaults to substring scoring)
            config: Threshold and reporting limits
            catalog_loader: Override for loading the catalog
        """
        self.cache = cache
        self.db_path = db_path
        self.config = config
        self.strategy = strategy or SubstringScoringStrategy(config)
        self._catalog_loader = catalog_loader or (lambda: list_active_products(self.db_path))

    def catalog(self) -> List[InternalProduct]:
        return self.cache.get_or_load((CATALOG_CACHE_KEY, str(self.db_path)), self._catalog_loader)

    async def resolve_line(self, line: ExternalInvoiceLine) -> ProductResolution:
        """Resolve the product referenced by an invoice line."""
        return await self.resolve(ProductQuery.from_line(line))

    async def resolve(self, query: ProductQuery) -> ProductResolution:
        """Resolve a product query.

        Args:
            query: Name and category from the external line

        Returns:
            ProductResolution with the selected product and variant, or an
            unmatched resolution with the reasons
        """
        cache_key = (query.cache_key, str(self.db_path))
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        resolution = self._resolve_uncached(query)
        self.cache.set(cache_key, resolution)
        return resolution

    def _resolve_uncached(self, query: ProductQuery) -> ProductResolution:
        start_time = time.time()

        if query.is_empty:
            return ProductResolution(
                query=query,
                reasons=["Line has neither product name nor category"],
                resolved_at=utc_now(),
                resolution_time_ms=int((time.time() - start_time) * 1000),
            )

        candidates = self._score_catalog(query)
        selectable = [c for c in candidates if c.score >= self.config.min_score]

        # Highest score first; equal scores fall back to the lowest catalog id
        selectable.sort(key=lambda c: (-c.score, c.product.id))
        reported = selectable[:self.config.max_candidates]

        if not selectable:
            best_score = max((c.score for c in candidates), default=Decimal("0"))
            return ProductResolution(
                candidates=reported,
                query=query,
                confidence_score=best_score,
                reasons=[
                    f"No catalog product scored at least {float(self.config.min_score):.0f} "
                    f"(best {float(best_score):.0f})"
                ],
                resolved_at=utc_now(),
                resolution_time_ms=int((time.time() - start_time) * 1000),
            )

        best = selectable[0]
        reasons = [f"Best match score {float(best.score):.0f}"] + best.reasons
        if len(selectable) > 1 and selectable[1].score == best.score:
            reasons.append(f"Tie at {float(best.score):.0f} broken by lowest catalog id ({best.product.id})")

        return ProductResolution(
            is_matched=True,
            product=best.product,
            color=representative_variant(best.product.colors),
            size=representative_variant(best.product.sizes),
            confidence_score=best.score,
            candidates=reported,
            query=query,
            reasons=reasons,
            resolved_at=utc_now(),
            resolution_time_ms=int((time.time() - start_time) * 1000),
        )

    def _score_catalog(self, query: ProductQuery) -> List[ProductCandidate]:
        """Score every catalog product, keeping only those with a positive score."""
        candidates = []
        for product in self.catalog():
            score = self.strategy.score(product, query)
            if score <= 0:
                continue
            candidates.append(ProductCandidate(
                product=product,
                score=score,
                reasons=self.strategy.explain(product, query),
            ))
        return candidates

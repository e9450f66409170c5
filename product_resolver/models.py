"""Product Resolver Data Models.

This module defines the Pydantic models for product resolution:
- ProductQuery: What the external line says about the product
- ProductCandidate: A scored catalog match candidate
- ProductResolution: The result of product resolution
- MatchingConfig: Weights and threshold for the default scorer
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models.canonical import ExternalInvoiceLine, InternalProduct


DEFAULT_VARIANT = "Default"


class ProductQuery(BaseModel):
    """Search terms taken from one external invoice line."""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    category: str = ""

    @classmethod
    def from_line(cls, line: ExternalInvoiceLine) -> "ProductQuery":
        """Build a query; a line without a product name searches by category."""
        category = (line.product_category or "").strip()
        name = (line.product_name or "").strip() or category
        return cls(name=name, category=category)

    @property
    def cache_key(self) -> tuple:
        return ("product", self.name.casefold(), self.category.casefold())

    @property
    def is_empty(self) -> bool:
        return not self.name and not self.category


class ProductCandidate(BaseModel):
    """A catalog product with its match score."""
    product: InternalProduct
    score: Decimal = Field(default=Decimal("0"), description="Match score (0-100)")
    reasons: List[str] = Field(default_factory=list)


class ProductResolution(BaseModel):
    """Result of product resolution.

    If is_matched is True, product/color/size identify the catalog variant
    the ledger row is written against.
    """
    is_matched: bool = Field(default=False)

    product: Optional[InternalProduct] = None
    color: str = DEFAULT_VARIANT
    size: str = DEFAULT_VARIANT
    confidence_score: Decimal = Field(default=Decimal("0"), description="Match confidence (0-100)")

    candidates: List[ProductCandidate] = Field(default_factory=list)

    query: ProductQuery
    reasons: List[str] = Field(default_factory=list)
    resolved_at: Optional[datetime] = None
    resolution_time_ms: Optional[int] = None


# =============================================================================
# Matching Configuration
# =============================================================================

class MatchingConfig(BaseModel):
    """Configuration for the substring scorer.

    A name hit alone (50) or a category hit alone (30) is enough to pass the
    threshold; both together score 80.
    """
    name_weight: Decimal = Field(default=Decimal("50"), description="Catalog name contains product name")
    category_weight: Decimal = Field(default=Decimal("30"), description="Catalog category contains category")
    min_score: Decimal = Field(default=Decimal("30"), description="Min score to be selectable")
    max_candidates: int = Field(default=5, description="Candidates kept on the resolution for reporting")


DEFAULT_MATCHING_CONFIG = MatchingConfig()

"""
Partner and Product Resolver Tests

Validates:
1. Partner names match exactly after trimming and case folding
2. Ambiguous and unknown partners stay unmatched
3. Product scoring, threshold and lowest-id tie-breaking
4. Variant selection and caching
"""

import asyncio
from decimal import Decimal

import pytest

from core.cache import TTLCache
from core.models.canonical import ExternalInvoiceLine, InternalProduct, PartnerIdentity
from partner_resolver import PartnerMatchType, PartnerResolver, add_profile
from product_resolver import (
    DEFAULT_VARIANT,
    MatchingConfig,
    ProductQuery,
    ProductResolver,
    add_product,
)


def line(name: str, category: str = "", qty: int = 1) -> ExternalInvoiceLine:
    return ExternalInvoiceLine(product_name=name, product_category=category, qty_delivered=qty)


class TestPartnerResolver:
    """Test partner name resolution."""

    def test_exact_match_ignores_case_and_whitespace(self, temp_db):
        add_profile("user-1", "Acme Agency", "agency-1", db_path=temp_db)
        resolver = PartnerResolver(TTLCache(), db_path=temp_db)

        result = asyncio.run(resolver.resolve("  acme AGENCY "))

        assert result.is_matched
        assert result.match_type == PartnerMatchType.EXACT_NAME
        assert result.partner.user_id == "user-1"
        assert result.partner.agency_id == "agency-1"

    def test_no_fuzzy_fallback(self, temp_db):
        add_profile("user-1", "Acme Agency", "agency-1", db_path=temp_db)
        resolver = PartnerResolver(TTLCache(), db_path=temp_db)

        result = asyncio.run(resolver.resolve("Acme Agency Ltd"))

        assert not result.is_matched
        assert result.match_type == PartnerMatchType.NO_MATCH
        assert result.partner is None

    def test_profiles_without_agency_are_ignored(self, temp_db):
        add_profile("user-2", "Walk-in Customer", None, db_path=temp_db)
        resolver = PartnerResolver(TTLCache(), db_path=temp_db)

        assert not asyncio.run(resolver.resolve("Walk-in Customer")).is_matched

    def test_ambiguous_name_is_unmatched(self, temp_db):
        add_profile("user-1", "Acme Agency", "agency-1", db_path=temp_db)
        add_profile("user-2", "ACME agency", "agency-2", db_path=temp_db)
        resolver = PartnerResolver(TTLCache(), db_path=temp_db)

        result = asyncio.run(resolver.resolve("Acme Agency"))

        assert not result.is_matched
        assert result.match_type == PartnerMatchType.AMBIGUOUS
        assert "agency-1" in result.reasons[0]

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name_is_unmatched(self, name):
        resolver = PartnerResolver(TTLCache(), profile_loader=lambda: [])
        assert not asyncio.run(resolver.resolve(name)).is_matched

    def test_directory_is_cached(self):
        loads = []

        def loader():
            loads.append(1)
            return [PartnerIdentity(user_id="u1", name="Acme Agency", agency_id="a1")]

        resolver = PartnerResolver(TTLCache(), profile_loader=loader)
        asyncio.run(resolver.resolve("Acme Agency"))
        asyncio.run(resolver.resolve("Other"))

        assert loads == [1]


class TestProductScoring:
    """Test scoring, threshold and tie-breaking."""

    def test_name_and_category_beat_name_only(self, temp_db):
        add_product("Blue Banner Deluxe", "Flags", db_path=temp_db)
        best = add_product("Blue Banner", "Banners", ["Blue"], ["Large"], db_path=temp_db)
        resolver = ProductResolver(TTLCache(), db_path=temp_db)

        result = asyncio.run(resolver.resolve_line(line("Blue Banner", "Banners")))

        assert result.is_matched
        assert result.product.id == best.id
        assert result.confidence_score == Decimal("80")
        assert [c.score for c in result.candidates] == [Decimal("80"), Decimal("50")]

    def test_category_only_match_passes_threshold(self, temp_db):
        add_product("Roll-up Stand", "Displays", db_path=temp_db)
        resolver = ProductResolver(TTLCache(), db_path=temp_db)

        result = asyncio.run(resolver.resolve_line(line("Pop-up Stand", "Displays")))

        assert result.is_matched
        assert result.confidence_score == Decimal("30")

    def test_no_match_below_threshold(self, temp_db):
        add_product("Blue Banner", "Banners", db_path=temp_db)
        resolver = ProductResolver(TTLCache(), db_path=temp_db)

        result = asyncio.run(resolver.resolve_line(line("Coffee Mug", "Kitchen")))

        assert not result.is_matched
        assert result.product is None
        assert result.candidates == []

    def test_score_twenty_never_selected(self):
        class FlatScore:
            def score(self, candidate, query):
                return Decimal("20")

            def explain(self, candidate, query):
                return ["flat"]

        catalog = [InternalProduct(id=1, name="Anything")]
        resolver = ProductResolver(TTLCache(), strategy=FlatScore(), catalog_loader=lambda: catalog)

        result = asyncio.run(resolver.resolve(ProductQuery(name="Anything")))

        assert not result.is_matched
        assert result.confidence_score == Decimal("20")

    def test_tie_goes_to_lowest_id(self):
        catalog = [
            InternalProduct(id=7, name="Blue Banner Large", category="Banners"),
            InternalProduct(id=3, name="Blue Banner Small", category="Banners"),
        ]
        resolver = ProductResolver(TTLCache(), catalog_loader=lambda: catalog)

        result = asyncio.run(resolver.resolve_line(line("Blue Banner", "Banners")))

        assert result.product.id == 3
        assert any("lowest catalog id" in r for r in result.reasons)

    def test_custom_threshold(self):
        catalog = [InternalProduct(id=1, name="Flyer A5", category="Print")]
        resolver = ProductResolver(
            TTLCache(),
            config=MatchingConfig(min_score=Decimal("60")),
            catalog_loader=lambda: catalog,
        )

        assert not asyncio.run(resolver.resolve_line(line("Flyer", "Posters"))).is_matched
        assert asyncio.run(resolver.resolve_line(line("Flyer", "Print"))).is_matched

    def test_empty_query_is_unmatched(self):
        resolver = ProductResolver(TTLCache(), catalog_loader=lambda: [InternalProduct(id=1, name="X")])
        assert not asyncio.run(resolver.resolve_line(line("", ""))).is_matched


class TestProductVariants:
    """Test variant selection."""

    def test_first_color_and_size(self, temp_db):
        add_product("Blue Banner", "Banners", ["Blue", "Navy"], ["Large", "Small"], db_path=temp_db)
        resolver = ProductResolver(TTLCache(), db_path=temp_db)

        result = asyncio.run(resolver.resolve_line(line("Blue Banner", "Banners")))

        assert result.color == "Blue"
        assert result.size == "Large"

    def test_default_variant_without_options(self, temp_db):
        add_product("Flyer A5", "Print", db_path=temp_db)
        resolver = ProductResolver(TTLCache(), db_path=temp_db)

        result = asyncio.run(resolver.resolve_line(line("Flyer A5", "Print")))

        assert result.color == DEFAULT_VARIANT
        assert result.size == DEFAULT_VARIANT

    def test_nameless_line_searches_by_category(self):
        catalog = [InternalProduct(id=1, name="Roll-up Stand", category="Displays")]
        resolver = ProductResolver(TTLCache(), catalog_loader=lambda: catalog)

        result = asyncio.run(resolver.resolve_line(line("", "Displays")))

        assert result.is_matched
        assert result.query.name == "Displays"


class TestProductCaching:

    def test_repeated_query_uses_cache(self):
        loads = []

        def loader():
            loads.append(1)
            return [InternalProduct(id=1, name="Blue Banner", category="Banners")]

        cache = TTLCache()
        resolver = ProductResolver(cache, catalog_loader=loader)

        first = asyncio.run(resolver.resolve_line(line("Blue Banner", "Banners")))
        second = asyncio.run(resolver.resolve_line(line("BLUE BANNER", "banners")))

        assert loads == [1]
        assert first is second

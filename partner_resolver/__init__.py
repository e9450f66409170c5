"""Partner Resolver - map external party names to agency identities.

Usage:
    from partner_resolver import PartnerResolver

    resolver = PartnerResolver(cache=cache, db_path=db_path)
    resolution = await resolver.resolve("Acme Agency")
"""

from partner_resolver.models import PartnerMatchType, PartnerResolution
from partner_resolver.resolver import PartnerResolver, normalize_partner_name
from partner_resolver.db import init_profiles_db, add_profile, list_agency_profiles

__all__ = [
    # Models
    "PartnerMatchType",
    "PartnerResolution",
    # Resolver
    "PartnerResolver",
    "normalize_partner_name",
    # Database
    "init_profiles_db",
    "add_profile",
    "list_agency_profiles",
]

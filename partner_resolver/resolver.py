"""Partner Resolver.

Maps the party name on an external invoice to an internal user/agency.

Matching is deliberately strict: names are trimmed and compared
case-insensitively, with no fuzzy fallback. Assigning stock to the wrong
agency is worse than skipping an invoice, so anything short of a single
exact hit is reported as unmatched.
"""

from collections import defaultdict
from pathlib import Path
from typing import Callable, Dict, List

from core.cache import TTLCache
from core.config import DEFAULT_DB_PATH
from core.models.canonical import PartnerIdentity, utc_now
from partner_resolver.db import list_agency_profiles
from partner_resolver.models import PartnerMatchType, PartnerResolution


DIRECTORY_CACHE_KEY = "partner_directory"


def normalize_partner_name(name: str) -> str:
    """Trim and casefold a party name for comparison."""
    return (name or "").strip().casefold()


class PartnerResolver:
    """Resolves external party names to agency-bound identities.

    The name directory is loaded from the profile store and held in the
    injected TTL cache, so lookups within the TTL never touch storage.

    Example:
        resolver = PartnerResolver(cache=TTLCache(ttl_seconds=300))
        resolution = await resolver.resolve("Acme Agency")
        if resolution.is_matched:
            print(resolution.partner.agency_id)
    """

    def __init__(
        self,
        cache: TTLCache,
        db_path: Path = DEFAULT_DB_PATH,
        profile_loader: Callable[[], List[PartnerIdentity]] = None,
    ):
        """Initialize the resolver.

        Args:
            cache: Shared TTL cache
            db_path: Path to SQLite database holding the profiles table
            profile_loader: Override for loading profiles (defaults to the db)
        """
        self.cache = cache
        self.db_path = db_path
        self._profile_loader = profile_loader or (lambda: list_agency_profiles(self.db_path))

    def _load_directory(self) -> Dict[str, List[PartnerIdentity]]:
        directory: Dict[str, List[PartnerIdentity]] = defaultdict(list)
        for profile in self._profile_loader():
            key = normalize_partner_name(profile.name)
            if key:
                directory[key].append(profile)
        return dict(directory)

    def directory(self) -> Dict[str, List[PartnerIdentity]]:
        """Normalized name -> identities, cached for the TTL."""
        return self.cache.get_or_load((DIRECTORY_CACHE_KEY, str(self.db_path)), self._load_directory)

    async def resolve(self, external_name: str) -> PartnerResolution:
        """Resolve a party name.

        Args:
            external_name: Party name from the external invoice

        Returns:
            PartnerResolution; unmatched when the name is empty, unknown or
            shared by more than one agency profile
        """
        normalized = normalize_partner_name(external_name)

        if not normalized:
            return PartnerResolution(
                external_name=external_name or "",
                normalized_name="",
                reasons=["Empty partner name"],
                resolved_at=utc_now(),
            )

        matches = self.directory().get(normalized, [])

        if len(matches) == 1:
            return PartnerResolution(
                is_matched=True,
                partner=matches[0],
                match_type=PartnerMatchType.EXACT_NAME,
                external_name=external_name,
                normalized_name=normalized,
                reasons=[f"Exact name match: '{matches[0].name}'"],
                resolved_at=utc_now(),
            )

        if len(matches) > 1:
            agencies = sorted({m.agency_id for m in matches})
            return PartnerResolution(
                match_type=PartnerMatchType.AMBIGUOUS,
                external_name=external_name,
                normalized_name=normalized,
                reasons=[f"Name shared by {len(matches)} profiles (agencies: {', '.join(agencies)})"],
                resolved_at=utc_now(),
            )

        return PartnerResolution(
            external_name=external_name,
            normalized_name=normalized,
            reasons=[f"No agency profile named '{external_name.strip()}'"],
            resolved_at=utc_now(),
        )

"""Partner Resolver Data Models.

- PartnerResolution: The result of resolving an external party name
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from core.models.canonical import PartnerIdentity


class PartnerMatchType(str, Enum):
    """How the partner was matched."""
    EXACT_NAME = "exact_name"    # Case-insensitive, trimmed equality
    AMBIGUOUS = "ambiguous"      # Several profiles share the normalized name
    NO_MATCH = "no_match"


class PartnerResolution(BaseModel):
    """Result of partner resolution.

    Only exact (normalized) name equality produces a match. Ambiguous names
    are reported as unmatched rather than guessed.
    """
    is_matched: bool = Field(default=False)
    partner: Optional[PartnerIdentity] = None
    match_type: PartnerMatchType = Field(default=PartnerMatchType.NO_MATCH)

    external_name: str = Field(..., description="Party name as sent by the source")
    normalized_name: str = Field(..., description="Normalized name used for lookup")

    reasons: List[str] = Field(default_factory=list)
    resolved_at: Optional[datetime] = None

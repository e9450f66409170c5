"""Core canonical data models - source-neutral sync models.

These models represent external invoices, catalog entities and ledger rows
in a standardized format that is independent of the system that produced
them (Odoo, the mirrored event store, etc.).

Source-specific field mappings are handled in /connectors/.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers (handle the loose payloads produced by external sources)
# =============================================================================

_THOUSANDS_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")


def _parse_decimal(value):
    """Parse decimal from ints, floats and numeric strings.

    Commas are accepted only as thousands separators ("1,250.5"); a decimal
    comma ("1,5") is rejected rather than read as 15.
    """
    if value is None or value is False:
        return Decimal("0")
    if value is True:
        raise ValueError("boolean is not a quantity")
    if isinstance(value, (int, float, Decimal)):
        s = str(value)
    elif isinstance(value, str):
        s = value.strip()
        if s == "":
            return Decimal("0")
        if "," in s:
            if not _THOUSANDS_RE.match(s):
                raise ValueError(f"ambiguous decimal separator: {value!r}")
            s = s.replace(",", "")
    else:
        return value

    try:
        result = Decimal(s)
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def _parse_text(value):
    """Coerce optional text fields; Odoo sends False for empty values."""
    if value is None or value is False:
        return ""
    if isinstance(value, (list, tuple)):
        # Odoo many2one values arrive as [id, display_name]
        return str(value[1]).strip() if len(value) > 1 else ""
    return str(value).strip()


def _parse_identifier(value):
    """Stringify numeric identifiers."""
    if value is None or value is False:
        return None
    return str(value).strip()


def _parse_datetime(value):
    """Parse timestamps into timezone-aware UTC datetimes.

    Accepts ISO-8601 strings (with or without offset, "Z" suffix) and the
    "YYYY-MM-DD HH:MM:SS" format Odoo uses. Naive values are taken as UTC.
    """
    if isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        value = datetime.fromisoformat(s)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return value


def _parse_lines(value):
    """Accept the line collection as a list or as a JSON-encoded string."""
    if value is None or value is False:
        return []
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return []
        try:
            value = json.loads(s)
        except json.JSONDecodeError as e:
            raise ValueError(f"order lines are not valid JSON: {e.msg}")
    if not isinstance(value, list):
        raise ValueError(f"order lines must be an array, got {type(value).__name__}")
    return value


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a timestamp in the fixed UTC format used for storage.

    The fixed width keeps stored timestamps comparable as strings.
    """
    value = _parse_datetime(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def parse_timestamp(value: str) -> datetime:
    """Inverse of format_timestamp (also accepts any ISO-8601 string)."""
    return _parse_datetime(value)


# Annotated types for automatic parsing
DecimalValue = Annotated[Decimal, BeforeValidator(_parse_decimal)]
TextValue = Annotated[str, BeforeValidator(_parse_text)]
IdentifierValue = Annotated[str, BeforeValidator(_parse_identifier)]
UtcDatetime = Annotated[datetime, BeforeValidator(_parse_datetime)]


# =============================================================================
# Enums
# =============================================================================

class TransactionKind(str, Enum):
    """Kinds of inventory ledger rows."""
    CATALOG_RECEIPT = "catalog_receipt"
    SALE = "sale"
    CUSTOMER_RETURN = "customer_return"
    COMPANY_RETURN = "company_return"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    EXTERNAL_INVOICE = "external_invoice"


class SyncStatus(str, Enum):
    """Status recorded in the sync run log."""
    TRIGGERED = "triggered"
    SUCCESS = "success"
    ERROR = "error"


class SyncMode(str, Enum):
    """How much of the external source a run reads."""
    INCREMENTAL = "incremental"
    FULL_MIRROR = "full_mirror"


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all canonical data structures."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# External Invoices (read-only, produced by the fetcher)
# =============================================================================

class ExternalInvoiceLine(CanonicalBase):
    """One line of an external sales invoice."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    line_id: Optional[IdentifierValue] = None
    product_name: TextValue = ""
    product_category: TextValue = ""
    qty_delivered: DecimalValue = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("qty_delivered", "quantity"),
    )
    price_unit: DecimalValue = Decimal("0")

    @property
    def is_stockable(self) -> bool:
        """Only positive delivered quantities move stock."""
        return self.qty_delivered > 0


class ExternalInvoice(CanonicalBase):
    """A customer invoice read from the external source."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    external_id: IdentifierValue
    source: str
    reference: Optional[TextValue] = None
    partner_name: TextValue = ""
    created_at: UtcDatetime
    lines: Annotated[List[ExternalInvoiceLine], BeforeValidator(_parse_lines)] = Field(default_factory=list)

    @property
    def display_reference(self) -> str:
        return self.reference or self.external_id


# =============================================================================
# Internal Entities (read-only, owned by the catalog / profile store)
# =============================================================================

class InternalProduct(CanonicalBase):
    """A catalog product with its configured variants."""
    id: int
    name: str
    category: str = ""
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class PartnerIdentity(CanonicalBase):
    """An internal user that belongs to an agency."""
    user_id: str
    name: str
    agency_id: str

    model_config = ConfigDict(populate_by_name=True, frozen=True)


# =============================================================================
# Ledger
# =============================================================================

class InventoryTransaction(CanonicalBase):
    """One append-only row of the inventory ledger.

    Positive quantity adds stock, negative quantity removes it.
    """
    id: Optional[int] = None
    product_id: int
    product_name: str
    color: str = "Default"
    size: str = "Default"
    category: str = ""
    transaction_type: TransactionKind
    quantity: DecimalValue
    unit_price: DecimalValue = Decimal("0")
    reference_id: Optional[str] = None
    reference_name: Optional[str] = None
    agency_id: Optional[str] = None
    user_id: Optional[str] = None
    external_source: Optional[str] = None
    external_invoice_id: Optional[str] = None
    external_product_name: Optional[str] = None
    external_product_category: Optional[str] = None
    notes: Optional[str] = None
    transaction_date: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None


# =============================================================================
# Sync Run Log
# =============================================================================

class SyncRunLog(CanonicalBase):
    """An immutable record of one sync run event."""
    id: Optional[int] = None
    run_id: str
    sync_timestamp: UtcDatetime
    status: SyncStatus
    synced_count: int = 0
    message: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)

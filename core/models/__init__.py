"""Core data models - source-neutral canonical types.

This package contains all canonical data models that are intentionally
independent of any specific external system.
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    DecimalValue,
    TextValue,
    UtcDatetime,

    # Enums
    TransactionKind,
    SyncStatus,
    SyncMode,

    # External invoices
    ExternalInvoice,
    ExternalInvoiceLine,

    # Internal entities
    InternalProduct,
    PartnerIdentity,

    # Ledger / run log
    InventoryTransaction,
    SyncRunLog,

    # Helpers
    utc_now,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    # Base
    "CanonicalBase",
    "DecimalValue",
    "TextValue",
    "UtcDatetime",

    # Enums
    "TransactionKind",
    "SyncStatus",
    "SyncMode",

    # External invoices
    "ExternalInvoice",
    "ExternalInvoiceLine",

    # Internal entities
    "InternalProduct",
    "PartnerIdentity",

    # Ledger / run log
    "InventoryTransaction",
    "SyncRunLog",

    # Helpers
    "utc_now",
    "format_timestamp",
    "parse_timestamp",
]

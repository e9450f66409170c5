"""Error taxonomy for the inventory sync pipeline.

Fatal errors abort a run and produce a failure result:
- ConfigurationError: required settings are missing or invalid
- FetchError: the external source could not be read

Recoverable errors are counted and reported in the run summary:
- InvoicePayloadError: one invoice carried an unusable payload
- PersistenceError: a batch of ledger rows was rejected by storage
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for inventory sync errors."""
    pass


class ConfigurationError(SyncError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class FetchError(SyncError):
    """The external source was unreachable or returned a malformed payload."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class InvoicePayloadError(SyncError):
    """A single invoice could not be normalized (e.g. unparseable lines)."""

    def __init__(self, message: str, external_invoice_id: Optional[str] = None):
        super().__init__(message)
        self.external_invoice_id = external_invoice_id


class PersistenceError(SyncError):
    """Storage rejected a batch of ledger rows."""

    def __init__(
        self,
        message: str,
        external_invoice_id: Optional[str] = None,
        chunk_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.external_invoice_id = external_invoice_id
        self.chunk_index = chunk_index

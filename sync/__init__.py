"""Sync pipeline - fetch, resolve, write, advance.

Usage:
    from sync import SyncGateway, TriggerRequest

    gateway = SyncGateway()
    status_code, response = await gateway.trigger(TriggerRequest(trigger_source="manual"))
"""

from sync.fetcher import FetchResult, IncrementalFetcher, RejectedInvoice, normalize_record
from sync.gateway import SyncGateway, SyncResponse, TriggerRequest
from sync.orchestrator import ALLOWED_TRANSITIONS, SyncOrchestrator, SyncState, SyncSummary
from sync.schema import init_sync_database

__all__ = [
    "FetchResult",
    "IncrementalFetcher",
    "RejectedInvoice",
    "normalize_record",
    "SyncGateway",
    "SyncResponse",
    "TriggerRequest",
    "ALLOWED_TRANSITIONS",
    "SyncOrchestrator",
    "SyncState",
    "SyncSummary",
    "init_sync_database",
]

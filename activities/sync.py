"""
Inventory Sync Activity

Runs one sync pass through the same gateway the HTTP route uses, so a
scheduled run and a manual run follow identical rules and logging.

Failure mapping:
- configuration error: non-retryable ApplicationError
- connection or fetch failure: retryable ApplicationError (the watermark was
  not advanced, so a retry repeats the same window)
- completed run, even with per-invoice errors: returned normally
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from temporalio import activity
from temporalio.exceptions import ApplicationError

from core.models.canonical import SyncMode
from core.observability.logging import log_activity_complete, log_activity_error, log_activity_start, with_correlation
from sync.gateway import SyncGateway, SyncResponse, TriggerRequest


# Shared by every activity execution in this worker process
_gateway: Optional[SyncGateway] = None


def get_gateway() -> SyncGateway:
    global _gateway
    if _gateway is None:
        _gateway = SyncGateway()
    return _gateway


def set_gateway(gateway: Optional[SyncGateway]) -> None:
    """Replace the process gateway (tests, custom wiring)."""
    global _gateway
    _gateway = gateway


# =============================================================================
# Activity Input/Output Models
# =============================================================================

@dataclass
class RunInventorySyncInput:
    """Input for run_inventory_sync activity"""
    trigger_source: str = "scheduled"
    mode: str = SyncMode.INCREMENTAL.value
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RunInventorySyncOutput:
    """Output from run_inventory_sync activity"""
    success: bool
    message: str
    run_id: Optional[str] = None
    synced_count: int = 0
    invoices_fetched: int = 0
    duplicates: int = 0
    unmatched_partners: int = 0
    unmatched_products: int = 0
    skipped_lines: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)
    timestamp: str = ""

    @classmethod
    def from_response(cls, response: SyncResponse) -> "RunInventorySyncOutput":
        return cls(
            success=response.success,
            message=response.message,
            run_id=response.run_id,
            synced_count=response.synced_count,
            invoices_fetched=response.invoices_fetched,
            duplicates=response.duplicates,
            unmatched_partners=response.unmatched_partners,
            unmatched_products=response.unmatched_products,
            skipped_lines=response.skipped_lines,
            error_count=response.error_count,
            errors=list(response.errors),
            timestamp=response.timestamp.isoformat(),
        )


# =============================================================================
# run_inventory_sync Activity
# =============================================================================

@activity.defn
async def run_inventory_sync(input: RunInventorySyncInput) -> RunInventorySyncOutput:
    """Run one inventory sync pass."""
    info = activity.info()
    request = TriggerRequest(
        trigger_source=input.trigger_source,
        mode=SyncMode(input.mode),
        metadata={
            **input.metadata,
            "workflow_id": info.workflow_id,
            "workflow_run_id": info.workflow_run_id,
            "attempt": info.attempt,
        },
    )

    with with_correlation(
        workflow_id=info.workflow_id,
        workflow_run_id=info.workflow_run_id,
        activity_name=info.activity_type,
        task_queue=info.task_queue,
    ):
        log_activity_start("run_inventory_sync", trigger_source=input.trigger_source, attempt=info.attempt)
        status_code, response = await get_gateway().trigger(request)
        output = RunInventorySyncOutput.from_response(response)

        if status_code == 200:
            log_activity_complete(
                "run_inventory_sync",
                synced_count=output.synced_count,
                error_count=output.error_count,
            )
            return output

        # The gateway only omits run_id when settings could not be loaded
        non_retryable = response.run_id is None
        log_activity_error("run_inventory_sync", response.message, non_retryable=non_retryable)
        raise ApplicationError(
            response.message,
            output,
            type="ConfigurationError" if non_retryable else "FetchError",
            non_retryable=non_retryable,
        )

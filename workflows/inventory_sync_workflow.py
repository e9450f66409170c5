"""Inventory Sync Workflow.

Started on a cron schedule (see scripts/start_scheduled_sync.py) or once on
demand. Each execution runs a single sync activity; the activity owns all
database and network I/O.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from activities.sync import (
        run_inventory_sync,
        RunInventorySyncInput,
    )
    from core.config import DEFAULT_CRON_SCHEDULE, DEFAULT_TASK_QUEUE


TASK_QUEUE = DEFAULT_TASK_QUEUE
WORKFLOW_ID = "inventory-sync-cron"
CRON_SCHEDULE = DEFAULT_CRON_SCHEDULE

SYNC_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=30),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(minutes=10),
    maximum_attempts=3,
    non_retryable_error_types=["ConfigurationError"],
)


@dataclass
class InventorySyncInput:
    """Input for Inventory Sync Workflow.

    Attributes:
        trigger_source: Recorded on the run log ("scheduled" for cron runs)
        mode: "incremental" or "full_mirror"
        metadata: Free-form context stored with the triggered log row
    """
    trigger_source: str = "scheduled"
    mode: str = "incremental"
    metadata: Dict[str, Any] = field(default_factory=dict)


@workflow.defn
class InventorySyncWorkflow:
    """Runs one inventory sync and returns its structured result."""

    @workflow.run
    async def run(self, input: InventorySyncInput) -> dict:
        workflow.logger.info(f"Starting inventory sync ({input.mode}) from {input.trigger_source}")

        try:
            result = await workflow.execute_activity(
                run_inventory_sync,
                RunInventorySyncInput(
                    trigger_source=input.trigger_source,
                    mode=input.mode,
                    metadata=input.metadata,
                ),
                start_to_close_timeout=timedelta(minutes=15),
                retry_policy=SYNC_RETRY_POLICY,
            )
        except ActivityError as e:
            message = str(e.cause) if e.cause else str(e)
            workflow.logger.error(f"Inventory sync failed: {message}")
            return {
                "success": False,
                "message": message,
                "synced_count": 0,
                "error_count": 1,
                "errors": [message],
            }

        workflow.logger.info(
            f"Inventory sync finished: {result.synced_count} entries written, "
            f"{result.error_count} errors"
        )
        return {
            "success": result.success,
            "message": result.message,
            "run_id": result.run_id,
            "synced_count": result.synced_count,
            "invoices_fetched": result.invoices_fetched,
            "duplicates": result.duplicates,
            "unmatched_partners": result.unmatched_partners,
            "unmatched_products": result.unmatched_products,
            "skipped_lines": result.skipped_lines,
            "error_count": result.error_count,
            "errors": result.errors,
            "timestamp": result.timestamp,
        }

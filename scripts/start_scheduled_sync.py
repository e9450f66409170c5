"""Start the scheduled inventory sync on Temporal.

Registers InventorySyncWorkflow as a cron workflow (default 06:00 and 18:00
UTC). Use --once to run a single sync through the worker and print the
result instead.
"""

import asyncio
import os
import sys
from pathlib import Path
import logging
import uuid

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporalio.client import WorkflowFailureError
from temporalio.exceptions import WorkflowAlreadyStartedError

from core.config import load_env_file
from temporal_client import get_temporal_client
from workflows.inventory_sync_workflow import (
    CRON_SCHEDULE,
    InventorySyncInput,
    InventorySyncWorkflow,
    TASK_QUEUE,
    WORKFLOW_ID,
)


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def start_scheduled_sync(cron_schedule: str = CRON_SCHEDULE, workflow_id: str = WORKFLOW_ID):
    """Register the cron workflow. An existing schedule is left untouched."""
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    try:
        handle = await client.start_workflow(
            InventorySyncWorkflow.run,
            InventorySyncInput(trigger_source="scheduled"),
            id=workflow_id,
            task_queue=TASK_QUEUE,
            cron_schedule=cron_schedule,
        )
    except WorkflowAlreadyStartedError:
        logger.info(f"Workflow '{workflow_id}' is already scheduled; terminate it first to change the schedule")
        return None

    logger.info(f"Scheduled '{handle.id}' on queue '{TASK_QUEUE}' with cron '{cron_schedule}'")
    return handle.id


async def run_once(mode: str = "incremental") -> dict:
    """Run a single sync through the worker and wait for the result."""
    client = await get_temporal_client()
    workflow_id = f"inventory-sync-{uuid.uuid4().hex[:8]}"

    handle = await client.start_workflow(
        InventorySyncWorkflow.run,
        InventorySyncInput(trigger_source="manual", mode=mode),
        id=workflow_id,
        task_queue=TASK_QUEUE,
    )
    logger.info(f"Workflow started: {handle.id}")
    return await handle.result()


def main():
    """Entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Start the scheduled inventory sync")
    parser.add_argument(
        "--cron",
        default=None,
        help=f"Cron schedule (default: SYNC_CRON_SCHEDULE or '{CRON_SCHEDULE}')"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one sync now instead of registering the schedule"
    )
    parser.add_argument(
        "--full-mirror",
        action="store_true",
        help="With --once, ignore the watermark and refresh the local mirror"
    )
    args = parser.parse_args()

    load_env_file()
    cron_schedule = args.cron or os.getenv("SYNC_CRON_SCHEDULE") or CRON_SCHEDULE

    try:
        if args.once:
            result = asyncio.run(run_once("full_mirror" if args.full_mirror else "incremental"))
            print("\n=== WORKFLOW RESULT ===")
            for key, value in result.items():
                print(f"  {key}: {value}")
            print("=======================\n")
            return 0 if result.get("success") else 1

        asyncio.run(start_scheduled_sync(cron_schedule=cron_schedule))
        return 0
    except WorkflowFailureError as e:
        print(f"Workflow failed: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

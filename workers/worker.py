"""Worker for the inventory sync pipeline.

Listens on the inventory-sync task queue and executes the sync workflow and
its activity.

Run with --queue <name> to poll a different queue.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.observability import configure_logging
from temporal_client import get_temporal_client
from workflows.inventory_sync_workflow import InventorySyncWorkflow, TASK_QUEUE
from activities.sync import run_inventory_sync
from sync.schema import init_sync_database
from core.config import SyncSettings


logger = logging.getLogger(__name__)

WORKFLOWS = [InventorySyncWorkflow]
ACTIVITIES = [run_inventory_sync]


async def run_worker(queue: str = TASK_QUEUE):
    """Start a worker on the given task queue.

    Raises:
        Exception: If connection to Temporal fails
    """
    client = None

    try:
        # Tables must exist before the first scheduled run
        init_sync_database(SyncSettings.from_env().db_path)

        client = await get_temporal_client()
        logger.info(f"Connected to Temporal: {client.namespace}")

        worker = Worker(
            client,
            task_queue=queue,
            workflows=WORKFLOWS,
            activities=ACTIVITIES,
        )
        logger.info(f"Worker created for queue '{queue}':")
        logger.info(f"  - Workflows: {len(WORKFLOWS)}")
        logger.info(f"  - Activities: {len(ACTIVITIES)}")

        logger.info("Worker running... (Ctrl+C to stop)")
        await worker.run()

    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Inventory Sync Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=TASK_QUEUE,
        help=f"Task queue to poll (default: {TASK_QUEUE})"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines"
    )

    args = parser.parse_args()
    configure_logging(level=logging.INFO, json_format=args.json_logs)
    asyncio.run(run_worker(queue=args.queue))


if __name__ == "__main__":
    main()

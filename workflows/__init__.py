"""Workflow definitions module."""

from workflows.inventory_sync_workflow import (
    InventorySyncWorkflow,
    InventorySyncInput,
    TASK_QUEUE,
    WORKFLOW_ID,
)

__all__ = ["InventorySyncWorkflow", "InventorySyncInput", "TASK_QUEUE", "WORKFLOW_ID"]

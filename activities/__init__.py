"""Activity definitions module."""

from activities.sync import (
    run_inventory_sync,
    RunInventorySyncInput,
    RunInventorySyncOutput,
    get_gateway,
    set_gateway,
)

__all__ = [
    "run_inventory_sync",
    "RunInventorySyncInput",
    "RunInventorySyncOutput",
    "get_gateway",
    "set_gateway",
]

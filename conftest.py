"""Shared fixtures for the inventory sync tests."""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from connectors.source_base import InvoiceSource, SourceConfig
from sync.schema import init_sync_database


class FakeInvoiceSource(InvoiceSource):
    """In-memory source returning canned raw records."""

    def __init__(self, records: Any = None, error: Optional[Exception] = None, source_type: str = "odoo"):
        super().__init__(SourceConfig(source_type=source_type, base_url="http://erp.test"))
        self.records = records if records is not None else []
        self.error = error
        self.connected = False
        self.closed = False
        self.calls: List[Optional[datetime]] = []

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def fetch_invoices(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        self.calls.append(since)
        if self.error is not None:
            raise self.error
        return self.records


def make_record(
    invoice_id: Any = 614,
    partner_name: str = "Acme Agency",
    create_date: str = "2025-03-01 08:15:00",
    lines: Any = None,
    name: str = "INV/2025/00614",
) -> Dict[str, Any]:
    if lines is None:
        lines = [{
            "line_id": 9001,
            "product_name": "Blue Banner",
            "product_category": "Banners",
            "qty_delivered": 3,
            "price_unit": 12.5,
        }]
    return {
        "id": invoice_id,
        "name": name,
        "partner_name": partner_name,
        "create_date": create_date,
        "order_lines": lines,
    }


@pytest.fixture
def temp_db():
    """Create a temporary database with every sync table."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    init_sync_database(db_path)
    yield db_path

    # Cleanup - try to delete, ignore errors on Windows
    try:
        os.unlink(db_path)
    except PermissionError:
        pass


@pytest.fixture
def fixed_clock():
    """Clock pinned before the sample invoices so replays refetch them."""
    moment = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
    return lambda: moment


@pytest.fixture(autouse=True)
def reset_metrics():
    from core.observability.metrics import get_metrics
    get_metrics().reset()
    yield

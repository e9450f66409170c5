"""Sync endpoints.

Manual trigger plus read-only views of the run log, watermark and metrics.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from pydantic import BaseModel

from core.observability.metrics import get_metrics
from sync.gateway import SyncGateway, SyncResponse, TriggerRequest


router = APIRouter()


class SyncStatusResponse(BaseModel):
    """Latest run and current watermark."""
    status: str
    last_run: Optional[Dict[str, Any]] = None
    watermark: Optional[str] = None


def get_gateway(request: Request) -> SyncGateway:
    return request.app.state.gateway


@router.post("/trigger", response_model=SyncResponse)
async def trigger_sync(
    response: Response,
    body: Optional[TriggerRequest] = Body(default=None),
    gateway: SyncGateway = Depends(get_gateway),
) -> SyncResponse:
    """Run a sync now.

    Returns 200 when the run completed (even with per-invoice errors) and
    500 on a configuration, connection or fetch failure.
    """
    status_code, result = await gateway.trigger(body or TriggerRequest())
    response.status_code = status_code
    return result


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(gateway: SyncGateway = Depends(get_gateway)) -> SyncStatusResponse:
    return SyncStatusResponse(**gateway.status())


@router.get("/history")
async def sync_history(
    limit: int = Query(10, ge=1, le=100),
    gateway: SyncGateway = Depends(get_gateway),
) -> List[Dict[str, Any]]:
    """Most recent run log rows, newest first."""
    return gateway.history(limit=limit)


@router.get("/metrics")
async def sync_metrics() -> Dict[str, Any]:
    """In-process counters since the server started."""
    return get_metrics().get_summary()

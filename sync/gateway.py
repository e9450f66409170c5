"""Trigger Gateway.

The single entry point used by both the HTTP route and the Temporal activity.
Turns a trigger request into one orchestrator run and always answers with a
structured SyncResponse plus an HTTP-style status code.

Run log contract:
- a `triggered` row is written as soon as the request is accepted
- a `success` or `error` row is written when the run ends
- configuration errors are answered with 500 and leave no row at all
"""

import asyncio
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiohttp
from pydantic import BaseModel, Field

from connectors.http import SourceApiError
from connectors.source_base import InvoiceSource, SourceConfig, create_source
from core.cache import TTLCache
from core.config import SyncSettings, load_env_file, resolve_db_path
from core.errors import ConfigurationError
from core.models.canonical import SyncMode, SyncStatus, utc_now
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from ledger.writer import LedgerWriter
from partner_resolver.resolver import PartnerResolver
from product_resolver.resolver import ProductResolver
from sync.fetcher import IncrementalFetcher
from sync.orchestrator import SyncOrchestrator, SyncSummary
from sync_state.run_log import SyncRunLogger
from sync_state.watermark import WatermarkStore


logger = get_logger(__name__)


# =============================================================================
# Request / Response
# =============================================================================

class TriggerRequest(BaseModel):
    """Body of POST /sync/trigger."""
    trigger_source: str = "manual"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    mode: SyncMode = SyncMode.INCREMENTAL


class SyncResponse(BaseModel):
    """Structured result of a trigger."""
    success: bool
    message: str
    synced_count: int = 0
    error_count: int = 0
    errors: List[str] = Field(default_factory=list)
    unmatched_partners: int = 0
    unmatched_products: int = 0
    timestamp: datetime = Field(default_factory=utc_now)

    # Informational
    run_id: Optional[str] = None
    invoices_fetched: int = 0
    duplicates: int = 0
    skipped_lines: int = 0

    @classmethod
    def from_summary(cls, summary: SyncSummary) -> "SyncResponse":
        return cls(
            success=summary.success,
            message=summary.message,
            synced_count=summary.synced_count,
            error_count=summary.error_count,
            errors=summary.errors,
            unmatched_partners=summary.unmatched_partners,
            unmatched_products=summary.unmatched_products,
            timestamp=summary.finished_at or utc_now(),
            run_id=summary.run_id,
            invoices_fetched=summary.invoices_fetched,
            duplicates=summary.duplicates,
            skipped_lines=summary.skipped_lines,
        )


# =============================================================================
# Gateway
# =============================================================================

class SyncGateway:
    """Builds the pipeline from settings and runs it.

    One gateway lives per process so the resolver cache survives between
    triggers.

    Example:
        gateway = SyncGateway()
        status_code, response = await gateway.trigger(TriggerRequest(trigger_source="scheduled"))
    """

    def __init__(
        self,
        settings_loader: Callable[[], SyncSettings] = SyncSettings.from_env,
        source_factory: Callable[[SourceConfig], InvoiceSource] = create_source,
        cache: Optional[TTLCache] = None,
        db_path: Optional[Path] = None,
    ):
        self.settings_loader = settings_loader
        self.source_factory = source_factory
        self.cache = cache
        self.db_path = db_path

    def _cache_for(self, settings: SyncSettings) -> TTLCache:
        if self.cache is None:
            self.cache = TTLCache(ttl_seconds=settings.cache_ttl_seconds)
        return self.cache

    def resolve_db_path(self, settings: Optional[SyncSettings] = None) -> Path:
        """Database used by this gateway; reads need no source credentials."""
        if self.db_path is not None:
            return self.db_path
        if settings is not None:
            return settings.db_path
        load_env_file()
        return resolve_db_path()

    def build_orchestrator(self, settings: SyncSettings, source: InvoiceSource) -> SyncOrchestrator:
        db_path = self.resolve_db_path(settings)
        cache = self._cache_for(settings)
        return SyncOrchestrator(
            fetcher=IncrementalFetcher(source, db_path=db_path),
            partner_resolver=PartnerResolver(cache, db_path=db_path),
            product_resolver=ProductResolver(cache, db_path=db_path),
            ledger_writer=LedgerWriter(
                db_path=db_path,
                chunk_size=settings.ledger_chunk_size,
                import_sign=settings.import_sign,
            ),
            watermark_store=WatermarkStore(db_path),
            run_logger=SyncRunLogger(db_path),
        )

    async def trigger(self, request: Optional[TriggerRequest] = None) -> Tuple[int, SyncResponse]:
        """Run one sync.

        Returns:
            (status_code, response): 200 for a completed run, 500 for a
            fatal configuration, connection or fetch failure
        """
        request = request or TriggerRequest()

        try:
            settings = self.settings_loader()
        except ConfigurationError as e:
            logger.error(f"Sync not started: {e}", extra_fields={"missing": e.missing})
            return 500, SyncResponse(success=False, message=str(e), error_count=1, errors=[str(e)])

        db_path = self.resolve_db_path(settings)
        run_logger = SyncRunLogger(db_path)
        run_id = f"sync-{uuid.uuid4().hex[:12]}"

        with with_correlation(run_id=run_id, trigger_source=request.trigger_source):
            logger.info(f"Sync triggered ({request.mode.value}) from {request.trigger_source}")
            run_logger.record(
                run_id,
                SyncStatus.TRIGGERED,
                message=f"Sync triggered from {request.trigger_source}",
                details={
                    "sync_type": request.mode.value,
                    "sync_trigger": request.trigger_source,
                    "trigger_metadata": request.metadata,
                    "manual_trigger": request.trigger_source == "manual",
                },
            )

            try:
                source = self.source_factory(SourceConfig.from_settings(settings))
                async with source:
                    orchestrator = self.build_orchestrator(settings, source)
                    summary = await orchestrator.run(
                        trigger_source=request.trigger_source,
                        mode=request.mode,
                        run_id=run_id,
                        metadata=request.metadata,
                    )
            except (SourceApiError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                return self._fatal(run_logger, run_id, request, f"Could not connect to {settings.source_type}: {e}")
            except Exception as e:
                logger.exception("Sync run crashed")
                return self._fatal(run_logger, run_id, request, f"Sync failed: {e}")

        return (200 if summary.success else 500), SyncResponse.from_summary(summary)

    def _fatal(
        self,
        run_logger: SyncRunLogger,
        run_id: str,
        request: TriggerRequest,
        message: str,
    ) -> Tuple[int, SyncResponse]:
        logger.error(message)
        get_metrics().record_sync_failed(request.trigger_source)
        run_logger.record(
            run_id,
            SyncStatus.ERROR,
            message=message,
            details={
                "sync_type": request.mode.value,
                "sync_trigger": request.trigger_source,
                "trigger_metadata": request.metadata,
                "manual_trigger": request.trigger_source == "manual",
            },
        )
        return 500, SyncResponse(success=False, message=message, error_count=1, errors=[message], run_id=run_id)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        """Latest run and the current watermark."""
        db_path = self.resolve_db_path()
        latest = SyncRunLogger(db_path).get_latest()
        watermark = WatermarkStore(db_path).get()
        return {
            "status": latest.status.value if latest else "never_synced",
            "last_run": latest.model_dump(mode="json") if latest else None,
            "watermark": watermark.isoformat() if watermark else None,
        }

    def history(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent run log rows, newest first."""
        rows = SyncRunLogger(self.resolve_db_path()).get_history(limit=limit)
        return [row.model_dump(mode="json") for row in rows]

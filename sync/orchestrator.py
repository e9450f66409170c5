"""Sync Orchestrator.

Runs one reconciliation pass as an explicit state machine:

    IDLE -> FETCHING -> RESOLVING -> WRITING -> ADVANCING -> DONE
                 \
                  -> ERROR

Only a fetch failure is fatal. Partner misses, product misses, payload
rejections and persistence failures are counted, the first few are listed in
the summary, and the run carries on. The watermark is advanced to the time
the fetch started (never "now"), so invoices created while the run was in
progress are picked up next time.
"""

import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from core.errors import FetchError
from core.models.canonical import ExternalInvoice, SyncMode, SyncStatus, utc_now
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from ledger.models import ResolvedLine
from ledger.writer import LedgerWriter
from partner_resolver.resolver import PartnerResolver
from product_resolver.resolver import ProductResolver
from sync.fetcher import IncrementalFetcher
from sync_state.run_log import SyncRunLogger
from sync_state.watermark import WatermarkStore


logger = get_logger(__name__)


MAX_REPORTED_ERRORS = 10

# Timing sample names
STAGE_FETCH = "sync.fetch"
STAGE_RESOLVE = "sync.resolve"
STAGE_WRITE = "ledger.write"


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RESOLVING = "resolving"
    WRITING = "writing"
    ADVANCING = "advancing"
    DONE = "done"
    ERROR = "error"


ALLOWED_TRANSITIONS = {
    SyncState.IDLE: {SyncState.FETCHING},
    SyncState.FETCHING: {SyncState.RESOLVING, SyncState.ERROR},
    SyncState.RESOLVING: {SyncState.WRITING},
    SyncState.WRITING: {SyncState.ADVANCING},
    SyncState.ADVANCING: {SyncState.DONE},
    SyncState.DONE: {SyncState.IDLE},
    SyncState.ERROR: {SyncState.IDLE},
}


class SyncSummary(BaseModel):
    """Outcome of one orchestrator run."""
    run_id: str
    success: bool = False
    state: SyncState = SyncState.IDLE
    mode: SyncMode = SyncMode.INCREMENTAL
    trigger_source: str = "manual"
    message: str = ""

    invoices_fetched: int = 0
    invoices_rejected: int = 0
    invoices_processed: int = 0
    synced_count: int = 0
    duplicates: int = 0
    unmatched_partners: int = 0
    unmatched_products: int = 0
    skipped_lines: int = 0
    persistence_failures: int = 0

    error_count: int = 0
    errors: List[str] = Field(default_factory=list)
    partial_error: bool = False

    watermark_before: Optional[datetime] = None
    watermark_after: Optional[datetime] = None
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    def add_error(self, message: str, limit: int = MAX_REPORTED_ERRORS) -> None:
        """Count an error; only the first `limit` messages are kept."""
        self.error_count += 1
        self.partial_error = True
        if len(self.errors) < limit:
            self.errors.append(message)


class SyncOrchestrator:
    """Sequences fetch, resolution, ledger writes and watermark advance.

    Example:
        orchestrator = SyncOrchestrator(
            fetcher=IncrementalFetcher(source, db_path),
            partner_resolver=PartnerResolver(cache, db_path),
            product_resolver=ProductResolver(cache, db_path),
            ledger_writer=LedgerWriter(db_path),
            watermark_store=WatermarkStore(db_path),
            run_logger=SyncRunLogger(db_path),
        )
        summary = await orchestrator.run(trigger_source="scheduled")
    """

    def __init__(
        self,
        fetcher: IncrementalFetcher,
        partner_resolver: PartnerResolver,
        product_resolver: ProductResolver,
        ledger_writer: LedgerWriter,
        watermark_store: WatermarkStore,
        run_logger: SyncRunLogger,
        clock: Callable[[], datetime] = utc_now,
        max_reported_errors: int = MAX_REPORTED_ERRORS,
    ):
        self.fetcher = fetcher
        self.partner_resolver = partner_resolver
        self.product_resolver = product_resolver
        self.ledger_writer = ledger_writer
        self.watermark_store = watermark_store
        self.run_logger = run_logger
        self._clock = clock
        self.max_reported_errors = max_reported_errors
        self.state = SyncState.IDLE
        self.history: List[SyncState] = [SyncState.IDLE]

    def _transition(self, new_state: SyncState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal sync state transition {self.state.value} -> {new_state.value}")
        logger.debug(f"State {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    async def run(
        self,
        trigger_source: str = "manual",
        mode: SyncMode = SyncMode.INCREMENTAL,
        run_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SyncSummary:
        """Execute one sync pass.

        Never raises for data problems; a fatal fetch failure is returned as
        an unsuccessful summary in the ERROR state.
        """
        if self.state in (SyncState.DONE, SyncState.ERROR):
            self._transition(SyncState.IDLE)

        run_id = run_id or f"sync-{uuid.uuid4().hex[:12]}"
        summary = SyncSummary(run_id=run_id, mode=mode, trigger_source=trigger_source, started_at=self._clock())
        metrics = get_metrics()
        metrics.record_sync_started(trigger_source)
        start = time.time()

        with with_correlation(run_id=run_id, trigger_source=trigger_source, sync_mode=mode.value):
            self._transition(SyncState.FETCHING)
            summary.state = self.state

            fetch_started_at = self._clock()
            fetch_start = time.time()
            summary.watermark_before = self.watermark_store.get()

            try:
                with with_correlation(stage=SyncState.FETCHING.value):
                    fetched = await self.fetcher.fetch(summary.watermark_before, mode)
            except FetchError as e:
                return self._fail(summary, e, metadata, start)
            metrics.record_processing_time(STAGE_FETCH, (time.time() - fetch_start) * 1000)

            summary.invoices_fetched = len(fetched.invoices)
            summary.invoices_rejected = len(fetched.rejected)
            for rejected in fetched.rejected:
                summary.add_error(rejected.reason, self.max_reported_errors)

            self._transition(SyncState.RESOLVING)
            summary.state = self.state
            for invoice in fetched.invoices:
                with with_correlation(external_invoice_id=invoice.external_id):
                    await self._process_invoice(invoice, summary)

            # Writes happen per invoice above; the state records that every
            # invoice has been attempted.
            self._transition(SyncState.WRITING)
            self._transition(SyncState.ADVANCING)
            summary.state = self.state
            summary.watermark_after = self.watermark_store.advance(fetch_started_at)

            self._transition(SyncState.DONE)
            summary.state = self.state
            summary.success = True
            summary.finished_at = self._clock()
            summary.message = (
                f"Synced {summary.synced_count} inventory entries from "
                f"{summary.invoices_processed} of {summary.invoices_fetched} invoices"
            )

            duration_ms = (time.time() - start) * 1000
            metrics.record_sync_completed(trigger_source, duration_ms)
            metrics.record_reconciliation(
                invoices_fetched=summary.invoices_fetched,
                invoices_rejected=summary.invoices_rejected,
                unmatched_partners=summary.unmatched_partners,
                unmatched_products=summary.unmatched_products,
                entries_written=summary.synced_count,
                duplicates=summary.duplicates,
                persistence_failures=summary.persistence_failures,
            )

            self.run_logger.record(
                run_id,
                SyncStatus.SUCCESS,
                synced_count=summary.synced_count,
                message=summary.message,
                details=self._log_details(summary, metadata),
            )
            logger.info(summary.message, extra_fields={
                "duplicates": summary.duplicates,
                "unmatched_partners": summary.unmatched_partners,
                "unmatched_products": summary.unmatched_products,
                "error_count": summary.error_count,
                "duration_ms": round(duration_ms, 1),
            })
            return summary

    async def _process_invoice(self, invoice: ExternalInvoice, summary: SyncSummary) -> None:
        """Resolve and write one invoice; failures are recorded, not raised."""
        metrics = get_metrics()
        try:
            resolve_start = time.time()
            partner = await self.partner_resolver.resolve(invoice.partner_name)
            if not partner.is_matched:
                summary.unmatched_partners += 1
                logger.warning(
                    f"Skipping invoice {invoice.display_reference}: partner '{invoice.partner_name}' not resolved",
                    extra_fields={"reasons": partner.reasons},
                )
                return

            resolved_lines: List[ResolvedLine] = []
            for line in invoice.lines:
                if not line.is_stockable:
                    summary.skipped_lines += 1
                    continue

                resolution = await self.product_resolver.resolve_line(line)
                if not resolution.is_matched:
                    summary.unmatched_products += 1
                    logger.info(
                        f"No product match for '{line.product_name}' ({line.product_category})",
                        extra_fields={"reasons": resolution.reasons},
                    )
                    continue
                resolved_lines.append(ResolvedLine(line=line, resolution=resolution))

            metrics.record_processing_time(STAGE_RESOLVE, (time.time() - resolve_start) * 1000)

            if not resolved_lines:
                summary.invoices_processed += 1
                return

            write_start = time.time()
            result = await self.ledger_writer.write_invoice(invoice, partner.partner, resolved_lines)
            metrics.record_processing_time(STAGE_WRITE, (time.time() - write_start) * 1000)
            summary.synced_count += result.written
            summary.duplicates += result.duplicates
            summary.persistence_failures += result.failed
            for error in result.errors:
                summary.add_error(error, self.max_reported_errors)
            summary.invoices_processed += 1

        except Exception as e:
            logger.exception(f"Invoice {invoice.display_reference} failed")
            summary.add_error(f"Invoice {invoice.display_reference}: {e}", self.max_reported_errors)

    def _fail(
        self,
        summary: SyncSummary,
        error: FetchError,
        metadata: Optional[Dict[str, Any]],
        start: float,
    ) -> SyncSummary:
        self._transition(SyncState.ERROR)
        summary.state = self.state
        summary.success = False
        summary.finished_at = self._clock()
        summary.message = f"Sync failed: {error}"
        summary.add_error(str(error), self.max_reported_errors)

        get_metrics().record_sync_failed(summary.trigger_source)
        logger.error(summary.message, extra_fields={"duration_ms": round((time.time() - start) * 1000, 1)})

        self.run_logger.record(
            summary.run_id,
            SyncStatus.ERROR,
            synced_count=0,
            message=summary.message,
            details=self._log_details(summary, metadata),
        )
        return summary

    @staticmethod
    def _log_details(summary: SyncSummary, metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "sync_type": summary.mode.value,
            "sync_trigger": summary.trigger_source,
            "trigger_metadata": metadata or {},
            "manual_trigger": summary.trigger_source == "manual",
            "invoices_fetched": summary.invoices_fetched,
            "invoices_rejected": summary.invoices_rejected,
            "duplicates": summary.duplicates,
            "unmatched_partners": summary.unmatched_partners,
            "unmatched_products": summary.unmatched_products,
            "skipped_lines": summary.skipped_lines,
            "error_count": summary.error_count,
            "errors": summary.errors,
            "watermark_before": summary.watermark_before.isoformat() if summary.watermark_before else None,
            "watermark_after": summary.watermark_after.isoformat() if summary.watermark_after else None,
        }

"""
Source Connector Tests

Validates:
1. JSON-RPC envelopes are unwrapped and errors mapped
2. The Odoo source flattens invoices, lines and categories into raw records
3. The mirror source builds its query and paginates
4. HTTP retries and error mapping in request_json
5. The source registry
"""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from connectors import (
    MirrorInvoiceSource,
    OdooInvoiceSource,
    RetryConfig,
    SourceApiError,
    SourceAuthenticationError,
    SourceConfig,
    SourceNotFoundError,
    create_source,
    list_available_sources,
)
from connectors.http import request_json
from connectors.mirror.client import MirrorApiClient, MirrorApiConfig
from connectors.odoo.client import parse_rpc_response
from sync.fetcher import normalize_record


# =============================================================================
# JSON-RPC
# =============================================================================

class TestParseRpcResponse:

    def test_result_is_returned(self):
        assert parse_rpc_response({"jsonrpc": "2.0", "id": 1, "result": [1, 2]}) == [1, 2]

    def test_access_denied(self):
        response = {"error": {"code": 200, "message": "Odoo Server Error", "data": {
            "name": "odoo.exceptions.AccessDenied", "message": "Access Denied",
        }}}
        with pytest.raises(SourceAuthenticationError):
            parse_rpc_response(response)

    def test_other_rpc_error(self):
        response = {"error": {"code": 200, "message": "Odoo Server Error", "data": {
            "name": "builtins.ValueError", "message": "Invalid field 'foo'",
        }}}
        with pytest.raises(SourceApiError) as exc_info:
            parse_rpc_response(response)
        assert "Invalid field" in str(exc_info.value)
        assert not isinstance(exc_info.value, SourceAuthenticationError)

    @pytest.mark.parametrize("response", [None, [], {"jsonrpc": "2.0"}])
    def test_malformed_envelope(self, response):
        with pytest.raises(SourceApiError):
            parse_rpc_response(response)


# =============================================================================
# Odoo source
# =============================================================================

def odoo_source(invoices, lines, products):
    client = MagicMock()
    client.connect = AsyncMock(return_value=2)
    client.close = AsyncMock()
    client.search_read = AsyncMock(return_value=invoices)

    async def read(model, ids, fields):
        table = lines if model == "account.move.line" else products
        return [table[i] for i in ids if i in table]

    client.read = AsyncMock(side_effect=read)
    config = SourceConfig(source_type="odoo", base_url="https://erp.example.com", database="prod")
    return OdooInvoiceSource(config, client=client), client


class TestOdooInvoiceSource:
    """Test Odoo record flattening."""

    INVOICES = [{
        "id": 614,
        "name": "INV/2025/00614",
        "partner_id": [7, "Acme Agency"],
        "invoice_date": "2025-03-01",
        "create_date": "2025-03-01 08:15:00",
        "invoice_line_ids": [9001, 9002, 9003],
    }]
    LINES = {
        9001: {"id": 9001, "name": "Blue Banner", "product_id": [55, "[BB-L] Blue Banner"],
               "quantity": 3.0, "price_unit": 12.5, "display_type": "product"},
        9002: {"id": 9002, "name": "Shipping", "product_id": False,
               "quantity": 0.0, "price_unit": 0.0, "display_type": "line_section"},
        9003: {"id": 9003, "name": False, "product_id": [56, "Flyer A5"],
               "quantity": 250.0, "price_unit": 0.1, "display_type": "product"},
    }
    PRODUCTS = {
        55: {"id": 55, "categ_id": [3, "All / Saleable / Banners"]},
        56: {"id": 56, "categ_id": False},
    }

    def test_fetch_flattens_invoice(self):
        source, client = odoo_source(self.INVOICES, self.LINES, self.PRODUCTS)

        records = asyncio.run(source.fetch_invoices(datetime(2025, 3, 1, tzinfo=timezone.utc)))

        assert len(records) == 1
        record = records[0]
        assert record["id"] == 614
        assert record["partner_name"] == "Acme Agency"
        assert [l["line_id"] for l in record["order_lines"]] == [9001, 9003]

        banner, flyer = record["order_lines"]
        assert banner["product_name"] == "Blue Banner"
        assert banner["product_category"] == "Banners"
        assert flyer["product_name"] == "Flyer A5"
        assert flyer["product_category"] == "General"

    def test_domain_filters_customer_invoices_since_watermark(self):
        source, client = odoo_source([], {}, {})

        asyncio.run(source.fetch_invoices(datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)))

        model, domain, fields = client.search_read.call_args.args[:3]
        assert model == "account.move"
        assert ["move_type", "=", "out_invoice"] in domain
        assert ["create_date", ">=", "2025-03-01 10:00:00"] in domain
        assert client.search_read.call_args.kwargs["order"] == "create_date asc, id asc"
        client.read.assert_not_called()

    def test_records_normalize(self):
        source, _ = odoo_source(self.INVOICES, self.LINES, self.PRODUCTS)
        record = asyncio.run(source.fetch_invoices())[0]

        invoice = normalize_record(record, source.source_name)

        assert invoice.external_id == "614"
        assert len(invoice.lines) == 2
        assert all(line.is_stockable for line in invoice.lines)

    def test_context_manager_connects_and_closes(self):
        source, client = odoo_source([], {}, {})

        async def use():
            async with source:
                pass

        asyncio.run(use())
        client.connect.assert_awaited_once()
        client.close.assert_awaited_once()


# =============================================================================
# Mirror source
# =============================================================================

class TestMirrorInvoiceSource:

    def test_query_params(self):
        client = MagicMock()
        client.select_all = AsyncMock(return_value=[])
        config = SourceConfig(source_type="mirror", base_url="https://events.example.com", table="odoo_invoices")
        source = MirrorInvoiceSource(config, client=client)

        asyncio.run(source.fetch_invoices(datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)))

        table, params = client.select_all.call_args.args
        assert table == "odoo_invoices"
        assert params["order"] == "create_date.asc,id.asc"
        assert params["create_date"] == "gte.2025-03-01T09:00:00.000000Z"

    def test_no_watermark_reads_everything(self):
        client = MagicMock()
        client.select_all = AsyncMock(return_value=[])
        source = MirrorInvoiceSource(SourceConfig(source_type="mirror", base_url="x"), client=client)

        asyncio.run(source.fetch_invoices(None))

        assert "create_date" not in client.select_all.call_args.args[1]

    def test_select_all_paginates(self):
        client = MirrorApiClient(MirrorApiConfig(base_url="https://events.example.com", api_key="k", page_size=2))
        pages = [[{"id": 1}, {"id": 2}], [{"id": 3}, {"id": 4}], [{"id": 5}]]
        client.select = AsyncMock(side_effect=pages)

        rows = asyncio.run(client.select_all("invoices", {"select": "*"}))

        assert [r["id"] for r in rows] == [1, 2, 3, 4, 5]
        offsets = [c.args[1]["offset"] for c in client.select.call_args_list]
        assert offsets == ["0", "2", "4"]


# =============================================================================
# HTTP plumbing
# =============================================================================

class FakeResponse:
    def __init__(self, status, body="", headers=None):
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def fake_session(*responses):
    session = MagicMock()
    session.request = MagicMock(side_effect=list(responses))
    return session


class TestRequestJson:
    """Test retries and status mapping."""

    def test_success(self):
        session = fake_session(FakeResponse(200, json.dumps({"result": 1})))
        result = asyncio.run(request_json(session, "POST", "http://x", RetryConfig()))
        assert result == {"result": 1}

    @patch("connectors.http.asyncio.sleep", new_callable=AsyncMock)
    def test_retries_server_errors(self, sleep):
        session = fake_session(FakeResponse(503, "busy"), FakeResponse(200, "[]"))

        result = asyncio.run(request_json(session, "GET", "http://x", RetryConfig(max_retries=2)))

        assert result == []
        assert session.request.call_count == 2
        sleep.assert_awaited_once()

    @patch("connectors.http.asyncio.sleep", new_callable=AsyncMock)
    def test_gives_up_after_max_retries(self, sleep):
        session = fake_session(*[FakeResponse(502, "bad gateway") for _ in range(3)])

        with pytest.raises(SourceApiError) as exc_info:
            asyncio.run(request_json(session, "GET", "http://x", RetryConfig(max_retries=2)))
        assert exc_info.value.status_code == 502

    @pytest.mark.parametrize("status,error", [
        (401, SourceAuthenticationError),
        (403, SourceAuthenticationError),
        (404, SourceNotFoundError),
    ])
    def test_client_errors_are_not_retried(self, status, error):
        session = fake_session(FakeResponse(status, "nope"))

        with pytest.raises(error):
            asyncio.run(request_json(session, "GET", "http://x", RetryConfig(max_retries=3)))
        assert session.request.call_count == 1

    def test_invalid_json_body(self):
        session = fake_session(FakeResponse(200, "<html>login</html>"))
        with pytest.raises(SourceApiError):
            asyncio.run(request_json(session, "GET", "http://x", RetryConfig()))

    def test_retry_delay_is_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0)
        assert config.get_delay(0) == 1.0
        assert config.get_delay(2) == 4.0
        assert config.get_delay(10) == 5.0


# =============================================================================
# Registry
# =============================================================================

class TestSourceRegistry:

    def test_both_sources_registered(self):
        assert {"odoo", "mirror"} <= set(list_available_sources())

    def test_create_source(self):
        source = create_source(SourceConfig(source_type="Mirror", base_url="https://events.example.com"))
        assert isinstance(source, MirrorInvoiceSource)
        assert source.source_name == "mirror"

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            create_source(SourceConfig(source_type="sap", base_url="x"))

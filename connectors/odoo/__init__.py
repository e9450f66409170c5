"""Odoo connector (JSON-RPC)."""

from connectors.odoo.client import OdooApiConfig, OdooRpcClient, parse_rpc_response
from connectors.odoo.source import OdooInvoiceSource

__all__ = [
    "OdooApiConfig",
    "OdooRpcClient",
    "parse_rpc_response",
    "OdooInvoiceSource",
]

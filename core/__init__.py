"""Core module - shared building blocks for the inventory sync pipeline.

This module contains the canonical data models, configuration, error types,
the resolution cache and the observability helpers. It is intentionally
source-agnostic.

Source-specific logic (Odoo, the mirrored event store, ...) belongs in /connectors/.
"""

__version__ = "1.0.0"

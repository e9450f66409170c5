"""
Configuration and Cache Tests

Validates:
1. Settings are built from environment variables per source type
2. Missing or invalid settings raise ConfigurationError naming the problem
3. The TTL cache expires entries on its injected clock
"""

from decimal import Decimal
from pathlib import Path

import pytest

from core.cache import TTLCache
from core.config import DEFAULT_DB_PATH, SyncSettings, normalize_base_url, resolve_db_path
from core.errors import ConfigurationError


ODOO_ENV = {
    "SYNC_SOURCE": "odoo",
    "ODOO_URL": "https://erp.example.com/web/login/",
    "ODOO_DATABASE": "prod",
    "ODOO_USERNAME": "sync@example.com",
    "ODOO_PASSWORD": "secret",
}


class TestSyncSettings:
    """Test settings parsing."""

    def test_odoo_settings(self):
        settings = SyncSettings.from_env(ODOO_ENV)

        assert settings.source_type == "odoo"
        assert settings.base_url == "https://erp.example.com"
        assert settings.database == "prod"
        assert settings.db_path == DEFAULT_DB_PATH
        assert settings.import_sign == Decimal("1")
        assert settings.cron_schedule == "0 6,18 * * *"
        assert settings.task_queue == "inventory-sync"

    def test_source_defaults_to_odoo(self):
        env = dict(ODOO_ENV)
        del env["SYNC_SOURCE"]
        assert SyncSettings.from_env(env).source_type == "odoo"

    def test_mirror_settings(self):
        settings = SyncSettings.from_env({
            "SYNC_SOURCE": "mirror",
            "MIRROR_URL": "https://events.example.com/",
            "MIRROR_API_KEY": "key",
            "MIRROR_TABLE": "odoo_invoices",
            "INVENTORY_DB_PATH": "/tmp/sync.db",
        })

        assert settings.base_url == "https://events.example.com"
        assert settings.mirror_table == "odoo_invoices"
        assert settings.db_path == Path("/tmp/sync.db")

    def test_missing_variables_are_all_named(self):
        with pytest.raises(ConfigurationError) as exc_info:
            SyncSettings.from_env({"SYNC_SOURCE": "odoo", "ODOO_URL": "https://erp.example.com"})

        assert exc_info.value.missing == ["ODOO_DATABASE", "ODOO_USERNAME", "ODOO_PASSWORD"]
        assert "ODOO_PASSWORD" in str(exc_info.value)

    def test_unknown_source_rejected(self):
        with pytest.raises(ConfigurationError):
            SyncSettings.from_env({"SYNC_SOURCE": "sap"})

    def test_import_direction_out(self):
        settings = SyncSettings.from_env({**ODOO_ENV, "SYNC_IMPORT_DIRECTION": "OUT"})
        assert settings.import_sign == Decimal("-1")

    def test_invalid_import_direction(self):
        with pytest.raises(ConfigurationError):
            SyncSettings.from_env({**ODOO_ENV, "SYNC_IMPORT_DIRECTION": "sideways"})

    def test_db_path_from_env(self, tmp_path):
        settings = SyncSettings.from_env({**ODOO_ENV, "INVENTORY_DB_PATH": str(tmp_path / "inv.db")})
        assert settings.db_path == tmp_path / "inv.db"

    def test_db_path_in_missing_directory(self, tmp_path):
        db_path = tmp_path / "no-such-dir" / "inv.db"
        with pytest.raises(ConfigurationError) as exc_info:
            SyncSettings.from_env({**ODOO_ENV, "INVENTORY_DB_PATH": str(db_path)})
        assert exc_info.value.missing == ["INVENTORY_DB_PATH"]

    def test_numeric_settings(self):
        settings = SyncSettings.from_env({
            **ODOO_ENV,
            "SYNC_CACHE_TTL_SECONDS": "60",
            "SYNC_LEDGER_CHUNK_SIZE": "50",
        })
        assert settings.cache_ttl_seconds == 60.0
        assert settings.ledger_chunk_size == 50

    @pytest.mark.parametrize("value", ["abc", "0", "-5"])
    def test_invalid_chunk_size(self, value):
        with pytest.raises(ConfigurationError):
            SyncSettings.from_env({**ODOO_ENV, "SYNC_LEDGER_CHUNK_SIZE": value})


class TestConfigHelpers:

    @pytest.mark.parametrize("raw,expected", [
        ("https://erp.example.com", "https://erp.example.com"),
        ("https://erp.example.com/", "https://erp.example.com"),
        ("https://erp.example.com/web/login", "https://erp.example.com"),
        (" https://erp.example.com/web/login/ ", "https://erp.example.com"),
    ])
    def test_normalize_base_url(self, raw, expected):
        assert normalize_base_url(raw) == expected

    def test_resolve_db_path_needs_no_credentials(self):
        assert resolve_db_path({"INVENTORY_DB_PATH": "/data/inv.db"}) == Path("/data/inv.db")
        assert resolve_db_path({}) == DEFAULT_DB_PATH


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    """Test cache expiry and loading."""

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=300, clock=clock)
        cache.set("partners", {"acme agency": 1})

        clock.now += 299
        assert cache.get("partners") == {"acme agency": 1}

        clock.now += 1
        assert cache.get("partners") is None
        assert cache.stats.expired == 1

    def test_get_or_load_calls_loader_once_within_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=10, clock=clock)
        calls = []

        def loader():
            calls.append(1)
            return ["catalog"]

        assert cache.get_or_load("catalog", loader) == ["catalog"]
        assert cache.get_or_load("catalog", loader) == ["catalog"]
        assert len(calls) == 1

        clock.now += 11
        cache.get_or_load("catalog", loader)
        assert len(calls) == 2

    def test_cached_none_is_a_hit(self):
        cache = TTLCache(ttl_seconds=10, clock=FakeClock())
        loads = []
        cache.get_or_load("missing", lambda: loads.append(1))
        cache.get_or_load("missing", lambda: loads.append(1))
        assert loads == [1]

    def test_invalidate(self):
        cache = TTLCache(ttl_seconds=10, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        assert "a" not in cache
        assert "b" in cache

        cache.invalidate()
        assert len(cache) == 0

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=0)

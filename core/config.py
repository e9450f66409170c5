"""Runtime configuration for the inventory sync pipeline.

Settings are read from environment variables. A `.env` file at the
repository root is loaded first if it exists (same convention as
temporal_client.py).

Usage:
    from core.config import SyncSettings

    settings = SyncSettings.from_env()   # raises ConfigurationError
    print(settings.source_type, settings.db_path)
"""

import os
import re
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from core.errors import ConfigurationError


# =============================================================================
# Defaults
# =============================================================================

REPO_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = REPO_ROOT / ".env"

# Single SQLite database shared by the ledger, watermark and run log
DEFAULT_DB_PATH = REPO_ROOT / "inventory_sync.db"

DEFAULT_CACHE_TTL_SECONDS = 300
DEFAULT_LEDGER_CHUNK_SIZE = 300
DEFAULT_CRON_SCHEDULE = "0 6,18 * * *"
DEFAULT_TASK_QUEUE = "inventory-sync"

SUPPORTED_SOURCES = ("odoo", "mirror")
IMPORT_DIRECTIONS = {"in": Decimal("1"), "out": Decimal("-1")}

# Required variables per source type
REQUIRED_SOURCE_VARS = {
    "odoo": ("ODOO_URL", "ODOO_DATABASE", "ODOO_USERNAME", "ODOO_PASSWORD"),
    "mirror": ("MIRROR_URL", "MIRROR_API_KEY"),
}


def load_env_file(path: Path = ENV_PATH) -> None:
    """Load variables from a .env file if one exists."""
    if path.exists():
        load_dotenv(path)


def normalize_base_url(url: str) -> str:
    """Strip login paths and trailing slashes from a server URL.

    Users often paste the browser URL of the login page, e.g.
    "https://erp.example.com/web/login/".
    """
    url = url.strip()
    url = re.sub(r"/web/login/?$", "", url)
    return url.rstrip("/")


def resolve_db_path(env: Optional[Mapping[str, str]] = None) -> Path:
    """Return the database path without validating source settings.

    An unset INVENTORY_DB_PATH means the repository-root database.
    """
    env = os.environ if env is None else env
    value = env.get("INVENTORY_DB_PATH")
    return Path(value) if value else DEFAULT_DB_PATH


# =============================================================================
# Settings
# =============================================================================

@dataclass
class SyncSettings:
    """Validated settings for one sync process."""
    source_type: str
    base_url: str
    db_path: Path = DEFAULT_DB_PATH

    # Odoo JSON-RPC credentials
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    # Mirrored event store
    api_key: Optional[str] = None
    mirror_table: str = "invoices"

    # Behaviour
    import_direction: str = "in"
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    ledger_chunk_size: int = DEFAULT_LEDGER_CHUNK_SIZE
    cron_schedule: str = DEFAULT_CRON_SCHEDULE
    task_queue: str = DEFAULT_TASK_QUEUE
    timeout_seconds: int = 30

    @property
    def import_sign(self) -> Decimal:
        """Multiplier applied to delivered quantities (+1 adds stock)."""
        return IMPORT_DIRECTIONS[self.import_direction]

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        load_file: bool = True,
    ) -> "SyncSettings":
        """Build settings from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)
            load_file: Load the repository .env file first

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        if env is None:
            if load_file:
                load_env_file()
            env = os.environ

        source_type = (env.get("SYNC_SOURCE") or "odoo").strip().lower()
        if source_type not in SUPPORTED_SOURCES:
            raise ConfigurationError(
                f"Unsupported SYNC_SOURCE '{source_type}'. "
                f"Available: {list(SUPPORTED_SOURCES)}"
            )

        missing = [name for name in REQUIRED_SOURCE_VARS[source_type] if not env.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing {source_type} configuration: {', '.join(missing)}",
                missing=missing,
            )

        direction = (env.get("SYNC_IMPORT_DIRECTION") or "in").strip().lower()
        if direction not in IMPORT_DIRECTIONS:
            raise ConfigurationError(
                f"SYNC_IMPORT_DIRECTION must be one of {list(IMPORT_DIRECTIONS)}, got '{direction}'"
            )

        db_path = resolve_db_path(env)
        if not db_path.parent.is_dir():
            raise ConfigurationError(
                f"INVENTORY_DB_PATH directory does not exist: {db_path.parent}",
                missing=["INVENTORY_DB_PATH"],
            )

        if source_type == "odoo":
            base_url = normalize_base_url(env["ODOO_URL"])
        else:
            base_url = normalize_base_url(env["MIRROR_URL"])

        return cls(
            source_type=source_type,
            base_url=base_url,
            db_path=db_path,
            database=env.get("ODOO_DATABASE"),
            username=env.get("ODOO_USERNAME"),
            password=env.get("ODOO_PASSWORD"),
            api_key=env.get("MIRROR_API_KEY"),
            mirror_table=env.get("MIRROR_TABLE") or "invoices",
            import_direction=direction,
            cache_ttl_seconds=_parse_number(env, "SYNC_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS, float),
            ledger_chunk_size=_parse_number(env, "SYNC_LEDGER_CHUNK_SIZE", DEFAULT_LEDGER_CHUNK_SIZE, int),
            cron_schedule=env.get("SYNC_CRON_SCHEDULE") or DEFAULT_CRON_SCHEDULE,
            task_queue=env.get("SYNC_TASK_QUEUE") or DEFAULT_TASK_QUEUE,
            timeout_seconds=_parse_number(env, "SYNC_HTTP_TIMEOUT_SECONDS", 30, int),
        )


def _parse_number(env: Mapping[str, str], name: str, default, cast):
    """Parse a positive numeric variable."""
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got '{raw}'")
    return value

"""
Warehouse engine setup and relation naming.
"""

from pathlib import Path
from urllib.parse import urlparse

from sqlalchemy import Engine, create_engine
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from policyledger.config import WarehouseConfig


# Drivers that SQLAlchemy can run on an AsyncEngine
ASYNC_DRIVERS = ("+aiosqlite",)


def table_fqdn(project_id: str, dataset_id: str, table_id: str) -> str:
    """Get the fully-qualified `project.dataset.table` name of a table or view."""
    return f"{project_id}.{dataset_id}.{table_id}"


def get_database_url(config: WarehouseConfig) -> str:
    """Get the engine URL for the warehouse.

    Plain SQLite URLs are moved onto the aiosqlite driver
    (sqlite:// -> sqlite+aiosqlite://); any other URL, such as
    bigquery://project, is used as configured.
    """
    url = config.url
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def is_async_url(url: str) -> bool:
    """Check whether the URL names an async driver."""
    return any(driver in url for driver in ASYNC_DRIVERS)


def _ensure_sqlite_parent_dir(url: str) -> None:
    """Ensure parent directory exists for SQLite database."""
    if url.startswith("sqlite"):
        parsed = urlparse(url)
        if parsed.path:
            # Drop the separator slash; a fourth slash marks an absolute path
            path = parsed.path[1:]
            if path and path != ":memory:":
                Path(path).parent.mkdir(parents=True, exist_ok=True)


def create_warehouse_engine(config: WarehouseConfig) -> AsyncEngine | Engine:
    """Create the engine shared by the whole process.

    Async drivers get an AsyncEngine; sync-only dialects (bigquery://) get a
    regular Engine that the warehouse client drives from a worker thread.
    """
    url = get_database_url(config)
    _ensure_sqlite_parent_dir(url)
    if is_async_url(url):
        return create_async_engine(url, echo=False)
    return create_engine(url, echo=False)

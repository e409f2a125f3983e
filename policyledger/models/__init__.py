# Policyledger Models
from policyledger.models.result import PolicyResult
from policyledger.models.warehouse import (
    create_warehouse_engine,
    get_database_url,
    is_async_url,
    table_fqdn,
)

__all__ = [
    "PolicyResult",
    "create_warehouse_engine",
    "get_database_url",
    "is_async_url",
    "table_fqdn",
]

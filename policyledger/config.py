"""
Policyledger configuration loader.

Configuration is read from a single config.yaml:
- server: HTTP listener for the policy API
- warehouse: connection URL plus the dataset/table/view identifiers and field sets
- metadata: endpoint of the metadata manager refreshed after each write
- policies: behaviour switches for the policy service
- logging: log level
"""

from dataclasses import dataclass, field
from pathlib import Path

import yaml


DEFAULT_POLICY_TABLE_FIELDS = [
    "rowId",
    "policyId",
    "name",
    "description",
    "datasets",
    "rowAccessTags",
    "isDeleted",
    "createdBy",
    "createdAt",
]

DEFAULT_POLICY_VIEW_FIELDS = [
    "policyId",
    "name",
    "description",
    "datasets",
    "rowAccessTags",
    "isDeleted",
    "createdBy",
    "createdAt",
]


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class WarehouseConfig:
    url: str = "sqlite+aiosqlite:///./data/warehouse.db"
    dataset_id: str = "datashare"
    policy_table_id: str = "policy"
    policy_view_id: str = "currentPolicy"
    account_view_id: str = "currentAccount"
    # Ordered write schema of the append-only table
    policy_table_fields: list[str] = field(
        default_factory=lambda: list(DEFAULT_POLICY_TABLE_FIELDS)
    )
    # Read projection of the current-policy view
    policy_view_fields: list[str] = field(
        default_factory=lambda: list(DEFAULT_POLICY_VIEW_FIELDS)
    )


@dataclass
class MetadataConfig:
    base_url: str = ""
    timeout: int = 30


@dataclass
class PoliciesConfig:
    list_limit: int = 10
    update_marks_deleted: bool = True


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Config:
    """Static configuration loaded from config.yaml."""
    server: ServerConfig = field(default_factory=ServerConfig)
    warehouse: WarehouseConfig = field(default_factory=WarehouseConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    policies: PoliciesConfig = field(default_factory=PoliciesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _field_list(value, default: list[str]) -> list[str]:
    """Normalize a configured field set, dropping duplicates but keeping order."""
    if value is None:
        return list(default)
    if isinstance(value, str):
        value = [v.strip() for v in value.split(",")]
    return list(dict.fromkeys(v for v in value if v))


def load_config(config_path: str | Path) -> Config:
    """Load configuration from a YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = Config()

    # Server
    if "server" in data:
        server_data = data["server"]
        config.server = ServerConfig(
            host=server_data.get("host", "0.0.0.0"),
            port=server_data.get("port", 8080),
        )

    # Warehouse
    if "warehouse" in data:
        wh_data = data["warehouse"]
        defaults = WarehouseConfig()
        config.warehouse = WarehouseConfig(
            url=wh_data.get("url", defaults.url),
            dataset_id=wh_data.get("dataset_id", defaults.dataset_id),
            policy_table_id=wh_data.get("policy_table_id", defaults.policy_table_id),
            policy_view_id=wh_data.get("policy_view_id", defaults.policy_view_id),
            account_view_id=wh_data.get("account_view_id", defaults.account_view_id),
            policy_table_fields=_field_list(
                wh_data.get("policy_table_fields"), DEFAULT_POLICY_TABLE_FIELDS
            ),
            policy_view_fields=_field_list(
                wh_data.get("policy_view_fields"), DEFAULT_POLICY_VIEW_FIELDS
            ),
        )

    # Metadata manager
    if "metadata" in data:
        md_data = data["metadata"]
        config.metadata = MetadataConfig(
            base_url=md_data.get("base_url", ""),
            timeout=md_data.get("timeout", 30),
        )

    # Policies
    if "policies" in data:
        pol_data = data["policies"]
        config.policies = PoliciesConfig(
            list_limit=pol_data.get("list_limit", 10),
            update_marks_deleted=pol_data.get("update_marks_deleted", True),
        )

    # Logging
    if "logging" in data:
        logging_data = data["logging"]
        config.logging = LoggingConfig(
            level=logging_data.get("level", "INFO"),
        )

    return config

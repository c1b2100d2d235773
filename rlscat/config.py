"""
rlscat configuration loader.

Static configuration comes from config.yaml (server, database, admin, catalog,
logging). The policy catalog itself lives in the database.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class ServerConfig:
    port: int = 8100
    host: str = "0.0.0.0"


@dataclass
class DatabaseConfig:
    url: str = "sqlite+aiosqlite:///./data/rlscat.db"


@dataclass
class AdminConfig:
    password_hash: str = ""
    jwt_secret: str = ""
    jwt_expire_hours: int = 24


@dataclass
class CatalogConfig:
    seed_path: Optional[str] = None  # None -> bundled snapshot
    seed_on_startup: bool = True
    schema: Optional[str] = None


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Config:
    """Static configuration loaded from config.yaml."""
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: str | Path) -> Config:
    """Load static configuration from a YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = Config()

    if "server" in data:
        server_data = data["server"] or {}
        config.server = ServerConfig(
            port=server_data.get("port", 8100),
            host=server_data.get("host", "0.0.0.0"),
        )

    if "database" in data:
        db_data = data["database"] or {}
        config.database = DatabaseConfig(
            url=db_data.get("url", DatabaseConfig.url),
        )

    if "admin" in data:
        admin_data = data["admin"] or {}
        config.admin = AdminConfig(
            password_hash=admin_data.get("password_hash", ""),
            jwt_secret=admin_data.get("jwt_secret", ""),
            jwt_expire_hours=admin_data.get("jwt_expire_hours", 24),
        )

    if "catalog" in data:
        catalog_data = data["catalog"] or {}
        config.catalog = CatalogConfig(
            seed_path=catalog_data.get("seed_path"),
            seed_on_startup=catalog_data.get("seed_on_startup", True),
            schema=catalog_data.get("schema"),
        )

    if "logging" in data:
        logging_data = data["logging"] or {}
        config.logging = LoggingConfig(
            level=logging_data.get("level", "INFO"),
        )

    return config

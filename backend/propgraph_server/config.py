"""
Configuration for the PropGraph gateway.

All configuration is done via environment variables, loaded with
pydantic-settings. Settings are created once by the app factory and handed
to the stores and the gateway; nothing reads the environment after startup.

Invariants:
    - All settings have sensible defaults for local development
    - The primary store is only used when host and HTTP path are both set
    - Secrets are never logged (no secrets live here; the primary store
      authenticates with the caller's forwarded token)
"""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "main.default.property_graph_entity_edges"


class DatabricksSettings(BaseSettings):
    """Primary (Databricks SQL warehouse) store configuration."""

    host: str | None = Field(default=None, description="Workspace hostname")
    http_path: str | None = Field(default=None, description="SQL warehouse HTTP path")
    table: str = Field(default=DEFAULT_TABLE_NAME, description="Default edge table")
    query_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Upper bound for one primary store operation"
    )

    model_config = {"env_prefix": "DATABRICKS_"}

    @property
    def configured(self) -> bool:
        """True if the warehouse endpoint is fully specified."""
        return bool(self.host and self.http_path)


class Settings(BaseSettings):
    """Gateway configuration loaded from environment."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8000, description="Bind port")

    # Local fallback store
    db_path: str = Field(default="graph.db", description="SQLite database file")
    seed_on_empty: bool = Field(default=True, description="Load sample graph into an empty store")
    busy_timeout_ms: int = Field(default=5000, description="SQLite busy timeout")

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Observability
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    log_format: str = Field(default="json", description="json or text")

    databricks: DatabricksSettings = Field(default_factory=DatabricksSettings)

    model_config = {"env_prefix": "PROPGRAPH_"}

    def log_config(self) -> None:
        """Log configuration at startup."""
        logger.info(
            "Gateway configuration loaded",
            extra={
                "db_path": self.db_path,
                "seed_on_empty": self.seed_on_empty,
                "databricks_configured": self.databricks.configured,
                "databricks_host": self.databricks.host,
                "databricks_table": self.databricks.table,
                "auth_mode": "user_token_only",
                "log_level": self.log_level,
            },
        )

"""Service configuration — env-driven.

Centralized config using pydantic-settings for environment variable
support. Reads from .env file and CONSIGNPROXY_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

TMP_DIR = "tmp"
CONSIGNMENTS_DIR = "consignments"
DATABASE_FILE = "app.db"


class ProxyConfig(BaseSettings):
    """Proxy configuration with environment variable overrides.

    All settings can be overridden via CONSIGNPROXY_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export CONSIGNPROXY_DATA_DIR=/srv/consignproxy
        export CONSIGNPROXY_LOG_LEVEL=DEBUG
        export CONSIGNPROXY_PORT=8080
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CONSIGNPROXY_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Staging, artifacts and the record database all live under data_dir
    data_dir: Path = Path.home() / ".consignproxy"

    # HTTP listener
    host: str = "0.0.0.0"
    port: int = 3000

    @property
    def staging_path(self) -> Path:
        return self.data_dir / TMP_DIR

    @property
    def artifact_store_path(self) -> Path:
        return self.data_dir / CONSIGNMENTS_DIR

    @property
    def database_path(self) -> Path:
        return self.data_dir / DATABASE_FILE

    def ensure_directories(self) -> None:
        """Create the data directory layout if it does not exist yet."""
        for path in (self.data_dir, self.staging_path, self.artifact_store_path):
            path.mkdir(parents=True, exist_ok=True)


# Module-level singleton — import as `from consignproxy.config import config`
config = ProxyConfig()

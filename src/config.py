# ==============================================================================
# Base Configuration
# ==============================================================================
#
# Process-wide settings for the serving examples using pydantic-settings.
#
# All settings can be overridden via environment variables (uppercase with
# underscores, e.g., CONFIG_PATH, READY_TIMEOUT_SECONDS, LOG_LEVEL).
#
# Usage:
#   from src.config import BASE_CNFG
#   print(BASE_CNFG.config_path)
#
# ==============================================================================

from pydantic_settings import BaseSettings


class BaseConfig(BaseSettings):
    # Persisted inference configuration consumed by the server
    config_path: str = "config.json"

    # Launcher options
    serve_host: str = "127.0.0.1"
    ready_timeout_seconds: float = 120.0
    ready_poll_interval_seconds: float = 0.5
    keep_alive_seconds: float | None = None  # None -> serve until interrupted

    # Validation client
    request_timeout_seconds: float = 60.0

    # Model artifacts downloaded on cache miss
    artifact_cache_dir: str = "~/.cache/serving-examples"
    artifact_download_timeout_seconds: float = 300.0

    log_level: str = "INFO"


# Singleton config instance
BASE_CNFG = BaseConfig()

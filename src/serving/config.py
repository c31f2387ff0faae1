# ==============================================================================
# Serving Configuration
# ==============================================================================
#
# Settings read by the serving deployment inside Ray workers.
#
# Settings:
#   - REQUEST_MAX_LENGTH: Maximum number of records in one JSON request (prevent DOS)
#   - MAX_UPLOAD_BYTES: Maximum size of one uploaded tensor file
#
# Usage:
#   from src.serving.config import SERVING_SETTINGS
#   max_batch = SERVING_SETTINGS.request_max_length
#
# ==============================================================================

from pydantic_settings import BaseSettings


class ServingSettings(BaseSettings):
    request_max_length: int = 1000
    max_upload_bytes: int = 256 * 1024 * 1024


SERVING_SETTINGS = ServingSettings()

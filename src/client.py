# ==============================================================================
# Validation Client
# ==============================================================================
#
# One-shot HTTP caller used by the examples to confirm a freshly launched
# server answers correctly.
#
# Requests:
#   - post_files: multipart POST to /raw/<format>, one field per input tensor
#   - post_json: JSON POST to /raw/json
#
# Both print the response body and return the process exit code:
#   0 on a 2xx response, 1 on a transport failure or error status.
#
# Usage:
#   client = ValidationClient(port=9000)
#   exit_code = client.post_json({"first": "value"})
#
# ==============================================================================
"""Single-request validation client for a running inference server."""

from contextlib import ExitStack
from pathlib import Path
from typing import Any, Mapping

import numpy as np
import requests

from src._utils.logging import get_logger
from src.config import BASE_CNFG
from src.errors import NetworkError
from src.pipeline.schemas import DataFormat

logger = get_logger(__name__)


def write_ndarray(array: np.ndarray, path: str | Path) -> Path:
    """Store a sample tensor as a .npy file, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as f:
        np.save(f, np.asarray(array), allow_pickle=False)
    return target


def random_int_array(shape: tuple[int, ...], high: int, dtype=np.float32) -> np.ndarray:
    """Random integers in [0, high) with the given dtype, for sample payloads."""
    return np.random.randint(0, high, size=shape).astype(dtype)


class ValidationClient:
    def __init__(
        self,
        port: int,
        host: str = "localhost",
        timeout: float | None = None,
    ) -> None:
        self.base_url = f"http://{host}:{port}"
        self.timeout = BASE_CNFG.request_timeout_seconds if timeout is None else timeout
        self.last_response: requests.Response | None = None

    def url_for(self, data_format: DataFormat) -> str:
        return f"{self.base_url}/raw/{data_format.value.lower()}"

    def _send(self, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = requests.post(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        self.last_response = response
        if not response.ok:
            raise NetworkError(
                f"Server answered HTTP {response.status_code}",
                context={"url": url, "body": response.text},
            )
        return response

    def _report(self, url: str, **kwargs: Any) -> int:
        try:
            response = self._send(url, **kwargs)
        except NetworkError as e:
            logger.error(f"❌ Validation request failed: {e}", exc_info=True)
            return 1

        print(response.text)
        return 0

    def post_files(
        self, data_format: DataFormat, files: Mapping[str, str | Path]
    ) -> int:
        """POST one file per input tensor name as multipart form fields."""
        url = self.url_for(data_format)
        with ExitStack() as stack:
            fields = {
                name: (Path(path).name, stack.enter_context(open(path, "rb")))
                for name, path in files.items()
            }
            logger.info(f"📤 POST {url} ({', '.join(fields)})")
            return self._report(url, files=fields)

    def post_json(self, body: Any) -> int:
        url = self.url_for(DataFormat.JSON)
        logger.info(f"📤 POST {url}")
        return self._report(url, json=body)

# ==============================================================================
# Server Launcher
# ==============================================================================
#
# Starts the serving deployment bound to a persisted configuration document
# and fires an optional completion callback once the server answers.
#
# Launch Options:
#   - config_store_type: Where the configuration lives (only "file")
#   - ha: Run at least two replicas
#   - multi_threaded: Allow concurrent requests per replica
#   - config_port: Port override; must match servingConfig.httpPort if both set
#   - processor_class: "module:Class" of the Ray Serve deployment to run
#
# Lifecycle:
#   launch() -> check port -> serve.start(http_options) -> serve.run(app)
#            -> poll GET /health -> on_success() on a worker thread
#            -> serve.shutdown() -> exit with the callback's return code
#
# Usage:
#   launcher = ServerLauncher(LaunchOptions(config_path="config.json"))
#   launcher.launch(on_success=lambda: client.post_json({"first": "value"}))
#
# ==============================================================================
"""Start the serving deployment for a persisted configuration."""

import importlib
import random
import socket
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field
from ray import serve

from src._utils.logging import get_logger, log_section
from src.config import BASE_CNFG
from src.errors import ConfigurationError, NetworkError, PortInUseError
from src.pipeline.persistence import load_configuration
from src.pipeline.schemas import InferenceConfiguration

logger = get_logger(__name__)

DEFAULT_PROCESSOR_CLASS = "src.serving.serve:InferenceDeployment"
SUPPORTED_STORE_TYPES = ("file",)

# Returns the process exit code
ReadyCallback = Callable[[], int]


def random_port(low: int = 1000, high: int = 65535) -> int:
    """Pick a random port in [low, high]."""
    return random.randint(low, high)


def ensure_port_available(host: str, port: int) -> None:
    """Raise PortInUseError if (host, port) cannot be bound right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError as e:
            raise PortInUseError(host, port) from e


class LaunchOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    config_path: str = Field(default_factory=lambda: BASE_CNFG.config_path)
    config_store_type: str = Field("file", description="Configuration store type")
    ha: bool = Field(False, description="High availability (>= 2 replicas)")
    multi_threaded: bool = Field(False, description="Concurrent requests per replica")
    config_port: int | None = Field(None, ge=1, le=65535, description="HTTP port override")
    processor_class: str = Field(
        DEFAULT_PROCESSOR_CLASS, description="module:Class of the serve deployment"
    )


def resolve_port(options: LaunchOptions, config: InferenceConfiguration) -> int:
    http_port = config.serving_config.http_port
    if options.config_port is not None and options.config_port != http_port:
        raise ConfigurationError(
            f"config_port {options.config_port} differs from servingConfig.httpPort {http_port}",
            suggestions=["Leave config_port unset or pass the same port"],
        )
    return options.config_port or http_port


def load_processor_class(path: str):
    """Import "package.module:ClassName"."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(
            f"processor_class must look like 'package.module:ClassName', got '{path}'"
        )
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot import processor class '{path}': {e}") from e


class ServerLauncher:
    """Owns the server lifecycle for the duration of the process."""

    def __init__(self, options: LaunchOptions) -> None:
        if options.config_store_type not in SUPPORTED_STORE_TYPES:
            raise ConfigurationError(
                f"Unsupported config store type '{options.config_store_type}'",
                suggestions=[f"Use one of {list(SUPPORTED_STORE_TYPES)}"],
            )
        self.options = options
        self.config_path = str(Path(options.config_path).absolute())
        self.config = load_configuration(self.config_path)
        self.model_dir = str(Path.cwd())
        self.host = self.config.serving_config.listen_host
        self.port = resolve_port(options, self.config)
        self._ready = threading.Event()
        self._exit_code: int | None = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def num_replicas(self) -> int:
        replicas = self.config.workers
        return max(2, replicas) if self.options.ha else replicas

    @property
    def max_ongoing_requests(self) -> int:
        return 100 if self.options.multi_threaded else 1

    def start(self) -> None:
        """Start the HTTP proxy and deploy the processor class (non-blocking).

        Assumes the port was already checked; launch() does that before
        anything it would have to shut down.
        """
        deployment = load_processor_class(self.options.processor_class)

        log_section("Starting inference server", "🚀")
        logger.info(f"   Config: {self.config_path}")
        logger.info(f"   Address: {self.base_url}")
        logger.info(f"   Replicas: {self.num_replicas}")

        serve.start(http_options={"host": self.host, "port": self.port})
        app = deployment.options(
            num_replicas=self.num_replicas,
            max_ongoing_requests=self.max_ongoing_requests,
        ).bind(config_path=self.config_path, model_dir=self.model_dir)
        serve.run(app, name="inference", route_prefix="/", blocking=False)

    def wait_until_ready(self, timeout: float | None = None) -> None:
        """Poll GET /health until it answers 200.

        Raises:
            NetworkError: If the server is not healthy before the timeout
        """
        timeout = BASE_CNFG.ready_timeout_seconds if timeout is None else timeout
        deadline = time.monotonic() + timeout
        last_error: str = "no response"

        while time.monotonic() < deadline:
            try:
                response = requests.get(f"{self.base_url}/health", timeout=5)
                if response.status_code == 200:
                    self._ready.set()
                    logger.info(f"✅ Server ready at {self.base_url}")
                    return
                last_error = f"HTTP {response.status_code}"
            except requests.exceptions.RequestException as e:
                last_error = str(e)
            time.sleep(BASE_CNFG.ready_poll_interval_seconds)

        raise NetworkError(
            f"Server at {self.base_url} not ready after {timeout:.0f}s",
            context={"last_error": last_error},
        )

    def _run_callback(self, on_success: ReadyCallback) -> None:
        try:
            self._exit_code = on_success()
        except Exception as e:
            logger.error(f"❌ Ready callback failed: {e}", exc_info=True)
            self._exit_code = 1

    def launch(self, on_success: Optional[ReadyCallback] = None) -> int:
        """Start the server, run on_success once ready, then shut down.

        Without a callback the server runs until interrupted (or until
        keep_alive_seconds elapses). Returns the exit code; see run_main()
        for the variant that exits the process.
        """
        ensure_port_available(self.host, self.port)
        try:
            self.start()
            self.wait_until_ready()

            if on_success is None:
                self._serve_forever()
                return 0

            worker = threading.Thread(
                target=self._run_callback, args=(on_success,), name="on-success"
            )
            worker.start()
            worker.join()
            return self._exit_code if self._exit_code is not None else 1
        finally:
            logger.info("🛑 Shutting down inference server")
            serve.shutdown()

    def _serve_forever(self) -> None:
        keep_alive = BASE_CNFG.keep_alive_seconds
        logger.info(
            "⏳ Serving until interrupted"
            if keep_alive is None
            else f"⏳ Serving for {keep_alive:.0f}s"
        )
        try:
            if keep_alive is None:
                threading.Event().wait()
            else:
                time.sleep(keep_alive)
        except KeyboardInterrupt:
            logger.info("Interrupted")

    def run_main(self, on_success: Optional[ReadyCallback] = None) -> None:
        sys.exit(self.launch(on_success))

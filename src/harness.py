# ==============================================================================
# Serving Harness
# ==============================================================================
#
# Drives one example run through a fixed linear sequence:
#
#   IDLE -> CONFIGURED -> PERSISTED -> SERVER_STARTING -> SERVER_READY
#        -> REQUEST_SENT -> DONE
#
# Each phase can only run from the state before it (HarnessStateError
# otherwise). run() chains all of them and returns the process exit code.
#
# Usage:
#   harness = ServingHarness(config_path="config.json")
#   code = harness.run(
#       config, validate=lambda client: client.post_json({"first": "value"})
#   )
#
# ==============================================================================
"""Build -> persist -> launch -> validate sequence shared by the examples."""

from enum import StrEnum, auto
from pathlib import Path
from typing import Callable, Optional

from src._utils.logging import get_logger, log_section
from src.client import ValidationClient
from src.config import BASE_CNFG
from src.errors import HarnessStateError
from src.pipeline.persistence import save_configuration
from src.pipeline.schemas import InferenceConfiguration
from src.serving.launcher import LaunchOptions, ServerLauncher

logger = get_logger(__name__)

Validation = Callable[[ValidationClient], int]


class HarnessState(StrEnum):
    IDLE = auto()
    CONFIGURED = auto()
    PERSISTED = auto()
    SERVER_STARTING = auto()
    SERVER_READY = auto()
    REQUEST_SENT = auto()
    DONE = auto()


class ServingHarness:
    def __init__(
        self,
        config_path: str | Path | None = None,
        launch_options: LaunchOptions | None = None,
    ) -> None:
        self.config_path = Path(config_path or BASE_CNFG.config_path).absolute()
        self._launch_options = launch_options
        self.state = HarnessState.IDLE
        self.config: InferenceConfiguration | None = None
        self.launcher: ServerLauncher | None = None
        self.exit_code: int | None = None

    def _advance(self, expected: HarnessState, new: HarnessState) -> None:
        if self.state != expected:
            raise HarnessStateError(
                f"Cannot enter {new.value} from {self.state.value} "
                f"(expected {expected.value})"
            )
        logger.debug(f"Harness {self.state.value} -> {new.value}")
        self.state = new

    def configure(self, config: InferenceConfiguration) -> "ServingHarness":
        self._advance(HarnessState.IDLE, HarnessState.CONFIGURED)
        self.config = config
        log_section("Inference configuration", "🧩")
        print(config.to_json())
        return self

    def persist(self) -> Path:
        self._advance(HarnessState.CONFIGURED, HarnessState.PERSISTED)
        return save_configuration(self.config, self.config_path)

    def launch_options(self) -> LaunchOptions:
        options = self._launch_options or LaunchOptions()
        return options.model_copy(update={"config_path": str(self.config_path)})

    def _validate(self, validate: Validation) -> int:
        self._advance(HarnessState.SERVER_STARTING, HarnessState.SERVER_READY)
        client = ValidationClient(port=self.launcher.port, host=self.launcher.host)

        self._advance(HarnessState.SERVER_READY, HarnessState.REQUEST_SENT)
        log_section("Validation request", "📤")
        return validate(client)

    def launch(self, validate: Optional[Validation] = None) -> int:
        """Start the server; run ``validate`` on the ready callback thread."""
        self._advance(HarnessState.PERSISTED, HarnessState.SERVER_STARTING)
        self.launcher = ServerLauncher(self.launch_options())

        on_success = None
        if validate is not None:
            on_success = lambda: self._validate(validate)  # noqa: E731

        self.exit_code = self.launcher.launch(on_success)
        self.state = HarnessState.DONE
        logger.info(f"🏁 Done (exit code {self.exit_code})")
        return self.exit_code

    def run(
        self,
        config: InferenceConfiguration,
        validate: Optional[Validation] = None,
    ) -> int:
        self.configure(config)
        self.persist()
        return self.launch(validate)

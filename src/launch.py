"""Command line entry point: serve a persisted inference configuration.

    python -m src.launch --configPath config.json --configPort 9000
"""

import argparse
import sys
from typing import List, Optional

from src._utils.logging import get_logger
from src.errors import ServingExampleError
from src.serving.launcher import DEFAULT_PROCESSOR_CLASS, LaunchOptions, ServerLauncher

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inference Pipeline Server")
    parser.add_argument("--configPath", dest="config_path", type=str, default=None)
    parser.add_argument(
        "--configStoreType", dest="config_store_type", type=str, default="file"
    )
    parser.add_argument("--ha", action="store_true")
    parser.add_argument("--multiThreaded", dest="multi_threaded", action="store_true")
    parser.add_argument("--configPort", dest="config_port", type=int, default=None)
    parser.add_argument(
        "--processorClass",
        dest="processor_class",
        type=str,
        default=DEFAULT_PROCESSOR_CLASS,
    )
    return parser


def parse_options(argv: Optional[List[str]] = None) -> LaunchOptions:
    args = build_parser().parse_args(argv)
    # Unset options fall back to the LaunchOptions/BaseConfig defaults
    values = {k: v for k, v in vars(args).items() if v is not None}
    return LaunchOptions(**values)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for serving."""
    try:
        launcher = ServerLauncher(parse_options(argv))
    except ServingExampleError as e:
        logger.error(f"❌ {e}")
        sys.exit(2)
    launcher.run_main()


if __name__ == "__main__":
    main()

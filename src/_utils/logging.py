# ==============================================================================
# Logging
# ==============================================================================
#
# Rich-based logging configuration shared by the launcher, the serving
# deployment (which runs inside Ray workers) and the example programs.
#
# Usage:
#   from src._utils.logging import get_logger, log_section
#   logger = get_logger(__name__)
#   log_section("Starting server", "🚀")
#
# ==============================================================================

import logging

from rich.console import Console
from rich.logging import RichHandler

from src.config import BASE_CNFG

# Logs go to stderr; stdout carries the response bodies
_console = Console(stderr=True)
_configured = False


def setup_logging(level: int | str | None = None, force: bool = False) -> None:
    """Configure the root logger with a rich handler.

    Idempotent; every entry point calls it, including Ray Serve replicas.
    """
    global _configured
    if _configured and not force:
        return

    logging.basicConfig(
        level=level or BASE_CNFG.log_level,
        format="%(name)s - %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_console, rich_tracebacks=True)],
        force=True,  # Reconfigure even if already configured
    )

    logging.getLogger("ray.serve").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)


def log_section(title: str, emoji: str = "") -> None:
    """Print a horizontal rule to separate phases of a run."""
    label = f"{emoji} {title}".strip()
    _console.rule(f"[bold blue]{label}")

"""Write and read the persisted inference configuration document."""

from pathlib import Path

from pydantic import ValidationError

from src._utils.logging import get_logger
from src.config import BASE_CNFG
from src.errors import ConfigurationError, PersistenceError
from src.pipeline.schemas import InferenceConfiguration

logger = get_logger(__name__)


def save_configuration(
    config: InferenceConfiguration, path: str | Path | None = None
) -> Path:
    """Serialize the configuration to JSON, overwriting any existing file.

    Returns:
        Absolute path of the written document
    """
    target = Path(path or BASE_CNFG.config_path).expanduser().absolute()
    document = config.to_json()

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(document, encoding="utf-8")
    except OSError as e:
        raise PersistenceError(
            f"Failed to write configuration: {e}", path=str(target)
        ) from e

    logger.info(f"💾 Configuration written to {target}")
    return target


def load_configuration(path: str | Path | None = None) -> InferenceConfiguration:
    source = Path(path or BASE_CNFG.config_path).expanduser()

    try:
        document = source.read_text(encoding="utf-8")
    except OSError as e:
        raise PersistenceError(
            f"Failed to read configuration: {e}", path=str(source)
        ) from e

    try:
        return InferenceConfiguration.from_json(document)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration document: {e}", context={"path": str(source)}
        ) from e

"""Model artifact acquisition: download and unzip on cache miss."""

import zipfile
from pathlib import Path

import requests

from src._utils.logging import get_logger
from src.config import BASE_CNFG
from src.errors import ConfigurationError, PersistenceError

logger = get_logger(__name__)

DOWNLOAD_CHUNK_BYTES = 1 << 20


def cache_dir() -> Path:
    return Path(BASE_CNFG.artifact_cache_dir).expanduser()


def download(url: str, target: Path) -> Path:
    """Stream url into target, replacing it only once the download completes."""
    partial = target.with_name(target.name + ".part")

    logger.info(f"⬇️  Downloading {url}")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with requests.get(
            url, stream=True, timeout=BASE_CNFG.artifact_download_timeout_seconds
        ) as response:
            response.raise_for_status()
            with partial.open("wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                    f.write(chunk)
        partial.replace(target)
    except requests.exceptions.RequestException as e:
        partial.unlink(missing_ok=True)
        raise ConfigurationError(
            f"Failed to download model artifact: {e}", context={"url": url}
        ) from e
    except OSError as e:
        partial.unlink(missing_ok=True)
        raise PersistenceError(
            f"Failed to save model artifact: {e}", path=str(target)
        ) from e

    logger.info(f"   Saved to {target}")
    return target


def extract(archive: Path, destination: Path) -> None:
    """Unpack a zip archive into destination, then remove the archive."""
    logger.info(f"📦 Extracting {archive.name}")
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(destination)
    except zipfile.BadZipFile as e:
        raise ConfigurationError(
            f"Downloaded archive is not a valid zip file: {archive.name}"
        ) from e
    except OSError as e:
        raise PersistenceError(
            f"Failed to extract model artifact: {e}", path=str(destination)
        ) from e
    finally:
        archive.unlink(missing_ok=True)


def ensure_artifact(path: str | Path, url: str | None = None) -> Path:
    """Return a local model artifact, downloading it first if needed.

    Args:
        path: Expected location of the model file. Relative paths resolve
            against the artifact cache dir when they do not exist locally.
        url: Where to fetch the artifact from on a cache miss. A ``.zip``
            download is extracted next to ``path``.

    Raises:
        ConfigurationError: If the artifact is missing and cannot be fetched
    """
    candidate = Path(path).expanduser()
    if candidate.exists():
        return candidate.absolute()

    target = candidate if candidate.is_absolute() else cache_dir() / candidate
    if target.exists():
        return target

    if url is None:
        raise ConfigurationError(
            f"Model artifact not found: {candidate}",
            suggestions=[
                "Pass the artifact URL so it can be downloaded",
                f"Place the file under {cache_dir()}",
            ],
        )

    if url.endswith(".zip"):
        archive = download(url, target.parent / Path(url).name)
        extract(archive, target.parent)
    else:
        download(url, target)

    if not target.exists():
        raise ConfigurationError(
            f"Downloaded artifact does not contain {target.name}",
            context={"url": url, "extracted_to": str(target.parent)},
        )
    return target

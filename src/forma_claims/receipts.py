"""Filesystem helpers for receipt files."""

import logging
import mimetypes
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".pdf", ".heic")
DEFAULT_CONTENT_TYPE = "application/octet-stream"

mimetypes.add_type("image/heic", ".heic")


def receipt_exists(path: str) -> bool:
    return Path(path).exists()


def read_receipt(path: str) -> bytes:
    return Path(path).read_bytes()


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    return content_type or DEFAULT_CONTENT_TYPE


def is_supported_receipt(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def find_receipt_files(directory: Path) -> list[Path]:
    """List supported receipt files directly inside a directory, sorted by name."""
    if not directory.is_dir():
        raise FileNotFoundError(f"Directory '{directory}' does not exist.")
    return sorted(path for path in directory.iterdir() if path.is_file() and is_supported_receipt(path))


def move_to_processed(receipt: Path, processed_dir: Path) -> Path:
    """Move a receipt into the processed directory. Returns its new path.

    Appends a UTC timestamp to the name when a file with the same name is
    already there.
    """
    processed_dir.mkdir(parents=True, exist_ok=True)
    destination = processed_dir / receipt.name
    if destination.exists():
        timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H-%M-%S-%f")
        destination = processed_dir / f"{receipt.stem}-{timestamp}{receipt.suffix}"

    moved = receipt.rename(destination)
    logger.info("Moved %s to %s", receipt, moved)
    return moved

"""File I/O operations for rendering."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..core.errors import FilesystemError

logger = logging.getLogger(__name__)


def ensure_directory(path: Path) -> None:
    """Create ``path`` and any missing parents.

    Args:
        path: Directory that must exist
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(f"Cannot create output directory {path}: {exc}") from exc


@contextmanager
def staging_directory(target_dir: Path, prefix: str) -> Iterator[Path]:
    """Provide a hidden scratch directory inside ``target_dir``.

    The directory and anything left in it are removed on exit, so a failed
    render never leaves files behind. Staging next to the destination keeps
    the final ``os.replace`` on one filesystem.
    """
    try:
        staging = Path(tempfile.mkdtemp(prefix=f".{prefix}.", dir=str(target_dir)))
    except OSError as exc:
        raise FilesystemError(f"Cannot stage output in {target_dir}: {exc}") from exc
    try:
        yield staging
    finally:
        shutil.rmtree(staging, ignore_errors=True)


def publish(staged: Path, target_dir: Path) -> Path:
    """Atomically move a staged file into ``target_dir``.

    Args:
        staged: File inside a staging directory
        target_dir: Final destination directory

    Returns:
        Final artifact path
    """
    destination = target_dir / staged.name
    os.replace(staged, destination)
    logger.debug(f"Published {destination}")
    return destination

"""YAML project files describing a build."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Keys whose values are paths relative to the project file.
_PATH_KEYS = ("output_dir", "plantuml_config", "graphviz_dot")

# Friendlier spellings accepted in project files.
_KEY_ALIASES = {
    "format": "output_format",
    "config": "plantuml_config",
    "directory": "source",
}


def _resolve(base: Path, value: Any) -> Any:
    if value is None:
        return None
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else base / path


def _normalize_source(base: Path, source: Any) -> Any:
    if isinstance(source, str):
        return {"kind": "directory", "path": _resolve(base, source)}
    if not isinstance(source, dict):
        raise ConfigurationError(
            "Project 'source' must be a directory path or a mapping"
        )

    normalized = dict(source)
    for key in ("path", "base"):
        if key in normalized:
            normalized[key] = _resolve(base, normalized[key])
    for key in ("includes", "excludes"):
        value = normalized.get(key)
        if isinstance(value, str):
            normalized[key] = [value]
    return normalized


def load_project_file(path: Path) -> dict[str, Any]:
    """Load build options from a YAML project file.

    Args:
        path: Project file location

    Returns:
        Keyword arguments suitable for ``BuildRequest.create``
    """
    if not path.is_file():
        raise ConfigurationError(f"Project file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Project file {path} must contain a mapping")

    base = path.resolve().parent
    options: dict[str, Any] = {}
    for key, value in data.items():
        options[_KEY_ALIASES.get(key, key)] = value

    if "source" in options:
        options["source"] = _normalize_source(base, options["source"])
    for key in _PATH_KEYS:
        if key in options:
            options[key] = _resolve(base, options[key])

    logger.debug(f"Loaded project file {path}: {sorted(options)}")
    return options

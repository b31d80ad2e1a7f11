"""Resolve a build request into concrete inputs, destinations and verdicts."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path

from ..core.errors import ConfigurationError
from ..core.models import BuildRequest, OutputLayout, ResolvedFile
from .patterns import is_selected

logger = logging.getLogger(__name__)


def is_stale(source: Path, artifact: Path, *, overwrite: bool = False) -> bool:
    """Decide whether ``source`` must be rendered again.

    The artifact is stale when overwriting is forced, when it does not exist,
    or when the source was modified strictly after it. Equal timestamps count
    as fresh.
    """
    if overwrite:
        return True
    try:
        artifact_mtime = artifact.stat().st_mtime_ns
    except (FileNotFoundError, NotADirectoryError):
        return True
    return source.stat().st_mtime_ns > artifact_mtime


def check_base_dir(base: Path) -> Path:
    """Return the absolute base directory, rejecting missing or non-directories."""
    if not base.exists():
        raise ConfigurationError(f"Source directory not found: {base}")
    if not base.is_dir():
        raise ConfigurationError(f"Source path is not a directory: {base}")
    return base.resolve()


def output_dir_for(request: BuildRequest, base: Path, source: Path) -> Path:
    """Compute the directory the artifact for ``source`` is written to."""
    if request.layout is OutputLayout.SOURCE:
        return source.parent

    if request.output_dir is None:
        raise ConfigurationError(
            f"output_dir is required for the {request.layout.value} layout"
        )
    output_root = request.output_dir.resolve()
    if request.layout is OutputLayout.FLATTEN:
        return output_root
    return output_root / source.parent.relative_to(base)


def list_sources(base: Path, includes: tuple[str, ...], excludes: tuple[str, ...]) -> list[Path]:
    """List files below ``base`` selected by the patterns, sorted by relative path."""
    selected: list[tuple[str, Path]] = []
    for candidate in base.rglob("*"):
        if not candidate.is_file():
            continue
        relative = candidate.relative_to(base).as_posix()
        if is_selected(relative, includes, excludes):
            selected.append((relative, candidate))
    return [path for _, path in sorted(selected)]


def resolve(request: BuildRequest) -> list[ResolvedFile]:
    """Resolve the request's inputs into files with destinations and verdicts.

    Args:
        request: Validated build request

    Returns:
        Resolved files in processing order
    """
    selection = request.source
    base = check_base_dir(selection.base)
    suffix = request.output_format.suffix

    resolved: list[ResolvedFile] = []
    for source in list_sources(base, selection.includes, selection.excludes):
        output_dir = output_dir_for(request, base, source)
        artifact = output_dir / f"{source.stem}{suffix}"
        resolved.append(
            ResolvedFile(
                source=source,
                relative_path=source.relative_to(base).as_posix(),
                output_dir=output_dir,
                artifact=artifact,
                stale=is_stale(source, artifact, overwrite=request.overwrite),
            )
        )

    logger.debug(f"Resolved {len(resolved)} source(s) below {base}")

    if request.layout is OutputLayout.FLATTEN:
        _warn_collisions(resolved)

    return resolved


def _warn_collisions(resolved: list[ResolvedFile]) -> None:
    counts = Counter(entry.artifact for entry in resolved)
    for artifact, count in counts.items():
        if count > 1:
            sources = [entry.relative_path for entry in resolved if entry.artifact == artifact]
            logger.warning(
                f"{count} sources flatten to {artifact}; the last one processed wins: "
                f"{', '.join(sources)}"
            )

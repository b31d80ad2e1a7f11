"""Incremental build driver: resolve, skip fresh outputs, render the rest."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .core.errors import ConfigurationError, RenderError
from .core.models import (
    BuildRequest,
    OutputLayout,
    RenderOptions,
    RenderOutcome,
    ResolvedFile,
)
from .rendering.engine import PlantUMLEngine, Renderer
from .rendering.io import ensure_directory
from .sources.resolver import resolve

logger = logging.getLogger(__name__)


def check_request(request: BuildRequest) -> None:
    """Validate the parts of a request that depend on the filesystem."""
    if request.layout is not OutputLayout.SOURCE and request.output_dir is not None:
        if request.output_dir.exists() and not request.output_dir.is_dir():
            raise ConfigurationError(
                f"Output path is not a directory: {request.output_dir}"
            )
    if request.plantuml_config is not None and not request.plantuml_config.is_file():
        raise ConfigurationError(
            f"PlantUML config file not found: {request.plantuml_config}"
        )
    if request.graphviz_dot is not None and not request.graphviz_dot.exists():
        raise ConfigurationError(
            f"Graphviz dot executable not found: {request.graphviz_dot}"
        )


def render_file(
    entry: ResolvedFile,
    renderer: Renderer,
    options: RenderOptions,
    fail_fast: bool = False,
) -> RenderOutcome:
    """Render one stale file, recording a render failure in its outcome."""
    ensure_directory(entry.output_dir)

    try:
        artifacts = renderer.render(entry.source, entry.output_dir, options)
    except RenderError as exc:
        if fail_fast:
            raise
        logger.error(f"Failed to render {entry.relative_path}: {exc}")
        return RenderOutcome(source=entry.source, error=str(exc))
    except (OSError, UnicodeError) as exc:
        message = f"{type(exc).__name__}: {exc}"
        if fail_fast:
            raise RenderError(f"Failed to render {entry.relative_path}: {message}") from exc
        logger.error(f"Failed to render {entry.relative_path}: {message}")
        return RenderOutcome(source=entry.source, error=message)

    for artifact in artifacts:
        logger.debug(f"{artifact.path} {artifact.description}")
    logger.info(f"Rendered {entry.relative_path} → {entry.output_dir}")
    return RenderOutcome(source=entry.source, artifacts=tuple(artifacts))


def build(
    request: BuildRequest, renderer: Optional[Renderer] = None
) -> list[RenderOutcome]:
    """Render every stale diagram selected by the request.

    Fresh files are skipped without being opened. A render failure is kept in
    that file's outcome and the batch continues, unless ``fail_fast`` is set.

    Args:
        request: Validated build request
        renderer: Rendering collaborator (PlantUML located from settings if omitted)

    Returns:
        One outcome per rendered file, in processing order
    """
    check_request(request)
    entries = resolve(request)
    stale = [entry for entry in entries if entry.stale]

    for entry in entries:
        if not entry.stale:
            logger.debug(f"Up to date: {entry.relative_path}")

    logger.info(f"{len(stale)} of {len(entries)} diagram(s) need rendering")
    if not stale:
        return []

    if renderer is None:
        renderer = PlantUMLEngine.from_settings()
    options = RenderOptions.from_request(request)

    jobs = request.jobs
    if request.layout is OutputLayout.FLATTEN and jobs > 1:
        # Outputs may collide in one directory; keep last-writer order stable.
        logger.debug("Flattened output renders serially")
        jobs = 1

    if jobs == 1:
        outcomes = [
            render_file(entry, renderer, options, request.fail_fast) for entry in stale
        ]
    else:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            outcomes = list(
                executor.map(
                    lambda entry: render_file(
                        entry, renderer, options, request.fail_fast
                    ),
                    stale,
                )
            )

    failed = sum(1 for outcome in outcomes if not outcome.ok)
    if failed:
        logger.error(f"{failed} of {len(outcomes)} diagram(s) failed to render")
    else:
        logger.info(f"Successfully rendered {len(outcomes)} diagram(s)")
    return outcomes

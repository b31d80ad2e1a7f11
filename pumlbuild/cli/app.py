"""Main CLI application."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from .. import builder
from ..core.errors import ConfigurationError, FilesystemError, RenderError
from ..core.models import BuildRequest, OutputFormat
from ..core.project import load_project_file
from ..settings import get_settings
from ..sources.resolver import resolve
from .parsers import parse_layout, parse_patterns, parse_source

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="pumlbuild",
    help="Incrementally render PlantUML diagrams, skipping up-to-date outputs.",
)

SourceDirOption = Annotated[
    Optional[Path],
    typer.Option(
        "--source-dir",
        "-d",
        help="Render every diagram below DIR (default include patterns).",
        metavar="DIR",
    ),
]
BaseOption = Annotated[
    Optional[Path],
    typer.Option(
        "--base",
        help="Base directory for --include/--exclude patterns.",
        metavar="DIR",
    ),
]
IncludeOption = Annotated[
    list[str],
    typer.Option(
        "--include",
        help="Ant-style include pattern relative to --base. Repeatable, comma-separated.",
        metavar="GLOB",
    ),
]
ExcludeOption = Annotated[
    list[str],
    typer.Option(
        "--exclude",
        help="Ant-style exclude pattern; always wins over includes. Repeatable.",
        metavar="GLOB",
    ),
]
OutputDirOption = Annotated[
    Optional[Path],
    typer.Option(
        "--output-dir",
        "-o",
        help="Directory receiving generated images.",
        metavar="DIR",
    ),
]
LayoutOption = Annotated[
    Optional[str],
    typer.Option(
        "--layout",
        help="Output placement: mirror (default), flatten or source.",
        metavar="LAYOUT",
    ),
]
InSourceOption = Annotated[
    bool,
    typer.Option(
        "--output-in-source-dir",
        help="Write images next to their sources (same as --layout source).",
    ),
]
FlattenOption = Annotated[
    bool,
    typer.Option(
        "--flatten",
        help="Write all images into --output-dir directly (same as --layout flatten).",
    ),
]
FormatOption = Annotated[
    Optional[str],
    typer.Option(
        "--format",
        "-f",
        help="Output format (see 'pumlbuild formats'; default: png).",
        metavar="FORMAT",
    ),
]
OverwriteOption = Annotated[
    bool,
    typer.Option("--overwrite", help="Render even when outputs are up to date."),
]
ProjectOption = Annotated[
    Optional[Path],
    typer.Option(
        "--project",
        help="YAML project file with build options (CLI options take precedence).",
        metavar="FILE",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose logging."),
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def _load_request(project: Optional[Path], overrides: dict[str, Any]) -> BuildRequest:
    """Merge project-file options with CLI overrides into a request."""
    project_path = project or get_settings().project_file
    options: dict[str, Any] = (
        load_project_file(project_path) if project_path is not None else {}
    )

    source = overrides.pop("source")
    options.update({key: value for key, value in overrides.items() if value is not None})
    if source is not None:
        options["source"] = source
    return BuildRequest.create(**options)


def _selection(
    project: Optional[Path],
    source_dir: Optional[Path],
    base: Optional[Path],
    includes: list[str],
    excludes: list[str],
) -> Any:
    project_source = None
    project_path = project or get_settings().project_file
    if project_path is not None and (includes or excludes) and base is None:
        project_source = load_project_file(project_path).get("source")
    return parse_source(
        source_dir,
        base,
        parse_patterns(includes),
        parse_patterns(excludes),
        project_source,
    )


@app.command()
def build(
    source_dir: SourceDirOption = None,
    base: BaseOption = None,
    includes: IncludeOption = [],
    excludes: ExcludeOption = [],
    output_dir: OutputDirOption = None,
    layout: LayoutOption = None,
    output_in_source_dir: InSourceOption = False,
    flatten: FlattenOption = False,
    output_format: FormatOption = None,
    charset: Annotated[
        Optional[str],
        typer.Option("--charset", help="Encoding of diagram sources.", metavar="NAME"),
    ] = None,
    plantuml_config: Annotated[
        Optional[Path],
        typer.Option("--config", help="PlantUML configuration file.", metavar="FILE"),
    ] = None,
    keep_tmp_files: Annotated[
        bool,
        typer.Option("--keep-tmp-files", help="Keep PlantUML temporary files."),
    ] = False,
    graphviz_dot: Annotated[
        Optional[Path],
        typer.Option(
            "--graphviz-dot", help="Graphviz dot executable to use.", metavar="PATH"
        ),
    ] = None,
    embed_metadata: Annotated[
        bool,
        typer.Option("--with-metadata", help="Embed diagram source in images."),
    ] = False,
    overwrite: OverwriteOption = False,
    fail_fast: Annotated[
        bool,
        typer.Option("--fail-fast", help="Stop at the first diagram that fails."),
    ] = False,
    jobs: Annotated[
        Optional[int],
        typer.Option("--jobs", "-j", min=1, help="Parallel render workers."),
    ] = None,
    project: ProjectOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Render stale diagrams to images."""
    _configure_logging(verbose)
    logger.debug("Starting pumlbuild")

    try:
        source = _selection(project, source_dir, base, includes, excludes)
        overrides: dict[str, Any] = {
            "source": source,
            "output_dir": output_dir,
            "layout": parse_layout(layout, output_in_source_dir, flatten),
            "output_format": output_format,
            "charset": charset,
            "plantuml_config": plantuml_config,
            "graphviz_dot": graphviz_dot,
            "jobs": jobs,
            # Flags only override a project file when switched on.
            "keep_tmp_files": keep_tmp_files or None,
            "embed_metadata": embed_metadata or None,
            "overwrite": overwrite or None,
            "fail_fast": fail_fast or None,
            "verbose": verbose or None,
        }
        request = _load_request(project, overrides)
        outcomes = builder.build(request)
    except (ConfigurationError, FilesystemError) as exc:
        logger.error(str(exc))
        raise typer.Exit(code=2) from exc
    except RenderError as exc:
        logger.error(str(exc))
        raise typer.Exit(code=1) from exc

    failed = [outcome for outcome in outcomes if not outcome.ok]
    for outcome in failed:
        logger.error(f"{outcome.source}: {outcome.error}")

    logger.debug(f"Completed: {len(outcomes)} diagram(s) processed")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def plan(
    source_dir: SourceDirOption = None,
    base: BaseOption = None,
    includes: IncludeOption = [],
    excludes: ExcludeOption = [],
    output_dir: OutputDirOption = None,
    layout: LayoutOption = None,
    output_in_source_dir: InSourceOption = False,
    flatten: FlattenOption = False,
    output_format: FormatOption = None,
    overwrite: OverwriteOption = False,
    project: ProjectOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Show which diagrams a build would render, without rendering."""
    _configure_logging(verbose)

    try:
        source = _selection(project, source_dir, base, includes, excludes)
        request = _load_request(
            project,
            {
                "source": source,
                "output_dir": output_dir,
                "layout": parse_layout(layout, output_in_source_dir, flatten),
                "output_format": output_format,
                "overwrite": overwrite or None,
            },
        )
        entries = resolve(request)
    except ConfigurationError as exc:
        logger.error(str(exc))
        raise typer.Exit(code=2) from exc

    for entry in entries:
        verdict = "stale" if entry.stale else "fresh"
        typer.echo(f"{verdict}\t{entry.relative_path}\t{entry.artifact}")


@app.command()
def formats() -> None:
    """List supported output formats."""
    for fmt in OutputFormat:
        typer.echo(f"{fmt.value}\t{fmt.suffix}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

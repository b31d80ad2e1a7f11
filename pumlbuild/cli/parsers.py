"""CLI argument parsers and validators."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer

from ..core.models import OutputLayout


def parse_patterns(values: list[str]) -> list[str]:
    """Flatten repeatable, comma-separated pattern options."""
    patterns: list[str] = []
    for value in values:
        patterns.extend(item.strip() for item in value.split(",") if item.strip())
    return patterns


def parse_layout(
    layout: Optional[str], output_in_source_dir: bool, flatten: bool
) -> Optional[OutputLayout]:
    """Combine --layout with its shorthand flags."""
    chosen: list[OutputLayout] = []
    if layout is not None:
        try:
            chosen.append(OutputLayout(layout.strip().lower()))
        except ValueError as e:
            valid = ", ".join(member.value for member in OutputLayout)
            raise typer.BadParameter(
                f"Invalid layout: {layout!r} (expected one of: {valid})"
            ) from e
    if output_in_source_dir:
        chosen.append(OutputLayout.SOURCE)
    if flatten:
        chosen.append(OutputLayout.FLATTEN)

    if len(set(chosen)) > 1:
        raise typer.BadParameter(
            "Conflicting layouts: choose one of --layout, --output-in-source-dir, --flatten"
        )
    return chosen[0] if chosen else None


def parse_source(
    source_dir: Optional[Path],
    base: Optional[Path],
    includes: list[str],
    excludes: list[str],
    project_source: Any = None,
) -> Any:
    """Build the source description from CLI options, merged over a project file."""
    if source_dir is not None and (base is not None or includes or excludes):
        raise typer.BadParameter(
            "Use either --source-dir or --base with --include/--exclude, not both"
        )

    if source_dir is not None:
        return {"kind": "directory", "path": source_dir}

    if base is not None:
        source: dict[str, Any] = {"kind": "fileset", "base": base}
        if includes:
            source["includes"] = includes
        if excludes:
            source["excludes"] = excludes
        return source

    if includes or excludes:
        if not isinstance(project_source, dict) or "base" not in project_source:
            raise typer.BadParameter("--include/--exclude require --base")
        source = dict(project_source)
        source["kind"] = "fileset"
        if includes:
            source["includes"] = includes
        if excludes:
            source["excludes"] = excludes
        return source

    return project_source

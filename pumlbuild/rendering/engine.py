"""PlantUML rendering engine."""

from __future__ import annotations

import logging
import shlex
import shutil
from pathlib import Path
from typing import Optional, Protocol, Sequence

from ..core.errors import ConfigurationError, RenderError
from ..core.models import Artifact, RenderOptions
from ..settings import Settings, get_settings
from .io import publish, staging_directory
from .process import output_tail, run_logged

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    """Anything able to turn one diagram source into artifacts."""

    def render(
        self, source: Path, output_dir: Path, options: RenderOptions
    ) -> list[Artifact]:
        ...


def resolve_command(settings: Settings) -> list[str]:
    """Work out how to launch PlantUML.

    An explicit command wins, then a jar run through java, then a
    ``plantuml`` executable on PATH.

    Args:
        settings: Environment-driven settings

    Returns:
        Command prefix to which PlantUML arguments are appended
    """
    if settings.plantuml_command:
        return shlex.split(settings.plantuml_command)

    if settings.plantuml_jar is not None:
        jar = settings.plantuml_jar.expanduser()
        if not jar.is_file():
            raise ConfigurationError(f"PlantUML jar not found: {jar}")
        return [settings.java_executable, "-Djava.awt.headless=true", "-jar", str(jar)]

    found = shutil.which("plantuml")
    if found:
        return [found]

    raise ConfigurationError(
        "PlantUML not found. Install it on PATH or set PUMLBUILD_PLANTUML_JAR "
        "or PUMLBUILD_PLANTUML_COMMAND."
    )


def build_arguments(source: Path, staging: Path, options: RenderOptions) -> list[str]:
    """Translate render options into PlantUML command-line arguments."""
    args = [options.output_format.flag, "-o", str(staging)]
    if options.charset:
        args += ["-charset", options.charset]
    if options.config_file is not None:
        args += ["-config", str(options.config_file)]
    if options.graphviz_dot is not None:
        args += ["-graphvizdot", str(options.graphviz_dot)]
    if options.verbose:
        args.append("-verbose")
    if options.keep_tmp_files:
        args.append("-keepfiles")
    if not options.embed_metadata:
        args.append("-nometadata")
    args.append(str(source))
    return args


def _describe(options: RenderOptions, index: int, total: int) -> str:
    name = options.output_format.name
    if total == 1:
        return f"{name} diagram"
    return f"{name} diagram {index} of {total}"


class PlantUMLEngine:
    """Renders diagram sources by running PlantUML in a subprocess."""

    def __init__(self, command: Sequence[str]) -> None:
        self.command = list(command)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PlantUMLEngine":
        return cls(resolve_command(settings or get_settings()))

    def render(
        self, source: Path, output_dir: Path, options: RenderOptions
    ) -> list[Artifact]:
        """Render ``source`` into ``output_dir``.

        PlantUML writes into a staging directory first; artifacts are moved
        into place only after it exits successfully.

        Args:
            source: Diagram source file
            output_dir: Existing destination directory
            options: Format and PlantUML switches

        Returns:
            Artifacts produced, primary diagram first
        """
        suffix = options.output_format.suffix

        with staging_directory(output_dir, source.stem) as staging:
            cmd = [*self.command, *build_arguments(source, staging, options)]
            try:
                result = run_logged(cmd, cwd=source.parent)
            except OSError as exc:
                raise RenderError(f"Cannot run PlantUML for {source}: {exc}") from exc

            if result.returncode != 0:
                raise RenderError(
                    f"PlantUML exited with status {result.returncode} for {source}: "
                    f"{output_tail(result)}"
                )

            produced = sorted(
                path
                for path in staging.iterdir()
                if path.is_file() and path.name.endswith(suffix)
            )
            if not produced:
                logger.warning(f"PlantUML produced no {suffix} output for {source}")

            artifacts: list[Artifact] = []
            try:
                for index, path in enumerate(produced, start=1):
                    artifacts.append(
                        Artifact(
                            path=publish(path, output_dir),
                            description=_describe(options, index, len(produced)),
                        )
                    )
            except OSError as exc:
                # A partial set would look fresh on the next build.
                for artifact in artifacts:
                    artifact.path.unlink(missing_ok=True)
                raise RenderError(f"Cannot publish output for {source}: {exc}") from exc
            return artifacts

"""Domain models for diagram build requests and results."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError
from typing_extensions import Annotated

from .errors import ConfigurationError, UnsupportedFormatError

DEFAULT_INCLUDES: tuple[str, ...] = (
    "**/*.puml",
    "**/*.plantuml",
    "**/*.pu",
    "**/*.wsd",
)


class OutputFormat(str, Enum):
    """Rendering targets understood by PlantUML."""

    PNG = "png"
    SVG = "svg"
    EPS = "eps"
    PDF = "pdf"
    TXT = "txt"
    UTXT = "utxt"
    XMI = "xmi"
    XMI_ARGO = "xmi:argo"
    XMI_STAR = "xmi:star"

    @property
    def suffix(self) -> str:
        """File suffix PlantUML gives to artifacts of this format."""
        return _SUFFIXES[self]

    @property
    def flag(self) -> str:
        """PlantUML command-line switch selecting this format."""
        return f"-t{self.value}"

    @classmethod
    def lookup(cls, value: str) -> Optional["OutputFormat"]:
        """Return the format named by ``value`` (case-insensitive), or None."""
        name = value.strip().lower()
        name = _ALIASES.get(name, name)
        for member in cls:
            if member.value == name:
                return member
        return None

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        """Like :meth:`lookup` but raise UnsupportedFormatError on unknown names."""
        member = cls.lookup(value)
        if member is None:
            raise UnsupportedFormatError(f"Unrecognized format <{value}>")
        return member


_SUFFIXES = {
    OutputFormat.PNG: ".png",
    OutputFormat.SVG: ".svg",
    OutputFormat.EPS: ".eps",
    OutputFormat.PDF: ".pdf",
    OutputFormat.TXT: ".atxt",
    OutputFormat.UTXT: ".utxt",
    OutputFormat.XMI: ".xmi",
    OutputFormat.XMI_ARGO: ".xmi",
    OutputFormat.XMI_STAR: ".xmi",
}

# Older build configurations spelled the star variant this way.
_ALIASES = {"xmi:start": "xmi:star"}


class OutputLayout(str, Enum):
    """Where rendered artifacts land relative to their sources."""

    MIRROR = "mirror"
    FLATTEN = "flatten"
    SOURCE = "source"


class SingleDirectory(BaseModel):
    """Every diagram below one directory, selected by the default patterns."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["directory"] = "directory"
    path: Path = Field(..., description="Directory holding diagram sources")

    @property
    def base(self) -> Path:
        return self.path

    @property
    def includes(self) -> tuple[str, ...]:
        return DEFAULT_INCLUDES

    @property
    def excludes(self) -> tuple[str, ...]:
        return ()


class FileSet(BaseModel):
    """Diagrams below ``base`` selected by include and exclude patterns."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["fileset"] = "fileset"
    base: Path = Field(..., description="Base directory patterns are relative to")
    includes: tuple[str, ...] = Field(
        default=DEFAULT_INCLUDES, min_length=1, description="Include patterns"
    )
    excludes: tuple[str, ...] = Field(default=(), description="Exclude patterns")


InputSpec = Annotated[Union[SingleDirectory, FileSet], Field(discriminator="kind")]


class BuildRequest(BaseModel):
    """A fully validated, immutable description of one build run."""

    model_config = ConfigDict(frozen=True)

    source: InputSpec
    output_dir: Optional[Path] = Field(default=None, description="Output directory")
    layout: OutputLayout = Field(default=OutputLayout.MIRROR)
    overwrite: bool = Field(default=False, description="Re-render fresh outputs")
    output_format: OutputFormat = Field(default=OutputFormat.PNG)
    charset: Optional[str] = Field(default=None, description="Source encoding")
    plantuml_config: Optional[Path] = Field(
        default=None, description="PlantUML configuration file"
    )
    keep_tmp_files: bool = False
    graphviz_dot: Optional[Path] = Field(
        default=None, description="Graphviz dot executable override"
    )
    verbose: bool = False
    embed_metadata: bool = False
    fail_fast: bool = False
    jobs: int = Field(default=1, ge=1, description="Parallel render workers")

    @field_validator("source", mode="before")
    @classmethod
    def _coerce_source(cls, value: Any) -> Any:
        if isinstance(value, (str, Path)):
            return {"kind": "directory", "path": value}
        if isinstance(value, dict) and "kind" not in value:
            kind = "directory" if "path" in value else "fileset"
            return {"kind": kind, **value}
        return value

    @field_validator("output_format", mode="before")
    @classmethod
    def _parse_format(cls, value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, OutputFormat):
            member = OutputFormat.lookup(value)
            if member is None:
                raise PydanticCustomError(
                    "unsupported_format",
                    "Unrecognized format <{value}>",
                    {"value": value},
                )
            return member
        return value

    @model_validator(mode="after")
    def _check_output_dir(self) -> "BuildRequest":
        if self.layout is not OutputLayout.SOURCE and self.output_dir is None:
            raise ValueError(
                "output_dir is required unless outputs are written next to sources"
            )
        return self

    @classmethod
    def create(cls, **options: Any) -> "BuildRequest":
        """Build a request, raising ConfigurationError instead of ValidationError."""
        try:
            return cls(**options)
        except ValidationError as exc:
            for error in exc.errors():
                if error["type"] == "unsupported_format":
                    raise UnsupportedFormatError(error["msg"]) from exc
            raise ConfigurationError(_summarize(exc)) from exc


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "request"
        parts.append(f"{location}: {error['msg']}")
    return "Invalid build request: " + "; ".join(parts)


class ResolvedFile(BaseModel):
    """One selected input with its computed destination and freshness verdict."""

    model_config = ConfigDict(frozen=True)

    source: Path = Field(..., description="Absolute input path")
    relative_path: str = Field(..., description="Input path relative to the base")
    output_dir: Path = Field(..., description="Directory the artifact is written to")
    artifact: Path = Field(..., description="Expected primary artifact path")
    stale: bool = Field(..., description="Whether the input needs rendering")


class Artifact(BaseModel):
    """A file produced by the renderer."""

    model_config = ConfigDict(frozen=True)

    path: Path
    description: str


class RenderOutcome(BaseModel):
    """Result of rendering one input: its artifacts, or the failure message."""

    model_config = ConfigDict(frozen=True)

    source: Path
    artifacts: tuple[Artifact, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RenderOptions(BaseModel):
    """Options forwarded to the renderer for every file in a build."""

    model_config = ConfigDict(frozen=True)

    output_format: OutputFormat = OutputFormat.PNG
    charset: Optional[str] = None
    config_file: Optional[Path] = None
    graphviz_dot: Optional[Path] = None
    verbose: bool = False
    keep_tmp_files: bool = False
    embed_metadata: bool = False

    @classmethod
    def from_request(cls, request: BuildRequest) -> "RenderOptions":
        return cls(
            output_format=request.output_format,
            charset=request.charset,
            config_file=request.plantuml_config,
            graphviz_dot=request.graphviz_dot,
            verbose=request.verbose,
            keep_tmp_files=request.keep_tmp_files,
            embed_metadata=request.embed_metadata,
        )

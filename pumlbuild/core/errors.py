"""Exception hierarchy for diagram builds."""

from __future__ import annotations


class PumlBuildError(Exception):
    """Base class for all pumlbuild errors."""


class ConfigurationError(PumlBuildError):
    """Raised when a build request is invalid or cannot be satisfied."""


class UnsupportedFormatError(ConfigurationError):
    """Raised when an output format name is not recognized."""


class FilesystemError(PumlBuildError):
    """Raised when a required output directory cannot be created."""


class RenderError(PumlBuildError):
    """Raised when the renderer fails for a single input file."""

"""pumlbuild - Incremental PlantUML diagram builder.

Renders diagram sources to images, skipping outputs that are already
newer than their sources.
"""

__version__ = "0.1.0"

# Configure logging for library use
import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Re-export main entry points
from .builder import build
from .cli import main

__all__ = ["build", "main"]

"""Source selection and freshness checks."""

from .resolver import is_stale, resolve

__all__ = ["is_stale", "resolve"]

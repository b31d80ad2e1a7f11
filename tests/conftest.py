"""Shared test fixtures."""
from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Optional

import pytest

from pumlbuild.core.errors import RenderError
from pumlbuild.core.models import Artifact, RenderOptions
from pumlbuild.settings import get_settings

OLD = 1_600_000_000
MID = 1_650_000_000
NEW = 1_700_000_000

DIAGRAM = "@startuml\nAlice -> Bob: hello\n@enduml\n"


class FakeRenderer:
    """Renderer double that writes one small artifact per source."""

    def __init__(self, fail_on: tuple[str, ...] = ()) -> None:
        self.fail_on = set(fail_on)
        self.calls: list[tuple[Path, Path, RenderOptions]] = []
        self._lock = threading.Lock()

    @property
    def rendered(self) -> list[str]:
        return [source.name for source, _, _ in self.calls]

    def render(
        self, source: Path, output_dir: Path, options: RenderOptions
    ) -> list[Artifact]:
        with self._lock:
            self.calls.append((source, output_dir, options))
        if source.name in self.fail_on:
            raise RenderError(f"Syntax error in {source.name}")
        artifact = output_dir / f"{source.stem}{options.output_format.suffix}"
        artifact.write_text(f"rendered from {source.parent.name}/{source.name}")
        return [Artifact(path=artifact, description=f"{options.output_format.name} diagram")]


def set_mtime(path: Path, seconds: int) -> None:
    os.utime(path, (seconds, seconds))


@pytest.fixture
def make_file() -> Callable[..., Path]:
    def _make(path: Path, text: str = DIAGRAM, mtime: Optional[int] = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        if mtime is not None:
            set_mtime(path, mtime)
        return path

    return _make


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("PUMLBUILD_"):
            monkeypatch.delenv(name)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

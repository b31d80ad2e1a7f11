"""Tests for rendering/engine.py: command resolution, arguments and publishing."""
from __future__ import annotations

import subprocess
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from pumlbuild.core.errors import ConfigurationError, FilesystemError, RenderError
from pumlbuild.core.models import OutputFormat, RenderOptions
from pumlbuild.rendering import engine
from pumlbuild.rendering.engine import PlantUMLEngine, build_arguments, resolve_command
from pumlbuild.rendering.io import ensure_directory
from pumlbuild.rendering.process import output_tail, run_logged
from pumlbuild.settings import Settings


def _fake_plantuml(
    produce: list[str], returncode: int = 0
) -> tuple[Callable[..., subprocess.CompletedProcess[str]], dict[str, Any]]:
    seen: dict[str, Any] = {}

    def _run(cmd: list[str], *, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        seen["cmd"] = cmd
        seen["cwd"] = cwd
        staging = Path(cmd[cmd.index("-o") + 1])
        seen["staging"] = staging
        for name in produce:
            (staging / name).write_text("image bytes")
        stderr = "Error line 2 in file: x.puml" if returncode else ""
        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr=stderr)

    return _run, seen


def _hidden_entries(directory: Path) -> list[str]:
    return [path.name for path in directory.iterdir() if path.name.startswith(".")]


# ---------------------------------------------------------------------------
# resolve_command
# ---------------------------------------------------------------------------


def test_explicit_command_is_split() -> None:
    settings = Settings(plantuml_command="plantuml -DPLANTUML_LIMIT_SIZE=8192")
    assert resolve_command(settings) == ["plantuml", "-DPLANTUML_LIMIT_SIZE=8192"]


def test_jar_runs_through_java(tmp_path: Path) -> None:
    jar = tmp_path / "plantuml.jar"
    jar.write_bytes(b"PK")
    settings = Settings(plantuml_jar=jar, java_executable="/opt/jdk/bin/java")

    assert resolve_command(settings) == [
        "/opt/jdk/bin/java",
        "-Djava.awt.headless=true",
        "-jar",
        str(jar),
    ]


def test_missing_jar_is_a_configuration_error(tmp_path: Path) -> None:
    settings = Settings(plantuml_jar=tmp_path / "missing.jar")
    with pytest.raises(ConfigurationError, match="jar not found"):
        resolve_command(settings)


def test_falls_back_to_plantuml_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(engine.shutil, "which", lambda name: f"/usr/bin/{name}")
    assert resolve_command(Settings()) == ["/usr/bin/plantuml"]


def test_nothing_found_is_a_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(engine.shutil, "which", lambda name: None)
    with pytest.raises(ConfigurationError, match="PlantUML not found"):
        resolve_command(Settings())


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PUMLBUILD_PLANTUML_COMMAND", "my-plantuml --fast")
    engine_ = PlantUMLEngine.from_settings()
    assert engine_.command == ["my-plantuml", "--fast"]


# ---------------------------------------------------------------------------
# build_arguments
# ---------------------------------------------------------------------------


def test_default_arguments(tmp_path: Path) -> None:
    args = build_arguments(tmp_path / "a.puml", tmp_path / ".stage", RenderOptions())
    assert args == [
        "-tpng",
        "-o",
        str(tmp_path / ".stage"),
        "-nometadata",
        str(tmp_path / "a.puml"),
    ]


def test_all_options_translate_to_flags(tmp_path: Path) -> None:
    options = RenderOptions(
        output_format=OutputFormat.XMI_ARGO,
        charset="UTF-8",
        config_file=tmp_path / "skin.cfg",
        graphviz_dot=Path("/usr/local/bin/dot"),
        verbose=True,
        keep_tmp_files=True,
        embed_metadata=True,
    )
    args = build_arguments(tmp_path / "a.puml", tmp_path / ".stage", options)

    assert args[0] == "-txmi:argo"
    assert args[args.index("-charset") + 1] == "UTF-8"
    assert args[args.index("-config") + 1] == str(tmp_path / "skin.cfg")
    assert args[args.index("-graphvizdot") + 1] == "/usr/local/bin/dot"
    assert "-verbose" in args
    assert "-keepfiles" in args
    assert "-nometadata" not in args
    assert args[-1] == str(tmp_path / "a.puml")


# ---------------------------------------------------------------------------
# PlantUMLEngine.render
# ---------------------------------------------------------------------------


def test_render_publishes_artifacts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = tmp_path / "src" / "seq.puml"
    source.parent.mkdir()
    source.write_text("@startuml\n@enduml\n")
    out = tmp_path / "out"
    out.mkdir()
    fake, seen = _fake_plantuml(["seq.png"])
    monkeypatch.setattr(engine, "run_logged", fake)

    artifacts = PlantUMLEngine(["plantuml"]).render(source, out, RenderOptions())

    assert [artifact.path for artifact in artifacts] == [out / "seq.png"]
    assert artifacts[0].description == "PNG diagram"
    assert (out / "seq.png").read_text() == "image bytes"
    assert seen["cmd"][0] == "plantuml"
    assert seen["cwd"] == source.parent
    assert seen["staging"].parent == out
    assert _hidden_entries(out) == []


def test_render_multiple_diagrams_from_one_source(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = tmp_path / "multi.puml"
    source.write_text("")
    out = tmp_path / "out"
    out.mkdir()
    fake, _ = _fake_plantuml(["multi_001.svg", "multi.svg", "multi.cmapx"])
    monkeypatch.setattr(engine, "run_logged", fake)

    options = RenderOptions(output_format=OutputFormat.SVG)
    artifacts = PlantUMLEngine(["plantuml"]).render(source, out, options)

    assert [artifact.path.name for artifact in artifacts] == ["multi.svg", "multi_001.svg"]
    assert [artifact.description for artifact in artifacts] == [
        "SVG diagram 1 of 2",
        "SVG diagram 2 of 2",
    ]
    assert not (out / "multi.cmapx").exists()


def test_failed_render_leaves_no_partial_output(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = tmp_path / "broken.puml"
    source.write_text("@startuml\nthis is not uml\n@enduml\n")
    out = tmp_path / "out"
    out.mkdir()
    fake, _ = _fake_plantuml(["broken.png"], returncode=200)
    monkeypatch.setattr(engine, "run_logged", fake)

    with pytest.raises(RenderError, match="status 200") as excinfo:
        PlantUMLEngine(["plantuml"]).render(source, out, RenderOptions())

    assert "Error line 2" in str(excinfo.value)
    assert list(out.iterdir()) == []


def test_unlaunchable_command_is_a_render_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = tmp_path / "a.puml"
    source.write_text("")
    out = tmp_path / "out"
    out.mkdir()

    def _missing(cmd: list[str], *, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(engine, "run_logged", _missing)

    with pytest.raises(RenderError, match="Cannot run PlantUML"):
        PlantUMLEngine(["/nowhere/plantuml"]).render(source, out, RenderOptions())
    assert list(out.iterdir()) == []


def test_source_without_diagrams_produces_nothing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = tmp_path / "empty.puml"
    source.write_text("no diagrams here\n")
    out = tmp_path / "out"
    out.mkdir()
    fake, _ = _fake_plantuml([])
    monkeypatch.setattr(engine, "run_logged", fake)

    assert PlantUMLEngine(["plantuml"]).render(source, out, RenderOptions()) == []


# ---------------------------------------------------------------------------
# rendering/io.py
# ---------------------------------------------------------------------------


def test_ensure_directory_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "c"
    ensure_directory(target)
    ensure_directory(target)
    assert target.is_dir()


def test_ensure_directory_wraps_os_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("")
    with pytest.raises(FilesystemError, match="Cannot create output directory"):
        ensure_directory(blocker / "sub")


def test_failed_publish_removes_already_moved_artifacts(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = tmp_path / "multi.puml"
    source.write_text("")
    out = tmp_path / "out"
    out.mkdir()
    fake, _ = _fake_plantuml(["multi.png", "multi_001.png"])
    monkeypatch.setattr(engine, "run_logged", fake)

    real_publish = engine.publish

    def _publish(staged: Path, target_dir: Path) -> Path:
        if staged.name == "multi_001.png":
            raise PermissionError(13, "Permission denied", str(target_dir / staged.name))
        return real_publish(staged, target_dir)

    monkeypatch.setattr(engine, "publish", _publish)

    with pytest.raises(RenderError, match="Cannot publish output"):
        PlantUMLEngine(["plantuml"]).render(source, out, RenderOptions())
    assert list(out.iterdir()) == []


# ---------------------------------------------------------------------------
# rendering/process.py
# ---------------------------------------------------------------------------


def test_run_logged_replaces_undecodable_output() -> None:
    script = "import sys; sys.stderr.buffer.write(b'Erreur \\xe9 ligne 2'); sys.exit(1)"
    result = run_logged([sys.executable, "-c", script])

    assert result.returncode == 1
    assert result.stderr == "Erreur \ufffd ligne 2"
    assert output_tail(result) == "Erreur \ufffd ligne 2"


def test_non_utf8_plantuml_failure_is_a_render_error(tmp_path: Path) -> None:
    source = tmp_path / "a.puml"
    source.write_text("")
    out = tmp_path / "out"
    out.mkdir()
    script = "import sys; sys.stderr.buffer.write(b'Erreur \\xe9 ligne 2'); sys.exit(1)"

    with pytest.raises(RenderError, match="status 1"):
        PlantUMLEngine([sys.executable, "-c", script]).render(source, out, RenderOptions())
    assert list(out.iterdir()) == []

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


def run_logged(
    cmd: Iterable[str],
    *,
    cwd: Optional[Path] = None,
) -> subprocess.CompletedProcess[str]:
    """
    Run a subprocess with captured output, replaying it through logging.
    Output goes to DEBUG on success and to ERROR when the process fails.
    Never raises on a non-zero exit; callers inspect ``returncode``.
    Output is decoded as UTF-8 with undecodable bytes replaced.
    """
    cmd_list = list(cmd)
    logger.debug(f"Running: {' '.join(cmd_list)}")

    result = subprocess.run(
        cmd_list,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        cwd=str(cwd) if cwd is not None else None,
    )

    level = logging.DEBUG if result.returncode == 0 else logging.ERROR
    for stream in (result.stdout, result.stderr):
        for line in (stream or "").splitlines():
            if line.strip():
                logger.log(level, line)
    return result


def output_tail(result: subprocess.CompletedProcess[str], limit: int = 5) -> str:
    """Last few non-empty output lines, for error messages."""
    lines = [
        line
        for stream in (result.stdout, result.stderr)
        for line in (stream or "").splitlines()
        if line.strip()
    ]
    return " | ".join(lines[-limit:])

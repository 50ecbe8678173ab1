"""
Shared CLI runner helper.

Runs a command as a child process and exits with its return code, so every
wrapper behaves the same way under `uv run` or a plain virtualenv.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence


def run(cmd: Sequence[str]) -> None:
    """
    Run a command and propagate its exit code.

    Args:
        cmd: Command and arguments to execute

    Example:
        >>> run([sys.executable, "-m", "pytest", "-q"])
    """
    result = subprocess.run(list(cmd))
    raise SystemExit(result.returncode)

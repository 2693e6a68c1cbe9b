"""Command runner for executing shell commands.

This module provides the base command execution functionality used by
the helm and sops command modules.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from loguru import logger

from .types import CommandResult


class CommandRunner:
    """Low-level command executor with consistent result handling.

    Missing executables surface as FileNotFoundError so callers can turn
    them into install hints; everything else is reported via CommandResult.
    """

    def __init__(self, project_root: Path) -> None:
        """Initialize the command runner.

        Args:
            project_root: Directory commands are executed from by default.
        """
        self.project_root = project_root

    def _build_env(self, env: Mapping[str, str] | None) -> dict[str, str] | None:
        if not env:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture_output: bool = True,
        check: bool = False,
        timeout: float | None = None,
    ) -> CommandResult:
        """Execute a shell command and return structured result.

        Args:
            cmd: Command and arguments as a sequence
            cwd: Working directory (defaults to project_root)
            env: Extra environment variables layered over the current environment
            capture_output: Whether to capture stdout/stderr
            check: Whether to raise exception on non-zero exit code
            timeout: Seconds before the command is killed (no limit when None)

        Returns:
            CommandResult with success status, output, and return code

        Raises:
            FileNotFoundError: If the executable is not on PATH
            subprocess.CalledProcessError: If check=True and command fails
            subprocess.TimeoutExpired: If the command outlives ``timeout``
        """
        logger.debug(f"Running: {' '.join(cmd)}")
        result = subprocess.run(
            list(cmd),
            cwd=cwd or self.project_root,
            env=self._build_env(env),
            capture_output=capture_output,
            text=True,
            check=check,
            timeout=timeout,
        )
        return CommandResult(
            success=result.returncode == 0,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            returncode=result.returncode,
        )

    def run_streaming(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        on_output: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """Execute a shell command with real-time output streaming.

        Args:
            cmd: Command and arguments as a sequence
            cwd: Working directory (defaults to project_root)
            on_output: Callback invoked with each non-empty output line

        Returns:
            CommandResult whose stdout holds the merged stdout/stderr lines
        """
        logger.debug(f"Streaming: {' '.join(cmd)}")
        process = subprocess.Popen(
            list(cmd),
            cwd=cwd or self.project_root,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,  # Merge stderr into stdout
            text=True,
            bufsize=1,
        )

        lines: list[str] = []
        if process.stdout:
            for line in iter(process.stdout.readline, ""):
                line = line.rstrip("\n")
                if line:
                    lines.append(line)
                    if on_output:
                        on_output(line)

        process.wait()
        output = "\n".join(lines)

        return CommandResult(
            success=process.returncode == 0,
            stdout=output,
            stderr="" if process.returncode == 0 else output,
            returncode=process.returncode or 0,
        )

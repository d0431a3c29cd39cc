"""Blocking subprocess execution with env overlays and captured output.

Every external tool BootKit drives (``op``, ``gpg``, ``brew``, ``dotdrop``,
``git``) goes through :class:`CommandRunner` so that tests can substitute a
fake and so that invocation logging lives in one place.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from typing import Optional

import structlog

from bootkit.models import CommandResult

# Exit status reported when the executable cannot be found, as a shell would.
COMMAND_NOT_FOUND = 127
# Exit status reported when *cwd* is missing, as ``cd`` would.
BAD_WORKING_DIRECTORY = 1

_CAPTURE_MODES = ("all", "stdout", "none")


class CommandRunner:
    """Run external commands and capture their result.

    Never raises on a non-zero exit status; callers inspect
    ``CommandResult.success``. No retries, no timeout.
    """

    def __init__(self, logger: Optional[structlog.stdlib.BoundLogger] = None):
        self._log = logger or structlog.get_logger(__name__)
        self._base_env: dict[str, str] = {}

    @property
    def env_overlay(self) -> dict[str, str]:
        """Variables applied to every command this runner spawns."""
        return dict(self._base_env)

    def add_to_path(self, *directories: str | os.PathLike[str]) -> None:
        """Prepend *directories* to PATH for every later command."""
        current = self._base_env.get("PATH", os.environ.get("PATH", ""))
        parts = [str(d) for d in directories] + ([current] if current else [])
        self._base_env["PATH"] = os.pathsep.join(parts)
        self._log.debug("Extended PATH", directories=[str(d) for d in directories])

    def run(
        self,
        command: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[str | os.PathLike[str]] = None,
        input: Optional[str] = None,
        capture: str = "all",
    ) -> CommandResult:
        """Execute *command* and block until it exits.

        Args:
            command: argv list; never passed through a shell.
            env: Variables overlaid on the current environment and on
                :attr:`env_overlay`.
            cwd: Working directory for the child.
            input: Text piped to the child's stdin.
            capture: "all" captures stdout and stderr. "stdout" captures
                only stdout and leaves stdin and stderr on the terminal so
                the operator can answer prompts. "none" captures nothing.
        """
        argv = tuple(str(part) for part in command)
        overlay = {**self._base_env, **(env or {})}
        merged_env = {**os.environ, **overlay} if overlay else None

        self._log.debug(
            "Running command",
            command=" ".join(argv),
            env_overlay=sorted(overlay),
            cwd=str(cwd) if cwd else None,
            stdin=input is not None,
        )

        if capture not in _CAPTURE_MODES:
            raise ValueError(f"capture must be one of {_CAPTURE_MODES}, got {capture!r}")

        if cwd is not None and not os.path.isdir(cwd):
            self._log.error("Working directory does not exist", cwd=str(cwd))
            return CommandResult(
                command=argv,
                returncode=BAD_WORKING_DIRECTORY,
                stderr=f"{cwd}: no such directory",
            )

        try:
            proc = subprocess.run(
                argv,
                input=input,
                stdout=subprocess.PIPE if capture != "none" else None,
                stderr=subprocess.PIPE if capture == "all" else None,
                # gpg echoes user ids verbatim and older keys carry Latin-1 ones
                encoding="utf-8",
                errors="replace",
                env=merged_env,
                cwd=cwd,
            )
        except FileNotFoundError:
            self._log.error("Command not found", command=argv[0])
            return CommandResult(
                command=argv,
                returncode=COMMAND_NOT_FOUND,
                stderr=f"{argv[0]}: command not found",
            )

        result = CommandResult(
            command=argv,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        if result.success:
            self._log.debug("Command succeeded", command=argv[0])
        else:
            self._log.debug(
                "Command failed",
                command=argv[0],
                returncode=result.returncode,
                stderr=result.stderr.strip(),
            )
        return result

    def command_exists(self, name: str) -> bool:
        return shutil.which(name, path=self._base_env.get("PATH")) is not None

"""Thin wrapper around the ``gpg`` CLI plus parsers for its output."""

from __future__ import annotations

import os
import re
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from bootkit.models import CommandResult
from bootkit.runner import CommandRunner

# Phrases gpg writes to its status stream (stderr) when an import took
# effect or the key was already there. Either counts as success.
IMPORT_SUCCESS_MARKERS = (
    "secret key imported",
    "secret keys imported",
    "not changed",
)

_IMPORT_STATUS_KEY_ID = re.compile(r"key ([0-9A-F]{16}):")


def parse_sec_key_id(colon_output: str) -> Optional[str]:
    """Key id of the first ``sec`` record in ``--with-colons`` output.

    The id is the 5th colon-delimited column.
    """
    for line in (colon_output or "").splitlines():
        if not line.startswith("sec"):
            continue
        columns = line.split(":")
        if len(columns) > 4 and columns[4]:
            return columns[4]
        return None
    return None


def import_succeeded(status: str) -> bool:
    return any(marker in (status or "") for marker in IMPORT_SUCCESS_MARKERS)


def key_id_from_import_status(status: Optional[str]) -> Optional[str]:
    """Short key id from a line like ``gpg: key ABCD1234ABCD1234: ...``."""
    if not status:
        return None
    match = _IMPORT_STATUS_KEY_ID.search(status)
    return match.group(1) if match else None


@contextmanager
def isolated_gnupg_home() -> Iterator[Path]:
    """A fresh, private GNUPGHOME that is removed on every exit path."""
    path = Path(tempfile.mkdtemp(prefix="bootkit-gnupg-"))
    try:
        os.chmod(path, 0o700)
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


class GpgKeyring:
    """One gpg keyring: the user's permanent one, or one rooted at *home*."""

    def __init__(
        self,
        runner: CommandRunner,
        binary: str = "gpg",
        home: Optional[str | os.PathLike[str]] = None,
        gpgconf: str = "gpgconf",
    ):
        self._runner = runner
        self._binary = binary
        self._home = Path(home) if home is not None else None
        self._gpgconf = gpgconf

    @property
    def home(self) -> Optional[Path]:
        return self._home

    def isolated(self, home: str | os.PathLike[str]) -> GpgKeyring:
        """Same binary and runner, different GNUPGHOME."""
        return GpgKeyring(self._runner, binary=self._binary, home=home, gpgconf=self._gpgconf)

    def _env(self) -> Optional[dict[str, str]]:
        return {"GNUPGHOME": str(self._home)} if self._home is not None else None

    def _gpg(self, *args: str, input: Optional[str] = None) -> CommandResult:
        return self._runner.run([self._binary, "--batch", *args], env=self._env(), input=input)

    def list_secret_keys(
        self, key_id: Optional[str] = None, with_colons: bool = False
    ) -> CommandResult:
        args = ["--list-secret-keys"]
        if with_colons:
            args.append("--with-colons")
        if key_id:
            args.append(key_id)
        return self._gpg(*args)

    def import_key(self, material: str) -> CommandResult:
        return self._gpg("--import", input=material)

    def has_secret_key(self, key_id: str) -> bool:
        return self.list_secret_keys(key_id).success

    def kill_agent(self) -> CommandResult:
        """Stop the gpg-agent that gpg autostarted for this home."""
        return self._runner.run([self._gpgconf, "--kill", "gpg-agent"], env=self._env())

    def first_secret_key_id(self) -> Optional[str]:
        result = self.list_secret_keys(with_colons=True)
        if not result.success:
            return None
        return parse_sec_key_id(result.stdout)

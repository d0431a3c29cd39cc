"""1Password CLI (``op``) secrets provider."""

from __future__ import annotations

import json
import re
import sys
from typing import Callable, Optional

import structlog

from bootkit.errors import NotFoundError, RetrievalError
from bootkit.models import CommandResult, SecretItem
from bootkit.providers.base import SecretsProvider, split_item_path
from bootkit.runner import CommandRunner

# `op signin` prints shell exports for the session token, meant for `eval`.
_SESSION_EXPORT = re.compile(r'^export\s+(OP_SESSION_\w+)="?([^"\n]*)"?\s*$', re.MULTILINE)


def _stdin_is_tty() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def parse_session_exports(output: str) -> dict[str, str]:
    """Extract ``OP_SESSION_*`` variables from ``op signin`` output."""
    return {name: token for name, token in _SESSION_EXPORT.findall(output or "") if token}


class OnePasswordSecretsProvider(SecretsProvider):
    """Retrieves the GPG key from a 1Password item via the ``op`` CLI.

    Example: vault='Dotfiles', item_path='GPG Key/notes' ->
    ``op item get "GPG Key" --vault Dotfiles --format json``, then the
    notes field of the returned item.
    """

    def __init__(
        self,
        runner: CommandRunner,
        account: Optional[str] = None,
        email: Optional[str] = None,
        allow_interactive: bool = True,
        binary: str = "op",
        is_interactive: Optional[Callable[[], bool]] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._runner = runner
        self._account = account
        self._email = email
        self._allow_interactive = allow_interactive
        self._binary = binary
        self._is_interactive = is_interactive or _stdin_is_tty
        self._log = logger or structlog.get_logger(__name__)
        self._session_env: dict[str, str] = {}

    def _op(self, *args: str) -> CommandResult:
        return self._runner.run([self._binary, *args], env=self._session_env or None)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def has_session(self) -> bool:
        result = self._op("account", "list")
        return result.success and bool(result.stdout.strip())

    def ensure_signed_in(self) -> bool:
        self._log.info("Checking 1Password CLI session")
        if self.has_session():
            self._log.info("Already signed in to 1Password")
            return True

        if self._account and self._email:
            self._log.info("Signing in to 1Password", account=self._account)
            command = [self._binary, "signin", "--account", self._account, self._email]
        elif self._allow_interactive and self._is_interactive():
            self._log.info("Signing in to 1Password, please follow the prompts")
            command = [self._binary, "signin"]
        else:
            self._log.error(
                "Not signed in to 1Password and no sign-in method available",
                hint="set onepassword.account and onepassword.email, or run from a terminal",
            )
            return False

        result = self._runner.run(command, env=self._session_env or None, capture="stdout")
        if not result.success:
            self._log.error("Failed to sign in to 1Password", returncode=result.returncode)
            return False

        self._session_env.update(parse_session_exports(result.stdout))
        self._log.info("Signed in to 1Password", session_vars=sorted(self._session_env))
        return True

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def fetch_item(self, vault: str, item_path: str) -> SecretItem:
        item_name, field = split_item_path(item_path)
        if not item_name:
            raise RetrievalError("Empty 1Password item name", vault=vault, item=item_path)

        self._log.info(
            "Looking for GPG key in 1Password", vault=vault, item=item_name, field=field
        )
        result = self._op("item", "get", item_name, "--vault", vault, "--format", "json")
        if not result.success:
            raise RetrievalError(
                f"Failed to retrieve item '{item_name}' from vault '{vault}': "
                f"{result.stderr.strip() or 'exit status ' + str(result.returncode)}",
                vault=vault,
                item=item_name,
            )

        try:
            return SecretItem.from_json(result.stdout)
        except (json.JSONDecodeError, ValueError) as e:
            raise RetrievalError(
                f"Failed to parse 1Password response for '{item_name}': {e}",
                vault=vault,
                item=item_name,
            ) from e

    @staticmethod
    def extract_notes_field(item: SecretItem) -> Optional[str]:
        notes = item.notes_field()
        if notes is None:
            return None
        return notes.value

    @staticmethod
    def extract_field(item: SecretItem, field: str) -> Optional[str]:
        """Value of *field*; ``notes`` resolves through the notes-field rules."""
        if field == "notes":
            return OnePasswordSecretsProvider.extract_notes_field(item)
        for f in item.fields:
            if field in (f.label, f.id):
                return f.value
        return None

    def fetch_key(self, vault: str, item_path: str) -> str:
        item = self.fetch_item(vault, item_path)
        _, field = split_item_path(item_path)
        value = self.extract_field(item, field)
        if not value:
            raise NotFoundError(
                f"Could not find a '{field}' field in 1Password item '{item.title or item_path}'",
                vault=vault,
                item=item_path,
            )
        self._log.info("Retrieved GPG key from 1Password", vault=vault, item=item_path)
        return value

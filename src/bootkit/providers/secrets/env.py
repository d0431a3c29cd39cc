"""Environment variable secrets provider (for testing and development)."""

from __future__ import annotations

import os

from bootkit.errors import NotFoundError
from bootkit.providers.base import SecretsProvider


class EnvSecretsProvider(SecretsProvider):
    """Reads the armored key straight from an environment variable.

    Vault and item path are ignored; there is nothing to sign in to.
    """

    def __init__(self, env_var: str = "BOOTKIT_GPG_KEY"):
        self._env_var = env_var

    def ensure_signed_in(self) -> bool:
        return True

    def fetch_key(self, vault: str, item_path: str) -> str:
        value = os.environ.get(self._env_var)
        if not value or not value.strip():
            raise NotFoundError(
                f"GPG key not found in environment (env var: {self._env_var})",
                env_var=self._env_var,
            )
        return value

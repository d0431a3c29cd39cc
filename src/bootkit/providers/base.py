"""Abstract base classes for pluggable secrets backends."""

from __future__ import annotations

from abc import ABC, abstractmethod


def split_item_path(item_path: str, default_field: str = "notes") -> tuple[str, str]:
    """Split ``"<item>/<field>"`` into its parts. The field defaults to notes.

    Segments after the second are ignored: ``"GPG Key/notes/x"`` names the
    ``notes`` field of ``GPG Key``.
    """
    parts = item_path.strip().split("/")
    item = parts[0]
    field = parts[1] if len(parts) > 1 else ""
    return item.strip(), (field.strip() or default_field)


class SecretsProvider(ABC):
    """Retrieves the armored GPG private key at runtime.

    Key material is held in memory only; never written to disk in plaintext.
    Item paths follow the ``"<item>/<field>"`` convention, e.g.
    ``'GPG Key/notes'``.
    """

    @abstractmethod
    def ensure_signed_in(self) -> bool:
        """Make sure an authenticated session exists. False if none is possible."""
        ...

    @abstractmethod
    def fetch_key(self, vault: str, item_path: str) -> str:
        """Return the key material stored at *item_path* in *vault*.

        Raises:
            RetrievalError: the backend failed or returned garbage.
            NotFoundError: the item exists but holds no key material.
        """
        ...

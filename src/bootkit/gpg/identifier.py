"""Derive a stable identifier for a private-key block."""

from __future__ import annotations

import os
import re
from typing import Optional

import structlog

from bootkit.errors import IdentificationFailure, key_preview
from bootkit.gpg.keyring import GpgKeyring, isolated_gnupg_home, parse_sec_key_id

# Tried in order against the raw key text; the first match wins.
# These can match incidental hex runs or addresses inside comments.
FINGERPRINT_PATTERN = re.compile(r"[0-9A-F]{40}")
SHORT_ID_PATTERN = re.compile(r"[0-9A-F]{16}")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

CONTENT_PATTERNS = (
    ("fingerprint", FINGERPRINT_PATTERN),
    ("short_id", SHORT_ID_PATTERN),
    ("email", EMAIL_PATTERN),
)


def _match_text(material: str) -> Optional[tuple[str, str]]:
    for strategy, pattern in CONTENT_PATTERNS:
        match = pattern.search(material or "")
        if match:
            return strategy, match.group(0)
    return None


def key_id_from_text(material: str) -> Optional[str]:
    """Best-effort identifier guessed from the key text itself."""
    matched = _match_text(material)
    return matched[1] if matched else None


class KeyIdentifier:
    """Resolves key ids, first strategy that yields one wins.

    Order: explicit configured id, text patterns, then a throwaway import
    into an isolated keyring to read the ``sec`` record back.
    """

    def __init__(
        self,
        keyring: GpgKeyring,
        configured_id: Optional[str] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._keyring = keyring
        self._configured_id = configured_id
        self._log = logger or structlog.get_logger(__name__)

    def identify(self, material: str, configured_id: Optional[str] = None) -> Optional[str]:
        explicit = configured_id or self._configured_id
        if explicit:
            self._log.debug("Using configured GPG key id", key_id=explicit)
            return explicit

        matched = _match_text(material)
        if matched:
            strategy, key_id = matched
            self._log.debug("Key id matched in key text", strategy=strategy, key_id=key_id)
            return key_id

        key_id = self.identify_in_isolation(material)
        if key_id:
            self._log.debug("Key id read from isolated keyring", key_id=key_id)
        return key_id

    def identify_or_raise(self, material: str, configured_id: Optional[str] = None) -> str:
        key_id = self.identify(material, configured_id)
        if key_id is None:
            raise IdentificationFailure(
                "Could not derive an identifier for the GPG key",
                key_preview=key_preview(material),
            )
        return key_id

    def identify_in_isolation(self, material: str) -> Optional[str]:
        """Import into a disposable GNUPGHOME and read back the ``sec`` id."""
        with isolated_gnupg_home() as home:
            scratch = self._keyring.isolated(home)
            try:
                return self._read_back(scratch, material)
            finally:
                # the agent gpg autostarted would outlive its deleted home
                if not scratch.kill_agent().success:
                    self._log.debug("Could not stop isolated gpg-agent", home=str(home))

    def _read_back(self, scratch: GpgKeyring, material: str) -> Optional[str]:
        result = scratch.import_key(material)
        if not result.success:
            self._log.debug(
                "Isolated import failed",
                stderr=result.stderr.strip(),
                key_preview=key_preview(material),
            )
            return None
        listing = scratch.list_secret_keys(with_colons=True)
        if not listing.success:
            return None
        return parse_sec_key_id(listing.stdout)

    def identify_from_keyring(self) -> Optional[str]:
        """First secret key id in the permanent keyring."""
        return self._keyring.first_secret_key_id()

    def resolve_key_id(self) -> Optional[str]:
        """Key id for downstream steps: configured id (or $GPG_KEY_ID), else keyring."""
        explicit = self._configured_id or os.environ.get("GPG_KEY_ID", "").strip()
        if explicit:
            return explicit
        return self.identify_from_keyring()

"""Idempotent import of key material into the permanent keyring."""

from __future__ import annotations

from typing import Optional

import structlog

from bootkit.errors import KeyImportError, key_preview
from bootkit.gpg.identifier import KeyIdentifier
from bootkit.gpg.keyring import GpgKeyring, import_succeeded, key_id_from_import_status
from bootkit.models import ImportOutcome


class KeyImporter:
    """Imports a key unless the keyring already holds it.

    The permanent keyring is only ever queried before it is mutated, so
    a known identifier is imported at most once per run.
    """

    def __init__(
        self,
        keyring: GpgKeyring,
        identifier: KeyIdentifier,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._keyring = keyring
        self._identifier = identifier
        self._log = logger or structlog.get_logger(__name__)

    def already_imported(self, key_id: Optional[str]) -> bool:
        if not key_id:
            return False
        return self._keyring.has_secret_key(key_id)

    def import_if_needed(self, material: str, key_id: Optional[str] = None) -> ImportOutcome:
        """Import *material* unless *key_id* is already in the keyring.

        Raises:
            KeyImportError: gpg exited non-zero or reported neither an
                import nor an unchanged key.
        """
        if self.already_imported(key_id):
            self._log.info("GPG key already imported, skipping import", key_id=key_id)
            return ImportOutcome(key_id=key_id, already_present=True)

        self._log.info("Importing GPG key", key_id=key_id)
        result = self._keyring.import_key(material)
        # gpg reports the outcome on stderr, not stdout
        status = result.stderr

        if not result.success or not import_succeeded(status):
            self._log.error(
                "Failed to import GPG key",
                key_id=key_id,
                returncode=result.returncode,
                stderr=status.strip(),
                key_preview=key_preview(material),
            )
            raise KeyImportError(
                f"gpg --import failed: {status.strip() or 'exit status ' + str(result.returncode)}",
                stderr=status,
                key_id=key_id,
            )

        if key_id is None:
            key_id = self.recover_key_id(status)

        self._log.info("Successfully imported GPG key", key_id=key_id)
        return ImportOutcome(key_id=key_id, already_present=False)

    def recover_key_id(self, status: str) -> Optional[str]:
        """Identifier for a key whose id was unknown before import."""
        key_id = key_id_from_import_status(status)
        if key_id:
            self._log.info("Extracted key id from import output", key_id=key_id)
            return key_id
        key_id = self._identifier.identify_from_keyring()
        if key_id:
            self._log.info("Read key id from keyring after import", key_id=key_id)
        else:
            self._log.warning("Imported GPG key but could not determine its id")
        return key_id

"""GPG key pipeline: sign in -> fetch -> identify -> skip or import."""

from __future__ import annotations

from typing import Optional

import structlog

from bootkit.config import BootKitConfig
from bootkit.errors import BootKitError, IdentificationFailure, SignInError
from bootkit.gpg.identifier import KeyIdentifier
from bootkit.gpg.importer import KeyImporter
from bootkit.gpg.keyring import GpgKeyring
from bootkit.models import PipelineOutcome, PipelineStatus
from bootkit.providers import create_secrets_provider
from bootkit.providers.base import SecretsProvider
from bootkit.runner import CommandRunner


class GpgPipeline:
    """Puts the GPG private key from the secrets manager into the keyring.

    Sign-in and fetch failures halt before anything is mutated. Failing to
    identify the key is tolerated: the import still runs, it just cannot
    be skipped ahead of time.
    """

    def __init__(
        self,
        provider: SecretsProvider,
        identifier: KeyIdentifier,
        importer: KeyImporter,
        vault: str,
        item_path: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._provider = provider
        self._identifier = identifier
        self._importer = importer
        self._vault = vault
        self._item_path = item_path
        self._log = logger or structlog.get_logger(__name__)
        self._key_id: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: BootKitConfig,
        runner: CommandRunner,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> GpgPipeline:
        keyring = GpgKeyring(runner, binary=config.gpg.binary)
        identifier = KeyIdentifier(keyring, configured_id=config.gpg.key_id, logger=logger)
        return cls(
            provider=create_secrets_provider(config, runner, logger=logger),
            identifier=identifier,
            importer=KeyImporter(keyring, identifier, logger=logger),
            vault=config.onepassword.vault,
            item_path=config.onepassword.gpg_key_path,
            logger=logger,
        )

    @property
    def key_id(self) -> Optional[str]:
        """Identifier from the last successful run, for downstream steps."""
        return self._key_id

    def run(self) -> PipelineOutcome:
        self._log.info("Setting up GPG key", vault=self._vault, item=self._item_path)
        try:
            outcome = self._run()
        except BootKitError as e:
            self._log.error("GPG key setup failed", error=str(e), **e.context)
            return PipelineOutcome.failed(str(e))

        self._key_id = outcome.key_id
        return outcome

    def _run(self) -> PipelineOutcome:
        if not self._provider.ensure_signed_in():
            raise SignInError("Not signed in to the secrets manager", vault=self._vault)

        material = self._provider.fetch_key(self._vault, self._item_path)

        try:
            key_id: Optional[str] = self._identifier.identify_or_raise(material)
            self._log.info("Using key identifier", key_id=key_id)
        except IdentificationFailure as e:
            self._log.warning("No key identifier found, importing without idempotence check", **e.context)
            key_id = None

        result = self._importer.import_if_needed(material, key_id)
        status = PipelineStatus.ALREADY_PRESENT if result.already_present else PipelineStatus.IMPORTED
        return PipelineOutcome(status=status, key_id=result.key_id)

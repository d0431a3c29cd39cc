"""GPG key retrieval, identification and import."""

from bootkit.gpg.identifier import KeyIdentifier, key_id_from_text
from bootkit.gpg.importer import KeyImporter
from bootkit.gpg.keyring import GpgKeyring, isolated_gnupg_home, parse_sec_key_id
from bootkit.gpg.pipeline import GpgPipeline

__all__ = [
    "GpgKeyring",
    "GpgPipeline",
    "KeyIdentifier",
    "KeyImporter",
    "isolated_gnupg_home",
    "key_id_from_text",
    "parse_sec_key_id",
]

"""Exception hierarchy shared by every BootKit component."""

from __future__ import annotations

from typing import Any

# Number of key-material characters allowed into logs and error context.
KEY_PREVIEW_CHARS = 32


def key_preview(material: str | None) -> str:
    """Truncate key material for logging. Never log the full block."""
    if not material:
        return ""
    if len(material) <= KEY_PREVIEW_CHARS:
        return material
    return material[:KEY_PREVIEW_CHARS] + "..."


class BootKitError(Exception):
    """Base for all BootKit errors.

    ``context`` carries whatever is known at the failure site (vault, item,
    key_id, stderr ...) so the orchestrator can log it without re-deriving.
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class ConfigError(BootKitError):
    """Configuration file missing, unreadable or invalid."""


# ---- Secrets ----


class SignInError(BootKitError):
    """No active secrets-manager session and no way to create one."""


class RetrievalError(BootKitError):
    """The secrets manager could not return or parse the requested item."""


class NotFoundError(RetrievalError):
    """The item was retrieved but carries no usable notes field."""


# ---- GPG ----


class KeyImportError(BootKitError):
    """gpg rejected the key material."""

    def __init__(self, message: str, stderr: str = "", **context: Any):
        super().__init__(message, **context)
        self.stderr = stderr


class IdentificationFailure(BootKitError):
    """No identifier could be derived for the key material. Non-fatal."""

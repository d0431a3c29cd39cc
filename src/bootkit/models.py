"""Shared domain models for BootKit."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# Identifying attributes of the 1Password notes field. The CLI is not
# consistent about which one it sets, so any of them is accepted.
NOTES_FIELD_ID = "notesPlain"
NOTES_FIELD_PURPOSE = "NOTES"


# ---- Process Models ----


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single external process invocation."""

    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


# ---- Secrets Models ----


@dataclass(frozen=True)
class SecretField:
    id: str = ""
    purpose: str = ""
    label: str = ""
    value: Optional[str] = None

    @property
    def is_notes(self) -> bool:
        return (
            self.id == NOTES_FIELD_ID
            or self.purpose == NOTES_FIELD_PURPOSE
            or self.label == NOTES_FIELD_ID
        )


@dataclass(frozen=True)
class SecretItem:
    """An item returned by ``op item get --format json``."""

    id: str = ""
    title: str = ""
    fields: tuple[SecretField, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SecretItem:
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        raw_fields = data.get("fields") or []
        if not isinstance(raw_fields, list):
            raise ValueError("'fields' is not a list")
        fields = tuple(
            SecretField(
                id=str(f.get("id") or ""),
                purpose=str(f.get("purpose") or ""),
                label=str(f.get("label") or ""),
                value=f.get("value"),
            )
            for f in raw_fields
            if isinstance(f, dict)
        )
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            fields=fields,
        )

    @classmethod
    def from_json(cls, raw: str) -> SecretItem:
        return cls.from_dict(json.loads(raw))

    def notes_field(self) -> Optional[SecretField]:
        for f in self.fields:
            if f.is_notes:
                return f
        return None


# ---- GPG Pipeline Models ----


class PipelineStatus(str, Enum):
    IMPORTED = "imported"
    ALREADY_PRESENT = "already_present"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportOutcome:
    """Result of KeyImporter.import_if_needed.

    ``key_id`` may be None when the key was imported but no identifier
    could be recovered afterwards.
    """

    key_id: Optional[str]
    already_present: bool = False


@dataclass(frozen=True)
class PipelineOutcome:
    status: PipelineStatus
    key_id: Optional[str] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status != PipelineStatus.FAILED

    @classmethod
    def failed(cls, reason: str) -> PipelineOutcome:
        return cls(status=PipelineStatus.FAILED, reason=reason)


# ---- Installer Models ----


@dataclass(frozen=True)
class StepResult:
    name: str
    success: bool
    detail: str = ""
    data: dict[str, Any] = field(default_factory=dict)

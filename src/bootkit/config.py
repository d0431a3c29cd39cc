"""Configuration management with layered YAML + environment variable overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, field_validator

from bootkit.errors import ConfigError

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"
USER_CONFIG_NAME = "bootkit.yml"


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base. Overlay values win."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, returning empty dict if file doesn't exist."""
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path=str(path)) from e
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping", path=str(path))
    return data


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class OnePasswordConfig(BaseModel):
    vault: str = "Dotfiles"
    gpg_key_path: str = "GPG Key/notes"
    account: Optional[str] = None
    email: Optional[str] = None
    allow_interactive: bool = True

    @field_validator("gpg_key_path")
    @classmethod
    def item_name_present(cls, v: str) -> str:
        v = v.strip()
        if not v or v.startswith("/"):
            raise ValueError(f"gpg_key_path must look like '<item>/<field>', got {v!r}")
        return v

    @field_validator("account", "email")
    @classmethod
    def blank_is_unset(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class GpgConfig(BaseModel):
    key_id: Optional[str] = None
    binary: str = "gpg"

    @field_validator("key_id", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class SecretsConfig(BaseModel):
    provider: str = "onepassword"
    env_var: str = "BOOTKIT_GPG_KEY"

    @field_validator("provider")
    @classmethod
    def known_provider(cls, v: str) -> str:
        if v not in ("onepassword", "env"):
            raise ValueError(f"Unknown secrets provider: {v}")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "text"
    log_dir: Optional[str] = None

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Log level must be one of {', '.join(_LOG_LEVELS)}, got {v!r}")
        return level

    @field_validator("format")
    @classmethod
    def known_format(cls, v: str) -> str:
        if v not in ("text", "json"):
            raise ValueError(f"Log format must be 'text' or 'json', got {v!r}")
        return v


class BrewConfig(BaseModel):
    brewfile: Optional[str] = None
    update: bool = True
    install_if_missing: bool = True


class DotdropConfig(BaseModel):
    profile: str = "default"
    config_file: Optional[str] = None


class ZgenomConfig(BaseModel):
    repo_url: str = "https://github.com/jandamm/zgenom.git"
    install_dir: str = "~/.zgenom"


class BootKitConfig(BaseModel):
    onepassword: OnePasswordConfig = OnePasswordConfig()
    gpg: GpgConfig = GpgConfig()
    secrets: SecretsConfig = SecretsConfig()
    logging: LoggingConfig = LoggingConfig()
    brew: BrewConfig = BrewConfig()
    dotdrop: DotdropConfig = DotdropConfig()
    zgenom: ZgenomConfig = ZgenomConfig()

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        config_dir: Optional[Path] = None,
    ) -> BootKitConfig:
        """Load config from default.yaml, overlaid with the user's bootkit.yml.

        Priority (lowest to highest):
        1. config/default.yaml
        2. the user file: *config_path*, $BOOTKIT_CONFIG, or config/bootkit.yml
        3. Environment variables (GPG_KEY_ID, BOOTKIT_LOG_LEVEL)
        """
        if config_dir is None:
            config_dir = DEFAULT_CONFIG_DIR

        if config_path is None:
            env_path = os.environ.get("BOOTKIT_CONFIG")
            config_path = Path(env_path) if env_path else config_dir / USER_CONFIG_NAME
        elif not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}", path=str(config_path))

        base = _load_yaml(config_dir / "default.yaml")
        overlay = _load_yaml(Path(config_path))
        merged = _deep_merge(base, overlay)
        merged = _deep_merge(merged, _env_overrides())

        return cls(**merged)


def _env_overrides() -> dict:
    overrides: dict = {}
    key_id = os.environ.get("GPG_KEY_ID", "").strip()
    if key_id:
        overrides.setdefault("gpg", {})["key_id"] = key_id
    level = os.environ.get("BOOTKIT_LOG_LEVEL", "").strip()
    if level:
        overrides.setdefault("logging", {})["level"] = level
    return overrides

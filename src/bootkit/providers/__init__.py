"""Provider factory functions for config-driven wiring."""

from __future__ import annotations

from typing import Optional

import structlog

from bootkit.config import BootKitConfig
from bootkit.providers.base import SecretsProvider
from bootkit.runner import CommandRunner


def create_secrets_provider(
    config: BootKitConfig,
    runner: CommandRunner,
    logger: Optional[structlog.stdlib.BoundLogger] = None,
) -> SecretsProvider:
    match config.secrets.provider:
        case "onepassword":
            from .secrets.onepassword import OnePasswordSecretsProvider
            return OnePasswordSecretsProvider(
                runner,
                account=config.onepassword.account,
                email=config.onepassword.email,
                allow_interactive=config.onepassword.allow_interactive,
                logger=logger,
            )
        case "env":
            from .secrets.env import EnvSecretsProvider
            return EnvSecretsProvider(env_var=config.secrets.env_var)
        case _:
            raise ValueError(f"Unknown secrets provider: {config.secrets.provider}")

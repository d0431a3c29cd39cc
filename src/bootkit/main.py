"""CLI entry point: full bootstrap or the GPG step on its own."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

import structlog
from pydantic import ValidationError

from bootkit.config import BootKitConfig
from bootkit.errors import ConfigError
from bootkit.gpg.identifier import KeyIdentifier
from bootkit.gpg.keyring import GpgKeyring
from bootkit.gpg.pipeline import GpgPipeline
from bootkit.installer import STEP_NAMES, Installer
from bootkit.logging_config import setup_logging
from bootkit.runner import CommandRunner

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bootkit",
        description="Bootstrap a macOS development environment",
    )
    parser.add_argument("--config", type=Path, help="Path to bootkit.yml")
    parser.add_argument("--config-dir", type=Path, help="Directory holding default.yaml")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level override",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    install_parser = subparsers.add_parser("install", help="Run every bootstrap step")
    install_parser.add_argument(
        "--skip",
        action="append",
        default=[],
        choices=STEP_NAMES,
        metavar="STEP",
        help=f"Skip a step (repeatable): {', '.join(STEP_NAMES)}",
    )

    subparsers.add_parser("gpg", help="Import the GPG key from 1Password")
    subparsers.add_parser("key-id", help="Print the GPG key id used for dotfiles")

    return parser


def run_install(
    config: BootKitConfig,
    runner: CommandRunner,
    logger: structlog.stdlib.BoundLogger,
    skip: Sequence[str] = (),
) -> int:
    results = Installer.from_config(config, runner, logger=logger).run(skip=skip)
    return EXIT_OK if all(r.success for r in results) else EXIT_FAILURE


def run_gpg(config: BootKitConfig, runner: CommandRunner, logger: structlog.stdlib.BoundLogger) -> int:
    outcome = GpgPipeline.from_config(config, runner, logger=logger).run()
    if not outcome.ok:
        return EXIT_FAILURE
    if outcome.key_id:
        print(outcome.key_id)
    return EXIT_OK


def run_key_id(config: BootKitConfig, runner: CommandRunner, logger: structlog.stdlib.BoundLogger) -> int:
    keyring = GpgKeyring(runner, binary=config.gpg.binary)
    key_id = KeyIdentifier(keyring, configured_id=config.gpg.key_id, logger=logger).resolve_key_id()
    if not key_id:
        logger.error("No GPG key id configured or found in the keyring")
        return EXIT_FAILURE
    print(key_id)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_FAILURE

    try:
        config = BootKitConfig.load(config_path=args.config, config_dir=args.config_dir)
    except (ConfigError, ValidationError) as e:
        print(f"bootkit: invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE

    logger = setup_logging(
        level=args.log_level or config.logging.level,
        log_format=config.logging.format,
        log_dir=config.logging.log_dir,
    )
    runner = CommandRunner(logger=logger)

    if args.command == "install":
        return run_install(config, runner, logger, skip=args.skip)
    if args.command == "gpg":
        return run_gpg(config, runner, logger)
    return run_key_id(config, runner, logger)


def cli_entry() -> None:
    """CLI entry point for `bootkit` command."""
    sys.exit(main())

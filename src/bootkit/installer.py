"""Bootstrap steps for a fresh macOS machine, run in a fixed order.

Each step is a thin wrapper over an external tool and returns a
:class:`StepResult`. :class:`Installer` stops at the first failed step.
"""

from __future__ import annotations

import platform
import sys
from pathlib import Path
from typing import Iterable, Optional

import structlog

from bootkit.config import BootKitConfig
from bootkit.gpg.identifier import KeyIdentifier
from bootkit.gpg.keyring import GpgKeyring
from bootkit.gpg.pipeline import GpgPipeline
from bootkit.models import StepResult
from bootkit.runner import CommandRunner


class SystemCheckStep:
    name = "system"

    def __init__(
        self,
        platform: str = sys.platform,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._platform = platform
        self._log = logger or structlog.get_logger(__name__)

    def run(self) -> StepResult:
        if self._platform != "darwin":
            self._log.error("This installer is intended to run on macOS only", platform=self._platform)
            return StepResult(self.name, False, f"unsupported platform: {self._platform}")
        self._log.info("Verified macOS environment")
        return StepResult(self.name, True)


HOMEBREW_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"


def homebrew_prefix(machine: Optional[str] = None) -> Path:
    """Where the official installer puts Homebrew on this architecture."""
    machine = machine if machine is not None else platform.machine()
    return Path("/opt/homebrew") if machine == "arm64" else Path("/usr/local")


class HomebrewStep:
    """Install Homebrew if needed, then ``brew update`` and ``brew bundle``."""

    name = "brew"

    def __init__(
        self,
        runner: CommandRunner,
        brewfile: Optional[str] = None,
        update: bool = True,
        install_if_missing: bool = True,
        prefix: Optional[str | Path] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._runner = runner
        self._brewfile = brewfile
        self._update = update
        self._install_if_missing = install_if_missing
        self._prefix = Path(prefix) if prefix is not None else homebrew_prefix()
        self._log = logger or structlog.get_logger(__name__)

    def install_homebrew(self) -> StepResult | None:
        """Run the official installer and put its bin dirs on PATH.

        Returns a failed result, or None once ``brew`` is usable.
        """
        self._log.info("Installing Homebrew", prefix=str(self._prefix))
        # interactive: prompts for sudo
        result = self._runner.run(
            ["/bin/bash", "-c", f'/bin/bash -c "$(curl -fsSL {HOMEBREW_INSTALL_URL})"'],
            capture="none",
        )
        if not result.success:
            self._log.error("Failed to install Homebrew", returncode=result.returncode)
            return StepResult(self.name, False, f"Homebrew installer exited {result.returncode}")

        brew = self._prefix / "bin" / "brew"
        if not brew.is_file():
            self._log.error("Homebrew installer finished but brew is missing", path=str(brew))
            return StepResult(self.name, False, f"{brew} not found after install")

        # equivalent of `eval "$(brew shellenv)"` for every later command
        self._runner.add_to_path(self._prefix / "bin", self._prefix / "sbin")
        self._log.info("Homebrew installed", brew=str(brew))
        return None

    def run(self) -> StepResult:
        if not self._runner.command_exists("brew"):
            if not self._install_if_missing:
                self._log.error("Homebrew is not installed, see https://brew.sh")
                return StepResult(self.name, False, "brew not found")
            failed = self.install_homebrew()
            if failed is not None:
                return failed
        else:
            self._log.info("Homebrew is already installed")

        if self._update:
            self._log.info("Updating Homebrew")
            if not self._runner.run(["brew", "update"]).success:
                self._log.warning("Failed to update Homebrew, continuing anyway")

        command = ["brew", "bundle"]
        if self._brewfile:
            command += ["--file", str(Path(self._brewfile).expanduser())]
        self._log.info("Installing packages from Brewfile", brewfile=self._brewfile or "./Brewfile")
        result = self._runner.run(command)
        if not result.success:
            self._log.error("Failed to install packages from Brewfile", stderr=result.stderr.strip())
            return StepResult(self.name, False, result.stderr.strip())
        self._log.info("Packages installed")
        return StepResult(self.name, True)


class OnePasswordCliStep:
    name = "op"

    def __init__(self, runner: CommandRunner, logger: Optional[structlog.stdlib.BoundLogger] = None):
        self._runner = runner
        self._log = logger or structlog.get_logger(__name__)

    def run(self) -> StepResult:
        if self._runner.command_exists("op"):
            self._log.info("1Password CLI is already installed")
            return StepResult(self.name, True, "already installed")

        self._log.info("1Password CLI (op) not found, installing")
        result = self._runner.run(["brew", "install", "--cask", "1password-cli"])
        if not result.success:
            self._log.error("Failed to install 1Password CLI", stderr=result.stderr.strip())
            return StepResult(self.name, False, result.stderr.strip())
        self._log.info("1Password CLI installed")
        return StepResult(self.name, True)


class GpgStep:
    name = "gpg"

    def __init__(
        self,
        pipeline: GpgPipeline,
        runner: CommandRunner,
        gpg_binary: str = "gpg",
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._pipeline = pipeline
        self._runner = runner
        self._gpg_binary = gpg_binary
        self._log = logger or structlog.get_logger(__name__)

    def run(self) -> StepResult:
        if not self._runner.command_exists(self._gpg_binary):
            self._log.error("GPG is not installed", binary=self._gpg_binary)
            return StepResult(self.name, False, f"{self._gpg_binary} not found")

        outcome = self._pipeline.run()
        return StepResult(
            self.name,
            outcome.ok,
            outcome.reason or outcome.status.value,
            data={"key_id": outcome.key_id},
        )


class DotfilesStep:
    """``dotdrop install`` with the GPG key id exported for its templates."""

    name = "dotfiles"

    def __init__(
        self,
        runner: CommandRunner,
        identifier: KeyIdentifier,
        profile: str,
        config_file: Optional[str] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._runner = runner
        self._identifier = identifier
        self._profile = profile
        self._config_file = config_file
        self._log = logger or structlog.get_logger(__name__)
        self.key_id: Optional[str] = None

    def run(self) -> StepResult:
        self._log.info("Installing dotfiles with dotdrop", profile=self._profile)
        key_id = self.key_id or self._identifier.resolve_key_id()
        env = None
        if key_id:
            self._log.info("Using GPG key id for dotfiles", key_id=key_id)
            env = {"GPG_KEY_ID": key_id}
        else:
            self._log.warning("No GPG key id available, encrypted dotfiles may fail")

        command = ["dotdrop", "install", "-p", self._profile]
        if self._config_file:
            command += ["--cfg", str(Path(self._config_file).expanduser())]
        result = self._runner.run(command, env=env, capture="none")
        if not result.success:
            self._log.warning("dotdrop install failed", returncode=result.returncode)
            return StepResult(self.name, True, f"dotdrop exited {result.returncode}")
        self._log.info("Dotfiles installed")
        return StepResult(self.name, True, self._profile)


class ZgenomStep:
    """Clone zgenom once. A failed clone only degrades the shell setup."""

    name = "zgenom"

    def __init__(
        self,
        runner: CommandRunner,
        repo_url: str,
        install_dir: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._runner = runner
        self._repo_url = repo_url
        self._install_dir = Path(install_dir).expanduser()
        self._log = logger or structlog.get_logger(__name__)

    def run(self) -> StepResult:
        if self._install_dir.is_dir():
            self._log.info("Zgenom is already installed", path=str(self._install_dir))
            return StepResult(self.name, True, "already installed")

        self._log.info("Installing Zgenom", path=str(self._install_dir))
        result = self._runner.run(["git", "clone", self._repo_url, str(self._install_dir)])
        if not result.success:
            self._log.warning("Failed to install Zgenom, zsh plugins will not load", stderr=result.stderr.strip())
            return StepResult(self.name, True, "clone failed")
        return StepResult(self.name, True)


STEP_NAMES = (
    SystemCheckStep.name,
    HomebrewStep.name,
    OnePasswordCliStep.name,
    GpgStep.name,
    DotfilesStep.name,
    ZgenomStep.name,
)


class Installer:
    """Runs the bootstrap steps in order and stops at the first failure."""

    def __init__(self, steps: list, logger: Optional[structlog.stdlib.BoundLogger] = None):
        self._steps = steps
        self._log = logger or structlog.get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        config: BootKitConfig,
        runner: CommandRunner,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> Installer:
        keyring = GpgKeyring(runner, binary=config.gpg.binary)
        identifier = KeyIdentifier(keyring, configured_id=config.gpg.key_id, logger=logger)
        steps = [
            SystemCheckStep(logger=logger),
            HomebrewStep(
                runner,
                brewfile=config.brew.brewfile,
                update=config.brew.update,
                install_if_missing=config.brew.install_if_missing,
                logger=logger,
            ),
            OnePasswordCliStep(runner, logger=logger),
            GpgStep(GpgPipeline.from_config(config, runner, logger=logger), runner, config.gpg.binary, logger=logger),
            DotfilesStep(
                runner,
                identifier,
                profile=config.dotdrop.profile,
                config_file=config.dotdrop.config_file,
                logger=logger,
            ),
            ZgenomStep(runner, config.zgenom.repo_url, config.zgenom.install_dir, logger=logger),
        ]
        return cls(steps, logger=logger)

    def run(self, skip: Iterable[str] = ()) -> list[StepResult]:
        skipped = set(skip)
        results: list[StepResult] = []
        key_id: Optional[str] = None

        for step in self._steps:
            if step.name in skipped:
                self._log.info("Skipping step", step=step.name)
                continue
            if isinstance(step, DotfilesStep) and key_id:
                step.key_id = key_id

            result = step.run()
            results.append(result)
            if result.data.get("key_id"):
                key_id = result.data["key_id"]
            if not result.success:
                self._log.error("Installation halted", step=step.name, detail=result.detail)
                return results

        self._log.info("Installation completed successfully, please restart your terminal")
        return results

"""BootKit: bootstrap a macOS developer environment."""

__version__ = "0.1.0"

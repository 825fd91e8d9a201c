"""Regraft CLI – command-line interface built with Typer and Rich.

This package provides:

- :data:`app` – The main Typer application
- :func:`setup_logging` – Logging infrastructure
- :class:`StatusDisplay` – Rich summary panels
- :class:`CLIError` – Structured error handling
"""

from regraft.cli.app import app
from regraft.cli.display import StatusDisplay
from regraft.cli.errors import CLIError, ConfigError, error_handler
from regraft.cli.logging_setup import setup_logging

__all__ = [
    "CLIError",
    "ConfigError",
    "StatusDisplay",
    "app",
    "error_handler",
    "setup_logging",
]

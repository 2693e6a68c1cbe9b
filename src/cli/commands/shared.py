"""Shared utilities for CLI commands.

This module provides common utilities used across all command modules:
console output, error handling, logging setup and .env loading.
"""

import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from src.cli.shared.console import console, with_error_handling


def print_header(title: str, style: str = "blue") -> None:
    """Print a styled header panel."""
    console.print_header(title, style)


def configure_logging(verbose: bool) -> None:
    """Route loguru output to stderr at DEBUG (verbose) or WARNING level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<dim>{time:HH:mm:ss}</dim> <level>{level: <8}</level> {message}",
    )


def load_env_file(base_dir: Path) -> None:
    """Load ``<base_dir>/.env`` without overriding variables already set."""
    env_file = base_dir / ".env"
    if env_file.is_file():
        load_dotenv(env_file, override=False)
        logger.debug(f"Loaded environment from {env_file}")


__all__ = [
    "configure_logging",
    "console",
    "load_env_file",
    "print_header",
    "with_error_handling",
]

"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and a CLI command wrapper
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

import typer

T = TypeVar('T')

logger = logging.getLogger(__name__)

EXIT_CODES = {
    "ManifestUnknown": 1,
    "ManifestUnknownRevision": 1,
    "RecordNotFound": 1,
    "ManifestInvalid": 2,
    "ManifestVerificationError": 2,
    "ValueError": 2,
    "AccessDenied": 4,
}

FALLBACK_EXIT_CODE = 3


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns:
    - 1: Manifest not found (ManifestUnknown, ManifestUnknownRevision, RecordNotFound)
    - 2: Invalid input (ManifestInvalid, ManifestVerificationError, ValueError)
    - 3: Any other failure, including content store and catalog errors
    - 4: Access denied (AccessDenied)
    """
    return EXIT_CODES.get(type(exc).__name__, FALLBACK_EXIT_CODE)


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit, after printing the error.

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except Exception as e:
        from .printers import print_error
        logger.debug("command failed", exc_info=True)
        print_error(e)
        raise typer.Exit(code=exit_code_for(e)) from e

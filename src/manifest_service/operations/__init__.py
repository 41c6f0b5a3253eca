"""
Operations package - Application service layer between CLI and manifest service.

This package provides the Operations facade that builds a request-scoped
ManifestService per command, centralizes error mapping, and handles output
formatting while keeping CLI commands thin and testable.
"""
from .facade import Operations
from .mappers import exit_code_for, run_and_exit

__all__ = ["Operations", "exit_code_for", "run_and_exit"]

"""Fake catalog implementations for testing."""
from .fake_catalog import FakeCatalog

__all__ = ["FakeCatalog"]

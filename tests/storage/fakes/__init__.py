"""Fake storage implementations for testing."""
from .fake_content_store import FakeContentStore

__all__ = ["FakeContentStore"]

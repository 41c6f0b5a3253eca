"""
Content store error classes.

Provides a clear taxonomy of errors that can occur while talking to the
content-addressed manifest and blob store. These errors are mapped from HTTP
status codes so callers see a consistent interface regardless of transport.

A manifest digest missing from the store is reported with
``manifest_service.errors.ManifestUnknownRevision`` rather than a class from
this module, since the service treats it as a fallback trigger.
"""
from __future__ import annotations


class StoreError(Exception):
    """Base class for all content store errors."""
    pass


class StoreAuthError(StoreError):
    """
    Authentication or authorization error.
    
    Raised when:
    - HTTP 401 Unauthorized (invalid credentials)
    - HTTP 403 Forbidden (insufficient permissions)
    """
    pass


class BlobUnknown(StoreError):
    """
    Blob not found in the repository.
    
    Raised when:
    - HTTP 404 on a blob GET
    """
    
    def __init__(self, repo: str, digest: str):
        super().__init__(f"blob unknown to repository {repo}: {digest}")
        self.repo = repo
        self.digest = digest


class StoreDigestMismatch(StoreError):
    """
    Content digest validation failed.
    
    Raised when:
    - put: server digest != locally computed digest
    - get: returned bytes do not hash to the requested digest
    """
    
    def __init__(self, message: str, expected: str | None = None, actual: str | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class StoreUnsupportedMediaType(StoreError):
    """
    Media type not supported by the store.
    
    Raised when:
    - HTTP 415 on a manifest PUT
    - the store returns a manifest the codec cannot decode
    """
    pass


class StoreTooLarge(StoreError):
    """Content too large for store limits (HTTP 413)."""
    pass


class StoreRateLimited(StoreError):
    """Rate limit exceeded (HTTP 429)."""
    pass


__all__ = [
    "StoreError",
    "StoreAuthError",
    "BlobUnknown",
    "StoreDigestMismatch",
    "StoreUnsupportedMediaType",
    "StoreTooLarge",
    "StoreRateLimited",
]

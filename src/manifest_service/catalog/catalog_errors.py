"""
Metadata catalog error classes and failure classification.

Catalog clients raise these errors; the manifest service never inspects
their fields directly but matches on the ``CatalogFailure`` kind returned by
``classify_catalog_error``.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

# Resource kinds the catalog reports for a missing image collection
COLLECTION_KINDS = frozenset({"imagecollection", "imagecollections"})


class CatalogFailure(str, Enum):
    """What a failed catalog call means to the manifest service."""
    QUOTA_EXCEEDED = "quota_exceeded"
    COLLECTION_NOT_FOUND = "collection_not_found"
    OTHER = "other"


class CatalogError(Exception):
    """
    Base class for all metadata catalog errors.
    
    Attributes:
        status: HTTP-style status code reported by the catalog, if any
    """
    
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class QuotaExceeded(CatalogError):
    """The write would exceed a quota in the namespace."""
    
    def __init__(self, message: str, status: Optional[int] = 403):
        super().__init__(message, status)


class CatalogNotFound(CatalogError):
    """
    A catalog resource doesn't exist.
    
    Attributes:
        kind: Resource kind the catalog reported (e.g. "imagecollections")
        name: Resource name the catalog reported
    """
    
    def __init__(self, message: str, kind: str = "", name: str = ""):
        super().__init__(message, 404)
        self.kind = kind
        self.name = name


class CatalogConflict(CatalogError):
    """The resource already exists."""
    
    def __init__(self, message: str, kind: str = "", name: str = ""):
        super().__init__(message, 409)
        self.kind = kind
        self.name = name


def classify_catalog_error(err: Exception, repo_name: str) -> CatalogFailure:
    """
    Classify a failed catalog write for the repository ``repo_name``.
    
    Only a not-found error naming this repository's image collection counts
    as a missing collection; a not-found error about anything else is
    ``OTHER``.
    """
    if isinstance(err, QuotaExceeded):
        return CatalogFailure.QUOTA_EXCEEDED
    if (
        isinstance(err, CatalogNotFound)
        and err.kind.lower() in COLLECTION_KINDS
        and err.name == repo_name
    ):
        return CatalogFailure.COLLECTION_NOT_FOUND
    return CatalogFailure.OTHER


__all__ = [
    "COLLECTION_KINDS",
    "CatalogFailure",
    "CatalogError",
    "QuotaExceeded",
    "CatalogNotFound",
    "CatalogConflict",
    "classify_catalog_error",
]

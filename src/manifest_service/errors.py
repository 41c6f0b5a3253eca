"""
Manifest service error classes.

Caller-facing taxonomy for manifest operations. Collaborator failures that
are not explicitly reclassified by the service are raised as-is, so callers
should also expect the content store and catalog error families.
"""
from __future__ import annotations

from typing import Iterable, Optional


class ManifestServiceError(Exception):
    """Base class for all errors raised by the manifest service."""
    pass


class ManifestInvalid(ManifestServiceError):
    """
    Manifest could not be decoded or is refused by policy.
    
    Always user-facing and never retried.
    """
    
    def __init__(self, detail: object):
        super().__init__(f"manifest invalid: {detail}")
        self.detail = detail


class ManifestVerificationError(ManifestServiceError):
    """
    One or more blobs referenced by the manifest are missing or unusable.
    
    Carries every failing digest so callers can report them all at once.
    """
    
    def __init__(self, missing: Iterable[str], reason: str = "blob unknown to repository"):
        self.missing = list(missing)
        self.reason = reason
        super().__init__(f"manifest verification failed: {reason}: {', '.join(self.missing)}")


class ManifestMetadataError(ManifestServiceError):
    """Derived image metadata could not be extracted from the manifest."""
    pass


class ManifestUnknown(ManifestServiceError):
    """Base class for "manifest does not exist" conditions."""
    pass


class ManifestUnknownRevision(ManifestUnknown):
    """Requested digest is absent from the content store."""
    
    def __init__(self, name: str, revision: str):
        super().__init__(f"unknown manifest name={name} revision={revision}")
        self.name = name
        self.revision = revision


class RecordNotFound(ManifestUnknown):
    """The catalog holds no image record for the requested digest."""
    
    def __init__(self, namespace: str, name: str, digest: str, cause: Optional[Exception] = None):
        super().__init__(f"image record not found: {namespace}/{name}@{digest}")
        self.namespace = namespace
        self.name = name
        self.digest = digest
        self.cause = cause


class AccessDenied(ManifestServiceError):
    """
    Catalog write refused because a quota is exhausted.
    
    Distinct from generic failures so callers can render a denial
    rather than a server error.
    """
    
    def __init__(self, message: str = "access denied"):
        super().__init__(message)


__all__ = [
    "ManifestServiceError",
    "ManifestInvalid",
    "ManifestVerificationError",
    "ManifestMetadataError",
    "ManifestUnknown",
    "ManifestUnknownRevision",
    "RecordNotFound",
    "AccessDenied",
]

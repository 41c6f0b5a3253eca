"""
Content store protocol definition.

Defines the repository-scoped interface the manifest service uses to reach
the content-addressed manifest and blob store. Every operation receives the
request's ``RepositoryContext``, which names the repository the digest is
looked up in.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..codec.manifest import Manifest
    from ..repository import RepositoryContext


@runtime_checkable
class ContentStore(Protocol):
    """Repository-scoped, content-addressed manifest and blob storage."""

    def exists(self, ctx: RepositoryContext, digest: str) -> bool:
        """
        Check whether a manifest with ``digest`` is stored for the repository.

        Returns:
            True if the manifest exists, False otherwise
        """
        ...

    def get(self, ctx: RepositoryContext, digest: str) -> Manifest:
        """
        Fetch a manifest by digest.

        Returns:
            Decoded manifest whose canonical bytes hash to ``digest``

        Raises:
            ManifestUnknownRevision: If the store has no such manifest
            StoreError: For other store failures
        """
        ...

    def put(self, ctx: RepositoryContext, manifest: Manifest, tag: Optional[str] = None) -> str:
        """
        Store a manifest; idempotent for identical canonical bytes.

        Returns:
            Digest of the manifest's canonical bytes

        Raises:
            StoreDigestMismatch: If the store computed a different digest
            StoreError: For other store failures
        """
        ...

    def delete(self, ctx: RepositoryContext, digest: str) -> None:
        """
        Delete a manifest by digest.

        Raises:
            ManifestUnknownRevision: If the store has no such manifest
            StoreError: For other store failures
        """
        ...

    def blob_exists(self, ctx: RepositoryContext, digest: str) -> bool:
        """
        Check if a blob is linked into the repository.

        Raises:
            StoreError: For failures other than "not found"
        """
        ...

    def get_blob(self, ctx: RepositoryContext, digest: str) -> bytes:
        """
        Fetch blob content by digest.

        Raises:
            BlobUnknown: If the blob doesn't exist in the repository
            StoreError: For other store failures
        """
        ...


__all__ = ["ContentStore"]

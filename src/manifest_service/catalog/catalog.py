"""
Metadata catalog protocol definition.

The catalog tracks per-repository image records, tags and quota. It is the
existence and authorization gate for reads: a manifest is only served when
the catalog holds a record for it.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models import CollectionMapping, ImageCollection, ImageRecord


@runtime_checkable
class MetadataCatalog(Protocol):
    """CRUD access to image records, collection mappings and collections."""

    def get_image(self, namespace: str, name: str, digest: str) -> ImageRecord:
        """
        Fetch the image record for ``digest`` within a repository.

        Raises:
            CatalogNotFound: If no record exists (or the caller may not see it)
            CatalogError: For other catalog failures
        """
        ...

    def create_mapping(self, mapping: CollectionMapping) -> None:
        """
        Publish an image under (namespace, name, tag).

        Raises:
            QuotaExceeded: If the namespace quota is exhausted
            CatalogNotFound: If the parent image collection doesn't exist
            CatalogError: For other catalog failures
        """
        ...

    def create_collection(self, collection: ImageCollection) -> ImageCollection:
        """
        Create an image collection.

        Implementations treat "already exists" as success.

        Raises:
            QuotaExceeded: If the namespace quota is exhausted
            CatalogError: For other catalog failures
        """
        ...


__all__ = ["MetadataCatalog"]

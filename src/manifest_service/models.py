"""
Data models for catalog records and manifest descriptors.

These Pydantic models provide type safety and validation for the records
exchanged with the metadata catalog, from the image record built on put to
the collection mapping that publishes it under a tag.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .codec.digest import validate_digest

# Annotation marking images whose content lives in this registry
MANAGED_ANNOTATION = "manifest-service.io/managed"


class Descriptor(BaseModel):
    """Content descriptor for a blob referenced by a manifest."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    media_type: str = Field(default="", alias="mediaType", description="Blob media type")
    size: int = Field(default=0, description="Blob size in bytes")
    digest: str = Field(..., description="Content digest (sha256:...)")
    urls: List[str] = Field(default_factory=list, description="External locations (foreign layers)")

    @field_validator("digest")
    @classmethod
    def validate_digest_format(cls, v):
        validate_digest(v)
        return v


class ImageLayer(BaseModel):
    """Derived summary of one layer, stored on the image record."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Layer digest")
    size: int = Field(default=0, description="Layer size in bytes")
    media_type: str = Field(default="", alias="mediaType", description="Layer media type")

    def to_descriptor(self) -> Descriptor:
        return Descriptor(mediaType=self.media_type, size=self.size, digest=self.name)


class ImageMetadata(BaseModel):
    """Derived image configuration summary."""
    architecture: Optional[str] = None
    os: Optional[str] = None
    created: Optional[str] = None
    config_digest: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    size: int = Field(default=0, description="Config plus layer sizes in bytes")


class ImageRecord(BaseModel):
    """
    Catalog entity representing one manifest within a repository.

    One record corresponds to exactly one manifest digest. The embedded
    manifest and config are kept only while derived fields are extracted;
    they are cleared before the record is submitted to the catalog.
    """
    name: str = Field(..., description="Manifest digest")
    annotations: Dict[str, str] = Field(default_factory=dict)
    docker_image_reference: str = Field(default="", description="Pull spec of the image")
    docker_image_manifest: str = Field(default="", description="Embedded raw manifest")
    docker_image_manifest_media_type: str = Field(default="")
    docker_image_config: str = Field(default="", description="Embedded raw image config")
    docker_image_layers: List[ImageLayer] = Field(default_factory=list)
    docker_image_metadata: ImageMetadata = Field(default_factory=ImageMetadata)

    @field_validator("name")
    @classmethod
    def validate_name_is_digest(cls, v):
        validate_digest(v)
        return v

    @property
    def is_managed(self) -> bool:
        """Whether the image content is managed by this registry."""
        return self.annotations.get(MANAGED_ANNOTATION) == "true"

    def strip_payload(self) -> None:
        """Drop the embedded manifest and config to bound catalog storage."""
        self.docker_image_manifest = ""
        self.docker_image_config = ""


class ImageCollection(BaseModel):
    """Repository-level container for image records and tags."""
    namespace: str
    name: str


class CollectionMapping(BaseModel):
    """
    Publication record linking (namespace, name, tag) to an image.

    Creating this record is what makes the image visible in the repository.
    """
    namespace: str
    name: str
    image: ImageRecord
    tag: Optional[str] = None


__all__ = [
    "MANAGED_ANNOTATION",
    "Descriptor",
    "ImageLayer",
    "ImageMetadata",
    "ImageRecord",
    "ImageCollection",
    "CollectionMapping",
]

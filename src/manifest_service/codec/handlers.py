"""
Schema-specific manifest handlers.

A handler wraps one decoded manifest and knows how to produce its payload
forms, verify that the blobs it references exist in the repository, and
derive the layer and config summary stored on the catalog record.
"""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Dict, List, Tuple

from ..errors import ManifestMetadataError, ManifestVerificationError
from ..models import Descriptor, ImageLayer, ImageMetadata, ImageRecord
from ..storage.store_errors import BlobUnknown
from .manifest import Manifest, ManifestFormatError, decode_manifest, load_manifest_json
from .media_types import FOREIGN_LAYER_MEDIA_TYPES, SCHEMA1_MEDIA_TYPES

if TYPE_CHECKING:
    from ..repository import RepositoryContext
    from ..storage.content_store import ContentStore

logger = logging.getLogger(__name__)

__all__ = ["ManifestHandler", "Schema1Handler", "Schema2Handler", "new_manifest_handler"]


class ManifestHandler:
    """
    Base handler bound to one manifest, one repository and one store.

    Subclasses provide ``fill_image_metadata``; verification is shared.
    """

    def __init__(self, ctx: RepositoryContext, store: ContentStore, manifest: Manifest):
        self._ctx = ctx
        self._store = store
        self._manifest = manifest

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    def payload(self) -> Tuple[str, bytes, bytes]:
        """
        Return (media type, payload as received, canonical bytes).
        """
        return self._manifest.media_type, self._manifest.payload, self._manifest.canonical

    def verify(self, skip_dependency_verification: bool = False) -> None:
        """
        Confirm every referenced blob exists in the repository.

        Blobs the layer cache already confirmed for this repository are not
        re-checked; newly confirmed ones are remembered.

        Raises:
            ManifestVerificationError: Listing every missing blob
            StoreError: If an existence check itself fails
        """
        if skip_dependency_verification:
            return

        cache_name = self._ctx.cache_name
        missing: List[str] = []
        unusable: List[str] = []

        for desc in self._manifest.references:
            if desc.media_type in FOREIGN_LAYER_MEDIA_TYPES:
                # Foreign layers live outside the registry
                if not desc.urls:
                    unusable.append(desc.digest)
                continue
            if self._ctx.layers.is_known(desc.digest, cache_name):
                continue
            if self._store.blob_exists(self._ctx, desc.digest):
                self._ctx.layers.remember_blob(desc.digest, cache_name)
            else:
                missing.append(desc.digest)

        if unusable:
            raise ManifestVerificationError(unusable, reason="foreign layer without urls")
        if missing:
            logger.debug(f"Manifest {self._manifest.digest} references blobs unknown to "
                         f"{self._ctx.named}: {missing}")
            raise ManifestVerificationError(missing)

    def fill_image_metadata(self, image: ImageRecord) -> None:
        raise NotImplementedError


class Schema2Handler(ManifestHandler):
    """Docker schema 2 and OCI image manifests."""

    def fill_image_metadata(self, image: ImageRecord) -> None:
        """
        Populate config and layer summary from the config blob.

        Raises:
            ManifestMetadataError: If the config blob is missing or not JSON
        """
        config_desc = self._manifest.config
        try:
            raw = self._store.get_blob(self._ctx, config_desc.digest)
        except BlobUnknown as e:
            raise ManifestMetadataError(f"config blob {config_desc.digest} unknown to {self._ctx.named}") from e

        try:
            config = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestMetadataError(f"config blob {config_desc.digest} is not valid JSON: {e}") from e
        if not isinstance(config, dict):
            raise ManifestMetadataError(f"config blob {config_desc.digest} is not a JSON object")

        layers = [_image_layer(d) for d in self._manifest.layers]
        image.docker_image_config = raw.decode("utf-8")
        image.docker_image_layers = layers
        image.docker_image_metadata = ImageMetadata(
            architecture=config.get("architecture"),
            os=config.get("os"),
            created=config.get("created"),
            config_digest=config_desc.digest,
            labels=_labels(config.get("config")),
            size=config_desc.size + sum(layer.size for layer in layers),
        )


class Schema1Handler(ManifestHandler):
    """
    Docker schema 1 manifests.

    Signature verification is not performed; signed payloads are accepted
    once their canonical form can be recovered.
    """

    def fill_image_metadata(self, image: ImageRecord) -> None:
        """
        Populate layer summary and metadata from ``history``.

        Raises:
            ManifestMetadataError: If a v1Compatibility entry is not valid JSON
        """
        doc = load_manifest_json(self._manifest.canonical)
        fs_layers = doc["fsLayers"]
        compat = [_v1_compatibility(entry) for entry in doc["history"]]

        # Both lists are ordered top-most layer first
        layers = [
            ImageLayer(name=fs_layers[i]["blobSum"], size=_layer_size(compat[i]))
            for i in reversed(range(len(fs_layers)))
        ]
        top = compat[0]
        image.docker_image_layers = layers
        image.docker_image_metadata = ImageMetadata(
            architecture=top.get("architecture"),
            os=top.get("os"),
            created=top.get("created"),
            labels=_labels(top.get("config")),
            size=sum(layer.size for layer in layers),
        )


def new_manifest_handler(ctx: RepositoryContext, store: ContentStore, manifest: Manifest) -> ManifestHandler:
    """
    Create the handler for ``manifest``'s schema.

    The payload is decoded again so a manifest assembled by hand is held to
    the same rules as one decoded from the wire.

    Raises:
        ManifestFormatError: If the manifest is malformed or unsupported
    """
    decoded = decode_manifest(manifest.payload, manifest.media_type)
    if decoded.canonical != manifest.canonical:
        raise ManifestFormatError("canonical bytes do not match payload")
    if decoded.media_type in SCHEMA1_MEDIA_TYPES:
        return Schema1Handler(ctx, store, decoded)
    return Schema2Handler(ctx, store, decoded)


def _image_layer(desc: Descriptor) -> ImageLayer:
    return ImageLayer(name=desc.digest, size=desc.size, mediaType=desc.media_type)


def _labels(config: object) -> Dict[str, str]:
    if not isinstance(config, dict):
        return {}
    labels = config.get("Labels") or {}
    if not isinstance(labels, dict):
        return {}
    return {str(k): str(v) for k, v in labels.items()}


def _layer_size(compat: dict) -> int:
    size = compat.get("Size") or 0
    try:
        return int(size)
    except (TypeError, ValueError) as e:
        raise ManifestMetadataError(f"invalid layer Size {size!r} in v1Compatibility entry") from e


def _v1_compatibility(entry: object) -> dict:
    try:
        compat = json.loads(entry["v1Compatibility"])
    except (KeyError, TypeError, json.JSONDecodeError) as e:
        raise ManifestMetadataError(f"invalid v1Compatibility entry: {e}") from e
    if not isinstance(compat, dict):
        raise ManifestMetadataError("v1Compatibility entry is not a JSON object")
    return compat

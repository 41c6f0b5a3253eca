"""
Manifest and blob media types.

Single source of truth for the media types the codec understands.
"""
from __future__ import annotations

# Docker schema 1 (signed and unsigned)
MEDIA_TYPE_SCHEMA1 = "application/vnd.docker.distribution.manifest.v1+json"
MEDIA_TYPE_SCHEMA1_SIGNED = "application/vnd.docker.distribution.manifest.v1+prettyjws"
MEDIA_TYPE_SCHEMA1_LAYER = "application/vnd.docker.container.image.rootfs.diff+x-gtar"

# Docker schema 2
MEDIA_TYPE_SCHEMA2 = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_SCHEMA2_CONFIG = "application/vnd.docker.container.image.v1+json"
MEDIA_TYPE_SCHEMA2_LAYER = "application/vnd.docker.image.rootfs.diff.tar.gzip"
MEDIA_TYPE_FOREIGN_LAYER = "application/vnd.docker.image.rootfs.foreign.diff.tar.gzip"

# OCI image manifest
MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_CONFIG = "application/vnd.oci.image.config.v1+json"
MEDIA_TYPE_OCI_LAYER = "application/vnd.oci.image.layer.v1.tar+gzip"
MEDIA_TYPE_OCI_FOREIGN_LAYER = "application/vnd.oci.image.layer.nondistributable.v1.tar+gzip"

# Multi-platform lists are recognised only to be refused
MEDIA_TYPE_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"

SCHEMA1_MEDIA_TYPES = frozenset({MEDIA_TYPE_SCHEMA1, MEDIA_TYPE_SCHEMA1_SIGNED})
FOREIGN_LAYER_MEDIA_TYPES = frozenset({MEDIA_TYPE_FOREIGN_LAYER, MEDIA_TYPE_OCI_FOREIGN_LAYER})

# Accept header order for manifest GETs
ACCEPTED_MANIFEST_TYPES = [
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_SCHEMA2,
    MEDIA_TYPE_SCHEMA1_SIGNED,
    MEDIA_TYPE_SCHEMA1,
]


__all__ = [
    "MEDIA_TYPE_SCHEMA1",
    "MEDIA_TYPE_SCHEMA1_SIGNED",
    "MEDIA_TYPE_SCHEMA1_LAYER",
    "MEDIA_TYPE_SCHEMA2",
    "MEDIA_TYPE_SCHEMA2_CONFIG",
    "MEDIA_TYPE_SCHEMA2_LAYER",
    "MEDIA_TYPE_FOREIGN_LAYER",
    "MEDIA_TYPE_OCI_MANIFEST",
    "MEDIA_TYPE_OCI_CONFIG",
    "MEDIA_TYPE_OCI_LAYER",
    "MEDIA_TYPE_OCI_FOREIGN_LAYER",
    "MEDIA_TYPE_MANIFEST_LIST",
    "MEDIA_TYPE_OCI_INDEX",
    "SCHEMA1_MEDIA_TYPES",
    "FOREIGN_LAYER_MEDIA_TYPES",
    "ACCEPTED_MANIFEST_TYPES",
]

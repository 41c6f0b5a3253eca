"""
Request-scoped repository context and layer cache.

A ``RepositoryContext`` groups everything one request knows about the
repository it operates on: namespace, name, the registry address used in
image references, and a ``LayerCache`` of blobs already confirmed to belong
to manifests read or written during the request. Nothing here is persisted.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Set, Tuple

from .codec.digest import is_digest
from .codec.manifest import Manifest, decode_manifest
from .models import Descriptor, ImageRecord

logger = logging.getLogger(__name__)

__all__ = ["LayerCache", "RepositoryContext", "parse_repo"]

_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|[-]+)[a-z0-9]+)*$")


def parse_repo(repo_path: str) -> Tuple[str, str]:
    """
    Parse a repository path into namespace and name.

    Args:
        repo_path: Repository path of the form ``<namespace>/<name>``

    Returns:
        Tuple of (namespace, name)

    Raises:
        ValueError: If repo_path doesn't match the expected format

    Examples:
        >>> parse_repo("team-a/web")
        ('team-a', 'web')
    """
    if not repo_path:
        raise ValueError("repo_path cannot be empty")

    parts = repo_path.split("/")
    if len(parts) != 2:
        raise ValueError(f"Invalid repo path format: {repo_path}. Expected <namespace>/<name>")

    namespace, name = parts
    for component in (namespace, name):
        if not _COMPONENT_RE.match(component):
            raise ValueError(f"Invalid repository component {component!r} in {repo_path}")
    return namespace, name


class LayerCache:
    """
    Write-through memo of layer blobs known to belong to manifests.

    Keeps two views: manifest digest -> layer descriptors (used to rebuild
    manifests from catalog records), and blob digest -> repository reference
    names the blob was confirmed under (used to skip existence checks).
    """

    def __init__(self) -> None:
        self._manifest_layers: Dict[str, Tuple[Descriptor, ...]] = {}
        self._blob_repos: Dict[str, Set[str]] = {}

    def remember_layers_of_manifest(self, manifest_digest: str, manifest: Manifest, cache_name: str) -> None:
        self._manifest_layers[manifest_digest] = tuple(manifest.layers)
        for ref in manifest.references:
            self.remember_blob(ref.digest, cache_name)

    def remember_blob(self, blob_digest: str, cache_name: str) -> None:
        self._blob_repos.setdefault(blob_digest, set()).add(cache_name)

    def layers_of(self, manifest_digest: str) -> Tuple[Descriptor, ...]:
        return self._manifest_layers.get(manifest_digest, ())

    def is_known(self, blob_digest: str, cache_name: str) -> bool:
        return cache_name in self._blob_repos.get(blob_digest, ())

    def __len__(self) -> int:
        return len(self._blob_repos)


@dataclass
class RepositoryContext:
    """
    Per-request grouping of repository identity and layer memo.

    One context is created per request and discarded with it; the layer
    cache is never shared between requests.
    """
    namespace: str
    name: str
    registry_addr: str
    layers: LayerCache = field(default_factory=LayerCache)

    @classmethod
    def from_repo_path(cls, repo_path: str, registry_addr: str) -> RepositoryContext:
        namespace, name = parse_repo(repo_path)
        return cls(namespace=namespace, name=name, registry_addr=registry_addr)

    @property
    def named(self) -> str:
        """Repository path ``<namespace>/<name>``."""
        return f"{self.namespace}/{self.name}"

    @property
    def cache_name(self) -> str:
        """
        Reference name for blobs held locally by this repository.

        Matches ``canonical_reference(...).exact()`` for managed images, so
        blobs remembered on get are recognised by put verification.
        """
        return self.named

    def remember_layers_of_manifest(self, digest: str, manifest: Manifest, cache_name: str) -> None:
        self.layers.remember_layers_of_manifest(digest, manifest, cache_name)

    def manifest_from_image_with_cached_layers(self, image: ImageRecord, cache_name: str) -> Manifest:
        """
        Rebuild a manifest from the payload embedded in a catalog record.

        Layer descriptors are taken from the layer cache when the manifest
        digest was seen earlier in the request, then from the record's
        derived layer summary, then from the payload itself. Blob existence
        is not checked: the payload was accepted by an earlier put.

        Raises:
            ManifestFormatError: If the embedded payload can't be decoded
        """
        manifest = decode_manifest(
            image.docker_image_manifest.encode("utf-8"),
            image.docker_image_manifest_media_type or None,
        )

        known: Dict[str, Descriptor] = {}
        for layer in image.docker_image_layers:
            if not is_digest(layer.name):
                logger.debug(f"Ignoring layer {layer.name!r} of image {image.name}: not a sha256 digest")
                continue
            known[layer.name] = layer.to_descriptor()
        known.update((d.digest, d) for d in self.layers.layers_of(image.name))
        manifest = manifest.with_layers(_merge_layers(manifest.layers, known))

        self.remember_layers_of_manifest(image.name, manifest, cache_name)
        if image.docker_image_metadata.config_digest:
            self.layers.remember_blob(image.docker_image_metadata.config_digest, cache_name)
        logger.debug(f"Rebuilt manifest {image.name} for {self.named} from catalog record "
                     f"({len(manifest.layers)} layers)")
        return manifest


def _merge_layers(layers: Iterable[Descriptor], known: Dict[str, Descriptor]) -> Tuple[Descriptor, ...]:
    return tuple(known.get(d.digest, d) for d in layers)

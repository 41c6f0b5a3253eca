"""
Image reference construction.

Builds the repository reference attached to manifests returned by the
service. Locally managed images are referenced without a registry part;
images mirrored from elsewhere are normalized to the Docker client's default
form so pull-through accounting sees a stable name.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace

from .models import ImageRecord
from .repository import RepositoryContext

__all__ = [
    "DEFAULT_REGISTRY",
    "DEFAULT_NAMESPACE",
    "ImageReference",
    "parse_image_reference",
    "canonical_reference",
]

DEFAULT_REGISTRY = "docker.io"
DEFAULT_NAMESPACE = "library"

_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")


@dataclass(frozen=True)
class ImageReference:
    """
    Parsed ``registry/namespace/name[:tag][@id]`` reference.

    Any part may be empty; ``exact()`` omits empty parts.
    """
    registry: str = ""
    namespace: str = ""
    name: str = ""
    tag: str = ""
    id: str = ""

    def docker_client_defaults(self) -> ImageReference:
        """Fill in the defaults the Docker client assumes."""
        ref = self
        if not ref.registry:
            ref = replace(ref, registry=DEFAULT_REGISTRY)
        if not ref.namespace and ref.registry == DEFAULT_REGISTRY:
            ref = replace(ref, namespace=DEFAULT_NAMESPACE)
        return ref

    def as_repository(self) -> ImageReference:
        """Drop tag and id, leaving only the repository."""
        return replace(self, tag="", id="")

    def exact(self) -> str:
        path = "/".join(part for part in (self.registry, self.namespace, self.name) if part)
        if self.tag:
            path = f"{path}:{self.tag}"
        if self.id:
            path = f"{path}@{self.id}"
        return path

    def __str__(self) -> str:
        return self.exact()


def parse_image_reference(text: str) -> ImageReference:
    """
    Parse a pull spec into its parts.

    The first path component is treated as a registry when it contains a
    dot or a port, or is ``localhost``.

    Examples:
        >>> parse_image_reference("quay.io/team/app:v1").exact()
        'quay.io/team/app:v1'
        >>> parse_image_reference("busybox").docker_client_defaults().exact()
        'docker.io/library/busybox'

    Raises:
        ValueError: If the reference is empty or malformed
    """
    if not text:
        raise ValueError("image reference cannot be empty")

    remainder, image_id = text, ""
    if "@" in remainder:
        remainder, image_id = remainder.split("@", 1)
        if not image_id:
            raise ValueError(f"empty id in image reference: {text}")

    tag = ""
    last = remainder.rsplit("/", 1)[-1]
    if ":" in last:
        remainder, tag = remainder.rsplit(":", 1)
        if not _TAG_RE.match(tag):
            raise ValueError(f"invalid tag {tag!r} in image reference: {text}")

    parts = remainder.split("/")
    if any(not part for part in parts):
        raise ValueError(f"invalid image reference: {text}")

    registry = ""
    if len(parts) > 1 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        registry = parts.pop(0)

    if len(parts) == 1:
        namespace, name = "", parts[0]
    else:
        namespace, name = "/".join(parts[:-1]), parts[-1]

    return ImageReference(registry=registry, namespace=namespace, name=name, tag=tag, id=image_id)


def canonical_reference(ctx: RepositoryContext, image: ImageRecord) -> ImageReference:
    """
    Build the repository reference used to annotate a returned manifest.

    A reference without a registry part names the repository holding
    locally managed images; one with a registry names the remote
    repository a pull-through source serves.
    """
    ref = ImageReference(registry=ctx.registry_addr, namespace=ctx.namespace, name=ctx.name)
    if image.is_managed:
        return replace(ref, registry="")
    return ref.docker_client_defaults().as_repository()

"""
Manifest value object and decoding.

Turns raw manifest bytes into an immutable ``Manifest`` carrying its media
type, the bytes as received, the canonical bytes the digest is computed
over, and the blobs it references (config first, then layers).
"""
from __future__ import annotations

import base64
import binascii
import dataclasses
import json
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..models import Descriptor
from .digest import digest_from_bytes
from .media_types import (
    MEDIA_TYPE_MANIFEST_LIST,
    MEDIA_TYPE_OCI_INDEX,
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_SCHEMA1,
    MEDIA_TYPE_SCHEMA1_LAYER,
    MEDIA_TYPE_SCHEMA1_SIGNED,
    MEDIA_TYPE_SCHEMA2,
    SCHEMA1_MEDIA_TYPES,
)

__all__ = ["Manifest", "ManifestFormatError", "decode_manifest", "load_manifest_json"]


class ManifestFormatError(ValueError):
    """Raw bytes do not form a supported, well-formed manifest."""
    pass


@dataclass(frozen=True)
class Manifest:
    """
    Immutable, content-addressed manifest document.

    Invariants:
    - digest is always computed from ``canonical``, never from ``payload``
    - for schema 2 and OCI manifests ``payload == canonical``
    - references list the config descriptor (if any) before layers
    """
    media_type: str
    payload: bytes
    canonical: bytes
    references: Tuple[Descriptor, ...] = ()

    @property
    def digest(self) -> str:
        return digest_from_bytes(self.canonical)

    @property
    def config(self) -> Optional[Descriptor]:
        """Config descriptor for schema 2 / OCI manifests."""
        if self.media_type in SCHEMA1_MEDIA_TYPES or not self.references:
            return None
        return self.references[0]

    @property
    def layers(self) -> Tuple[Descriptor, ...]:
        if self.media_type in SCHEMA1_MEDIA_TYPES:
            return self.references
        return self.references[1:]

    def with_layers(self, layers: Iterable[Descriptor]) -> Manifest:
        """
        Return a copy whose layer descriptors are replaced by ``layers``.

        Used when reconstructing a manifest from a catalog record, where
        remembered descriptors may carry sizes the payload lacks.
        """
        layers = tuple(layers)
        if not layers:
            return self
        config = self.config
        refs = ((config,) if config is not None else ()) + layers
        return dataclasses.replace(self, references=refs)


def load_manifest_json(data: bytes) -> dict:
    """Parse manifest bytes as a JSON object."""
    try:
        doc = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestFormatError(f"manifest is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise ManifestFormatError("manifest must be a JSON object")
    return doc


def decode_manifest(payload: bytes, media_type: Optional[str] = None) -> Manifest:
    """
    Decode raw manifest bytes.

    Args:
        payload: Manifest bytes as received (signed form for schema 1)
        media_type: Media type from the transport; sniffed from the payload
            when omitted

    Returns:
        Decoded manifest

    Raises:
        ManifestFormatError: If the bytes are not a supported manifest
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    doc = load_manifest_json(payload)
    media_type = _resolve_media_type(doc, media_type)

    if media_type in SCHEMA1_MEDIA_TYPES:
        return _decode_schema1(doc, payload, media_type)
    if media_type in (MEDIA_TYPE_SCHEMA2, MEDIA_TYPE_OCI_MANIFEST):
        return _decode_schema2(doc, payload, media_type)
    if media_type in (MEDIA_TYPE_MANIFEST_LIST, MEDIA_TYPE_OCI_INDEX):
        raise ManifestFormatError(f"manifest lists are not supported: {media_type}")
    raise ManifestFormatError(f"unsupported manifest media type: {media_type}")


def _resolve_media_type(doc: dict, media_type: Optional[str]) -> str:
    declared = doc.get("mediaType")
    if media_type:
        # A payload may omit mediaType but must not contradict the transport
        if declared and declared != media_type and not (
            media_type in SCHEMA1_MEDIA_TYPES and declared in SCHEMA1_MEDIA_TYPES
        ):
            raise ManifestFormatError(
                f"media type mismatch: declared {declared}, received {media_type}"
            )
        return media_type
    if declared:
        return declared
    if doc.get("schemaVersion") == 1:
        return MEDIA_TYPE_SCHEMA1_SIGNED if doc.get("signatures") else MEDIA_TYPE_SCHEMA1
    raise ManifestFormatError("cannot determine manifest media type")


def _descriptor(raw: object, what: str) -> Descriptor:
    if not isinstance(raw, dict):
        raise ManifestFormatError(f"{what} must be an object")
    try:
        return Descriptor.model_validate(raw)
    except ValidationError as e:
        raise ManifestFormatError(f"invalid {what}: {e}") from e


def _decode_schema2(doc: dict, payload: bytes, media_type: str) -> Manifest:
    if doc.get("schemaVersion") != 2:
        raise ManifestFormatError(f"unexpected schemaVersion {doc.get('schemaVersion')!r} for {media_type}")
    if "config" not in doc:
        raise ManifestFormatError("manifest has no config descriptor")
    layers = doc.get("layers")
    if not isinstance(layers, list):
        raise ManifestFormatError("manifest layers must be a list")

    refs: List[Descriptor] = [_descriptor(doc["config"], "config descriptor")]
    refs.extend(_descriptor(layer, f"layer descriptor {i}") for i, layer in enumerate(layers))
    return Manifest(media_type=media_type, payload=payload, canonical=payload, references=tuple(refs))


def _decode_schema1(doc: dict, payload: bytes, media_type: str) -> Manifest:
    if doc.get("schemaVersion") != 1:
        raise ManifestFormatError(f"unexpected schemaVersion {doc.get('schemaVersion')!r} for schema 1")
    fs_layers = doc.get("fsLayers")
    if not isinstance(fs_layers, list) or not fs_layers:
        raise ManifestFormatError("schema 1 manifest has no fsLayers")
    history = doc.get("history", [])
    if not isinstance(history, list) or len(history) != len(fs_layers):
        raise ManifestFormatError("schema 1 manifest history does not match fsLayers")

    # fsLayers are listed top-most first; references go bottom-most first
    seen = set()
    refs: List[Descriptor] = []
    for entry in reversed(fs_layers):
        blob_sum = entry.get("blobSum") if isinstance(entry, dict) else None
        if blob_sum in seen:
            continue
        seen.add(blob_sum)
        refs.append(_descriptor({"digest": blob_sum, "mediaType": MEDIA_TYPE_SCHEMA1_LAYER}, "fsLayer"))

    canonical = _schema1_canonical(doc, payload)
    return Manifest(media_type=media_type, payload=payload, canonical=canonical, references=tuple(refs))


def _b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _schema1_canonical(doc: dict, payload: bytes) -> bytes:
    """
    Strip the JWS signature block from a signed schema 1 payload.

    The first signature's protected header records how long the signed
    content was and which bytes closed it.
    """
    signatures = doc.get("signatures")
    if not signatures:
        return payload
    try:
        protected = json.loads(_b64url_decode(signatures[0]["protected"]))
        length = int(protected["formatLength"])
        tail = _b64url_decode(protected["formatTail"])
    except (KeyError, TypeError, ValueError, binascii.Error) as e:
        raise ManifestFormatError(f"invalid schema 1 signature header: {e}") from e
    if length <= 0 or length > len(payload):
        raise ManifestFormatError(f"schema 1 formatLength {length} out of range")
    return payload[:length] + tail

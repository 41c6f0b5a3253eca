"""
Tests for ManifestService.get.

Reads are gated on the catalog record, served from the content store, and
fall back to the payload embedded in the record when the content store
has lost the manifest.
"""
from __future__ import annotations

import pytest

from manifest_service.catalog.catalog_errors import CatalogError
from manifest_service.codec.digest import digest_from_bytes
from manifest_service.codec.manifest import ManifestFormatError
from manifest_service.errors import ManifestUnknown, ManifestUnknownRevision, RecordNotFound
from manifest_service.models import MANAGED_ANNOTATION, ImageLayer, ImageRecord
from manifest_service.operations.mappers import exit_code_for
from manifest_service.repository import RepositoryContext
from manifest_service.service import ManifestService
from manifest_service.storage.store_errors import StoreError

from tests.helpers.manifests import schema1_manifest, schema2_manifest

REPO = "team-a/web"


def embedded_record(manifest, managed: bool = True, **kwargs) -> ImageRecord:
    """Catalog record that still carries its manifest payload."""
    return ImageRecord(
        name=manifest.digest,
        annotations={MANAGED_ANNOTATION: "true"} if managed else {},
        docker_image_manifest=manifest.payload.decode(),
        docker_image_manifest_media_type=manifest.media_type,
        **kwargs,
    )


class TestGetFromContentStore:
    """Test reads served by the content store."""

    def test_get_after_put(self, service, content_store):
        manifest = schema2_manifest(content_store)
        digest = service.put(manifest)

        fetched = service.get(digest)

        assert fetched.digest == digest
        assert fetched.payload == manifest.payload

    def test_get_remembers_layers(self, ctx, content_store, catalog):
        manifest = schema2_manifest(content_store)
        digest = ManifestService(ctx, content_store, catalog).put(manifest)

        # A fresh request starts with an empty layer cache
        fresh = RepositoryContext(ctx.namespace, ctx.name, ctx.registry_addr)
        ManifestService(fresh, content_store, catalog).get(digest)

        assert fresh.layers.layers_of(digest) == manifest.layers
        for ref in manifest.references:
            assert fresh.layers.is_known(ref.digest, fresh.cache_name)

    def test_unmanaged_image_remembered_under_remote_name(self, service, ctx, content_store, catalog):
        manifest = schema2_manifest(content_store)
        content_store.put(ctx, manifest)
        catalog.add_image("team-a", "web", embedded_record(manifest, managed=False))

        service.get(manifest.digest)

        remote = "registry.example.com:5000/team-a/web"
        assert ctx.layers.is_known(manifest.layers[0].digest, remote)
        assert not ctx.layers.is_known(manifest.layers[0].digest, ctx.cache_name)

    def test_tag_is_informational(self, service, content_store):
        digest = service.put(schema2_manifest(content_store), tag="latest")
        assert service.get(digest, tag="latest").digest == digest


class TestGetGatedOnCatalog:
    """Test that the catalog decides visibility."""

    def test_unknown_record(self, service, ctx, content_store):
        manifest = schema2_manifest(content_store)
        content_store.put(ctx, manifest)

        with pytest.raises(RecordNotFound) as exc_info:
            service.get(manifest.digest)

        assert isinstance(exc_info.value, ManifestUnknown)
        assert exc_info.value.digest == manifest.digest
        assert content_store.count("get") == 0

    def test_catalog_error_propagates(self, service, content_store, catalog):
        err = CatalogError("catalog unavailable", status=503)
        catalog.queue_error("get_image", err)

        with pytest.raises(CatalogError) as exc_info:
            service.get(digest_from_bytes(b"anything"))

        assert exc_info.value is err
        assert content_store.count("get") == 0

    def test_content_store_error_propagates(self, service, content_store):
        digest = service.put(schema2_manifest(content_store))
        content_store.failures["get"] = StoreError("registry unavailable")

        with pytest.raises(StoreError):
            service.get(digest)


class TestGetFallback:
    """Test reconstruction from the catalog record's embedded payload."""

    def test_stripped_record_without_content(self, service, content_store):
        digest = service.put(schema2_manifest(content_store))
        content_store.drop_manifest(REPO, digest)

        with pytest.raises(ManifestUnknownRevision):
            service.get(digest)

    def test_rebuilt_from_embedded_payload(self, service, catalog):
        manifest = schema2_manifest()
        catalog.add_image("team-a", "web", embedded_record(manifest))

        fetched = service.get(manifest.digest)

        assert fetched.digest == manifest.digest
        assert fetched.media_type == manifest.media_type
        assert fetched.references == manifest.references

    def test_rebuilt_schema1_keeps_signed_payload(self, service, catalog):
        manifest = schema1_manifest()
        record = embedded_record(manifest, docker_image_layers=[
            ImageLayer(name=d.digest, size=123) for d in manifest.layers
        ])
        catalog.add_image("team-a", "web", record)

        fetched = service.get(manifest.digest)

        assert fetched.payload == manifest.payload
        assert fetched.digest == manifest.digest
        assert [d.size for d in fetched.layers] == [123, 123]

    def test_rebuilt_manifest_digest_must_match(self, service, catalog):
        manifest = schema2_manifest()
        other = schema2_manifest(layers=(b"something-else",))
        record = embedded_record(other).model_copy(update={"name": manifest.digest})
        catalog.add_image("team-a", "web", record)

        with pytest.raises(ManifestUnknownRevision):
            service.get(manifest.digest)

    def test_rebuilt_manifest_remembers_blobs(self, service, ctx, catalog):
        manifest = schema2_manifest()
        catalog.add_image("team-a", "web", embedded_record(manifest))

        service.get(manifest.digest)

        for layer in manifest.layers:
            assert ctx.layers.is_known(layer.digest, ctx.cache_name)

    def test_corrupt_embedded_payload_is_unknown_revision(self, service, catalog):
        digest = digest_from_bytes(b"lost manifest")
        catalog.add_image("team-a", "web", ImageRecord(name=digest, docker_image_manifest="{not json"))

        with pytest.raises(ManifestUnknownRevision) as exc_info:
            service.get(digest)

        assert isinstance(exc_info.value.__cause__, ManifestFormatError)
        assert exit_code_for(exc_info.value) == 1

    def test_record_layer_with_foreign_digest_ignored(self, service, catalog):
        manifest = schema1_manifest()
        record = embedded_record(manifest, docker_image_layers=[
            ImageLayer(name="sha512:" + "a" * 128, size=1),
            ImageLayer(name=manifest.layers[0].digest, size=321),
        ])
        catalog.add_image("team-a", "web", record)

        fetched = service.get(manifest.digest)

        assert fetched.digest == manifest.digest
        assert fetched.layers[0].size == 321

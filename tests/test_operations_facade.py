"""
Test Operations facade wiring.

Validates that the Operations facade builds a request-scoped service per
call, applies settings policy and decodes manifest files.
"""
from __future__ import annotations

from unittest.mock import patch

import pytest

from manifest_service.codec.media_types import MEDIA_TYPE_OCI_MANIFEST, MEDIA_TYPE_SCHEMA2
from manifest_service.errors import ManifestInvalid
from manifest_service.operations import Operations
from manifest_service.settings import Settings
from tests.catalog.fakes import FakeCatalog
from tests.helpers.manifests import schema2_manifest
from tests.storage.fakes import FakeContentStore


class TestOperationsFacade:
    """Test Operations facade orchestration."""

    @pytest.fixture
    def ops(self, settings):
        catalog = FakeCatalog(collections={("team-a", "web")})
        return Operations(
            settings=settings,
            content_store=FakeContentStore(),
            catalog=catalog,
            user_catalog=catalog.acting_as_user(),
        )

    def test_service_for_builds_fresh_context(self, ops):
        first = ops.service_for("team-a/web")
        second = ops.service_for("team-a/web")

        assert first.ctx is not second.ctx
        assert first.ctx.registry_addr == "registry.example.com:5000"
        assert first.content_store is ops.content_store
        assert first.user_catalog is ops.user_catalog
        assert first.accept_schema2 is True

    def test_service_for_applies_schema2_policy(self):
        settings = Settings(registry_url="localhost:5000", catalog_url="localhost:8443", accept_schema2=False)
        ops = Operations(settings, FakeContentStore(), FakeCatalog())
        assert ops.service_for("team-a/web").accept_schema2 is False

    def test_service_for_rejects_bad_repository(self, ops):
        with pytest.raises(ValueError):
            ops.service_for("team-a")

    def test_put_reads_file(self, ops, tmp_path):
        manifest = schema2_manifest(ops.content_store)
        path = tmp_path / "manifest.json"
        path.write_bytes(manifest.payload)

        digest = ops.put("team-a/web", path, tag="latest")

        assert digest == manifest.digest
        assert ops.exists("team-a/web", digest)
        assert ops.get("team-a/web", digest).payload == manifest.payload

    def test_put_media_type_override_must_agree(self, ops, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_bytes(schema2_manifest(ops.content_store).payload)

        with pytest.raises(ManifestInvalid, match="media type mismatch"):
            ops.put("team-a/web", path, media_type=MEDIA_TYPE_OCI_MANIFEST)

    def test_put_passes_media_type_to_decoder(self, ops, tmp_path):
        manifest = schema2_manifest(ops.content_store)
        path = tmp_path / "manifest.json"
        path.write_bytes(manifest.payload)

        with patch("manifest_service.operations.facade.decode_manifest", return_value=manifest) as decode:
            ops.put("team-a/web", path, media_type=MEDIA_TYPE_SCHEMA2)

        decode.assert_called_once_with(manifest.payload, MEDIA_TYPE_SCHEMA2)

    def test_delete(self, ops):
        manifest = schema2_manifest(ops.content_store)
        digest = ops.service_for("team-a/web").put(manifest)

        ops.delete("team-a/web", digest)

        assert not ops.content_store.has_manifest("team-a/web", digest)

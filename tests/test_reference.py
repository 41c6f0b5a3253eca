"""Tests for image reference parsing and canonical repository references."""
from __future__ import annotations

import pytest

from manifest_service.codec.digest import digest_from_bytes
from manifest_service.models import MANAGED_ANNOTATION, ImageRecord
from manifest_service.reference import ImageReference, canonical_reference, parse_image_reference
from manifest_service.repository import RepositoryContext

DIGEST = digest_from_bytes(b"manifest")


class TestParseImageReference:
    """Test pull spec parsing."""

    def test_full_reference(self):
        ref = parse_image_reference(f"quay.io/team/app:v1@{DIGEST}")
        assert ref == ImageReference(registry="quay.io", namespace="team", name="app", tag="v1", id=DIGEST)
        assert ref.exact() == f"quay.io/team/app:v1@{DIGEST}"

    def test_registry_with_port(self):
        ref = parse_image_reference("localhost:5000/team/app")
        assert ref.registry == "localhost:5000"
        assert ref.tag == ""

    def test_bare_name_gets_docker_defaults(self):
        ref = parse_image_reference("busybox").docker_client_defaults()
        assert ref.exact() == "docker.io/library/busybox"

    def test_namespace_without_registry(self):
        ref = parse_image_reference("team/app:latest")
        assert ref.registry == ""
        assert ref.namespace == "team"
        assert ref.docker_client_defaults().exact() == "docker.io/team/app:latest"

    def test_as_repository_drops_tag_and_id(self):
        ref = parse_image_reference(f"quay.io/team/app:v1@{DIGEST}").as_repository()
        assert str(ref) == "quay.io/team/app"

    @pytest.mark.parametrize("text", ["", "team//app", "app@", "app:bad tag"])
    def test_malformed_references_rejected(self, text):
        with pytest.raises(ValueError):
            parse_image_reference(text)


class TestCanonicalReference:
    """Test references attached to manifests returned by get."""

    @pytest.fixture
    def ctx(self):
        return RepositoryContext(namespace="team-a", name="web", registry_addr="registry.example.com:5000")

    def test_managed_image_has_no_registry_part(self, ctx):
        image = ImageRecord(name=DIGEST, annotations={MANAGED_ANNOTATION: "true"})
        ref = canonical_reference(ctx, image)
        assert ref.registry == ""
        assert ref.exact() == "team-a/web"
        assert ref.exact() == ctx.cache_name

    def test_unmanaged_image_uses_registry_address(self, ctx):
        image = ImageRecord(name=DIGEST)
        assert canonical_reference(ctx, image).exact() == "registry.example.com:5000/team-a/web"

    def test_managed_annotation_must_be_true(self, ctx):
        image = ImageRecord(name=DIGEST, annotations={MANAGED_ANNOTATION: "false"})
        assert canonical_reference(ctx, image).registry == "registry.example.com:5000"

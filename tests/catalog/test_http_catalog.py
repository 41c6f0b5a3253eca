"""
Tests for the HTTP metadata catalog client.

Uses httpx.MockTransport to stand in for the catalog API.
"""
from __future__ import annotations

import json

import httpx
import pytest

from manifest_service.catalog.catalog_errors import (
    CatalogError,
    CatalogFailure,
    CatalogNotFound,
    QuotaExceeded,
    classify_catalog_error,
)
from manifest_service.catalog.http_catalog import HttpCatalogClient
from manifest_service.codec.digest import digest_from_bytes
from manifest_service.models import CollectionMapping, ImageCollection, ImageLayer, ImageRecord

DIGEST = digest_from_bytes(b"manifest")


def make_client(handler, token="svc-token") -> HttpCatalogClient:
    return HttpCatalogClient("http://catalog.internal", token, transport=httpx.MockTransport(handler))


def status_body(code: int, message: str, kind: str = "", name: str = "") -> dict:
    return {"kind": "Status", "code": code, "message": message, "details": {"kind": kind, "name": name}}


class TestRequests:
    """Test endpoints and payloads."""

    def test_get_image(self):
        seen = []
        record = {
            "name": DIGEST,
            "docker_image_layers": [{"name": digest_from_bytes(b"layer"), "size": 5, "mediaType": "x"}],
            "docker_image_metadata": {"os": "linux", "size": 5},
        }

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=record)

        image = make_client(handler).get_image("team-a", "web", DIGEST)

        assert image.name == DIGEST
        assert image.docker_image_layers[0].media_type == "x"
        assert image.docker_image_metadata.os == "linux"
        assert seen[0].url.path == f"/apis/namespaces/team-a/imagecollections/web/images/{DIGEST}"
        assert seen[0].headers["Authorization"] == "Bearer svc-token"

    def test_create_mapping(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={})

        image = ImageRecord(name=DIGEST, docker_image_layers=[ImageLayer(name=DIGEST, size=1, mediaType="x")])
        make_client(handler).create_mapping(
            CollectionMapping(namespace="team-a", name="web", image=image, tag="latest")
        )

        body = json.loads(seen[0].content)
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/apis/namespaces/team-a/imagecollectionmappings"
        assert body["name"] == "web"
        assert body["tag"] == "latest"
        assert body["image"]["name"] == DIGEST
        assert body["image"]["docker_image_layers"][0]["mediaType"] == "x"

    def test_create_collection(self):
        def handler(request):
            assert request.url.path == "/apis/namespaces/team-a/imagecollections"
            return httpx.Response(201, json=json.loads(request.content))

        created = make_client(handler).create_collection(ImageCollection(namespace="team-a", name="web"))
        assert created == ImageCollection(namespace="team-a", name="web")

    def test_create_collection_conflict_is_success(self):
        def handler(request):
            return httpx.Response(409, json=status_body(409, "already exists", "imagecollections", "web"))

        collection = ImageCollection(namespace="team-a", name="web")
        assert make_client(handler).create_collection(collection) == collection

    def test_no_token_no_authorization(self):
        def handler(request):
            assert "Authorization" not in request.headers
            return httpx.Response(201, json={"namespace": "team-a", "name": "web"})

        make_client(handler, token=None).create_collection(ImageCollection(namespace="team-a", name="web"))


class TestErrorMapping:
    """Test status objects mapped onto catalog errors."""

    def test_not_found_carries_details(self):
        def handler(request):
            return httpx.Response(404, json=status_body(404, 'imagecollections "web" not found',
                                                        "imagecollections", "web"))

        image = ImageRecord(name=DIGEST)
        with pytest.raises(CatalogNotFound) as exc_info:
            make_client(handler).create_mapping(CollectionMapping(namespace="team-a", name="web", image=image))

        assert exc_info.value.kind == "imagecollections"
        assert exc_info.value.name == "web"
        assert classify_catalog_error(exc_info.value, "web") is CatalogFailure.COLLECTION_NOT_FOUND

    @pytest.mark.parametrize("status", [403, 422])
    def test_quota_exceeded(self, status):
        def handler(request):
            return httpx.Response(status, json=status_body(status, "images: exceeded quota: image-limit"))

        with pytest.raises(QuotaExceeded) as exc_info:
            make_client(handler).get_image("team-a", "web", DIGEST)
        assert exc_info.value.status == status

    def test_forbidden_without_quota_marker(self):
        def handler(request):
            return httpx.Response(403, json=status_body(403, "forbidden"))

        with pytest.raises(CatalogError) as exc_info:
            make_client(handler).get_image("team-a", "web", DIGEST)
        assert not isinstance(exc_info.value, QuotaExceeded)
        assert exc_info.value.status == 403

    def test_plain_text_error_body(self):
        with pytest.raises(CatalogError, match="Catalog error 502"):
            make_client(lambda request: httpx.Response(502, text="bad gateway")).get_image("team-a", "web", DIGEST)

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CatalogError, match="Network error"):
            make_client(handler).get_image("team-a", "web", DIGEST)

"""
HTTP client for the metadata catalog API.

Maps the catalog's status-object error bodies onto the structured catalog
error family so the manifest service can classify failures without
looking at HTTP details.
"""
from __future__ import annotations

import json
import logging
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..models import CollectionMapping, ImageCollection, ImageRecord
from .catalog_errors import CatalogConflict, CatalogError, CatalogNotFound, QuotaExceeded

logger = logging.getLogger(__name__)

__all__ = ["HttpCatalogClient"]

_QUOTA_MARKER = "exceeded quota"


class HttpCatalogClient:
    """
    Catalog client speaking the catalog's REST API.

    Endpoints:
        GET  /apis/namespaces/<ns>/imagecollections/<name>/images/<digest>
        POST /apis/namespaces/<ns>/imagecollectionmappings
        POST /apis/namespaces/<ns>/imagecollections
    """

    def __init__(self, base_url: str, token: Optional[str] = None, *,
                 timeout_s: float = 30.0, insecure: bool = False,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize catalog client.

        Args:
            base_url: Catalog API URL (e.g. "https://catalog.internal:8443")
            token: Bearer token sent with every request
            timeout_s: Read/write timeout in seconds
            insecure: Skip TLS verification for development catalogs
            transport: Custom httpx transport (tests)
        """
        if not base_url.startswith("http"):
            base_url = f"{'http' if insecure else 'https'}://{base_url}"
        self.base_url = base_url.rstrip("/")

        headers = {"User-Agent": "manifest-service/0.1.0", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(connect=5.0, read=timeout_s, write=timeout_s, pool=5.0),
            verify=not insecure,
            headers=headers,
            transport=transport,
        )

    def get_image(self, namespace: str, name: str, digest: str) -> ImageRecord:
        path = f"/apis/namespaces/{namespace}/imagecollections/{name}/images/{digest}"
        response = self._request("GET", path)
        return ImageRecord.model_validate(response.json())

    def create_mapping(self, mapping: CollectionMapping) -> None:
        path = f"/apis/namespaces/{mapping.namespace}/imagecollectionmappings"
        self._request("POST", path, json=mapping.model_dump(mode="json", by_alias=True))

    def create_collection(self, collection: ImageCollection) -> ImageCollection:
        path = f"/apis/namespaces/{collection.namespace}/imagecollections"
        try:
            response = self._request("POST", path, json=collection.model_dump(mode="json"))
        except CatalogConflict:
            # Another request provisioned it first
            logger.debug(f"Image collection {collection.namespace}/{collection.name} already exists")
            return collection
        return ImageCollection.model_validate(response.json())

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.ConnectTimeout, httpx.ReadTimeout, httpx.TimeoutException)),
        reraise=True,
    )
    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        return self.client.request(method, path, **kwargs)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Send a request and raise a catalog error for non-2xx responses.

        Raises:
            CatalogError: For transport failures and error responses
        """
        try:
            response = self._send(method, path, **kwargs)
        except httpx.RequestError as e:
            raise CatalogError(f"Network error calling catalog {method} {path}: {e}") from e

        if response.is_success:
            return response
        raise _status_error(response)

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _status_error(response: httpx.Response) -> CatalogError:
    """Translate an error response's status object into a catalog error."""
    try:
        status = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        status = {}
    if not isinstance(status, dict):
        status = {}

    code = status.get("code") or response.status_code
    message = status.get("message") or response.text or response.reason_phrase
    details = status.get("details") or {}
    kind = str(details.get("kind", ""))
    name = str(details.get("name", ""))

    if code in (403, 422) and _QUOTA_MARKER in message.lower():
        return QuotaExceeded(message, status=code)
    if code == 404:
        return CatalogNotFound(message, kind=kind, name=name)
    if code == 409:
        return CatalogConflict(message, kind=kind, name=name)
    return CatalogError(f"Catalog error {code}: {message}", status=code)

"""
Registry HTTP content store for the OCI Distribution API.

Implements the ``ContentStore`` protocol against a Distribution v2 registry
with the Docker Registry v2 bearer-token auth flow. Manifests are addressed
by digest only; tags are applied by the catalog, not here.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..codec.digest import digest_from_bytes, validate_digest
from ..codec.manifest import Manifest, ManifestFormatError, decode_manifest
from ..codec.media_types import ACCEPTED_MANIFEST_TYPES
from ..errors import ManifestUnknownRevision
from ..settings import Settings
from .store_errors import (
    BlobUnknown,
    StoreAuthError,
    StoreDigestMismatch,
    StoreError,
    StoreRateLimited,
    StoreTooLarge,
    StoreUnsupportedMediaType,
)

if TYPE_CHECKING:
    from ..repository import RepositoryContext

logger = logging.getLogger(__name__)

__all__ = ["DockerAuth", "RegistryContentStore"]


class DockerAuth:
    """Registry credentials from explicit settings or the Docker config file."""

    def __init__(self, config_path: Optional[Path] = None,
                 username: Optional[str] = None, password: Optional[str] = None):
        self.config_path = config_path or Path.home() / ".docker" / "config.json"
        self._explicit = (username, password) if username and password else None
        self._config_cache: Optional[dict] = None
        self._config_mtime: Optional[float] = None

    def get_credentials(self, registry: str) -> Optional[Tuple[str, str]]:
        """
        Get credentials for registry.

        Returns: (username, password) or None if not found
        """
        if self._explicit:
            return self._explicit

        auths = (self._load_config() or {}).get("auths", {})
        bare = registry.replace("https://", "").replace("http://", "")
        for key in (registry, f"https://{bare}", bare):
            if key in auths:
                return _entry_credentials(auths[key])
        return None

    def _load_config(self) -> Optional[dict]:
        """Load Docker config, reusing the cached copy while mtime is unchanged."""
        if not self.config_path.exists():
            return None
        try:
            mtime = self.config_path.stat().st_mtime
            if self._config_cache is not None and mtime == self._config_mtime:
                return self._config_cache
            with open(self.config_path, 'r') as f:
                self._config_cache = json.load(f)
            self._config_mtime = mtime
            return self._config_cache
        except (OSError, json.JSONDecodeError) as e:
            logger.debug(f"Failed to read Docker config {self.config_path}: {e}")
            return None


def _entry_credentials(entry: dict) -> Optional[Tuple[str, str]]:
    if "auth" in entry:
        try:
            decoded = base64.b64decode(entry["auth"]).decode()
        except (binascii.Error, UnicodeDecodeError):
            decoded = ""
        if ":" in decoded:
            username, password = decoded.split(":", 1)
            return username, password
    if "username" in entry and "password" in entry:
        return entry["username"], entry["password"]
    return None


class RegistryContentStore:
    """
    Content store backed by a Distribution v2 registry.

    Status mapping:
    - 404 on manifests -> ManifestUnknownRevision
    - 404 on blobs -> BlobUnknown (False for existence checks)
    - 401/403 -> StoreAuthError, 413 -> StoreTooLarge,
      415 -> StoreUnsupportedMediaType, 429 -> StoreRateLimited
    - anything else -> StoreError
    """

    def __init__(self, settings: Settings, auth: Optional[DockerAuth] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize registry content store.

        Args:
            settings: Registry URL, credentials and timeouts
            auth: Credential source (defaults to settings, then Docker config)
            transport: Custom httpx transport (tests)
        """
        self.registry = settings.public_registry_addr
        self.auth = auth or DockerAuth(username=settings.registry_user, password=settings.registry_pass)

        url = settings.registry_url
        if not url.startswith("http"):
            url = f"{'http' if settings.registry_insecure else 'https'}://{url}"
        self.base_url = url.rstrip("/")

        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(connect=5.0, read=settings.http_timeout_s,
                                  write=settings.http_timeout_s, pool=5.0),
            follow_redirects=True,
            verify=not settings.registry_insecure,
            headers={"User-Agent": "manifest-service/0.1.0"},
            transport=transport,
        )

        # Token cache: {service/scope: (token, expiry_timestamp)}
        self._token_cache: Dict[str, Tuple[str, float]] = {}

    # Manifest operations

    def exists(self, ctx: RepositoryContext, digest: str) -> bool:
        response = self._request("HEAD", self._manifest_path(ctx, digest),
                                 headers={"Accept": ", ".join(ACCEPTED_MANIFEST_TYPES)})
        if response.status_code == 404:
            return False
        self._raise_for_status(response, ctx, digest)
        return True

    def get(self, ctx: RepositoryContext, digest: str) -> Manifest:
        response = self._request("GET", self._manifest_path(ctx, digest),
                                 headers={"Accept": ", ".join(ACCEPTED_MANIFEST_TYPES)})
        if response.status_code == 404:
            raise ManifestUnknownRevision(ctx.named, digest)
        self._raise_for_status(response, ctx, digest)

        media_type = response.headers.get("Content-Type", "").split(";", 1)[0].strip() or None
        try:
            manifest = decode_manifest(response.content, media_type)
        except ManifestFormatError as e:
            raise StoreUnsupportedMediaType(f"Registry returned an undecodable manifest for "
                                            f"{ctx.named}@{digest}: {e}") from e
        if manifest.digest != digest:
            raise StoreDigestMismatch(f"Manifest {ctx.named}@{digest} hashes to {manifest.digest}",
                                      expected=digest, actual=manifest.digest)
        return manifest

    def put(self, ctx: RepositoryContext, manifest: Manifest, tag: Optional[str] = None) -> str:
        digest = manifest.digest
        response = self._request("PUT", self._manifest_path(ctx, digest),
                                 headers={"Content-Type": manifest.media_type},
                                 content=manifest.payload)
        self._raise_for_status(response, ctx, digest)

        server_digest = response.headers.get("Docker-Content-Digest")
        if server_digest and server_digest != digest:
            raise StoreDigestMismatch(f"Registry stored {ctx.named} manifest as {server_digest}, "
                                      f"expected {digest}", expected=digest, actual=server_digest)
        logger.debug(f"Stored manifest {ctx.named}@{digest}")
        return digest

    def delete(self, ctx: RepositoryContext, digest: str) -> None:
        response = self._request("DELETE", self._manifest_path(ctx, digest))
        if response.status_code == 404:
            raise ManifestUnknownRevision(ctx.named, digest)
        self._raise_for_status(response, ctx, digest)

    # Blob operations

    def blob_exists(self, ctx: RepositoryContext, digest: str) -> bool:
        response = self._request("HEAD", self._blob_path(ctx, digest))
        if response.status_code == 404:
            return False
        self._raise_for_status(response, ctx, digest)
        return True

    def get_blob(self, ctx: RepositoryContext, digest: str) -> bytes:
        response = self._request("GET", self._blob_path(ctx, digest))
        if response.status_code == 404:
            raise BlobUnknown(ctx.named, digest)
        self._raise_for_status(response, ctx, digest)
        content = response.content
        if digest_from_bytes(content) != digest:
            raise StoreDigestMismatch(f"Blob {ctx.named}@{digest} content does not match its digest",
                                      expected=digest, actual=digest_from_bytes(content))
        return content

    # Helpers

    @staticmethod
    def _manifest_path(ctx: RepositoryContext, digest: str) -> str:
        return f"/v2/{ctx.named}/manifests/{validate_digest(digest)}"

    @staticmethod
    def _blob_path(ctx: RepositoryContext, digest: str) -> str:
        return f"/v2/{ctx.named}/blobs/{validate_digest(digest)}"

    @staticmethod
    def _raise_for_status(response: httpx.Response, ctx: RepositoryContext, digest: str) -> None:
        code = response.status_code
        if response.is_success:
            return
        where = f"{ctx.named}@{digest}"
        if code in (401, 403):
            raise StoreAuthError(f"Authentication failed for {where}")
        if code == 413:
            raise StoreTooLarge(f"Content too large for {where}")
        if code == 415:
            raise StoreUnsupportedMediaType(f"Registry rejected media type for {where}")
        if code == 429:
            raise StoreRateLimited(f"Rate limited on {where}")
        raise StoreError(f"Registry error {code} for {where}: {response.text[:200]}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.ConnectTimeout, httpx.ReadTimeout, httpx.TimeoutException)),
        reraise=True,
    )
    def _send(self, method: str, path: str, headers: dict, **kwargs) -> httpx.Response:
        return self.client.request(method, path, headers=headers, **kwargs)

    def _request(self, method: str, path: str, headers: Optional[dict] = None, **kwargs) -> httpx.Response:
        """
        Make HTTP request with transparent Bearer token auth flow.

        Handles 401 responses by:
        1. Parsing WWW-Authenticate header for Bearer realm/service/scope
        2. Looking up credentials
        3. Exchanging credentials for Bearer token
        4. Retrying original request with Authorization header
        5. Caching tokens per service/scope

        Status codes are returned to the caller, not raised.
        """
        request_headers = dict(headers or {})
        try:
            response = self._send(method, path, request_headers, **kwargs)
            if response.status_code == 401:
                auth_header = response.headers.get("WWW-Authenticate", "")
                if auth_header.startswith("Bearer "):
                    token = self._handle_bearer_auth(auth_header)
                    if token:
                        request_headers["Authorization"] = f"Bearer {token}"
                        response = self._send(method, path, request_headers, **kwargs)
        except httpx.RequestError as e:
            raise StoreError(f"Network error on {method} {path}: {e}") from e
        return response

    def _handle_bearer_auth(self, www_authenticate: str) -> Optional[str]:
        """Exchange credentials for a bearer token described by WWW-Authenticate."""
        params = dict(re.findall(r'(\w+)="([^"]*)"', www_authenticate))
        realm = params.get("realm")
        service = params.get("service")
        scope = params.get("scope")
        if not realm or not service:
            return None

        cache_key = f"{service}:{scope or ''}"
        cached = self._token_cache.get(cache_key)
        if cached and time.time() < cached[1] - 30:  # 30s buffer before expiry
            return cached[0]

        creds = self.auth.get_credentials(self.registry)
        if not creds:
            return None

        query = {"service": service, "scope": scope} if scope else {"service": service}
        try:
            auth_response = self.client.get(realm, auth=creds, params=query)
            auth_response.raise_for_status()
            token_data = auth_response.json()
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            logger.debug(f"Token exchange with {realm} failed: {e}")
            return None

        token = token_data.get("token") or token_data.get("access_token")
        if not token:
            return None
        self._token_cache[cache_key] = (token, time.time() + token_data.get("expires_in", 3600))
        return token

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

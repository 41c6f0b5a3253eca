"""
Settings and configuration for the manifest service.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables at client construction time.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional

__all__ = ["Settings", "create_settings_from_env"]

_URL_PATTERN = r"^(?:https?://)?[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the manifest service clients.

    Content store (registry) settings:
        registry_url: Distribution v2 registry URL (required)
        registry_addr: Public host[:port] recorded in image references;
            derived from registry_url when omitted
        registry_insecure: Allow HTTP connections for local/dev use
        registry_user: Username for registry authentication
        registry_pass: Password for registry authentication

    Metadata catalog settings:
        catalog_url: Catalog API URL (required)
        catalog_token: Bearer token of the registry's service account
        user_token: Bearer token of the requesting user; required to
            auto-provision missing image collections

    Policy and transport:
        accept_schema2: Accept Docker schema 2 manifests on put
        http_timeout_s: HTTP request timeout in seconds
    """
    registry_url: str
    catalog_url: str
    registry_addr: Optional[str] = None
    registry_insecure: bool = False
    registry_user: Optional[str] = None
    registry_pass: Optional[str] = None
    catalog_token: Optional[str] = None
    user_token: Optional[str] = None
    accept_schema2: bool = True
    http_timeout_s: float = 30.0

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.registry_url:
            raise ValueError("registry_url is required")
        if not re.match(_URL_PATTERN, self.registry_url):
            raise ValueError(f"Invalid registry_url format: {self.registry_url}")

        if not self.catalog_url:
            raise ValueError("catalog_url is required")
        if not re.match(_URL_PATTERN, self.catalog_url):
            raise ValueError(f"Invalid catalog_url format: {self.catalog_url}")

        if self.registry_addr is not None and ("/" in self.registry_addr or not self.registry_addr):
            raise ValueError(f"registry_addr must be host[:port], got {self.registry_addr!r}")

        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        # Credentials must come in pairs
        if self.registry_user and not self.registry_pass:
            raise ValueError("registry_user specified but registry_pass is missing")
        if self.registry_pass and not self.registry_user:
            raise ValueError("registry_pass specified but registry_user is missing")

    @property
    def public_registry_addr(self) -> str:
        """Registry host[:port] as recorded in image references."""
        if self.registry_addr:
            return self.registry_addr
        url = self.registry_url
        if "://" in url:
            url = url.split("://", 1)[1]
        return url.split("/", 1)[0]


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - MANIFEST_SERVICE_REGISTRY_URL (required)
        - MANIFEST_SERVICE_CATALOG_URL (required)
        - MANIFEST_SERVICE_REGISTRY_ADDR (optional)
        - MANIFEST_SERVICE_REGISTRY_INSECURE (default: false)
        - MANIFEST_SERVICE_REGISTRY_USERNAME (optional)
        - MANIFEST_SERVICE_REGISTRY_PASSWORD (optional)
        - MANIFEST_SERVICE_CATALOG_TOKEN (optional)
        - MANIFEST_SERVICE_USER_TOKEN (optional)
        - MANIFEST_SERVICE_ACCEPT_SCHEMA2 (default: true)
        - MANIFEST_SERVICE_HTTP_TIMEOUT (default: 30.0)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid or required values missing

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    def str_to_bool(value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on')

    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default

    registry_url = os.getenv("MANIFEST_SERVICE_REGISTRY_URL")
    catalog_url = os.getenv("MANIFEST_SERVICE_CATALOG_URL")

    if not registry_url:
        raise ValueError("MANIFEST_SERVICE_REGISTRY_URL environment variable is required")
    if not catalog_url:
        raise ValueError("MANIFEST_SERVICE_CATALOG_URL environment variable is required")

    return Settings(
        registry_url=registry_url,
        catalog_url=catalog_url,
        registry_addr=os.getenv("MANIFEST_SERVICE_REGISTRY_ADDR") or None,
        registry_insecure=str_to_bool(os.getenv("MANIFEST_SERVICE_REGISTRY_INSECURE", "false")),
        registry_user=os.getenv("MANIFEST_SERVICE_REGISTRY_USERNAME"),
        registry_pass=os.getenv("MANIFEST_SERVICE_REGISTRY_PASSWORD"),
        catalog_token=os.getenv("MANIFEST_SERVICE_CATALOG_TOKEN"),
        user_token=os.getenv("MANIFEST_SERVICE_USER_TOKEN"),
        accept_schema2=str_to_bool(os.getenv("MANIFEST_SERVICE_ACCEPT_SCHEMA2", "true")),
        http_timeout_s=get_float("MANIFEST_SERVICE_HTTP_TIMEOUT", 30.0),
    )

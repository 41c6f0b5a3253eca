"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and
store/catalog clients, avoiding global state and enabling dependency
injection.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .catalog.http_catalog import HttpCatalogClient
from .operations import Operations
from .settings import Settings, create_settings_from_env
from .storage.registry_http import RegistryContentStore


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Clients are created on first access and reused within one command.
    """
    settings: Settings
    _content_store: Optional[RegistryContentStore] = None
    _catalog: Optional[HttpCatalogClient] = None
    _user_catalog: Optional[HttpCatalogClient] = None

    @classmethod
    def from_env(cls) -> CLIContext:
        return cls(settings=create_settings_from_env())

    @property
    def content_store(self) -> RegistryContentStore:
        if self._content_store is None:
            self._content_store = RegistryContentStore(self.settings)
        return self._content_store

    @property
    def catalog(self) -> HttpCatalogClient:
        if self._catalog is None:
            self._catalog = HttpCatalogClient(
                self.settings.catalog_url,
                self.settings.catalog_token,
                timeout_s=self.settings.http_timeout_s,
                insecure=self.settings.registry_insecure,
            )
        return self._catalog

    @property
    def user_catalog(self) -> Optional[HttpCatalogClient]:
        """Catalog client acting as the user; None without a user token."""
        if self._user_catalog is None and self.settings.user_token:
            self._user_catalog = HttpCatalogClient(
                self.settings.catalog_url,
                self.settings.user_token,
                timeout_s=self.settings.http_timeout_s,
                insecure=self.settings.registry_insecure,
            )
        return self._user_catalog

    def operations(self) -> Operations:
        return Operations(
            settings=self.settings,
            content_store=self.content_store,
            catalog=self.catalog,
            user_catalog=self.user_catalog,
        )

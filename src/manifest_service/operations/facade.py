"""
Operations Facade - Application service layer.

Provides a clean interface between the CLI and the manifest service. Each
call builds a fresh RepositoryContext and ManifestService, so nothing
request-scoped outlives the command.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..catalog.catalog import MetadataCatalog
from ..codec.manifest import Manifest, ManifestFormatError, decode_manifest
from ..errors import ManifestInvalid
from ..repository import RepositoryContext
from ..service import ManifestService
from ..settings import Settings
from ..storage.content_store import ContentStore


class Operations:
    """
    Application service facade for CLI operations.

    Stateless apart from its injected collaborators, which makes it easy
    to drive with fakes in tests.
    """

    def __init__(self, settings: Settings, content_store: ContentStore,
                 catalog: MetadataCatalog, user_catalog: Optional[MetadataCatalog] = None):
        self.settings = settings
        self.content_store = content_store
        self.catalog = catalog
        self.user_catalog = user_catalog

    def service_for(self, repo: str) -> ManifestService:
        """Build a request-scoped service for ``namespace/name``."""
        ctx = RepositoryContext.from_repo_path(repo, self.settings.public_registry_addr)
        return ManifestService(
            ctx,
            self.content_store,
            self.catalog,
            accept_schema2=self.settings.accept_schema2,
            user_catalog=self.user_catalog,
        )

    def exists(self, repo: str, digest: str) -> bool:
        return self.service_for(repo).exists(digest)

    def get(self, repo: str, digest: str) -> Manifest:
        return self.service_for(repo).get(digest)

    def put(self, repo: str, path: Path, *, tag: Optional[str] = None,
            media_type: Optional[str] = None) -> str:
        """
        Read a manifest file and store it.

        Raises:
            ManifestInvalid: If the file doesn't hold a supported manifest
        """
        try:
            manifest = decode_manifest(Path(path).read_bytes(), media_type)
        except ManifestFormatError as e:
            raise ManifestInvalid(e) from e
        return self.service_for(repo).put(manifest, tag=tag)

    def delete(self, repo: str, digest: str) -> None:
        self.service_for(repo).delete(digest)

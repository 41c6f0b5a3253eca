"""
Manifest service: keeps the content store and the metadata catalog in step.

Writes are an ordered two-phase sequence with no transaction around it:

1. the manifest is written to the content store;
2. the image record is published to the catalog.

If phase 2 fails the content store keeps a manifest nothing points at.
That state is accepted: reads are gated on the catalog, so the orphan is
invisible until a later put of the same manifest succeeds. The reverse, a
catalog record without stored content, is never produced here.

Reads consult the catalog first, then the content store, and fall back to a
payload embedded in the catalog record when the content store has lost the
manifest.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from .catalog.catalog import MetadataCatalog
from .catalog.catalog_errors import CatalogFailure, CatalogNotFound, classify_catalog_error
from .codec.digest import digest_from_bytes
from .codec.handlers import new_manifest_handler
from .codec.manifest import Manifest, ManifestFormatError
from .codec.media_types import MEDIA_TYPE_SCHEMA2
from .errors import AccessDenied, ManifestInvalid, ManifestUnknownRevision, RecordNotFound
from .models import MANAGED_ANNOTATION, CollectionMapping, ImageCollection, ImageRecord
from .reference import canonical_reference
from .repository import RepositoryContext
from .storage.content_store import ContentStore

logger = logging.getLogger(__name__)

__all__ = ["ManifestService", "PublishStage"]


class PublishStage(str, Enum):
    """Stages of publishing a collection mapping. There is no loop back."""
    INITIAL = "initial"
    PROVISIONING = "provisioning"
    RETRIED = "retried"


class ManifestService:
    """
    Exists/Get/Put/Delete for manifests of one repository, for one request.

    Args:
        ctx: Repository the request operates on
        content_store: Content-addressed manifest and blob store
        catalog: Catalog client acting as the registry itself
        accept_schema2: Accept Docker schema 2 manifests on put
        user_catalog: Catalog client acting as the requesting user; needed
            to provision a missing image collection
    """

    def __init__(self, ctx: RepositoryContext, content_store: ContentStore, catalog: MetadataCatalog,
                 *, accept_schema2: bool = True, user_catalog: Optional[MetadataCatalog] = None):
        self.ctx = ctx
        self.content_store = content_store
        self.catalog = catalog
        self.accept_schema2 = accept_schema2
        self.user_catalog = user_catalog

    def exists(self, digest: str) -> bool:
        """
        Report whether the catalog holds an image record for ``digest``.

        The content store is not consulted. Catalog errors propagate
        unchanged, except "not found", which is the answer False.
        """
        logger.debug(f"(ManifestService).exists {self.ctx.named}@{digest}")
        try:
            image = self.catalog.get_image(self.ctx.namespace, self.ctx.name, digest)
        except CatalogNotFound:
            return False
        return image is not None

    def get(self, digest: str, tag: Optional[str] = None) -> Manifest:
        """
        Return the manifest for ``digest``.

        Args:
            digest: Manifest digest
            tag: Tag the caller resolved the digest from, for logging only

        Raises:
            RecordNotFound: If the catalog holds no record for the digest
            ManifestUnknownRevision: If neither the content store nor the
                catalog record can supply the manifest
        """
        logger.debug(f"(ManifestService).get {self.ctx.named}@{digest}" + (f" (tag {tag})" if tag else ""))

        try:
            image = self.catalog.get_image(self.ctx.namespace, self.ctx.name, digest)
        except CatalogNotFound as e:
            logger.error(f"error retrieving image {self.ctx.named}@{digest}: {e}")
            raise RecordNotFound(self.ctx.namespace, self.ctx.name, digest, cause=e) from e
        except Exception as e:
            logger.error(f"error retrieving image {self.ctx.named}@{digest}: {e}")
            raise

        cache_name = canonical_reference(self.ctx, image).exact()

        try:
            manifest = self.content_store.get(self.ctx, digest)
        except ManifestUnknownRevision:
            pass
        except Exception as e:
            logger.error(f"unable to get manifest {self.ctx.named}@{digest} from storage: {e}")
            raise
        else:
            self.ctx.remember_layers_of_manifest(digest, manifest, cache_name)
            return manifest

        if not image.docker_image_manifest:
            # Neither the storage nor the image holds the manifest
            raise ManifestUnknownRevision(self.ctx.named, digest)

        try:
            manifest = self.ctx.manifest_from_image_with_cached_layers(image, cache_name)
        except (ManifestFormatError, ValidationError) as e:
            logger.error(f"unable to rebuild manifest {self.ctx.named}@{digest} from its image record: {e}")
            raise ManifestUnknownRevision(self.ctx.named, digest) from e
        if manifest.digest != digest:
            logger.error(f"manifest embedded in image {digest} hashes to {manifest.digest}")
            raise ManifestUnknownRevision(self.ctx.named, digest)
        logger.info(f"Served {self.ctx.named}@{digest} from the catalog record; content store has no copy")
        return manifest

    def put(self, manifest: Manifest, tag: Optional[str] = None) -> str:
        """
        Store ``manifest`` and publish it in the catalog.

        Args:
            manifest: Manifest to store
            tag: Tag to publish the manifest under

        Returns:
            Digest of the manifest's canonical bytes

        Raises:
            ManifestInvalid: If the manifest can't be decoded or policy refuses it
            ManifestVerificationError: If referenced blobs are missing
            ManifestMetadataError: If derived metadata can't be extracted
            AccessDenied: If a catalog quota is exhausted
        """
        logger.debug(f"(ManifestService).put {self.ctx.named}" + (f":{tag}" if tag else ""))

        try:
            handler = new_manifest_handler(self.ctx, self.content_store, manifest)
            media_type, payload, canonical = handler.payload()
            embedded = payload.decode("utf-8")
        except (ManifestFormatError, UnicodeDecodeError) as e:
            raise ManifestInvalid(e) from e

        # Cheap, so checked before verification
        if not self.accept_schema2 and media_type == MEDIA_TYPE_SCHEMA2:
            raise ManifestInvalid("manifest V2 schema 2 not allowed")

        handler.verify(skip_dependency_verification=False)

        self.content_store.put(self.ctx, handler.manifest, tag)

        digest = digest_from_bytes(canonical)
        image = ImageRecord(
            name=digest,
            annotations={MANAGED_ANNOTATION: "true"},
            docker_image_reference=f"{self.ctx.registry_addr}/{self.ctx.named}@{digest}",
            docker_image_manifest=embedded,
            docker_image_manifest_media_type=media_type,
        )
        try:
            handler.fill_image_metadata(image)
        except Exception as e:
            # Stored content stays behind unreferenced until a later put succeeds
            logger.error(f"unable to extract metadata for {self.ctx.named}@{digest}: {e}")
            raise

        # The raw manifest and config are large; keep them out of the catalog
        image.strip_payload()

        self._publish(CollectionMapping(namespace=self.ctx.namespace, name=self.ctx.name, image=image, tag=tag))
        return digest

    def delete(self, digest: str) -> None:
        """
        Delete the manifest from the content store.

        The catalog's image record is left alone; records are pruned by a
        separate process, so ``exists`` may keep answering True.
        """
        logger.debug(f"(ManifestService).delete {self.ctx.named}@{digest}")
        self.content_store.delete(self.ctx, digest)

    def _publish(self, mapping: CollectionMapping) -> None:
        """
        Create the collection mapping, provisioning the collection once if needed.

        Stages run in order INITIAL -> PROVISIONING -> RETRIED, each at most once.
        """
        where = f"{mapping.namespace}/{mapping.name}@{mapping.image.name}"
        try:
            self.catalog.create_mapping(mapping)
            return
        except Exception as err:
            if self._classify(err, PublishStage.INITIAL, where) is not CatalogFailure.COLLECTION_NOT_FOUND:
                raise
            not_found = err

        self._provision_collection(mapping, not_found, where)

        try:
            self.catalog.create_mapping(mapping)
        except Exception as err:
            self._classify(err, PublishStage.RETRIED, where)
            raise

    def _provision_collection(self, mapping: CollectionMapping, not_found: Exception, where: str) -> None:
        logger.debug(f"{PublishStage.PROVISIONING.value}: image collection {mapping.namespace}/{mapping.name}")
        if self.user_catalog is None:
            logger.error(f"cannot auto-provision image collection for {where}: no user catalog client")
            raise not_found

        collection = ImageCollection(namespace=mapping.namespace, name=mapping.name)
        try:
            self.user_catalog.create_collection(collection)
        except Exception as err:
            if classify_catalog_error(err, mapping.name) is CatalogFailure.QUOTA_EXCEEDED:
                logger.error(f"denied creating image collection for {where}: {err}")
                raise AccessDenied(f"quota exceeded creating image collection {mapping.namespace}/{mapping.name}") from err
            logger.error(f"error auto-provisioning image collection for {where}: {err}")
            raise not_found from err
        logger.info(f"Auto-provisioned image collection {mapping.namespace}/{mapping.name}")

    def _classify(self, err: Exception, stage: PublishStage, where: str) -> CatalogFailure:
        """
        Classify a mapping failure, raising AccessDenied for quota errors.

        A missing collection only counts as such on the initial attempt.
        """
        failure = classify_catalog_error(err, self.ctx.name)
        if failure is CatalogFailure.QUOTA_EXCEEDED:
            logger.error(f"denied creating collection mapping for {where} ({stage.value}): {err}")
            raise AccessDenied(f"quota exceeded publishing {where}") from err
        if stage is PublishStage.INITIAL and failure is CatalogFailure.COLLECTION_NOT_FOUND:
            logger.info(f"image collection missing for {where}, provisioning it")
            return failure
        logger.error(f"error creating collection mapping for {where} ({stage.value}): {err}")
        return CatalogFailure.OTHER

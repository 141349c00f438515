"""Creation and removal of uploaded materials and sourcecasts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .authorization import AuthorizationGuard
from .content_store import Blob, ContentDescriptor, ContentStore
from .errors import NotFound, StoreFailure, ValidationError
from .roles import Operation
from .schemas import MaterialAttrs, SourcecastAttrs, validate_attrs
from .storage import ActorRecord, CatalogRepository, MaterialRecord, SourcecastRecord


LOGGER = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    """An incoming payload together with its client supplied name."""

    filename: str
    data: Blob
    content_type: Optional[str] = None


class ContentUploadService:
    """Guarded upload and deletion of file records.

    Bytes and rows live in different stores and are not updated atomically.
    Uploads write bytes first; deletions remove bytes first. A failure of
    the second step raises :class:`StoreFailure` naming what was left behind.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        content_store: ContentStore,
        guard: AuthorizationGuard,
    ) -> None:
        self._repository = repository
        self._content_store = content_store
        self._guard = guard

    # ------------------------------------------------------------------
    # Sourcecasts
    # ------------------------------------------------------------------
    def upload_sourcecast(
        self,
        actor: ActorRecord,
        attrs: Mapping[str, Any],
        *,
        blob: Optional[UploadedFile] = None,
    ) -> SourcecastRecord:
        self._guard.require(actor, Operation.UPLOAD_SOURCECAST)
        values: Dict[str, Any] = dict(attrs)
        if blob is not None:
            # Validate everything but the location before writing any bytes.
            validate_attrs(SourcecastAttrs, {**values, "audio": "pending"}, entity="sourcecast")
            values["audio"] = self._store_blob(blob, kind="sourcecasts")
        sourcecast = validate_attrs(SourcecastAttrs, values, entity="sourcecast")
        if blob is None:
            self._check_location(sourcecast.audio, entity="sourcecast", field="audio")

        try:
            sourcecast_id = self._repository.add_sourcecast(
                sourcecast.title,
                sourcecast.audio,
                sourcecast.description,
                uploader_id=actor.id,
            )
        except StoreFailure as error:
            raise self._orphaned(error, sourcecast.audio, stored=blob is not None) from error

        LOGGER.info("Actor id=%s uploaded sourcecast id=%s", actor.id, sourcecast_id)
        record = self._repository.get_sourcecast(sourcecast_id)
        if record is None:
            raise StoreFailure(f"Sourcecast {sourcecast_id} vanished after being written")
        return record

    def delete_sourcecast(self, actor: ActorRecord, sourcecast_id: int) -> SourcecastRecord:
        self._guard.require(actor, Operation.DELETE_SOURCECAST)
        record = self._repository.get_sourcecast(sourcecast_id)
        if record is None:
            raise NotFound("sourcecast", sourcecast_id)

        self._content_store.delete(record.audio)
        self._remove_row("sourcecast", record.id, record.audio, self._repository.remove_sourcecast)
        LOGGER.info("Actor id=%s deleted sourcecast id=%s", actor.id, record.id)
        return record

    def list_sourcecasts(self) -> List[SourcecastRecord]:
        return self._repository.list_sourcecasts()

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------
    def upload_material(
        self,
        actor: ActorRecord,
        attrs: Mapping[str, Any],
        parent_category: Optional[int] = None,
        *,
        blob: Optional[UploadedFile] = None,
    ) -> MaterialRecord:
        self._guard.require(actor, Operation.UPLOAD_MATERIAL)
        values: Dict[str, Any] = dict(attrs)
        if parent_category is not None:
            values["category_id"] = parent_category
        draft = {**values, "file": "pending"} if blob is not None else values
        checked = validate_attrs(MaterialAttrs, draft, entity="material")
        if checked.category_id is not None and self._repository.get_category(checked.category_id) is None:
            raise NotFound("category", checked.category_id)

        if blob is not None:
            values["file"] = self._store_blob(blob, kind="materials")
        material = validate_attrs(MaterialAttrs, values, entity="material")
        if blob is None:
            self._check_location(material.file, entity="material", field="file")

        try:
            material_id = self._repository.add_material(
                material.title,
                material.file,
                material.description,
                category_id=material.category_id,
                uploader_id=actor.id,
            )
        except StoreFailure as error:
            raise self._orphaned(error, material.file, stored=blob is not None) from error

        LOGGER.info(
            "Actor id=%s uploaded material id=%s into category=%s",
            actor.id,
            material_id,
            material.category_id,
        )
        record = self._repository.get_material(material_id)
        if record is None:
            raise StoreFailure(f"Material {material_id} vanished after being written")
        return record

    def delete_material(self, actor: ActorRecord, material_id: int) -> MaterialRecord:
        self._guard.require(actor, Operation.DELETE_MATERIAL)
        record = self._repository.get_material(material_id)
        if record is None:
            raise NotFound("material", material_id)

        self._content_store.delete(record.file)
        self._remove_row("material", record.id, record.file, self._repository.remove_material)
        LOGGER.info("Actor id=%s deleted material id=%s", actor.id, record.id)
        return record

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _store_blob(self, blob: UploadedFile, *, kind: str) -> str:
        descriptor = ContentDescriptor(
            filename=blob.filename,
            kind=kind,
            content_type=blob.content_type,
        )
        return self._content_store.store(blob.data, descriptor)

    def _check_location(self, location: str, *, entity: str, field: str) -> None:
        try:
            self._content_store.validate_location(location)
        except ValueError as error:
            raise ValidationError(entity, [{"field": field, "message": str(error)}]) from error

    @staticmethod
    def _orphaned(error: StoreFailure, location: str, *, stored: bool) -> StoreFailure:
        if not stored:
            return error
        LOGGER.error("Row insert failed; stored bytes at %s are now orphaned", location)
        return StoreFailure(
            f"Stored content at '{location}' but could not record it: {error}",
            location=location,
        )

    @staticmethod
    def _remove_row(entity: str, record_id: int, location: str, remove) -> None:
        try:
            remove(record_id)
        except StoreFailure as error:
            LOGGER.error(
                "Deleted content at %s but %s row id=%s remains",
                location,
                entity,
                record_id,
            )
            raise StoreFailure(
                f"Deleted content for {entity} {record_id} but could not remove the record: {error}",
                location=location,
            ) from error


__all__ = ["ContentUploadService", "UploadedFile"]

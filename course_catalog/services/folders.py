"""Folder (category) tree management."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Set, Union

from ..config import AppConfig
from .authorization import AuthorizationGuard
from .errors import CycleDetected, NotFound, StoreFailure
from .roles import Operation
from .schemas import CategoryAttrs, validate_attrs
from .storage import ActorRecord, CatalogRepository, CategoryRecord, MaterialRecord


LOGGER = logging.getLogger(__name__)


FolderEntry = Union[MaterialRecord, CategoryRecord]


class FolderHierarchyManager:
    """Create, delete and browse the category tree.

    Deleting a folder relies on the store to cascade to sub-folders and the
    materials filed in them. Bytes of those cascaded materials are left in
    the content store.
    """

    def __init__(
        self,
        config: AppConfig,
        repository: CatalogRepository,
        guard: AuthorizationGuard,
    ) -> None:
        self._repository = repository
        self._guard = guard
        self._max_depth = config.max_hierarchy_depth

    def create_folder(
        self,
        actor: ActorRecord,
        attrs: Mapping[str, Any],
        parent_category: Optional[int] = None,
    ) -> CategoryRecord:
        self._guard.require(actor, Operation.CREATE_FOLDER)
        values = dict(attrs)
        if parent_category is not None:
            values["category_id"] = parent_category
        folder = validate_attrs(CategoryAttrs, values, entity="category")

        if folder.category_id is not None and self._repository.get_category(folder.category_id) is None:
            raise NotFound("category", folder.category_id)

        category_id = self._repository.add_category(
            folder.name,
            folder.description,
            category_id=folder.category_id,
            uploader_id=actor.id,
        )
        LOGGER.info(
            "Actor id=%s created folder '%s' (id=%s) under parent=%s",
            actor.id,
            folder.name,
            category_id,
            folder.category_id,
        )
        record = self._repository.get_category(category_id)
        if record is None:
            raise StoreFailure(f"Category {category_id} vanished after being written")
        return record

    def delete_folder(self, actor: ActorRecord, category_id: int) -> CategoryRecord:
        self._guard.require(actor, Operation.DELETE_FOLDER)
        record = self._repository.get_category(category_id)
        if record is None:
            raise NotFound("category", category_id)

        leaked = self._repository.count_subtree_materials(category_id)
        self._repository.remove_category(category_id)
        if leaked:
            LOGGER.warning(
                "Deleted folder id=%s; %s material file(s) below it remain in the content store",
                category_id,
                leaked,
            )
        LOGGER.info("Actor id=%s deleted folder id=%s", actor.id, category_id)
        return record

    def list_folder(self, category_id: Optional[int]) -> List[FolderEntry]:
        """Return materials filed in *category_id* followed by its sub-folders.

        ``None`` lists the root level. Both groups are ordered by id.
        """

        if category_id is not None and self._repository.get_category(category_id) is None:
            raise NotFound("category", category_id)

        materials = self._repository.list_materials(category_id)
        folders = self._repository.list_categories(category_id)
        LOGGER.debug(
            "Listed folder %s: %s material(s), %s sub-folder(s)",
            "<root>" if category_id is None else category_id,
            len(materials),
            len(folders),
        )
        return [*materials, *folders]

    def ancestor_chain(self, category_id: Optional[int]) -> List[CategoryRecord]:
        """Return the folders from the root down to *category_id* inclusive."""

        chain: List[CategoryRecord] = []
        visited: Set[int] = set()
        current = category_id
        while current is not None:
            if current in visited or len(chain) >= self._max_depth:
                LOGGER.error(
                    "Parent chain of folder id=%s does not terminate (stopped at id=%s)",
                    category_id,
                    current,
                )
                raise CycleDetected(category_id, self._max_depth)
            visited.add(current)
            record = self._repository.get_category(current)
            if record is None:
                raise NotFound("category", current)
            chain.append(record)
            current = record.category_id

        chain.reverse()
        return chain


__all__ = ["FolderEntry", "FolderHierarchyManager"]

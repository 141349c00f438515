"""Wiring of the catalog services from a single configuration."""

from __future__ import annotations

from typing import Optional

from ..config import AppConfig
from .authorization import AuthorizationGuard
from .content_store import ContentStore, LocalContentStore
from .events import emit_db_event
from .folders import FolderHierarchyManager
from .groups import GroupRegistry
from .storage import CatalogRepository
from .uploads import ContentUploadService


class Catalog:
    """Facade bundling the repository, content store and services."""

    def __init__(
        self,
        config: AppConfig,
        *,
        repository: Optional[CatalogRepository] = None,
        content_store: Optional[ContentStore] = None,
    ) -> None:
        self.config = config
        self.repository = repository or CatalogRepository(config, event_emitter=emit_db_event)
        self.content_store = content_store or LocalContentStore(config)
        self.guard = AuthorizationGuard(config)
        self.groups = GroupRegistry(self.repository)
        self.uploads = ContentUploadService(self.repository, self.content_store, self.guard)
        self.folders = FolderHierarchyManager(config, self.repository, self.guard)


__all__ = ["Catalog"]

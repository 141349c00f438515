"""Exceptions raised by the catalog services."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class CatalogError(RuntimeError):
    """Base class for every failure surfaced by the catalog."""

    kind = "catalog_error"


class Forbidden(CatalogError):
    """Raised when the acting role may not perform a mutation."""

    kind = "forbidden"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NotFound(CatalogError):
    """Raised when a referenced record does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, identifier: Any) -> None:
        super().__init__(f"{entity.capitalize()} {identifier} not found")
        self.entity = entity
        self.identifier = identifier


class ValidationError(CatalogError):
    """Raised when supplied attributes fail schema validation.

    ``errors`` holds one mapping per offending field with ``field`` and
    ``message`` keys.
    """

    kind = "validation_error"

    def __init__(self, entity: str, errors: List[Dict[str, str]]) -> None:
        summary = "; ".join(f"{item['field']}: {item['message']}" for item in errors)
        super().__init__(f"Invalid {entity} attributes ({summary})")
        self.entity = entity
        self.errors = errors


class StoreFailure(CatalogError):
    """Raised when the row store or the content-store fails unexpectedly."""

    kind = "store_failure"

    def __init__(self, message: str, *, location: Optional[str] = None) -> None:
        super().__init__(message)
        self.location = location


class CycleDetected(CatalogError):
    """Raised when a folder's parent chain loops or exceeds the depth bound."""

    kind = "cycle_detected"

    def __init__(self, category_id: int, depth: int) -> None:
        super().__init__(
            f"Folder {category_id} has a parent chain that does not reach the root "
            f"within {depth} steps"
        )
        self.category_id = category_id
        self.depth = depth


__all__ = [
    "CatalogError",
    "CycleDetected",
    "Forbidden",
    "NotFound",
    "StoreFailure",
    "ValidationError",
]

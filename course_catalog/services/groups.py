"""Discussion group registry keyed by group name."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .errors import StoreFailure, ValidationError
from .schemas import GroupAttrs, provided_fields, validate_attrs
from .storage import CatalogRepository, GroupRecord


LOGGER = logging.getLogger(__name__)


class GroupRegistry:
    """Create or update groups identified by their unique name."""

    def __init__(self, repository: CatalogRepository) -> None:
        self._repository = repository

    def get_or_create(self, name: str) -> GroupRecord:
        """Return the group called *name*, creating it when absent."""

        attrs = validate_attrs(GroupAttrs, {"name": name}, entity="group")
        existing = self._repository.find_group_by_name(attrs.name)
        if existing is not None:
            LOGGER.debug("Group '%s' already exists with id=%s", attrs.name, existing.id)
            return existing

        try:
            group_id = self._repository.add_group(attrs.name)
        except StoreFailure:
            # A concurrent caller may have inserted the same name first.
            existing = self._repository.find_group_by_name(attrs.name)
            if existing is None:
                raise
            LOGGER.debug("Group '%s' was created concurrently (id=%s)", attrs.name, existing.id)
            return existing
        LOGGER.info("Created group '%s' (id=%s)", attrs.name, group_id)
        return self._require(group_id)

    def upsert(self, attributes: Mapping[str, Any]) -> GroupRecord:
        """Update the group matching ``attributes['name']`` or insert a new one.

        Fields supplied in *attributes* overwrite those of an existing match;
        omitted fields keep their stored value.
        """

        attrs = validate_attrs(GroupAttrs, attributes, entity="group")
        changes = provided_fields(attrs)
        self._check_members(changes)
        existing = self._repository.find_group_by_name(attrs.name)
        if existing is None:
            group_id = self._repository.add_group(
                attrs.name,
                leader_id=attrs.leader_id,
                mentor_id=attrs.mentor_id,
            )
            LOGGER.info("Created group '%s' (id=%s) via upsert", attrs.name, group_id)
            return self._require(group_id)

        changes.pop("name", None)
        self._repository.update_group(existing.id, **changes)
        LOGGER.info("Updated group '%s' (id=%s) fields=%s", attrs.name, existing.id, sorted(changes))
        return self._require(existing.id)

    def _check_members(self, changes: Mapping[str, Any]) -> None:
        errors = []
        for field in ("leader_id", "mentor_id"):
            actor_id = changes.get(field)
            if actor_id is not None and self._repository.get_actor(actor_id) is None:
                errors.append({"field": field, "message": f"unknown actor {actor_id}"})
        if errors:
            raise ValidationError("group", errors)

    def _require(self, group_id: int) -> GroupRecord:
        record = self._repository.get_group(group_id)
        if record is None:
            raise StoreFailure(f"Group {group_id} vanished after being written")
        return record


__all__ = ["GroupRegistry"]

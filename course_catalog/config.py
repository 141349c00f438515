"""Configuration loading utilities for the course catalog."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Sequence

from .services.roles import DEFAULT_PRIVILEGED_ROLES, Role


LOGGER = logging.getLogger(__name__)


_WRITE_CHECK = ".write_check"
DEFAULT_MAX_HIERARCHY_DEPTH = 64


def _ensure_writable_directory(path: Path) -> bool:
    """Create *path* if needed and report whether files can be written there."""

    marker = path / _WRITE_CHECK
    try:
        path.mkdir(parents=True, exist_ok=True)
        marker.write_text("ok", encoding="utf-8")
    except OSError:
        return False
    marker.unlink(missing_ok=True)
    return True


def _first_writable(candidates: Sequence[Path], *, label: str) -> Path:
    """Return the first writable candidate, or the first one if none is."""

    resolved = [candidate.resolve() for candidate in candidates]
    for index, candidate in enumerate(resolved):
        if _ensure_writable_directory(candidate):
            if index:
                LOGGER.warning("Using %s directory '%s' instead of '%s'", label, candidate, resolved[0])
            return candidate
    LOGGER.warning("No writable %s directory; bootstrap will fail on '%s'", label, resolved[0])
    return resolved[0]


def _parse_roles(values: Iterable[Any]) -> FrozenSet[Role]:
    roles = set()
    for value in values:
        try:
            roles.add(Role(str(value).strip().lower()))
        except ValueError as error:
            raise ValueError(f"Unknown role '{value}' in privileged_roles") from error
    return frozenset(roles)


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings handed to every catalog component."""

    storage_root: Path
    database_file: Path
    content_root: Path
    privileged_roles: FrozenSet[Role] = field(default=DEFAULT_PRIVILEGED_ROLES)
    max_hierarchy_depth: int = DEFAULT_MAX_HIERARCHY_DEPTH

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any], *, base_path: Path) -> "AppConfig":
        preferred_storage = (base_path / mapping["storage_root"]).resolve()
        storage_root = _first_writable(
            [preferred_storage, Path.home() / ".course_catalog" / "storage"],
            label="storage",
        )

        # The database follows the storage root when it was configured inside it.
        database_file = (base_path / mapping["database_file"]).resolve()
        if storage_root != preferred_storage and database_file.is_relative_to(preferred_storage):
            database_file = storage_root / database_file.relative_to(preferred_storage)
            LOGGER.warning("Database moved with the storage root to '%s'", database_file)

        content_root = _first_writable(
            [base_path / mapping["content_root"], storage_root / "_content"],
            label="content",
        )

        privileged_roles = DEFAULT_PRIVILEGED_ROLES
        if "privileged_roles" in mapping:
            privileged_roles = _parse_roles(mapping["privileged_roles"])

        max_depth = int(mapping.get("max_hierarchy_depth", DEFAULT_MAX_HIERARCHY_DEPTH))
        if max_depth < 1:
            raise ValueError("max_hierarchy_depth must be at least 1")

        return cls(
            storage_root=storage_root,
            database_file=database_file,
            content_root=content_root,
            privileged_roles=privileged_roles,
            max_hierarchy_depth=max_depth,
        )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the catalog configuration from ``config/default.json`` by default."""

    base_path = Path(__file__).resolve().parent.parent
    if config_path is None:
        config_path = base_path / "config" / "default.json"

    with config_path.open("r", encoding="utf-8") as config_file:
        raw_config = json.load(config_file)

    return AppConfig.from_mapping(raw_config, base_path=base_path)


__all__ = ["AppConfig", "DEFAULT_MAX_HIERARCHY_DEPTH", "load_config"]

"""Closed enumerations of actor roles and guarded catalog operations."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    STUDENT = "student"


class Operation(str, Enum):
    UPLOAD_MATERIAL = "upload_material"
    UPLOAD_SOURCECAST = "upload_sourcecast"
    CREATE_FOLDER = "create_folder"
    DELETE_MATERIAL = "delete_material"
    DELETE_SOURCECAST = "delete_sourcecast"
    DELETE_FOLDER = "delete_folder"

    @property
    def verb(self) -> str:
        """Short verb used in denial messages."""

        if self is Operation.CREATE_FOLDER:
            return "create folders"
        return self.value.split("_", 1)[0]


DEFAULT_PRIVILEGED_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN, Role.STAFF})


__all__ = ["DEFAULT_PRIVILEGED_ROLES", "Operation", "Role"]

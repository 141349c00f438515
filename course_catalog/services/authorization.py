"""Role based guard for catalog mutations."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import FrozenSet, Mapping

from ..config import AppConfig
from .errors import Forbidden
from .roles import Operation, Role
from .storage import ActorRecord


LOGGER = logging.getLogger(__name__)


PRIVILEGED_OPERATIONS: FrozenSet[Operation] = frozenset(Operation)


def build_permission_table(privileged_roles: FrozenSet[Role]) -> Mapping[Role, FrozenSet[Operation]]:
    """Return the operations each role may perform.

    Every member of :class:`Role` receives an entry so that lookups never
    fall through to an implicit default.
    """

    table = {
        role: PRIVILEGED_OPERATIONS if role in privileged_roles else frozenset()
        for role in Role
    }
    return MappingProxyType(table)


def allowed(
    role: Role | str,
    operation: Operation,
    *,
    table: Mapping[Role, FrozenSet[Operation]],
) -> bool:
    """Return ``True`` when *role* may perform *operation*."""

    try:
        resolved = Role(role)
    except ValueError:
        return False
    return operation in table[resolved]


class AuthorizationGuard:
    """Decide whether an actor may perform a guarded operation."""

    def __init__(self, config: AppConfig) -> None:
        self._table = build_permission_table(config.privileged_roles)

    @property
    def table(self) -> Mapping[Role, FrozenSet[Operation]]:
        return self._table

    def allowed(self, role: Role | str, operation: Operation) -> bool:
        return allowed(role, operation, table=self._table)

    def require(self, actor: ActorRecord, operation: Operation) -> None:
        """Raise :class:`Forbidden` unless *actor* may perform *operation*."""

        if self.allowed(actor.role, operation):
            return
        LOGGER.info(
            "Denied %s for actor id=%s (role=%s)",
            operation.value,
            actor.id,
            actor.role,
        )
        raise Forbidden(f"User is not permitted to {operation.verb}")


__all__ = [
    "AuthorizationGuard",
    "PRIVILEGED_OPERATIONS",
    "allowed",
    "build_permission_table",
]

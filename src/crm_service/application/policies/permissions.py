"""Role → action → module permission matrix.

The matrix is frozen at import time and shared by every engine instance.
Lookups are total: any unknown or malformed role, action or module
yields ``False`` instead of raising, since callers evaluate them while
rendering.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping, Protocol

from crm_service.domain.value_objects.enums import Action, Role

ALL = "all"
WILDCARDS = frozenset({ALL, "*"})

PermissionMatrix = Mapping[str, Mapping[str, frozenset[str]]]

_EMPTY: frozenset[str] = frozenset()


def freeze_matrix(
    raw: Mapping[str, Mapping[str, Iterable[str]]],
    roles: Iterable[str] = tuple(r.value for r in Role),
) -> PermissionMatrix:
    """Validate and freeze a raw matrix.

    Every one of ``roles`` must be present and every role must define
    every action key, even with an empty module list. Raises
    ``ValueError`` otherwise.
    """
    missing_roles = {str(r) for r in roles} - {str(r) for r in raw}
    if missing_roles:
        raise ValueError(f"Matrix is missing roles: {', '.join(sorted(missing_roles))}")
    required = {a.value for a in Action}
    frozen: dict[str, Mapping[str, frozenset[str]]] = {}
    for role, actions in raw.items():
        missing = required - {str(a) for a in actions}
        if missing:
            raise ValueError(
                f"Role {role!r} is missing actions: {', '.join(sorted(missing))}"
            )
        frozen[str(role)] = MappingProxyType(
            {str(action): frozenset(modules) for action, modules in actions.items()}
        )
    return MappingProxyType(frozen)


DEFAULT_MATRIX: PermissionMatrix = freeze_matrix({
    Role.ADMIN: {
        Action.CREATE: [ALL],
        Action.READ: [ALL],
        Action.UPDATE: [ALL],
        Action.DELETE: [ALL],
    },
    Role.MANAGER: {
        Action.CREATE: [
            "clients", "leads", "projects", "tasks", "interns", "documents",
            "messages", "groups", "tickets", "calendarEvents",
        ],
        Action.READ: [ALL],
        Action.UPDATE: [
            "clients", "leads", "projects", "tasks", "interns", "attendance",
            "documents", "messages", "groups", "tickets", "calendarEvents",
        ],
        Action.DELETE: ["tasks", "documents", "messages", "tickets", "calendarEvents"],
    },
    Role.EMPLOYEE: {
        Action.CREATE: ["tasks", "attendance", "messages", "groups", "tickets", "calendarEvents"],
        Action.READ: [
            "clients", "leads", "projects", "tasks", "attendance", "documents",
            "messages", "groups", "tickets", "calendarEvents",
        ],
        Action.UPDATE: ["tasks", "attendance", "tickets"],
        Action.DELETE: ["messages"],
    },
    Role.INTERN: {
        Action.CREATE: ["attendance", "messages", "tickets"],
        Action.READ: [
            "projects", "tasks", "attendance", "documents", "messages",
            "groups", "calendarEvents",
        ],
        Action.UPDATE: ["tasks"],
        Action.DELETE: [],
    },
    Role.CLIENT: {
        Action.CREATE: ["messages", "tickets"],
        Action.READ: ["projects", "messages", "groups", "tickets"],
        Action.UPDATE: [],
        Action.DELETE: [],
    },
})


class PermissionEngine(Protocol):
    def has_permission(self, role: str | None, module: str, action: str) -> bool: ...

    def allowed_modules(self, role: str | None, action: str) -> frozenset[str]: ...


class MatrixPermissionEngine:
    """Answers permission checks from a frozen matrix."""

    def __init__(self, matrix: PermissionMatrix = DEFAULT_MATRIX) -> None:
        self._matrix = matrix

    def allowed_modules(self, role: Any, action: Any) -> frozenset[str]:
        if not role or not isinstance(role, str) or not isinstance(action, str):
            return _EMPTY
        actions = self._matrix.get(role)
        if actions is None:
            return _EMPTY
        return actions.get(action, _EMPTY)

    def has_permission(self, role: Any, module: Any, action: Any) -> bool:
        if not isinstance(module, str) or not module:
            return False
        allowed = self.allowed_modules(role, action)
        if not allowed:
            return False
        if not allowed.isdisjoint(WILDCARDS):
            return True
        return module in allowed


class AllowAllPermissionEngine:
    """Grants every action on every module, whatever the role."""

    def allowed_modules(self, role: Any, action: Any) -> frozenset[str]:
        return frozenset({ALL})

    def has_permission(self, role: Any, module: Any, action: Any) -> bool:
        return True


def build_permission_engine(mode: str) -> PermissionEngine:
    if mode == "matrix":
        return MatrixPermissionEngine()
    if mode == "allow_all":
        return AllowAllPermissionEngine()
    raise ValueError(f"Unknown permission engine: {mode!r}")

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..core.enums import Permission, Role
from ..core.exceptions import AuthorizationError


class Actor(ABC):
    """Who is performing a workflow operation.

    Each operation checks exactly one permission through ``require``; callers
    never compare role strings themselves.
    """

    role: Role

    def __init__(self, actor_id: int):
        self.actor_id = int(actor_id)

    @property
    @abstractmethod
    def permissions(self) -> frozenset[Permission]:
        raise NotImplementedError

    @property
    def label(self) -> str:
        return f"{self.role.value}:{self.actor_id}"

    def can(self, permission: Permission) -> bool:
        return permission in self.permissions

    def require(self, permission: Permission, **context: Any) -> None:
        if not self.can(permission):
            raise AuthorizationError(
                f"{self.role.value} may not {permission.value}",
                actor=self.label,
                permission=permission.value,
                **context,
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.actor_id})"


class AdminActor(Actor):
    role = Role.ADMIN

    @property
    def permissions(self) -> frozenset[Permission]:
        return frozenset(
            {
                Permission.CALCULATE,
                Permission.APPROVE,
                Permission.SIGN_AS_ADMIN,
                Permission.VERIFY_SIGNATURE,
                Permission.LOCK,
                Permission.MARK_PAID,
            }
        )


class EmployeeActor(Actor):
    """Can only sign, and only the payroll that belongs to them."""

    role = Role.EMPLOYEE

    @property
    def permissions(self) -> frozenset[Permission]:
        return frozenset({Permission.SIGN_AS_EMPLOYEE})


def actor_from_session(user_id: Any, role: Any) -> Actor:
    if user_id is None:
        raise AuthorizationError("No user in session")
    try:
        parsed = Role(role)
    except ValueError:
        raise AuthorizationError(f"Unknown role {role!r}") from None
    return AdminActor(user_id) if parsed == Role.ADMIN else EmployeeActor(user_id)

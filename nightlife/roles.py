"""Role and account-type vocabulary.

Role: platform authority used for authorization checks.
AccountType: what kind of account the user registered (independent of role).
"""

from __future__ import annotations

from typing import Literal

Role = Literal["user", "moderator", "admin"]
AccountType = Literal["regular", "employee", "establishment_owner"]

STAFF_ROLES: tuple[Role, Role] = ("moderator", "admin")


def is_staff(role: str | None) -> bool:
    return role in STAFF_ROLES


def is_admin(role: str | None) -> bool:
    return role == "admin"


__all__ = [
    "Role",
    "AccountType",
    "STAFF_ROLES",
    "is_staff",
    "is_admin",
]

# Overview: Role capabilities. Each permission lists the roles that hold it.

from __future__ import annotations

from .catalog import (
    ROLE_STAFF_KITCHEN,
    ROLE_STAFF_BAR,
    ROLE_MANAGER,
    ROLE_SENIOR_MANAGER,
)


class PermissionDenied(Exception):
    """403: the signed-in role lacks the capability."""

    def __init__(self, role: str, permission_code: str):
        self.role = role
        self.permission_code = permission_code
        super().__init__(f"Role {role!r} lacks {permission_code}")


STAFF = frozenset({ROLE_STAFF_KITCHEN, ROLE_STAFF_BAR, ROLE_MANAGER, ROLE_SENIOR_MANAGER})
MANAGERS = frozenset({ROLE_MANAGER, ROLE_SENIOR_MANAGER})
SENIOR = frozenset({ROLE_SENIOR_MANAGER})

# -- INVENTORY --
# VIEW_INVENTORY     list stock and menu, alerts, suggestions
# LOAD_STOCK         record deliveries (merge-on-add)
# ADJUST_STOCK       manual +/- and dose pours
# EDIT_ITEMS         edit descriptive fields, archive/restore
# DELETE_ITEMS       hard delete
# VIEW_PRICES        cost/sell prices in payloads
# -- MENU --
# SELL_MENU          record a menu sale
# MANAGE_MENU        create menu entries
# -- REPORTS --
# VIEW_REPORTS       financial report
# -- SHOPPING LIST --
# EDIT_SHOPPING_LIST read and save the shared list
DEFAULT_ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "VIEW_INVENTORY": STAFF,
    "LOAD_STOCK": STAFF,
    "ADJUST_STOCK": STAFF,
    "EDIT_ITEMS": MANAGERS,
    "DELETE_ITEMS": SENIOR,
    "VIEW_PRICES": MANAGERS,
    "SELL_MENU": STAFF,
    "MANAGE_MENU": MANAGERS,
    "VIEW_REPORTS": MANAGERS,
    "EDIT_SHOPPING_LIST": STAFF,
}


def has_permission(role: str | None, permission_code: str) -> bool:
    if permission_code not in DEFAULT_ROLE_PERMISSIONS:
        raise KeyError(f"Unknown permission {permission_code}")
    return role in DEFAULT_ROLE_PERMISSIONS[permission_code]


def require_permission(role: str | None, permission_code: str) -> None:
    if not has_permission(role, permission_code):
        raise PermissionDenied(role or "unauthenticated", permission_code)


def permissions_for(role: str | None) -> list[str]:
    return sorted(code for code, roles in DEFAULT_ROLE_PERMISSIONS.items() if role in roles)

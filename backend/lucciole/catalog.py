# Overview: Deployment catalog (roles, departments, units) resolved once at startup.

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from flask import current_app


ROLE_UNAUTHENTICATED = "unauthenticated"
ROLE_STAFF_KITCHEN = "staff-kitchen"
ROLE_STAFF_BAR = "staff-bar"
ROLE_MANAGER = "manager"
ROLE_SENIOR_MANAGER = "senior-manager"

ROLES = (
    ROLE_UNAUTHENTICATED,
    ROLE_STAFF_KITCHEN,
    ROLE_STAFF_BAR,
    ROLE_MANAGER,
    ROLE_SENIOR_MANAGER,
)

# Category marker for sellable menu records
MENU_ITEM = "MENU_ITEM"

# Category tag written on sale log entries
SALE_TAG = "SALE"

# Units that allow fractional manual adjustment
FRACTIONAL_UNITS = frozenset({"Kg", "Lt"})

_EXTENSION_KEY = "lucciole.catalog"


@dataclass(frozen=True)
class InventoryCatalog:
    """
    Static deployment catalog.

    role_table maps a login email (lowercased) to exactly one role.
    categories are the warehouse departments; MENU_ITEM is not one of them.
    """
    role_table: Mapping[str, str]
    categories: tuple[str, ...]
    units: tuple[str, ...]
    login_domain: str
    category_scope: Mapping[str, str]

    @classmethod
    def from_config(cls, config: Mapping) -> "InventoryCatalog":
        role_table = {}
        for email, role in (config.get("ROLE_TABLE") or {}).items():
            if role not in ROLES:
                raise ValueError(f"Unknown role {role!r} for {email!r}")
            role_table[email.strip().lower()] = role

        categories = tuple(config.get("CATEGORIES") or ())
        if MENU_ITEM in categories or SALE_TAG in categories:
            raise ValueError("MENU_ITEM and SALE are reserved category names")

        category_scope = dict(config.get("ROLE_CATEGORY_SCOPE") or {})
        for role, category in category_scope.items():
            if category not in categories:
                raise ValueError(f"Role {role!r} is scoped to unknown category {category!r}")

        return cls(
            role_table=MappingProxyType(role_table),
            categories=categories,
            units=tuple(config.get("UNITS") or ()),
            login_domain=config.get("LOGIN_DOMAIN", ""),
            category_scope=MappingProxyType(category_scope),
        )

    def role_for(self, email: str | None) -> str:
        if not email:
            return ROLE_UNAUTHENTICATED
        return self.role_table.get(email.strip().lower(), ROLE_UNAUTHENTICATED)

    def resolve_identifier(self, identifier: str) -> str:
        """Turn a bare username into a login email; emails pass through lowercased."""
        ident = (identifier or "").strip().lower()
        if ident and "@" not in ident and self.login_domain:
            return f"{ident}@{self.login_domain}"
        return ident

    def scope_for(self, role: str | None) -> str | None:
        """Department a staff role is restricted to, or None for every department."""
        return self.category_scope.get(role)

    def is_department(self, category: str | None) -> bool:
        return category in self.categories


def init_catalog(app) -> InventoryCatalog:
    catalog = InventoryCatalog.from_config(app.config)
    app.extensions[_EXTENSION_KEY] = catalog
    return catalog


def get_catalog() -> InventoryCatalog:
    return current_app.extensions[_EXTENSION_KEY]

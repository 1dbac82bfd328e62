"""Enumerations and defaults shared across Stockkeeper modules.

Both stores, the data layer and the CLI read their identifiers from here so
the persisted documents and the menus agree on a single spelling.
"""

from __future__ import annotations

from enum import Enum


DEFAULT_STORE_FILE = "store.json"
DEFAULT_USERS_FILE = "users.json"
DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"

# bcrypt work factor; gensalt() accepts 4..31.
DEFAULT_BCRYPT_ROUNDS = 12
MIN_BCRYPT_ROUNDS = 4
MAX_BCRYPT_ROUNDS = 31


class TransactionType(str, Enum):
    """Enumerate the kinds of stock movement recorded in the history."""

    SALE = "Sale"
    PURCHASE = "Purchase"


class UserRole(str, Enum):
    """Enumerate the roles an operator account can hold."""

    MANAGER = "Manager"
    EMPLOYEE = "Employee"


__all__ = [
    "DEFAULT_STORE_FILE",
    "DEFAULT_USERS_FILE",
    "DEFAULT_ADMIN_USERNAME",
    "DEFAULT_ADMIN_PASSWORD",
    "DEFAULT_BCRYPT_ROUNDS",
    "MIN_BCRYPT_ROUNDS",
    "MAX_BCRYPT_ROUNDS",
    "TransactionType",
    "UserRole",
]

"""Exception hierarchy raised by the inventory and credential stores."""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every failure the stores report to their callers."""


class AuthError(StoreError):
    """Raised when credentials cannot be verified or a password cannot be hashed.

    The message is deliberately generic so callers cannot tell an unknown
    username from a wrong password.
    """

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class NotFoundError(StoreError):
    """Raised when a product identifier does not resolve to a stored product."""

    def __init__(self, message: str = "Item not found") -> None:
        super().__init__(message)


class InsufficientInventoryError(StoreError):
    """Raised when a sale asks for more units than are on hand."""

    def __init__(self, message: str = "Insufficient inventory") -> None:
        super().__init__(message)


class InvalidInputError(StoreError):
    """Raised when caller supplied values break a validation rule."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid input: {detail}")
        self.detail = detail


class DatabaseError(StoreError):
    """Raised when a document cannot be written to or encoded for disk."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Database error: {detail}")
        self.detail = detail


__all__ = [
    "StoreError",
    "AuthError",
    "NotFoundError",
    "InsufficientInventoryError",
    "InvalidInputError",
    "DatabaseError",
]

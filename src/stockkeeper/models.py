"""Records shared by the inventory and credential stores.

Each record has a matching ``serialize_*``/``deserialize_*`` pair that maps it
onto the JSON documents kept on disk. Deserializers are strict: a missing key
or a value of the wrong type raises ``KeyError``, ``TypeError`` or
``ValueError`` so the stores can treat the whole document as unreadable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from uuid import UUID

from .constants import TransactionType, UserRole


@dataclass
class Product:
    """A stock keeping unit and the number of units currently on hand."""

    id: UUID
    name: str
    description: str
    price: Decimal
    quantity: int


@dataclass(frozen=True)
class Transaction:
    """An immutable stock movement with the unit price captured when it happened."""

    id: UUID
    product_id: UUID
    quantity: int
    price: Decimal
    transaction_type: TransactionType
    timestamp: datetime

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class User:
    """A registered operator account."""

    id: UUID
    username: str
    password_hash: str
    role: UserRole


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` as an ISO-8601 string in UTC with a ``Z`` suffix."""

    return moment.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""

    if not isinstance(raw, str):
        raise TypeError(f"Timestamp must be a string, got {type(raw).__name__}")
    moment = datetime.fromisoformat(raw)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def _decimal(raw: Any) -> Decimal:
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str, Decimal)):
        raise TypeError(f"Expected a number, got {type(raw).__name__}")
    try:
        value = Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal value: {raw!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Not a finite decimal value: {raw!r}")
    return value


def _integer(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise TypeError(f"Expected an integer, got {type(raw).__name__}")
    return raw


def _text(raw: Any) -> str:
    if not isinstance(raw, str):
        raise TypeError(f"Expected a string, got {type(raw).__name__}")
    return raw


def serialize_product(record: Product) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "name": record.name,
        "description": record.description,
        "price": record.price,
        "quantity": record.quantity,
    }


def deserialize_product(raw: Mapping[str, Any]) -> Product:
    return Product(
        id=UUID(_text(raw["id"])),
        name=_text(raw["name"]),
        description=_text(raw["description"]),
        price=_decimal(raw["price"]),
        quantity=_integer(raw["quantity"]),
    )


def serialize_transaction(record: Transaction) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "product_id": str(record.product_id),
        "quantity": record.quantity,
        "price": record.price,
        "transaction_type": record.transaction_type.value,
        "timestamp": format_timestamp(record.timestamp),
    }


def deserialize_transaction(raw: Mapping[str, Any]) -> Transaction:
    return Transaction(
        id=UUID(_text(raw["id"])),
        product_id=UUID(_text(raw["product_id"])),
        quantity=_integer(raw["quantity"]),
        price=_decimal(raw["price"]),
        transaction_type=TransactionType(raw["transaction_type"]),
        timestamp=parse_timestamp(raw["timestamp"]),
    )


def serialize_user(record: User) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "username": record.username,
        "password_hash": record.password_hash,
        "role": record.role.value,
    }


def deserialize_user(raw: Mapping[str, Any]) -> User:
    return User(
        id=UUID(_text(raw["id"])),
        username=_text(raw["username"]),
        password_hash=_text(raw["password_hash"]),
        role=UserRole(raw["role"]),
    )

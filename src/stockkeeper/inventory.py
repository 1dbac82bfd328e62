"""Business logic for products and their stock movements.

:class:`InventoryStore` keeps every product keyed by identifier together with
the append-only transaction history. Stock only changes through
:meth:`InventoryStore.record_sale` and :meth:`InventoryStore.record_purchase`,
which both snapshot the unit price into the transaction they create. Saving
and loading go through :mod:`stockkeeper.data_manager`; a missing or
unreadable document never blocks startup, it is replaced with the current
state instead.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from . import data_manager, log
from .constants import TransactionType
from .errors import DatabaseError, InsufficientInventoryError, InvalidInputError, NotFoundError
from .models import (
    Product,
    Transaction,
    deserialize_product,
    deserialize_transaction,
    serialize_product,
    serialize_transaction,
)


def require_positive_quantity(quantity: int) -> None:
    """Validate that a stock movement moves at least one unit.

    Raises:
        InvalidInputError: If ``quantity`` is not an integer greater than zero.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise InvalidInputError("quantity must be a whole number greater than zero")


def require_nonnegative_money(amount: Any) -> Decimal:
    """Convert a unit price to :class:`~decimal.Decimal` and check it is zero or positive.

    Returns:
        Decimal: ``amount`` itself when it already is a ``Decimal``, otherwise
            the decimal spelling of its ``str()``.

    Raises:
        InvalidInputError: If ``amount`` is not a number, is NaN or infinite,
            or is less than zero.
    """
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as exc:
        log.error("Monetary value validation failed: %r", amount)
        raise InvalidInputError("price must be a number") from exc
    if not value.is_finite() or value < Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise InvalidInputError("price must be a finite number, zero or positive")
    return value


class InventoryStore:
    """In-memory product catalogue plus the history of sales and purchases."""

    def __init__(self) -> None:
        self._products: Dict[UUID, Product] = {}
        self._transactions: List[Transaction] = []

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def add_product(self, product: Product) -> None:
        """Insert ``product``, replacing any product that shares its id."""
        replaced = product.id in self._products
        self._products[product.id] = product
        log.info(
            "%s product '%s' (%s)",
            "Replaced" if replaced else "Added",
            product.name,
            product.id,
        )

    def get_product(self, product_id: UUID) -> Optional[Product]:
        """Return the stored product for ``product_id`` or ``None``."""
        return self._products.get(product_id)

    def list_products(self) -> List[Product]:
        """Return the products in insertion order."""
        return list(self._products.values())

    def update_product(self, product: Product) -> None:
        """Replace the stored product that has the same identifier.

        Raises:
            NotFoundError: If no product with ``product.id`` exists. The
                collection is left untouched.
        """
        if product.id not in self._products:
            log.warning("Update failed for unknown product id '%s'", product.id)
            raise NotFoundError()
        self._products[product.id] = product
        log.info("Updated product '%s' (%s)", product.name, product.id)

    def delete_product(self, product_id: UUID) -> None:
        """Remove a product. Its transactions stay in the history.

        Raises:
            NotFoundError: If ``product_id`` is unknown.
        """
        try:
            removed = self._products.pop(product_id)
        except KeyError as exc:
            log.warning("Delete failed for unknown product id '%s'", product_id)
            raise NotFoundError() from exc
        log.info("Deleted product '%s' (%s)", removed.name, product_id)

    def _require_product(self, product_id: UUID) -> Product:
        try:
            return self._products[product_id]
        except KeyError as exc:
            log.warning("Product lookup failed for id '%s'", product_id)
            raise NotFoundError() from exc

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def list_transactions(self, transaction_type: Optional[TransactionType] = None) -> List[Transaction]:
        """Return a snapshot of the history, optionally limited to one kind."""
        if transaction_type is None:
            return list(self._transactions)
        return [t for t in self._transactions if t.transaction_type is transaction_type]

    def record_sale(self, product_id: UUID, quantity: int) -> Transaction:
        """Take ``quantity`` units out of stock at the product's current price.

        Args:
            product_id (UUID): Product being sold.
            quantity (int): Units sold; must be positive.

        Returns:
            Transaction: The ``Sale`` entry appended to the history.

        Raises:
            NotFoundError: If the product does not exist.
            InvalidInputError: If ``quantity`` is not positive.
            InsufficientInventoryError: If fewer than ``quantity`` units are on
                hand. Stock is left unchanged.
        """
        product = self._require_product(product_id)
        require_positive_quantity(quantity)
        if product.quantity < quantity:
            log.warning(
                "Sale of %s units rejected for product '%s': only %s on hand",
                quantity,
                product_id,
                product.quantity,
            )
            raise InsufficientInventoryError()

        product.quantity -= quantity
        transaction = self._append(product_id, quantity, product.price, TransactionType.SALE)
        log.info(
            "Recorded SALE transaction '%s' for product '%s' (quantity=%s, price=%s)",
            transaction.id,
            product_id,
            quantity,
            transaction.price,
        )
        return transaction

    def record_purchase(self, product_id: UUID, quantity: int, unit_price: Decimal) -> Transaction:
        """Add ``quantity`` units to stock bought at ``unit_price`` each.

        There is no upper bound on stock.

        Raises:
            NotFoundError: If the product does not exist.
            InvalidInputError: If ``quantity`` is not positive or
                ``unit_price`` is not a finite, non-negative number.
        """
        product = self._require_product(product_id)
        require_positive_quantity(quantity)
        unit_price = require_nonnegative_money(unit_price)

        product.quantity += quantity
        transaction = self._append(product_id, quantity, unit_price, TransactionType.PURCHASE)
        log.info(
            "Recorded PURCHASE transaction '%s' for product '%s' (quantity=%s, price=%s)",
            transaction.id,
            product_id,
            quantity,
            unit_price,
        )
        return transaction

    def _append(self, product_id: UUID, quantity: int, price: Decimal, kind: TransactionType) -> Transaction:
        transaction = Transaction(
            id=uuid4(),
            product_id=product_id,
            quantity=quantity,
            price=price,
            transaction_type=kind,
            timestamp=datetime.now(UTC),
        )
        self._transactions.append(transaction)
        return transaction

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        """Encode products and transactions as the ``store.json`` document."""
        return {
            "products": {str(pid): serialize_product(p) for pid, p in self._products.items()},
            "transactions": [serialize_transaction(t) for t in self._transactions],
        }

    @staticmethod
    def _decode_document(document: Any) -> Tuple[Dict[UUID, Product], List[Transaction]]:
        if not isinstance(document, dict):
            raise TypeError("Store document must be a JSON object")
        raw_products = document["products"]
        raw_transactions = document["transactions"]
        if not isinstance(raw_products, dict) or not isinstance(raw_transactions, list):
            raise TypeError("Store document has malformed collections")

        products: Dict[UUID, Product] = {}
        for raw in raw_products.values():
            product = deserialize_product(raw)
            products[product.id] = product

        transactions: List[Transaction] = []
        seen: set[UUID] = set()
        for raw in raw_transactions:
            transaction = deserialize_transaction(raw)
            if transaction.id in seen:
                raise ValueError(f"Duplicate transaction id: {transaction.id}")
            seen.add(transaction.id)
            transactions.append(transaction)
        return products, transactions

    def save_to_file(self, path: Path) -> Path:
        """Write the whole store to ``path`` as one compact JSON document.

        The file is replaced atomically.

        Raises:
            DatabaseError: On any I/O or encoding failure.
        """
        try:
            destination = data_manager.write_json_document(Path(path), self.to_document())
        except (OSError, TypeError, ValueError) as exc:
            log.error("Failed to save store to '%s': %s", path, exc)
            raise DatabaseError(str(exc)) from exc
        log.info(
            "Saved %d products and %d transactions to '%s'",
            len(self._products),
            len(self._transactions),
            destination,
        )
        return destination

    def load_from_file(self, path: Path) -> None:
        """Replace the in-memory state with the document at ``path``.

        When the file is missing, unreadable or does not hold a valid store
        document, the current state is written to ``path`` instead and the
        call still succeeds; the previous file content is discarded.

        Raises:
            DatabaseError: If writing the replacement document fails.
        """
        try:
            document = data_manager.read_json_document(Path(path))
            products, transactions = self._decode_document(document)
        except FileNotFoundError:
            log.info("Store file '%s' not found; initializing a new one", path)
            self.save_to_file(path)
            return
        except (OSError, ValueError, KeyError, TypeError) as exc:
            log.warning("Store file '%s' is unreadable (%s); replacing it with current state", path, exc)
            self.save_to_file(path)
            return

        self._products = products
        self._transactions = transactions
        log.info(
            "Loaded %d products and %d transactions from '%s'",
            len(products),
            len(transactions),
            path,
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def generate_inventory_report(self) -> str:
        lines = ["Inventory Report", "================", ""]
        for product in self._products.values():
            lines.extend(
                [
                    f"ID: {product.id}",
                    f"Product: {product.name}",
                    f"Quantity: {product.quantity}",
                    f"Price: ${product.price:.2f}",
                    "",
                ]
            )
        return "\n".join(lines) + "\n"

    def generate_sales_report(self) -> str:
        return self._transaction_report(
            TransactionType.SALE,
            title="Sales Report",
            id_label="Sale ID",
            price_label="Price",
            total_label="Total Sales",
        )

    def generate_purchase_report(self) -> str:
        return self._transaction_report(
            TransactionType.PURCHASE,
            title="Purchase Report",
            id_label="Purchase ID",
            price_label="Cost",
            total_label="Total Purchases",
        )

    def _transaction_report(
        self,
        kind: TransactionType,
        *,
        title: str,
        id_label: str,
        price_label: str,
        total_label: str,
    ) -> str:
        lines = [title, "=" * len(title), ""]
        running_total = Decimal("0")
        for transaction in self.list_transactions(kind):
            line_total = transaction.total
            running_total += line_total
            lines.extend(
                [
                    f"{id_label}: {transaction.id}",
                    f"Product ID: {transaction.product_id}",
                    f"Quantity: {transaction.quantity}",
                    f"{price_label}: ${transaction.price:.2f}",
                    f"Total: ${line_total:.2f}",
                    "",
                ]
            )
        lines.append(f"{total_label}: ${running_total:.2f}")
        return "\n".join(lines) + "\n"

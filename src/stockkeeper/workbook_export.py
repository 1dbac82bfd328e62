"""Export the inventory store to an Excel workbook.

The workbook is a read-only snapshot for spreadsheet users; the JSON store
stays the source of truth and is never read back from ``.xlsx``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence

import openpyxl
from openpyxl.styles import Font
from openpyxl.workbook import Workbook

from . import log
from .inventory import InventoryStore
from .models import format_timestamp


SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    "Products": [
        "ProductID",
        "Name",
        "Description",
        "Price",
        "Quantity",
    ],
    "Transactions": [
        "TransactionID",
        "ProductID",
        "TransactionType",
        "Quantity",
        "Price",
        "Total",
        "Timestamp",
    ],
}


def build_workbook(store: InventoryStore) -> Workbook:
    """Create an in-memory workbook with one sheet per collection.

    Header cells are bold. Prices stay :class:`~decimal.Decimal` so Excel keeps
    their precision; identifiers and timestamps are written as text.
    """

    wb = openpyxl.Workbook()
    if "Sheet" in wb.sheetnames:
        del wb["Sheet"]

    bold_font = Font(bold=True)
    for sheet_name, columns in SHEET_COLUMNS.items():
        ws = wb.create_sheet(title=sheet_name)
        for col_idx, column_name in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col_idx)
            cell.value = column_name
            cell.font = bold_font

    products = wb["Products"]
    for product in store.list_products():
        products.append(
            [str(product.id), product.name, product.description, product.price, product.quantity]
        )

    transactions = wb["Transactions"]
    for transaction in store.list_transactions():
        transactions.append(
            [
                str(transaction.id),
                str(transaction.product_id),
                transaction.transaction_type.value,
                transaction.quantity,
                transaction.price,
                transaction.total,
                format_timestamp(transaction.timestamp),
            ]
        )

    return wb


def export_workbook(store: InventoryStore, destination: Path) -> Path:
    """Write ``store`` to ``destination`` as an ``.xlsx`` workbook.

    Parent directories are created on demand.

    Returns:
        Path: The resolved destination.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    build_workbook(store).save(dest)
    log.info("Exported inventory workbook to '%s'", dest)
    return dest

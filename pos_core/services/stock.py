from __future__ import annotations

import sqlite3
from typing import Iterable, Optional

from pos_core.db import xc
from pos_core.models import ProductId, SaleItem


def inventory_product_id(product_id: ProductId) -> Optional[int]:
    """
    Inventory rows are referenced by integer ids (or their digit strings).
    Anything else is a custom line item with no stock to adjust.
    """
    if isinstance(product_id, bool):
        return None
    if isinstance(product_id, int):
        return product_id
    s = str(product_id).strip()
    if s.isdigit():
        return int(s)
    return None


def _adjust(conn: sqlite3.Connection, items: Iterable[SaleItem], sign: int) -> int:
    touched = 0
    for item in items:
        pid = inventory_product_id(item.product_id)
        if pid is None:
            continue
        # No floor check: quantity sufficiency is the caller's business.
        touched += xc(
            conn,
            "UPDATE products SET stock_qty = stock_qty + ? WHERE id=?",
            (sign * int(item.quantity), pid),
        )
    return touched


def apply_sale_items(conn: sqlite3.Connection, items: Iterable[SaleItem]) -> int:
    """Decrement stock for every inventory item. Returns rows updated."""
    return _adjust(conn, items, -1)


def restore_sale_items(conn: sqlite3.Connection, items: Iterable[SaleItem]) -> int:
    """Put back stock taken by ``items`` (used before replacing a sale's items)."""
    return _adjust(conn, items, +1)

from __future__ import annotations

import sqlite3
from typing import Optional

from pos_core.db import Database, q, x, xc
from pos_core.errors import ProductNotFoundError
from pos_core.models import Product

DEFAULT_LOW_STOCK_THRESHOLD = 5

_COLUMNS = "id, name, price, stock_qty"


def _row_to_product(r: sqlite3.Row) -> Product:
    return Product(
        id=int(r["id"]),
        name=str(r["name"]),
        price=float(r["price"]),
        stock_qty=int(r["stock_qty"]),
    )


def _rows_to_products(rows: list[sqlite3.Row]) -> list[Product]:
    # Drop rows whose primary key is missing or not an integer.
    return [_row_to_product(r) for r in rows if isinstance(r["id"], int)]


def _validate(product: Product) -> None:
    if not str(product.name).strip():
        raise ValueError("Product name is required.")
    if float(product.price) < 0:
        raise ValueError("Price must be >= 0.")


def save_product(db: Database, product: Product) -> int:
    _validate(product)
    with db.transaction() as conn:
        return x(
            conn,
            "INSERT INTO products (name, price, stock_qty) VALUES (?, ?, ?)",
            (str(product.name).strip(), float(product.price), int(product.stock_qty)),
        )


def get_products(db: Database) -> list[Product]:
    return _rows_to_products(q(db.conn, f"SELECT {_COLUMNS} FROM products ORDER BY name, id"))


def search_products(db: Database, term: str) -> list[Product]:
    term = str(term or "").strip()
    if not term:
        return get_products(db)
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    rows = q(
        db.conn,
        f"SELECT {_COLUMNS} FROM products WHERE name LIKE ? ESCAPE '\\' ORDER BY name, id",
        (f"%{escaped}%",),
    )
    return _rows_to_products(rows)


def get_product_by_id(db: Database, product_id: int) -> Optional[Product]:
    rows = q(db.conn, f"SELECT {_COLUMNS} FROM products WHERE id=?", (int(product_id),))
    return _row_to_product(rows[0]) if rows else None


def update_product(db: Database, product: Product) -> None:
    if product.id is None:
        raise ProductNotFoundError("Product has no id.")
    _validate(product)
    with db.transaction() as conn:
        n = xc(
            conn,
            "UPDATE products SET name=?, price=?, stock_qty=? WHERE id=?",
            (str(product.name).strip(), float(product.price), int(product.stock_qty), int(product.id)),
        )
    if n == 0:
        raise ProductNotFoundError(f"Product {product.id} not found.")


def delete_product(db: Database, product_id: int) -> bool:
    # Sale items keep their name/price snapshot; nothing cascades.
    with db.transaction() as conn:
        return xc(conn, "DELETE FROM products WHERE id=?", (int(product_id),)) > 0


def get_low_stock_products(db: Database, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> list[Product]:
    rows = q(
        db.conn,
        f"SELECT {_COLUMNS} FROM products WHERE stock_qty <= ? ORDER BY stock_qty ASC, name",
        (int(threshold),),
    )
    return _rows_to_products(rows)

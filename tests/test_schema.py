"""Schema creation, additive migrations and database lifecycle."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from conftest import raw_connect
from pos_core import db as db_module
from pos_core.db import Database, column_exists, ensure_schema, migrate_column
from pos_core.errors import DatabaseInitError, MigrationError, NotInitializedError
from pos_core.schema import SCHEMA_SQL, ColumnMigration
from pos_core.models import Product
from pos_core.services.products import get_products, save_product

LEGACY_SCHEMA = """
CREATE TABLE products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  price REAL NOT NULL,
  stock_qty INTEGER NOT NULL DEFAULT 0,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
  updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE customers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  contact TEXT,
  address TEXT,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
  updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  customer_id INTEGER,
  customer_name TEXT NOT NULL,
  customer_contact TEXT,
  customer_address TEXT,
  subtotal REAL NOT NULL,
  total REAL NOT NULL,
  date DATETIME NOT NULL,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE sale_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  product_name TEXT NOT NULL,
  quantity INTEGER NOT NULL,
  unit_price REAL NOT NULL,
  line_total REAL NOT NULL,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
  FOREIGN KEY (sale_id) REFERENCES sales (id) ON DELETE CASCADE
);
"""


def _index_names(conn, table: str) -> set[str]:
    return {r["name"] for r in conn.execute(f"PRAGMA index_list({table})").fetchall()}


def test_initialize_creates_tables_indexes_and_triggers(db: Database):
    names = {
        r["name"]
        for r in db.conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'trigger')").fetchall()
    }
    assert {"products", "customers", "sales", "sale_items"} <= names
    assert {"update_products_timestamp", "update_customers_timestamp"} <= names

    assert "idx_products_name" in _index_names(db.conn, "products")
    assert "idx_customers_name" in _index_names(db.conn, "customers")
    assert {"idx_sales_date", "idx_sales_order_date", "idx_sales_invoice_number"} <= _index_names(db.conn, "sales")
    assert {"idx_sale_items_sale_id", "idx_sale_items_product_id"} <= _index_names(db.conn, "sale_items")


def test_ensure_schema_is_idempotent(db: Database):
    ensure_schema(db.conn)
    ensure_schema(db.conn)
    assert column_exists(db.conn, "sales", "order_date")


def test_reopening_existing_database_keeps_data(db_path: Path):
    with Database(db_path) as first:
        first.conn.execute("INSERT INTO products (name, price, stock_qty) VALUES ('Bolt', 1.5, 3)")

    with Database(db_path) as second:
        assert [p.name for p in get_products(second)] == ["Bolt"]


def test_migrate_column_adds_once_and_backfills(db: Database):
    db.conn.execute(
        "INSERT INTO products (name, price, stock_qty) VALUES ('Nut', 2.0, 4)"
    )

    added = migrate_column(db.conn, "products", "sku", "TEXT", "UPDATE products SET sku = 'SKU-' || id;")
    again = migrate_column(db.conn, "products", "sku", "TEXT", "UPDATE products SET sku = 'other';")

    assert added is True
    assert again is False
    row = db.conn.execute("SELECT sku FROM products").fetchone()
    assert row["sku"].startswith("SKU-")


def test_legacy_database_is_migrated_and_backfilled(db_path: Path):
    conn = raw_connect(db_path)
    conn.executescript(LEGACY_SCHEMA)
    conn.executemany(
        "INSERT INTO sales (customer_name, subtotal, total, date) VALUES (?, ?, ?, ?)",
        [
            ("A", 1.0, 1.0, "2025-09-10T09:00:00"),
            ("B", 2.0, 2.0, "2025-09-11T09:00:00"),
            ("C", 3.0, 3.0, "2025-09-10T15:00:00"),
            ("D", 4.0, 4.0, "2024-12-31T23:30:00.000Z"),
        ],
    )
    conn.execute(
        "INSERT INTO sale_items (sale_id, product_id, product_name, quantity, unit_price, line_total) "
        "VALUES (1, 'custom-x', 'Thing', 1, 1.0, 1.0)"
    )
    conn.close()

    with Database(db_path) as migrated:
        c = migrated.conn
        assert column_exists(c, "sales", "order_date")
        assert column_exists(c, "sales", "invoice_number")
        assert column_exists(c, "sale_items", "discount")

        rows = c.execute("SELECT id, date, order_date, invoice_number FROM sales ORDER BY id").fetchall()
        assert all(r["order_date"] == r["date"] for r in rows)
        numbers = [r["invoice_number"] for r in rows]
        assert numbers == ["250910001", "250911001", "250910002", "241231001"]
        assert all(len(n) == 9 and n.isdigit() for n in numbers)
        assert c.execute("SELECT discount FROM sale_items").fetchone()["discount"] == 0


def test_required_migration_failure_is_fatal(db_path: Path, monkeypatch):
    broken = ColumnMigration(table="no_such_table", column="x", definition="TEXT")
    monkeypatch.setattr(db_module, "COLUMN_MIGRATIONS", (broken,))

    with pytest.raises(MigrationError):
        Database(db_path).initialize()


def test_optional_migration_failure_is_logged_and_skipped(db_path: Path, monkeypatch, caplog):
    broken = ColumnMigration(table="no_such_table", column="x", definition="TEXT", required=False)
    monkeypatch.setattr(db_module, "COLUMN_MIGRATIONS", (broken,))

    database = Database(db_path).initialize()
    try:
        assert database.is_initialized
        assert "Skipping optional migration" in caplog.text
    finally:
        database.close()


def test_duplicate_legacy_invoices_skip_unique_index(db_path: Path):
    conn = raw_connect(db_path)
    conn.executescript(SCHEMA_SQL)
    conn.executemany(
        "INSERT INTO sales (invoice_number, customer_name, subtotal, total, date, order_date) "
        "VALUES ('250910001', 'A', 1, 1, '2025-09-10', '2025-09-10')",
        [(), ()],
    )
    conn.close()

    with Database(db_path) as database:
        assert database.is_initialized
        assert "idx_sales_invoice_number" not in _index_names(database.conn, "sales")


def test_update_trigger_refreshes_updated_at(db: Database):
    db.conn.execute("INSERT INTO products (name, price, stock_qty) VALUES ('Gear', 3.0, 1)")
    db.conn.execute("UPDATE products SET updated_at = '2000-01-01 00:00:00'")

    row = db.conn.execute("SELECT updated_at FROM products").fetchone()
    assert row["updated_at"] != "2000-01-01 00:00:00"


def test_use_before_initialize_fails_fast(db_path: Path):
    database = Database(db_path)
    with pytest.raises(NotInitializedError):
        get_products(database)


def test_use_after_close_fails_fast(db: Database):
    db.close()
    with pytest.raises(NotInitializedError):
        _ = db.conn


def test_unopenable_path_raises_init_error(tmp_path: Path):
    directory = tmp_path / "not_a_file"
    directory.mkdir()

    with pytest.raises(DatabaseInitError):
        Database(directory).initialize()


def test_in_memory_database():
    with Database(":memory:") as database:
        assert database.is_initialized
        assert get_products(database) == []


def test_writer_on_another_thread_waits_for_open_transaction(db: Database):
    started = threading.Event()

    def other_session():
        started.wait(timeout=5)
        save_product(db, Product(name="Tea", price=1.0))

    worker = threading.Thread(target=other_session)
    worker.start()

    with pytest.raises(RuntimeError):
        with db.transaction() as conn:
            conn.execute("INSERT INTO products (name, price, stock_qty) VALUES ('Ghost', 1.0, 0)")
            started.set()
            worker.join(timeout=0.3)
            assert worker.is_alive()
            raise RuntimeError("abort")

    worker.join(timeout=5)
    assert not worker.is_alive()
    assert [p.name for p in get_products(db)] == ["Tea"]

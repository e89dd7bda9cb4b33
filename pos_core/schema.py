from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

TABLES = ("sale_items", "sales", "customers", "products")

SCHEMA_SQL = r"""
-- Inventory products
CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  price REAL NOT NULL DEFAULT 0,
  stock_qty INTEGER NOT NULL DEFAULT 0,  -- may go negative, callers check sufficiency
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
  updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Customers (not unique: matched by name + contact on sale)
CREATE TABLE IF NOT EXISTS customers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  contact TEXT,
  address TEXT,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
  updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Sales (one row = one invoice, customer fields are a snapshot)
CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  invoice_number TEXT,                   -- YYMMDDnnn, immutable once assigned
  customer_id INTEGER,
  customer_name TEXT NOT NULL,
  customer_contact TEXT,
  customer_address TEXT,
  subtotal REAL NOT NULL,
  total REAL NOT NULL,
  date DATETIME NOT NULL,                -- ISO created-at
  order_date DATETIME,                   -- ISO business date, may be backdated
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
  FOREIGN KEY (customer_id) REFERENCES customers (id) ON DELETE SET NULL
);

-- Sale line items (product_id is a soft reference: int or custom text id)
CREATE TABLE IF NOT EXISTS sale_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  product_name TEXT NOT NULL,
  quantity INTEGER NOT NULL CHECK (quantity > 0),
  unit_price REAL NOT NULL,
  discount REAL NOT NULL DEFAULT 0,
  line_total REAL NOT NULL,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
  FOREIGN KEY (sale_id) REFERENCES sales (id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_products_name ON products (name);
CREATE INDEX IF NOT EXISTS idx_customers_name ON customers (name);
CREATE INDEX IF NOT EXISTS idx_sales_date ON sales (date);
CREATE INDEX IF NOT EXISTS idx_sale_items_sale_id ON sale_items (sale_id);
CREATE INDEX IF NOT EXISTS idx_sale_items_product_id ON sale_items (product_id);

CREATE TRIGGER IF NOT EXISTS update_products_timestamp
  AFTER UPDATE ON products
  BEGIN
    UPDATE products SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
  END;

CREATE TRIGGER IF NOT EXISTS update_customers_timestamp
  AFTER UPDATE ON customers
  BEGIN
    UPDATE customers SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
  END;
"""


@dataclass(frozen=True)
class ColumnMigration:
    table: str
    column: str
    definition: str
    backfill: Optional[str] = None
    required: bool = True


@dataclass(frozen=True)
class IndexStep:
    name: str
    sql: str
    required: bool = True


# Order matters: invoice_number backfill reads order_date.
COLUMN_MIGRATIONS: tuple[ColumnMigration, ...] = (
    ColumnMigration(
        table="sales",
        column="order_date",
        definition="DATETIME",
        backfill="UPDATE sales SET order_date = date WHERE order_date IS NULL;",
    ),
    ColumnMigration(
        table="sales",
        column="invoice_number",
        definition="TEXT",
        backfill="""
        UPDATE sales
        SET invoice_number =
            substr(order_date, 3, 2) || substr(order_date, 6, 2) || substr(order_date, 9, 2)
            || printf('%03d', (
                SELECT COUNT(1) FROM sales AS prior
                WHERE substr(prior.order_date, 1, 10) = substr(sales.order_date, 1, 10)
                  AND prior.id <= sales.id
            ))
        WHERE invoice_number IS NULL;
        """,
    ),
    ColumnMigration(
        table="sale_items",
        column="discount",
        definition="REAL NOT NULL DEFAULT 0",
    ),
)

# Indexes on migrated columns can only be created once the columns exist.
POST_MIGRATION_INDEXES: tuple[IndexStep, ...] = (
    IndexStep(
        name="idx_sales_order_date",
        sql="CREATE INDEX IF NOT EXISTS idx_sales_order_date ON sales (order_date);",
    ),
    # Legacy data may already hold duplicates; the app still starts without it.
    IndexStep(
        name="idx_sales_invoice_number",
        sql="CREATE UNIQUE INDEX IF NOT EXISTS idx_sales_invoice_number ON sales (invoice_number);",
        required=False,
    ),
)

"""Shared pytest fixtures for the POS invoicing tests."""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest

# Ensure the package and the Streamlit scripts are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pos_core.db import Database  # noqa: E402
from pos_core.models import Customer, Product, Sale, SaleItem  # noqa: E402
from pos_core.services.products import get_product_by_id, save_product  # noqa: E402


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root path."""

    return PROJECT_ROOT


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "pos.db"


@pytest.fixture
def db(db_path: Path) -> Iterator[Database]:
    """An initialized database in a temporary folder."""

    database = Database(db_path).initialize()
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def widget(db: Database) -> Product:
    """The canonical inventory product: Widget at 10.00 with 20 on hand."""

    product_id = save_product(db, Product(name="Widget", price=10.00, stock_qty=20))
    return get_product_by_id(db, product_id)


@pytest.fixture
def make_sale() -> Callable[..., Sale]:
    """Build a Sale with sensible defaults for a single line."""

    def _make(
        *items: SaleItem,
        customer: Optional[Customer] = None,
        order_date: str = "2025-09-10",
        date: Optional[str] = None,
    ) -> Sale:
        return Sale(
            customer=customer or Customer(name="Alice", contact="555-0100", address="1 Main St"),
            items=list(items),
            order_date=order_date,
            date=date,
        )

    return _make


def stock_of(db: Database, product_id: int) -> int:
    return get_product_by_id(db, product_id).stock_qty


def count_rows(db: Database, table: str) -> int:
    return int(db.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])


def raw_connect(path: Path) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn

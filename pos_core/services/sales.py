from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from pos_core.db import Database, q, x, xc
from pos_core.errors import SaleNotFoundError
from pos_core.models import Customer, ProductId, Sale, SaleItem
from pos_core.services.customers import find_or_create_customer
from pos_core.services.invoice import next_invoice_number, parse_order_date
from pos_core.services.stock import apply_sale_items, restore_sale_items
from pos_core.utils import DateLike, is_date_only, iso_now, normalize_iso

log = logging.getLogger(__name__)

_SALE_COLUMNS = """
    id, invoice_number, customer_id, customer_name, customer_contact, customer_address,
    subtotal, total, date, order_date
"""


def _stored_product_id(value) -> ProductId:
    if isinstance(value, int):
        return value
    s = str(value)
    return int(s) if s.isdigit() else s


def _sale_dates(sale: Sale) -> tuple[str, str]:
    created = normalize_iso(sale.date) if sale.date else iso_now()
    order = parse_order_date(sale.order_date).isoformat() if sale.order_date else created
    return created, order


# -------------------------
# Writers
# -------------------------

def _insert_items(conn: sqlite3.Connection, sale_id: int, items: list[SaleItem], *, adjust_stock: bool) -> None:
    for item in items:
        x(
            conn,
            """
            INSERT INTO sale_items (
                sale_id, product_id, product_name, quantity, unit_price, discount, line_total
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(sale_id),
                item.product_id,
                str(item.product_name),
                int(item.quantity),
                float(item.unit_price),
                float(item.discount or 0.0),
                float(item.line_total),
            ),
        )
        if adjust_stock:
            apply_sale_items(conn, [item])


def create_sale(db: Database, sale: Sale, *, adjust_stock: bool = True) -> int:
    """Persist a sale with its items in one transaction and return its id.

    Resolves (or creates) the customer, numbers the invoice from
    ``sale.order_date`` and decrements stock for inventory items. Any failure
    rolls the whole thing back: the caller sees a complete sale or nothing.

    ``adjust_stock=False`` records history without touching stock, for
    imports whose product quantities already account for the sales.
    """
    sale.recalculate()
    created, order = _sale_dates(sale)
    customer = sale.customer

    with db.transaction() as conn:
        customer_id = find_or_create_customer(conn, customer)
        invoice_number = next_invoice_number(conn, order)

        sale_id = x(
            conn,
            """
            INSERT INTO sales (
                invoice_number, customer_id, customer_name, customer_contact, customer_address,
                subtotal, total, date, order_date
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                invoice_number,
                int(customer_id),
                customer.name,
                customer.contact,
                customer.address,
                float(sale.subtotal),
                float(sale.total),
                created,
                order,
            ),
        )
        _insert_items(conn, sale_id, sale.items, adjust_stock=adjust_stock)

    log.info("Sale %s created with invoice %s (%d items).", sale_id, invoice_number, len(sale.items))
    return int(sale_id)


save_sale = create_sale


def update_sale(db: Database, sale: Sale) -> None:
    """Replace a sale's fields and its whole item set in one transaction.

    Stock taken by the old items is put back before the new items take
    theirs. The invoice number never changes. Raises SaleNotFoundError when
    ``sale.id`` does not exist; nothing is written in that case.
    """
    if sale.id is None:
        raise SaleNotFoundError("Sale has no id.")

    sale.recalculate()
    customer = sale.customer

    with db.transaction() as conn:
        existing = q(conn, "SELECT date, order_date FROM sales WHERE id=?", (int(sale.id),))
        if not existing:
            raise SaleNotFoundError(f"Sale {sale.id} not found.")

        created = normalize_iso(sale.date) if sale.date else existing[0]["date"]
        order = parse_order_date(sale.order_date).isoformat() if sale.order_date else existing[0]["order_date"]

        old_items = _load_items(conn, int(sale.id))
        restore_sale_items(conn, old_items)
        xc(conn, "DELETE FROM sale_items WHERE sale_id=?", (int(sale.id),))

        customer_id = find_or_create_customer(conn, customer)
        xc(
            conn,
            """
            UPDATE sales SET
                customer_id=?, customer_name=?, customer_contact=?, customer_address=?,
                subtotal=?, total=?, date=?, order_date=?
            WHERE id=?
            """,
            (
                int(customer_id),
                customer.name,
                customer.contact,
                customer.address,
                float(sale.subtotal),
                float(sale.total),
                created,
                order,
                int(sale.id),
            ),
        )
        _insert_items(conn, int(sale.id), sale.items, adjust_stock=True)

    log.info("Sale %s updated (%d items replaced by %d).", sale.id, len(old_items), len(sale.items))


# -------------------------
# Readers
# -------------------------

def _load_items(conn: sqlite3.Connection, sale_id: int) -> list[SaleItem]:
    rows = q(
        conn,
        """
        SELECT product_id, product_name, quantity, unit_price, discount, line_total
        FROM sale_items
        WHERE sale_id=?
        ORDER BY id
        """,
        (int(sale_id),),
    )
    return [
        SaleItem(
            product_id=_stored_product_id(r["product_id"]),
            product_name=str(r["product_name"]),
            quantity=int(r["quantity"]),
            unit_price=float(r["unit_price"]),
            discount=float(r["discount"] or 0.0),
            line_total=float(r["line_total"]),
        )
        for r in rows
    ]


def _row_to_sale(conn: sqlite3.Connection, r: sqlite3.Row) -> Sale:
    return Sale(
        id=int(r["id"]),
        invoice_number=r["invoice_number"],
        customer_id=r["customer_id"],
        customer=Customer(
            name=str(r["customer_name"]),
            contact=r["customer_contact"],
            address=r["customer_address"],
        ),
        items=_load_items(conn, int(r["id"])),
        subtotal=float(r["subtotal"]),
        total=float(r["total"]),
        date=r["date"],
        order_date=r["order_date"],
    )


def get_sale_by_id(db: Database, sale_id: int) -> Optional[Sale]:
    conn = db.conn
    rows = q(conn, f"SELECT {_SALE_COLUMNS} FROM sales WHERE id=?", (int(sale_id),))
    return _row_to_sale(conn, rows[0]) if rows else None


def get_sales(db: Database) -> list[Sale]:
    """All sales, newest entry first (by created-at, not order date)."""
    conn = db.conn
    rows = q(conn, f"SELECT {_SALE_COLUMNS} FROM sales ORDER BY date DESC, id DESC")
    return [_row_to_sale(conn, r) for r in rows]


def _range_bound(value: DateLike, *, end: bool) -> str:
    s = normalize_iso(value)
    if end and is_date_only(value):
        # Cover the whole last day.
        s = s[:10] + "T23:59:59.999999"
    return s


def get_sales_by_date_range(db: Database, start: DateLike, end: DateLike) -> list[Sale]:
    """
    Sales whose created-at ``date`` lies in [start, end], newest first.
    Order-date filtering is done in memory (see services.reports.filter_sales).
    """
    conn = db.conn
    rows = q(
        conn,
        f"""
        SELECT {_SALE_COLUMNS}
        FROM sales
        WHERE date >= ? AND date <= ?
        ORDER BY date DESC, id DESC
        """,
        (_range_bound(start, end=False), _range_bound(end, end=True)),
    )
    return [_row_to_sale(conn, r) for r in rows]


def get_total_sales_amount(db: Database) -> float:
    rows = q(db.conn, "SELECT COALESCE(SUM(total), 0) AS total FROM sales")
    return float(rows[0]["total"])

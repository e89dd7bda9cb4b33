from __future__ import annotations

import sqlite3
from typing import Optional

from pos_core.db import Database, q, x, xc
from pos_core.errors import CustomerNotFoundError
from pos_core.models import Customer


def _row_to_customer(r: sqlite3.Row) -> Customer:
    return Customer(
        id=int(r["id"]),
        name=str(r["name"]),
        contact=r["contact"],
        address=r["address"],
    )


def _insert_customer(conn: sqlite3.Connection, customer: Customer) -> int:
    if not customer.name:
        raise ValueError("Customer name is required.")
    return x(
        conn,
        "INSERT INTO customers (name, contact, address) VALUES (?, ?, ?)",
        (customer.name, customer.contact, customer.address),
    )


def find_or_create_customer(conn: sqlite3.Connection, customer: Customer) -> int:
    """
    Best-effort dedup: reuse a customer only on an exact (name, contact) match,
    where a missing contact matches a missing contact. This is a heuristic,
    not a constraint; same name with another contact makes a new row.
    """
    rows = q(
        conn,
        "SELECT id FROM customers WHERE name=? AND contact IS ? ORDER BY id LIMIT 1",
        (customer.name, customer.contact),
    )
    if rows:
        return int(rows[0]["id"])
    return _insert_customer(conn, customer)


def save_customer(db: Database, customer: Customer) -> int:
    with db.transaction() as conn:
        return _insert_customer(conn, customer)


def get_customers(db: Database) -> list[Customer]:
    rows = q(db.conn, "SELECT id, name, contact, address FROM customers ORDER BY name, id")
    # Guard against rows without a usable primary key.
    return [_row_to_customer(r) for r in rows if isinstance(r["id"], int)]


def get_customer_by_id(db: Database, customer_id: int) -> Optional[Customer]:
    rows = q(db.conn, "SELECT id, name, contact, address FROM customers WHERE id=?", (int(customer_id),))
    return _row_to_customer(rows[0]) if rows else None


def update_customer(db: Database, customer: Customer) -> None:
    """Edit the customer record. Past sales keep their own snapshot."""
    if customer.id is None:
        raise CustomerNotFoundError("Customer has no id.")
    if not customer.name:
        raise ValueError("Customer name is required.")
    with db.transaction() as conn:
        n = xc(
            conn,
            "UPDATE customers SET name=?, contact=?, address=? WHERE id=?",
            (customer.name, customer.contact, customer.address, int(customer.id)),
        )
    if n == 0:
        raise CustomerNotFoundError(f"Customer {customer.id} not found.")


def delete_customer(db: Database, customer_id: int) -> bool:
    # sales.customer_id is ON DELETE SET NULL; the snapshot columns stay.
    with db.transaction() as conn:
        return xc(conn, "DELETE FROM customers WHERE id=?", (int(customer_id),)) > 0

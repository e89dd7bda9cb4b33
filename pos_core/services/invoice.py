from __future__ import annotations

import sqlite3
from datetime import datetime

from pos_core.db import q
from pos_core.errors import InvalidOrderDateError, InvoiceSequenceExhaustedError
from pos_core.utils import DateLike, parse_iso

SEQ_WIDTH = 3
MAX_SEQ = 10**SEQ_WIDTH - 1


def parse_order_date(order_date: DateLike) -> datetime:
    try:
        return parse_iso(order_date)
    except (TypeError, ValueError) as exc:
        raise InvalidOrderDateError(f"Unparseable order date: {order_date!r}") from exc


def invoice_prefix(order_date: DateLike) -> str:
    """YYMMDD of the order date's calendar day, as written (no tz shift)."""
    return parse_order_date(order_date).strftime("%y%m%d")


def format_invoice_number(prefix: str, seq: int) -> str:
    return f"{prefix}{seq:0{SEQ_WIDTH}d}"


def _suffix(invoice_number: str, prefix: str) -> int:
    tail = str(invoice_number)[len(prefix):]
    return int(tail) if tail.isdigit() else 0


def next_invoice_number(conn: sqlite3.Connection, order_date: DateLike) -> str:
    """
    Sequential, order-day scoped invoice number:
      {YYMMDD}{NNN}

    Example:
      250910001

    Must be called inside the transaction that inserts the sale, so the
    read-then-insert cannot interleave with another writer.
    """
    dt = parse_order_date(order_date)
    prefix = dt.strftime("%y%m%d")
    day = dt.date().isoformat()

    rows = q(
        conn,
        """
        SELECT invoice_number
        FROM sales
        WHERE substr(order_date, 1, 10) = ?
          AND invoice_number LIKE ?
        """,
        (day, prefix + "%"),
    )
    last = max((_suffix(r["invoice_number"], prefix) for r in rows), default=0)
    seq = last + 1

    # A sale whose order date was edited keeps its number, so the candidate
    # may already be taken by a row now sitting on another day.
    while seq <= MAX_SEQ:
        candidate = format_invoice_number(prefix, seq)
        taken = q(conn, "SELECT 1 FROM sales WHERE invoice_number=? LIMIT 1", (candidate,))
        if not taken:
            return candidate
        seq += 1

    raise InvoiceSequenceExhaustedError(f"No invoice numbers left for {day}.")

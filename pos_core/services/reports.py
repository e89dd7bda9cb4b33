"""In-memory views over fetched sales.

The sales history screen fetches everything once and filters locally: by a
free-text customer search and, independently, by created-at or order-date
range. The pandas frames back the history table and the daily totals chart.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional

import pandas as pd

from pos_core.models import Sale
from pos_core.utils import DateLike, is_date_only, parse_iso

DATE_FIELDS = ("date", "order_date")


@dataclass
class SalesFilter:
    search_query: str = ""
    start: Optional[DateLike] = None
    end: Optional[DateLike] = None
    date_field: str = "date"
    date_range_active: bool = False


def _naive(dt: datetime) -> datetime:
    # Compare wall-clock values; stored timestamps mix naive and UTC-offset forms.
    return dt.replace(tzinfo=None)


def _bounds(f: SalesFilter) -> tuple[Optional[datetime], Optional[datetime]]:
    start = _naive(parse_iso(f.start)) if f.start is not None else None
    end = None
    if f.end is not None:
        end = _naive(parse_iso(f.end))
        if is_date_only(f.end):
            end = datetime.combine(end.date(), time.max)
    return start, end


def filter_sales(sales: list[Sale], f: SalesFilter) -> list[Sale]:
    """Apply the date range (if active) and the customer search, newest first."""
    if f.date_field not in DATE_FIELDS:
        raise ValueError(f"date_field must be one of {DATE_FIELDS}.")

    out = list(sales)

    if f.date_range_active:
        start, end = _bounds(f)
        kept = []
        for s in out:
            raw = getattr(s, f.date_field)
            if not raw:
                continue
            when = _naive(parse_iso(raw))
            if start is not None and when < start:
                continue
            if end is not None and when > end:
                continue
            kept.append(s)
        out = kept

    query = f.search_query.strip().lower()
    if query:
        out = [
            s
            for s in out
            if query in s.customer.name.lower() or query in (s.customer.contact or "").lower()
        ]

    out.sort(key=lambda s: _naive(parse_iso(s.date)) if s.date else datetime.min, reverse=True)
    return out


def sales_frame(sales: list[Sale]) -> pd.DataFrame:
    cols = ["id", "invoice_number", "date", "order_date", "customer", "contact", "items", "total"]
    df = pd.DataFrame(
        [
            {
                "id": s.id,
                "invoice_number": s.invoice_number,
                "date": s.date,
                "order_date": s.order_date,
                "customer": s.customer.name,
                "contact": s.customer.contact,
                "items": len(s.items),
                "total": s.total,
            }
            for s in sales
        ],
        columns=cols,
    )
    df["total"] = pd.to_numeric(df["total"], errors="coerce")
    return df


def sale_items_frame(sales: list[Sale]) -> pd.DataFrame:
    cols = [
        "invoice_number", "date", "customer", "product_id", "product",
        "quantity", "unit_price", "discount", "line_total",
    ]
    rows = []
    for s in sales:
        for item in s.items:
            rows.append(
                {
                    "invoice_number": s.invoice_number,
                    "date": s.date,
                    "customer": s.customer.name,
                    "product_id": str(item.product_id),
                    "product": item.product_name,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "discount": item.discount,
                    "line_total": item.line_total,
                }
            )
    return pd.DataFrame(rows, columns=cols)


def daily_totals(sales: list[Sale], *, date_field: str = "order_date") -> pd.DataFrame:
    """Sum of totals and invoice count per calendar day of ``date_field``."""
    if date_field not in DATE_FIELDS:
        raise ValueError(f"date_field must be one of {DATE_FIELDS}.")

    df = sales_frame(sales)
    if df.empty:
        return pd.DataFrame(columns=["day", "invoices", "total"])

    df["day"] = df[date_field].astype(str).str.slice(0, 10)
    out = (
        df.groupby("day", as_index=False)
        .agg(invoices=("id", "count"), total=("total", "sum"))
        .sort_values("day")
        .reset_index(drop=True)
    )
    out["total"] = out["total"].round(2)
    return out

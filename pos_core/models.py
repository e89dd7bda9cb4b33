from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from pos_core.utils import clean_text

ProductId = Union[int, str]


@dataclass
class Product:
    name: str
    price: float
    stock_qty: int = 0
    id: Optional[int] = None


@dataclass
class Customer:
    name: str
    contact: Optional[str] = None
    address: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        self.name = str(self.name).strip()
        self.contact = clean_text(self.contact)
        self.address = clean_text(self.address)


def compute_line_total(quantity: int, unit_price: float, discount: float = 0.0) -> float:
    """quantity x unit_price, less a percentage discount, to 2 decimals."""
    d = float(discount or 0.0)
    if d < 0 or d > 100:
        raise ValueError("Discount must be between 0 and 100 percent.")
    return round(int(quantity) * float(unit_price) * (1.0 - d / 100.0), 2)


@dataclass
class SaleItem:
    product_id: ProductId
    product_name: str
    quantity: int
    unit_price: float
    discount: float = 0.0
    line_total: Optional[float] = None

    def __post_init__(self) -> None:
        # Digit strings name inventory rows; keep them as the int the table stores.
        if isinstance(self.product_id, str) and self.product_id.strip().isdigit():
            self.product_id = int(self.product_id.strip())
        if self.line_total is None:
            self.line_total = compute_line_total(self.quantity, self.unit_price, self.discount)


@dataclass
class SaleTotals:
    subtotal: float
    total: float
    item_count: int
    total_quantity: int


def sale_totals(items: list[SaleItem]) -> SaleTotals:
    subtotal = round(sum(float(i.line_total or 0.0) for i in items), 2)
    # No tax or sale-level discount is persisted: total mirrors subtotal.
    return SaleTotals(
        subtotal=subtotal,
        total=subtotal,
        item_count=len(items),
        total_quantity=sum(int(i.quantity) for i in items),
    )


@dataclass
class Sale:
    """An invoice: customer snapshot, ordered line items and totals.

    ``date`` is when the sale was entered, ``order_date`` the business date
    the invoice number is scoped to. Both default to "now" when the writer
    persists the sale. ``subtotal``/``total`` are derived from the items when
    left as None, and the writers re-derive them after the items change
    unless they were set by hand.
    """

    customer: Customer
    items: list[SaleItem] = field(default_factory=list)
    order_date: Optional[str] = None
    date: Optional[str] = None
    subtotal: Optional[float] = None
    total: Optional[float] = None
    id: Optional[int] = None
    invoice_number: Optional[str] = None
    customer_id: Optional[int] = None

    # Totals last derived from the items; None once the caller set them by hand.
    _derived: Optional[tuple[float, float]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        totals = sale_totals(self.items)
        if self.subtotal is None:
            self.subtotal = totals.subtotal
        if self.total is None:
            self.total = self.subtotal
        if (self.subtotal, self.total) == (totals.subtotal, totals.total):
            self._derived = (self.subtotal, self.total)

    def recalculate(self) -> None:
        """Re-derive subtotal and total from the current items.

        Totals the caller assigned explicitly (at construction or later) are
        left alone.
        """
        if self._derived is None or (self.subtotal, self.total) != self._derived:
            self._derived = None
            return
        totals = sale_totals(self.items)
        self.subtotal, self.total = totals.subtotal, totals.total
        self._derived = (self.subtotal, self.total)

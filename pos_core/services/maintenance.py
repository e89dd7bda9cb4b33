from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pos_core.db import Database, drop_tables, ensure_schema, q
from pos_core.errors import PosError
from pos_core.models import Customer, Product, Sale, SaleItem
from pos_core.schema import TABLES
from pos_core.services.products import save_product
from pos_core.services.sales import create_sale

log = logging.getLogger(__name__)

IMPORTED_SUFFIX = ".imported"


def clear_all_data(db: Database) -> None:
    # Keep schema, delete data (children first for FKs).
    with db.transaction() as conn:
        for t in TABLES:
            conn.execute(f"DELETE FROM {t};")
    log.warning("All data cleared from %s", db.db_path)


def recreate_tables(db: Database) -> None:
    """Drop and rebuild every table. Destructive: for resets only."""
    with db.lock:
        drop_tables(db.conn)
        ensure_schema(db.conn)
    log.warning("Tables recreated in %s", db.db_path)


def table_counts(db: Database) -> dict[str, int]:
    rows = q(
        db.conn,
        """
        SELECT 'products' AS table_name, COUNT(*) AS n FROM products
        UNION ALL SELECT 'customers', COUNT(*) FROM customers
        UNION ALL SELECT 'sales', COUNT(*) FROM sales
        UNION ALL SELECT 'sale_items', COUNT(*) FROM sale_items
        """,
    )
    return {str(r["table_name"]): int(r["n"]) for r in rows}


# -------------------------
# Legacy key-value import
# -------------------------

@dataclass
class ImportResult:
    success: bool
    message: str
    products: int = 0
    sales: int = 0


def _marker_for(path: Path) -> Path:
    return path.with_name(path.name + IMPORTED_SUFFIX)


def _legacy_item(raw: dict[str, Any], id_map: dict[str, int]) -> SaleItem:
    if not isinstance(raw, dict):
        raise TypeError(f"Sale item is not an object: {raw!r}")
    legacy_id = str(raw.get("productId", ""))
    # Items pointing at products we did not import become custom lines.
    product_id = id_map.get(legacy_id, legacy_id if not legacy_id.isdigit() else f"custom-{legacy_id}")
    return SaleItem(
        product_id=product_id,
        product_name=str(raw.get("productName") or legacy_id),
        quantity=int(raw["quantity"]),
        unit_price=float(raw["unitPrice"]),
        discount=float(raw.get("discount") or 0.0),
        line_total=float(raw["lineTotal"]) if raw.get("lineTotal") is not None else None,
    )


def _legacy_sale(raw: dict[str, Any], id_map: dict[str, int]) -> Sale:
    cust = raw.get("customer")
    if not isinstance(cust, dict):
        cust = {}
    raw_items = raw.get("items") or []
    if not isinstance(raw_items, list):
        raise TypeError("Sale items must be a list.")
    items = [_legacy_item(i, id_map) for i in raw_items]
    return Sale(
        customer=Customer(
            name=str(cust.get("name") or "Walk-in"),
            contact=cust.get("contact"),
            address=cust.get("address"),
        ),
        items=items,
        date=raw.get("date"),
        order_date=raw.get("orderDate") or raw.get("date"),
        subtotal=float(raw["subtotal"]) if raw.get("subtotal") is not None else None,
        total=float(raw["total"]) if raw.get("total") is not None else None,
    )


def _records(payload: dict[str, Any], key: str) -> list[Any]:
    records = payload.get(key) or []
    return records if isinstance(records, list) else []


def import_legacy_json(db: Database, path: Path, *, force: bool = False) -> ImportResult:
    """
    One-shot import of the old key-value export: {"products": [...], "sales": [...]}
    with camelCase records. A marker file next to the export stops a second run.

    Products keep their stock figures as exported; sales are recorded without
    touching stock because those figures already reflect them. A record that
    fails is logged and skipped so the rest still lands.
    """
    path = Path(path)
    marker = _marker_for(path)
    if marker.exists() and not force:
        return ImportResult(success=True, message="Import already completed.")

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.error("Legacy import failed reading %s: %s", path, exc)
        return ImportResult(success=False, message=f"Import failed: {exc}")
    if not isinstance(payload, dict):
        log.error("Legacy import failed: %s does not hold a JSON object", path)
        return ImportResult(success=False, message="Import failed: expected a JSON object with products and sales.")

    id_map: dict[str, int] = {}
    n_products = 0
    for pos, raw in enumerate(_records(payload, "products")):
        if not isinstance(raw, dict):
            log.warning("Skipping product record %d: not an object", pos)
            continue
        try:
            new_id = save_product(
                db,
                Product(
                    name=str(raw["name"]),
                    price=float(raw.get("price") or 0.0),
                    stock_qty=int(raw.get("stockQty") or 0),
                ),
            )
        except (KeyError, TypeError, ValueError, PosError) as exc:
            log.warning("Failed to import product %s: %s", raw.get("id"), exc)
            continue
        if raw.get("id") is not None:
            id_map[str(raw["id"])] = new_id
        n_products += 1

    n_sales = 0
    for pos, raw in enumerate(_records(payload, "sales")):
        if not isinstance(raw, dict):
            log.warning("Skipping sale record %d: not an object", pos)
            continue
        try:
            create_sale(db, _legacy_sale(raw, id_map), adjust_stock=False)
        except (KeyError, TypeError, ValueError, PosError) as exc:
            log.warning("Failed to import sale %s: %s", raw.get("id"), exc)
            continue
        n_sales += 1

    marker.write_text("true", encoding="utf-8")
    message = f"Import completed. Imported {n_products} products and {n_sales} sales."
    log.info(message)
    return ImportResult(success=True, message=message, products=n_products, sales=n_sales)


def reset_import(db: Database, path: Path) -> None:
    """Forget a previous import and wipe the data it produced."""
    marker = _marker_for(Path(path))
    if marker.exists():
        marker.unlink()
    clear_all_data(db)


def legacy_import_done(path: Optional[Path]) -> bool:
    return bool(path) and _marker_for(Path(path)).exists()

"""
Ingestion of invoice and stock workbooks

Loads the billing export and the stock table from Excel into PostgreSQL.
Cells are coerced column by column (numbers, integers, trimmed text, dates
including Excel serials); invoice rows without a billing document or line
number are rejected. Invoices are insert-only, stock is an upsert keyed by
material.

Author: TM3
Date: 2025-11-04
"""
import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from psycopg2.extras import execute_values

from ainoc.core.database import get_db_connection
from ainoc.repositories.filters import normalize_date

logger = logging.getLogger(__name__)

BATCH_SIZE = 500

INVOICE_SHEET = "sampledataformodelupdated1"
STOCK_SHEET = "stocktable"

# Excel day 0; 1900 leap-year bug included
EXCEL_EPOCH = date(1899, 12, 30)

# Workbook headers that differ from table columns
COLUMN_RENAMES = {
    "Invoice_Date": "invoice_date",
    "Ainocular_shade": "ainocular_shade",
    "Ainocular_shade_description": "ainocular_shade_description",
    "Ainocular_design": "ainocular_design",
    "Ainocular_design_description": "ainocular_design_description",
}


# ============================================================================
# Cell coercion
# ============================================================================

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return isinstance(value, str) and value.strip() == ""


def to_numeric(value: Any) -> Optional[float]:
    """Number or numeric string -> float; blanks and junk -> None."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def to_int(value: Any) -> Optional[int]:
    """Like to_numeric, truncated toward zero."""
    number = to_numeric(value)
    return None if number is None else math.trunc(number)


def to_str(value: Any) -> Optional[str]:
    """
    Trimmed text; empty -> None.

    Whole floats are written without the trailing '.0' pandas adds to
    numeric-looking codes (e.g. 91234567.0 -> '91234567').
    """
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def to_date(value: Any) -> Optional[date]:
    """Date, datetime, Excel serial number or date string -> date."""
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return EXCEL_EPOCH + timedelta(days=int(value))
    normalized = normalize_date(str(value))
    return date.fromisoformat(normalized) if normalized else None


# ============================================================================
# Row parsing
# ============================================================================

Coercer = Callable[[Any], Any]

INVOICE_COLUMNS: List[Tuple[str, Coercer]] = [
    ("sales_organization", to_str),
    ("billing_document", to_str),
    ("item", to_int),
    ("invoice_date", to_date),
    ("billing_type", to_str),
    ("plant", to_str),
    ("reference", to_str),
    ("bill_doc_desc", to_str),
    ("document_currency", to_str),
    ("bill_to_party", to_str),
    ("bill_to_party_code", to_str),
    ("bill_to_party_city", to_str),
    ("material", to_str),
    ("basic_price", to_numeric),
    ("billed_quantity", to_numeric),
    ("base_unit_of_measure", to_str),
    ("net_amount_inr", to_numeric),
    ("discount_amount", to_numeric),
    ("taxable_amt", to_numeric),
    ("total_gst_amt", to_numeric),
    ("gross_amt_fc", to_numeric),
    ("tcs_amt", to_numeric),
    ("gross_amount", to_numeric),
    ("document_number", to_str),
    ("fiscal_year", to_int),
    ("document_type", to_str),
    ("no_of_pack", to_int),
    ("description_2_for_the_material_group", to_str),
    ("cust_group_desc", to_str),
    ("profit_center", to_str),
    ("ship_to_party_city", to_str),
    ("commission", to_numeric),
    ("air_freight", to_numeric),
    ("billing_qty_in_sku", to_numeric),
    ("agent_code", to_str),
    ("agent_name", to_str),
    ("agent_state", to_str),
    ("broker_code", to_str),
    ("broker_name", to_str),
    ("stock_type", to_str),
    ("loom_type", to_str),
    ("dyed_type", to_str),
    ("width", to_numeric),
    ("quality", to_str),
    ("design", to_str),
    ("shade_no", to_str),
    ("fabric_type", to_str),
    ("shade_name", to_str),
    ("region_zone", to_str),
    ("book_name", to_str),
    ("book_reference_no", to_str),
    ("ainocular_shade", to_str),
    ("ainocular_shade_description", to_str),
    ("ainocular_design", to_str),
    ("ainocular_design_description", to_str),
    ("colour_family", to_str),
    ("colour_master", to_str),
    ("pattern_scale", to_str),
    ("pattern_name", to_str),
    ("end_use", to_str),
    ("fabric_type_des", to_str),
    ("style", to_str),
    ("gsm", to_numeric),
    ("vertical_repeat", to_numeric),
    ("horizontal_repeat", to_numeric),
    ("composition", to_str),
]

STOCK_COLUMNS: List[Tuple[str, Coercer]] = [
    ("material", to_str),
    ("stock_in_meters", to_numeric),
    ("replenishment_date", to_date),
    ("lead_time_days", to_int),
    ("basic_price", to_numeric),
    ("description_2_for_the_material_group", to_str),
    ("stock_type", to_str),
    ("loom_type", to_str),
    ("dyed_type", to_str),
    ("width", to_numeric),
    ("quality", to_str),
    ("design", to_str),
    ("shade_no", to_str),
    ("fabric_type", to_str),
    ("book_name", to_str),
    ("book_reference_no", to_str),
    ("ainocular_shade", to_str),
    ("ainocular_shade_description", to_str),
    ("ainocular_design", to_str),
    ("ainocular_design_description", to_str),
    ("colour_family", to_str),
    ("colour_master", to_str),
    ("pattern_scale", to_str),
    ("pattern_name", to_str),
    ("end_use", to_str),
    ("fabric_type_description", to_str),
    ("style", to_str),
    ("gsm", to_numeric),
    ("vertical_repeat", to_numeric),
    ("horizontal_repeat", to_numeric),
    ("repeat", to_str),
    ("composition", to_str),
]


def _coerce(raw: Dict[str, Any], columns: Sequence[Tuple[str, Coercer]]) -> Dict[str, Any]:
    return {column: coerce(raw.get(column)) for column, coerce in columns}


def parse_invoice_row(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Coerce one workbook row; None when billing_document or item is missing."""
    row = _coerce(raw, INVOICE_COLUMNS)
    if row["billing_document"] is None or row["item"] is None:
        return None
    return row


def parse_stock_row(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Coerce one stock row; None when material is missing."""
    row = _coerce(raw, STOCK_COLUMNS)
    if row["material"] is None:
        return None
    # Older exports spell this header fabric_typ_des
    if row["fabric_type_description"] is None:
        row["fabric_type_description"] = to_str(raw.get("fabric_type_des")) or to_str(raw.get("fabric_typ_des"))
    return row


# ============================================================================
# Workbook reading
# ============================================================================

def _normalize_sheet_name(name: str) -> str:
    return "".join(name.lower().replace("_", " ").split())


def pick_sheet(sheet_names: Sequence[str], preferred: str) -> str:
    """Sheet whose normalized name matches `preferred`, else the first sheet."""
    if not sheet_names:
        raise ValueError("Workbook has no sheets")
    for name in sheet_names:
        if _normalize_sheet_name(name) == preferred:
            return name
    return sheet_names[0]


def read_workbook_rows(path: str, preferred_sheet: str) -> List[Dict[str, Any]]:
    """Read one sheet into a list of raw row dicts keyed by table column name."""
    workbook = pd.ExcelFile(path, engine="openpyxl")
    sheet = pick_sheet(workbook.sheet_names, preferred_sheet)
    logger.info(f"Using sheet: {sheet}")

    df = workbook.parse(sheet, dtype=object)
    df = df.rename(columns=COLUMN_RENAMES)
    df = df.astype(object).where(pd.notna(df), None)

    logger.info(f"Found {len(df)} rows in sheet {sheet}")
    return df.to_dict(orient="records")


def _batches(rows: List[Dict[str, Any]], size: int = BATCH_SIZE) -> Iterable[List[Dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def dedupe_by_material(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Collapse duplicate materials, keeping the last occurrence."""
    latest: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        latest[row["material"]] = row
    return list(latest.values())


# ============================================================================
# Writes
# ============================================================================

def insert_invoices(conn, raw_rows: List[Dict[str, Any]], dry_run: bool = False) -> Dict[str, int]:
    """
    Insert invoice lines in batches; existing (billing_document, item) pairs
    are left untouched.

    Returns:
        {'read', 'rejected', 'inserted'}
    """
    parsed = [parse_invoice_row(raw) for raw in raw_rows]
    rows = [row for row in parsed if row is not None]
    stats = {"read": len(raw_rows), "rejected": len(raw_rows) - len(rows), "inserted": 0}

    if stats["rejected"]:
        logger.warning(f"Rejected {stats['rejected']} invoice rows without billing_document/item")

    columns = [column for column, _ in INVOICE_COLUMNS]
    query = (
        f"INSERT INTO invoice ({', '.join(columns)}) VALUES %s "
        "ON CONFLICT (billing_document, item) DO NOTHING"
    )

    cursor = conn.cursor()
    try:
        for batch in _batches(rows):
            values = [tuple(row[column] for column in columns) for row in batch]
            if dry_run:
                logger.info(f"[dry-run] Would insert {len(values)} invoice rows")
                continue
            execute_values(cursor, query, values, page_size=BATCH_SIZE)
            stats["inserted"] += max(cursor.rowcount, 0)
            conn.commit()
            logger.info(f"Inserted batch of {len(values)} invoice rows")
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()

    return stats


def upsert_stock(conn, raw_rows: List[Dict[str, Any]], dry_run: bool = False) -> Dict[str, int]:
    """
    Upsert stock rows keyed by material. Within one import the last row for
    a material wins.

    Returns:
        {'read', 'rejected', 'upserted'}
    """
    parsed = [parse_stock_row(raw) for raw in raw_rows]
    valid = [row for row in parsed if row is not None]
    rows = dedupe_by_material(valid)
    stats = {"read": len(raw_rows), "rejected": len(raw_rows) - len(valid), "upserted": 0}

    if len(rows) < len(valid):
        logger.info(f"Collapsed {len(valid) - len(rows)} duplicate materials")

    columns = [column for column, _ in STOCK_COLUMNS]
    updates = ", ".join(f"{column} = EXCLUDED.{column}" for column in columns if column != "material")
    query = (
        f"INSERT INTO stock ({', '.join(columns)}) VALUES %s "
        f"ON CONFLICT (material) DO UPDATE SET {updates}"
    )

    cursor = conn.cursor()
    try:
        for batch in _batches(rows):
            values = [tuple(row[column] for column in columns) for row in batch]
            if dry_run:
                logger.info(f"[dry-run] Would upsert {len(values)} stock rows")
                continue
            execute_values(cursor, query, values, page_size=BATCH_SIZE)
            stats["upserted"] += len(values)
            conn.commit()
            logger.info(f"Upserted batch of {len(values)} stock rows")
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()

    return stats


def import_invoice_workbook(path: str, dry_run: bool = False) -> Dict[str, int]:
    rows = read_workbook_rows(path, INVOICE_SHEET)
    conn = get_db_connection()
    try:
        return insert_invoices(conn, rows, dry_run=dry_run)
    finally:
        conn.close()


def import_stock_workbook(path: str, dry_run: bool = False) -> Dict[str, int]:
    rows = read_workbook_rows(path, STOCK_SHEET)
    conn = get_db_connection()
    try:
        return upsert_stock(conn, rows, dry_run=dry_run)
    finally:
        conn.close()

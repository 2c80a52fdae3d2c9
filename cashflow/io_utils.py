"""
io_utils.py

Input/Output utilities for the project.

Responsibilities:
- Read an invoice spreadsheet and turn it into dated income transactions
  (due date = invoice date + payment term, optionally normalized with the
  special collection schedule).
- Undo an import by removing everything tagged with its source tab.
- Load and save a JSON snapshot of all records (backup / hand-off format).

File formats stay in this module so the engine never touches files.
"""

from __future__ import annotations

import datetime as dt
import json
import math
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from cashflow.calendar_utils import parse_date, special_schedule_shift, to_local_ymd
from cashflow.errors import DateParseError, ValidationError
from cashflow.log_utils import get_logger
from cashflow.models import INCOME, Asset, Check, CustomTab, RecurringRule, Transaction

logger = get_logger(__name__)

# Day zero of spreadsheet serial dates expressed against the Unix epoch
_EXCEL_EPOCH_OFFSET = 25569
_UNIX_EPOCH = dt.date(1970, 1, 1)


def column_index(letters: str) -> int:
    """Convert spreadsheet column letters ("A", "F", "AB") to a 0-based index."""
    if not letters:
        return -1
    total = 0
    for ch in letters.strip().upper():
        if not "A" <= ch <= "Z":
            raise ValidationError(f"Invalid column letters: {letters!r}")
        total = total * 26 + (ord(ch) - ord("A") + 1)
    return total - 1


def _cell(row: pd.Series, idx: int) -> Any:
    if idx < 0 or idx >= len(row):
        return None
    value = row.iloc[idx]
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    return value


def _invoice_date(raw: Any) -> dt.date:
    if isinstance(raw, (int, float, np.integer, np.floating)) and not isinstance(raw, bool):
        days = math.floor(float(raw) - _EXCEL_EPOCH_OFFSET)
        return _UNIX_EPOCH + dt.timedelta(days=days)
    return parse_date(raw)


def _amount(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return value if np.isfinite(value) else 0.0


def preview_invoice_rows(
    frame: pd.DataFrame,
    term_days: int = 60,
    apply_special_schedule: bool = False,
    customer_column: str = "F",
    date_column: str = "I",
    amount_column: str = "Y",
    unknown_customer: str = "Unknown",
) -> List[Dict[str, Any]]:
    """
    Build collection rows from a raw invoice sheet.

    `frame` is the sheet as read with header=None; the first row is the
    header and is skipped. Rows without a usable invoice date are dropped.

    Returns a list of dicts sorted by final_date:
      customer, invoice_date, due_date, final_date, amount
    """
    cust_idx = column_index(customer_column)
    date_idx = column_index(date_column)
    amt_idx = column_index(amount_column)

    rows = []
    for pos in range(1, len(frame)):
        row = frame.iloc[pos]
        raw_date = _cell(row, date_idx)
        if raw_date is None:
            continue
        try:
            invoice_date = _invoice_date(raw_date)
        except DateParseError:
            logger.debug(f"Skipping spreadsheet row {pos + 1}: unparseable date {raw_date!r}")
            continue

        due_date = invoice_date + dt.timedelta(days=int(term_days))
        final_date = special_schedule_shift(due_date) if apply_special_schedule else due_date

        amount = _amount(_cell(row, amt_idx))
        customer = _cell(row, cust_idx)

        rows.append({
            "customer": str(customer) if customer is not None and str(customer).strip() else unknown_customer,
            "invoice_date": to_local_ymd(invoice_date),
            "due_date": to_local_ymd(due_date),
            "final_date": to_local_ymd(final_date),
            "amount": amount,
        })

    return sorted(rows, key=lambda r: r["final_date"])


def read_invoice_sheet(path: Union[str, Path, Any]) -> pd.DataFrame:
    """Load the first sheet of a workbook with no header inference."""
    return pd.read_excel(path, sheet_name=0, header=None)


def transfer_preview(
    rows: List[Dict[str, Any]],
    tab_id: str,
    currency: str = "TL",
    id_factory: Optional[Callable[[str, str], str]] = None,
) -> List[Transaction]:
    """
    Turn preview rows into income transactions tagged with their source tab.

    Rows sharing (final_date, customer) collapse into one transaction whose
    amount is the sum.
    """
    if id_factory is None:
        id_factory = lambda date, customer: f"excel-{tab_id}-{uuid.uuid4().hex}"

    grouped: Dict[Tuple[str, str], float] = {}
    for item in rows:
        key = (item["final_date"], item["customer"])
        grouped[key] = grouped.get(key, 0.0) + float(item["amount"])

    return [
        Transaction(
            id=id_factory(date, customer),
            direction=INCOME,
            date=date,
            amount=amount,
            description=customer,
            currency=currency,
            source="excel",
            source_tab=tab_id,
        )
        for (date, customer), amount in grouped.items()
    ]


def clear_tab_transactions(transactions: List[Transaction], tab_id: str) -> Tuple[List[Transaction], int]:
    """Drop every transaction imported through `tab_id`; returns (kept, removed_count)."""
    kept = [t for t in transactions if t.source_tab != tab_id]
    removed = len(transactions) - len(kept)
    logger.info(f"Removed {removed} transactions imported through tab {tab_id}")
    return kept, removed


def delete_tab(
    tabs: List[CustomTab],
    transactions: List[Transaction],
    tab_id: str,
) -> Tuple[List[CustomTab], List[Transaction]]:
    """Remove a tab together with the transactions imported through it."""
    kept, _ = clear_tab_transactions(transactions, tab_id)
    return [t for t in tabs if t.id != tab_id], kept


@dataclass
class Snapshot:
    assets: List[Asset] = field(default_factory=list)
    checks: List[Check] = field(default_factory=list)
    manual_transactions: List[Transaction] = field(default_factory=list)
    recurring_rules: List[RecurringRule] = field(default_factory=list)
    custom_tabs: List[CustomTab] = field(default_factory=list)


# JSON key -> (Snapshot attribute, record type)
_SNAPSHOT_KEYS = {
    "assets": ("assets", Asset),
    "checks": ("checks", Check),
    "manualTransactions": ("manual_transactions", Transaction),
    "recurringRules": ("recurring_rules", RecurringRule),
    "customTabs": ("custom_tabs", CustomTab),
}


def snapshot_from_dict(data: Dict[str, Any]) -> Snapshot:
    """Build a Snapshot, skipping (and logging) records that fail to load."""
    snapshot = Snapshot()
    for key, (attr, record_cls) in _SNAPSHOT_KEYS.items():
        records = getattr(snapshot, attr)
        for raw in data.get(key) or []:
            try:
                records.append(record_cls.from_dict(raw))
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping malformed {key} record {raw!r}: {e}")
    return snapshot


def load_snapshot(path: Union[str, Path]) -> Snapshot:
    """
    Load a JSON snapshot.

    Raises:
        FileNotFoundError: if the path does not exist.
        json.JSONDecodeError: if the file is not valid JSON.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return snapshot_from_dict(data)


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    return {
        key: [record.to_dict() for record in getattr(snapshot, attr)]
        for key, (attr, _) in _SNAPSHOT_KEYS.items()
    }


def save_snapshot(path: Union[str, Path], snapshot: Snapshot) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(snapshot_to_dict(snapshot), f, ensure_ascii=False, indent=2)

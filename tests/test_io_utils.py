import json

import pandas as pd
import pytest

from cashflow.errors import ValidationError
from cashflow.io_utils import (
    Snapshot,
    clear_tab_transactions,
    column_index,
    delete_tab,
    load_snapshot,
    preview_invoice_rows,
    save_snapshot,
    transfer_preview,
)
from cashflow.models import Asset, Check, CustomTab

from conftest import make_rule, make_tx


def _sheet(rows):
    """Raw sheet with customer in F, invoice date in I and amount in Y."""
    width = column_index("Y") + 1
    data = [[None] * width]
    data[0][5], data[0][8], data[0][24] = "Customer", "Invoice date", "Amount"
    for customer, date, amount in rows:
        row = [None] * width
        row[5], row[8], row[24] = customer, date, amount
        data.append(row)
    return pd.DataFrame(data)


def test_column_index():
    assert column_index("A") == 0
    assert column_index("f") == 5
    assert column_index("Y") == 24
    assert column_index("AA") == 26
    assert column_index("") == -1
    with pytest.raises(ValidationError):
        column_index("A1")


def test_preview_adds_term_days_and_sorts():
    frame = _sheet([
        ("Beta", "2026-09-03", 200),
        ("Acme", "2026-08-22", "150.5"),
    ])
    rows = preview_invoice_rows(frame, term_days=60)
    assert [r["customer"] for r in rows] == ["Acme", "Beta"]
    assert rows[0] == {
        "customer": "Acme",
        "invoice_date": "2026-08-22",
        "due_date": "2026-10-21",
        "final_date": "2026-10-21",
        "amount": 150.5,
    }
    assert rows[1]["final_date"] == "2026-11-02"


def test_preview_applies_special_schedule():
    frame = _sheet([("Acme", "2026-08-22", 100)])
    (row,) = preview_invoice_rows(frame, term_days=60, apply_special_schedule=True)
    # Due on a Wednesday, collected the Monday before
    assert row["due_date"] == "2026-10-21"
    assert row["final_date"] == "2026-10-19"


def test_preview_reads_spreadsheet_serial_dates():
    frame = _sheet([("Acme", 46000, 10)])
    (row,) = preview_invoice_rows(frame, term_days=60, apply_special_schedule=True)
    assert row["invoice_date"] == "2025-12-09"
    assert row["due_date"] == "2026-02-07"
    assert row["final_date"] == "2026-02-09"


def test_preview_skips_bad_rows_and_defaults_fields():
    frame = _sheet([
        ("NoDate", None, 10),
        ("BadDate", "someday", 10),
        (None, "2026-08-22", "n/a"),
    ])
    rows = preview_invoice_rows(frame, term_days=0, unknown_customer="Unknown")
    assert rows == [{
        "customer": "Unknown",
        "invoice_date": "2026-08-22",
        "due_date": "2026-08-22",
        "final_date": "2026-08-22",
        "amount": 0.0,
    }]


def test_transfer_groups_by_date_and_customer():
    rows = [
        {"customer": "Acme", "final_date": "2026-10-26", "amount": 100.0},
        {"customer": "Acme", "final_date": "2026-10-26", "amount": 50.0},
        {"customer": "Beta", "final_date": "2026-10-26", "amount": 20.0},
    ]
    txs = transfer_preview(rows, "tab1", id_factory=lambda date, cust: f"{date}-{cust}")
    assert [(t.id, t.amount) for t in txs] == [("2026-10-26-Acme", 150.0), ("2026-10-26-Beta", 20.0)]
    assert all(t.direction == "income" and t.source == "excel" and t.source_tab == "tab1" for t in txs)


def test_transfer_default_ids_are_unique():
    rows = [
        {"customer": "Acme", "final_date": "2026-10-26", "amount": 1.0},
        {"customer": "Beta", "final_date": "2026-10-26", "amount": 1.0},
    ]
    ids = [t.id for t in transfer_preview(rows, "tab1")]
    assert len(set(ids)) == 2
    assert all(i.startswith("excel-tab1-") for i in ids)


def test_clear_and_delete_tab():
    txs = [
        make_tx("t1", "2026-10-22", 1.0, source="excel", source_tab="tab1"),
        make_tx("t2", "2026-10-22", 1.0, source="excel", source_tab="tab2"),
        make_tx("t3", "2026-10-22", 1.0, source="manual"),
    ]
    kept, removed = clear_tab_transactions(txs, "tab1")
    assert removed == 1
    assert [t.id for t in kept] == ["t2", "t3"]

    tabs, kept = delete_tab([CustomTab("tab1", "Invoices"), CustomTab("tab2", "Other")], txs, "tab2")
    assert [t.id for t in tabs] == ["tab1"]
    assert [t.id for t in kept] == ["t1", "t3"]


def test_snapshot_save_and_load(tmp_path):
    snapshot = Snapshot(
        assets=[Asset("a1", "bank", "Main", "TRY", "TL", 1000.0)],
        checks=[Check.create("c1", "2026-10-24", 300.0, "Acme")],
        manual_transactions=[make_tx("t1", "2026-10-22", 5.0, source_tab="tab1")],
        recurring_rules=[make_rule()],
        custom_tabs=[CustomTab("tab1", "Invoices")],
    )
    path = tmp_path / "backup" / "snapshot.json"
    save_snapshot(path, snapshot)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert set(raw) == {"assets", "checks", "manualTransactions", "recurringRules", "customTabs"}
    assert raw["checks"][0]["effectiveDateStr"] == "2026-10-26"

    assert load_snapshot(path) == snapshot


def test_load_snapshot_skips_malformed_records(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps({
        "assets": [{"id": "a1", "type": "Banka", "amount": 5}, {"type": "Banka"}],
        "checks": [{"id": "c1", "amount": 1}],
        "manualTransactions": [{"id": "t1", "type": "income", "date": "2026-10-22", "amount": "x"}],
    }), encoding="utf-8")

    snapshot = load_snapshot(path)
    assert [a.id for a in snapshot.assets] == ["a1"]
    assert snapshot.checks == []
    assert snapshot.manual_transactions == []
    assert snapshot.recurring_rules == []


def test_load_snapshot_skips_checks_with_bad_collection_dates(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps({
        "checks": [
            {"id": "c1", "dueDateStr": "2026-10-28", "valor": -5, "amount": 10},
            {"id": "c2", "dueDateStr": "2026-10-21", "effectiveDateStr": "2026-10-25", "amount": 10},
            {"id": "c3", "dueDateStr": "2026-10-24", "effectiveDateStr": "2026-10-27", "amount": 10},
        ],
    }), encoding="utf-8")

    snapshot = load_snapshot(path)
    assert [c.id for c in snapshot.checks] == ["c3"]
    assert snapshot.checks[0].effective_date == "2026-10-27"

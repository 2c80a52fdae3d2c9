"""
app.py

Streamlit entrypoint for the cash-flow forecast dashboard.

This app:
1) Loads a JSON snapshot (assets, checks, recurring rules, transactions, tabs)
2) Lets the user pick granularity, view currency and exchange rates
3) Adds and edits checks, recurring rules, manual transactions and import tabs
4) Imports invoice spreadsheets into a tab (optionally with the special
   collection schedule) and undoes imports per tab
5) Projects the running balance daily / weekly / monthly
6) Shows risk metrics, a balance chart, a searchable drill-down and insights
"""

import json
import uuid
from datetime import date

import streamlit as st

from cashflow.calendar_utils import parse_date, to_local_ymd
from cashflow.config import Settings
from cashflow.currency import format_money
from cashflow.errors import CashflowError, InvalidRateError, MissingRateError, ValidationError
from cashflow.forecast import forecast_flow, periods_to_frame
from cashflow.insights import filter_periods, generate_insights, summarize_periods
from cashflow.io_utils import (
    Snapshot,
    clear_tab_transactions,
    delete_tab,
    preview_invoice_rows,
    read_invoice_sheet,
    snapshot_from_dict,
    snapshot_to_dict,
    transfer_preview,
)
from cashflow.log_utils import get_logger, setup_logging
from cashflow.models import (
    EXPENSE,
    FIXED,
    INCOME,
    MONTHLY,
    ORDINAL_NAMES,
    SPECIAL,
    WEEKDAY_NAMES,
    WEEKLY,
    Check,
    CustomTab,
    RecurringRule,
    Transaction,
    toggle_asset,
)

settings = Settings.from_yaml()
setup_logging(
    level=settings.logging.level,
    log_file=settings.logging.file,
    format_type=settings.logging.format,
    enabled=settings.logging.enabled,
)
logger = get_logger(__name__)


def _new_id(kind: str) -> str:
    return f"{kind}-{uuid.uuid4().hex[:12]}"


# -----------------------------
# Page config
# -----------------------------
st.set_page_config(page_title="Cash Flow Forecast", layout="wide")
st.title("Cash Flow Forecast")

if "snapshot" not in st.session_state:
    st.session_state.snapshot = Snapshot()
snapshot: Snapshot = st.session_state.snapshot


# -----------------------------
# Sidebar inputs
# -----------------------------
st.sidebar.header("Inputs")

uploaded = st.sidebar.file_uploader("Load snapshot (JSON)", type=["json"])
if uploaded is not None and st.sidebar.button("Replace current data"):
    try:
        st.session_state.snapshot = snapshot_from_dict(json.load(uploaded))
        snapshot = st.session_state.snapshot
    except (ValueError, TypeError) as e:
        st.sidebar.error(f"Could not read snapshot: {e}")

granularities = ["daily", "weekly", "monthly"]
granularity = st.sidebar.radio(
    "Projection",
    granularities,
    index=granularities.index(settings.default_granularity),
    horizontal=True,
)
view_currency = st.sidebar.selectbox("View currency", settings.currencies)

st.sidebar.subheader(f"Exchange rates (1 unit = N {settings.local_currency})")
rates = {}
for code in settings.foreign_currencies():
    rates[code] = st.sidebar.number_input(
        code,
        value=float(settings.default_rates.get(code, 0.0)),
        min_value=0.0,
        step=0.1,
        format="%.4f",
    )

if snapshot.assets:
    st.sidebar.subheader("Assets in starting balance")
    for asset in snapshot.assets:
        checked = st.sidebar.checkbox(
            f"{asset.name} ({format_money(asset.amount, asset.currency)})",
            value=asset.included,
            key=f"asset-{asset.id}",
        )
        if checked != asset.included:
            snapshot.assets = toggle_asset(snapshot.assets, asset.id)

st.sidebar.download_button(
    "Download snapshot",
    data=json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False, indent=2),
    file_name="cashflow_snapshot.json",
    mime="application/json",
)


# -----------------------------
# Spreadsheet import
# -----------------------------
with st.expander("Import invoices from spreadsheet"):
    imp = settings.spreadsheet_import
    if not snapshot.custom_tabs:
        st.write("No import tabs defined in the snapshot.")
    else:
        tab_names = {t.name: t.id for t in snapshot.custom_tabs}
        tab_id = tab_names[st.selectbox("Tab", list(tab_names))]
        sheet = st.file_uploader("Invoice workbook", type=["xlsx", "xls"])
        term_days = st.number_input("Payment term (days)", value=imp.term_days, step=1)
        special = st.checkbox(
            "Apply special collection schedule (Thu/Fri -> Thursday, otherwise Monday)",
            value=imp.apply_special_schedule,
        )

        if sheet is not None:
            try:
                preview = preview_invoice_rows(
                    read_invoice_sheet(sheet),
                    term_days=int(term_days),
                    apply_special_schedule=special,
                    customer_column=imp.customer_column,
                    date_column=imp.date_column,
                    amount_column=imp.amount_column,
                    unknown_customer=imp.unknown_customer,
                )
            except (ValueError, CashflowError) as e:
                st.error(f"Could not read workbook: {e}")
                preview = []

            st.dataframe(preview, use_container_width=True, height=260)
            if preview and st.button("Transfer to cash flow"):
                new = transfer_preview(preview, tab_id, currency=settings.local_currency)
                snapshot.manual_transactions = snapshot.manual_transactions + new
                logger.info(f"Transferred {len(new)} spreadsheet transactions into tab {tab_id}")
                st.success(f"Transferred {len(new)} transactions.")

        if st.button("Clear transferred data for this tab"):
            snapshot.manual_transactions, removed = clear_tab_transactions(snapshot.manual_transactions, tab_id)
            st.success(f"{removed} transactions removed.")

    st.markdown("**Import tabs**")
    with st.form("new-tab", clear_on_submit=True):
        tab_name = st.text_input("New tab name")
        if st.form_submit_button("Add tab") and tab_name.strip():
            snapshot.custom_tabs = snapshot.custom_tabs + [CustomTab(id=_new_id("tab"), name=tab_name.strip())]
            st.rerun()
    for tab in snapshot.custom_tabs:
        if st.button(f"Delete tab '{tab.name}' and its imported data", key=f"del-tab-{tab.id}"):
            snapshot.custom_tabs, snapshot.manual_transactions = delete_tab(
                snapshot.custom_tabs, snapshot.manual_transactions, tab.id
            )
            st.rerun()


# -----------------------------
# Checks
# -----------------------------
with st.expander(f"Checks ({len(snapshot.checks)})"):
    with st.form("new-check", clear_on_submit=True):
        c1, c2, c3, c4 = st.columns(4)
        due = c1.date_input("Due date", value=date.today(), key="check-due")
        amount = c2.number_input("Amount", min_value=0.0, step=100.0, key="check-amount")
        valor = c3.number_input("Valor (days)", min_value=0, step=1, key="check-valor")
        desc = c4.text_input("Description", key="check-desc")
        if st.form_submit_button("Add check"):
            try:
                check = Check.create(_new_id("check"), due, amount, desc, valor=int(valor))
            except ValidationError as e:
                st.error(str(e))
            else:
                snapshot.checks = snapshot.checks + [check]
                st.success(f"Check added, collected on {check.effective_date}.")

    for i, check in enumerate(snapshot.checks):
        cols = st.columns([3, 2, 2, 1, 1])
        cols[0].write(check.description)
        cols[1].write(format_money(check.amount, settings.local_currency))
        new_due = cols[2].date_input("Due", value=parse_date(check.due_date), key=f"due-{check.id}")
        new_valor = cols[3].number_input("Valor", value=check.valor, min_value=0, step=1, key=f"valor-{check.id}")
        if new_due != parse_date(check.due_date) or new_valor != check.valor:
            snapshot.checks[i] = check.with_changes(due_date=new_due, valor=int(new_valor))
        cols[4].caption(f"collect {snapshot.checks[i].effective_date}")
        if cols[4].button("Delete", key=f"del-check-{check.id}"):
            snapshot.checks = [c for c in snapshot.checks if c.id != check.id]
            st.rerun()


# -----------------------------
# Recurring rules
# -----------------------------
with st.expander(f"Recurring rules ({len(snapshot.recurring_rules)})"):
    with st.form("new-rule", clear_on_submit=True):
        c1, c2, c3, c4 = st.columns(4)
        direction = c1.selectbox("Type", [EXPENSE, INCOME], key="rule-direction")
        amount = c2.number_input("Amount", min_value=0.0, step=100.0, key="rule-amount")
        currency = c3.selectbox("Currency", settings.currencies, key="rule-currency")
        start = c4.date_input("Start date", value=date.today(), key="rule-start")
        desc = st.text_input("Description", key="rule-desc")
        frequency = st.radio("Frequency", [WEEKLY, MONTHLY], horizontal=True)
        weekdays = st.multiselect("Weekdays (weekly)", list(range(1, 8)), format_func=lambda d: WEEKDAY_NAMES[d - 1])
        month_type = st.radio("Monthly on", [FIXED, SPECIAL], horizontal=True)
        fixed_day = st.number_input("Day of month (fixed)", min_value=1, max_value=31, value=1)
        o1, o2 = st.columns(2)
        ordinal = o1.selectbox("Which (special)", [1, 2, 3, 4, 5], format_func=lambda o: ORDINAL_NAMES[o])
        weekday = o2.selectbox("Weekday (special)", [1, 2, 3, 4, 5], format_func=lambda d: WEEKDAY_NAMES[d - 1])

        if st.form_submit_button("Add rule"):
            monthly = frequency == MONTHLY
            rule = RecurringRule(
                id=_new_id("rule"),
                direction=direction,
                start_date=to_local_ymd(start),
                amount=float(amount),
                description=desc,
                frequency=frequency,
                currency=currency,
                weekdays=[] if monthly else list(weekdays),
                month_type=month_type if monthly else None,
                fixed_day=int(fixed_day) if monthly and month_type == FIXED else None,
                special_ordinal=int(ordinal) if monthly and month_type == SPECIAL else None,
                special_weekday=int(weekday) if monthly and month_type == SPECIAL else None,
            )
            try:
                rule.validate()
            except ValidationError as e:
                st.error(str(e))
            else:
                snapshot.recurring_rules = snapshot.recurring_rules + [rule]

    for rule in snapshot.recurring_rules:
        cols = st.columns([4, 1])
        sign = "+" if rule.direction == INCOME else "-"
        cols[0].write(
            f"{sign}{format_money(rule.amount, rule.currency)} {rule.description}: "
            f"{rule.describe()}, from {rule.start_date}"
        )
        if cols[1].button("Delete", key=f"del-rule-{rule.id}"):
            snapshot.recurring_rules = [r for r in snapshot.recurring_rules if r.id != rule.id]
            st.rerun()


# -----------------------------
# Manual transactions
# -----------------------------
with st.expander(f"Manual transactions ({len(snapshot.manual_transactions)})"):
    with st.form("new-tx", clear_on_submit=True):
        c1, c2, c3, c4, c5 = st.columns(5)
        direction = c1.selectbox("Type", [EXPENSE, INCOME], key="tx-direction")
        tx_date = c2.date_input("Date", value=date.today(), key="tx-date")
        amount = c3.number_input("Amount", min_value=0.0, step=100.0, key="tx-amount")
        currency = c4.selectbox("Currency", settings.currencies, key="tx-currency")
        desc = c5.text_input("Description", key="tx-desc")
        if st.form_submit_button("Add transaction"):
            snapshot.manual_transactions = snapshot.manual_transactions + [
                Transaction(_new_id("tx"), direction, to_local_ymd(tx_date), float(amount), desc, currency)
            ]

    manual_only = [t for t in snapshot.manual_transactions if t.source_tab is None]
    for tx in sorted(manual_only, key=lambda t: t.date):
        cols = st.columns([4, 1])
        sign = "+" if tx.direction == INCOME else "-"
        cols[0].write(f"{tx.date} {sign}{format_money(tx.amount, tx.currency)} {tx.description}")
        if cols[1].button("Delete", key=f"del-tx-{tx.id}"):
            snapshot.manual_transactions = [t for t in snapshot.manual_transactions if t.id != tx.id]
            st.rerun()


# -----------------------------
# Forecast
# -----------------------------
try:
    forecast_dict = forecast_flow(
        granularity,
        snapshot.assets,
        snapshot.checks,
        snapshot.manual_transactions,
        snapshot.recurring_rules,
        rates,
        view_currency,
        local_currency=settings.local_currency,
        check_prefix=settings.check_prefix,
    )
except (MissingRateError, InvalidRateError) as e:
    st.error(f"Enter a valid exchange rate for {e.currency} to view amounts in {view_currency}.")
    st.stop()

periods = forecast_dict["periods"]
metrics = forecast_dict["metrics"]

for issue in forecast_dict["issues"]:
    st.warning(issue)

if metrics["first_negative_label"] is not None:
    st.warning(
        f"Cash risk: balance goes negative in {metrics['first_negative_label']}. "
        f"Lowest projected balance: {format_money(metrics['min_balance'], view_currency)}"
    )
else:
    st.success("No negative balance projected in the horizon.")

m1, m2, m3 = st.columns(3)
with m1:
    st.metric("Starting balance", format_money(forecast_dict["baseline"], view_currency))
with m2:
    st.metric("Lowest projected balance", format_money(metrics["min_balance"], view_currency))
with m3:
    st.metric("Ending balance", format_money(periods[-1].balance, view_currency))

frame = periods_to_frame(periods)
st.line_chart(frame.set_index("start")["balance"])


# -----------------------------
# Drill-down
# -----------------------------
st.subheader("Periods")
query = st.text_input("Search descriptions or periods")
for p in filter_periods(periods, query):
    with st.expander(
        f"{p.label}: +{format_money(p.incomes, view_currency)} / "
        f"-{format_money(p.expenses, view_currency)} -> {format_money(p.balance, view_currency)}"
    ):
        if p.details:
            for desc, amount in sorted(p.details.items(), key=lambda kv: kv[1]):
                st.write(f"- {desc}: {format_money(amount, view_currency)}")
        else:
            st.write("No movements.")


# -----------------------------
# Insights
# -----------------------------
st.subheader("Insights")
for line in generate_insights(forecast_dict):
    st.markdown(f"- {line}")

with st.expander("Period summary (raw)"):
    st.json(summarize_periods(periods))

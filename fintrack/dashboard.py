"""Streamlit app for fintrack.

Run it from the project root with::

    streamlit run fintrack/dashboard.py

or through ``run_dashboard.py``.  The page is refreshed in the
background every ``FINTRACK_REFRESH_SECONDS`` seconds and the local
session is kept alive while the app is open.
"""

from __future__ import annotations

import os
import sys
from typing import Optional

import streamlit as st

if __package__:
    from . import config
    from . import visualization as viz
    from .budgets import budget_expense_pie, budget_expenses
    from .db import RecordStore
    from .engine import DashboardSnapshot, build_snapshot
    from .formatting import budget_status_message, format_currency, format_percent
    from .goals import contribution_warning
    from .models import (
        Budget, Category, Expense, Frequency, Income, RecurringPayment, SavingsGoal, UpcomingExpense, revise,
    )
    from .periods import MonthPeriod, available_periods, parse_period
    from .recurring import DueCheckTracker
    from .refresh import DashboardRefresher, SessionKeepAlive
    from .session import LocalSessionManager
    from .totals import compare_periods
else:
    # ``streamlit run fintrack/dashboard.py`` executes this file as a script.
    PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from fintrack import config  # type: ignore
    from fintrack import visualization as viz  # type: ignore
    from fintrack.budgets import budget_expense_pie, budget_expenses  # type: ignore
    from fintrack.db import RecordStore  # type: ignore
    from fintrack.engine import DashboardSnapshot, build_snapshot  # type: ignore
    from fintrack.formatting import budget_status_message, format_currency, format_percent  # type: ignore
    from fintrack.goals import contribution_warning  # type: ignore
    from fintrack.models import (  # type: ignore
        Budget, Category, Expense, Frequency, Income, RecurringPayment, SavingsGoal, UpcomingExpense, revise,
    )
    from fintrack.periods import MonthPeriod, available_periods, parse_period  # type: ignore
    from fintrack.recurring import DueCheckTracker  # type: ignore
    from fintrack.refresh import DashboardRefresher, SessionKeepAlive  # type: ignore
    from fintrack.session import LocalSessionManager  # type: ignore
    from fintrack.totals import compare_periods  # type: ignore


@st.cache_resource
def get_store() -> RecordStore:
    config.ensure_data_directories()
    return RecordStore()


def _state(key: str, factory):
    if key not in st.session_state:
        st.session_state[key] = factory()
    return st.session_state[key]


def _sessions() -> LocalSessionManager:
    return _state('sessions', LocalSessionManager)


def _keep_alive(sessions: LocalSessionManager) -> SessionKeepAlive:
    keep_alive = _state('keep_alive', lambda: SessionKeepAlive(sessions))
    if not keep_alive.running:
        keep_alive.start()
    return keep_alive


def _refresher(store: RecordStore, sessions: LocalSessionManager, month: MonthPeriod) -> DashboardRefresher:
    # The fragment's run_every drives the schedule, so the refresher's own
    # timer is never started here.
    view = _state('view', dict)
    view['month'] = month
    return _state('refresher', lambda: DashboardRefresher(
        load=lambda: build_snapshot(store, sessions, view.get('month')),
        publish=lambda snapshot: view.__setitem__('snapshot', snapshot),
        interval=config.REFRESH_INTERVAL_SECONDS,
    ))


def render_sidebar(store: RecordStore, sessions: LocalSessionManager) -> None:
    st.sidebar.header("Account")
    user_id = sessions.current_user_id()
    if user_id is None:
        name = st.sidebar.text_input("User ID")
        if st.sidebar.button("Sign in") and name:
            sessions.sign_in(name)
            st.rerun()
        return

    st.sidebar.write(f"Signed in as **{user_id}**")
    if st.sidebar.button("Sign out"):
        sessions.sign_out()
        st.rerun()

    st.sidebar.header("Quick add")
    with st.sidebar.form("quick_add", clear_on_submit=True):
        kind = st.radio("Type", ["Expense", "Income"], horizontal=True)
        label = st.text_input("Description")
        amount = st.number_input("Amount (negative for a refund)", value=0.0, step=1.0)
        category = st.selectbox("Category", [c.value for c in Category])
        date = st.date_input("Date")
        if st.form_submit_button("Add"):
            try:
                if kind == "Expense":
                    store.create_expense(user_id, Expense.create(label, amount, category, date))
                else:
                    store.create_income(user_id, Income.create(label, amount, category, date))
                st.success(f"{kind} added")
            except ValueError as exc:
                st.error(str(exc))


def render_kpis(snapshot: DashboardSnapshot) -> None:
    carry = snapshot.carryforward
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Income", format_currency(snapshot.totals.total_income))
    col2.metric("Total Expenses", format_currency(snapshot.totals.total_expenses))
    col3.metric("Total Saved", format_currency(snapshot.totals.total_saved))
    col4.metric(
        f"Saved through {snapshot.month.label}",
        format_currency(carry.cumulative_saved),
        delta=f"{format_currency(carry.month_saved)} this month",
    )


def render_budgets(snapshot: DashboardSnapshot) -> None:
    st.subheader("Budgets")
    if not snapshot.budgets:
        st.info("No budgets active this month.")
        return
    st.caption(f"Average usage: {format_percent(snapshot.average_budget_progress)}")
    st.plotly_chart(viz.create_budget_progress_chart(snapshot.budgets), use_container_width=True)
    for row in snapshot.budgets:
        title = f"{row.budget.category}: {format_currency(row.spent)} of {format_currency(row.budget.amount)}"
        with st.expander(title):
            st.progress(row.bar_width / 100)
            st.write(budget_status_message(row))
            matched = budget_expenses(row.budget, snapshot.records.expenses, snapshot.generated_at)
            st.plotly_chart(viz.create_budget_expense_pie(budget_expense_pie(matched)), use_container_width=True)
            st.dataframe(matched[['date', 'label', 'amount']], hide_index=True)


def render_goals(store: RecordStore, snapshot: DashboardSnapshot) -> None:
    st.subheader("Savings Goals")
    st.metric("Available Funds", format_currency(snapshot.available_funds))
    if not snapshot.goals:
        st.info("No savings goals yet.")
        return
    st.plotly_chart(viz.create_goal_progress_chart(snapshot.goals), use_container_width=True)
    for row in snapshot.goals:
        goal = row.goal
        with st.expander(f"{goal.name} ({format_percent(row.percentage)})"):
            amount = st.number_input("Amount", min_value=0.0, step=10.0, key=f"goal_amount_{goal.id}")
            add_col, take_col = st.columns(2)
            if add_col.button("Contribute", key=f"contribute_{goal.id}"):
                warning = contribution_warning(amount, snapshot.available_funds)
                if warning:
                    st.warning(warning)
                try:
                    store.contribute_to_goal(snapshot.user_id, goal.id, amount)
                    st.rerun()
                except ValueError as exc:
                    st.error(str(exc))
            if take_col.button("Withdraw", key=f"withdraw_{goal.id}"):
                try:
                    store.withdraw_from_goal(snapshot.user_id, goal.id, amount)
                    st.rerun()
                except ValueError as exc:
                    # InsufficientFundsError included
                    st.error(str(exc))


def render_comparison(snapshot: DashboardSnapshot) -> None:
    st.subheader("Compare Periods")
    granularity = st.radio("Compare by", ["months", "years", "days"], horizontal=True)
    options = available_periods([snapshot.records.incomes, snapshot.records.expenses], granularity)
    if len(options) < 2:
        st.info("Not enough data to compare periods.")
        return
    col1, col2 = st.columns(2)
    first_label = col1.selectbox("First period", options, index=1)
    second_label = col2.selectbox("Second period", options, index=0)
    comparison = compare_periods(
        snapshot.records.incomes, snapshot.records.expenses,
        parse_period(first_label), parse_period(second_label),
    )
    st.plotly_chart(viz.create_comparison_chart(comparison, first_label, second_label), use_container_width=True)
    c1, c2, c3 = st.columns(3)
    c1.metric("Income change", format_percent(comparison.income_change, signed=True))
    c2.metric("Expense change", format_percent(comparison.expenses_change, signed=True))
    c3.metric("Saved change", format_percent(comparison.saved_change, signed=True))
    st.dataframe(comparison.categories, hide_index=True)


# ---------------------------------------------------------------------------
# Record management
# ---------------------------------------------------------------------------

CATEGORY_OPTIONS = [c.value for c in Category]
FREQUENCY_OPTIONS = [f.value for f in Frequency]


def _index(options, value) -> int:
    return options.index(value) if value in options else 0


def _as_date(value):
    return value.date() if value is not None else None


def _apply(action, message: str) -> None:
    """Run a store write from a form; errors stay on the page, success reruns."""
    try:
        result = action()
    except ValueError as exc:
        st.error(str(exc))
        return
    if result is None or result is False:
        st.error("Could not save the change. See the log for details.")
        return
    st.success(message)
    st.rerun()


def _record_form(key: str, fields, save, delete=None) -> None:
    """Form holding ``fields()``; ``save`` gets the entered values."""
    with st.form(f"form_{key}", clear_on_submit=delete is None):
        values = fields()
        if delete is None:
            if st.form_submit_button("Add"):
                _apply(lambda: save(values), "Added")
            return
        save_col, delete_col = st.columns(2)
        saved = save_col.form_submit_button("Save")
        removed = delete_col.form_submit_button("🗑️ Delete")
    if saved:
        _apply(lambda: save(values), "Saved")
    if removed:
        _apply(delete, "Deleted")


def _transaction_fields(key: str, record=None, income: bool = False):
    def fields() -> dict:
        values = {
            'label': st.text_input("Description", value=record.label if record else '', key=f"{key}_label"),
            'amount': st.number_input("Amount (negative for a refund)", value=float(record.amount) if record else 0.0,
                                      step=1.0, key=f"{key}_amount"),
        }
        if income:
            values['category'] = st.text_input("Category", value=record.category if record else '', key=f"{key}_category")
        else:
            values['category'] = st.selectbox("Category", CATEGORY_OPTIONS,
                                              index=_index(CATEGORY_OPTIONS, record.category if record else None),
                                              key=f"{key}_category")
        values['date'] = st.date_input("Date", value=_as_date(record.date) if record else 'today', key=f"{key}_date")
        return values
    return fields


def render_transactions(store: RecordStore, user_id: str) -> None:
    st.caption("New income and expenses are added from the sidebar.")
    kind = st.radio("Edit", ["Expenses", "Incomes"], horizontal=True, key="edit_kind")
    income = kind == "Incomes"
    records = store.fetch_incomes(user_id) if income else store.fetch_expenses(user_id)
    if not records:
        st.info(f"No {kind.lower()} yet.")
        return
    records = sorted(records, key=lambda r: (r.date is None, r.date), reverse=True)
    labels = [
        f"{r.date.date().isoformat() if r.date is not None else 'undated'} · {r.label} · {format_currency(r.amount)}"
        for r in records
    ]
    choice = st.selectbox("Record", range(len(records)), format_func=lambda i: labels[i], key=f"pick_{kind}")
    record = records[choice]
    key = f"{'income' if income else 'expense'}_{record.id}"
    if income:
        _record_form(key, _transaction_fields(key, record, income=True),
                     lambda values: store.update_income(user_id, revise(record, **values)),
                     lambda: store.delete_income(user_id, record.id))
    else:
        _record_form(key, _transaction_fields(key, record),
                     lambda values: store.update_expense(user_id, revise(record, **values)),
                     lambda: store.delete_expense(user_id, record.id))


def _budget_fields(key: str, budget: Optional[Budget] = None):
    def fields() -> dict:
        return {
            'category': st.selectbox("Category", CATEGORY_OPTIONS,
                                     index=_index(CATEGORY_OPTIONS, budget.category if budget else None),
                                     key=f"{key}_category"),
            'amount': st.number_input("Limit", min_value=0.0, value=float(budget.amount) if budget else 0.0,
                                      step=10.0, key=f"{key}_amount"),
            'start_date': st.date_input("Start date (optional)", value=_as_date(budget.start_date) if budget else None,
                                        key=f"{key}_start"),
            'expiration_date': st.date_input("Expiration date (optional)",
                                             value=_as_date(budget.expiration_date) if budget else None,
                                             key=f"{key}_expiration"),
        }
    return fields


def render_manage_budgets(store: RecordStore, user_id: str) -> None:
    st.subheader("Create Budget")
    _record_form("new_budget", _budget_fields("new_budget"),
                 lambda values: store.create_budget(user_id, Budget.create(**values)))
    for budget in store.fetch_budgets(user_id):
        with st.expander(f"{budget.category}: {format_currency(budget.amount, include_sign=False)}"):
            key = f"budget_{budget.id}"
            _record_form(key, _budget_fields(key, budget),
                         lambda values, budget=budget: store.update_budget(user_id, revise(budget, **values)),
                         lambda budget=budget: store.delete_budget(user_id, budget.id))


def _goal_fields(key: str, goal: Optional[SavingsGoal] = None):
    def fields() -> dict:
        return {
            'name': st.text_input("Goal name", value=goal.name if goal else '', key=f"{key}_name"),
            'target_amount': st.number_input("Target amount", min_value=0.0,
                                             value=float(goal.target_amount) if goal else 0.0,
                                             step=100.0, key=f"{key}_target"),
            'due_date': st.date_input("Target date (optional)", value=_as_date(goal.due_date) if goal else None,
                                      key=f"{key}_due"),
        }
    return fields


def render_manage_goals(store: RecordStore, user_id: str) -> None:
    st.subheader("Create Goal")
    _record_form("new_goal", _goal_fields("new_goal"),
                 lambda values: store.create_savings_goal(user_id, SavingsGoal.create(**values)))
    for goal in store.fetch_savings_goals(user_id):
        with st.expander(f"Goal: {goal.name}"):
            st.caption(f"Saved so far: {format_currency(goal.saved_amount, include_sign=False)}")
            key = f"goal_{goal.id}"
            _record_form(key, _goal_fields(key, goal),
                         lambda values, goal=goal: store.update_savings_goal(user_id, revise(goal, **values)),
                         lambda goal=goal: store.delete_savings_goal(user_id, goal.id))


def _upcoming_fields(key: str, upcoming: Optional[UpcomingExpense] = None):
    def fields() -> dict:
        return {
            'name': st.text_input("Name", value=upcoming.name if upcoming else '', key=f"{key}_name"),
            'amount': st.number_input("Amount", min_value=0.0, value=float(upcoming.amount) if upcoming else 0.0,
                                      step=10.0, key=f"{key}_amount"),
            'due_date': st.date_input("Due date", value=_as_date(upcoming.due_date) if upcoming else 'today',
                                      key=f"{key}_due"),
        }
    return fields


def render_manage_upcoming(store: RecordStore, user_id: str) -> None:
    st.subheader("Add Upcoming Expense")
    _record_form("new_upcoming", _upcoming_fields("new_upcoming"),
                 lambda values: store.create_upcoming_expense(user_id, UpcomingExpense.create(**values)))
    for upcoming in store.fetch_upcoming_expenses(user_id):
        due = upcoming.due_date.date().isoformat() if upcoming.due_date is not None else 'undated'
        with st.expander(f"{upcoming.name} ({due})"):
            key = f"upcoming_{upcoming.id}"
            _record_form(key, _upcoming_fields(key, upcoming),
                         lambda values, upcoming=upcoming: store.update_upcoming_expense(
                             user_id, revise(upcoming, **values)),
                         lambda upcoming=upcoming: store.delete_upcoming_expense(user_id, upcoming.id))


def _recurring_fields(key: str, payment: Optional[RecurringPayment] = None):
    def fields() -> dict:
        frequency = payment.frequency.value if payment and payment.frequency else None
        return {
            'name': st.text_input("Name", value=payment.name if payment else '', key=f"{key}_name"),
            'amount': st.number_input("Amount", min_value=0.0, value=float(payment.amount) if payment else 0.0,
                                      step=1.0, key=f"{key}_amount"),
            'category': st.selectbox("Category", CATEGORY_OPTIONS,
                                     index=_index(CATEGORY_OPTIONS, payment.category if payment else None),
                                     key=f"{key}_category"),
            'frequency': st.selectbox("Frequency", FREQUENCY_OPTIONS,
                                      index=_index(FREQUENCY_OPTIONS, frequency or 'monthly'),
                                      key=f"{key}_frequency"),
            'next_due_date': st.date_input("Next due date",
                                           value=_as_date(payment.next_due_date) if payment else 'today',
                                           key=f"{key}_due"),
            'auto_add': st.checkbox("Add automatically when due", value=payment.auto_add if payment else True,
                                    key=f"{key}_auto"),
            'description': st.text_input("Notes", value=payment.description if payment else '',
                                         key=f"{key}_description"),
        }
    return fields


def render_manage_recurring(store: RecordStore, user_id: str) -> None:
    st.subheader("Add Recurring Payment")
    _record_form("new_recurring", _recurring_fields("new_recurring"),
                 lambda values: store.create_recurring_payment(user_id, RecurringPayment.create(**values)))
    for payment in store.fetch_recurring_payments(user_id):
        with st.expander(f"{payment.name}: {format_currency(payment.amount, include_sign=False)}"):
            key = f"recurring_{payment.id}"
            _record_form(key, _recurring_fields(key, payment),
                         lambda values, payment=payment: store.update_recurring_payment(
                             user_id, revise(payment, **values)),
                         lambda payment=payment: store.delete_recurring_payment(user_id, payment.id))


def render_manage(store: RecordStore, user_id: str) -> None:
    st.header("Manage Records")
    tabs = st.tabs(["Transactions", "Budgets", "Goals", "Upcoming", "Recurring"])
    with tabs[0]:
        render_transactions(store, user_id)
    with tabs[1]:
        render_manage_budgets(store, user_id)
    with tabs[2]:
        render_manage_goals(store, user_id)
    with tabs[3]:
        render_manage_upcoming(store, user_id)
    with tabs[4]:
        render_manage_recurring(store, user_id)


def main() -> None:
    """Entry point for the Streamlit app."""
    config.configure_logging()
    st.set_page_config(page_title="fintrack", page_icon="💰", layout="wide")
    st.title("fintrack")

    store = get_store()
    sessions = _sessions()
    _keep_alive(sessions).check()
    render_sidebar(store, sessions)

    current = MonthPeriod.current()
    month_options = [current.label]
    month = current
    for _ in range(11):
        month = month.previous()
        month_options.append(month.label)
    selected = st.selectbox("Month", month_options)
    refresher = _refresher(store, sessions, parse_period(selected))
    due_checks = _state('due_checks', DueCheckTracker)

    @st.fragment(run_every=config.REFRESH_INTERVAL_SECONDS)
    def live_view() -> None:
        # runs at most once per user and day
        added = due_checks.run(store, sessions.current_user_id())
        if added:
            st.toast(f"Added {len(added)} recurring payment(s)")
        snapshot = refresher.refresh_now()
        if snapshot is None:
            st.info("Loading...")
            return
        if not snapshot.authenticated:
            st.info("Sign in from the sidebar to see your dashboard.")
        render_kpis(snapshot)
        overview, budgets_tab, goals_tab, planning_tab, compare_tab = st.tabs(
            ["Overview", "Budgets", "Goals", "Planning", "Compare"]
        )
        with overview:
            st.plotly_chart(viz.create_daily_cumulative_chart(snapshot.daily), use_container_width=True)
            st.plotly_chart(viz.create_category_pie_chart(snapshot.category_pie), use_container_width=True)
        with budgets_tab:
            render_budgets(snapshot)
        with goals_tab:
            render_goals(store, snapshot)
        with planning_tab:
            st.plotly_chart(viz.create_forecast_chart(snapshot.forecast), use_container_width=True)
            st.subheader("Recurring Payments")
            if snapshot.recurring.empty:
                st.info("No recurring payments.")
            else:
                st.dataframe(snapshot.recurring, hide_index=True)
        with compare_tab:
            render_comparison(snapshot)

    live_view()

    user_id = sessions.current_user_id()
    if user_id is not None:
        render_manage(store, user_id)


if __name__ == "__main__":
    main()

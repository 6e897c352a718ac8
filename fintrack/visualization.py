"""Plotly figures for the fintrack dashboard.

Each function takes one of the derived views produced by the engine
(a DataFrame or a list of progress rows) and returns a
``plotly.graph_objects.Figure`` that Streamlit renders with
``st.plotly_chart``.  Empty input gives an empty figure titled
"No data to display" rather than an error.
"""

from __future__ import annotations

from typing import Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .budgets import SEVERITY_DANGER, SEVERITY_OK, SEVERITY_WARN, BudgetProgress, progress_frame
from .goals import GoalProgress
from .totals import PeriodComparison

SEVERITY_COLORS = {
    SEVERITY_OK: '#34c759',
    SEVERITY_WARN: '#ff9500',
    SEVERITY_DANGER: '#ff3b30',
}


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def create_daily_cumulative_chart(daily: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Running income and expense lines for one month.

    Parameters
    ----------
    daily : pandas.DataFrame
        Output of :func:`fintrack.totals.daily_cumulative` with ``date``,
        ``income`` and ``expenses`` columns.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Line chart with one trace per series.
    """
    if daily.empty:
        return _empty_figure()
    long = daily.melt(id_vars=['date'], value_vars=['income', 'expenses'], var_name='Series', value_name='Amount')
    long['Series'] = long['Series'].str.title()
    fig = px.line(
        long, x='date', y='Amount', color='Series',
        color_discrete_map={'Income': '#34c759', 'Expenses': '#ff3b30'},
    )
    fig.update_layout(
        title=title or "Income vs Expenses (cumulative)",
        xaxis_title="Date",
        yaxis_title="Amount ($)",
        hovermode='x unified',
    )
    return fig


def create_category_pie_chart(pie: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Share of spend per category; expects ``category`` and ``amount`` columns."""
    if pie.empty:
        return _empty_figure()
    fig = px.pie(pie, names='category', values='amount', hole=0.4)
    fig.update_traces(textposition='inside', textinfo='percent+label')
    fig.update_layout(title=title or "Expenses by Category")
    return fig


def create_budget_progress_chart(progress_rows: Sequence[BudgetProgress], title: str | None = None) -> go.Figure:
    """Horizontal bars of budget usage, coloured by severity tier.

    Bars show the uncapped percentage so an overspent budget visibly
    passes the 100% line.
    """
    frame = progress_frame(progress_rows)
    if frame.empty:
        return _empty_figure()
    frame['Budget'] = frame['category'] + ' #' + frame['budget_id'].astype(str)
    fig = go.Figure(go.Bar(
        x=frame['percentage'],
        y=frame['Budget'],
        orientation='h',
        marker_color=[SEVERITY_COLORS[severity] for severity in frame['severity']],
        customdata=frame[['spent', 'amount']].to_numpy(),
        hovertemplate="%{y}<br>%{x:.1f}% used<br>$%{customdata[0]:,.2f} of $%{customdata[1]:,.2f}<extra></extra>",
    ))
    fig.add_vline(x=100, line_dash='dash', line_color='#8e8e93')
    fig.update_layout(
        title=title or "Budget Progress",
        xaxis_title="% of budget used",
        yaxis_title="",
    )
    return fig


def create_budget_expense_pie(pie: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Drill-down pie for one budget; expects ``name``, ``full_name`` and ``amount``."""
    if pie.empty:
        return _empty_figure()
    fig = px.pie(pie, names='name', values='amount', hover_data=['full_name'])
    fig.update_layout(title=title or "Budget Expenses")
    return fig


def create_goal_progress_chart(goals: Sequence[GoalProgress], title: str | None = None) -> go.Figure:
    if not goals:
        return _empty_figure()
    frame = pd.DataFrame({
        'Goal': [row.goal.name for row in goals],
        'Progress': [row.percentage for row in goals],
        'Saved': [row.goal.saved_amount for row in goals],
        'Target': [row.goal.target_amount for row in goals],
    })
    fig = px.bar(frame, x='Progress', y='Goal', orientation='h', range_x=[0, 100],
                 hover_data={'Saved': ':$,.2f', 'Target': ':$,.2f'})
    fig.update_layout(title=title or "Savings Goals", xaxis_title="% of target saved")
    return fig


def create_forecast_chart(forecast: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Grouped bars of required spend, credited savings and deficit per month."""
    if forecast.empty:
        return _empty_figure()
    fig = go.Figure()
    for column, name, color in (
        ('required', 'Required', '#ff9500'),
        ('saved', 'Saved', '#34c759'),
        ('deficit', 'Deficit', '#ff3b30'),
    ):
        fig.add_trace(go.Bar(x=forecast['label'], y=forecast[column], name=name, marker_color=color))
    fig.update_layout(
        title=title or "Upcoming Expenses Forecast",
        barmode='group',
        xaxis_title="Month",
        yaxis_title="Amount ($)",
    )
    return fig


def create_comparison_chart(comparison: PeriodComparison, first_label: str, second_label: str,
                            title: str | None = None) -> go.Figure:
    frame = pd.DataFrame({
        'Metric': ['Income', 'Expenses', 'Saved'] * 2,
        'Period': [first_label] * 3 + [second_label] * 3,
        'Amount': [
            comparison.first.total_income, comparison.first.total_expenses, comparison.first.total_saved,
            comparison.second.total_income, comparison.second.total_expenses, comparison.second.total_saved,
        ],
    })
    if not frame['Amount'].any() and not any(comparison.first_counts.values()) \
            and not any(comparison.second_counts.values()):
        return _empty_figure()
    fig = px.bar(frame, x='Metric', y='Amount', color='Period', barmode='group')
    fig.update_layout(title=title or f"{first_label} vs {second_label}", yaxis_title="Amount ($)")
    return fig

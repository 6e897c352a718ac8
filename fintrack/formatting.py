"""Formatting utilities for currency and text display.

Amounts are rounded to two decimals here and nowhere else.
"""

from __future__ import annotations

from typing import Optional, Union


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format a currency amount with proper formatting.

    Args:
        amount: The amount to format
        include_sign: Whether to include the dollar sign

    Returns:
        Formatted currency string (e.g., "$1,234.56", "-$12.00" or "1,234.56")

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
        >>> format_currency(-12)
        '-$12.00'
        >>> format_currency(1234.56, include_sign=False)
        '1,234.56'
    """
    value = round(float(amount), 2)
    formatted = f"{abs(value):,.2f}"
    prefix = "-" if value < 0 else ""
    return f"{prefix}${formatted}" if include_sign else f"{prefix}{formatted}"


def escape_dollar_for_markdown(amount: float) -> str:
    """Format an amount and escape the dollar sign for markdown rendering.

    Streamlit markdown treats ``$`` as a LaTeX delimiter, which turns the
    text between two amounts into italics.

    Example:
        >>> escape_dollar_for_markdown(1234.56)
        '\\\\$1,234.56'
    """
    return format_currency(amount).replace("$", "\\$")


def format_percent(value: Optional[float], signed: bool = False) -> str:
    """``"12.5%"``; ``"N/A"`` when there is no base to compare against."""
    if value is None or value != value:
        return "N/A"
    return f"{value:+.1f}%" if signed else f"{value:.1f}%"


def budget_status_message(progress) -> str:
    """One-line status for a budget progress row."""
    if progress.refund_excess > 0:
        return f"Refunds exceed expenses by {format_currency(progress.refund_excess)}"
    if progress.is_over:
        return f"Over by {format_currency(progress.over_by)}"
    return f"{format_currency(progress.remaining)} remaining"

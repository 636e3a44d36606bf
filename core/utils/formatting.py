"""Formatting utilities used in payloads and email bodies."""

from decimal import Decimal
from typing import Optional
import re


def format_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    """
    Format full name from first and last names.

    Args:
        first_name: First name
        last_name: Last name

    Returns:
        Formatted full name, empty when both parts are missing
    """
    parts = []
    if first_name and first_name.strip():
        parts.append(first_name.strip())
    if last_name and last_name.strip():
        parts.append(last_name.strip())
    return " ".join(parts)


CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "PHP": "₱",
    "JPY": "¥",
    "AUD": "A$",
    "CAD": "C$",
    "SGD": "S$",
    "INR": "₹",
    "CNY": "¥",
}

SALARY_PERIOD_LABELS = {
    "HOURLY": "per hour",
    "MONTHLY": "per month",
    "YEARLY": "per year",
}


def format_currency(amount: float | Decimal | str, currency: str = "USD") -> str:
    """
    Format currency amount for display.

    Args:
        amount: Amount to format
        currency: ISO currency code

    Returns:
        Formatted currency string
    """
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    value = float(amount)
    if currency == "JPY":
        return f"{symbol}{int(value):,}"
    return f"{symbol}{value:,.2f}"


def format_salary_range(
    salary_min: Optional[Decimal],
    salary_max: Optional[Decimal],
    currency: str,
    period: str,
) -> Optional[str]:
    """Human readable salary range, None when no figures are set."""
    if salary_min is None and salary_max is None:
        return None
    label = SALARY_PERIOD_LABELS.get(period, period.lower())
    if salary_min is not None and salary_max is not None:
        return f"{format_currency(salary_min, currency)} - {format_currency(salary_max, currency)} {label}"
    if salary_min is not None:
        return f"From {format_currency(salary_min, currency)} {label}"
    return f"Up to {format_currency(salary_max, currency)} {label}"


def format_job_number(sequence: int) -> str:
    """JN-0001 style public job identifier."""
    return f"JN-{sequence:04d}"


def parse_job_number(job_number: Optional[str]) -> int:
    """Sequence part of a job number, 0 when it does not parse."""
    if not job_number:
        return 0
    match = re.fullmatch(r"JN-(\d+)", job_number)
    return int(match.group(1)) if match else 0


def text_to_html(text: str) -> str:
    """Escape plain text and keep its line breaks for an HTML email body."""
    escaped = (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )
    return escaped.replace("\n", "<br>")

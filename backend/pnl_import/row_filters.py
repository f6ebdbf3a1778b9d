"""
Row filters for P&L reports.

Two questions get asked of every label before it can become a line item:

- is it a total/subtotal row (``Total Income``, ``Net Income``, ``EBITDA``)?
  Those aggregate other lines and would double count them.
- is it report furniture (titles, dates, page numbers, basis notes,
  separators) rather than an account?

Exclusion policy
----------------
Totals are removed in two places that together form one policy:

1. While parsing, a line whose label starts with ``total `` is treated as the
   close of the current section: it resets the parent account and never
   becomes an item (see ``table_parser``).
2. After parsing, ``split_total_rows`` moves every item whose label matches
   ``is_total_row`` into the excluded list. This catches aggregates that do
   not start with "total" (``Net Income``, ``Gross Profit``) and are therefore
   parsed as ordinary rows.

The aggregate rows are not thrown away: ``reported_totals`` reads the report's
own revenue, COGS, gross profit, expenses and net profit from them.
"""

import re
from typing import Iterable, List, Optional, Tuple

from .models import LineItem, ReportedTotals

TOTAL_ROW_PATTERNS = [
    re.compile(r"^total\b", re.IGNORECASE),
    re.compile(r"^sub-?\s?total\b", re.IGNORECASE),
    re.compile(r"^net\s+(income|loss|profit|operating\s+income|ordinary\s+income)\b", re.IGNORECASE),
    re.compile(r"^gross\s+(profit|margin)\b", re.IGNORECASE),
    re.compile(r"^operating\s+income\b", re.IGNORECASE),
    re.compile(r"^ebitda\b", re.IGNORECASE),
    re.compile(r"^ebit\b", re.IGNORECASE),
    re.compile(r"total\s+(revenue|expenses?|costs?|income|cogs)\b", re.IGNORECASE),
]

MONTH_WORDS = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
    "|jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec"
)

# First matching line wins for each figure, in report order
REPORTED_TOTAL_PATTERNS = [
    ("revenue", re.compile(r"^total\s+(for\s+)?(income|revenue|sales)\b", re.IGNORECASE)),
    ("cogs", re.compile(r"^total\s+(for\s+)?(cost\s+of\s+(goods\s+sold|sales)|cogs)\b", re.IGNORECASE)),
    ("gross_profit", re.compile(r"^gross\s+profit\b", re.IGNORECASE)),
    ("expenses", re.compile(r"^total\s+(for\s+)?(operating\s+)?expenses\b", re.IGNORECASE)),
    ("net_profit", re.compile(r"^net\s+(operating\s+|ordinary\s+)?(income|profit)\b", re.IGNORECASE)),
]

METADATA_PATTERNS = [
    # "Acme Plumbing → Q1 Review"
    re.compile(r"^[^\d$()]+?\s*(?:→|->)"),
    re.compile(rf"\b({MONTH_WORDS})\b", re.IGNORECASE),
    re.compile(r"^\d{4}$"),
    re.compile(r"\bq[1-4]\s*[-']?\s*\d{2,4}\b", re.IGNORECASE),
    re.compile(r"profit\s*(and|&)\s*loss|income\s+statement|balance\s+sheet|statement\s+of\s+cash\s+flows?", re.IGNORECASE),
    re.compile(r"^(date|period|report|prepared|as\s+of)\b", re.IGNORECASE),
    re.compile(r"^page\s+\d+(\s+of\s+\d+)?$", re.IGNORECASE),
    re.compile(r"\b(accrual|cash)\s+basis\b", re.IGNORECASE),
    re.compile(r"^[\s\-=_*]+$"),
]


def is_total_row(name: str) -> bool:
    """Return True if the label aggregates other lines (total, subtotal, net income...)."""
    if not name:
        return False
    candidate = name.strip()
    return any(pattern.search(candidate) for pattern in TOTAL_ROW_PATTERNS)


def is_metadata_row(text: str) -> bool:
    """Return True if the label is report furniture rather than an account."""
    if text is None:
        return True
    candidate = str(text).strip()
    if len(candidate) < 2:
        return True
    return any(pattern.search(candidate) for pattern in METADATA_PATTERNS)


def split_total_rows(items: List[LineItem]) -> Tuple[List[LineItem], List[LineItem]]:
    """
    Separate total/subtotal items from real accounts.

    Returns:
        (kept, excluded), both in original order
    """
    kept: List[LineItem] = []
    excluded: List[LineItem] = []
    for item in items:
        if is_total_row(item.account_name):
            excluded.append(item)
        else:
            kept.append(item)
    return kept, excluded


def reported_totals(rows: Iterable[Tuple[str, Optional[float]]]) -> ReportedTotals:
    """
    Read the report's own summary figures from its aggregate rows.

    Args:
        rows: (label, amount) pairs in report order, e.g. the section totals
            dropped while parsing followed by the excluded total rows

    Returns:
        ReportedTotals with a figure for every label that matched
    """
    figures = {}
    for name, amount in rows:
        if amount is None:
            continue
        for figure, pattern in REPORTED_TOTAL_PATTERNS:
            if figure not in figures and pattern.search(name.strip()):
                figures[figure] = amount
                break
    return ReportedTotals(**figures)

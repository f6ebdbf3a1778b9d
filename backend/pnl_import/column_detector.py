"""
Column detection for tabular P&L exports.

Given a header row, decide which column carries the account label and which
column(s) carry the amount. Amount columns are picked with a cascade:

1. an explicit total/YTD/annual column
2. every month column (summed)
3. a generic amount/balance/value column
4. the last column
"""

import re
from typing import Any, List, Optional, Sequence

from .amounts import extract_number
from .models import AmountColumn

ACCOUNT_HEADERS = [
    "account",
    "description",
    "name",
    "category",
    "account name",
    "line item",
    "expense",
    "income",
]

TOTAL_HEADERS = [
    "total",
    "ytd",
    "year to date",
    "ytd total",
    "annual",
    "total amount",
    "grand total",
]

AMOUNT_HEADERS = ["amount", "balance", "value", "debit", "credit", "net", "net amount"]

MONTH_HEADER_PATTERN = re.compile(
    r"^(jan(uary)?|feb(ruary)?|mar(ch)?|apr(il)?|may|june?|july?|aug(ust)?"
    r"|sep(t(ember)?)?|oct(ober)?|nov(ember)?|dec(ember)?)(?![a-z])",
    re.IGNORECASE,
)

# A whole cell that is just a month, optionally with a year: "Jan", "Mar 2025", "Feb-25"
MONTH_CELL_PATTERN = re.compile(
    MONTH_HEADER_PATTERN.pattern + r"\.?[\s\-/']*(\d{2,4})?$",
    re.IGNORECASE,
)

SINGLE = "single"
SUM_MONTHS = "sum_months"
LAST_NUMERIC = "last_numeric"


def _normalize(header: Any) -> str:
    return str(header).strip().lower() if header is not None else ""


def is_month_header(header: Any) -> bool:
    return bool(MONTH_HEADER_PATTERN.match(_normalize(header)))


def find_account_column(headers: Sequence[Any]) -> int:
    """Index of the first account-style header, or 0."""
    for idx, header in enumerate(headers):
        if _normalize(header) in ACCOUNT_HEADERS:
            return idx
    return 0


def find_amount_column(headers: Sequence[Any]) -> AmountColumn:
    """
    Pick the column(s) that hold each row's amount.

    Args:
        headers: Cells of the header row

    Returns:
        AmountColumn describing a single column, a set of month columns to
        sum, or the last-column fallback
    """
    normalized = [_normalize(h) for h in headers]

    # Rightmost total-style column wins; reports put the grand total last
    for idx in range(len(normalized) - 1, -1, -1):
        if normalized[idx] in TOTAL_HEADERS:
            return AmountColumn(
                type=SINGLE,
                columns=[idx],
                description=f'Using "{str(headers[idx]).strip()}" column',
            )

    month_columns = [idx for idx, header in enumerate(headers) if is_month_header(header)]
    if month_columns:
        first = str(headers[month_columns[0]]).strip()
        last = str(headers[month_columns[-1]]).strip()
        if len(month_columns) == 1:
            description = f'Summing 1 month column ({first})'
        else:
            description = f"Summing {len(month_columns)} month columns ({first} – {last})"
        return AmountColumn(type=SUM_MONTHS, columns=month_columns, description=description)

    for idx, header in enumerate(normalized):
        if header in AMOUNT_HEADERS:
            return AmountColumn(
                type=SINGLE,
                columns=[idx],
                description=f'Using "{str(headers[idx]).strip()}" column',
            )

    last_idx = max(len(headers) - 1, 0)
    return AmountColumn(type=LAST_NUMERIC, columns=[last_idx], description="Using last column")


def get_amount_from_row(row: Sequence[Any], descriptor: AmountColumn) -> Optional[float]:
    """
    Read the amount for one data row.

    Month columns are summed; the result is None only when none of them held a
    number. Every other descriptor reads its single column.
    """
    if descriptor.type == SUM_MONTHS:
        total = 0.0
        found = False
        for idx in descriptor.columns:
            if idx >= len(row):
                continue
            value = extract_number(row[idx])
            if value is not None:
                total += value
                found = True
        return total if found else None

    if not descriptor.columns:
        return None
    idx = descriptor.columns[0]
    if idx >= len(row):
        return None
    return extract_number(row[idx])


def detect_month_count(descriptor: Optional[AmountColumn]) -> Optional[int]:
    """Number of month columns behind a summed amount, if any."""
    if descriptor is None or descriptor.type != SUM_MONTHS:
        return None
    return len(descriptor.columns)


def is_header_row(cells: Sequence[Any]) -> bool:
    """True if the row looks like a column-header row of a P&L table."""
    for cell in cells:
        header = _normalize(cell)
        if not header:
            continue
        if header in TOTAL_HEADERS or header in ACCOUNT_HEADERS or header in AMOUNT_HEADERS:
            return True
        if MONTH_CELL_PATTERN.match(header):
            return True
    return False


class HeaderLayout:
    """
    Column layout of a P&L table, resolved once from its header row.

    The layout is initialized with the header cells so every data row can be
    read without re-inspecting the headers.
    """

    def __init__(self, headers: Sequence[Any]):
        """
        Initialize the layout with the header row.

        Args:
            headers: Cells of the header row
        """
        self.headers = list(headers)
        self.account_column = find_account_column(self.headers)
        self.amount_column = find_amount_column(self.headers)
        self.month_count = detect_month_count(self.amount_column)

    def account_name(self, row: Sequence[Any]) -> str:
        if self.account_column >= len(row) or row[self.account_column] is None:
            return ""
        return str(row[self.account_column]).strip()

    def amount(self, row: Sequence[Any]) -> Optional[float]:
        """
        Amount for the row, falling back to the rightmost parseable cell.

        The account column is never used as an amount source.
        """
        if self.amount_column.columns != [self.account_column]:
            value = get_amount_from_row(row, self.amount_column)
            if value is not None:
                return value
        for idx in range(len(row) - 1, -1, -1):
            if idx == self.account_column:
                continue
            cell = row[idx]
            if cell is None or str(cell).strip() == "":
                continue
            value = extract_number(cell)
            if value is not None:
                return value
        return None

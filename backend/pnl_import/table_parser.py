"""
P&L table parsing.

Turns pasted text, CSV files and first-sheet workbook grids into an ordered
list of ``LineItem`` objects, then runs the total-row exclusion and the
duplicate merge to produce an ``ImportResult``.

Every input shape ends in the same row classification:

- a label with no amount (that does not start with "total") opens a section;
  later items record it as their parent account
- a label starting with "total " closes the current section
- anything else with an amount becomes a line item

Parsing never raises for a bad row: unreadable amounts are treated as absent
and report furniture is skipped.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, List, Optional, Sequence, Tuple

from .amounts import extract_number
from .classifier import classify
from .column_detector import HeaderLayout, is_header_row
from .dedupe import deduplicate
from .models import AmountColumn, CategoryRule, ImportResult, LineItem
from .row_filters import is_metadata_row, reported_totals, split_total_rows
from .workbook import FileDecodeError, decode_text, read_first_sheet

logger = logging.getLogger(__name__)

HEADER_SCAN_ROWS = 15
CSV_MIN_FIELDS = 4

TEXT_EXTENSIONS = [".csv", ".txt"]
WORKBOOK_EXTENSIONS = [".xlsx", ".xlsm"]
SUPPORTED_EXTENSIONS = TEXT_EXTENSIONS + WORKBOOK_EXTENSIONS

# "Rent      24,000" / "Rent  (1,200.00)": a label, two or more spaces, then an amount.
# The amount must carry money formatting so "Vehicle Expense - Truck 2" stays a header.
TRAILING_AMOUNT_PATTERN = re.compile(r"^(.*?\S)\s{2,}(\(?-?\$?\s*\d[\d,]*(?:\.\d+)?\)?)$")
AMOUNT_FORMATTING_PATTERN = re.compile(r"[$,.()]")


@dataclass
class ParsedTable:
    items: List[LineItem] = field(default_factory=list)
    source: str = "text"
    header_row_index: Optional[int] = None
    amount_column: Optional[AmountColumn] = None
    month_count_detected: Optional[int] = None
    # "Total ..." rows closed while parsing, as (label, amount) in report order
    subtotals: List[Tuple[str, float]] = field(default_factory=list)


class _ItemBuilder:
    """Applies the shared row classification and numbers emitted items."""

    def __init__(self, rules: Sequence[CategoryRule]):
        self.rules = rules
        self.items: List[LineItem] = []
        self.subtotals: List[Tuple[str, float]] = []
        self.current_parent: Optional[str] = None
        self._next_sort_order = 0

    def add_row(self, name: str, amount: Optional[float]) -> None:
        lowered = name.lower()

        if amount is None and not lowered.startswith("total"):
            self.current_parent = name
            return

        if lowered.startswith("total "):
            self.current_parent = None
            if amount is not None:
                self.subtotals.append((name, amount))
            return

        if amount is None:
            return

        classification = classify(name, self.rules)
        self.items.append(
            LineItem(
                account_name=name,
                amount=amount,
                parent_account=self.current_parent,
                suggested_category=classification.category,
                confidence=classification.confidence,
                needs_review=classification.needs_review,
                sort_order=self._next_sort_order,
            )
        )
        self._next_sort_order += 1


def is_csv_text(lines: Sequence[str]) -> bool:
    return any(len(line.split(",")) >= CSV_MIN_FIELDS for line in lines)


def last_number(cells: Sequence[Any]) -> Optional[float]:
    """First parseable value scanning the cells right-to-left."""
    for cell in reversed(cells):
        if cell is None or str(cell).strip() == "":
            continue
        value = extract_number(cell)
        if value is not None:
            return value
    return None


def split_label_line(line: str):
    """
    Split a colon/tab delimited line into (name, amount).

    Lines without a delimiter are a bare label (section header) unless they
    end in a column-aligned, money-formatted amount.
    """
    parts = re.split(r"[:\t]", line, maxsplit=1)
    if len(parts) == 2:
        return parts[0].strip(), extract_number(parts[1])

    stripped = line.strip()
    match = TRAILING_AMOUNT_PATTERN.match(stripped)
    if match and AMOUNT_FORMATTING_PATTERN.search(match.group(2)):
        return match.group(1).strip(), extract_number(match.group(2))
    return stripped, None


def parse_text(text: str, rules: Sequence[CategoryRule]) -> ParsedTable:
    """
    Parse pasted P&L text or raw CSV file contents.

    Args:
        text: The report text
        rules: Category rules sorted by priority, highest first

    Returns:
        ParsedTable with line items in report order
    """
    lines = text.splitlines()
    builder = _ItemBuilder(rules)

    if is_csv_text(lines):
        logger.debug("Parsing %d lines as CSV", len(lines))
        for cells in csv.reader(lines):
            if not cells:
                continue
            name = cells[0].strip()
            if is_metadata_row(name):
                continue
            # "Account,Jan 2025,...,Total" would otherwise read 2025 as an amount
            if is_header_row(cells[1:]):
                continue
            builder.add_row(name, last_number(cells[1:]))
        source = "csv"
    else:
        logger.debug("Parsing %d lines as label/amount text", len(lines))
        for line in lines:
            if not line.strip():
                continue
            name, amount = split_label_line(line)
            if is_metadata_row(name):
                continue
            builder.add_row(name, amount)
        source = "text"

    return ParsedTable(items=builder.items, source=source, subtotals=builder.subtotals)


def find_header_row(grid: Sequence[Sequence[Any]], scan_rows: int = HEADER_SCAN_ROWS) -> Optional[int]:
    for idx, row in enumerate(grid[:scan_rows]):
        if row and is_header_row(row):
            return idx
    return None


def grid_to_csv(grid: Sequence[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in grid:
        writer.writerow(["" if cell is None else cell for cell in row])
    return buffer.getvalue()


def parse_grid(
    grid: Sequence[Sequence[Any]],
    rules: Sequence[CategoryRule],
    scan_rows: int = HEADER_SCAN_ROWS,
) -> ParsedTable:
    """
    Parse a spreadsheet grid (list of rows of raw cell values).

    The header row is the first of the top ``scan_rows`` rows with a header
    signature, or row 0. When no line items come out of the grid, it is
    written back out as CSV and parsed as text.
    """
    if not grid:
        return ParsedTable(source="workbook")

    header_row_index = find_header_row(grid, scan_rows)
    if header_row_index is None:
        logger.debug("No header signature in first %d rows; using row 0", scan_rows)
        header_row_index = 0

    layout = HeaderLayout(grid[header_row_index])
    logger.debug(
        "Header row %d: account column %d, %s",
        header_row_index,
        layout.account_column,
        layout.amount_column.description,
    )

    builder = _ItemBuilder(rules)
    for row in grid[header_row_index + 1:]:
        if not row:
            continue
        name = layout.account_name(row)
        if is_metadata_row(name):
            continue
        builder.add_row(name, layout.amount(row))

    if not builder.items:
        logger.info("No accounts found in grid; retrying as CSV text")
        fallback = parse_text(grid_to_csv(grid), rules)
        fallback.source = "workbook"
        return fallback

    return ParsedTable(
        items=builder.items,
        source="workbook",
        header_row_index=header_row_index,
        amount_column=layout.amount_column,
        month_count_detected=layout.month_count,
        subtotals=builder.subtotals,
    )


def parse_workbook(data: bytes, rules: Sequence[CategoryRule], scan_rows: int = HEADER_SCAN_ROWS) -> ParsedTable:
    return parse_grid(read_first_sheet(data), rules, scan_rows)


def build_import_result(parsed: ParsedTable) -> ImportResult:
    """Drop total rows, merge exact duplicates and package the result."""
    kept, excluded = split_total_rows(parsed.items)
    reported = reported_totals(parsed.subtotals + [(item.account_name, item.amount) for item in excluded])
    deduped = deduplicate(kept)
    logger.info(
        "Parsed %d items: %d kept, %d total rows excluded, %d duplicates merged",
        len(parsed.items),
        len(deduped.unique),
        len(excluded),
        len(deduped.duplicates),
    )
    return ImportResult(
        items=deduped.unique,
        excluded=excluded,
        duplicates=deduped.duplicates,
        source=parsed.source,
        header_row_index=parsed.header_row_index,
        amount_column=parsed.amount_column,
        month_count_detected=parsed.month_count_detected,
        reported_totals=reported,
    )


def import_text(text: str, rules: Sequence[CategoryRule]) -> ImportResult:
    return build_import_result(parse_text(text, rules))


def import_workbook(data: bytes, rules: Sequence[CategoryRule], scan_rows: int = HEADER_SCAN_ROWS) -> ImportResult:
    return build_import_result(parse_workbook(data, rules, scan_rows))


def import_file(
    filename: str,
    data: bytes,
    rules: Sequence[CategoryRule],
    scan_rows: int = HEADER_SCAN_ROWS,
) -> ImportResult:
    """
    Import an uploaded file, choosing workbook or text parsing by extension.

    Raises:
        FileDecodeError: for unsupported extensions or unreadable contents
    """
    extension = PurePath(filename).suffix.lower()
    if extension in WORKBOOK_EXTENSIONS:
        return import_workbook(data, rules, scan_rows)
    if extension in TEXT_EXTENSIONS:
        return import_text(decode_text(data), rules)
    raise FileDecodeError(
        f"Unsupported file type {extension or '(none)'}; expected one of "
        f"{', '.join(SUPPORTED_EXTENSIONS)}"
    )

"""
File reading primitives: first-sheet workbook grids and text decoding.

Both read the whole upload into memory before anything is parsed; a file that
cannot be decoded raises ``FileDecodeError`` and produces no partial result.
"""

import logging
from io import BytesIO
from typing import Any, List
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)


class PnlImportError(Exception):
    """Base error for whole-input import failures."""


class FileDecodeError(PnlImportError):
    """The uploaded file or workbook could not be read."""


def read_first_sheet(data: bytes) -> List[List[Any]]:
    """
    Read the first worksheet of an .xlsx workbook as a 2-D grid of raw values.

    Args:
        data: Workbook bytes

    Returns:
        One list of cell values per row, in sheet order

    Raises:
        FileDecodeError: if the bytes are not a readable workbook
    """
    if not data:
        raise FileDecodeError("Workbook is empty")

    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
        raise FileDecodeError(f"Could not read workbook: {e}") from e

    try:
        if not workbook.worksheets:
            raise FileDecodeError("Workbook has no worksheets")
        sheet = workbook.worksheets[0]
        grid = [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    logger.debug("Read %d rows from sheet %r", len(grid), sheet.title)
    return grid


def decode_text(data: bytes) -> str:
    """Decode an uploaded text/CSV file, tolerating a UTF-8 byte-order mark."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FileDecodeError(
            "File encoding error. Please ensure the file is UTF-8 encoded"
        ) from e

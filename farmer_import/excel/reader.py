from __future__ import annotations

import io
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from ..models.upload import UploadedFile
from .columns import FARMERS_SHEET, FARMS_SHEET, is_missing

"""Spreadsheet ingestion: uploaded bytes -> rows of raw cells per sheet.

Row 0 of every sheet is the header row. It is returned as-is and skipped by
the mapper; header text is never validated.

Sheets are read without header inference and without pandas' default NA
string conversion, so a farmer named "NA" or "Nan" keeps their name.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ImportFileError",
    "MissingRequiredSheet",
    "FileReadFailure",
    "FileTooLarge",
    "UnsupportedFileType",
    "WorkbookRows",
    "check_upload",
    "read_workbook",
    "dataframe_to_rows",
    "is_blank_row",
]


class ImportFileError(Exception):
    """File-level failure: aborts the parse attempt, no partial staging."""
    error_type = "FILE_ERROR"


class MissingRequiredSheet(ImportFileError):
    error_type = "MISSING_REQUIRED_SHEET"


class FileReadFailure(ImportFileError):
    error_type = "FILE_READ_FAILURE"


class FileTooLarge(ImportFileError):
    error_type = "FILE_TOO_LARGE"


class UnsupportedFileType(ImportFileError):
    error_type = "UNSUPPORTED_FILE_TYPE"


@dataclass
class WorkbookRows:
    """Raw rows of the two sheets the import understands (header row included)."""
    farmers: list[list[Any]]
    farms: list[list[Any]] = field(default_factory=list)
    sheet_names: list[str] = field(default_factory=list)


def check_upload(upload: UploadedFile, max_size: int, accepted_media_types: Iterable[str]) -> None:
    """Reject a file before any decoding is attempted."""
    if upload.size > max_size:
        raise FileTooLarge(
            f"file '{upload.name}' is {upload.size} bytes; the limit is {max_size} bytes"
        )
    media_type = upload.resolved_media_type
    if media_type is None or media_type not in set(accepted_media_types):
        raise UnsupportedFileType(
            f"file '{upload.name}' has unsupported type {media_type or upload.extension or 'unknown'}; "
            "upload an Excel (.xlsx, .xls) or CSV file"
        )


def is_blank_row(row: Sequence[Any]) -> bool:
    """A row is blank when every cell is empty; numeric 0 is a value."""
    return all(is_missing(v) for v in row)


def dataframe_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    """Convert a header-less DataFrame into lists of cells, NaN -> None."""
    rows: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        rows.append([None if is_missing(v) and not isinstance(v, str) else v for v in raw])
    return rows


def _read_csv(upload: UploadedFile) -> WorkbookRows:
    try:
        text = upload.content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FileReadFailure(f"file '{upload.name}' is not UTF-8 text: {e}") from e
    if not text.strip():
        return WorkbookRows(farmers=[], sheet_names=[FARMERS_SHEET])
    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except (pd.errors.ParserError, ValueError) as e:
        raise FileReadFailure(f"file '{upload.name}' could not be read as CSV: {e}") from e
    # CSV has no sheets: its rows are the Farmers sheet
    return WorkbookRows(farmers=dataframe_to_rows(df), sheet_names=[FARMERS_SHEET])


def _read_excel(upload: UploadedFile) -> WorkbookRows:
    # openpyxl, xlrd and the zip/xml layers below them each raise their own
    # error types for damaged files; all of them mean the bytes are unreadable
    try:
        xls = pd.ExcelFile(io.BytesIO(upload.content))
    except Exception as e:
        raise FileReadFailure(f"file '{upload.name}' could not be read as a workbook: {e}") from e

    sheet_names = [str(n) for n in xls.sheet_names]
    if FARMERS_SHEET not in sheet_names:
        raise MissingRequiredSheet(
            f"file '{upload.name}' has no sheet named '{FARMERS_SHEET}' (found: {sheet_names})"
        )

    def parse(name: str) -> list[list[Any]]:
        try:
            df = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[])
        except Exception as e:
            raise FileReadFailure(f"sheet '{name}' of '{upload.name}' could not be read: {e}") from e
        return dataframe_to_rows(df)

    farmers = parse(FARMERS_SHEET)
    farms = parse(FARMS_SHEET) if FARMS_SHEET in sheet_names else []
    return WorkbookRows(farmers=farmers, farms=farms, sheet_names=sheet_names)


def read_workbook(upload: UploadedFile) -> WorkbookRows:
    """Read the Farmers (required) and Farms (optional) sheets of an upload.

    Raises
    ------
    MissingRequiredSheet: no sheet named "Farmers"
    FileReadFailure: the bytes can not be decoded by the spreadsheet codec
    """
    if upload.is_csv:
        rows = _read_csv(upload)
    else:
        rows = _read_excel(upload)
    logger.debug(
        "read file=%s sheets=%s farmer_rows=%d farm_rows=%d",
        upload.name,
        rows.sheet_names,
        len(rows.farmers),
        len(rows.farms),
    )
    return rows

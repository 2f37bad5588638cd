from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..excel.columns import FARMERS_SHEET, FARMS_SHEET
from ..models.commit_result import CommitError
from ..models.error_record import ErrorRecord
from ..models.staged import FieldError, StagedFarmer

"""Per-run error log.

Records from every stage of an import (file rejection, field validation,
commit) are collected in memory and appended as JSON Lines to
logs/errors-YYYYMMDD-HHMMSS.log. The file name is fixed on the first flush
that has something to write; a clean run leaves no log behind.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "LOGS_DIR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Collects ErrorRecords for one import; not shared between sessions."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self.logs_dir = logs_dir or LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._path: Path | None = None

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    @property
    def path(self) -> Path | None:
        """Log file of this run, None until the first non-empty flush."""
        return self._path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def add_file_error(self, file: str, error_type: str, message: str) -> None:
        self.append(ErrorRecord.file_level(file, error_type, message))

    def add_validation_errors(self, file: str, farmers: Iterable[StagedFarmer]) -> int:
        """One record per field error of each farmer and of each of its farms.

        Farm records point at the Farms sheet row, or at the owning farmer's
        row for farms that did not come from the sheet. Returns how many
        records were added.
        """
        before = len(self._records)
        for farmer in farmers:
            self._records.extend(
                ErrorRecord.for_field(file, FARMERS_SHEET, farmer.row_number, err) for err in farmer.errors
            )
            for farm in farmer.farms:
                row = farm.sheet_row if farm.sheet_row is not None else farmer.row_number
                label = f"farm '{farm.name or '<unnamed>'}'"
                for err in farm.errors:
                    named = FieldError(f"{label} {err.field}", err.message)
                    self.append(ErrorRecord.for_field(file, FARMS_SHEET, row, named))
        return len(self._records) - before

    def add_commit_errors(self, file: str, errors: Iterable[CommitError]) -> None:
        self._records.extend(ErrorRecord.for_commit(file, FARMERS_SHEET, err) for err in errors)

    def _open_path(self) -> Path:
        if self._path is None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            self._path = self.logs_dir / f"errors-{datetime.now(UTC).strftime(TIMESTAMP_FMT)}.log"
        return self._path

    def flush(self) -> Path | None:
        if not self._records:
            return None
        path = self._open_path()
        lines = "".join(r.to_json_line() + "\n" for r in self._records)
        with path.open("a", encoding="utf-8") as f:
            f.write(lines)
        self._records.clear()
        return path

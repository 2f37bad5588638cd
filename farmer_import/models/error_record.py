from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .commit_result import CommitError
from .staged import FieldError

"""One line of the JSON Lines error log.

The key set is fixed (timestamp, file, sheet, row, error_type, message) so
that downstream tooling can parse every line the same way. Problems with the
upload as a whole carry row -1 and the pseudo sheet "<FILE_LEVEL>".
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_ROW",
    "FILE_LEVEL_SHEET",
    "VALIDATION_ERROR",
    "COMMIT_ERROR",
]

FILE_LEVEL_ROW = -1
FILE_LEVEL_SHEET = "<FILE_LEVEL>"

VALIDATION_ERROR = "VALIDATION_ERROR"
COMMIT_ERROR = "COMMIT_ERROR"


def _utc_stamp() -> str:
    # millisecond precision, "Z" instead of "+00:00"
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: str
    file: str
    sheet: str
    row: int  # spreadsheet row (header = 1), FILE_LEVEL_ROW for the whole upload
    error_type: str
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        return ErrorRecord(_utc_stamp(), file, sheet, row, error_type, message)

    @classmethod
    def file_level(cls, file: str, error_type: str, message: str) -> ErrorRecord:
        """Upload rejected or unreadable before any row was staged."""
        return cls.create(file, FILE_LEVEL_SHEET, FILE_LEVEL_ROW, error_type, message)

    @classmethod
    def for_field(cls, file: str, sheet: str, row: int, error: FieldError) -> ErrorRecord:
        return cls.create(file, sheet, row, VALIDATION_ERROR, f"{error.field}: {error.message}")

    @classmethod
    def for_commit(cls, file: str, sheet: str, error: CommitError) -> ErrorRecord:
        return cls.create(file, sheet, error.row, COMMIT_ERROR, error.message)

    @property
    def is_file_level(self) -> bool:
        return self.row == FILE_LEVEL_ROW

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

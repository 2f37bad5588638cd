from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path

"""UploadedFile model: the byte buffer handed to spreadsheet ingestion."""

__all__ = [
    "UploadedFile",
    "XLSX_MEDIA_TYPE",
    "XLS_MEDIA_TYPE",
    "CSV_MEDIA_TYPE",
    "EXTENSION_MEDIA_TYPES",
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MEDIA_TYPE = "application/vnd.ms-excel"
CSV_MEDIA_TYPE = "text/csv"

EXTENSION_MEDIA_TYPES = {
    ".xlsx": XLSX_MEDIA_TYPE,
    ".xls": XLS_MEDIA_TYPE,
    ".csv": CSV_MEDIA_TYPE,
}


@dataclass(frozen=True)
class UploadedFile:
    """A user-selected file.

    media_type may be None when the caller does not know it; the extension
    of name is used instead.
    """
    name: str
    content: bytes
    media_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @property
    def resolved_media_type(self) -> str | None:
        if self.media_type:
            return self.media_type
        return EXTENSION_MEDIA_TYPES.get(self.extension)

    @property
    def is_csv(self) -> bool:
        return self.resolved_media_type == CSV_MEDIA_TYPE

    @staticmethod
    def from_path(path: Path) -> UploadedFile:
        media_type = EXTENSION_MEDIA_TYPES.get(path.suffix.lower())
        if media_type is None:
            media_type, _ = mimetypes.guess_type(path.name)
        return UploadedFile(name=path.name, content=path.read_bytes(), media_type=media_type)

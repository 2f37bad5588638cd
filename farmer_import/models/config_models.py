from __future__ import annotations

from dataclasses import dataclass, field

from .reference import ReferenceData
from .upload import CSV_MEDIA_TYPE, XLS_MEDIA_TYPE, XLSX_MEDIA_TYPE

"""Config dataclasses for the bulk farmer import.

These are the typed form of config/import.yml. The loader in
farmer_import/config/loader.py validates the raw YAML and builds them.
"""

__all__ = [
    "DEFAULT_MAX_FILE_SIZE",
    "DEFAULT_ACCEPTED_MEDIA_TYPES",
    "UploadConfig",
    "MappingDefaults",
    "StagingConfig",
    "DatabaseConfig",
    "ImportConfig",
]

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB

DEFAULT_ACCEPTED_MEDIA_TYPES: tuple[str, ...] = (
    XLSX_MEDIA_TYPE,
    XLS_MEDIA_TYPE,
    CSV_MEDIA_TYPE,
)


@dataclass(frozen=True)
class UploadConfig:
    """Limits applied when a file is selected."""
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    accepted_media_types: tuple[str, ...] = DEFAULT_ACCEPTED_MEDIA_TYPES


@dataclass(frozen=True)
class MappingDefaults:
    """Values substituted for blank enum cells.

    None leaves the cell unspecified so that validation reports it.
    """
    gender: str | None = "male"
    id_type: str | None = "ghana_card"


@dataclass(frozen=True)
class StagingConfig:
    auto_validate: bool = False  # re-validate after every edit


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import session."""
    upload: UploadConfig = field(default_factory=UploadConfig)
    defaults: MappingDefaults = field(default_factory=MappingDefaults)
    staging: StagingConfig = field(default_factory=StagingConfig)
    reference: ReferenceData = field(default_factory=ReferenceData)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

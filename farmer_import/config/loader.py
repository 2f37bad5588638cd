from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_ACCEPTED_MEDIA_TYPES,
    DEFAULT_MAX_FILE_SIZE,
    DatabaseConfig,
    ImportConfig,
    MappingDefaults,
    StagingConfig,
    UploadConfig,
)
from ..models.reference import ReferenceData

"""Config loader.

Responsibilities:
- Load YAML config (config/import.yml by default)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults for every missing section
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "load_config_or_default",
    "config_from_dict",
]


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or if
            the config data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def config_from_dict(data: dict[str, Any]) -> ImportConfig:
    """Build ImportConfig from already-parsed YAML data (validated first)."""
    _validate_config_schema(data)

    upload_raw = data.get("upload") or {}
    defaults_raw = data.get("defaults") or {}
    staging_raw = data.get("staging") or {}
    db_raw = data.get("database") or {}

    upload = UploadConfig(
        max_file_size=upload_raw.get("max_file_size", DEFAULT_MAX_FILE_SIZE),
        accepted_media_types=tuple(upload_raw.get("accepted_media_types", DEFAULT_ACCEPTED_MEDIA_TYPES)),
    )
    # key present with null -> leave blank cells unspecified
    defaults = MappingDefaults(
        gender=defaults_raw.get("gender", MappingDefaults.gender),
        id_type=defaults_raw.get("id_type", MappingDefaults.id_type),
    )
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        upload=upload,
        defaults=defaults,
        staging=StagingConfig(auto_validate=bool(staging_raw.get("auto_validate", False))),
        reference=ReferenceData.from_mapping(data.get("reference")),
        database=db,
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return config_from_dict(data)


def load_config_or_default(path: Path | None) -> ImportConfig:
    """Load an explicit config path, or the default path when it exists.

    An explicitly given path must exist; the default path is optional.
    """
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return ImportConfig()

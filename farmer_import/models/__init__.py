"""Domain models for the bulk farmer import.

This package contains the dataclasses and enums shared by ingestion, mapping,
validation, the import session and the commit stage.
"""

from .commit_result import CommitError, CommitResult, CommittedFarmer, FarmerPayload, FarmPayload
from .config_models import DatabaseConfig, ImportConfig, MappingDefaults, StagingConfig, UploadConfig
from .import_state import SessionState
from .reference import ReferenceData, ReferenceEntry
from .staged import FarmerData, FieldError, Gender, IdType, SoilType, StagedFarm, StagedFarmer
from .upload import UploadedFile

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "MappingDefaults",
    "StagingConfig",
    "UploadConfig",
    # Staged records
    "FarmerData",
    "FieldError",
    "Gender",
    "IdType",
    "SoilType",
    "StagedFarm",
    "StagedFarmer",
    # Session / upload
    "SessionState",
    "UploadedFile",
    "ReferenceData",
    "ReferenceEntry",
    # Commit
    "CommitError",
    "CommitResult",
    "CommittedFarmer",
    "FarmerPayload",
    "FarmPayload",
]

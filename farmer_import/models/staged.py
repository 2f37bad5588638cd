from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

"""Staged record models for the bulk farmer import.

A staged record is a farmer or farm parsed from an uploaded workbook that has
not been persisted yet. Staged records are owned by one ImportSession and are
never the persisted entities: they carry no database keys.

Enum-typed fields (gender, id_type, soil_type) are held as plain strings on
the staged data so that an out-of-vocabulary value typed by the user can be
kept and reported by validation. An empty string means "unspecified".
"""

__all__ = [
    "Gender",
    "IdType",
    "SoilType",
    "FieldError",
    "FarmerData",
    "StagedFarm",
    "StagedFarmer",
    "new_record_id",
]


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class IdType(str, Enum):
    GHANA_CARD = "ghana_card"
    VOTERS_ID = "voters_id"
    PASSPORT = "passport"
    DRIVERS_LICENSE = "drivers_license"


class SoilType(str, Enum):
    SANDY = "sandy"
    CLAY = "clay"
    LOAMY = "loamy"
    SILT = "silt"
    ROCKY = "rocky"


def new_record_id() -> str:
    """Opaque identifier for a staged record (never derived from sheet content)."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class FieldError:
    """One violated constraint on one field."""
    field: str
    message: str


@dataclass(frozen=True)
class FarmerData:
    """Field values of a staged farmer as read from (or edited after) the Farmers sheet."""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""
    date_of_birth: str = ""  # ISO YYYY-MM-DD
    gender: str = ""
    community: str = ""
    address: str = ""
    district_name: str = ""
    organization_name: str = ""
    id_type: str = ""
    id_number: str = ""
    household_size: int | None = None
    is_leader: bool = False
    is_phone_smart: bool = False
    legacy_farmer_id: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class StagedFarm:
    """A farm row attached to exactly one staged farmer."""
    name: str = ""
    acreage: float | None = None
    crop_type: str = ""
    soil_type: str = ""
    location_lat: float | None = None
    location_lng: float | None = None
    id: str = field(default_factory=new_record_id)
    is_valid: bool = False
    errors: list[FieldError] = field(default_factory=list)
    sheet_row: int | None = None  # Farms sheet row; None for farms added by hand


@dataclass
class StagedFarmer:
    """A farmer row staged for review.

    row_number is the 1-based sheet row including the header (first data
    row = 2). It is the key farm rows use to reference their farmer and is
    distinct from id.
    """
    row_number: int
    data: FarmerData
    farms: list[StagedFarm] = field(default_factory=list)
    id: str = field(default_factory=new_record_id)
    is_valid: bool = False
    errors: list[FieldError] = field(default_factory=list)

    def find_farm(self, farm_id: str) -> StagedFarm | None:
        for farm in self.farms:
            if farm.id == farm_id:
                return farm
        return None

    @property
    def valid_farms(self) -> list[StagedFarm]:
        return [f for f in self.farms if f.is_valid]
